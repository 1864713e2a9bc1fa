"""
Shared constants used across multiple modules.
Single source of truth for association thresholds and strength tiers.
"""

# Default |phi| above which a tag is reported as associated with the occurrence
DEFAULT_PHI_THRESHOLD = 0.1

# Below this many journal days the summary carries a data-quality note
DEFAULT_MIN_JOURNAL_DAYS = 14

# Strength tiers on |phi| (checked top-down)
STRENGTH_TIERS = [
    (0.5, "STRONG"),
    (0.3, "MODERATE"),
    (0.1, "WEAK"),
    (0.0, "NEGLIGIBLE"),
]

# Significance marks on the chi-square p-value
SIGNIFICANCE_MARKS = [
    (0.01, "***"),
    (0.05, "**"),
    (0.10, "*"),
]
