"""Multiple testing and permutation inference."""

from hotspotpy.stats.fdr import apply_fdr_correction, benjamini_hochberg
from hotspotpy.stats.permutation import conditional_permutation_pvalue

__all__ = [
    "apply_fdr_correction",
    "benjamini_hochberg",
    "conditional_permutation_pvalue",
]
