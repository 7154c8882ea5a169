"""Core hot spot components: configuration, weights, Gi* statistics, assembly."""

from hotspotpy.core.assembly import assemble_results
from hotspotpy.core.config import HotspotConfig
from hotspotpy.core.statistics import (
    ClusterClass,
    classify_z,
    compute_gi_star,
    compute_global_summary,
    two_tailed_pvalue,
)
from hotspotpy.core.weights import WeightMatrixBuilder, resolve_distance_threshold, to_sparse

__all__ = [
    "HotspotConfig",
    "WeightMatrixBuilder",
    "resolve_distance_threshold",
    "to_sparse",
    "ClusterClass",
    "classify_z",
    "compute_gi_star",
    "compute_global_summary",
    "two_tailed_pvalue",
    "assemble_results",
]
