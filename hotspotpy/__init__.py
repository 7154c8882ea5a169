"""
hotspotpy - Getis-Ord Gi* hot spot analysis for point features

Computes the local Gi* statistic for every feature of a set of projected,
valued observations and classifies each one as a hot spot, cold spot, not
significant, or lacking neighbors.

Key Features:
- KD-tree neighbor search (Euclidean or Manhattan)
- Fixed distance band, inverse distance, zone of indifference and
  polygon contiguity weights, optional row standardization
- z-scores, two-tailed p-values and 90/95/99% confidence classes
- Optional FDR correction and conditional permutation pseudo p-values
- Thread-pool execution with cooperative cancellation

Example:
    >>> from hotspotpy import HotspotConfig, Observation, local_g_statistics
    >>> obs = [Observation(i, (float(i), 0.0), v) for i, v in enumerate(values)]
    >>> outcome = local_g_statistics(obs, HotspotConfig(search_distance=1.5))
    >>> outcome.unwrap()[["id", "gi_zscore", "cluster_class"]]
"""

__version__ = "0.1.0"

from hotspotpy.analysis.local_g import local_g_from_frame, local_g_statistics
from hotspotpy.core.assembly import assemble_results
from hotspotpy.core.config import (
    DistanceMethod,
    HotspotConfig,
    SpatialConcept,
    StandardizationMethod,
    ThresholdEstimator,
)
from hotspotpy.core.errors import (
    Cancelled,
    ConfigurationError,
    Failed,
    HotspotError,
    InternalInvariantViolation,
    Ok,
    RunDiagnostics,
)
from hotspotpy.core.observations import Observation, observations_from_frame
from hotspotpy.core.progress import (
    CancellationToken,
    LoggingProgressMonitor,
    NullProgressMonitor,
)
from hotspotpy.core.statistics import (
    ClusterClass,
    GiResult,
    GlobalSummary,
    compute_gi_star,
    compute_global_summary,
)
from hotspotpy.core.weights import WeightMatrixBuilder, WeightRow
from hotspotpy.neighbors.kdtree import SpatialIndex

__all__ = [
    # Version
    "__version__",
    # Analysis
    "local_g_statistics",
    "local_g_from_frame",
    # Configuration
    "HotspotConfig",
    "SpatialConcept",
    "DistanceMethod",
    "StandardizationMethod",
    "ThresholdEstimator",
    # Data
    "Observation",
    "observations_from_frame",
    # Components
    "SpatialIndex",
    "WeightMatrixBuilder",
    "WeightRow",
    "GlobalSummary",
    "GiResult",
    "ClusterClass",
    "compute_global_summary",
    "compute_gi_star",
    "assemble_results",
    # Outcomes and errors
    "Ok",
    "Cancelled",
    "Failed",
    "RunDiagnostics",
    "HotspotError",
    "ConfigurationError",
    "InternalInvariantViolation",
    # Progress
    "NullProgressMonitor",
    "CancellationToken",
    "LoggingProgressMonitor",
]
