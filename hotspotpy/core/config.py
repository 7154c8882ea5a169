"""
Configuration for Getis-Ord Gi* hot spot analysis.

Enumerations select the neighbor model; ``HotspotConfig`` bundles them with
the numeric options and can be saved to / loaded from JSON.
"""

import json
import math
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Optional

import numpy as np

from hotspotpy.core.errors import ConfigurationError


class SpatialConcept(Enum):
    """How neighbor weights are derived."""

    FIXED_DISTANCE_BAND = "fixed_distance_band"
    INVERSE_DISTANCE = "inverse_distance"
    INVERSE_DISTANCE_SQUARED = "inverse_distance_squared"
    ZONE_OF_INDIFFERENCE = "zone_of_indifference"
    POLYGON_CONTIGUITY = "polygon_contiguity"


class DistanceMethod(Enum):
    """Planar distance metric."""

    EUCLIDEAN = "euclidean"
    MANHATTAN = "manhattan"

    @property
    def minkowski_p(self) -> float:
        return 2.0 if self is DistanceMethod.EUCLIDEAN else 1.0


class StandardizationMethod(Enum):
    """Weight row standardization."""

    NONE = "none"
    ROW_STANDARDIZED = "row_standardized"


class ThresholdEstimator(Enum):
    """Rule used to pick a search distance when none is given."""

    AVERAGE_NEAREST_NEIGHBOR = "average_nearest_neighbor"
    MAX_NEAREST_NEIGHBOR = "max_nearest_neighbor"


_ENUM_FIELDS = {
    "spatial_concept": SpatialConcept,
    "distance_method": DistanceMethod,
    "standardization": StandardizationMethod,
    "threshold_estimator": ThresholdEstimator,
}


def _coerce_enum(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        key = value.strip().lower().replace(" ", "_").replace("-", "_")
        try:
            return enum_cls(key)
        except ValueError:
            pass
        try:
            return enum_cls[key.upper()]
        except KeyError:
            pass
    available = ", ".join(m.value for m in enum_cls)
    raise ConfigurationError(
        f"Unknown {enum_cls.__name__}: {value!r}. Available: {available}"
    )


@dataclass
class HotspotConfig:
    """
    Resolved options for one hot spot run.

    Parameters
    ----------
    spatial_concept : SpatialConcept
        Neighbor weighting scheme.
    distance_method : DistanceMethod
        Euclidean or Manhattan distance.
    standardization : StandardizationMethod
        Whether weight rows are divided by their sum.
    search_distance : float, optional
        Distance threshold. ``None``, NaN, ``"auto"`` or a non-positive value
        means it is estimated from the data with ``threshold_estimator``.
    threshold_estimator : ThresholdEstimator
        Default-threshold rule over nearest-neighbor distances.
    transition_width : float, optional
        Width of the linear decay band beyond the threshold for
        ZONE_OF_INDIFFERENCE. Default: the threshold itself.
    apply_fdr : bool
        Classify significance from Benjamini-Hochberg adjusted p-values.
    n_permutations : int
        Number of conditional permutations per feature (0 disables).
    random_seed : int
        Seed for permutation draws.
    n_jobs : int
        Worker threads for per-feature computation; -1 uses all cores.
    chunk_size : int, optional
        Features per work unit. Default: derived from n_jobs.

    Example
    -------
    >>> config = HotspotConfig(search_distance=1.5)
    >>> config.spatial_concept
    <SpatialConcept.FIXED_DISTANCE_BAND: 'fixed_distance_band'>
    """

    spatial_concept: SpatialConcept = SpatialConcept.FIXED_DISTANCE_BAND
    distance_method: DistanceMethod = DistanceMethod.EUCLIDEAN
    standardization: StandardizationMethod = StandardizationMethod.NONE
    search_distance: Optional[float] = None
    threshold_estimator: ThresholdEstimator = ThresholdEstimator.AVERAGE_NEAREST_NEIGHBOR
    transition_width: Optional[float] = None
    apply_fdr: bool = False
    n_permutations: int = 0
    random_seed: int = 42
    n_jobs: int = 1
    chunk_size: Optional[int] = None

    def __post_init__(self):
        for name, enum_cls in _ENUM_FIELDS.items():
            setattr(self, name, _coerce_enum(enum_cls, getattr(self, name)))
        if isinstance(self.search_distance, str):
            if self.search_distance.strip().lower() != "auto":
                raise ConfigurationError(
                    f"search_distance must be a number or 'auto', got {self.search_distance!r}"
                )
            self.search_distance = None

    @property
    def auto_distance(self) -> bool:
        """True when the search distance has to be estimated."""
        d = self.search_distance
        return d is None or math.isnan(d) or d <= 0

    def validate(self) -> "HotspotConfig":
        """Check numeric options. Returns self so calls can be chained."""
        if self.search_distance is not None:
            try:
                self.search_distance = float(self.search_distance)
            except (TypeError, ValueError):
                raise ConfigurationError(
                    f"search_distance must be numeric, got {self.search_distance!r}"
                )
            if math.isinf(self.search_distance):
                raise ConfigurationError("search_distance must be finite")

        if self.transition_width is not None:
            try:
                w = float(self.transition_width)
            except (TypeError, ValueError):
                w = float("nan")
            if not math.isfinite(w) or w <= 0:
                raise ConfigurationError(
                    f"transition_width must be a positive finite number, got {self.transition_width!r}"
                )
            self.transition_width = w

        self.n_permutations = _as_int("n_permutations", self.n_permutations)
        if self.n_permutations < 0:
            raise ConfigurationError(
                f"n_permutations must be a non-negative integer, got {self.n_permutations!r}"
            )

        self.n_jobs = _as_int("n_jobs", self.n_jobs)
        if self.n_jobs == 0:
            raise ConfigurationError("n_jobs must be a non-zero integer, got 0")

        if self.chunk_size is not None:
            self.chunk_size = _as_int("chunk_size", self.chunk_size)
            if self.chunk_size < 1:
                raise ConfigurationError(f"chunk_size must be >= 1, got {self.chunk_size!r}")

        return self

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        d = asdict(self)
        for name in _ENUM_FIELDS:
            d[name] = getattr(self, name).value
        return _convert_to_native(d)

    def save(self, path: str) -> None:
        """Save configuration to JSON file."""
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def from_dict(cls, d: dict) -> "HotspotConfig":
        """Build a config from a (possibly partial) dictionary."""
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(d) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {unknown}")
        return cls(**d)

    @classmethod
    def load(cls, path: str) -> "HotspotConfig":
        """Load configuration from JSON file."""
        with open(path) as f:
            d = json.load(f)
        return cls.from_dict(d)


def _as_int(name: str, value) -> int:
    """Integer value of an option; integral floats are accepted, strings are not."""
    if isinstance(value, (str, bytes, bool)):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    try:
        as_int = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if as_int != value:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    return as_int


def _convert_to_native(obj: Any) -> Any:
    """Convert numpy types to native Python types for JSON serialization."""
    if isinstance(obj, dict):
        return {k: _convert_to_native(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [_convert_to_native(v) for v in obj]
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        return None if np.isnan(obj) else float(obj)
    elif isinstance(obj, float) and math.isnan(obj):
        return None
    elif isinstance(obj, Enum):
        return obj.value
    else:
        return obj
