"""
Getis-Ord Gi* local statistic.

For a weight row of feature i (subject included) with weights w_ij:

    S1    = sum_j w_ij
    S2    = sum_j w_ij^2
    Gi*   = (sum_j w_ij x_j - xbar * S1) / (s * sqrt((n * S2 - S1^2) / (n - 1)))

where xbar and s are the mean and population standard deviation of all
values. Gi* is read directly as a standard normal z-score; the p-value is
two-tailed.

Reference: Ord, J.K. and Getis, A. (1995). Local Spatial Autocorrelation
Statistics. Geographical Analysis 27(4): 287-306.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Hashable

import numpy as np
from scipy import stats

from hotspotpy.core.errors import ConfigurationError
from hotspotpy.core.weights import WeightRow

# Round-off allowance, in ulps of |mean|, for the std of a constant field
_CONSTANT_FIELD_ULPS = 16

# Relative tolerance for a zero-spread weight row
_ZERO_SPREAD_TOL = 1e-10

# (|z| lower bound, confidence level), most significant first
Z_THRESHOLDS = ((2.576, 99), (1.96, 95), (1.645, 90))


class ClusterClass(Enum):
    """Per-feature classification."""

    NOT_SIGNIFICANT = "not_significant"
    HOT_SPOT_90 = "hot_spot_90"
    HOT_SPOT_95 = "hot_spot_95"
    HOT_SPOT_99 = "hot_spot_99"
    COLD_SPOT_90 = "cold_spot_90"
    COLD_SPOT_95 = "cold_spot_95"
    COLD_SPOT_99 = "cold_spot_99"
    NOT_ENOUGH_NEIGHBORS = "not_enough_neighbors"

    @property
    def gi_bin(self) -> int:
        """Signed confidence bin: +3 hot 99% ... -3 cold 99%, 0 otherwise."""
        return _GI_BINS[self]

    @property
    def is_significant(self) -> bool:
        return self.gi_bin != 0

    @classmethod
    def from_confidence(cls, z: float, confidence: int) -> "ClusterClass":
        """Hot or cold spot at the given confidence (90/95/99), by sign of z."""
        prefix = "HOT_SPOT" if z > 0 else "COLD_SPOT"
        return cls[f"{prefix}_{confidence}"]


_GI_BINS = {
    ClusterClass.NOT_SIGNIFICANT: 0,
    ClusterClass.NOT_ENOUGH_NEIGHBORS: 0,
    ClusterClass.HOT_SPOT_90: 1,
    ClusterClass.HOT_SPOT_95: 2,
    ClusterClass.HOT_SPOT_99: 3,
    ClusterClass.COLD_SPOT_90: -1,
    ClusterClass.COLD_SPOT_95: -2,
    ClusterClass.COLD_SPOT_99: -3,
}


@dataclass(frozen=True)
class GlobalSummary:
    """Count, mean and population standard deviation of all values."""

    n: int
    mean: float
    population_std: float

    @property
    def is_degenerate(self) -> bool:
        """True for a constant value field."""
        eps = np.finfo(np.float64).eps
        return self.population_std <= _CONSTANT_FIELD_ULPS * eps * abs(self.mean)


@dataclass(frozen=True)
class GiResult:
    """
    Gi* outcome for one feature.

    ``z_score`` and ``p_value`` are NaN for neighbor-starved features and
    for numerically degenerate cases. ``pseudo_p_value`` is NaN unless
    permutation inference ran.
    """

    id: Hashable
    observed: float
    expected: float
    z_score: float
    p_value: float
    cluster_class: ClusterClass
    n_neighbors: int = 0
    pseudo_p_value: float = float("nan")


def compute_global_summary(values) -> GlobalSummary:
    """
    One pass of global statistics over the analysis values.

    Uses population standard deviation (N, not N-1).

    Raises
    ------
    ConfigurationError
        If there are fewer than two values.
    """
    x = np.asarray(values, dtype=np.float64)
    n = x.shape[0]
    if n < 2:
        raise ConfigurationError(f"Gi* needs at least 2 observations, got {n}")
    mean_x = float(np.mean(x))
    std_x = float(np.sqrt(np.sum((x - mean_x) ** 2) / n))
    return GlobalSummary(n=n, mean=mean_x, population_std=std_x)


def two_tailed_pvalue(z: float) -> float:
    """2 * (1 - Phi(|z|)); NaN in, NaN out."""
    if np.isnan(z):
        return float("nan")
    return float(2.0 * stats.norm.sf(abs(z)))


def classify_z(z: float) -> ClusterClass:
    """
    Hot/cold spot class from a z-score.

    Examples
    --------
    >>> classify_z(2.0)
    <ClusterClass.HOT_SPOT_95: 'hot_spot_95'>
    >>> classify_z(-1.0)
    <ClusterClass.NOT_SIGNIFICANT: 'not_significant'>
    """
    if np.isnan(z):
        return ClusterClass.NOT_SIGNIFICANT
    for bound, confidence in Z_THRESHOLDS:
        if abs(z) >= bound:
            return ClusterClass.from_confidence(z, confidence)
    return ClusterClass.NOT_SIGNIFICANT


def gi_star_denominator(weights: np.ndarray, summary: GlobalSummary) -> float:
    """
    Standard deviation of the weighted sum under randomization.

    Returns NaN when it is zero: a constant value field, or a weight row
    with no variance relative to the whole set (e.g. every feature weighted
    equally).
    """
    n = summary.n
    s1 = float(weights.sum())
    s2 = float(np.dot(weights, weights))
    spread = (n * s2 - s1 * s1) / (n - 1)
    if summary.is_degenerate or spread <= _ZERO_SPREAD_TOL * s1 * s1 / (n - 1):
        return float("nan")
    return summary.population_std * float(np.sqrt(spread))


def compute_gi_star(row: WeightRow, values: np.ndarray, summary: GlobalSummary) -> GiResult:
    """
    Gi* z-score, p-value and class for one weight row.

    Parameters
    ----------
    row : WeightRow
        Neighbors of the subject, subject included.
    values : np.ndarray
        All analysis values in input order.
    summary : GlobalSummary
        Output of ``compute_global_summary(values)``.

    Returns
    -------
    GiResult

    Notes
    -----
    Degenerate cases never raise. In order of precedence:

    1. Constant value field: NaN statistic, NOT_SIGNIFICANT.
    2. Subject is its own only neighbor: NaN, NOT_ENOUGH_NEIGHBORS.
    3. Zero-variance weight row: NaN statistic, NOT_SIGNIFICANT.
    """
    w = row.weights
    observed = float(np.dot(w, values[row.neighbor_indices]))
    expected = summary.mean * float(w.sum())
    nan = float("nan")

    if summary.is_degenerate:
        return GiResult(row.subject_id, observed, expected, nan, nan,
                        ClusterClass.NOT_SIGNIFICANT, row.n_neighbors)
    if row.starved:
        return GiResult(row.subject_id, observed, expected, nan, nan,
                        ClusterClass.NOT_ENOUGH_NEIGHBORS, row.n_neighbors)

    denom = gi_star_denominator(w, summary)
    if np.isnan(denom):
        return GiResult(row.subject_id, observed, expected, nan, nan,
                        ClusterClass.NOT_SIGNIFICANT, row.n_neighbors)

    z = (observed - expected) / denom
    return GiResult(
        id=row.subject_id,
        observed=observed,
        expected=expected,
        z_score=z,
        p_value=two_tailed_pvalue(z),
        cluster_class=classify_z(z),
        n_neighbors=row.n_neighbors,
    )
