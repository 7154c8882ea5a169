"""
Conditional permutation inference for Gi*.

The subject keeps its own value while its neighbor slots are refilled with
values drawn without replacement from the other n-1 features. The weights,
expected value and denominator of the observed statistic are reused, so the
null distribution is on the same scale as the observed z-score.
"""

from typing import Optional

import numpy as np

from hotspotpy.core.statistics import GlobalSummary, gi_star_denominator
from hotspotpy.core.weights import WeightRow


def feature_rng(random_seed: int, index: int) -> np.random.Generator:
    """
    Generator dedicated to one feature.

    Seeding from (seed, index) makes each feature's draws independent of
    which worker computes it and in which order.
    """
    return np.random.default_rng([int(random_seed), int(index)])


def conditional_permutation_pvalue(
    row: WeightRow,
    values: np.ndarray,
    summary: GlobalSummary,
    z_observed: float,
    n_permutations: int = 999,
    rng: Optional[np.random.Generator] = None,
) -> float:
    """
    Pseudo p-value of one feature's Gi* z-score.

    Parameters
    ----------
    row : WeightRow
        Weight row of the subject.
    values : np.ndarray
        All analysis values in input order.
    summary : GlobalSummary
        Global statistics of ``values``.
    z_observed : float
        Observed Gi* z-score of the subject.
    n_permutations : int, default=999
        Number of permutations.
    rng : np.random.Generator, optional
        Random source. Default: ``feature_rng(0, row.subject_index)``.

    Returns
    -------
    float
        (#{|z_perm| >= |z_observed|} + 1) / (n_permutations + 1), or NaN when
        the observed statistic is undefined.

    Examples
    --------
    >>> p = conditional_permutation_pvalue(row, values, summary, z, n_permutations=199)
    >>> 0 < p <= 1
    True
    """
    if n_permutations <= 0 or np.isnan(z_observed) or row.starved:
        return float("nan")
    denom = gi_star_denominator(row.weights, summary)
    if np.isnan(denom):
        return float("nan")

    if rng is None:
        rng = feature_rng(0, row.subject_index)

    i = row.subject_index
    is_self = row.neighbor_indices == i
    w_self = float(row.weights[is_self].sum())
    w_other = row.weights[~is_self]
    k = w_other.shape[0]

    pool = np.delete(np.asarray(values, dtype=np.float64), i)
    expected = summary.mean * float(row.weights.sum())
    fixed = w_self * float(values[i])

    draws = np.empty((n_permutations, k), dtype=np.float64)
    for p in range(n_permutations):
        draws[p] = rng.choice(pool, size=k, replace=False)

    z_perm = (fixed + draws @ w_other - expected) / denom
    n_extreme = int(np.sum(np.abs(z_perm) >= abs(z_observed)))
    return (n_extreme + 1) / (n_permutations + 1)
