"""
False discovery rate correction for per-feature Gi* p-values.

Testing every feature of a map at alpha=0.10 produces false hot spots by
chance alone. Benjamini-Hochberg adjustment controls the expected share of
false positives among the features declared significant.
"""

from dataclasses import replace
from typing import Sequence

import numpy as np

from hotspotpy.core.statistics import ClusterClass, GiResult

# (adjusted p upper bound, confidence level), most significant first
FDR_LEVELS = ((0.01, 99), (0.05, 95), (0.10, 90))


def benjamini_hochberg(pvalues) -> np.ndarray:
    """
    Benjamini-Hochberg adjusted p-values.

    NaN p-values are left out of the ranking and stay NaN.

    Parameters
    ----------
    pvalues : array-like
        Raw p-values.

    Returns
    -------
    np.ndarray
        Adjusted p-values, same shape and order.

    Examples
    --------
    >>> benjamini_hochberg([0.01, 0.04, 0.03])
    array([0.03, 0.04, 0.04])
    """
    pvalues = np.asarray(pvalues, dtype=np.float64)
    adjusted = np.full(pvalues.shape, np.nan)

    valid = ~np.isnan(pvalues)
    m = int(valid.sum())
    if m == 0:
        return adjusted

    p = pvalues[valid]
    order = np.argsort(p, kind="stable")
    ranked = p[order] * m / np.arange(1, m + 1)

    # Cumulative minimum from the largest p-value down keeps the adjustment monotone
    ranked = np.minimum.accumulate(ranked[::-1])[::-1]
    ranked = np.minimum(ranked, 1.0)

    out = np.empty(m)
    out[order] = ranked
    adjusted[valid] = out
    return adjusted


def fdr_cluster_class(z: float, adjusted_p: float) -> ClusterClass:
    """Hot/cold class from an FDR-adjusted p-value."""
    if np.isnan(adjusted_p) or np.isnan(z):
        return ClusterClass.NOT_SIGNIFICANT
    for bound, confidence in FDR_LEVELS:
        if adjusted_p <= bound:
            return ClusterClass.from_confidence(z, confidence)
    return ClusterClass.NOT_SIGNIFICANT


def apply_fdr_correction(results: Sequence[GiResult]) -> list:
    """
    Reclassify significant features using BH-adjusted p-values.

    NOT_ENOUGH_NEIGHBORS results and results with a NaN statistic are
    returned unchanged. Reported z-scores and p-values are not modified.

    Parameters
    ----------
    results : sequence of GiResult
        Results for the whole run, in input order.

    Returns
    -------
    list of GiResult
    """
    adjusted = benjamini_hochberg([r.p_value for r in results])
    out = []
    for r, p_adj in zip(results, adjusted):
        if r.cluster_class is ClusterClass.NOT_ENOUGH_NEIGHBORS or np.isnan(r.z_score):
            out.append(r)
        else:
            out.append(replace(r, cluster_class=fdr_cluster_class(r.z_score, p_adj)))
    return out
