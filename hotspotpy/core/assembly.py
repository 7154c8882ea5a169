"""
Merge per-feature Gi* results back onto the input observations.
"""

from typing import Iterable, List, Sequence

import numpy as np
import pandas as pd

from hotspotpy.core.errors import InternalInvariantViolation
from hotspotpy.core.observations import Observation
from hotspotpy.core.statistics import GiResult

# Output column names
ID_COL = "id"
X_COL = "x"
Y_COL = "y"
VALUE_COL = "value"
ZSCORE_COL = "gi_zscore"
PVALUE_COL = "gi_pvalue"
CLASS_COL = "cluster_class"
BIN_COL = "gi_bin"
OBSERVED_COL = "observed"
EXPECTED_COL = "expected"
NEIGHBORS_COL = "n_neighbors"
PSEUDO_P_COL = "gi_pseudo_pvalue"

RESULT_COLS = [ZSCORE_COL, PVALUE_COL, CLASS_COL, BIN_COL]
DIAGNOSTIC_COLS = [OBSERVED_COL, EXPECTED_COL, NEIGHBORS_COL]


def _match_results(
    observations: Sequence[Observation],
    results: Iterable[GiResult],
) -> List[GiResult]:
    by_id = {}
    for r in results:
        if r.id in by_id:
            raise InternalInvariantViolation(f"Duplicate Gi* result for id {r.id!r}")
        by_id[r.id] = r

    ordered = []
    for obs in observations:
        try:
            ordered.append(by_id.pop(obs.id))
        except KeyError:
            raise InternalInvariantViolation(f"No Gi* result for observation {obs.id!r}")
    if by_id:
        extra = list(by_id)[:10]
        raise InternalInvariantViolation(f"Gi* results for unknown ids: {extra}")
    return ordered


def assemble_results(
    observations: Sequence[Observation],
    results: Iterable[GiResult],
    include_diagnostics: bool = True,
    include_pseudo_p: bool = False,
) -> pd.DataFrame:
    """
    Build the output table, one row per observation, in input order.

    Parameters
    ----------
    observations : sequence of Observation
        Input observations in their original order.
    results : iterable of GiResult
        Exactly one result per observation id, in any order.
    include_diagnostics : bool, default=True
        Add ``observed``, ``expected`` and ``n_neighbors`` columns.
    include_pseudo_p : bool, default=False
        Add the permutation pseudo p-value column.

    Returns
    -------
    pd.DataFrame
        Columns: id, x, y, value, original attributes, gi_zscore, gi_pvalue,
        cluster_class, gi_bin, then the optional columns.

    Raises
    ------
    InternalInvariantViolation
        If a result is missing, duplicated or refers to an unknown id.
    """
    ordered = _match_results(observations, results)

    base = pd.DataFrame(
        {
            ID_COL: [obs.id for obs in observations],
            X_COL: np.array([obs.x for obs in observations], dtype=np.float64),
            Y_COL: np.array([obs.y for obs in observations], dtype=np.float64),
            VALUE_COL: np.array([obs.value for obs in observations], dtype=np.float64),
        }
    )

    attrs = pd.DataFrame([dict(obs.attributes) for obs in observations], index=base.index)
    # Computed columns win over same-named attributes
    reserved = set(base.columns) | set(RESULT_COLS) | set(DIAGNOSTIC_COLS) | {PSEUDO_P_COL}
    attrs = attrs[[c for c in attrs.columns if c not in reserved]]

    stats = {
        ZSCORE_COL: np.array([r.z_score for r in ordered], dtype=np.float64),
        PVALUE_COL: np.array([r.p_value for r in ordered], dtype=np.float64),
        CLASS_COL: [r.cluster_class.value for r in ordered],
        BIN_COL: np.array([r.cluster_class.gi_bin for r in ordered], dtype=np.int64),
    }
    if include_diagnostics:
        stats[OBSERVED_COL] = np.array([r.observed for r in ordered], dtype=np.float64)
        stats[EXPECTED_COL] = np.array([r.expected for r in ordered], dtype=np.float64)
        stats[NEIGHBORS_COL] = np.array([r.n_neighbors for r in ordered], dtype=np.int64)
    if include_pseudo_p:
        stats[PSEUDO_P_COL] = np.array([r.pseudo_p_value for r in ordered], dtype=np.float64)

    return pd.concat([base, attrs, pd.DataFrame(stats, index=base.index)], axis=1)
