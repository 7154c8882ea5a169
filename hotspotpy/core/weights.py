"""
Spatial weight rows for Gi*.

Implements:
- Fixed distance band, inverse distance (power 1 and 2) and zone of
  indifference weights from a distance threshold
- Polygon contiguity weights from a caller-supplied adjacency mapping
- Row standardization
- Default threshold estimation from nearest-neighbor distances

Every row contains the subject feature itself with raw weight 1, as the Gi*
(rather than Gi) statistic requires.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np
from scipy import sparse as sp_sparse

from hotspotpy.core.config import (
    HotspotConfig,
    SpatialConcept,
    StandardizationMethod,
    ThresholdEstimator,
)
from hotspotpy.core.errors import ConfigurationError
from hotspotpy.neighbors.kdtree import SpatialIndex

logger = logging.getLogger(__name__)

# Distances at or below this are treated as coincident points
_COINCIDENT_TOL = 1e-12


@dataclass(frozen=True, eq=False)
class WeightRow:
    """
    Neighbors and weights of one subject feature.

    Parameters
    ----------
    subject_id : hashable
        Id of the subject feature.
    subject_index : int
        Position of the subject in the input order.
    neighbor_ids : tuple
        Neighbor ids in index order, including the subject.
    neighbor_indices : np.ndarray
        Positions of the neighbors, same order as ``neighbor_ids``.
    weights : np.ndarray
        Weight per neighbor, after standardization.
    starved : bool
        True when the subject is its own only neighbor.
    """

    subject_id: Hashable
    subject_index: int
    neighbor_ids: tuple
    neighbor_indices: np.ndarray
    weights: np.ndarray
    starved: bool

    @property
    def neighbors(self) -> List[tuple]:
        """(neighbor_id, weight) pairs."""
        return list(zip(self.neighbor_ids, self.weights.tolist()))

    @property
    def n_neighbors(self) -> int:
        """Number of neighbors other than the subject."""
        return len(self.neighbor_indices) - 1

    @property
    def weight_sum(self) -> float:
        return float(self.weights.sum())


def fixed_distance_band_weights(dists: np.ndarray, threshold: float, width: float) -> np.ndarray:
    """w = 1 for d <= threshold, else 0."""
    return np.where(dists <= threshold, 1.0, 0.0)


def inverse_distance_weights(dists: np.ndarray, threshold: float, width: float) -> np.ndarray:
    """w = 1/d; coincident points get 1."""
    with np.errstate(divide="ignore"):
        return np.where(dists > _COINCIDENT_TOL, 1.0 / dists, 1.0)


def inverse_distance_squared_weights(dists: np.ndarray, threshold: float, width: float) -> np.ndarray:
    """w = 1/d^2; coincident points get 1."""
    with np.errstate(divide="ignore"):
        return np.where(dists > _COINCIDENT_TOL, 1.0 / dists**2, 1.0)


def zone_of_indifference_weights(dists: np.ndarray, threshold: float, width: float) -> np.ndarray:
    """
    w = 1 within the threshold, then linear decay to 0 at threshold + width.
    """
    if width <= 0:
        return fixed_distance_band_weights(dists, threshold, width)
    decay = 1.0 - (dists - threshold) / width
    return np.where(dists <= threshold, 1.0, np.clip(decay, 0.0, 1.0))


WeightFunction = Callable[[np.ndarray, float, float], np.ndarray]

WEIGHT_FUNCTIONS: Dict[SpatialConcept, WeightFunction] = {
    SpatialConcept.FIXED_DISTANCE_BAND: fixed_distance_band_weights,
    SpatialConcept.INVERSE_DISTANCE: inverse_distance_weights,
    SpatialConcept.INVERSE_DISTANCE_SQUARED: inverse_distance_squared_weights,
    SpatialConcept.ZONE_OF_INDIFFERENCE: zone_of_indifference_weights,
}


def _finite(nn_distances: np.ndarray) -> np.ndarray:
    nn = np.asarray(nn_distances, dtype=np.float64)
    return nn[np.isfinite(nn)]


def average_nearest_neighbor_distance(nn_distances) -> float:
    """Mean distance from each feature to its nearest other feature."""
    nn = _finite(nn_distances)
    return float(np.mean(nn)) if len(nn) else float("nan")


def max_nearest_neighbor_distance(nn_distances) -> float:
    """Smallest distance that gives every feature at least one neighbor."""
    nn = _finite(nn_distances)
    return float(np.max(nn)) if len(nn) else float("nan")


THRESHOLD_ESTIMATORS: Dict[ThresholdEstimator, Callable[[np.ndarray], float]] = {
    ThresholdEstimator.AVERAGE_NEAREST_NEIGHBOR: average_nearest_neighbor_distance,
    ThresholdEstimator.MAX_NEAREST_NEIGHBOR: max_nearest_neighbor_distance,
}


def resolve_distance_threshold(
    index: SpatialIndex,
    config: HotspotConfig,
    estimator: Optional[Union[ThresholdEstimator, Callable[[np.ndarray], float]]] = None,
) -> float:
    """
    Distance threshold for the run.

    Parameters
    ----------
    index : SpatialIndex
        Index over all features.
    config : HotspotConfig
        Run configuration. An explicit positive ``search_distance`` wins.
    estimator : ThresholdEstimator or callable, optional
        Overrides ``config.threshold_estimator``. A callable receives the
        nearest-neighbor distance array and returns the threshold.

    Returns
    -------
    float
        Threshold, or NaN for POLYGON_CONTIGUITY.
    """
    if config.spatial_concept is SpatialConcept.POLYGON_CONTIGUITY:
        return float("nan")
    if not config.auto_distance:
        return float(config.search_distance)

    if estimator is None:
        estimator = config.threshold_estimator
    func = THRESHOLD_ESTIMATORS[estimator] if isinstance(estimator, ThresholdEstimator) else estimator

    threshold = float(func(index.nearest_neighbor_distances()))
    if not np.isfinite(threshold) or threshold < 0:
        raise ConfigurationError(
            f"Could not estimate a search distance from the data (got {threshold})"
        )
    logger.info(f"Estimated search distance: {threshold:.6g}")
    return threshold


def row_standardize(weights: np.ndarray, self_pos: int) -> np.ndarray:
    """
    Divide a weight row by its sum.

    A row whose sum is not positive collapses to the subject alone.
    """
    total = weights.sum()
    if total > 0:
        return weights / total
    out = np.zeros_like(weights)
    out[self_pos] = 1.0
    return out


class WeightMatrixBuilder:
    """
    Builds one ``WeightRow`` per feature.

    The threshold is resolved once at construction. ``build_row`` only reads
    shared state, so rows for different features can be built concurrently.

    Parameters
    ----------
    index : SpatialIndex
        Index over all feature locations.
    ids : sequence
        Feature ids in input order.
    config : HotspotConfig
        Neighbor model.
    adjacency : mapping, optional
        ``{id: iterable of neighbor ids}``; required for POLYGON_CONTIGUITY.
    estimator : ThresholdEstimator or callable, optional
        Default-threshold rule override.

    Examples
    --------
    >>> coords = np.array([[0.0, 0.0], [1.0, 0.0], [3.0, 0.0]])
    >>> config = HotspotConfig(search_distance=1.5)
    >>> builder = WeightMatrixBuilder(SpatialIndex(coords), ["a", "b", "c"], config)
    >>> builder.build_row(0).neighbors
    [('a', 1.0), ('b', 1.0)]
    """

    def __init__(
        self,
        index: SpatialIndex,
        ids: Sequence[Hashable],
        config: HotspotConfig,
        adjacency: Optional[Mapping[Hashable, Iterable[Hashable]]] = None,
        estimator=None,
    ):
        self.index = index
        self.ids = list(ids)
        self.config = config
        self.n = len(self.ids)
        self.concept = config.spatial_concept
        self.row_standardized = config.standardization is StandardizationMethod.ROW_STANDARDIZED

        if self.concept is SpatialConcept.POLYGON_CONTIGUITY:
            self._contiguity = self._index_adjacency(adjacency)
            self.threshold = float("nan")
            self.transition_width = 0.0
            self.search_radius = float("nan")
        else:
            self._contiguity = None
            self._weight_func = WEIGHT_FUNCTIONS[self.concept]
            self.threshold = resolve_distance_threshold(index, config, estimator)
            if self.concept is SpatialConcept.ZONE_OF_INDIFFERENCE:
                width = config.transition_width
                self.transition_width = self.threshold if width is None else float(width)
            else:
                self.transition_width = 0.0
            self.search_radius = self.threshold + self.transition_width

    def _index_adjacency(self, adjacency) -> List[np.ndarray]:
        if adjacency is None:
            raise ConfigurationError(
                "POLYGON_CONTIGUITY requires an adjacency mapping {id: neighbor ids}"
            )
        id_to_index = {fid: i for i, fid in enumerate(self.ids)}
        unknown = [fid for fid in adjacency if fid not in id_to_index]
        if unknown:
            raise ConfigurationError(f"Adjacency refers to unknown ids: {unknown[:10]}")

        rows = []
        for i, fid in enumerate(self.ids):
            neighbor_idx = set()
            for nid in adjacency.get(fid, ()):
                if nid not in id_to_index:
                    raise ConfigurationError(
                        f"Adjacency of {fid!r} refers to unknown id {nid!r}"
                    )
                neighbor_idx.add(id_to_index[nid])
            neighbor_idx.add(i)
            rows.append(np.array(sorted(neighbor_idx), dtype=np.int64))
        return rows

    def build_row(self, i: int) -> WeightRow:
        """Weight row for the feature at position ``i``."""
        if self._contiguity is not None:
            idx = self._contiguity[i]
            weights = np.ones(len(idx), dtype=np.float64)
        else:
            idx, dists = self.index.query_radius_with_distances(
                self.index.coords[i], self.search_radius
            )
            if not np.any(idx == i):
                idx = np.append(idx, i)
                dists = np.append(dists, 0.0)
                order = np.argsort(idx, kind="stable")
                idx, dists = idx[order], dists[order]
            weights = self._weight_func(dists, self.threshold, self.transition_width)
            weights = np.asarray(weights, dtype=np.float64)
            weights[idx == i] = 1.0

            keep = weights > 0
            idx, weights = idx[keep], weights[keep]

        self_pos = int(np.flatnonzero(idx == i)[0])
        if self.row_standardized:
            weights = row_standardize(weights, self_pos)
            keep = weights > 0
            keep[self_pos] = True
            idx, weights = idx[keep], weights[keep]

        return WeightRow(
            subject_id=self.ids[i],
            subject_index=i,
            neighbor_ids=tuple(self.ids[j] for j in idx),
            neighbor_indices=idx,
            weights=weights,
            starved=len(idx) < 2,
        )

    def build_all(self) -> List[WeightRow]:
        """Rows for every feature, in input order."""
        return [self.build_row(i) for i in range(self.n)]


def to_sparse(rows: Sequence[WeightRow], n: Optional[int] = None) -> sp_sparse.csr_matrix:
    """
    Stack weight rows into a sparse (n x n) matrix.

    Parameters
    ----------
    rows : sequence of WeightRow
        One row per feature.
    n : int, optional
        Matrix size. Default: ``len(rows)``.

    Returns
    -------
    scipy.sparse.csr_matrix
        ``W[i, j]`` is the weight of feature j in the row of feature i.
    """
    n = len(rows) if n is None else n
    if not rows:
        return sp_sparse.csr_matrix((n, n), dtype=np.float64)
    r = np.concatenate([np.full(len(row.neighbor_indices), row.subject_index) for row in rows])
    c = np.concatenate([row.neighbor_indices for row in rows])
    w = np.concatenate([row.weights for row in rows])
    return sp_sparse.csr_matrix((w, (r, c)), shape=(n, n), dtype=np.float64)
