"""
KD-tree based spatial index for neighbor retrieval.

Uses scipy.spatial.cKDTree for O(n log n) construction and radius queries.
"""

from typing import Tuple

import numpy as np
from scipy.spatial import cKDTree

from hotspotpy.core.config import DistanceMethod


class SpatialIndex:
    """
    Read-only spatial index over feature locations.

    Built once, then queried concurrently from worker threads. Radius queries
    are inclusive: a point exactly at ``radius`` is returned.

    Parameters
    ----------
    coords : array-like
        Planar coordinates of shape (n, 2).
    distance_method : DistanceMethod, default=EUCLIDEAN
        Metric used for every query.
    leafsize : int, default=16
        Number of points at which to switch to brute-force search.

    Examples
    --------
    >>> coords = np.array([[0.0, 0.0], [1.0, 0.0], [5.0, 0.0]])
    >>> index = SpatialIndex(coords)
    >>> index.query_radius(coords[0], 1.0)
    array([0, 1])
    """

    def __init__(
        self,
        coords,
        distance_method: DistanceMethod = DistanceMethod.EUCLIDEAN,
        leafsize: int = 16,
    ):
        self.coords = np.array(coords, dtype=np.float64).reshape(-1, 2)
        self.n_points = self.coords.shape[0]
        self.distance_method = distance_method
        self.p = distance_method.minkowski_p
        self.tree = cKDTree(self.coords, leafsize=leafsize) if self.n_points > 0 else None

    def __len__(self) -> int:
        return self.n_points

    def query_radius(self, location, radius: float) -> np.ndarray:
        """
        Indices of all points within ``radius`` of ``location``.

        Parameters
        ----------
        location : array-like
            Query point (x, y).
        radius : float
            Search radius (inclusive).

        Returns
        -------
        np.ndarray
            Sorted int64 indices.
        """
        if self.tree is None or not radius >= 0:
            return np.array([], dtype=np.int64)
        idx = self.tree.query_ball_point(
            np.asarray(location, dtype=np.float64), radius, p=self.p, return_sorted=True
        )
        return np.asarray(idx, dtype=np.int64)

    def query_radius_with_distances(
        self,
        location,
        radius: float,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Find neighbors within radius and their distances.

        Returns
        -------
        Tuple[np.ndarray, np.ndarray]
            (indices, distances), ordered by index.
        """
        idx = self.query_radius(location, radius)
        if len(idx) == 0:
            return idx, np.array([], dtype=np.float64)
        return idx, self._distances_from(location, idx)

    def distance(self, i: int, j: int) -> float:
        """Distance between indexed points i and j."""
        return float(self._distances_from(self.coords[i], np.array([j]))[0])

    def nearest_neighbor_distances(self) -> np.ndarray:
        """
        Distance from every point to its nearest other point.

        Returns
        -------
        np.ndarray
            Length-n array; all NaN when there are fewer than two points.
        """
        if self.n_points < 2:
            return np.full(self.n_points, np.nan)
        dists, _ = self.tree.query(self.coords, k=2, p=self.p)
        # Column 0 is the point itself (or a coincident duplicate at distance 0)
        return dists[:, 1].astype(np.float64)

    def _distances_from(self, location, idx: np.ndarray) -> np.ndarray:
        diff = self.coords[idx] - np.asarray(location, dtype=np.float64)
        if self.distance_method is DistanceMethod.MANHATTAN:
            return np.abs(diff).sum(axis=1)
        return np.sqrt((diff**2).sum(axis=1))
