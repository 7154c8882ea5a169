"""Neighbor search utilities."""

from hotspotpy.neighbors.kdtree import SpatialIndex

__all__ = ["SpatialIndex"]
