"""Tests for weight row construction."""

import numpy as np
import pytest
from scipy import sparse

from hotspotpy.core.config import (
    DistanceMethod,
    HotspotConfig,
    SpatialConcept,
    StandardizationMethod,
    ThresholdEstimator,
)
from hotspotpy.core.errors import ConfigurationError
from hotspotpy.core.weights import (
    WEIGHT_FUNCTIONS,
    WeightMatrixBuilder,
    resolve_distance_threshold,
    row_standardize,
    to_sparse,
)
from hotspotpy.neighbors.kdtree import SpatialIndex


def _builder(coords, config, ids=None, adjacency=None, estimator=None):
    coords = np.asarray(coords, dtype=np.float64)
    ids = list(range(len(coords))) if ids is None else ids
    return WeightMatrixBuilder(
        SpatialIndex(coords, config.distance_method),
        ids,
        config,
        adjacency=adjacency,
        estimator=estimator,
    )


LINE = [[0.0, 0.0], [1.0, 0.0], [2.0, 0.0], [3.0, 0.0], [4.0, 0.0]]


class TestFixedDistanceBand:
    """Tests for fixed distance band rows."""

    def test_neighbors_include_self(self):
        """Test each row has the subject plus neighbors within the band."""
        builder = _builder(LINE, HotspotConfig(search_distance=1.5))

        row = builder.build_row(2)

        assert row.neighbor_indices.tolist() == [1, 2, 3]
        assert np.allclose(row.weights, 1.0)
        assert row.n_neighbors == 2
        assert not row.starved

    def test_end_point(self):
        """Test the end of the line has one neighbor."""
        row = _builder(LINE, HotspotConfig(search_distance=1.5)).build_row(4)

        assert row.neighbors == [(3, 1.0), (4, 1.0)]

    def test_starved_row(self):
        """Test an isolated feature keeps only itself and is flagged."""
        coords = [[0.0, 0.0], [1.0, 0.0], [50.0, 0.0]]
        row = _builder(coords, HotspotConfig(search_distance=2.0)).build_row(2)

        assert row.neighbor_indices.tolist() == [2]
        assert row.starved
        assert row.n_neighbors == 0

    def test_manhattan(self):
        """Test Manhattan distance excludes a diagonal neighbor."""
        coords = [[0.0, 0.0], [1.0, 1.0]]
        config = HotspotConfig(search_distance=1.5, distance_method=DistanceMethod.MANHATTAN)

        assert _builder(coords, config).build_row(0).starved

    def test_ids_carried(self):
        """Test neighbor ids follow the supplied id list."""
        row = _builder(LINE, HotspotConfig(search_distance=1.5), ids=list("abcde")).build_row(0)

        assert row.subject_id == "a"
        assert row.neighbor_ids == ("a", "b")


class TestDistanceDecay:
    """Tests for inverse distance and zone of indifference weights."""

    def test_inverse_distance(self):
        """Test w = 1/d with self weight 1."""
        config = HotspotConfig(
            search_distance=2.5, spatial_concept=SpatialConcept.INVERSE_DISTANCE
        )
        row = _builder([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0]], config).build_row(0)

        assert np.allclose(row.weights, [1.0, 1.0, 0.5])

    def test_inverse_distance_squared(self):
        """Test w = 1/d^2 with self weight 1."""
        config = HotspotConfig(
            search_distance=2.5, spatial_concept=SpatialConcept.INVERSE_DISTANCE_SQUARED
        )
        row = _builder([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0]], config).build_row(0)

        assert np.allclose(row.weights, [1.0, 1.0, 0.25])

    def test_coincident_points_finite(self):
        """Test coincident features get weight 1 rather than infinity."""
        config = HotspotConfig(
            search_distance=1.0, spatial_concept=SpatialConcept.INVERSE_DISTANCE
        )
        row = _builder([[0.0, 0.0], [0.0, 0.0], [0.5, 0.0]], config).build_row(0)

        assert np.all(np.isfinite(row.weights))
        assert np.allclose(row.weights, [1.0, 1.0, 2.0])

    def test_zone_of_indifference(self):
        """Test full weight inside the threshold, linear decay beyond it."""
        coords = [[0.0, 0.0], [1.0, 0.0], [1.5, 0.0], [2.5, 0.0]]
        config = HotspotConfig(
            search_distance=1.0,
            spatial_concept=SpatialConcept.ZONE_OF_INDIFFERENCE,
        )
        row = _builder(coords, config).build_row(0)

        # width defaults to the threshold: d=1.5 -> 0.5, d=2.5 is outside 1 + 1
        assert row.neighbor_indices.tolist() == [0, 1, 2]
        assert np.allclose(row.weights, [1.0, 1.0, 0.5])

    def test_zone_of_indifference_width(self):
        """Test a custom transition width."""
        coords = [[0.0, 0.0], [2.0, 0.0]]
        config = HotspotConfig(
            search_distance=1.0,
            transition_width=4.0,
            spatial_concept=SpatialConcept.ZONE_OF_INDIFFERENCE,
        )
        row = _builder(coords, config).build_row(0)

        assert np.allclose(row.weights, [1.0, 0.75])

    def test_dispatch_is_exhaustive(self):
        """Test every distance-based concept has a weight function."""
        distance_based = set(SpatialConcept) - {SpatialConcept.POLYGON_CONTIGUITY}

        assert set(WEIGHT_FUNCTIONS) == distance_based


class TestRowStandardization:
    """Tests for row standardization."""

    def test_rows_sum_to_one(self):
        """Test every standardized row sums to 1."""
        rng = np.random.default_rng(42)
        coords = rng.uniform(0, 100, size=(200, 2))

        for concept in WEIGHT_FUNCTIONS:
            config = HotspotConfig(
                search_distance=12.0,
                spatial_concept=concept,
                standardization=StandardizationMethod.ROW_STANDARDIZED,
            )
            rows = _builder(coords, config).build_all()
            sums = np.array([row.weight_sum for row in rows])

            assert np.allclose(sums, 1.0, atol=1e-9)

    def test_zero_sum_row(self):
        """Test a zero-sum row collapses to the subject."""
        out = row_standardize(np.array([0.0, 0.0, 0.0]), self_pos=1)

        assert out.tolist() == [0.0, 1.0, 0.0]


class TestThreshold:
    """Tests for search distance resolution."""

    COORDS = np.array([[0.0, 0.0], [1.0, 0.0], [3.0, 0.0]])

    def test_explicit(self):
        """Test a positive search distance is used as is."""
        config = HotspotConfig(search_distance=7.5)

        assert resolve_distance_threshold(SpatialIndex(self.COORDS), config) == 7.5

    @pytest.mark.parametrize("value", [None, float("nan"), 0.0, -3.0, "auto"])
    def test_auto_average(self, value):
        """Test unset/non-positive distance falls back to mean NN distance."""
        config = HotspotConfig(search_distance=value)

        threshold = resolve_distance_threshold(SpatialIndex(self.COORDS), config)

        assert np.isclose(threshold, 4.0 / 3.0)

    def test_auto_max(self):
        """Test the max nearest-neighbor estimator."""
        config = HotspotConfig(threshold_estimator=ThresholdEstimator.MAX_NEAREST_NEIGHBOR)

        assert np.isclose(resolve_distance_threshold(SpatialIndex(self.COORDS), config), 2.0)

    def test_callable_estimator(self):
        """Test a callable estimator overrides the configured one."""
        config = HotspotConfig()
        threshold = resolve_distance_threshold(
            SpatialIndex(self.COORDS), config, estimator=lambda nn: float(np.median(nn)) * 2
        )

        assert np.isclose(threshold, 2.0)

    def test_builder_resolves_once(self):
        """Test the builder exposes the resolved threshold."""
        builder = _builder(self.COORDS, HotspotConfig())

        assert np.isclose(builder.threshold, 4.0 / 3.0)
        # x=3 is 2 away from its nearest neighbor, beyond 4/3
        assert builder.build_row(2).starved


class TestPolygonContiguity:
    """Tests for adjacency-based rows."""

    ADJ = {"a": ["b"], "b": ["a", "c"], "c": ["b"], "d": []}

    def test_rows_follow_adjacency(self):
        """Test neighbors come from the adjacency mapping, not distance."""
        coords = [[0.0, 0.0], [100.0, 0.0], [200.0, 0.0], [1.0, 0.0]]
        config = HotspotConfig(spatial_concept=SpatialConcept.POLYGON_CONTIGUITY)
        builder = _builder(coords, config, ids=list("abcd"), adjacency=self.ADJ)

        assert builder.build_row(1).neighbor_ids == ("a", "b", "c")
        assert builder.build_row(3).starved
        assert np.isnan(builder.threshold)

    def test_missing_adjacency(self):
        """Test contiguity without adjacency is a configuration error."""
        config = HotspotConfig(spatial_concept=SpatialConcept.POLYGON_CONTIGUITY)

        with pytest.raises(ConfigurationError):
            _builder(LINE, config)

    def test_unknown_neighbor(self):
        """Test adjacency pointing at unknown ids is rejected."""
        config = HotspotConfig(spatial_concept=SpatialConcept.POLYGON_CONTIGUITY)

        with pytest.raises(ConfigurationError):
            _builder(LINE[:2], config, ids=["a", "b"], adjacency={"a": ["zzz"]})


class TestToSparse:
    """Tests for sparse export."""

    def test_matches_rows(self):
        """Test the sparse matrix reproduces row weights."""
        rows = _builder(LINE, HotspotConfig(search_distance=1.5)).build_all()

        W = to_sparse(rows)

        assert sparse.issparse(W)
        assert W.shape == (5, 5)
        assert np.allclose(W.diagonal(), 1.0)
        assert W[0, 1] == 1.0
        assert W[0, 2] == 0.0
        assert np.allclose(np.asarray(W.sum(axis=1)).ravel(), [2, 3, 3, 3, 2])
