"""Tests for FDR correction."""

import numpy as np

from hotspotpy.core.statistics import ClusterClass, GiResult, classify_z, two_tailed_pvalue
from hotspotpy.stats.fdr import apply_fdr_correction, benjamini_hochberg, fdr_cluster_class


def _result(i, z):
    return GiResult(
        id=i,
        observed=0.0,
        expected=0.0,
        z_score=z,
        p_value=two_tailed_pvalue(z),
        cluster_class=classify_z(z),
        n_neighbors=3,
    )


class TestBenjaminiHochberg:
    """Tests for benjamini_hochberg."""

    def test_known_values(self):
        """Test a hand-computed adjustment."""
        adjusted = benjamini_hochberg([0.01, 0.04, 0.03])

        assert np.allclose(adjusted, [0.03, 0.04, 0.04])

    def test_not_below_raw(self):
        """Test adjusted p-values are never smaller than raw ones."""
        pvalues = np.array([0.01, 0.04, 0.05, 0.2, 0.001])

        assert np.all(benjamini_hochberg(pvalues) >= pvalues)

    def test_monotonicity(self):
        """Test adjusted p-values keep the order of raw p-values."""
        rng = np.random.default_rng(42)
        pvalues = rng.uniform(size=50)
        adjusted = benjamini_hochberg(pvalues)

        order = np.argsort(pvalues)
        assert np.all(np.diff(adjusted[order]) >= 0)
        assert np.all(adjusted <= 1.0)

    def test_nan_ignored(self):
        """Test NaN p-values stay NaN and do not count toward m."""
        adjusted = benjamini_hochberg([0.01, np.nan, 0.02])

        assert np.isnan(adjusted[1])
        assert np.allclose(adjusted[[0, 2]], [0.02, 0.02])

    def test_all_nan(self):
        """Test an all-NaN input."""
        assert np.all(np.isnan(benjamini_hochberg([np.nan, np.nan])))


class TestFdrReclassification:
    """Tests for apply_fdr_correction."""

    def test_demotes_marginal(self):
        """Test a marginal hot spot among many null features loses significance."""
        results = [_result(0, 2.0)] + [_result(i, 0.1) for i in range(1, 20)]
        assert results[0].cluster_class is ClusterClass.HOT_SPOT_95

        corrected = apply_fdr_correction(results)

        assert corrected[0].cluster_class is ClusterClass.NOT_SIGNIFICANT
        # Reported statistics are untouched
        assert corrected[0].z_score == results[0].z_score
        assert corrected[0].p_value == results[0].p_value

    def test_keeps_strong(self):
        """Test a very strong signal stays significant."""
        results = [_result(0, -6.0)] + [_result(i, 0.1) for i in range(1, 20)]

        corrected = apply_fdr_correction(results)

        assert corrected[0].cluster_class is ClusterClass.COLD_SPOT_99

    def test_special_classes_unchanged(self):
        """Test starved and degenerate results pass through."""
        starved = GiResult(0, 1.0, 1.0, np.nan, np.nan, ClusterClass.NOT_ENOUGH_NEIGHBORS)
        degenerate = GiResult(1, 1.0, 1.0, np.nan, np.nan, ClusterClass.NOT_SIGNIFICANT)

        corrected = apply_fdr_correction([starved, degenerate, _result(2, 3.0)])

        assert corrected[0] is starved
        assert corrected[1] is degenerate
        assert corrected[2].cluster_class is ClusterClass.HOT_SPOT_99

    def test_levels(self):
        """Test adjusted p-value cut points."""
        assert fdr_cluster_class(1.0, 0.01) is ClusterClass.HOT_SPOT_99
        assert fdr_cluster_class(-1.0, 0.04) is ClusterClass.COLD_SPOT_95
        assert fdr_cluster_class(1.0, 0.1) is ClusterClass.HOT_SPOT_90
        assert fdr_cluster_class(1.0, 0.11) is ClusterClass.NOT_SIGNIFICANT
