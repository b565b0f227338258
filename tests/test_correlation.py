"""Tests for series alignment and the correlation engine."""

import math

import pytest

from conftest import daily_points
from indicator_hub.indicators.correlation import (
    ALIGNMENT_TOLERANCE_MS,
    COARSE_BANDING,
    STANDARD_BANDING,
    align_series,
    build_correlation_matrix,
    calculate_correlation,
    classify_direction,
    correlate_pair,
    correlation_p_value,
    describe_correlation,
    filter_by_strength,
    normalize_series,
    pearson_correlation,
    prepare_metric_data,
)
from indicator_hub.models import MetricDataPoint


HOUR_MS = 60 * 60 * 1000


class TestPearson:
    """Tests for the raw coefficient."""

    def test_perfect_positive(self):
        assert pearson_correlation([1, 2, 3, 4], [2, 4, 6, 8]) == pytest.approx(1.0)

    def test_perfect_negative(self):
        assert pearson_correlation([1, 2, 3, 4], [8, 6, 4, 2]) == pytest.approx(-1.0)

    def test_constant_series_is_zero(self):
        assert pearson_correlation([5, 5, 5, 5], [1, 2, 3, 4]) == 0.0

    def test_empty_and_mismatched(self):
        assert pearson_correlation([], []) == 0.0
        assert pearson_correlation([1, 2], [1, 2, 3]) == 0.0

    def test_never_nan(self):
        assert not math.isnan(pearson_correlation([1.0, float("nan"), 3.0], [1.0, 2.0, 3.0]))


class TestAlignment:
    """Tests for timestamp alignment."""

    def test_exact_matches(self):
        a = daily_points([1, 2, 3])
        b = daily_points([4, 5, 6])
        assert [(va, vb) for _, va, vb in align_series(a, b)] == [(1, 4), (2, 5), (3, 6)]

    def test_nearest_within_tolerance(self):
        a = daily_points([1, 2, 3])
        b = [MetricDataPoint(p.timestamp_epoch_ms + 6 * HOUR_MS, p.value * 10) for p in a]
        aligned = align_series(a, b)
        assert [(va, vb) for _, va, vb in aligned] == [(1, 10), (2, 20), (3, 30)]

    def test_outside_tolerance_dropped(self):
        a = [MetricDataPoint(0, 1.0)]
        b = [MetricDataPoint(ALIGNMENT_TOLERANCE_MS + 1, 2.0)]
        assert align_series(a, b) == []

    def test_length_bounded_by_shorter_series(self):
        a = daily_points(range(10))
        # one B point sits between every pair of A points
        b = [MetricDataPoint(p.timestamp_epoch_ms + 12 * HOUR_MS, 1.0) for p in a[:4]]
        aligned = align_series(a, b)
        assert len(aligned) <= min(len(a), len(b))

    def test_duplicates_and_order_normalized(self):
        points = [MetricDataPoint(2, 2.0), MetricDataPoint(1, 1.0), MetricDataPoint(2, 9.0)]
        assert normalize_series(points) == [MetricDataPoint(1, 1.0), MetricDataPoint(2, 2.0)]


class TestCorrelation:
    """Tests for pairwise results and classification."""

    def test_symmetric(self):
        a = daily_points([1, 3, 2, 5, 4, 6])
        b = daily_points([2, 1, 4, 3, 6, 5])
        r_ab, n_ab = calculate_correlation(a, b)
        r_ba, n_ba = calculate_correlation(b, a)
        assert r_ab == pytest.approx(r_ba)
        assert n_ab == n_ba == 6

    def test_symmetric_with_off_grid_timestamps(self):
        a = [MetricDataPoint(h * HOUR_MS, v) for h, v in [(0, 1), (24, 2), (48, 3), (100, 10), (130, 0)]]
        b = [MetricDataPoint(h * HOUR_MS, v) for h, v in [(0, 1), (24, 3), (48, 2), (120, 9)]]
        r_ab, n_ab = calculate_correlation(a, b)
        r_ba, n_ba = calculate_correlation(b, a)
        assert n_ab == n_ba == 4
        assert r_ab == pytest.approx(r_ba)

    def test_tolerance_pairs_closest_gap_first(self):
        # B at 120h is 20h from A at 100h but only 10h from A at 130h
        a = [MetricDataPoint(100 * HOUR_MS, 10.0), MetricDataPoint(130 * HOUR_MS, 0.0)]
        b = [MetricDataPoint(120 * HOUR_MS, 9.0)]
        assert align_series(a, b) == [(130 * HOUR_MS, 0.0, 9.0)]

    def test_self_correlation_is_one(self):
        a = daily_points([1, 3, 2, 5, 4, 6])
        assert calculate_correlation(a, a)[0] == pytest.approx(1.0)

    def test_fewer_than_three_aligned_points(self):
        assert calculate_correlation(daily_points([1, 2]), daily_points([3, 4])) == (0.0, 0)
        assert correlate_pair("A", daily_points([1, 2]), "B", daily_points([3, 4])) is None

    @pytest.mark.parametrize("r,standard,coarse", [
        (0.95, "very-strong", "very_strong"),
        (0.85, "strong", "very_strong"),
        (-0.65, "moderate", "strong"),
        (0.45, "weak", "moderate"),
        (0.25, "very-weak", "weak"),
        (0.1, "very-weak", "very_weak"),
    ])
    def test_strength_bands(self, r, standard, coarse):
        assert STANDARD_BANDING.classify(r) == standard
        assert COARSE_BANDING.classify(r) == coarse

    def test_direction(self):
        assert classify_direction(0.0) == "positive"
        assert classify_direction(-0.2) == "negative"

    def test_p_value(self):
        assert correlation_p_value(0.5, 2) is None
        assert correlation_p_value(1.0, 10) == 0.0
        assert 0.0 < correlation_p_value(0.3, 10) < 1.0

    def test_describe(self):
        result = correlate_pair("A", daily_points([1, 2, 3, 4]), "B", daily_points([2, 4, 6, 8]))
        assert describe_correlation(result) == "very strong move together (1.000)"


class TestMatrix:
    """Tests for the correlation matrix."""

    @pytest.fixture
    def metric_data(self):
        return {
            "Gold Price": daily_points([10, 12, 11, 15, 14, 16]),
            "S&P 500": daily_points([100, 101, 103, 102, 105, 107]),
            "VIX Index": daily_points([30, 28, 27, 29, 22, 20]),
        }

    def test_diagonal_and_symmetry(self, metric_data):
        result = build_correlation_matrix(metric_data)
        n = len(result.metrics)
        assert result.metrics == sorted(metric_data)
        for i in range(n):
            assert result.matrix[i][i] == 1.0
            for j in range(n):
                assert result.matrix[i][j] == result.matrix[j][i]

    def test_pairs_sorted_by_magnitude(self, metric_data):
        result = build_correlation_matrix(metric_data)
        magnitudes = [abs(c.correlation) for c in result.correlations]
        assert len(result.correlations) == 3
        assert magnitudes == sorted(magnitudes, reverse=True)

    def test_short_pair_left_at_zero(self, metric_data):
        metric_data["Fed Funds Rate"] = daily_points([5.25, 5.25])
        result = build_correlation_matrix(metric_data)
        i = result.metrics.index("Fed Funds Rate")
        assert all(result.matrix[i][j] == 0.0 for j in range(len(result.metrics)) if j != i)

    def test_filter_by_strength(self, metric_data):
        correlations = build_correlation_matrix(metric_data).correlations
        strong = filter_by_strength(correlations, "strong")
        assert all(abs(c.correlation) >= 0.7 for c in strong)
        assert filter_by_strength(correlations, "very-weak") == correlations

    def test_filter_accepts_either_spelling(self, metric_data):
        correlations = build_correlation_matrix(metric_data).correlations
        assert filter_by_strength(correlations, "very_strong", COARSE_BANDING) == filter_by_strength(
            correlations, "very-strong", COARSE_BANDING
        )

    def test_filter_unknown_label_keeps_all(self, metric_data):
        correlations = build_correlation_matrix(metric_data).correlations
        assert filter_by_strength(correlations, "enormous") == correlations

    def test_prepare_drops_short_series(self):
        prepared = prepare_metric_data({
            "long": daily_points([1, 2, 3, 4, 5]),
            "short": daily_points([1, 2, 3, 4]),
            "empty": [],
        })
        assert list(prepared) == ["long"]
