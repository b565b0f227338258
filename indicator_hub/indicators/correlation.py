"""Pairwise Pearson correlation across irregularly sampled indicator series.

Two series "sampled daily" rarely print on identical timestamps, so points
are paired by exact timestamp first and then by nearest neighbour within a
tolerance window before any statistics are computed.
"""

import bisect
from dataclasses import dataclass
from datetime import datetime, timezone

import numpy as np
from scipy import stats

from indicator_hub.models import CorrelationMatrix, CorrelationResult, MetricDataPoint


ALIGNMENT_TOLERANCE_MS = 24 * 60 * 60 * 1000  # 1 day
MIN_ALIGNED_POINTS = 3
MIN_RAW_POINTS = 5


@dataclass(frozen=True)
class StrengthBanding:
    """Maps |r| to a strength label. Thresholds are checked high to low."""

    name: str
    thresholds: tuple[tuple[float, str], ...]
    floor_label: str

    @property
    def order(self) -> list[str]:
        """Labels from weakest to strongest."""
        return [self.floor_label] + [label for _, label in reversed(self.thresholds)]

    def classify(self, correlation: float) -> str:
        magnitude = abs(correlation)
        for threshold, label in self.thresholds:
            if magnitude >= threshold:
                return label
        return self.floor_label

    def rank(self, label: str) -> int:
        """Position of ``label`` on this banding's scale, -1 if unknown.

        Accepts either hyphen or underscore spelling.
        """
        normalized = label.replace("_", "-")
        for i, own in enumerate(self.order):
            if own.replace("_", "-") == normalized:
                return i
        return -1


# Matrix and pair reports
STANDARD_BANDING = StrengthBanding(
    name="standard",
    thresholds=((0.9, "very-strong"), (0.7, "strong"), (0.5, "moderate"), (0.3, "weak")),
    floor_label="very-weak",
)

# Minimum-strength query filter on the pair endpoint
COARSE_BANDING = StrengthBanding(
    name="coarse",
    thresholds=((0.8, "very_strong"), (0.6, "strong"), (0.4, "moderate"), (0.2, "weak")),
    floor_label="very_weak",
)

BANDINGS = {b.name: b for b in (STANDARD_BANDING, COARSE_BANDING)}


def normalize_series(points: list[MetricDataPoint]) -> list[MetricDataPoint]:
    """Sort by time and drop repeated timestamps, keeping the first seen."""
    ordered = sorted(points, key=lambda p: p.timestamp_epoch_ms)
    result: list[MetricDataPoint] = []
    for point in ordered:
        if result and result[-1].timestamp_epoch_ms == point.timestamp_epoch_ms:
            continue
        result.append(point)
    return result


def align_series(
    series_a: list[MetricDataPoint],
    series_b: list[MetricDataPoint],
    tolerance_ms: int = ALIGNMENT_TOLERANCE_MS,
) -> list[tuple[int, float, float]]:
    """
    Pair points of two series by timestamp.

    Exact matches are taken first. The remaining points are paired closest
    gap first, over every A/B combination within ``tolerance_ms``; ties are
    broken on the earlier then the later timestamp, so swapping the
    arguments yields the same pairs. Each point is used at most once, so the
    result never exceeds ``min(len(a), len(b))``.

    Returns:
        (timestamp_ms, value_a, value_b) tuples sorted by A's timestamp
    """
    a = normalize_series(series_a)
    b = normalize_series(series_b)
    if not a or not b:
        return []

    b_times = [p.timestamp_epoch_ms for p in b]
    b_index = {t: j for j, t in enumerate(b_times)}
    used_a = [False] * len(a)
    used_b = [False] * len(b)
    pairs: list[tuple[int, float, float]] = []

    for i, point in enumerate(a):
        j = b_index.get(point.timestamp_epoch_ms)
        if j is not None:
            used_a[i] = used_b[j] = True
            pairs.append((point.timestamp_epoch_ms, point.value, b[j].value))

    candidates: list[tuple[int, int, int, int, int]] = []
    for i, point in enumerate(a):
        if used_a[i]:
            continue
        t = point.timestamp_epoch_ms
        lo = bisect.bisect_left(b_times, t - tolerance_ms)
        hi = bisect.bisect_right(b_times, t + tolerance_ms)
        for j in range(lo, hi):
            if not used_b[j]:
                tb = b_times[j]
                candidates.append((abs(tb - t), min(t, tb), max(t, tb), i, j))

    candidates.sort(key=lambda c: c[:3])
    for _, _, _, i, j in candidates:
        if used_a[i] or used_b[j]:
            continue
        used_a[i] = used_b[j] = True
        pairs.append((a[i].timestamp_epoch_ms, a[i].value, b[j].value))

    pairs.sort(key=lambda p: p[0])
    return pairs


def pearson_correlation(x, y) -> float:
    """
    Pearson correlation coefficient.

    Returns 0.0 for empty or mismatched input and when either side has zero
    variance. Never returns NaN.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.size == 0 or x.shape != y.shape:
        return 0.0
    if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y))):
        return 0.0

    dx = x - x.mean()
    dy = y - y.mean()
    denominator = np.sqrt(np.sum(dx * dx) * np.sum(dy * dy))
    if denominator == 0:
        return 0.0
    return float(np.clip(np.sum(dx * dy) / denominator, -1.0, 1.0))


def correlation_p_value(correlation: float, sample_size: int) -> float | None:
    """Two-sided p-value for H0: r = 0 (Student t with n-2 dof)."""
    if sample_size < MIN_ALIGNED_POINTS:
        return None
    if abs(correlation) >= 1.0:
        return 0.0
    dof = sample_size - 2
    t = correlation * np.sqrt(dof / (1.0 - correlation**2))
    return float(2 * stats.t.sf(abs(t), dof))


def calculate_correlation(
    series_a: list[MetricDataPoint], series_b: list[MetricDataPoint]
) -> tuple[float, int]:
    """Correlation and aligned sample size; (0.0, 0) below 3 aligned points."""
    aligned = align_series(series_a, series_b)
    if len(aligned) < MIN_ALIGNED_POINTS:
        return 0.0, 0
    values_a = [p[1] for p in aligned]
    values_b = [p[2] for p in aligned]
    return pearson_correlation(values_a, values_b), len(aligned)


def classify_strength(correlation: float, banding: StrengthBanding = STANDARD_BANDING) -> str:
    return banding.classify(correlation)


def classify_direction(correlation: float) -> str:
    return "positive" if correlation >= 0 else "negative"


def correlate_pair(
    name_a: str,
    series_a: list[MetricDataPoint],
    name_b: str,
    series_b: list[MetricDataPoint],
    banding: StrengthBanding = STANDARD_BANDING,
) -> CorrelationResult | None:
    """Full result for one pair, or None with too few aligned points."""
    correlation, sample_size = calculate_correlation(series_a, series_b)
    if sample_size < MIN_ALIGNED_POINTS:
        return None
    return CorrelationResult(
        metric_a=name_a,
        metric_b=name_b,
        correlation=correlation,
        sample_size=sample_size,
        strength=banding.classify(correlation),
        direction=classify_direction(correlation),
        p_value=correlation_p_value(correlation, sample_size),
    )


def build_correlation_matrix(
    metric_data: dict[str, list[MetricDataPoint]],
    banding: StrengthBanding = STANDARD_BANDING,
) -> CorrelationMatrix:
    """
    Correlate every pair of metrics.

    Metrics are ordered by name. The diagonal is 1.0 and the matrix is
    symmetric. Each unordered pair with at least 3 aligned points appears
    once in ``correlations``, strongest |r| first.
    """
    metrics = sorted(metric_data)
    n = len(metrics)
    matrix = [[0.0] * n for _ in range(n)]
    correlations: list[CorrelationResult] = []

    for i in range(n):
        matrix[i][i] = 1.0
        for j in range(i + 1, n):
            a, b = metrics[i], metrics[j]
            result = correlate_pair(a, metric_data[a] or [], b, metric_data[b] or [], banding)
            if result is None:
                continue
            matrix[i][j] = matrix[j][i] = result.correlation
            correlations.append(result)

    correlations.sort(key=lambda c: abs(c.correlation), reverse=True)
    return CorrelationMatrix(
        metrics=metrics,
        matrix=matrix,
        correlations=correlations,
        timestamp=datetime.now(timezone.utc),
    )


def filter_by_strength(
    correlations: list[CorrelationResult],
    min_strength: str,
    banding: StrengthBanding = STANDARD_BANDING,
) -> list[CorrelationResult]:
    """Keep pairs at or above ``min_strength`` on the banding's scale.

    Strength is re-derived from each coefficient under ``banding``, so the
    same pairs can be filtered under either policy. An unrecognised label
    ranks below every band and keeps all pairs.
    """
    threshold = banding.rank(min_strength)
    return [c for c in correlations if banding.rank(banding.classify(c.correlation)) >= threshold]


def prepare_metric_data(
    raw: dict[str, list[MetricDataPoint]], min_points: int = MIN_RAW_POINTS
) -> dict[str, list[MetricDataPoint]]:
    """Normalize each series and drop those with fewer than ``min_points``."""
    prepared = {}
    for name, points in raw.items():
        series = normalize_series(points or [])
        if len(series) >= min_points:
            prepared[name] = series
    return prepared


def describe_correlation(result: CorrelationResult) -> str:
    """e.g. 'strong move together (0.850)'."""
    movement = "move together" if result.direction == "positive" else "move opposite"
    strength = result.strength.replace("-", " ").replace("_", " ")
    return f"{strength} {movement} ({result.correlation:.3f})"
