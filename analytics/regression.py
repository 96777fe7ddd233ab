"""
Regression utilities for temperature/performance curve fitting.

- Ordinary and weighted least squares (closed form)
- Robust linear regression: iteratively reweighted least squares with Huber
  weights, resistant to single outlying systems
- LOESS: locally weighted linear regression with a tricube kernel and
  optional per-point confidence weights

Degenerate inputs never raise. Too few points give ``None``; a zero variance
denominator falls back to a flat line or the local mean.
"""

import math
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from . import logger
from .records import DataPoint, RegressionResult

HUBER_SCALE = 1.5
MIN_LINEAR_POINTS = 2
MIN_LOESS_POINTS = 3

# Relative threshold below which the local x spread counts as collinear.
LOESS_DEGENERACY = 1e-12

Smoother = Callable[[float], float]
CurveModel = Union[RegressionResult, Smoother]


def _arrays(points: Sequence[DataPoint]) -> Tuple[np.ndarray, np.ndarray]:
    x = np.array([p.x for p in points], dtype=float)
    y = np.array([p.y for p in points], dtype=float)
    return x, y


def _line_fit(x: np.ndarray, y: np.ndarray, w: np.ndarray) -> Tuple[float, float]:
    sum_w = w.sum()
    mean_x = (w * x).sum() / sum_w
    mean_y = (w * y).sum() / sum_w
    denominator = (w * (x - mean_x) ** 2).sum()
    numerator = (w * (x - mean_x) * (y - mean_y)).sum()

    # Zero spread in x: no slope can be estimated, return the flat mean line.
    slope = numerator / denominator if denominator != 0 else 0.0
    intercept = mean_y - slope * mean_x
    return float(slope), float(intercept)


def ordinary_least_squares(points: Sequence[DataPoint]) -> Tuple[float, float]:
    """Return ``(slope, intercept)`` of the OLS line; slope 0 for constant x."""
    x, y = _arrays(points)
    return _line_fit(x, y, np.ones_like(x))


def weighted_least_squares(
    points: Sequence[DataPoint], weights: Sequence[float]
) -> Tuple[float, float]:
    """Return ``(slope, intercept)`` of the weighted least squares line.

    A zero total weight carries no information and falls back to OLS.
    """
    x, y = _arrays(points)
    w = np.asarray(weights, dtype=float)
    if w.sum() <= 0:
        return _line_fit(x, y, np.ones_like(x))
    return _line_fit(x, y, w)


def huber_weights(abs_residuals: np.ndarray, threshold: float) -> np.ndarray:
    """Weight 1 inside the threshold, ``threshold / |r|`` outside it."""
    weights = np.ones_like(abs_residuals)
    outside = abs_residuals > threshold
    weights[outside] = threshold / abs_residuals[outside]
    return weights


def robust_linear_regression(
    points: Sequence[DataPoint],
    max_iterations: int = 10,
    tolerance: float = 1e-4,
) -> Optional[RegressionResult]:
    """Fit a line with Huber-weighted IRLS.

    Starts from OLS, then repeatedly reweights points whose residual exceeds
    1.5 times the median absolute residual and refits, until the coefficient
    change drops below ``tolerance`` or ``max_iterations`` is reached.

    Args:
        points: ``DataPoint`` samples (x = temperature, y = COP, typically).
        max_iterations: Upper bound on reweighting passes.
        tolerance: Convergence threshold on ``|d slope| + |d intercept|``.

    Returns:
        The fitted line with R² and mean absolute error, or ``None`` when
        fewer than two points are given.
    """
    if len(points) < MIN_LINEAR_POINTS:
        return None

    x, y = _arrays(points)
    slope, intercept = _line_fit(x, y, np.ones_like(x))

    iterations = 0
    for iterations in range(1, max_iterations + 1):
        abs_residuals = np.abs(y - (slope * x + intercept))
        threshold = HUBER_SCALE * float(np.median(abs_residuals))
        if threshold == 0:
            # Most points lie exactly on the line; reweighting would only
            # discard the rest.
            break

        weights = huber_weights(abs_residuals, threshold)
        previous_slope, previous_intercept = slope, intercept
        slope, intercept = _line_fit(x, y, weights)

        change = abs(slope - previous_slope) + abs(intercept - previous_intercept)
        if change < tolerance:
            break

    residuals = y - (slope * x + intercept)
    ss_res = float((residuals ** 2).sum())
    ss_tot = float(((y - y.mean()) ** 2).sum())
    r_squared = 1 - ss_res / ss_tot if ss_tot > 0 else 0.0

    logger.debug("IRLS finished after %s iterations on %s points", iterations, len(points))
    return RegressionResult(
        slope=slope,
        intercept=intercept,
        r_squared=r_squared,
        sample_size=len(points),
        mean_absolute_error=float(np.abs(residuals).mean()),
    )


def tricube(u: np.ndarray) -> np.ndarray:
    """Tricube kernel ``(1 - |u|^3)^3``, zero for ``|u| >= 1``."""
    clipped = np.clip(np.abs(u), 0.0, 1.0)
    return (1 - clipped ** 3) ** 3


class LoessSmoother:
    """Locally weighted linear regression evaluated on demand.

    Each query selects the ``k = max(3, floor(bandwidth * n))`` nearest
    points, weights them by the tricube of their distance relative to the
    farthest selected neighbour (times the optional per-point weight) and
    fits a weighted line through them.
    """

    def __init__(self, x: np.ndarray, y: np.ndarray, weights: np.ndarray, bandwidth: float):
        self.x = x
        self.y = y
        self.weights = weights
        self.bandwidth = bandwidth
        self.neighbours = min(len(x), max(MIN_LOESS_POINTS, math.floor(bandwidth * len(x))))

    @property
    def sample_size(self) -> int:
        return len(self.x)

    def __call__(self, x0: float) -> float:
        distances = np.abs(self.x - x0)
        nearest = np.argsort(distances, kind="stable")[: self.neighbours]
        local_x = self.x[nearest]
        local_y = self.y[nearest]
        local_d = distances[nearest]

        max_distance = local_d.max()
        if max_distance > 0:
            kernel = tricube(local_d / max_distance)
        else:
            kernel = np.ones_like(local_d)
        w = kernel * self.weights[nearest]

        sum_w = w.sum()
        if sum_w <= 0:
            return float(local_y.mean())

        mean_x = (w * local_x).sum() / sum_w
        mean_y = (w * local_y).sum() / sum_w
        sxx = (w * (local_x - mean_x) ** 2).sum()
        if sxx <= LOESS_DEGENERACY * max(1.0, (w * local_x ** 2).sum()):
            return float(mean_y)

        slope = (w * (local_x - mean_x) * (local_y - mean_y)).sum() / sxx
        return float(mean_y + slope * (x0 - mean_x))


def loess_smooth_weighted(
    points: Sequence[DataPoint],
    weights: Sequence[float],
    bandwidth: float = 0.8,
) -> Optional[LoessSmoother]:
    """LOESS smoother where each point carries an external confidence weight.

    Non-finite or negative weights count as zero. Returns ``None`` for fewer
    than three points or when ``weights`` does not match ``points``.
    """
    if len(points) < MIN_LOESS_POINTS:
        return None
    if len(weights) != len(points):
        logger.warning(
            "LOESS weights length %s does not match %s points", len(weights), len(points)
        )
        return None

    x, y = _arrays(points)
    w = np.asarray(weights, dtype=float)
    w = np.where(np.isfinite(w) & (w > 0), w, 0.0)
    return LoessSmoother(x, y, w, bandwidth)


def loess_smooth(points: Sequence[DataPoint], bandwidth: float = 0.8) -> Optional[LoessSmoother]:
    """LOESS smoother with uniform point weights."""
    return loess_smooth_weighted(points, [1.0] * len(points), bandwidth)


def generate_curve_points(
    model: CurveModel, x_min: float, x_max: float, num_points: int = 100
) -> List[DataPoint]:
    """Sample a fitted line or smoother at evenly spaced x values."""
    if num_points <= 0:
        return []
    predict = model.predict if isinstance(model, RegressionResult) else model
    if num_points == 1:
        return [DataPoint(x=x_min, y=predict(x_min))]

    step = (x_max - x_min) / (num_points - 1)
    curve: List[DataPoint] = []
    for i in range(num_points):
        x = x_min + i * step
        curve.append(DataPoint(x=x, y=predict(x)))
    return curve


def _is_valid_cop_point(point: DataPoint) -> bool:
    return math.isfinite(point.x) and math.isfinite(point.y) and point.y > 0


def compute_az_temperature_regression(
    points: Iterable[DataPoint],
    max_iterations: int = 10,
    tolerance: float = 1e-4,
) -> Optional[RegressionResult]:
    """Robust COP-vs-temperature line over physically valid points only."""
    valid = [p for p in points if _is_valid_cop_point(p)]
    return robust_linear_regression(valid, max_iterations=max_iterations, tolerance=tolerance)


def compute_az_temperature_loess(
    points: Sequence[DataPoint],
    bandwidth: float = 0.8,
    weights: Sequence[float] | None = None,
) -> Optional[LoessSmoother]:
    """LOESS counterpart of :func:`compute_az_temperature_regression`."""
    if weights is None:
        weights = [1.0] * len(points)
    if len(weights) != len(points):
        logger.warning(
            "LOESS weights length %s does not match %s points", len(weights), len(points)
        )
        return None

    kept = [(p, w) for p, w in zip(points, weights) if _is_valid_cop_point(p)]
    return loess_smooth_weighted([p for p, _ in kept], [w for _, w in kept], bandwidth)
