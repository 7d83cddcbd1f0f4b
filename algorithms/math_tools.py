import math
from typing import Iterable, Sequence
import numpy as np


class MathTools:
    """Provides essential mathematical utilities for training analysis."""

    EPLEY_DIVISOR: float = 30.0

    @staticmethod
    def clamp(value: float, min_value: float, max_value: float) -> float:
        """Clamp ``value`` to the inclusive range [min_value, max_value]."""
        if min_value > max_value:
            raise ValueError("min_value must not exceed max_value")
        return max(min_value, min(value, max_value))

    @staticmethod
    def round_half_up(value: float) -> int:
        """Round to the nearest integer with halves rounded up."""
        return int(math.floor(value + 0.5))

    @classmethod
    def epley_1rm(cls, weight: float, reps: int) -> float:
        """Return the estimated one-rep max using the Epley formula."""
        if reps < 0:
            raise ValueError("reps must be non-negative")
        if reps <= 1:
            return float(weight)
        return weight * (1 + reps / cls.EPLEY_DIVISOR)

    @staticmethod
    def volume(sets: Iterable[tuple[int, float]]) -> float:
        """Compute training volume as the sum of reps times weight."""
        vol = 0.0
        for reps, weight in sets:
            vol += reps * weight
        return vol

    @staticmethod
    def mean(values: Iterable[float], default: float = 0.0) -> float:
        """Return the arithmetic mean or ``default`` for no values."""
        data = list(values)
        if not data:
            return default
        return float(sum(data) / len(data))

    @staticmethod
    def coefficient_of_variation(values: Iterable[float]) -> float:
        """Return the coefficient of variation for ``values``."""
        data = list(values)
        if len(data) < 2:
            return 0.0
        arr = np.array(data, dtype=float)
        mean = float(np.mean(arr))
        if mean == 0:
            return 0.0
        std = float(np.std(arr))
        return std / mean

    @staticmethod
    def linear_regression(
        x: Sequence[float], y: Sequence[float]
    ) -> tuple[float, float, float]:
        """Return ``(slope, intercept, r2)`` of an ordinary least squares fit.

        Fewer than two points, or no spread in ``x``, give a flat line. A
        constant ``y`` has nothing to explain, so its R² is zero.
        """
        if len(x) != len(y) or len(x) < 2:
            return 0.0, 0.0, 0.0
        xs = np.array(x, dtype=float)
        ys = np.array(y, dtype=float)
        x_mean = float(np.mean(xs))
        y_mean = float(np.mean(ys))
        dx = xs - x_mean
        dy = ys - y_mean
        denominator = float(np.sum(dx * dx))
        slope = float(np.sum(dx * dy)) / denominator if denominator != 0 else 0.0
        intercept = y_mean - slope * x_mean
        predictions = slope * xs + intercept
        ss_res = float(np.sum((ys - predictions) ** 2))
        ss_tot = float(np.sum(dy * dy))
        r2 = 1 - ss_res / ss_tot if ss_tot != 0 else 0.0
        return slope, intercept, r2

    @staticmethod
    def pearson_correlation(a: Sequence[float], b: Sequence[float]) -> float:
        """Return the Pearson coefficient of ``a`` and ``b``.

        Series of unequal length, shorter than two, or without variance
        correlate to ``0.0``.
        """
        if len(a) != len(b) or len(a) < 2:
            return 0.0
        xs = np.array(a, dtype=float)
        ys = np.array(b, dtype=float)
        dx = xs - float(np.mean(xs))
        dy = ys - float(np.mean(ys))
        denominator = math.sqrt(float(np.sum(dx * dx)) * float(np.sum(dy * dy)))
        if denominator == 0:
            return 0.0
        return float(np.sum(dx * dy)) / denominator

    @staticmethod
    def piecewise_linear(value: float, breakpoints: Sequence[tuple[float, float]]) -> float:
        """Interpolate ``value`` over ascending ``(x, y)`` breakpoints.

        Values beyond the last breakpoint extrapolate along the final
        segment.
        """
        if not breakpoints:
            raise ValueError("breakpoints must not be empty")
        if value <= breakpoints[0][0]:
            return breakpoints[0][1]
        for (x0, y0), (x1, y1) in zip(breakpoints, breakpoints[1:]):
            if value < x1:
                return y0 + (value - x0) / (x1 - x0) * (y1 - y0)
        if len(breakpoints) < 2:
            return breakpoints[-1][1]
        (x0, y0), (x1, y1) = breakpoints[-2], breakpoints[-1]
        return y0 + (value - x0) / (x1 - x0) * (y1 - y0)
