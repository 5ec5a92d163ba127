import numpy as np

from tsknn.distance import Distance, ZeroDenominator
from tsknn.exceptions import check_length, IncomparableLengthError


def _values(series1, series2):
    """Value arrays of two same-length series."""
    check_length(series1, series2)
    return series1.y, series2.y


def _safe_divide(numerator: np.ndarray, denominator: np.ndarray, zero: float) -> np.ndarray:
    """Element-wise division with `zero` in place of zero denominators."""
    denominator = np.where(denominator == 0, zero, denominator)
    return numerator / denominator


def _products(y1: np.ndarray, y2: np.ndarray):
    return float(np.dot(y1, y2)), float(np.dot(y1, y1)), float(np.dot(y2, y2))


class EuclideanDistance(Distance):
    def _compute(self, series1, series2) -> float:
        y1, y2 = _values(series1, series2)
        d = y1 - y2
        return np.sqrt(np.dot(d, d))


class ManhattanDistance(Distance):
    def _compute(self, series1, series2) -> float:
        y1, y2 = _values(series1, series2)
        return np.sum(np.abs(y1 - y2))


class MinkowskiDistance(Distance):
    """Minkowski (L_p) distance.

    Parameters
    ----------
    p : float, default=2
        Order of the norm, ``p > 0``. ``np.inf`` gives the Chebyshev distance.
    storing : bool, default=False
        Whether to memoize computed distances.
    """

    def __init__(self, p: float = 2.0, storing: bool = False):
        super().__init__(storing=storing)
        self._p = 2.0
        self.p = p

    @property
    def p(self) -> float:
        return self._p

    @p.setter
    def p(self, p: float):
        if p <= 0:
            raise ValueError(f"Invalid parameter: p={p} must be > 0.")
        self._set_param('_p', float(p))

    def _compute(self, series1, series2) -> float:
        y1, y2 = _values(series1, series2)
        d = np.abs(y1 - y2)
        if np.isinf(self._p):
            return np.max(d) if len(d) > 0 else 0.0
        return np.sum(d ** self._p) ** (1.0 / self._p)

    def _params(self) -> dict:
        return {'p': self._p}


class ChebyshevDistance(Distance):
    def _compute(self, series1, series2) -> float:
        y1, y2 = _values(series1, series2)
        return np.max(np.abs(y1 - y2)) if len(y1) > 0 else 0.0


class CanberraDistance(Distance):
    def _compute(self, series1, series2) -> float:
        y1, y2 = _values(series1, series2)
        denominator = np.abs(y1) + np.abs(y2)
        mask = denominator != 0
        return np.sum(np.abs(y1 - y2)[mask] / denominator[mask])


class CosineDistance(Distance):
    """One minus the cosine similarity; NaN if a series is all zeros."""

    def _compute(self, series1, series2) -> float:
        sab, sa, sb = _products(*_values(series1, series2))
        denominator = np.sqrt(sa) * np.sqrt(sb)
        if denominator == 0:
            return np.nan
        return 1 - sab / denominator


class AngularDistance(Distance):
    """Angle between the value vectors, normalized to [0, 1]."""

    def _compute(self, series1, series2) -> float:
        sab, sa, sb = _products(*_values(series1, series2))
        if sa == 0 or sb == 0:
            return np.nan
        if sab == sa and sab == sb:
            return 0.0
        cos = np.clip(sab / (np.sqrt(sa) * np.sqrt(sb)), -1.0, 1.0)
        return np.arccos(cos) / np.pi


class DiceDistance(Distance):
    def _compute(self, series1, series2) -> float:
        sab, sa, sb = _products(*_values(series1, series2))
        denominator = sa + sb
        if denominator == 0:
            return 0.0
        return 1 - 2 * sab / denominator


class OrlociDistance(Distance):
    def _compute(self, series1, series2) -> float:
        sab, sa, sb = _products(*_values(series1, series2))
        denominator = np.sqrt(sa) * np.sqrt(sb)
        if denominator == 0:
            return np.nan
        return np.sqrt(max(2 * (1 - sab / denominator), 0.0))


class TanimotoDistance(Distance):
    def _compute(self, series1, series2) -> float:
        y1, y2 = _values(series1, series2)
        d = y1 - y2
        numerator = np.dot(d, d)
        denominator = np.sum(y1 * y1 + y2 * y2 - y1 * y2)
        if numerator == 0 and denominator == 0:
            return 0.0
        return numerator / denominator


class LorentzianDistance(Distance):
    def _compute(self, series1, series2) -> float:
        y1, y2 = _values(series1, series2)
        return np.sum(np.log1p(np.abs(y1 - y2)))


class SoergelDistance(ZeroDenominator, Distance):
    def _compute(self, series1, series2) -> float:
        y1, y2 = _values(series1, series2)
        sum_abs = np.sum(np.abs(y1 - y2))
        sum_max = np.sum(np.maximum(y1, y2))
        if sum_abs == 0 and sum_max == 0:
            return 0.0
        if sum_max == 0:
            return sum_abs / self._zero_denominator
        return sum_abs / sum_max


class SorensenDistance(ZeroDenominator, Distance):
    def _compute(self, series1, series2) -> float:
        y1, y2 = _values(series1, series2)
        sum_abs = np.sum(np.abs(y1 - y2))
        total = np.sum(y1 + y2)
        if sum_abs == 0 and total == 0:
            return 0.0
        if total == 0:
            return sum_abs / self._zero_denominator
        return sum_abs / total


class SquaredChiSquareDistance(Distance):
    def _compute(self, series1, series2) -> float:
        y1, y2 = _values(series1, series2)
        denominator = y1 + y2
        mask = denominator != 0
        d = (y1 - y2)[mask]
        return np.sum(d * d / denominator[mask])


class MinSymmetricChiSquareDistance(ZeroDenominator, Distance):
    def _compute(self, series1, series2) -> float:
        y1, y2 = _values(series1, series2)
        mask = y1 != y2
        y1, y2 = y1[mask], y2[mask]
        d2 = (y1 - y2) ** 2
        zero = self._zero_denominator
        return min(np.sum(_safe_divide(d2, y1, zero)), np.sum(_safe_divide(d2, y2, zero)))


class VicisSymmetricChiSquare2Distance(ZeroDenominator, Distance):
    def _compute(self, series1, series2) -> float:
        y1, y2 = _values(series1, series2)
        mask = y1 != y2
        y1, y2 = y1[mask], y2[mask]
        d2 = (y1 - y2) ** 2
        return np.sum(_safe_divide(d2, np.minimum(y1, y2), self._zero_denominator))


class WaveHedgesDistance(ZeroDenominator, Distance):
    def _compute(self, series1, series2) -> float:
        y1, y2 = _values(series1, series2)
        return np.sum(_safe_divide(np.abs(y1 - y2), np.maximum(y1, y2), self._zero_denominator))


class VicisWaveHedgesDistance(ZeroDenominator, Distance):
    def _compute(self, series1, series2) -> float:
        y1, y2 = _values(series1, series2)
        return np.sum(_safe_divide(np.abs(y1 - y2), np.minimum(y1, y2), self._zero_denominator))


class HassanatDistance(Distance):
    def _compute(self, series1, series2) -> float:
        y1, y2 = _values(series1, series2)
        low = np.minimum(y1, y2)
        high = np.maximum(y1, y2)
        similarity = np.where(low < 0, 1 / (1 + high - low), (1 + low) / (1 + high))
        return len(y1) - np.sum(similarity)


class MatusitaDistance(Distance):
    """Matusita distance; only defined for non-negative values (NaN otherwise)."""

    def _compute(self, series1, series2) -> float:
        y1, y2 = _values(series1, series2)
        with np.errstate(invalid='ignore'):
            d = np.sqrt(y1) - np.sqrt(y2)
        return np.sqrt(np.dot(d, d))


class MeehlDistance(Distance):
    """Sum of squared differences of consecutive point-wise differences."""

    def _compute(self, series1, series2) -> float:
        y1, y2 = _values(series1, series2)
        if len(y1) < 2:
            raise IncomparableLengthError("Time series must contain at least two data points.")
        d = y1 - y2
        steps = d[:-1] - d[1:]
        return np.dot(steps, steps)


class KumarJohnsonDistance(ZeroDenominator, Distance):
    def _compute(self, series1, series2) -> float:
        y1, y2 = _values(series1, series2)
        squares = y1 * y1 - y2 * y2
        mask = squares != 0
        product = (y1 * y2)[mask]
        with np.errstate(invalid='ignore'):
            denominator = np.where(product == 0, self._zero_denominator,
                                   np.abs(product) ** 1.5 * np.sign(product))
        return np.sum(squares[mask] ** 2 / denominator) / 2
