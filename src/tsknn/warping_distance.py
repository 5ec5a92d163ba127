import numpy as np
from numba import njit

from tsknn.constraints import (full_band, sakoe_chiba_band, warping_window_width,
                               ItakuraParallelogram)
from tsknn.distance import (Distance, Constrained, Thresholded, TWEDParameters,
                            ERPParameters)


# ---------------------------------------------------------------------------
# Dynamic programming kernels
#
# Every kernel fills the cost matrix row by row, keeping only two row
# buffers. The rows are the points of `y1`, the columns the points of `y2`.
# Row i (1-indexed) is restricted to the columns start[i]..end[i]; the band
# must be monotone (start and end non-decreasing) and end[-1] == len(y2).
# Cells outside the band are never computed: before a row is filled, the
# cell left of its band and the cells of the previous row right of that
# row's band are reset, so no value leaks from an older row.
# ---------------------------------------------------------------------------


@njit()
def _dtw_kernel(y1: np.ndarray, y2: np.ndarray, start: np.ndarray, end: np.ndarray) -> float:
    """Accumulated squared-difference cost of the optimal warping path."""
    n, m = y1.shape[0], y2.shape[0]
    prev = np.full(m + 1, np.inf)
    cur = np.full(m + 1, np.inf)
    prev[0] = 0.0
    prev_end = 0
    for i in range(1, n + 1):
        s, e = start[i], end[i]
        for t in range(prev_end + 1, e + 1):
            prev[t] = np.inf
        cur[s - 1] = np.inf
        a = y1[i - 1]
        for j in range(s, e + 1):
            diff = a - y2[j - 1]
            cur[j] = diff * diff + min(prev[j - 1], prev[j], cur[j - 1])
        prev_end = e
        prev, cur = cur, prev
    return prev[m]


@njit()
def _lcs_kernel(y1: np.ndarray, y2: np.ndarray, start: np.ndarray, end: np.ndarray,
                epsilon: float) -> int:
    """Length of the longest common subsequence, matching within `epsilon`."""
    n, m = y1.shape[0], y2.shape[0]
    prev = np.zeros(m + 1, dtype=np.int64)
    cur = np.zeros(m + 1, dtype=np.int64)
    prev_end = 0
    for i in range(1, n + 1):
        s, e = start[i], end[i]
        for t in range(prev_end + 1, e + 1):
            prev[t] = prev[prev_end]
        cur[s - 1] = prev[s - 1]
        a = y1[i - 1]
        for j in range(s, e + 1):
            if abs(a - y2[j - 1]) <= epsilon:
                cur[j] = prev[j - 1] + 1
            else:
                cur[j] = max(prev[j], cur[j - 1])
        prev_end = e
        prev, cur = cur, prev
    return prev[m]


@njit()
def _erp_kernel(y1: np.ndarray, y2: np.ndarray, start: np.ndarray, end: np.ndarray,
                g: float) -> float:
    """Edit distance with real penalty: gaps cost their distance to `g`."""
    n, m = y1.shape[0], y2.shape[0]
    prev = np.empty(m + 1)
    cur = np.full(m + 1, np.inf)
    # row 0: y2 aligned with gaps only
    prev[0] = 0.0
    for j in range(1, m + 1):
        prev[j] = prev[j - 1] + abs(y2[j - 1] - g)
    prev_end = 0
    for i in range(1, n + 1):
        s, e = start[i], end[i]
        if i > 1:
            for t in range(prev_end + 1, e + 1):
                prev[t] = np.inf
        a = y1[i - 1]
        gap1 = abs(a - g)
        if s == 1:
            cur[0] = prev[0] + gap1
        else:
            cur[s - 1] = np.inf
        for j in range(s, e + 1):
            b = y2[j - 1]
            cur[j] = min(prev[j - 1] + abs(a - b),
                         prev[j] + gap1,
                         cur[j - 1] + abs(b - g))
        prev_end = e
        prev, cur = cur, prev
    return prev[m]


@njit()
def _edr_kernel(y1: np.ndarray, y2: np.ndarray, start: np.ndarray, end: np.ndarray,
                epsilon: float) -> float:
    """Number of edit operations, matching within `epsilon`."""
    n, m = y1.shape[0], y2.shape[0]
    prev = np.empty(m + 1)
    cur = np.full(m + 1, np.inf)
    for j in range(m + 1):
        prev[j] = j
    prev_end = 0
    for i in range(1, n + 1):
        s, e = start[i], end[i]
        if i > 1:
            for t in range(prev_end + 1, e + 1):
                prev[t] = np.inf
        if s == 1:
            cur[0] = i
        else:
            cur[s - 1] = np.inf
        a = y1[i - 1]
        for j in range(s, e + 1):
            subcost = 0.0 if abs(a - y2[j - 1]) <= epsilon else 1.0
            cur[j] = min(prev[j - 1] + subcost, prev[j] + 1.0, cur[j - 1] + 1.0)
        prev_end = e
        prev, cur = cur, prev
    return prev[m]


@njit()
def _deltas(y: np.ndarray, x: np.ndarray, nu: float, lambda_: float) -> np.ndarray:
    """Cost of deleting each point; the point before the first is (0, 0)."""
    n = y.shape[0]
    delta = np.empty(n)
    prev_y = 0.0
    prev_x = 0.0
    for i in range(n):
        delta[i] = abs(y[i] - prev_y) + nu * abs(x[i] - prev_x) + lambda_
        prev_y = y[i]
        prev_x = x[i]
    return delta


@njit()
def _twed_kernel(y1: np.ndarray, x1: np.ndarray, y2: np.ndarray, x2: np.ndarray,
                 start: np.ndarray, end: np.ndarray, nu: float, lambda_: float) -> float:
    """Time warp edit distance with stiffness `nu` and edit penalty `lambda_`."""
    n, m = y1.shape[0], y2.shape[0]
    delta1 = _deltas(y1, x1, nu, lambda_)
    delta2 = _deltas(y2, x2, nu, lambda_)
    prev = np.full(m + 1, np.inf)
    cur = np.full(m + 1, np.inf)
    prev[0] = 0.0
    prev_end = 0
    py1 = 0.0
    px1 = 0.0
    for i in range(1, n + 1):
        s, e = start[i], end[i]
        for t in range(prev_end + 1, e + 1):
            prev[t] = np.inf
        cur[s - 1] = np.inf
        a, xa = y1[i - 1], x1[i - 1]
        d1 = delta1[i - 1]
        if s > 1:
            py2, px2 = y2[s - 2], x2[s - 2]
        else:
            py2, px2 = 0.0, 0.0
        for j in range(s, e + 1):
            b, xb = y2[j - 1], x2[j - 1]
            match = (prev[j - 1] + abs(a - b) + abs(py1 - py2)
                     + nu * (abs(xa - xb) + abs(px1 - px2)))
            cur[j] = min(prev[j] + d1, cur[j - 1] + delta2[j - 1], match)
            py2, px2 = b, xb
        py1, px1 = a, xa
        prev_end = e
        prev, cur = cur, prev
    return prev[m]


def _ordered(series1, series2):
    """The two series with the longer one first (rows) and the shorter second (columns)."""
    if len(series1) < len(series2):
        return series2, series1
    return series1, series2


def _lcs_ratio(matches: int, total: int, length: int) -> float:
    if total == 0:
        return 0.0
    return (total - length * matches) / total


# ---------------------------------------------------------------------------
# Dynamic Time Warping
# ---------------------------------------------------------------------------


class DTWDistance(Distance):
    """Unconstrained Dynamic Time Warping.

    The local cost is the squared difference of values; the result is the raw
    accumulated cost (no square root). Series may differ in length.
    """

    def _compute(self, series1, series2) -> float:
        rows, cols = _ordered(series1, series2)
        start, end = full_band(len(rows), len(cols))
        return _dtw_kernel(rows.y, cols.y, start, end)


class SakoeChibaDTWDistance(Constrained, Distance):
    """DTW restricted to a Sakoe-Chiba band around the main diagonal.

    Parameters
    ----------
    r : float, default=100
        Band half-width in percent of the series length.
    w : int, optional
        Absolute band half-width; takes precedence over `r`.
    storing : bool, default=False
        Whether to memoize computed distances.

    Example
    -------
        >>> a = TimeSeries([0.0, 1.0, 2.0], index=0)
        >>> b = TimeSeries([1.0, 2.0, 3.0], index=1)
        >>> SakoeChibaDTWDistance(w=0)(a, b)
        3.0
    """

    def _compute(self, series1, series2) -> float:
        width = warping_window_width(series1, series2, self._r, self._w)
        start, end = sakoe_chiba_band(len(series1), width)
        return _dtw_kernel(series1.y, series2.y, start, end)


class ItakuraDTWDistance(Constrained, Distance):
    """DTW restricted to an Itakura parallelogram."""

    def __init__(self, r: float = 100.0, w: int | None = None, storing: bool = False):
        super().__init__(r=r, w=w, storing=storing)
        self._parallelogram = ItakuraParallelogram()

    def _compute(self, series1, series2) -> float:
        start, end = self._parallelogram.bounds(series1, series2, self._r, self._w)
        return _dtw_kernel(series1.y, series2.y, start, end)


def dtw(x: np.ndarray, y: np.ndarray, w: int | None = None) -> float:
    """Compute the squared DTW distance between two value arrays.

    Parameters
    ----------
    x : np.ndarray
        First time series of shape (n,).
    y : np.ndarray
        Second time series of shape (m,).
    w : int, optional
        Sakoe-Chiba window. It is widened to ``abs(n - m)`` if necessary.

    Returns
    -------
    float
        The accumulated squared-difference cost.

    Example
    -------
        >>> x = np.random.randn(500)
        >>> y = np.random.randn(600)
        >>> d = dtw(x, y, w=50)
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if x.ndim != 1 or y.ndim != 1:
        raise ValueError("Time series must have shape (n,).")
    if len(x) < len(y):
        x, y = y, x
    n, m = len(x), len(y)
    if w is None:
        start, end = full_band(n, m)
    else:
        start, end = sakoe_chiba_band(n, max(w, n - m), columns=m)
    return float(_dtw_kernel(x, y, start, end))


# ---------------------------------------------------------------------------
# Longest Common Subsequence
# ---------------------------------------------------------------------------


class LCSDistance(Thresholded, Distance):
    """Longest Common Subsequence distance.

    Two points match if their values differ by at most `epsilon`. The
    distance is ``(n + m - 2L) / (n + m)`` where `L` is the number of matches,
    and 0 for two empty series.
    """

    def _compute(self, series1, series2) -> float:
        rows, cols = _ordered(series1, series2)
        start, end = full_band(len(rows), len(cols))
        matches = _lcs_kernel(rows.y, cols.y, start, end, self._epsilon)
        return _lcs_ratio(matches, len(rows) + len(cols), 2)


class SakoeChibaLCSDistance(Constrained, Thresholded, Distance):
    """LCS restricted to a Sakoe-Chiba band; ``(n - L) / n`` for length n."""

    def _compute(self, series1, series2) -> float:
        width = warping_window_width(series1, series2, self._r, self._w)
        start, end = sakoe_chiba_band(len(series1), width)
        matches = _lcs_kernel(series1.y, series2.y, start, end, self._epsilon)
        return _lcs_ratio(matches, len(series1), 1)


class ItakuraLCSDistance(Constrained, Thresholded, Distance):
    """LCS restricted to an Itakura parallelogram; ``(n - L) / n`` for length n."""

    def __init__(self, r: float = 100.0, w: int | None = None,
                 epsilon: float | None = None, storing: bool = False):
        super().__init__(r=r, w=w, epsilon=epsilon, storing=storing)
        self._parallelogram = ItakuraParallelogram()

    def _compute(self, series1, series2) -> float:
        start, end = self._parallelogram.bounds(series1, series2, self._r, self._w)
        matches = _lcs_kernel(series1.y, series2.y, start, end, self._epsilon)
        return _lcs_ratio(matches, len(series1), 1)


# ---------------------------------------------------------------------------
# Edit Distance with Real Penalty
# ---------------------------------------------------------------------------


class ERPDistance(ERPParameters, Distance):
    """Edit Distance with Real Penalty.

    Aligning a point with a gap costs its absolute difference to the gap
    value `g`. Series may differ in length.
    """

    def _compute(self, series1, series2) -> float:
        rows, cols = _ordered(series1, series2)
        start, end = full_band(len(rows), len(cols))
        return _erp_kernel(rows.y, cols.y, start, end, self._g)


class SakoeChibaERPDistance(Constrained, ERPParameters, Distance):
    def _compute(self, series1, series2) -> float:
        width = warping_window_width(series1, series2, self._r, self._w)
        start, end = sakoe_chiba_band(len(series1), width)
        return _erp_kernel(series1.y, series2.y, start, end, self._g)


class ItakuraERPDistance(Constrained, ERPParameters, Distance):
    def __init__(self, r: float = 100.0, w: int | None = None, g: float = 0.0,
                 storing: bool = False):
        super().__init__(r=r, w=w, g=g, storing=storing)
        self._parallelogram = ItakuraParallelogram()

    def _compute(self, series1, series2) -> float:
        start, end = self._parallelogram.bounds(series1, series2, self._r, self._w)
        return _erp_kernel(series1.y, series2.y, start, end, self._g)


# ---------------------------------------------------------------------------
# Time Warp Edit Distance
# ---------------------------------------------------------------------------


class TWEDDistance(TWEDParameters, Distance):
    """Time Warp Edit Distance.

    Uses both values and times of the points. Deleting a point costs its
    distance to the preceding point plus `lambda_`; time differences are
    weighted by the stiffness `nu`.

    Parameters
    ----------
    nu : float, default=1
        Stiffness, ``nu >= 0``.
    lambda_ : float, default=0
        Edit penalty, ``lambda_ >= 0``.
    storing : bool, default=False
        Whether to memoize computed distances.
    """

    def _compute(self, series1, series2) -> float:
        rows, cols = _ordered(series1, series2)
        start, end = full_band(len(rows), len(cols))
        return _twed_kernel(rows.y, rows.x, cols.y, cols.x, start, end,
                            self._nu, self._lambda)


class SakoeChibaTWEDDistance(Constrained, TWEDParameters, Distance):
    def _compute(self, series1, series2) -> float:
        width = warping_window_width(series1, series2, self._r, self._w)
        start, end = sakoe_chiba_band(len(series1), width)
        return _twed_kernel(series1.y, series1.x, series2.y, series2.x, start, end,
                            self._nu, self._lambda)


class ItakuraTWEDDistance(Constrained, TWEDParameters, Distance):
    def __init__(self, r: float = 100.0, w: int | None = None, nu: float = 1.0,
                 lambda_: float = 0.0, storing: bool = False):
        super().__init__(r=r, w=w, nu=nu, lambda_=lambda_, storing=storing)
        self._parallelogram = ItakuraParallelogram()

    def _compute(self, series1, series2) -> float:
        start, end = self._parallelogram.bounds(series1, series2, self._r, self._w)
        return _twed_kernel(series1.y, series1.x, series2.y, series2.x, start, end,
                            self._nu, self._lambda)


# ---------------------------------------------------------------------------
# Edit Distance on Real sequences
# ---------------------------------------------------------------------------


class EDRDistance(Thresholded, Distance):
    """Edit Distance on Real sequences: the number of insertions, deletions
    and substitutions, where points within `epsilon` match for free."""

    def _compute(self, series1, series2) -> float:
        rows, cols = _ordered(series1, series2)
        start, end = full_band(len(rows), len(cols))
        return _edr_kernel(rows.y, cols.y, start, end, self._epsilon)


class SakoeChibaEDRDistance(Constrained, Thresholded, Distance):
    def _compute(self, series1, series2) -> float:
        width = warping_window_width(series1, series2, self._r, self._w)
        start, end = sakoe_chiba_band(len(series1), width)
        return _edr_kernel(series1.y, series2.y, start, end, self._epsilon)


class ItakuraEDRDistance(Constrained, Thresholded, Distance):
    def __init__(self, r: float = 100.0, w: int | None = None,
                 epsilon: float | None = None, storing: bool = False):
        super().__init__(r=r, w=w, epsilon=epsilon, storing=storing)
        self._parallelogram = ItakuraParallelogram()

    def _compute(self, series1, series2) -> float:
        start, end = self._parallelogram.bounds(series1, series2, self._r, self._w)
        return _edr_kernel(series1.y, series2.y, start, end, self._epsilon)
