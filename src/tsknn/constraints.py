import math
import threading
import numpy as np
from numba import njit
from typing import Tuple

from tsknn.exceptions import check_length


Band = Tuple[np.ndarray, np.ndarray]


def window_width(length: int, r: float) -> int:
    """Absolute width of a warping window of relative width `r` (percent)."""
    return min(int(length * r / 100), length)


def warping_window_width(series1, series2, r: float, w: int) -> int:
    """Compute the width of the warping (editing) window.

        width = w                 if w >= 0
        width = floor(len*r/100)  otherwise

    clamped to `len`, the common length of the two series.

    Parameters
    ----------
    series1, series2 : TimeSeries
        The compared series. They must be the same length.
    r : float
        Relative width of the window in percent, used when ``w < 0``.
    w : int
        Absolute width of the window.

    Returns
    -------
    int
        The width of the warping window.

    Raises
    ------
    IncomparableLengthError
        If the series differ in length.
    """
    length = check_length(series1, series2)
    if w < 0:
        width = int(length * r / 100)
    else:
        width = w
    return min(width, length)


def full_band(rows: int, columns: int) -> Band:
    """Band covering the whole `rows` x `columns` matrix."""
    start = np.ones(rows + 1, dtype=np.int64)
    end = np.full(rows + 1, columns, dtype=np.int64)
    end[0] = 0
    return start, end


def sakoe_chiba_band(length: int, width: int, columns: int | None = None) -> Band:
    """Row bounds of the Sakoe-Chiba band of half-width `width`.

    Returns 1-indexed arrays `start`, `end` of size ``length + 1``; row `i`
    spans the columns ``start[i]..end[i]`` (inclusive). Element 0 is an
    auxiliary cell that is not part of the band.

    For a non-square matrix pass the number of `columns`; `width` must then
    be at least ``abs(length - columns)`` for the last cell to be reachable.
    """
    if columns is None:
        columns = length
    rows = np.arange(length + 1, dtype=np.int64)
    start = np.maximum(1, rows - width)
    end = np.minimum(columns, rows + width)
    start[0] = 1
    end[0] = 0
    return start, end


@njit()
def _itakura(length: int, width: int) -> Tuple[np.ndarray, np.ndarray]:
    x = (length - width) // 2 + 1
    y = length - x + 1

    start = np.zeros(length + 1, dtype=np.int64)
    end = np.zeros(length + 1, dtype=np.int64)
    start[0] = 1
    end[0] = 0

    if x >= y:
        # only the cells on the diagonal
        for i in range(1, length + 1):
            start[i] = i
            end[i] = i
        return start, end

    k = (x - 1) / (y - 1)  # slope of the line through (1, 1) and (x, y)
    e = 0
    count = 0
    for i in range(1, y):
        s = int(math.floor(k * (i - 1) + 0.5)) + 1
        start[i] = s
        # mirror image with respect to the main diagonal
        end[length - i + 1] = length - s + 1
        # the ends of consecutive rows differ as much as the starts of
        # consecutive columns
        if s == start[i - 1]:
            count += 1
        else:
            e += 1
            end[e] = end[e - 1] + count
            count = 1

    # the corner points on the anti-diagonal
    start[y] = x
    end[length - y + 1] = length - x + 1
    if x != start[y - 1]:
        e += 1
        end[e] = end[e - 1] + count

    # the line joining (x, y) and (length, length)
    for i in range(1, e + 1):
        start[length - i + 1] = length - end[i] + 1

    return start, end


def itakura_parallelogram(length: int, width: int) -> Band:
    """Row bounds of the Itakura parallelogram of the given width.

    The parallelogram joins the corners (1, 1) and (length, length) of the
    warping matrix with the points (x, y) and (y, x), where
    ``x = (length - width) // 2 + 1`` and ``y = length - x + 1``. It is widest
    at the centre and narrowest at the corners. If ``x >= y`` only the main
    diagonal remains; at ``width == length`` it covers the whole matrix.

    Parameters
    ----------
    length : int
        Length of the compared series.
    width : int
        Absolute width of the warping window, ``0 <= width <= length``.

    Returns
    -------
    start, end : np.ndarray
        1-indexed arrays of size ``length + 1``; row `i` spans the columns
        ``start[i]..end[i]``. Element 0 is an auxiliary cell.

    Example
    -------
        >>> start, end = itakura_parallelogram(12, 6)
        >>> start[1:].tolist()
        [1, 1, 2, 2, 3, 3, 3, 4, 4, 6, 9, 11]
        >>> end[1:].tolist()
        [2, 4, 7, 9, 9, 10, 10, 10, 11, 11, 12, 12]
    """
    if width < 0 or width > length:
        raise ValueError(f"width must be in the range [0..{length}], got {width}.")
    return _itakura(int(length), int(width))


class ItakuraParallelogram(object):
    """Cache of Itakura parallelograms keyed by (length, width).

    Shared by all calls of an Itakura-constrained distance measure, so the
    geometry is computed once per shape of compared series.
    """

    def __init__(self):
        self._cache = {}
        self._lock = threading.Lock()

    def get(self, length: int, width: int) -> Band:
        key = (length, width)
        band = self._cache.get(key)
        if band is None:
            with self._lock:
                band = self._cache.get(key)
                if band is None:
                    band = itakura_parallelogram(length, width)
                    self._cache[key] = band
        return band

    def bounds(self, series1, series2, r: float, w: int) -> Band:
        """Parallelogram for two same-length series and a window (r, w).

        Raises
        ------
        IncomparableLengthError
            If the series differ in length.
        """
        width = warping_window_width(series1, series2, r, w)
        return self.get(len(series1), width)

    def clear(self):
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)
