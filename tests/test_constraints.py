import numpy as np
import pytest

from tsknn.constraints import (window_width, warping_window_width, full_band, sakoe_chiba_band,
                               itakura_parallelogram, ItakuraParallelogram)
from tsknn.dataset import TimeSeries
from tsknn.exceptions import IncomparableLengthError


def test_warping_window_width():
    a = TimeSeries(np.zeros(50))
    b = TimeSeries(np.ones(50))
    assert warping_window_width(a, b, r=10, w=-1) == 5
    assert warping_window_width(a, b, r=15, w=-1) == 7
    assert warping_window_width(a, b, r=10, w=3) == 3
    # clamped to the length
    assert warping_window_width(a, b, r=10, w=80) == 50
    assert warping_window_width(a, b, r=100, w=-1) == 50


def test_warping_window_width_requires_equal_lengths():
    with pytest.raises(IncomparableLengthError):
        warping_window_width(TimeSeries(np.zeros(5)), TimeSeries(np.zeros(6)), r=10, w=-1)


def test_window_width():
    assert window_width(50, 10) == 5
    assert window_width(7, 100) == 7


def test_full_band():
    start, end = full_band(3, 5)
    assert start.tolist() == [1, 1, 1, 1]
    assert end.tolist() == [0, 5, 5, 5]


def test_sakoe_chiba_band():
    start, end = sakoe_chiba_band(5, 1)
    assert start[1:].tolist() == [1, 1, 2, 3, 4]
    assert end[1:].tolist() == [2, 3, 4, 5, 5]


def test_sakoe_chiba_band_rectangular():
    start, end = sakoe_chiba_band(6, 2, columns=4)
    assert start[1:].tolist() == [1, 1, 1, 2, 3, 4]
    assert end[1:].tolist() == [3, 4, 4, 4, 4, 4]


def test_itakura_parallelogram_example():
    start, end = itakura_parallelogram(12, 6)
    assert start[1:].tolist() == [1, 1, 2, 2, 3, 3, 3, 4, 4, 6, 9, 11]
    assert end[1:].tolist() == [2, 4, 7, 9, 9, 10, 10, 10, 11, 11, 12, 12]


@pytest.mark.parametrize("length", [1, 2, 7, 12, 25])
def test_itakura_full_width_covers_matrix(length):
    start, end = itakura_parallelogram(length, length)
    assert np.all(start[1:] == 1)
    assert np.all(end[1:] == length)


@pytest.mark.parametrize("length", [1, 2, 7, 12, 25])
def test_itakura_zero_width_is_diagonal(length):
    start, end = itakura_parallelogram(length, 0)
    assert start[1:].tolist() == list(range(1, length + 1))
    assert end[1:].tolist() == list(range(1, length + 1))


@pytest.mark.parametrize("length,width", [(12, 6), (20, 5), (31, 10), (40, 39), (9, 3)])
def test_itakura_shape(length, width):
    start, end = itakura_parallelogram(length, width)
    start, end = start[1:], end[1:]
    assert np.all(start <= end)
    assert np.all(np.diff(start) >= 0)
    assert np.all(np.diff(end) >= 0)
    assert start[0] == 1 and end[-1] == length
    # widest at the centre, narrowest at the corners
    widths = end - start
    assert widths[0] <= widths[length // 2]
    assert widths[-1] <= widths[length // 2]


def test_itakura_invalid_width():
    with pytest.raises(ValueError):
        itakura_parallelogram(10, 11)
    with pytest.raises(ValueError):
        itakura_parallelogram(10, -1)


def test_itakura_cache():
    cache = ItakuraParallelogram()
    first = cache.get(12, 6)
    second = cache.get(12, 6)
    assert first is second
    cache.get(12, 4)
    assert len(cache) == 2
    cache.clear()
    assert len(cache) == 0


def test_itakura_cache_bounds():
    cache = ItakuraParallelogram()
    a = TimeSeries(np.zeros(12))
    b = TimeSeries(np.ones(12))
    start, _ = cache.bounds(a, b, r=50, w=-1)
    assert start[1:].tolist() == [1, 1, 2, 2, 3, 3, 3, 4, 4, 6, 9, 11]
    with pytest.raises(IncomparableLengthError):
        cache.bounds(a, TimeSeries(np.zeros(5)), r=50, w=-1)
