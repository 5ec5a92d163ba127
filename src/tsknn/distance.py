import threading
from abc import ABC, abstractmethod
import numpy as np

from tsknn import config


class Distance(ABC):
    """Abstract base class for all distance measures.

    A distance measure is called with two time series and returns a float.
    Distances can be memoized: when `storing` is enabled, every computed
    distance is kept under the (unordered) pair of series indices and
    returned by later calls without recomputation. Series with a negative
    index are never memoized.

    Series must not change while storing is enabled. Changing a parameter
    that affects the distance clears the stored distances.

    Parameters
    ----------
    storing : bool, default=False
        Whether to memoize computed distances.
    """

    def __init__(self, storing: bool = False):
        self._storage = {}
        self._storage_lock = threading.Lock()
        self._storing = bool(storing)

    @abstractmethod
    def _compute(self, series1, series2) -> float:
        """Compute the distance, bypassing the memo cache."""
        pass

    def distance(self, series1, series2) -> float:
        """Distance between two time series.

        Returns the stored value if the pair has been seen before (and
        storing is enabled), otherwise computes and stores it.

        Raises
        ------
        IncomparableLengthError
            If the measure requires equal lengths and the series differ.
        """
        distance = self.recall(series1, series2)
        if distance is not None:
            return distance
        distance = float(self._compute(series1, series2))
        self.store(series1, series2, distance)
        return distance

    def __call__(self, series1, series2) -> float:
        return self.distance(series1, series2)

    @property
    def storing(self) -> bool:
        return self._storing

    @storing.setter
    def storing(self, storing: bool):
        self._storing = bool(storing)

    @staticmethod
    def _key(series1, series2):
        index1, index2 = series1.index, series2.index
        if index1 < 0 or index2 < 0:
            return None
        return (index1, index2) if index1 <= index2 else (index2, index1)

    def recall(self, series1, series2) -> float | None:
        """Return the stored distance between the two series, or None."""
        if not self._storing:
            return None
        key = self._key(series1, series2)
        if key is None:
            return None
        return self._storage.get(key)

    def store(self, series1, series2, distance: float):
        """Store a distance for reuse (no-op unless storing is enabled)."""
        if not self._storing:
            return
        key = self._key(series1, series2)
        if key is not None:
            self._storage[key] = distance

    def clear_storage(self):
        with self._storage_lock:
            self._storage.clear()

    def _set_param(self, name: str, value):
        """Set a distance-affecting parameter, clearing storage if it changes."""
        if getattr(self, name) != value:
            self.clear_storage()
            setattr(self, name, value)

    def _params(self) -> dict:
        """Constructor keyword arguments reproducing this measure's parameters."""
        return {}

    def copy(self) -> 'Distance':
        """Independent measure of the same type and parameters, with an empty cache."""
        return type(self)(storing=self._storing, **self._params())

    def __repr__(self) -> str:
        params = dict(self._params())
        if self._storing:
            params['storing'] = True
        args = ", ".join(f"{key}={value!r}" for key, value in params.items())
        return f"{type(self).__name__}({args})"


class Constrained(object):
    """Mixin for measures restricted to a warping (editing) window.

    The window is given either relatively, as `r` percent of the series
    length, or absolutely, as `w` cells. The two are mutually exclusive: the
    one set last is in effect and the other reads as -1.

    Parameters
    ----------
    r : float, default=100
        Relative window width in percent, ``0 <= r <= 100``.
    w : int, optional
        Absolute window width, ``w >= 0``. Takes precedence over `r`.
    """

    def __init__(self, r: float = 100.0, w: int | None = None, **kwargs):
        super().__init__(**kwargs)
        self._r = 100.0
        self._w = -1
        if w is not None:
            self.w = w
        else:
            self.r = r

    @property
    def r(self) -> float:
        return self._r

    @r.setter
    def r(self, r: float):
        if r < 0 or r > 100:
            raise ValueError(f"Invalid parameter: r={r} must be in the range [0, 100].")
        if self._r != r:
            self.clear_storage()
            self._r = float(r)
            self._w = -1

    @property
    def w(self) -> int:
        return self._w

    @w.setter
    def w(self, w: int):
        if w < 0:
            raise ValueError(f"Invalid parameter: w={w} must be >= 0.")
        if self._w != w:
            self.clear_storage()
            self._w = int(w)
            self._r = -1.0

    def _params(self) -> dict:
        params = super()._params()
        if self._w >= 0:
            params['w'] = self._w
        else:
            params['r'] = self._r
        return params


class Thresholded(object):
    """Mixin for measures that match points within a threshold `epsilon`.

    Parameters
    ----------
    epsilon : float, optional
        Matching threshold, ``epsilon >= 0``. Defaults to the configured
        matching threshold (see `tsknn.config`).
    """

    def __init__(self, epsilon: float | None = None, **kwargs):
        super().__init__(**kwargs)
        self._epsilon = config.get_matching_threshold()
        if epsilon is not None:
            self.epsilon = epsilon

    @property
    def epsilon(self) -> float:
        return self._epsilon

    @epsilon.setter
    def epsilon(self, epsilon: float):
        if epsilon < 0:
            raise ValueError(f"Invalid parameter: epsilon={epsilon} must be >= 0.")
        self._set_param('_epsilon', float(epsilon))

    def _params(self) -> dict:
        params = super()._params()
        params['epsilon'] = self._epsilon
        return params


class ZeroDenominator(object):
    """Mixin for measures that divide by values which can be zero.

    Parameters
    ----------
    zero_denominator : float, optional
        Value used in place of a zero denominator, ``> 0``. Defaults to the
        configured zero denominator (see `tsknn.config`), read when the
        measure is created.
    """

    def __init__(self, zero_denominator: float | None = None, **kwargs):
        super().__init__(**kwargs)
        self._zero_denominator = config.get_zero_denominator()
        if zero_denominator is not None:
            self.zero_denominator = zero_denominator

    @property
    def zero_denominator(self) -> float:
        return self._zero_denominator

    @zero_denominator.setter
    def zero_denominator(self, value: float):
        if value <= 0:
            raise ValueError(f"Invalid parameter: zero_denominator={value} must be > 0.")
        self._set_param('_zero_denominator', float(value))

    def _params(self) -> dict:
        params = super()._params()
        params['zero_denominator'] = self._zero_denominator
        return params


class TWEDParameters(object):
    """Mixin holding the stiffness `nu` and the edit penalty `lambda_` of TWED."""

    def __init__(self, nu: float = 1.0, lambda_: float = 0.0, **kwargs):
        super().__init__(**kwargs)
        self._nu = 1.0
        self._lambda = 0.0
        self.nu = nu
        self.lambda_ = lambda_

    @property
    def nu(self) -> float:
        return self._nu

    @nu.setter
    def nu(self, nu: float):
        if nu < 0:
            raise ValueError(f"Invalid parameter: nu={nu} must be >= 0.")
        self._set_param('_nu', float(nu))

    @property
    def lambda_(self) -> float:
        return self._lambda

    @lambda_.setter
    def lambda_(self, lambda_: float):
        if lambda_ < 0:
            raise ValueError(f"Invalid parameter: lambda_={lambda_} must be >= 0.")
        self._set_param('_lambda', float(lambda_))

    def _params(self) -> dict:
        params = super()._params()
        params['nu'] = self._nu
        params['lambda_'] = self._lambda
        return params


class ERPParameters(object):
    """Mixin holding the gap value `g` of ERP."""

    def __init__(self, g: float = 0.0, **kwargs):
        super().__init__(**kwargs)
        self._g = 0.0
        self.g = g

    @property
    def g(self) -> float:
        return self._g

    @g.setter
    def g(self, g: float):
        self._set_param('_g', float(g))

    def _params(self) -> dict:
        params = super()._params()
        params['g'] = self._g
        return params


class MatrixDistance(Distance):
    """Distance read from a precomputed matrix.

    The matrix is indexed by `TimeSeries.index`. Only its upper triangle is
    read (``distances[min(i, j), max(i, j)]``), so both a full symmetric
    matrix and an upper-triangular one are valid. Lookups are not memoized.

    Parameters
    ----------
    distances : array_like
        Square matrix of pairwise distances.
    """

    def __init__(self, distances=None, storing: bool = False):
        super().__init__(storing=False)
        self.distances = None if distances is None else np.asarray(distances, dtype=np.float64)

    def distance(self, series1, series2) -> float:
        return self._compute(series1, series2)

    def _compute(self, series1, series2) -> float:
        if self.distances is None:
            raise ValueError("No distance matrix has been set.")
        i, j = series1.index, series2.index
        if i < 0 or j < 0:
            raise ValueError("Time series must have non-negative indices to be looked up.")
        if j < i:
            i, j = j, i
        return float(self.distances[i, j])

    def _params(self) -> dict:
        return {'distances': self.distances}

    def __repr__(self) -> str:
        shape = None if self.distances is None else self.distances.shape
        return f"MatrixDistance(shape={shape})"
