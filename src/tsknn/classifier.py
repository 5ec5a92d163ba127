import logging
import threading
import warnings
from abc import ABC, abstractmethod
import numpy as np
from typing import Sequence

from tsknn.dataset import Dataset
from tsknn.exceptions import (check_not_empty, ClassificationInterruptedError,
                              EmptyTrainingSetError)
from tsknn.neighbours import SortedList
from tsknn.threads import thread_limit, init_executor, shutdown_executor, run_tasks, DistanceTask
from tsknn.warping_distance import DTWDistance
from tsknn.weighting import (Weighting, MajorityVote, RankWeighting, UniformWeighting,
                             FibonacciWeighting, InverseWeighting, InverseSquaredWeighting,
                             DudaniWeighting, MacleodWeighting, ZavrelWeighting,
                             DualUniformWeighting, DualDistanceWeighting)


logger = logging.getLogger(__name__)


class NearestNeighbourBase(ABC):
    """Shared engine of the nearest neighbour classifiers.

    Computes the distances from a query to every training series, either
    sequentially or fanned out over a pool of worker threads, or reads them
    from precomputed matrices.

    Parameters
    ----------
    distance : Distance, optional
        The distance measure. Defaults to `DTWDistance()`.
    n_threads : int, default=1
        Number of worker threads. Values ``<= 0`` are relative to the number of
        processors. Capped by the global thread limit.

    Attributes
    ----------
    distances : np.ndarray or None
        Precomputed pairwise distances of the full dataset, indexed by
        `TimeSeries.index`. Only the upper triangle is read.
    neighbours : np.ndarray or None
        For every series of the full dataset, the indices of all series
        sorted by ascending distance from it.

    The classifier owns a thread pool. Call `shutdown()` (or use the
    classifier as a context manager) when it is no longer needed.
    """

    def __init__(self, distance=None, n_threads: int = 1):
        self.distance = distance if distance is not None else DTWDistance()
        self._n_threads = n_threads
        self._executor = None
        self._pool_size = 0
        self._interrupted = threading.Event()
        self.trainset = None
        self._distances = None
        self._neighbours = None
        self._k_neighbours = None

    @property
    def n_threads(self) -> int:
        return self._n_threads

    @n_threads.setter
    def n_threads(self, n: int):
        # the pool is resized on the next parallel computation
        self._n_threads = int(n)

    @property
    def distances(self) -> np.ndarray | None:
        return self._distances

    @distances.setter
    def distances(self, distances):
        self._distances = None if distances is None else np.asarray(distances, dtype=np.float64)

    @property
    def neighbours(self) -> np.ndarray | None:
        return self._neighbours

    @neighbours.setter
    def neighbours(self, neighbours):
        self._neighbours = None if neighbours is None else np.asarray(neighbours, dtype=np.int64)

    def _list_capacity(self) -> int:
        """Number of neighbours kept per query."""
        return 1

    def initialize(self, trainset: Sequence):
        """Bind the training set.

        Calling it again discards everything derived from the previous
        training set. If both the distance and the neighbour matrices are
        set, the sorted neighbour list of every series of the full dataset
        is precomputed from them.
        """
        self.trainset = trainset
        self._k_neighbours = None
        self._precompute_neighbours()

    def _precompute_neighbours(self):
        if self._neighbours is None or self._distances is None or not self.trainset:
            return
        members = {ts.index: ts for ts in self.trainset}
        capacity = min(self._list_capacity(), len(self.trainset))
        lists = []
        for index, row in enumerate(self._neighbours):
            neighbours = SortedList(capacity)
            for neighbour in row:
                if neighbours.count == capacity:
                    break
                ts = members.get(int(neighbour))
                if ts is not None:
                    # rows are sorted, so every node is appended at the end
                    neighbours.add(ts, self._matrix_distance(index, int(neighbour)))
            lists.append(neighbours)
        self._k_neighbours = lists
        logger.debug("Precomputed %d neighbour lists of capacity %d", len(lists), capacity)

    def _precomputed(self, series) -> SortedList | None:
        if self._k_neighbours is None or not 0 <= series.index < len(self._k_neighbours):
            return None
        return self._k_neighbours[series.index]

    def _matrix_distance(self, i: int, j: int) -> float:
        if j < i:
            i, j = j, i
        return float(self._distances[i, j])

    def interrupt(self):
        """Ask the running classification to stop.

        The classification raises `ClassificationInterruptedError` at its next
        check. A request only affects the classification running when it is
        made: every call to `classify` starts with the request cleared.
        """
        self._interrupted.set()

    def _raise_if_interrupted(self):
        if self._interrupted.is_set():
            raise ClassificationInterruptedError("Classification has been interrupted.")

    def _find_distances(self, series, trainset) -> list[float]:
        """Distances from `series` to every training series, in training set order."""
        n = thread_limit(self._n_threads)
        if n < 2 or self._distances is not None or len(trainset) == 1:
            return self._find_distances_sequential(series, trainset)

        self._executor, self._pool_size = init_executor(self._executor, self._pool_size, n)

        if not getattr(self.distance, 'storing', False):
            return self._fan_out(series, trainset, n)

        # only the distances not remembered yet are dispatched to the pool
        distances = [self.distance.recall(series, ts) for ts in trainset]
        missing = [i for i, d in enumerate(distances) if d is None]
        if len(missing) == 1:
            i = missing[0]
            distances[i] = self.distance.distance(series, trainset[i])
        elif len(missing) > 1:
            results = self._fan_out(series, [trainset[i] for i in missing], n)
            for i, d in zip(missing, results):
                distances[i] = d
        return distances

    def _find_distances_sequential(self, series, trainset) -> list[float]:
        use_matrix = self._distances is not None and series.index >= 0
        distances = []
        for ts in trainset:
            self._raise_if_interrupted()
            if use_matrix and ts.index >= 0:
                distances.append(self._matrix_distance(series.index, ts.index))
            else:
                distances.append(self.distance.distance(series, ts))
        return distances

    def _fan_out(self, series, dataset, n: int) -> list[float]:
        parts = Dataset(dataset).split(min(n, len(dataset)))
        logger.debug("Computing %d distances in %d parts", len(dataset), len(parts))
        tasks = [DistanceTask(self.distance, series, part, self._interrupted) for part in parts]
        distances = []
        for result in run_tasks(self._executor, tasks):
            distances.extend(result)
        return distances

    @abstractmethod
    def classify(self, series) -> float:
        """Label of `series`."""
        pass

    def predict(self, dataset: Sequence) -> np.ndarray:
        """Labels of every series in `dataset`."""
        return np.array([self.classify(ts) for ts in dataset], dtype=np.float64)

    def shutdown(self):
        """Shut the thread pool down. Safe to call more than once."""
        shutdown_executor(self._executor)
        self._executor = None
        self._pool_size = 0

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.shutdown()

    def _params(self) -> dict:
        distance = self.distance.copy() if hasattr(self.distance, 'copy') else self.distance
        return {'distance': distance, 'n_threads': self._n_threads}

    def copy(self):
        """Unbound copy with the same parameters and a copy of the distance measure.

        The precomputed matrices are shared with the copy.
        """
        clone = type(self)(**self._params())
        clone.distances = self._distances
        clone.neighbours = self._neighbours
        return clone

    def __repr__(self) -> str:
        args = ", ".join(f"{key}={value!r}" for key, value in self._params().items())
        return f"{type(self).__name__}({args})"


class KNNClassifier(NearestNeighbourBase):
    """k-nearest-neighbour classifier.

    Parameters
    ----------
    distance : Distance, optional
        The distance measure. Defaults to `DTWDistance()`.
    k : int, default=10
        Number of nearest neighbours, ``k >= 1``.
    weighting : Weighting, optional
        Voting scheme. Defaults to `MajorityVote()`.
    exclude : int, default=0
        Number of closest neighbours to ignore, ``0 <= exclude < k``. Useful
        to skip the query itself or its near-duplicates.
    n_threads : int, default=1
        Number of worker threads.

    Example
    -------
        >>> trainset = Dataset.from_arrays(X_train, y_train)
        >>> with KNNClassifier(SakoeChibaDTWDistance(r=10), k=3) as knn:
        ...     knn.initialize(trainset)
        ...     labels = knn.predict(testset)
    """

    def __init__(self, distance=None, k: int = 10, weighting: Weighting | None = None,
                 exclude: int = 0, n_threads: int = 1):
        super().__init__(distance, n_threads)
        self._weighting = weighting if weighting is not None else MajorityVote()
        self._k = 1
        self._exclude = 0
        self.k = k
        self.exclude = exclude

    @property
    def k(self) -> int:
        return self._k

    @k.setter
    def k(self, k: int):
        if k < 1:
            raise ValueError(f"Invalid parameter: k={k} must be >= 1.")
        if k <= self._exclude:
            warnings.warn(f"exclude={self._exclude} is not smaller than k={k}, resetting exclude to 0.")
            self._exclude = 0
        self._k = int(k)
        self._precompute_neighbours()

    @property
    def exclude(self) -> int:
        return self._exclude

    @exclude.setter
    def exclude(self, exclude: int):
        if exclude < 0:
            raise ValueError(f"Invalid parameter: exclude={exclude} must be >= 0.")
        if exclude >= self._k:
            raise ValueError(f"Invalid parameter: exclude={exclude} must be < k={self._k}.")
        self._exclude = int(exclude)

    @property
    def weighting(self) -> Weighting:
        return self._weighting

    def _list_capacity(self) -> int:
        return self._weighting.capacity(self._k)

    def classify(self, series) -> float:
        """Label of `series` voted by its nearest training series.

        Raises
        ------
        EmptyTrainingSetError
            If the training set is empty, or no neighbour remains after
            excluding the closest `exclude`.
        IncomparableLengthError
            If the measure requires equal lengths and the series differ.
        ClassificationInterruptedError
            If `interrupt()` was called.
        """
        check_not_empty(self.trainset)
        self._interrupted.clear()
        try:
            neighbours = self._precomputed(series)
            if neighbours is not None:
                neighbours = neighbours.copy()
            else:
                distances = self._find_distances(series, self.trainset)
                neighbours = SortedList(self._list_capacity())
                for ts, d in zip(self.trainset, distances):
                    neighbours.add(ts, d)
            self._raise_if_interrupted()
        except ClassificationInterruptedError:
            self._interrupted.clear()
            raise

        neighbours.remove(self._exclude)
        if len(neighbours) == 0:
            raise EmptyTrainingSetError(
                f"No neighbours left after excluding the {self._exclude} closest.")

        k = self._k - self._exclude
        if k <= 1:
            return neighbours.first.label
        return self._weighting(neighbours, k)

    def _weighting_params(self) -> dict:
        return {'weighting': self._weighting.copy()}

    def _params(self) -> dict:
        params = super()._params()
        params['k'] = self._k
        params['exclude'] = self._exclude
        params.update(self._weighting_params())
        return params


class RankKNNClassifier(KNNClassifier):
    """kNN with rank weights (k, k - 1, ..., 1)."""

    def __init__(self, distance=None, k: int = 10, exclude: int = 0, n_threads: int = 1):
        super().__init__(distance, k, RankWeighting(), exclude, n_threads)

    def _weighting_params(self) -> dict:
        return {}


class UniformKNNClassifier(KNNClassifier):
    """kNN with inverse rank weights (1, 1/2, 1/3, ...)."""

    def __init__(self, distance=None, k: int = 10, exclude: int = 0, n_threads: int = 1):
        super().__init__(distance, k, UniformWeighting(), exclude, n_threads)

    def _weighting_params(self) -> dict:
        return {}


class FibonacciKNNClassifier(KNNClassifier):
    """kNN with Fibonacci rank weights."""

    def __init__(self, distance=None, k: int = 10, exclude: int = 0, n_threads: int = 1):
        super().__init__(distance, k, FibonacciWeighting(), exclude, n_threads)

    def _weighting_params(self) -> dict:
        return {}


class InverseKNNClassifier(KNNClassifier):
    """kNN with inverse distance weights ``1 / (d + epsilon)``."""

    _scheme = InverseWeighting

    def __init__(self, distance=None, k: int = 10, epsilon: float | None = None,
                 exclude: int = 0, n_threads: int = 1):
        super().__init__(distance, k, self._scheme(epsilon), exclude, n_threads)

    @property
    def epsilon(self) -> float:
        return self._weighting.epsilon

    @epsilon.setter
    def epsilon(self, epsilon: float):
        self._weighting = self._scheme(epsilon)

    def _weighting_params(self) -> dict:
        return {'epsilon': self._weighting.epsilon}


class InverseSquaredKNNClassifier(InverseKNNClassifier):
    """kNN with inverse squared distance weights ``1 / (d**2 + epsilon)``."""

    _scheme = InverseSquaredWeighting


class DudaniKNNClassifier(KNNClassifier):
    """kNN with Dudani's distance weights."""

    def __init__(self, distance=None, k: int = 10, exclude: int = 0, n_threads: int = 1):
        super().__init__(distance, k, DudaniWeighting(), exclude, n_threads)

    def _weighting_params(self) -> dict:
        return {}


class MacleodKNNClassifier(KNNClassifier):
    """kNN with Macleod's distance weights.

    Keeps ``max(s, k)`` neighbours; the `s`-th one is the reference for the
    weights of the `k` voting ones.
    """

    def __init__(self, distance=None, k: int = 10, s: int | None = None, alpha: float = 1.0,
                 exclude: int = 0, n_threads: int = 1):
        super().__init__(distance, k, MacleodWeighting(s, alpha), exclude, n_threads)

    @property
    def s(self) -> int | None:
        return self._weighting.s

    @s.setter
    def s(self, s: int | None):
        self._weighting = MacleodWeighting(s, self._weighting.alpha)
        self._precompute_neighbours()

    @property
    def alpha(self) -> float:
        return self._weighting.alpha

    @alpha.setter
    def alpha(self, alpha: float):
        self._weighting = MacleodWeighting(self._weighting.s, alpha)

    def _weighting_params(self) -> dict:
        return {'s': self._weighting.s, 'alpha': self._weighting.alpha}


class ZavrelKNNClassifier(KNNClassifier):
    """kNN with Zavrel's exponential weights ``exp(-alpha * d**beta)``."""

    def __init__(self, distance=None, k: int = 10, alpha: float = 1.0, beta: float = 1.0,
                 exclude: int = 0, n_threads: int = 1):
        super().__init__(distance, k, ZavrelWeighting(alpha, beta), exclude, n_threads)

    @property
    def alpha(self) -> float:
        return self._weighting.alpha

    @alpha.setter
    def alpha(self, alpha: float):
        self._weighting = ZavrelWeighting(alpha, self._weighting.beta)

    @property
    def beta(self) -> float:
        return self._weighting.beta

    @beta.setter
    def beta(self, beta: float):
        self._weighting = ZavrelWeighting(self._weighting.alpha, beta)

    def _weighting_params(self) -> dict:
        return {'alpha': self._weighting.alpha, 'beta': self._weighting.beta}


class DualUniformKNNClassifier(KNNClassifier):
    """kNN with dual weights: Dudani's weights divided by the rank."""

    def __init__(self, distance=None, k: int = 10, exclude: int = 0, n_threads: int = 1):
        super().__init__(distance, k, DualUniformWeighting(), exclude, n_threads)

    def _weighting_params(self) -> dict:
        return {}


class DualDistanceKNNClassifier(KNNClassifier):
    """kNN with dual distance weights."""

    def __init__(self, distance=None, k: int = 10, exclude: int = 0, n_threads: int = 1):
        super().__init__(distance, k, DualDistanceWeighting(), exclude, n_threads)

    def _weighting_params(self) -> dict:
        return {}


class NNClassifier(NearestNeighbourBase):
    """1-nearest-neighbour classifier.

    Returns the label of the closest training series; among equally close
    series the first one in the training set wins.
    """

    def classify(self, series) -> float:
        check_not_empty(self.trainset)
        self._interrupted.clear()
        try:
            neighbours = self._precomputed(series)
            if neighbours is not None and neighbours.first is not None:
                return neighbours.first.label
            distances = self._find_distances(series, self.trainset)
            self._raise_if_interrupted()
        except ClassificationInterruptedError:
            self._interrupted.clear()
            raise

        best = 0
        for i in range(1, len(distances)):
            if distances[i] < distances[best]:
                best = i
        return self.trainset[best].label
