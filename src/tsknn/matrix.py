import logging
import threading
import numpy as np
from typing import Sequence

from tsknn.threads import thread_limit, init_executor, shutdown_executor, run_tasks


logger = logging.getLogger(__name__)


class _RowTask(object):
    """Upper-triangle rows of the distance matrix for a set of row indices."""

    def __init__(self, distance, dataset, rows: Sequence[int]):
        self.distance = distance
        self.dataset = dataset
        self.rows = rows

    def __call__(self, poison: threading.Event) -> list[list[float]] | None:
        size = len(self.dataset)
        values = []
        for i in self.rows:
            if poison.is_set():
                return None
            values.append([self.distance.distance(self.dataset[i], self.dataset[j])
                           for j in range(i + 1, size)])
        return values


def distance_matrix(dataset: Sequence, distance, n_threads: int = 1) -> np.ndarray:
    """Compute the symmetric matrix of pairwise distances.

    Entry ``[i, j]`` is the distance between the i-th and j-th series of
    `dataset`. Each distance is computed once, for ``i < j``; the diagonal is
    zero. The result is indexed by position, so it can be passed to a
    classifier as its `distances` when the series are numbered by
    `Dataset.assign_indices()`.

    Parameters
    ----------
    dataset : Sequence[TimeSeries]
        The series to compare.
    distance : Distance
        The distance measure.
    n_threads : int, default=1
        Number of worker threads; rows are spread over them.

    Returns
    -------
    np.ndarray
        Array of shape (n, n).
    """
    size = len(dataset)
    matrix = np.zeros((size, size), dtype=np.float64)
    if size < 2:
        return matrix

    n = min(thread_limit(n_threads), size - 1)
    # interleave rows so that every part gets long and short ones
    parts = [list(range(i, size - 1, n)) for i in range(n)]
    tasks = [_RowTask(distance, dataset, part) for part in parts]

    if n < 2:
        results = [tasks[0](threading.Event())]
    else:
        logger.debug("Computing %dx%d distance matrix with %d threads", size, size, n)
        executor, _ = init_executor(None, 0, n)
        try:
            results = run_tasks(executor, tasks)
        finally:
            shutdown_executor(executor)

    for part, rows in zip(parts, results):
        for i, row in zip(part, rows):
            matrix[i, i + 1:] = row
            matrix[i + 1:, i] = row
    return matrix


def neighbour_matrix(distances: np.ndarray) -> np.ndarray:
    """For every row, the column indices sorted by ascending distance.

    The sort is stable, so equally distant series keep their index order.
    Only the upper triangle of `distances` is read.
    """
    distances = np.asarray(distances, dtype=np.float64)
    symmetric = np.triu(distances) + np.triu(distances, 1).T
    return np.argsort(symmetric, axis=1, kind='stable')
