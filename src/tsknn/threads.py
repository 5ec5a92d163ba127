import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, Sequence

from tsknn import config
from tsknn.exceptions import ClassificationInterruptedError


logger = logging.getLogger(__name__)


def processor_count() -> int:
    return config.processor_count()


def thread_limit(n: int) -> int:
    """Number of threads to use when `n` are requested.

    Values ``<= 0`` are relative to the number of processors
    (``processors + n``, at least 1). The result never exceeds the global
    thread limit (see `tsknn.config.set_global_thread_limit`).
    """
    if n <= 0:
        n = max(processor_count() + n, 1)
    return max(min(n, config.get_global_thread_limit()), 1)


def init_executor(executor: ThreadPoolExecutor | None, size: int,
                  n: int) -> tuple[ThreadPoolExecutor, int]:
    """Return a pool of `n` worker threads and its size.

    `executor`, created earlier with `size` workers, is reused if `size`
    equals `n`, otherwise it is shut down (without waiting) and replaced.
    """
    if executor is not None:
        if size == n:
            return executor, size
        logger.debug("Resizing thread pool from %d to %d workers", size, n)
        executor.shutdown(wait=False)
    else:
        logger.debug("Creating thread pool with %d workers", n)
    return ThreadPoolExecutor(max_workers=n, thread_name_prefix='tsknn'), n


def shutdown_executor(executor: ThreadPoolExecutor | None, wait: bool = True):
    if executor is not None:
        executor.shutdown(wait=wait)


def run_tasks(executor: ThreadPoolExecutor,
              tasks: Sequence[Callable[[threading.Event], object]]) -> list:
    """Run `tasks` on the pool and return their results in submission order.

    Every task is called with the batch's poison event. The first task to
    fail sets it, so that siblings which have not started yet are skipped
    and running ones can stop early. Not-yet-started futures are cancelled,
    running ones are waited for, and the original exception is re-raised;
    partial results are discarded.
    """
    poison = threading.Event()

    def guarded(task):
        if poison.is_set():
            return None
        try:
            return task(poison)
        except BaseException:
            poison.set()
            raise

    futures = [executor.submit(guarded, task) for task in tasks]
    results = []
    try:
        for future in futures:
            results.append(future.result())
    except BaseException:
        poison.set()
        for future in futures:
            future.cancel()
        wait(futures)
        raise
    return results


class DistanceTask(object):
    """Distances from one query series to a contiguous part of the training set.

    Parameters
    ----------
    distance : Distance
        The measure to use.
    series : TimeSeries
        The query.
    dataset : Sequence[TimeSeries]
        The part of the training set handled by this task.
    cancel_event : threading.Event, optional
        Interruption flag of the owning classifier, checked before every
        element.
    """

    def __init__(self, distance, series, dataset, cancel_event: threading.Event | None = None):
        self.distance = distance
        self.series = series
        self.dataset = dataset
        self.cancel_event = cancel_event

    def __call__(self, poison: threading.Event | None = None) -> list[float] | None:
        distances = []
        for ts in self.dataset:
            if self.cancel_event is not None and self.cancel_event.is_set():
                raise ClassificationInterruptedError("Classification has been interrupted.")
            if poison is not None and poison.is_set():
                return None
            distances.append(self.distance.distance(self.series, ts))
        return distances
