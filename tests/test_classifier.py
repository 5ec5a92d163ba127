import threading
import numpy as np
import pytest

from tsknn import config
from tsknn.classifier import (KNNClassifier, RankKNNClassifier, UniformKNNClassifier,
                              FibonacciKNNClassifier, InverseKNNClassifier,
                              InverseSquaredKNNClassifier, DudaniKNNClassifier,
                              MacleodKNNClassifier, ZavrelKNNClassifier,
                              DualUniformKNNClassifier, DualDistanceKNNClassifier, NNClassifier,
                              NearestNeighbourBase)
from tsknn.dataset import Dataset, TimeSeries
from tsknn.distance import Distance
from tsknn.exceptions import (EmptyTrainingSetError, ClassificationInterruptedError,
                              IncomparableLengthError)
from tsknn.matrix import distance_matrix, neighbour_matrix
from tsknn.pointwise import EuclideanDistance, WaveHedgesDistance
from tsknn.warping_distance import DTWDistance, SakoeChibaDTWDistance
from tsknn.weighting import RankWeighting


@pytest.fixture(autouse=True)
def reset_config():
    config.reset()
    config.set_global_thread_limit(4)
    yield
    config.reset()


class CountingDistance(Distance):
    """Euclidean distance that counts its computations."""

    def __init__(self, storing: bool = False):
        super().__init__(storing=storing)
        self.calls = 0
        self._lock = threading.Lock()

    def _compute(self, series1, series2) -> float:
        with self._lock:
            self.calls += 1
        return float(np.linalg.norm(series1.y - series2.y))


class FailingDistance(Distance):
    """Fails on the series with index `bad`."""

    def __init__(self, bad: int = 0, storing: bool = False):
        super().__init__(storing=storing)
        self.bad = bad

    def _compute(self, series1, series2) -> float:
        if series2.index == self.bad:
            raise RuntimeError("cannot compare")
        return float(np.linalg.norm(series1.y - series2.y))


def random_dataset(size=40, length=15, seed=0):
    rng = np.random.default_rng(seed)
    labels = rng.integers(0, 3, size=size)
    X = rng.normal(size=(size, length)) + labels[:, None]
    return Dataset.from_arrays(X, labels)


def points(values, labels):
    return Dataset.from_arrays([[v] for v in values], labels)


def test_unweighted_three_nearest():
    trainset = points([1, 2, 3], [0, 1, 1])
    knn = KNNClassifier(EuclideanDistance(), k=3)
    knn.initialize(trainset)
    assert knn.classify(TimeSeries([0.0])) == 1


def test_inverse_distance_example():
    trainset = points([0, 0.001, 0.002, 0.003], [1, 2, 2, 2])
    knn = InverseKNNClassifier(EuclideanDistance(), k=4, epsilon=0.001)
    knn.initialize(trainset)
    assert knn.classify(TimeSeries([0.0])) == 2


def test_exclude_skips_closest():
    trainset = points([0, 1, 2], [1, 2, 3])
    knn = KNNClassifier(EuclideanDistance(), k=3)
    knn.initialize(trainset)
    assert knn.classify(TimeSeries([0.0])) == 1
    knn.exclude = 1
    assert knn.classify(TimeSeries([0.0])) == 2


def test_single_remaining_neighbour():
    trainset = points([0, 1, 2], [1, 2, 3])
    knn = KNNClassifier(EuclideanDistance(), k=2, exclude=1)
    knn.initialize(trainset)
    assert knn.classify(TimeSeries([0.0])) == 2


def test_excluding_everything_raises():
    knn = KNNClassifier(EuclideanDistance(), k=3, exclude=2)
    knn.initialize(points([0, 1], [1, 2]))
    with pytest.raises(EmptyTrainingSetError):
        knn.classify(TimeSeries([0.0]))


def test_empty_trainset():
    knn = KNNClassifier(k=3)
    with pytest.raises(EmptyTrainingSetError):
        knn.classify(TimeSeries([0.0]))
    knn.initialize(Dataset())
    with pytest.raises(EmptyTrainingSetError):
        knn.classify(TimeSeries([0.0]))


def test_incomparable_lengths():
    knn = KNNClassifier(SakoeChibaDTWDistance(r=10), k=1)
    knn.initialize(points([0, 1], [1, 2]))
    with pytest.raises(IncomparableLengthError):
        knn.classify(TimeSeries([0.0, 1.0]))


def test_default_distance():
    assert isinstance(KNNClassifier().distance, DTWDistance)
    assert KNNClassifier().k == 10


def test_parameter_validation():
    with pytest.raises(ValueError):
        KNNClassifier(k=0)
    with pytest.raises(ValueError):
        KNNClassifier(k=3, exclude=3)
    with pytest.raises(ValueError):
        KNNClassifier(k=3, exclude=-1)


def test_smaller_k_resets_exclude():
    knn = KNNClassifier(k=5, exclude=3)
    with pytest.warns(UserWarning):
        knn.k = 3
    assert knn.exclude == 0
    assert knn.k == 3


def test_parallel_equals_sequential():
    dataset = random_dataset()
    trainset, testset = Dataset(dataset[:30]), Dataset(dataset[30:])
    sequential = KNNClassifier(SakoeChibaDTWDistance(r=20), k=5)
    sequential.initialize(trainset)
    with KNNClassifier(SakoeChibaDTWDistance(r=20), k=5, n_threads=4) as parallel:
        parallel.initialize(trainset)
        np.testing.assert_array_equal(sequential.predict(testset), parallel.predict(testset))


def test_parallel_nearest_neighbour():
    dataset = random_dataset(seed=3)
    trainset, testset = Dataset(dataset[:30]), Dataset(dataset[30:])
    sequential = NNClassifier(EuclideanDistance())
    sequential.initialize(trainset)
    with NNClassifier(EuclideanDistance(), n_threads=3) as parallel:
        parallel.initialize(trainset)
        np.testing.assert_array_equal(sequential.predict(testset), parallel.predict(testset))


def test_parallel_uses_stored_distances():
    dataset = random_dataset(size=20)
    distance = CountingDistance(storing=True)
    with KNNClassifier(distance, k=3, n_threads=4) as knn:
        knn.initialize(Dataset(dataset[:15]))
        first = [knn.classify(ts) for ts in dataset[15:]]
        calls = distance.calls
        assert calls == 5 * 15
        second = [knn.classify(ts) for ts in dataset[15:]]
        assert distance.calls == calls
        assert first == second


def test_parallel_failure_propagates():
    dataset = random_dataset(size=20)
    with KNNClassifier(FailingDistance(bad=7), k=3, n_threads=4) as knn:
        knn.initialize(dataset)
        with pytest.raises(RuntimeError, match="cannot compare"):
            knn.classify(TimeSeries(np.zeros(15)))
        # the pool stays usable
        knn.distance = EuclideanDistance()
        knn.classify(TimeSeries(np.zeros(15)))


class InterruptingDistance(Distance):
    """Interrupts its classifier while computing."""

    def __init__(self, classifier=None, storing=False):
        super().__init__(storing=storing)
        self.classifier = classifier

    def _compute(self, series1, series2):
        self.classifier.interrupt()
        return 0.0


def test_interrupt():
    knn = KNNClassifier(EuclideanDistance(), k=1)
    knn.distance = InterruptingDistance(knn)
    knn.initialize(points([0, 1], [1, 2]))
    with pytest.raises(ClassificationInterruptedError):
        knn.classify(TimeSeries([0.0]))
    # the request is cleared afterwards
    knn.distance = EuclideanDistance()
    assert knn.classify(TimeSeries([0.0])) == 1


def test_interrupt_between_calls_is_dropped():
    knn = KNNClassifier(EuclideanDistance(), k=1)
    knn.initialize(points([0, 1], [1, 2]))
    assert knn.classify(TimeSeries([0.0])) == 1
    knn.interrupt()
    assert knn.classify(TimeSeries([0.0])) == 1

    nn = NNClassifier(EuclideanDistance())
    nn.initialize(points([0, 1], [1, 2]))
    nn.interrupt()
    assert nn.classify(TimeSeries([2.0])) == 2


def test_interrupt_parallel():
    with NNClassifier(n_threads=2) as nn:
        nn.distance = InterruptingDistance(nn)
        nn.initialize(random_dataset(size=10))
        with pytest.raises(ClassificationInterruptedError):
            nn.classify(TimeSeries(np.zeros(15)))
        nn.distance = EuclideanDistance()
        nn.classify(TimeSeries(np.zeros(15)))


def test_precomputed_neighbours():
    dataset = random_dataset(size=30, seed=5)
    distances = distance_matrix(dataset, EuclideanDistance())
    neighbours = neighbour_matrix(distances)
    trainset = Dataset(dataset[:20])

    plain = KNNClassifier(EuclideanDistance(), k=4)
    plain.initialize(trainset)

    precomputed = KNNClassifier(CountingDistance(), k=4)
    precomputed.distances = distances
    precomputed.neighbours = neighbours
    precomputed.initialize(trainset)

    for ts in dataset:
        assert precomputed.classify(ts) == plain.classify(ts)
    assert precomputed.distance.calls == 0


def test_precomputed_lists_are_not_consumed():
    dataset = random_dataset(size=12, seed=6)
    distances = distance_matrix(dataset, EuclideanDistance())
    knn = KNNClassifier(EuclideanDistance(), k=3, exclude=1)
    knn.distances = distances
    knn.neighbours = neighbour_matrix(distances)
    knn.initialize(dataset)
    first = knn.classify(dataset[0])
    assert knn.classify(dataset[0]) == first
    assert len(knn._k_neighbours[0]) == 3


def test_precomputed_lists_follow_k():
    dataset = random_dataset(size=12, seed=6)
    distances = distance_matrix(dataset, EuclideanDistance())
    knn = KNNClassifier(EuclideanDistance(), k=3)
    knn.distances = distances
    knn.neighbours = neighbour_matrix(distances)
    knn.initialize(dataset)
    knn.k = 5
    assert knn._k_neighbours[0].capacity == 5


def test_distance_matrix_only():
    dataset = random_dataset(size=25, seed=7)
    trainset = Dataset(dataset[:15])
    distance = CountingDistance()
    knn = KNNClassifier(distance, k=3, n_threads=4)
    knn.distances = np.triu(distance_matrix(dataset, EuclideanDistance()))
    knn.initialize(trainset)
    plain = KNNClassifier(EuclideanDistance(), k=3)
    plain.initialize(trainset)
    for ts in dataset[15:]:
        assert knn.classify(ts) == plain.classify(ts)
    assert distance.calls == 0
    knn.shutdown()


def test_reinitialize_resets():
    knn = KNNClassifier(EuclideanDistance(), k=1)
    knn.initialize(points([0], [1]))
    assert knn.classify(TimeSeries([0.0])) == 1
    knn.initialize(points([0], [2]))
    assert knn.classify(TimeSeries([0.0])) == 2


def test_nearest_neighbour_first_minimum_wins():
    trainset = points([0, 2, 0], [1, 2, 3])
    nn = NNClassifier(EuclideanDistance())
    nn.initialize(trainset)
    assert nn.classify(TimeSeries([1.0])) == 1
    assert nn.classify(TimeSeries([0.0])) == 1
    assert nn.classify(TimeSeries([1.9])) == 2


def test_nearest_neighbour_empty():
    with pytest.raises(EmptyTrainingSetError):
        NNClassifier().classify(TimeSeries([0.0]))


def test_predict():
    trainset = points([0, 10], [1, 2])
    knn = KNNClassifier(EuclideanDistance(), k=1)
    knn.initialize(trainset)
    labels = knn.predict(points([1, 9, 4], [0, 0, 0]))
    assert isinstance(labels, np.ndarray)
    np.testing.assert_array_equal(labels, [1, 2, 1])


def test_shutdown_is_idempotent():
    knn = KNNClassifier(EuclideanDistance(), k=1, n_threads=2)
    knn.initialize(random_dataset(size=5))
    knn.classify(TimeSeries(np.zeros(15)))
    assert knn._executor is not None
    knn.shutdown()
    knn.shutdown()
    assert knn._executor is None


def test_pool_resized_with_n_threads():
    with KNNClassifier(EuclideanDistance(), k=1, n_threads=2) as knn:
        knn.initialize(random_dataset(size=6))
        knn.classify(TimeSeries(np.zeros(15)))
        pool = knn._executor
        knn.classify(TimeSeries(np.zeros(15)))
        assert knn._executor is pool
        knn.n_threads = 3
        knn.classify(TimeSeries(np.zeros(15)))
        assert knn._executor is not pool
        assert knn._pool_size == 3


def test_base_classifier_is_abstract():
    with pytest.raises(TypeError):
        NearestNeighbourBase()


@pytest.mark.parametrize("classifier", [
    KNNClassifier(EuclideanDistance(), k=4, weighting=RankWeighting(), exclude=1, n_threads=2),
    RankKNNClassifier(k=3),
    UniformKNNClassifier(k=3),
    FibonacciKNNClassifier(k=3),
    InverseKNNClassifier(k=3, epsilon=0.1),
    InverseSquaredKNNClassifier(k=3, epsilon=0.2),
    DudaniKNNClassifier(k=3),
    MacleodKNNClassifier(k=3, s=5, alpha=0.5),
    ZavrelKNNClassifier(k=3, alpha=2, beta=0.5),
    DualUniformKNNClassifier(k=3),
    DualDistanceKNNClassifier(k=3),
    NNClassifier(EuclideanDistance()),
], ids=lambda c: type(c).__name__)
def test_copy_keeps_variant_and_parameters(classifier):
    clone = classifier.copy()
    assert type(clone) is type(classifier)
    assert repr(clone) == repr(classifier)
    assert clone.distance is not classifier.distance
    if isinstance(classifier, KNNClassifier):
        assert clone.weighting == classifier.weighting
        assert clone.weighting is not classifier.weighting


def test_variant_parameters():
    knn = MacleodKNNClassifier(k=3, s=6, alpha=2)
    assert knn.s == 6 and knn.alpha == 2
    assert knn._list_capacity() == 6
    knn = ZavrelKNNClassifier(alpha=3, beta=2)
    knn.beta = 1.5
    assert knn.alpha == 3 and knn.beta == 1.5
    knn = InverseSquaredKNNClassifier()
    assert knn.epsilon == config.get_zero_denominator()
    with pytest.raises(ValueError):
        knn.epsilon = -1


@pytest.mark.parametrize("cls", [RankKNNClassifier, UniformKNNClassifier, FibonacciKNNClassifier,
                                 InverseKNNClassifier, InverseSquaredKNNClassifier,
                                 DudaniKNNClassifier, MacleodKNNClassifier, ZavrelKNNClassifier,
                                 DualUniformKNNClassifier, DualDistanceKNNClassifier])
def test_weighted_variants_classify_clusters(cls):
    trainset = points([0, 0.1, 0.2, 5, 5.1, 5.2], [1, 1, 1, 2, 2, 2])
    knn = cls(EuclideanDistance(), k=3)
    knn.initialize(trainset)
    np.testing.assert_array_equal(knn.predict(points([0.05, 5.05], [0, 0])), [1, 2])


def test_classify_does_not_look_configuration_up(monkeypatch):
    knn = KNNClassifier(WaveHedgesDistance(), k=3)
    knn.initialize(random_dataset(size=200))

    lookups = []
    lookup = config._lookup

    def counting(key, parse):
        lookups.append(key)
        return lookup(key, parse)

    monkeypatch.setattr(config, '_lookup', counting)
    monkeypatch.setattr(config, '_read_config_file', lambda key: pytest.fail("config file read"))
    knn.classify(TimeSeries(np.zeros(15)))
    # only the thread limit, once per classification
    assert lookups == ['THREAD_LIMIT']
