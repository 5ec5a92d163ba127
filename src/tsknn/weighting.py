"""Voting schemes of the k-nearest-neighbour classifiers.

A weighting strategy turns a `SortedList` of neighbours (ascending distance)
into a label. Each neighbour contributes a weight to its label; the label
with the largest accumulated weight wins. Ties go to the label that reached
the winning weight first while scanning from the closest neighbour.
"""
import math
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Sequence

from tsknn import config
from tsknn.neighbours import DistanceNode, SortedList


def vote(nodes: Sequence[DistanceNode], weights: Sequence[float]) -> float:
    """Label with the largest accumulated weight.

    The best label is replaced only when another label's accumulated weight
    becomes strictly greater, so the first label seen keeps ties.
    """
    totals = {}
    best_label = None
    best_weight = None
    for node, weight in zip(nodes, weights):
        label = node.label
        total = totals.get(label, 0) + weight
        totals[label] = total
        if best_weight is None or total > best_weight:
            best_label = label
            best_weight = total
    return best_label


@lru_cache(maxsize=None)
def fibonacci_weights(count: int) -> tuple:
    """Fibonacci weights for `count` ranks, largest first: (..., 3, 2, 1, 1)."""
    weights = [1] * count
    for i in range(count - 3, -1, -1):
        weights[i] = weights[i + 1] + weights[i + 2]
    return tuple(weights)


class Weighting(ABC):
    """Base class of the voting schemes."""

    def __call__(self, neighbours: SortedList, k: int) -> float:
        nodes = list(neighbours)[:k]
        if not nodes:
            raise ValueError("Cannot vote without neighbours.")
        return vote(nodes, self.weights(nodes, neighbours))

    @abstractmethod
    def weights(self, nodes: list[DistanceNode], neighbours: SortedList) -> Sequence[float]:
        """Weight of each of the voting `nodes`."""
        pass

    def capacity(self, k: int) -> int:
        """Number of neighbours the scheme needs to vote among `k`."""
        return k

    def _params(self) -> dict:
        return {}

    def copy(self) -> 'Weighting':
        return type(self)(**self._params())

    def __eq__(self, other) -> bool:
        return type(self) is type(other) and self._params() == other._params()

    def __repr__(self) -> str:
        args = ", ".join(f"{key}={value!r}" for key, value in self._params().items())
        return f"{type(self).__name__}({args})"


class MajorityVote(Weighting):
    """Every neighbour has weight 1."""

    def weights(self, nodes, neighbours):
        return [1] * len(nodes)


class RankWeighting(Weighting):
    """Linearly decreasing weights: count, count - 1, ..., 1."""

    def weights(self, nodes, neighbours):
        count = len(nodes)
        return [count - rank for rank in range(count)]


class UniformWeighting(Weighting):
    """Inverse rank: 1, 1/2, 1/3, ..."""

    def weights(self, nodes, neighbours):
        return [1 / position for position in range(1, len(nodes) + 1)]


class FibonacciWeighting(Weighting):
    """Fibonacci numbers in decreasing order, the last two neighbours weighing 1."""

    def weights(self, nodes, neighbours):
        return fibonacci_weights(len(nodes))


class InverseWeighting(Weighting):
    """Inverse distance: ``1 / (d + epsilon)``.

    Parameters
    ----------
    epsilon : float, optional
        Added to the distances to avoid division by zero, ``epsilon >= 0``.
        Defaults to the configured zero denominator. With ``epsilon = 0`` an
        exact match has infinite weight.
    """

    def __init__(self, epsilon: float | None = None):
        if epsilon is None:
            epsilon = config.get_zero_denominator()
        if epsilon < 0:
            raise ValueError(f"Invalid parameter: epsilon={epsilon} must be >= 0.")
        self.epsilon = float(epsilon)

    def _transform(self, distance: float) -> float:
        return distance

    def weights(self, nodes, neighbours):
        weights = []
        for node in nodes:
            denominator = self._transform(node.distance) + self.epsilon
            weights.append(math.inf if denominator == 0 else 1 / denominator)
        return weights

    def _params(self) -> dict:
        return {'epsilon': self.epsilon}


class InverseSquaredWeighting(InverseWeighting):
    """Inverse squared distance: ``1 / (d**2 + epsilon)``."""

    def _transform(self, distance: float) -> float:
        return distance * distance


class DistanceRangeWeighting(Weighting):
    """Schemes scaled by the spread between the closest and the farthest
    neighbour. They fall back to majority voting if all distances are equal."""

    def weights(self, nodes, neighbours):
        first = neighbours.first.distance
        last = neighbours.last.distance
        diff = last - first
        if diff == 0:
            return [1] * len(nodes)
        return self.scaled_weights(nodes, first, last, diff)

    @abstractmethod
    def scaled_weights(self, nodes, first: float, last: float, diff: float) -> Sequence[float]:
        pass


class DudaniWeighting(DistanceRangeWeighting):
    """Dudani's weights: ``(d_k - d) / (d_k - d_1)``."""

    def scaled_weights(self, nodes, first, last, diff):
        return [(last - node.distance) / diff for node in nodes]


class MacleodWeighting(DistanceRangeWeighting):
    """Macleod's weights: ``(d_s - d + alpha*(d_s - d_1)) / ((1 + alpha)*(d_s - d_1))``.

    The farthest distance is taken at the `s`-th neighbour, which may lie
    beyond the `k` voting neighbours.

    Parameters
    ----------
    s : int, optional
        Rank of the reference neighbour, ``s >= 1``. Defaults to `k`; values
        below `k` act as `k`.
    alpha : float, default=1
        ``alpha >= 0``.
    """

    def __init__(self, s: int | None = None, alpha: float = 1.0):
        if s is not None and s < 1:
            raise ValueError(f"Invalid parameter: s={s} must be >= 1.")
        if alpha < 0:
            raise ValueError(f"Invalid parameter: alpha={alpha} must be >= 0.")
        self.s = s
        self.alpha = float(alpha)

    def capacity(self, k: int) -> int:
        return k if self.s is None else max(self.s, k)

    def scaled_weights(self, nodes, first, last, diff):
        shift = self.alpha * diff
        scale = (1 + self.alpha) * diff
        return [(last - node.distance + shift) / scale for node in nodes]

    def _params(self) -> dict:
        return {'s': self.s, 'alpha': self.alpha}


class ZavrelWeighting(Weighting):
    """Exponential decay: ``exp(-alpha * d**beta)``."""

    def __init__(self, alpha: float = 1.0, beta: float = 1.0):
        if alpha < 0:
            raise ValueError(f"Invalid parameter: alpha={alpha} must be >= 0.")
        if beta < 0:
            raise ValueError(f"Invalid parameter: beta={beta} must be >= 0.")
        self.alpha = float(alpha)
        self.beta = float(beta)

    def weights(self, nodes, neighbours):
        return [math.exp(-self.alpha * node.distance ** self.beta) for node in nodes]

    def _params(self) -> dict:
        return {'alpha': self.alpha, 'beta': self.beta}


class DualUniformWeighting(DistanceRangeWeighting):
    """Dudani's weights divided by the rank of the neighbour."""

    def scaled_weights(self, nodes, first, last, diff):
        return [(last - node.distance) / (rank * diff)
                for rank, node in enumerate(nodes, start=1)]


class DualDistanceWeighting(DistanceRangeWeighting):
    """Dudani's weights times ``(d_k + d_1) / (d_k + d)``."""

    def scaled_weights(self, nodes, first, last, diff):
        return [((last - node.distance) / diff) * ((last + first) / (last + node.distance))
                for node in nodes]
