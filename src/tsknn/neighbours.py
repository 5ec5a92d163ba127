from typing import Iterator


class DistanceNode(object):
    """A neighbour: a time series and its distance to the query."""

    __slots__ = ('series', 'distance', 'prev', 'next')

    def __init__(self, series, distance: float):
        self.series = series
        self.distance = distance
        self.prev = None
        self.next = None

    @property
    def label(self) -> float:
        return self.series.label

    def __repr__(self) -> str:
        return f"DistanceNode({self.series!r}, distance={self.distance})"


class SortedList(object):
    """Bounded list of neighbours in ascending order of distance.

    A doubly linked list holding at most `capacity` nodes. Once full, a new
    neighbour is inserted only if it is strictly closer than the farthest
    one, which is then dropped. Neighbours at equal distance keep the order
    in which they were added.

    Parameters
    ----------
    capacity : int
        Maximum number of neighbours. A list of capacity < 1 stays empty.

    Example
    -------
        >>> neighbours = SortedList(2)
        >>> neighbours.add(a, 3.0); neighbours.add(b, 1.0); neighbours.add(c, 2.0)
        >>> [node.distance for node in neighbours]
        [1.0, 2.0]
    """

    def __init__(self, capacity: int):
        self._capacity = capacity
        self._count = 0
        self._first = None
        self._last = None

    @property
    def first(self) -> DistanceNode | None:
        return self._first

    @property
    def last(self) -> DistanceNode | None:
        return self._last

    @property
    def count(self) -> int:
        return self._count

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> Iterator[DistanceNode]:
        node = self._first
        while node is not None:
            yield node
            node = node.next

    def add(self, series, distance: float):
        """Insert a neighbour if there is room for it or it beats the farthest one."""
        if self._capacity < 1:
            return

        if self._count == 0:
            node = DistanceNode(series, distance)
            self._first = self._last = node
            self._count = 1
            return

        if distance >= self._last.distance:
            if self._count == self._capacity:
                return
            node = DistanceNode(series, distance)
            node.prev = self._last
            self._last.next = node
            self._last = node
            self._count += 1
            return

        # insert in front of the first strictly farther node
        following = self._first
        while distance >= following.distance:
            following = following.next

        node = DistanceNode(series, distance)
        node.prev = following.prev
        node.next = following
        if following.prev is None:
            self._first = node
        else:
            following.prev.next = node
        following.prev = node

        if self._count == self._capacity:
            dropped = self._last
            self._last = dropped.prev
            self._last.next = None
            dropped.prev = None
        else:
            self._count += 1

    def pop(self) -> DistanceNode | None:
        """Remove and return the closest neighbour, or None if the list is empty."""
        node = self._first
        if node is None:
            return None
        self._first = node.next
        if self._first is None:
            self._last = None
        else:
            self._first.prev = None
        node.next = None
        self._count -= 1
        return node

    def remove(self, n: int) -> 'SortedList':
        """Remove the `n` closest neighbours and return them as a new list."""
        removed = SortedList(max(n, 0))
        while n > 0 and self._count > 0:
            node = self.pop()
            removed.add(node.series, node.distance)
            n -= 1
        return removed

    def copy(self) -> 'SortedList':
        """Shallow copy: new nodes, same series."""
        duplicate = SortedList(self._capacity)
        for node in self:
            duplicate.add(node.series, node.distance)
        return duplicate

    def __repr__(self) -> str:
        return f"SortedList(capacity={self._capacity}, count={self._count})"
