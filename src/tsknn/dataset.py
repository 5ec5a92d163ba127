import numpy as np
import pandas as pd
from typing import NamedTuple, Sequence, Iterable
from numpy.typing import ArrayLike


class DataPoint(NamedTuple):
    """A single point of a time series: time `x` and value `y`."""
    x: float
    y: float


class TimeSeries(object):
    """Ordered sequence of (x, y) points with a class label and an index.

    The `index` is the identity of the series inside the full dataset. It is
    used as a key by the distance memo cache and to look rows up in
    precomputed distance and neighbour matrices. A negative index means the
    series has no identity; its distances are never stored.

    Parameters
    ----------
    y : ArrayLike
        Values of the series.
    x : ArrayLike, optional
        Times of the points. If None, x = 0, 1, 2, ...
    label : float, default=0.0
        Class label.
    index : int, default=-1
        Position of the series in its dataset.

    Example
    -------
        >>> ts = TimeSeries([1.0, 2.0, 3.0], label=1, index=0)
        >>> len(ts), ts[1]
        (3, DataPoint(x=1.0, y=2.0))
    """

    __slots__ = ('x', 'y', 'label', 'index')

    def __init__(self, y: ArrayLike, x: ArrayLike | None = None,
                 label: float = 0.0, index: int = -1):
        y = np.asarray(y, dtype=np.float64)
        if y.ndim != 1:
            raise ValueError("Time series values must have shape (n,).")
        if x is None:
            x = np.arange(len(y), dtype=np.float64)
        else:
            x = np.asarray(x, dtype=np.float64)
            if x.shape != y.shape:
                raise ValueError(
                    f"x and y must have the same shape, got {x.shape} and {y.shape}.")
        self.x = x
        self.y = y
        self.label = float(label)
        self.index = int(index)

    def __len__(self) -> int:
        return len(self.y)

    def __getitem__(self, i: int) -> DataPoint:
        return DataPoint(float(self.x[i]), float(self.y[i]))

    def __iter__(self) -> Iterable[DataPoint]:
        for x, y in zip(self.x, self.y):
            yield DataPoint(float(x), float(y))

    def __repr__(self) -> str:
        return f"TimeSeries(len={len(self)}, label={self.label}, index={self.index})"


class Dataset(list):
    """An ordered collection of time series."""

    def split(self, n: int) -> list['Dataset']:
        """Split the dataset into `n` contiguous parts of near-equal size.

        Sizes differ by at most one, larger parts come first, and the
        original order of the series is preserved.

        Raises
        ------
        ValueError
            If ``n < 1`` or ``n > len(self)``.
        """
        size = len(self)
        if n < 1 or n > size:
            raise ValueError(f"n must be in the range [1..{size}], got {n}.")
        limit, remainder = divmod(size, n)
        parts = []
        start = 0
        for i in range(n):
            end = start + limit + (1 if i < remainder else 0)
            parts.append(Dataset(self[start:end]))
            start = end
        return parts

    def assign_indices(self, start: int = 0) -> 'Dataset':
        """Set the index of every member to its position (offset by `start`)."""
        for i, ts in enumerate(self):
            ts.index = start + i
        return self

    def labels(self) -> np.ndarray:
        return np.array([ts.label for ts in self], dtype=np.float64)

    @classmethod
    def from_arrays(cls, X: np.ndarray | Sequence[ArrayLike], y: ArrayLike | None = None,
                    assign_indices: bool = True) -> 'Dataset':
        """Build a dataset from a collection of value arrays.

        Parameters
        ----------
        X : np.ndarray or sequence of array_like
            2-D array (one series per row) or a sequence of 1-D arrays, which
            may differ in length.
        y : array_like, optional
            Class labels, one per series. Defaults to 0.
        assign_indices : bool, default=True
            Whether to number the series 0, 1, 2, ...

        Returns
        -------
        Dataset
        """
        if y is None:
            y = np.zeros(len(X))
        if len(y) != len(X):
            raise ValueError(f"Got {len(X)} series but {len(y)} labels.")
        dataset = cls(TimeSeries(values, label=label) for values, label in zip(X, y))
        if assign_indices:
            dataset.assign_indices()
        return dataset

    @classmethod
    def from_frame(cls, df: pd.DataFrame, label_column: str | None = None,
                   assign_indices: bool = True) -> 'Dataset':
        """Build a dataset from a DataFrame with one series per row.

        Every column except `label_column` holds values; NaN cells are
        dropped, so rows may encode series of different lengths.
        """
        if label_column is not None:
            labels = df[label_column].to_numpy(dtype=np.float64)
            values = df.drop(columns=[label_column])
        else:
            labels = np.zeros(len(df))
            values = df
        X = [row[~np.isnan(row)] for row in values.to_numpy(dtype=np.float64)]
        return cls.from_arrays(X, labels, assign_indices=assign_indices)

    def to_frame(self, label_column: str = 'label') -> pd.DataFrame:
        """Convert the dataset to a DataFrame with one series per row.

        Raises
        ------
        ValueError
            If the series are not all the same length.
        """
        lengths = {len(ts) for ts in self}
        if len(lengths) > 1:
            raise ValueError("All time series must be the same length.")
        df = pd.DataFrame([ts.y for ts in self], index=[ts.index for ts in self])
        df.insert(0, label_column, self.labels())
        return df
