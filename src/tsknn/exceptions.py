class IncomparableLengthError(ValueError):
    """Raised when two time series must be the same length but are not."""


class EmptyTrainingSetError(ValueError):
    """Raised when a classifier has no training data to compare against."""


class ClassificationInterruptedError(InterruptedError):
    """Raised when a classification is cancelled via ``interrupt()``."""


def check_length(series1, series2) -> int:
    """Return the common length of two series.

    Raises
    ------
    IncomparableLengthError
        If the series differ in length.
    """
    len1, len2 = len(series1), len(series2)
    if len1 != len2:
        raise IncomparableLengthError(
            f"Time series must be the same length (got {len1} and {len2}).")
    return len1


def check_not_empty(dataset):
    if dataset is None or len(dataset) == 0:
        raise EmptyTrainingSetError("The training set cannot be empty.")
