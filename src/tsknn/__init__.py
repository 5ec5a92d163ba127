__version__ = "0.1.0"

# Data
from .dataset import TimeSeries, Dataset, DataPoint
from .exceptions import (
    IncomparableLengthError,
    EmptyTrainingSetError,
    ClassificationInterruptedError
)

# Elastic Distances
from .warping_distance import (
    dtw,
    DTWDistance,
    SakoeChibaDTWDistance,
    ItakuraDTWDistance,
    LCSDistance,
    SakoeChibaLCSDistance,
    ItakuraLCSDistance,
    ERPDistance,
    SakoeChibaERPDistance,
    ItakuraERPDistance,
    TWEDDistance,
    SakoeChibaTWEDDistance,
    ItakuraTWEDDistance,
    EDRDistance,
    SakoeChibaEDRDistance,
    ItakuraEDRDistance
)
from .distance import Distance, MatrixDistance
from .pointwise import EuclideanDistance, ManhattanDistance, MinkowskiDistance

# Classifiers
from .classifier import (
    KNNClassifier,
    RankKNNClassifier,
    UniformKNNClassifier,
    FibonacciKNNClassifier,
    InverseKNNClassifier,
    InverseSquaredKNNClassifier,
    DudaniKNNClassifier,
    MacleodKNNClassifier,
    ZavrelKNNClassifier,
    DualUniformKNNClassifier,
    DualDistanceKNNClassifier,
    NNClassifier
)

# Precomputation
from .matrix import distance_matrix, neighbour_matrix

__all__ = [
    "TimeSeries",
    "Dataset",
    "DataPoint",
    "IncomparableLengthError",
    "EmptyTrainingSetError",
    "ClassificationInterruptedError",
    "dtw",
    "DTWDistance",
    "SakoeChibaDTWDistance",
    "ItakuraDTWDistance",
    "LCSDistance",
    "SakoeChibaLCSDistance",
    "ItakuraLCSDistance",
    "ERPDistance",
    "SakoeChibaERPDistance",
    "ItakuraERPDistance",
    "TWEDDistance",
    "SakoeChibaTWEDDistance",
    "ItakuraTWEDDistance",
    "EDRDistance",
    "SakoeChibaEDRDistance",
    "ItakuraEDRDistance",
    "Distance",
    "MatrixDistance",
    "EuclideanDistance",
    "ManhattanDistance",
    "MinkowskiDistance",
    "KNNClassifier",
    "RankKNNClassifier",
    "UniformKNNClassifier",
    "FibonacciKNNClassifier",
    "InverseKNNClassifier",
    "InverseSquaredKNNClassifier",
    "DudaniKNNClassifier",
    "MacleodKNNClassifier",
    "ZavrelKNNClassifier",
    "DualUniformKNNClassifier",
    "DualDistanceKNNClassifier",
    "NNClassifier",
    "distance_matrix",
    "neighbour_matrix",
]
