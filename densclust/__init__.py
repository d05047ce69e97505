"""
densclust
基于密度的聚类：DBSCAN和OPTICS
"""

from .clustering import (
    DBSCAN,
    OPTICS,
    NeighborIndex,
    OpticsResult,
    dbscan,
    labels_to_clusters,
    optics,
    optics_extract,
)
from .config import NOISE
from .exceptions import (
    DensClustError,
    IndexOutOfRangeError,
    InvalidParameterError,
    NonFiniteInputError,
    ShapeMismatchError,
)

__version__ = '0.1.0'

__all__ = [
    'DBSCAN',
    'OPTICS',
    'NeighborIndex',
    'OpticsResult',
    'dbscan',
    'optics',
    'optics_extract',
    'labels_to_clusters',
    'NOISE',
    'DensClustError',
    'InvalidParameterError',
    'ShapeMismatchError',
    'NonFiniteInputError',
    'IndexOutOfRangeError'
]
