"""
聚类算法模块
包含DBSCAN、OPTICS以及它们共用的邻域索引和访问状态跟踪
"""

from .dbscan import DBSCAN, dbscan
from .neighbors import NeighborIndex, NeighborQueryResult
from .optics import OPTICS, OpticsResult, optics, optics_extract
from .tracker import VisitedTracker
from .utils import check_points, compute_distance_matrix, labels_to_clusters

__all__ = [
    'DBSCAN',
    'dbscan',
    'OPTICS',
    'OpticsResult',
    'optics',
    'optics_extract',
    'NeighborIndex',
    'NeighborQueryResult',
    'VisitedTracker',
    'check_points',
    'compute_distance_matrix',
    'labels_to_clusters'
]
