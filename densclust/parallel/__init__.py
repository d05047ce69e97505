"""
并行计算模块
核心距离表和邻域查询的并行分发
"""

from .queries import compute_core_distances, compute_neighborhoods
from .workers import ChunkTask, WorkerPool

__all__ = [
    'ChunkTask',
    'WorkerPool',
    'compute_core_distances',
    'compute_neighborhoods'
]
