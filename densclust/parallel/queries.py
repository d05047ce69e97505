"""
并行邻域计算
核心距离表和邻域预取，每个数据块只写自己的那一段结果
"""

from typing import List, Optional

import numpy as np

from ..clustering.neighbors import NeighborIndex
from .workers import WorkerPool


def _core_distance_chunk(index: NeighborIndex, start: int, end: int,
                         min_samples: int) -> np.ndarray:
    """
    计算一个数据块的核心距离（工作者函数）

    Args:
        index: 邻域索引
        start: 数据块起始索引
        end: 数据块结束索引
        min_samples: 核心点的最小邻居数（包括自身）

    Returns:
        该块内每个点到第min_samples个最近邻的距离
    """
    return index.kth_neighbor_distance(np.arange(start, end), min_samples)


def _neighborhood_chunk(index: NeighborIndex, start: int, end: int,
                        radius: float) -> List[np.ndarray]:
    """计算一个数据块内每个点的半径邻域（工作者函数）"""
    return [result.indices for result in index.range_query_many(np.arange(start, end), radius)]


def compute_core_distances(index: NeighborIndex, min_samples: int,
                           max_eps: float = np.inf,
                           pool: Optional[WorkerPool] = None) -> np.ndarray:
    """
    构建核心距离表

    Args:
        index: 邻域索引
        min_samples: 核心点的最小邻居数（包括自身）
        max_eps: 最大邻域半径，超过该值的核心距离视为未定义
        pool: 工作池，None表示串行计算

    Returns:
        形状为(n_samples,)的数组，未定义的核心距离为inf
    """
    pool = pool or WorkerPool()
    core_distances = np.full(index.n_points, np.inf)

    for task in pool.map_chunks(_core_distance_chunk, index.n_points, index, min_samples):
        core_distances[task.start:task.end] = task.result

    core_distances[core_distances > max_eps] = np.inf
    return core_distances


def compute_neighborhoods(index: NeighborIndex, radius: float,
                          pool: Optional[WorkerPool] = None) -> List[np.ndarray]:
    """
    预取所有点的半径邻域

    Args:
        index: 邻域索引
        radius: 邻域半径
        pool: 工作池，None表示串行计算

    Returns:
        按点索引排列的邻居索引数组列表（包括点自身）
    """
    pool = pool or WorkerPool()
    neighborhoods: List[Optional[np.ndarray]] = [None] * index.n_points

    for task in pool.map_chunks(_neighborhood_chunk, index.n_points, index, radius):
        neighborhoods[task.start:task.end] = task.result

    return neighborhoods

