"""
邻域查询
在点集上构建空间索引，提供半径查询和k近邻查询
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import numpy as np
from sklearn.neighbors import BallTree, KDTree

from ..config import (
    BALL_TREE_METRICS,
    DEFAULT_ALGORITHM,
    DEFAULT_LEAF_SIZE,
    DEFAULT_METRIC,
    KD_TREE_METRICS,
)
from ..exceptions import IndexOutOfRangeError, InvalidParameterError, ShapeMismatchError
from .utils import Metric, check_metric, check_points, check_positive_int, compute_distance_matrix

ALGORITHMS = ('auto', 'kd_tree', 'ball_tree', 'brute')


@dataclass
class NeighborQueryResult:
    """邻域查询结果，按距离升序排列，距离相同时按点索引排列"""
    indices: np.ndarray
    distances: np.ndarray

    def __len__(self) -> int:
        return len(self.indices)


def _sorted_result(indices: np.ndarray, distances: np.ndarray) -> NeighborQueryResult:
    indices = np.asarray(indices, dtype=np.int64)
    distances = np.asarray(distances, dtype=np.float64)
    order = np.lexsort((indices, distances))
    return NeighborQueryResult(indices=indices[order], distances=distances[order])


class NeighborIndex:
    """只读的邻域索引，构建一次后可在多个线程/进程间共享"""

    def __init__(self, points, metric: Metric = DEFAULT_METRIC,
                 algorithm: str = DEFAULT_ALGORITHM, leaf_size: int = DEFAULT_LEAF_SIZE,
                 metric_params: Optional[Dict] = None):
        """
        构建邻域索引

        Args:
            points: 形状为(n_samples, n_features)的点集
            metric: 距离度量方式名称或可调用对象
            algorithm: 'auto'、'kd_tree'、'ball_tree' 或 'brute'
            leaf_size: 树结构的叶子大小
            metric_params: 传给度量函数的额外参数
        """
        self.points = check_points(points)
        self.metric = check_metric(metric)
        self.metric_params = dict(metric_params or {})
        self.leaf_size = check_positive_int(leaf_size, 'leaf_size')
        self.n_points, self.n_features = self.points.shape

        if self.metric == 'haversine' and self.n_points > 0 and self.n_features != 2:
            raise ShapeMismatchError("haversine距离只适用于[纬度, 经度]二维数据")

        self.algorithm = self._resolve_algorithm(algorithm)
        self.tree = self._build_tree()

    def _resolve_algorithm(self, algorithm: str) -> str:
        if algorithm not in ALGORITHMS:
            raise InvalidParameterError(f"不支持的索引方法: {algorithm!r}")

        if self.n_points == 0:
            return 'brute'

        named = isinstance(self.metric, str)

        if algorithm == 'auto':
            if named and self.metric in KD_TREE_METRICS:
                return 'kd_tree'
            if not named or self.metric in BALL_TREE_METRICS:
                return 'ball_tree'
            return 'brute'

        if algorithm == 'kd_tree' and not (named and self.metric in KD_TREE_METRICS):
            raise InvalidParameterError(f"KDTree不支持度量方式: {self.metric!r}")

        if algorithm == 'ball_tree' and named and self.metric not in BALL_TREE_METRICS:
            raise InvalidParameterError(f"BallTree不支持度量方式: {self.metric!r}")

        return algorithm

    def _build_tree(self):
        if self.algorithm == 'kd_tree':
            return KDTree(self.points, leaf_size=self.leaf_size, metric=self.metric,
                          **self.metric_params)
        if self.algorithm == 'ball_tree':
            return BallTree(self.points, leaf_size=self.leaf_size, metric=self.metric,
                            **self.metric_params)
        return None

    def _check_indices(self, point_indices: Iterable[int]) -> np.ndarray:
        idx = np.asarray(point_indices, dtype=np.int64).reshape(-1)
        if idx.size and (idx.min() < 0 or idx.max() >= self.n_points):
            bad = idx[(idx < 0) | (idx >= self.n_points)][0]
            raise IndexOutOfRangeError(f"点索引 {bad} 超出范围 [0, {self.n_points})")
        return idx

    def _pairwise(self, idx: np.ndarray) -> np.ndarray:
        return compute_distance_matrix(self.points[idx], self.points,
                                       metric=self.metric, metric_params=self.metric_params)

    def range_query_many(self, point_indices: Iterable[int],
                         radius: float) -> List[NeighborQueryResult]:
        """
        批量半径查询

        Args:
            point_indices: 查询点的索引
            radius: 查询半径，距离 <= radius 的点都会返回（包括查询点自身）

        Returns:
            每个查询点对应一个NeighborQueryResult
        """
        idx = self._check_indices(point_indices)
        if idx.size == 0:
            return []

        if np.isinf(radius):
            # 半径无界时退化为全体点按距离排序
            return self.knn_query_many(idx, self.n_points)

        if self.tree is not None:
            ind, dist = self.tree.query_radius(self.points[idx], r=radius,
                                               return_distance=True)
            return [_sorted_result(i, d) for i, d in zip(ind, dist)]

        results = []
        for row in self._pairwise(idx):
            candidates = np.flatnonzero(row <= radius)
            results.append(_sorted_result(candidates, row[candidates]))
        return results

    def knn_query_many(self, point_indices: Iterable[int],
                       k: int) -> List[NeighborQueryResult]:
        """
        批量k近邻查询，点数不足k时返回全部点
        """
        idx = self._check_indices(point_indices)
        k = min(check_positive_int(k, 'k'), self.n_points)
        if idx.size == 0:
            return []

        if self.tree is not None:
            dist, ind = self.tree.query(self.points[idx], k=k)
            return [_sorted_result(i, d) for i, d in zip(ind, dist)]

        results = []
        for row in self._pairwise(idx):
            order = np.lexsort((np.arange(self.n_points), row))[:k]
            results.append(NeighborQueryResult(indices=order.astype(np.int64),
                                               distances=row[order]))
        return results

    def kth_neighbor_distance(self, point_indices: Iterable[int], k: int) -> np.ndarray:
        """
        批量计算到第k个最近邻（包括自身）的距离

        Returns:
            距离数组；点集中不足k个点时为inf
        """
        idx = self._check_indices(point_indices)
        k = check_positive_int(k, 'k')

        if k > self.n_points:
            return np.full(idx.size, np.inf)
        if idx.size == 0:
            return np.empty(0)

        if self.tree is not None:
            dist, _ = self.tree.query(self.points[idx], k=k)
            return dist[:, -1]

        return np.partition(self._pairwise(idx), k - 1, axis=1)[:, k - 1]

    def range_query(self, point_idx: int, radius: float,
                    include_self: bool = True) -> NeighborQueryResult:
        """
        查找指定点邻域内的所有点

        Args:
            point_idx: 目标点的索引
            radius: 邻域半径
            include_self: 结果中是否保留查询点自身

        Returns:
            按距离升序排列的邻域点
        """
        result = self.range_query_many([point_idx], radius)[0]
        if include_self:
            return result

        keep = result.indices != point_idx
        return NeighborQueryResult(indices=result.indices[keep], distances=result.distances[keep])

    def knn_query(self, point_idx: int, k: int,
                  include_self: bool = True) -> NeighborQueryResult:
        """
        查找指定点的k个最近邻

        Args:
            point_idx: 目标点的索引
            k: 近邻数量
            include_self: 为False时查询点自身不计入k个近邻

        Returns:
            按距离升序排列的近邻；点数不足时返回全部可用的点
        """
        if include_self:
            return self.knn_query_many([point_idx], k)[0]

        result = self.knn_query_many([point_idx], k + 1)[0]
        keep = result.indices != point_idx
        indices, distances = result.indices[keep], result.distances[keep]
        return NeighborQueryResult(indices=indices[:k], distances=distances[:k])
