"""
DBSCAN实现
经典的密度聚类算法，邻域查询可选地由工作池并行预取
"""

import time
from collections import deque
from typing import Callable, Dict, Optional

import numpy as np

from ..config import (
    DEFAULT_ALGORITHM,
    DEFAULT_BACKEND,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_EPS,
    DEFAULT_LEAF_SIZE,
    DEFAULT_METRIC,
    DEFAULT_MIN_SAMPLES,
    DEFAULT_N_JOBS,
    NOISE,
)
from ..parallel.queries import compute_neighborhoods
from ..parallel.workers import WorkerPool
from .neighbors import NeighborIndex
from .tracker import VisitedTracker
from .utils import Metric, check_eps, check_metric, check_points, check_positive_int, cluster_stats


class DBSCAN:
    """DBSCAN聚类算法"""

    def __init__(self, eps: float = DEFAULT_EPS, min_samples: int = DEFAULT_MIN_SAMPLES,
                 metric: Metric = DEFAULT_METRIC, algorithm: str = DEFAULT_ALGORITHM,
                 leaf_size: int = DEFAULT_LEAF_SIZE, metric_params: Optional[Dict] = None,
                 n_jobs: int = DEFAULT_N_JOBS, backend: str = DEFAULT_BACKEND,
                 chunk_size: int = DEFAULT_CHUNK_SIZE, verbose: bool = False):
        """
        初始化DBSCAN参数

        Args:
            eps: 邻域半径
            min_samples: 核心点的最小邻居数（包括点自身）
            metric: 距离度量方式名称或可调用对象
            algorithm: 邻域索引方法，'auto'、'kd_tree'、'ball_tree' 或 'brute'
            leaf_size: 树结构的叶子大小
            metric_params: 传给度量函数的额外参数
            n_jobs: 预取邻域时的并行工作者数，1表示按需串行查询，-1表示使用所有CPU核心
            backend: 并行后端，'thread' 或 'process'
            chunk_size: 每个并行任务处理的点数
            verbose: 是否打印运行信息
        """
        self.eps = eps
        self.min_samples = min_samples
        self.metric = metric
        self.algorithm = algorithm
        self.leaf_size = leaf_size
        self.metric_params = metric_params
        self.n_jobs = n_jobs
        self.backend = backend
        self.chunk_size = chunk_size
        self.verbose = verbose

        self.labels_ = None
        self.core_sample_indices_ = None
        self.components_ = None
        self.execution_time = 0
        self.pool_stats_ = {}

    def fit(self, points) -> 'DBSCAN':
        """
        执行DBSCAN聚类

        Args:
            points: 形状为(n_samples, n_features)的点集

        Returns:
            self: 返回聚类器实例
        """
        eps = check_eps(self.eps)
        min_samples = check_positive_int(self.min_samples, 'min_samples')
        check_metric(self.metric)
        pool = WorkerPool(n_jobs=self.n_jobs, backend=self.backend,
                          chunk_size=self.chunk_size, verbose=self.verbose)
        points = check_points(points)

        start_time = time.time()
        n_samples = points.shape[0]

        index = NeighborIndex(points, metric=self.metric, algorithm=self.algorithm,
                              leaf_size=self.leaf_size, metric_params=self.metric_params)

        if pool.n_workers > 1 and n_samples > 0:
            # 并行预取所有点的邻域，聚类扩展本身仍然串行
            neighborhoods = compute_neighborhoods(index, eps, pool)
            find_neighbors = neighborhoods.__getitem__
            self.pool_stats_ = pool.get_pool_stats()
        else:
            def find_neighbors(point_idx: int) -> np.ndarray:
                return index.range_query(point_idx, eps).indices

        labels = np.full(n_samples, NOISE, dtype=np.int64)
        is_core = np.zeros(n_samples, dtype=bool)
        visited = VisitedTracker(n_samples)
        cluster_id = 0

        for i in range(n_samples):
            if visited.test_and_set(i):
                continue

            neighbors = find_neighbors(i)

            if len(neighbors) < min_samples:
                # 暂时标记为噪声，之后可能作为边界点被某个聚类吸收
                continue

            # 发现核心点，开始新的聚类
            labels[i] = cluster_id
            is_core[i] = True

            self._expand_cluster(find_neighbors, labels, is_core, visited,
                                 neighbors, cluster_id, min_samples)

            cluster_id += 1

        if self.verbose:
            print(f"DBSCAN完成: {n_samples} 个点, {cluster_id} 个聚类, "
                  f"{int(np.sum(labels == NOISE))} 个噪声点")

        # 保存结果
        self.labels_ = labels
        self.core_sample_indices_ = np.flatnonzero(is_core)
        self.components_ = points[self.core_sample_indices_]
        self.execution_time = time.time() - start_time

        return self

    def fit_predict(self, points) -> np.ndarray:
        """执行聚类并返回标签"""
        return self.fit(points).labels_

    @staticmethod
    def _expand_cluster(find_neighbors: Callable[[int], np.ndarray], labels: np.ndarray,
                        is_core: np.ndarray, visited: VisitedTracker, seeds: np.ndarray,
                        cluster_id: int, min_samples: int) -> None:
        """
        从种子点扩展聚类

        Args:
            find_neighbors: 返回某点邻域索引的函数
            labels: 标签数组
            is_core: 核心点标记
            visited: 访问状态
            seeds: 初始种子点（核心点的邻域）
            cluster_id: 当前聚类ID
            min_samples: 核心点的最小邻居数
        """
        queue = deque(seeds)

        while queue:
            point_idx = queue.popleft()

            if labels[point_idx] == NOISE:  # 之前标记为噪声的点作为边界点重新标记
                labels[point_idx] = cluster_id
            elif labels[point_idx] != cluster_id:  # 已属于更早发现的聚类
                continue

            if visited.test_and_set(point_idx):
                continue

            neighbors = find_neighbors(point_idx)

            if len(neighbors) >= min_samples:
                # 如果是核心点，将其尚未归属任何聚类的邻居加入种子队列
                is_core[point_idx] = True
                queue.extend(n for n in neighbors if labels[n] == NOISE)

    def get_cluster_stats(self) -> dict:
        """
        获取聚类统计信息

        Returns:
            包含聚类统计信息的字典
        """
        return cluster_stats(self.labels_, self.core_sample_indices_, self.execution_time)

    def get_performance_stats(self) -> dict:
        """
        获取性能统计信息

        Returns:
            性能统计字典
        """
        stats = self.get_cluster_stats()
        stats.update({
            'n_jobs': self.n_jobs,
            'backend': self.backend,
            'chunk_size': self.chunk_size,
            'pool': self.pool_stats_
        })
        return stats


def dbscan(points, eps: float, min_samples: int, metric: Metric = DEFAULT_METRIC,
           **options) -> np.ndarray:
    """
    DBSCAN聚类的函数式入口

    Args:
        points: 形状为(n_samples, n_features)的点集
        eps: 邻域半径，必须大于0
        min_samples: 核心点的最小邻居数（包括点自身），必须 >= 1
        metric: 距离度量方式
        **options: 传给DBSCAN的其他参数（algorithm、n_jobs等）

    Returns:
        长度为n_samples的标签数组，噪声为-1
    """
    return DBSCAN(eps=eps, min_samples=min_samples, metric=metric, **options).fit_predict(points)
