"""
OPTICS实现
按可达距离排序遍历点集，生成可达图并从中提取DBSCAN等价的聚类
"""

import heapq
import time
import warnings
from typing import Dict, List, NamedTuple, Optional, Tuple

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
from ..exceptions import ShapeMismatchError
from ..parallel.queries import compute_core_distances
from ..parallel.workers import WorkerPool
from .neighbors import NeighborIndex
from .tracker import VisitedTracker
from .utils import (
    Metric,
    check_eps,
    check_metric,
    check_points,
    check_positive_int,
    cluster_stats,
    labels_to_clusters,
)


class OpticsResult(NamedTuple):
    """OPTICS可达图"""
    ordering: np.ndarray
    reachability: np.ndarray
    core_distances: np.ndarray
    predecessor: np.ndarray


class OPTICS:
    """OPTICS聚类算法"""

    def __init__(self, min_samples: int = DEFAULT_MIN_SAMPLES, max_eps: float = np.inf,
                 metric: Metric = DEFAULT_METRIC, eps: Optional[float] = None,
                 algorithm: str = DEFAULT_ALGORITHM, leaf_size: int = DEFAULT_LEAF_SIZE,
                 metric_params: Optional[Dict] = None, n_jobs: int = DEFAULT_N_JOBS,
                 backend: str = DEFAULT_BACKEND, chunk_size: int = DEFAULT_CHUNK_SIZE,
                 verbose: bool = False):
        """
        初始化OPTICS参数

        Args:
            min_samples: 核心点的最小邻居数（包括点自身）
            max_eps: 最大邻域半径，默认无界
            metric: 距离度量方式名称或可调用对象
            eps: fit之后提取扁平聚类所用的阈值；None时使用max_eps，
                 max_eps无界时使用DEFAULT_EPS
            algorithm: 邻域索引方法
            leaf_size: 树结构的叶子大小
            metric_params: 传给度量函数的额外参数
            n_jobs: 计算核心距离表的并行工作者数，-1表示使用所有CPU核心
            backend: 并行后端，'thread' 或 'process'
            chunk_size: 每个并行任务处理的点数
            verbose: 是否打印运行信息
        """
        self.min_samples = min_samples
        self.max_eps = max_eps
        self.metric = metric
        self.eps = eps
        self.algorithm = algorithm
        self.leaf_size = leaf_size
        self.metric_params = metric_params
        self.n_jobs = n_jobs
        self.backend = backend
        self.chunk_size = chunk_size
        self.verbose = verbose

        self.ordering_ = None
        self.reachability_ = None
        self.core_distances_ = None
        self.predecessor_ = None
        self.labels_ = None
        self.core_sample_indices_ = None
        self.execution_time = 0
        self.pool_stats_ = {}

    def _extraction_eps(self) -> float:
        if self.eps is not None:
            return check_eps(self.eps)
        if np.isinf(self.max_eps):
            return DEFAULT_EPS
        return float(self.max_eps)

    def fit(self, points) -> 'OPTICS':
        """
        执行OPTICS排序并按eps提取扁平聚类

        Args:
            points: 形状为(n_samples, n_features)的点集

        Returns:
            self: 返回聚类器实例
        """
        min_samples = check_positive_int(self.min_samples, 'min_samples')
        max_eps = check_eps(self.max_eps, name='max_eps', allow_inf=True)
        eps = self._extraction_eps()
        check_metric(self.metric)
        pool = WorkerPool(n_jobs=self.n_jobs, backend=self.backend,
                          chunk_size=self.chunk_size, verbose=self.verbose)
        points = check_points(points)

        start_time = time.time()
        n_samples = points.shape[0]

        if 0 < n_samples < min_samples:
            warnings.warn(f"min_samples({min_samples})大于点数({n_samples})，所有点都将被视为噪声")
        _warn_if_above_max_eps(eps, max_eps)

        index = NeighborIndex(points, metric=self.metric, algorithm=self.algorithm,
                              leaf_size=self.leaf_size, metric_params=self.metric_params)

        core_distances = compute_core_distances(index, min_samples, max_eps, pool)
        self.pool_stats_ = pool.get_pool_stats()

        ordering, reachability, predecessor = self._compute_ordering(index, core_distances, max_eps)

        self.ordering_ = ordering
        self.reachability_ = reachability
        self.core_distances_ = core_distances
        self.predecessor_ = predecessor
        self.core_sample_indices_ = np.flatnonzero(np.isfinite(core_distances))
        self.labels_ = optics_extract(ordering, reachability, core_distances, eps)
        self.execution_time = time.time() - start_time

        if self.verbose:
            print(f"OPTICS完成: {n_samples} 个点, {len(self.core_sample_indices_)} 个核心点, "
                  f"耗时 {self.execution_time:.4f} 秒")

        return self

    def fit_predict(self, points) -> np.ndarray:
        """执行聚类并返回标签"""
        return self.fit(points).labels_

    @staticmethod
    def _compute_ordering(index: NeighborIndex, core_distances: np.ndarray,
                          max_eps: float) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        按可达距离顺序遍历所有点

        可达距离更新使用带惰性删除的最小堆：更新时直接压入新条目，
        弹出时跳过已处理的点和已过期的条目。堆条目按(可达距离, 点索引)排序。

        Args:
            index: 邻域索引
            core_distances: 核心距离表，未定义为inf
            max_eps: 扩展时的查询半径

        Returns:
            (处理顺序, 可达距离, 前驱点)
        """
        n_samples = index.n_points
        reachability = np.full(n_samples, np.inf)
        predecessor = np.full(n_samples, -1, dtype=np.int64)
        ordering = np.empty(n_samples, dtype=np.int64)
        processed = VisitedTracker(n_samples)
        n_ordered = 0

        # 只从核心点出发遍历，非核心点只能经由核心点到达
        for start in np.flatnonzero(np.isfinite(core_distances)):
            if processed.is_set(start):
                continue

            seeds: List[Tuple[float, int]] = [(np.inf, int(start))]

            while seeds:
                reach, point_idx = heapq.heappop(seeds)
                if processed.is_set(point_idx) or reach > reachability[point_idx]:
                    continue

                processed.set(point_idx)
                ordering[n_ordered] = point_idx
                n_ordered += 1

                core_distance = core_distances[point_idx]
                if np.isinf(core_distance):
                    continue

                neighbors = index.range_query(point_idx, max_eps)
                for neighbor_idx, distance in zip(neighbors.indices, neighbors.distances):
                    if processed.is_set(neighbor_idx):
                        continue

                    new_reach = max(core_distance, distance)
                    if new_reach < reachability[neighbor_idx]:
                        reachability[neighbor_idx] = new_reach
                        predecessor[neighbor_idx] = point_idx
                        heapq.heappush(seeds, (new_reach, int(neighbor_idx)))

        # 没有被任何核心点到达的点按索引顺序追加，可达距离保持inf
        for point_idx in range(n_samples):
            if not processed.test_and_set(point_idx):
                ordering[n_ordered] = point_idx
                n_ordered += 1

        return ordering, reachability, predecessor

    def extract_dbscan(self, eps: float) -> np.ndarray:
        """
        在已有的可达图上按新的阈值提取扁平聚类，不重新查询邻域

        eps == max_eps 时结果与DBSCAN完全一致；eps < max_eps 时核心点和噪声点一致，
        但边界点可能被标为噪声（见optics_extract）。

        Args:
            eps: 聚类阈值

        Returns:
            标签数组
        """
        self._check_fitted()
        _warn_if_above_max_eps(check_eps(eps), float(self.max_eps))
        return optics_extract(self.ordering_, self.reachability_, self.core_distances_, eps)

    def extract_clusters_and_outliers(self, eps: float) -> Tuple[Dict[int, List[int]], List[int]]:
        """
        按阈值提取聚类成员表

        Args:
            eps: 聚类阈值

        Returns:
            (聚类ID到点索引列表的映射, 噪声点索引列表)
        """
        return labels_to_clusters(self.extract_dbscan(eps))

    def _check_fitted(self) -> None:
        if self.ordering_ is None:
            raise RuntimeError("OPTICS尚未执行fit")

    def get_cluster_stats(self) -> dict:
        """
        获取聚类统计信息

        Returns:
            包含聚类统计信息的字典
        """
        return cluster_stats(self.labels_, self.core_sample_indices_, self.execution_time)

    def get_performance_stats(self) -> dict:
        """获取性能统计信息"""
        stats = self.get_cluster_stats()
        stats.update({
            'n_jobs': self.n_jobs,
            'backend': self.backend,
            'chunk_size': self.chunk_size,
            'pool': self.pool_stats_
        })
        return stats


def _warn_if_above_max_eps(eps: float, max_eps: float) -> None:
    if eps > max_eps:
        warnings.warn(f"提取阈值eps({eps})大于max_eps({max_eps})，提取结果与DBSCAN不等价")


def optics(points, min_samples: int = DEFAULT_MIN_SAMPLES, max_eps: float = np.inf,
           metric: Metric = DEFAULT_METRIC, **options) -> OpticsResult:
    """
    OPTICS排序的函数式入口

    Args:
        points: 形状为(n_samples, n_features)的点集
        min_samples: 核心点的最小邻居数（包括点自身），必须 >= 1
        max_eps: 最大邻域半径，默认无界
        metric: 距离度量方式
        **options: 传给OPTICS的其他参数（algorithm、n_jobs等）

    Returns:
        OpticsResult(ordering, reachability, core_distances, predecessor)，
        未定义的距离为inf
    """
    model = OPTICS(min_samples=min_samples, max_eps=max_eps, metric=metric, **options).fit(points)
    return OpticsResult(
        ordering=model.ordering_,
        reachability=model.reachability_,
        core_distances=model.core_distances_,
        predecessor=model.predecessor_,
    )


def optics_extract(ordering, reachability, core_distances, eps: float) -> np.ndarray:
    """
    从可达图中提取与DBSCAN等价的扁平聚类

    按处理顺序扫描：可达距离未定义或大于eps的点，如果自身核心距离 <= eps 则开始一个新聚类，
    否则为噪声；其余点归入当前聚类。

    eps 等于生成可达图时的 max_eps 时，结果与同参数的DBSCAN划分完全相同。
    eps 小于 max_eps 时，核心点的划分和DBSCAN的噪声点仍然一致，但非核心的边界点
    可能在能以 <= eps 的距离到达它的核心点之前被处理，此时它的可达距离大于eps，
    会被标为噪声，而DBSCAN会把它归入该核心点的聚类。eps 大于 max_eps 时结果没有意义。

    Args:
        ordering: 处理顺序（点索引的排列）
        reachability: 按点索引排列的可达距离，未定义为inf
        core_distances: 按点索引排列的核心距离，未定义为inf
        eps: 聚类阈值，必须大于0

    Returns:
        长度为n_samples的标签数组，噪声为-1
    """
    eps = check_eps(eps)
    ordering = np.asarray(ordering, dtype=np.int64).reshape(-1)
    reachability = np.asarray(reachability, dtype=np.float64).reshape(-1)
    core_distances = np.asarray(core_distances, dtype=np.float64).reshape(-1)

    n_samples = len(ordering)
    if len(reachability) != n_samples or len(core_distances) != n_samples:
        raise ShapeMismatchError(
            f"ordering({n_samples})、reachability({len(reachability)})、"
            f"core_distances({len(core_distances)})长度不一致")

    if n_samples and not np.array_equal(np.sort(ordering), np.arange(n_samples)):
        raise ShapeMismatchError("ordering 必须是 0..n_samples-1 的一个排列")

    labels = np.full(n_samples, NOISE, dtype=np.int64)
    cluster_id = -1

    for point_idx in ordering:
        if reachability[point_idx] > eps:
            if core_distances[point_idx] <= eps:
                cluster_id += 1
                labels[point_idx] = cluster_id
        elif cluster_id >= 0:
            labels[point_idx] = cluster_id

    return labels
