"""
聚类工具函数
提供输入校验、距离计算和标签整理等通用函数
"""

import math
from numbers import Integral
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from numba import jit, prange
from scipy.spatial.distance import cdist

from ..config import BRUTE_METRICS, NOISE
from ..exceptions import (
    InvalidParameterError,
    NonFiniteInputError,
    ShapeMismatchError,
)

Metric = Union[str, Callable[[np.ndarray, np.ndarray], float]]


def check_points(points) -> np.ndarray:
    """
    校验并转换输入点集

    Args:
        points: 形状为(n_samples, n_features)的数组或由等长序列组成的序列

    Returns:
        C连续的float64二维数组；空点集返回形状为(0, d)的数组

    Raises:
        ShapeMismatchError: 维度不一致或不是二维数据
        NonFiniteInputError: 存在NaN或无穷大
    """
    if isinstance(points, np.ndarray):
        array = points
    else:
        rows = list(points)
        if not rows:
            return np.empty((0, 0), dtype=np.float64)

        try:
            lengths = {len(row) for row in rows}
        except TypeError:
            raise ShapeMismatchError("每个点必须是坐标序列") from None

        if len(lengths) != 1:
            raise ShapeMismatchError(f"点的维度不一致: {sorted(lengths)}")

        array = np.asarray(rows, dtype=np.float64)

    if array.ndim != 2:
        if array.size == 0:
            return np.empty((0, 0), dtype=np.float64)
        raise ShapeMismatchError(f"点集必须是二维数组，实际维数为 {array.ndim}")

    if array.shape[0] == 0:
        return np.empty((0, array.shape[1]), dtype=np.float64)

    if array.shape[1] == 0:
        raise ShapeMismatchError("点的维度不能为0")

    array = np.ascontiguousarray(array, dtype=np.float64)

    if not np.all(np.isfinite(array)):
        n_bad = int(np.sum(~np.isfinite(array).all(axis=1)))
        raise NonFiniteInputError(f"有 {n_bad} 个点包含NaN或无穷大坐标")

    return array


def check_eps(eps, name: str = 'eps', allow_inf: bool = False) -> float:
    """
    校验邻域半径

    Args:
        eps: 邻域半径
        name: 参数名称，用于错误信息
        allow_inf: 是否允许无穷大（OPTICS的max_eps）

    Returns:
        float类型的半径
    """
    if isinstance(eps, bool):
        raise InvalidParameterError(f"{name} 必须是正数，实际为 {eps!r}")

    try:
        value = float(eps)
    except (TypeError, ValueError):
        raise InvalidParameterError(f"{name} 必须是正数，实际为 {eps!r}") from None

    if math.isnan(value) or value <= 0:
        raise InvalidParameterError(f"{name} 必须大于0，实际为 {eps!r}")

    if math.isinf(value) and not allow_inf:
        raise InvalidParameterError(f"{name} 必须是有限值")

    return value


def check_positive_int(value, name: str) -> int:
    """校验正整数参数（min_samples、chunk_size等）"""
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise InvalidParameterError(f"{name} 必须是整数，实际为 {value!r}")
    if value < 1:
        raise InvalidParameterError(f"{name} 必须 >= 1，实际为 {value}")
    return int(value)


def check_metric(metric: Metric) -> Metric:
    """校验距离度量方式"""
    if callable(metric):
        return metric
    if isinstance(metric, str) and metric in BRUTE_METRICS:
        return metric
    raise InvalidParameterError(f"不支持的度量方式: {metric!r}")


def compute_distance_matrix(points: np.ndarray, other: Optional[np.ndarray] = None,
                            metric: Metric = 'euclidean',
                            metric_params: Optional[Dict] = None) -> np.ndarray:
    """
    计算距离矩阵

    Args:
        points: 形状为(n_a, n_features)的数组
        other: 形状为(n_b, n_features)的数组，默认与points相同
        metric: 距离度量方式或可调用对象
        metric_params: 传给度量函数的额外参数（如minkowski的p）

    Returns:
        距离矩阵，形状为(n_a, n_b)
    """
    if other is None:
        other = points
    params = metric_params or {}

    if metric == 'haversine':
        if points.shape[1] != 2 or other.shape[1] != 2:
            raise ShapeMismatchError("haversine距离只适用于[纬度, 经度]二维数据")
        return _haversine_distance_matrix(points, other)

    if callable(metric):
        return cdist(points, other, metric=metric, **params)

    return cdist(points, other, metric=BRUTE_METRICS[metric], **params)


@jit(nopython=True, parallel=True)
def _haversine_distance_matrix(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    使用Numba加速的Haversine距离矩阵计算

    Args:
        a: 形状为(n_a, 2)的数组，[latitude, longitude]，单位为弧度
        b: 形状为(n_b, 2)的数组

    Returns:
        单位球面上的大圆距离（弧度）
    """
    n_a = a.shape[0]
    n_b = b.shape[0]
    distance_matrix = np.zeros((n_a, n_b))

    for i in prange(n_a):
        for j in range(n_b):
            dlat = b[j, 0] - a[i, 0]
            dlon = b[j, 1] - a[i, 1]

            h = math.sin(dlat / 2) ** 2 + math.cos(a[i, 0]) * math.cos(b[j, 0]) * math.sin(dlon / 2) ** 2
            distance_matrix[i, j] = 2.0 * math.asin(math.sqrt(min(1.0, h)))

    return distance_matrix


def labels_to_clusters(labels: Sequence[int]) -> Tuple[Dict[int, List[int]], List[int]]:
    """
    把标签数组整理为聚类成员表

    Args:
        labels: 每个点的聚类标签，噪声为NOISE

    Returns:
        (聚类ID到点索引列表的映射, 噪声点索引列表)，索引均按升序排列
    """
    clusters: Dict[int, List[int]] = {}
    outliers: List[int] = []

    for idx, label in enumerate(labels):
        if label == NOISE:
            outliers.append(idx)
        else:
            clusters.setdefault(int(label), []).append(idx)

    return clusters, outliers


def cluster_stats(labels: Optional[np.ndarray], core_sample_indices: Optional[np.ndarray],
                  execution_time: float) -> dict:
    """
    计算聚类统计信息

    Args:
        labels: 聚类标签
        core_sample_indices: 核心点索引
        execution_time: 聚类耗时（秒）

    Returns:
        包含聚类统计信息的字典
    """
    if labels is None:
        return {}

    unique_labels = np.unique(labels)
    stats = {
        'n_clusters': int(np.sum(unique_labels != NOISE)),
        'n_noise': int(np.sum(labels == NOISE)),
        'n_core_points': len(core_sample_indices) if core_sample_indices is not None else 0,
        'execution_time': execution_time,
        'cluster_sizes': {}
    }

    for label in unique_labels:
        if label != NOISE:  # 跳过噪声点
            stats['cluster_sizes'][int(label)] = int(np.sum(labels == label))

    return stats
