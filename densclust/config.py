"""
全局默认参数
聚类器和工作池在未显式传参时使用的默认值
"""

# 聚类参数默认值
DEFAULT_EPS = 0.5
DEFAULT_MIN_SAMPLES = 5

# 噪声点标签
NOISE = -1

# 空间索引
DEFAULT_ALGORITHM = 'auto'
DEFAULT_LEAF_SIZE = 40
DEFAULT_METRIC = 'euclidean'

# 并行计算
DEFAULT_N_JOBS = 1
DEFAULT_BACKEND = 'thread'
DEFAULT_CHUNK_SIZE = 1000

# KDTree支持的度量方式
KD_TREE_METRICS = frozenset([
    'euclidean', 'l2', 'minkowski',
    'manhattan', 'cityblock', 'l1',
    'chebyshev', 'infinity',
])

# BallTree额外支持的度量方式（另外也接受可调用对象）
BALL_TREE_METRICS = KD_TREE_METRICS | frozenset([
    'haversine', 'canberra', 'braycurtis',
])

# 暴力搜索支持的度量方式，映射到scipy.spatial.distance中的名称
BRUTE_METRICS = {
    'euclidean': 'euclidean',
    'l2': 'euclidean',
    'manhattan': 'cityblock',
    'cityblock': 'cityblock',
    'l1': 'cityblock',
    'chebyshev': 'chebyshev',
    'infinity': 'chebyshev',
    'minkowski': 'minkowski',
    'canberra': 'canberra',
    'braycurtis': 'braycurtis',
    'cosine': 'cosine',
    'haversine': 'haversine',
}
