import os
import sys

import numpy as np
import pytest

# Ensure the project root is on sys.path so tests can import `densclust`
# when running directly from the repository without installing it.
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)


def _same_partition(labels_a, labels_b) -> bool:
    """True when both labelings give the same noise set and the same clusters up to renaming."""
    labels_a = np.asarray(labels_a)
    labels_b = np.asarray(labels_b)
    if labels_a.shape != labels_b.shape:
        return False
    if not np.array_equal(labels_a == -1, labels_b == -1):
        return False

    mapping = {}
    reverse = {}
    for a, b in zip(labels_a[labels_a != -1], labels_b[labels_b != -1]):
        if mapping.setdefault(int(a), int(b)) != b:
            return False
        if reverse.setdefault(int(b), int(a)) != a:
            return False
    return True


@pytest.fixture
def same_partition():
    return _same_partition


@pytest.fixture
def line_points():
    # Three points one unit apart plus a far outlier.
    return np.array([[0.0, 0.0], [0.0, 1.0], [0.0, 2.0], [10.0, 10.0]])


@pytest.fixture
def grid_clusters():
    """Two dense 5x5 grids (spacing 0.5) and three isolated outliers."""
    xs, ys = np.meshgrid(np.arange(5) * 0.5, np.arange(5) * 0.5)
    grid = np.column_stack([xs.ravel(), ys.ravel()])
    outliers = np.array([[20.0, 20.0], [-20.0, 5.0], [5.0, -20.0]])
    points = np.vstack([grid, grid + 10.0, outliers])
    rng = np.random.default_rng(7)
    return points[rng.permutation(len(points))]
