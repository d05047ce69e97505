import numpy as np
import pytest

from densclust import (
    DBSCAN,
    OPTICS,
    DensClustError,
    InvalidParameterError,
    NonFiniteInputError,
    ShapeMismatchError,
    dbscan,
    labels_to_clusters,
    optics,
)
from densclust.clustering.utils import check_points


@pytest.mark.parametrize("eps", [0, -1.0, np.nan, np.inf, "wide", None, True])
def test_dbscan_rejects_bad_eps(line_points, eps):
    with pytest.raises(InvalidParameterError):
        dbscan(line_points, eps=eps, min_samples=2)


@pytest.mark.parametrize("min_samples", [0, -3, 1.5, True, "5"])
def test_rejects_bad_min_samples(line_points, min_samples):
    with pytest.raises(InvalidParameterError):
        dbscan(line_points, eps=1.0, min_samples=min_samples)
    with pytest.raises(InvalidParameterError):
        optics(line_points, min_samples=min_samples)


@pytest.mark.parametrize("max_eps", [0, -2.0, np.nan])
def test_optics_rejects_bad_max_eps(line_points, max_eps):
    with pytest.raises(InvalidParameterError):
        optics(line_points, min_samples=2, max_eps=max_eps)


def test_numpy_integer_min_samples_accepted(line_points):
    labels = dbscan(line_points, eps=1.5, min_samples=np.int64(2))

    assert labels.tolist() == [0, 0, 0, -1]


@pytest.mark.parametrize("points", [
    [[0.0, 1.0], [1.0]],
    [1.0, 2.0, 3.0],
    np.zeros((2, 2, 2)),
    np.zeros((3, 0)),
])
def test_shape_mismatch(points):
    with pytest.raises(ShapeMismatchError):
        dbscan(points, eps=1.0, min_samples=1)


@pytest.mark.parametrize("bad", [np.nan, np.inf, -np.inf])
def test_non_finite_input(line_points, bad):
    points = line_points.copy()
    points[2, 1] = bad

    with pytest.raises(NonFiniteInputError):
        dbscan(points, eps=1.0, min_samples=2)
    with pytest.raises(NonFiniteInputError):
        optics(points, min_samples=2)


def test_errors_share_base_and_value_error():
    for error in (InvalidParameterError, ShapeMismatchError, NonFiniteInputError):
        assert issubclass(error, DensClustError)
        assert issubclass(error, ValueError)


def test_failed_fit_leaves_no_partial_results(line_points):
    model = DBSCAN(eps=-1.0, min_samples=2)
    with pytest.raises(InvalidParameterError):
        model.fit(line_points)
    assert model.labels_ is None

    model = OPTICS(min_samples=2)
    bad = line_points.copy()
    bad[0, 0] = np.nan
    with pytest.raises(NonFiniteInputError):
        model.fit(bad)
    assert model.ordering_ is None


@pytest.mark.parametrize("kwargs", [
    {"metric": "not-a-metric"},
    {"algorithm": "octree"},
    {"n_jobs": 0},
    {"backend": "gpu"},
    {"chunk_size": 0},
    {"leaf_size": 0},
])
def test_invalid_options(line_points, kwargs):
    with pytest.raises(InvalidParameterError):
        dbscan(line_points, eps=1.0, min_samples=2, **kwargs)


def test_check_points_converts_sequences():
    points = check_points([(1, 2), (3, 4)])

    assert points.dtype == np.float64
    assert points.shape == (2, 2)
    assert check_points([]).shape == (0, 0)
    assert check_points(np.empty((0, 3))).shape == (0, 3)


def test_labels_to_clusters():
    clusters, outliers = labels_to_clusters(np.array([1, 0, -1, 0, 1, -1]))

    assert clusters == {1: [0, 4], 0: [1, 3]}
    assert outliers == [2, 5]
