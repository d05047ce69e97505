import numpy as np
import pytest

from densclust.clustering.neighbors import NeighborIndex
from densclust.exceptions import InvalidParameterError
from densclust.parallel.queries import compute_core_distances
from densclust.parallel.workers import TaskStatus, WorkerPool


def _chunk_sum(shared, start, end, offset):
    return float(shared[start:end].sum()) + offset


def _failing_chunk(shared, start, end):
    raise ValueError(f"chunk {start}:{end} failed")


def test_partition_covers_range_contiguously():
    pool = WorkerPool(chunk_size=1000)

    assert pool.partition(2500) == [(0, 1000), (1000, 2000), (2000, 2500)]
    assert pool.partition(0) == []


@pytest.mark.parametrize("n_jobs", [1, 2, 4])
def test_map_chunks_returns_results_in_chunk_order(n_jobs):
    values = np.arange(100, dtype=float)
    pool = WorkerPool(n_jobs=n_jobs, chunk_size=10)

    tasks = pool.map_chunks(_chunk_sum, len(values), values, 0.5)

    assert [(t.start, t.end) for t in tasks] == pool.partition(100)
    assert [t.result for t in tasks] == [values[s:e].sum() + 0.5 for s, e in pool.partition(100)]
    assert all(t.status is TaskStatus.COMPLETED for t in tasks)
    assert all(t.duration is not None for t in tasks)


def test_worker_exceptions_propagate():
    pool = WorkerPool(n_jobs=2, chunk_size=5)

    with pytest.raises(ValueError, match="failed"):
        pool.map_chunks(_failing_chunk, 20, None)


def test_warns_when_fewer_chunks_than_workers():
    pool = WorkerPool(n_jobs=4, chunk_size=50)

    with pytest.warns(UserWarning):
        pool.map_chunks(_chunk_sum, 60, np.ones(60), 0.0)


def test_pool_stats():
    pool = WorkerPool(n_jobs=2, chunk_size=10)
    pool.map_chunks(_chunk_sum, 30, np.ones(30), 0.0)

    stats = pool.get_pool_stats()

    assert stats["n_workers"] == 2
    assert stats["backend"] == "thread"
    assert stats["total_tasks_completed"] == 3
    assert stats["total_processing_time"] >= 0


def test_all_cores():
    assert WorkerPool(n_jobs=-1).n_workers >= 1


@pytest.mark.parametrize("kwargs", [
    {"n_jobs": 0},
    {"n_jobs": -2},
    {"n_jobs": 1.5},
    {"backend": "gpu"},
    {"chunk_size": 0},
])
def test_invalid_pool_parameters(kwargs):
    with pytest.raises(InvalidParameterError):
        WorkerPool(**kwargs)


class TestCoreDistances:
    @pytest.fixture
    def points(self):
        rng = np.random.default_rng(42)
        return rng.normal(size=(45, 3))

    @staticmethod
    def _brute_force(points, k):
        diff = points[:, np.newaxis, :] - points[np.newaxis, :, :]
        distances = np.sqrt(np.sum(diff ** 2, axis=2))
        return np.sort(distances, axis=1)[:, k - 1]

    @pytest.mark.parametrize("algorithm", ["kd_tree", "ball_tree", "brute"])
    @pytest.mark.parametrize("min_samples", [1, 3, 7])
    def test_matches_brute_force(self, points, algorithm, min_samples):
        index = NeighborIndex(points, algorithm=algorithm)

        core_distances = compute_core_distances(index, min_samples)

        np.testing.assert_allclose(core_distances, self._brute_force(points, min_samples))

    def test_min_samples_one_is_zero(self, points):
        core_distances = compute_core_distances(NeighborIndex(points), 1)

        np.testing.assert_array_equal(core_distances, np.zeros(len(points)))

    def test_undefined_when_min_samples_exceeds_points(self, points):
        core_distances = compute_core_distances(NeighborIndex(points), len(points) + 1)

        assert np.all(np.isinf(core_distances))

    def test_undefined_beyond_max_eps(self, points):
        expected = self._brute_force(points, 5)
        max_eps = float(np.median(expected))

        core_distances = compute_core_distances(NeighborIndex(points), 5, max_eps=max_eps)

        within = expected <= max_eps
        np.testing.assert_allclose(core_distances[within], expected[within])
        assert np.all(np.isinf(core_distances[~within]))

    def test_thread_pool_matches_serial(self, points):
        index = NeighborIndex(points)

        serial = compute_core_distances(index, 4)
        parallel = compute_core_distances(index, 4, pool=WorkerPool(n_jobs=3, chunk_size=7))

        np.testing.assert_array_equal(parallel, serial)

    def test_process_pool_matches_serial(self, points):
        index = NeighborIndex(points)

        serial = compute_core_distances(index, 4)
        parallel = compute_core_distances(
            index, 4, pool=WorkerPool(n_jobs=2, backend="process", chunk_size=10))

        np.testing.assert_array_equal(parallel, serial)

    def test_empty_point_set(self):
        core_distances = compute_core_distances(NeighborIndex(np.empty((0, 2))), 3)

        assert core_distances.shape == (0,)
