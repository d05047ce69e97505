import pytest

from densclust.clustering.tracker import VisitedTracker
from densclust.exceptions import IndexOutOfRangeError


def test_starts_unvisited():
    tracker = VisitedTracker(17)

    assert len(tracker) == 17
    assert not any(tracker.is_set(i) for i in range(17))


def test_test_and_set_reports_previous_state():
    tracker = VisitedTracker(10)

    assert tracker.test_and_set(9) is False
    assert tracker.test_and_set(9) is True
    assert tracker.is_set(9)
    assert not tracker.is_set(8)


def test_bits_are_independent_across_byte_boundaries():
    tracker = VisitedTracker(20)
    for idx in (0, 7, 8, 15, 16, 19):
        tracker.set(idx)

    assert [i for i in range(20) if tracker.is_set(i)] == [0, 7, 8, 15, 16, 19]


def test_set_is_idempotent():
    tracker = VisitedTracker(9)
    tracker.set(4)
    tracker.set(4)

    assert tracker.test_and_set(4) is True
    assert [i for i in range(9) if tracker.is_set(i)] == [4]


def test_empty_tracker():
    tracker = VisitedTracker(0)

    assert len(tracker) == 0
    with pytest.raises(IndexOutOfRangeError):
        tracker.set(0)


@pytest.mark.parametrize("idx", [-1, 5, 100])
def test_out_of_range(idx):
    tracker = VisitedTracker(5)

    with pytest.raises(IndexOutOfRangeError):
        tracker.test_and_set(idx)
