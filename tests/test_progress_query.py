import pytest

from conversion_tracker.models.schemas import ConversionStats
from conversion_tracker.services.progress_query import ProgressQueryService, estimate_remaining


def test_list_by_owner_newest_first(tracker, clock):
    ids = []
    for name in ("a.pdf", "b.pdf", "c.pdf"):
        ids.append(tracker.create("user-1", name, "DEFAULT").id)
        clock.tick(seconds=1)
    tracker.create("user-2", "other.pdf", "DEFAULT")

    assert [job.id for job in tracker.list_by_owner("user-1")] == list(reversed(ids))
    assert tracker.list_by_owner("nobody") == []


def test_active_jobs_drop_out_after_completion(tracker, clock):
    first = tracker.create("user-1", "a.pdf", "DEFAULT")
    clock.tick(seconds=1)
    second = tracker.create("user-1", "b.pdf", "DEFAULT")

    assert {job.id for job in tracker.list_active_by_owner("user-1")} == {first.id, second.id}

    tracker.complete(first.id)
    assert [job.id for job in tracker.list_active_by_owner("user-1")] == [second.id]

    tracker.advance(second.id, 30, "Processing")
    assert [job.id for job in tracker.list_active_by_owner("user-1")] == [second.id]


def test_recent_is_prefix_of_sorted_list(tracker, clock):
    for i in range(5):
        tracker.create("user-1", f"{i}.pdf", "DEFAULT")
        clock.tick(seconds=1)

    full = tracker.list_by_owner("user-1")
    assert tracker.list_recent_by_owner("user-1", 2) == full[:2]
    assert tracker.list_recent_by_owner("user-1") == full
    assert tracker.list_recent_by_owner("user-1", 0) == []


def test_stats_without_jobs_are_zero(tracker):
    assert tracker.aggregate_stats() == ConversionStats()
    assert tracker.aggregate_stats("user-1").average_processing_time_ms == 0


def test_stats_count_statuses_and_average_completed_time(tracker, clock):
    a = tracker.create("user-1", "a.pdf", "DEFAULT")
    b = tracker.create("user-1", "b.pdf", "DEFAULT")
    c = tracker.create("user-1", "c.pdf", "DEFAULT")
    d = tracker.create("user-2", "d.pdf", "DEFAULT")
    e = tracker.create("user-2", "e.pdf", "DEFAULT")
    tracker.create("user-2", "f.pdf", "DEFAULT")

    clock.tick(ms=1000)
    tracker.complete(a.id)
    clock.tick(ms=2000)
    tracker.complete(b.id)
    tracker.fail(c.id, "boom")
    tracker.advance(d.id, 50, "Converting")
    tracker.cancel(e.id)

    user_stats = tracker.aggregate_stats("user-1")
    assert user_stats.total == 3
    assert user_stats.completed == 2
    assert user_stats.failed == 1
    assert user_stats.average_processing_time_ms == 2000

    global_stats = tracker.aggregate_stats()
    assert global_stats.model_dump() == {
        "total": 6,
        "queued": 1,
        "processing": 1,
        "completed": 2,
        "failed": 1,
        "cancelled": 1,
        "average_processing_time_ms": 2000,
    }


@pytest.mark.parametrize("progress, elapsed, expected", [
    (50, 5000, 5000),
    (75, 6000, 2000),
    (100, 4000, 0),
    (0, 1000, None),
    (-5, 1000, None),
    (33, 1000, 2030),
])
def test_estimate_remaining(progress, elapsed, expected):
    assert estimate_remaining(progress, elapsed) == expected


def test_tracker_exposes_estimate(tracker):
    assert tracker.estimate_remaining(50, 5000) == 5000


def test_recent_defaults_to_configured_limit(tracker, clock):
    for i in range(4):
        tracker.create("user-1", f"{i}.pdf", "DEFAULT")
        clock.tick(seconds=1)

    queries = ProgressQueryService(tracker.registry, recent_limit=3)
    assert queries.list_recent_by_owner("user-1") == tracker.list_by_owner("user-1")[:3]
    assert len(queries.list_recent_by_owner("user-1", 1)) == 1
