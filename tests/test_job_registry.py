from datetime import datetime, timezone

from conversion_tracker.core.job_registry import JobRegistry
from conversion_tracker.models.schemas import ConversionJob

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_job(job_id, owner_id="user-1"):
    return ConversionJob(
        id=job_id,
        owner_id=owner_id,
        label=f"{job_id}.pdf",
        kind="DEFAULT",
        current_step_label="Uploading file",
        total_steps=5,
        created_at=NOW,
        updated_at=NOW,
    )


def test_put_and_get():
    registry = JobRegistry()
    job = make_job("a")
    registry.put(job)
    assert registry.get("a") == job
    assert "a" in registry
    assert len(registry) == 1
    assert registry.get("missing") is None


def test_list_by_owner_only_returns_owned_jobs():
    registry = JobRegistry()
    registry.put(make_job("a", "user-1"))
    registry.put(make_job("b", "user-1"))
    registry.put(make_job("c", "user-2"))
    assert {job.id for job in registry.list_by_owner("user-1")} == {"a", "b"}
    assert [job.id for job in registry.list_by_owner("user-2")] == ["c"]
    assert registry.list_by_owner("nobody") == []


def test_remove_prunes_owner_index_and_empty_sets():
    registry = JobRegistry()
    registry.put(make_job("a", "user-1"))
    registry.put(make_job("b", "user-1"))

    assert registry.remove("a").id == "a"
    assert [job.id for job in registry.list_by_owner("user-1")] == ["b"]
    assert registry.owner_count() == 1

    registry.remove("b")
    assert registry.list_by_owner("user-1") == []
    assert registry.owner_count() == 0
    assert registry.lock_for("b") is None


def test_remove_unknown_is_noop():
    registry = JobRegistry()
    assert registry.remove("missing") is None
    registry.put(make_job("a"))
    registry.remove("a")
    assert registry.remove("a") is None


def test_remove_from_owner_index_keeps_job_record():
    registry = JobRegistry()
    registry.put(make_job("a", "user-1"))
    registry.remove_from_owner_index("user-1", "a")
    assert registry.list_by_owner("user-1") == []
    assert registry.owner_count() == 0
    assert registry.get("a") is not None


def test_lock_is_stable_across_replacements():
    registry = JobRegistry()
    job = make_job("a")
    registry.put(job)
    lock = registry.lock_for("a")
    registry.put(job.model_copy(update={"progress_percent": 10}))
    assert registry.lock_for("a") is lock
    assert registry.get("a").progress_percent == 10


def test_stored_job_is_isolated_from_callers():
    registry = JobRegistry()
    job = make_job("a")
    job.extra["pages"] = 3
    registry.put(job)

    job.extra["pages"] = 99
    registry.get("a").extra["pages"] = 42
    registry.list_by_owner("user-1")[0].extra["owner"] = "x"
    registry.all()[0].extra["all"] = "x"

    assert registry.get("a").extra == {"pages": 3}
