from conversion_tracker.core.steps import get_steps
from conversion_tracker.models.schemas import JobStatus
from conversion_tracker.services.simulator import simulate_conversion


def test_simulation_walks_every_step_and_completes(tracker):
    job = tracker.create("user-1", "deck.pdf", "PDF_TO_POWERPOINT")
    received = []
    tracker.subscribe(job.id, received.append)
    sleeps = []

    final = simulate_conversion(tracker, job.id, duration_seconds=7, sleep=sleeps.append)

    steps = get_steps("PDF_TO_POWERPOINT")
    assert final.status == JobStatus.COMPLETED
    assert final.result.output_url == f"/api/files/output_{job.id}.pdf"
    assert 100_000 <= final.result.output_size < 1_100_000
    assert 1 <= final.result.page_count <= 20
    assert sleeps == [1.0] * len(steps)
    assert [s.current_step_label for s in received[:-1]] == steps
    assert [s.current_step_index for s in received[:-1]] == list(range(1, len(steps) + 1))
    progress = [s.progress_percent for s in received]
    assert progress == sorted(progress)
    assert progress[-1] == 100


def test_simulation_stops_when_cancelled(tracker):
    job = tracker.create("user-1", "a.pdf", "DEFAULT")
    calls = []

    def sleep(seconds):
        calls.append(seconds)
        if len(calls) == 2:
            tracker.cancel(job.id)

    final = simulate_conversion(tracker, job.id, duration_seconds=0, sleep=sleep)
    assert final.status == JobStatus.CANCELLED
    assert len(calls) == 2
    assert final.progress_percent == 40


def test_simulation_of_unknown_job_returns_none(tracker):
    assert simulate_conversion(tracker, "missing", sleep=lambda seconds: None) is None
