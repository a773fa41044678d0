from conversion_tracker.core.config import Settings
from conversion_tracker.core.tracker import build_tracker


def test_defaults():
    settings = Settings(_env_file=None)
    assert settings.retention_window == 3600
    assert settings.sweep_max_age_ms == 24 * 60 * 60 * 1000
    assert settings.recent_limit == 10


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("RETENTION_WINDOW_SECONDS", "0")
    monkeypatch.setenv("WORKSPACE_PATH", str(tmp_path))
    settings = Settings(_env_file=None)
    assert settings.retention_window is None
    assert settings.get_output_dirpath("job-1") == str(tmp_path / "job-1")


def test_build_tracker_uses_retention_setting(monkeypatch):
    monkeypatch.setenv("RETENTION_WINDOW_SECONDS", "120")
    tracker = build_tracker(Settings(_env_file=None))
    assert tracker.sweeper.retention_window == 120
    tracker.shutdown()


def test_build_tracker_uses_recent_limit(monkeypatch):
    monkeypatch.setenv("RECENT_LIMIT", "2")
    tracker = build_tracker(Settings(_env_file=None))
    try:
        for label in ("a.pdf", "b.pdf", "c.pdf"):
            tracker.create("user-1", label, "DEFAULT")
        assert tracker.queries.recent_limit == 2
        assert len(tracker.list_recent_by_owner("user-1")) == 2
    finally:
        tracker.shutdown()
