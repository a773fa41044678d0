import importlib
import sys

import logging_config
from conversion_tracker.core.config import get_settings


def test_cli_configures_logging_from_settings(monkeypatch):
    calls = []
    monkeypatch.setattr(logging_config, "configure_logging", calls.append)
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.delitem(sys.modules, "run_simulation", raising=False)
    get_settings.cache_clear()
    try:
        importlib.import_module("run_simulation")
    finally:
        get_settings.cache_clear()
        sys.modules.pop("run_simulation", None)

    assert calls == ["WARNING"]
