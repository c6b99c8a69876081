"""Pytest configuration. Keep the activity log out of the project tree."""

import pytest

from toolcall import activity_log


@pytest.fixture(autouse=True)
def activity_log_file(tmp_path, monkeypatch):
    """Redirect the activity log to a per-test file."""
    path = tmp_path / "logs" / "activity.log"
    monkeypatch.setattr(activity_log, "ACTIVITY_LOG_FILE", str(path))
    return path
