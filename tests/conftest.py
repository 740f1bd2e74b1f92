"""
Pytest configuration and fixtures for leaderboard tests
"""
import pytest

from leaderboard.api import live as live_module
from leaderboard.rate_limit import get_rate_limiter
from leaderboard.storage import json_store


@pytest.fixture(autouse=True)
def isolated_storage(tmp_path, monkeypatch):
    """Keep audit logs and store files out of the working directory."""
    monkeypatch.setattr(json_store, "STORAGE_DIR", str(tmp_path / "data"))
    return tmp_path / "data"


@pytest.fixture(autouse=True)
def clean_live_module():
    """Reset router globals and the rate limiter between tests."""
    live_module.install_controller(None)
    live_module.channels.clear()
    live_module.RATE_LIMIT_ENABLED = False
    get_rate_limiter().reset_all()
    yield
    live_module.install_controller(None)
    live_module.channels.clear()
    live_module.RATE_LIMIT_ENABLED = True
    get_rate_limiter().reset_all()
