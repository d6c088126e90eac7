"""
Shared test configuration for adminapi.

Every test runs with a clean configuration: no SERVERADMIN_* variables
and no ssh-agent from the host, a temporary working directory and home
directory (so no config file is picked up), and an empty settings cache.
"""

import os

import pytest

from adminapi.config import get_settings


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep host configuration out of the tests."""
    for name in list(os.environ):
        if name.startswith("SERVERADMIN_"):
            monkeypatch.delenv(name)
    monkeypatch.delenv("SSH_AUTH_SOCK", raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def serveradmin_env(monkeypatch):
    """Minimal environment for building a client from settings."""
    monkeypatch.setenv("SERVERADMIN_BASE_URL", "http://serveradmin.test")
    monkeypatch.setenv("SERVERADMIN_TOKEN", "1234567890")
    get_settings.cache_clear()
