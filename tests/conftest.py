"""Pytest configuration for the NetMon console."""
import os

import pytest

from netmon.base.config import set_config


def pytest_configure():
    # Keep tests off any real backend or settings file on the machine.
    os.environ.setdefault("NETMON_BACKEND_URL", "http://backend.test")
    os.environ.pop("NETMON_SETTINGS_PATH", None)


@pytest.fixture(autouse=True)
def reset_config():
    set_config(None)
    yield
    set_config(None)
