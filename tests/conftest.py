"""Shared fixtures for the test suite."""

import pytest

from live_analyzer.core import VirtualScheduler


@pytest.fixture
def scheduler():
    return VirtualScheduler()
