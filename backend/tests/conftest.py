"""Pytest configuration shared by all relay test packages."""

import asyncio
import logging

import pytest


@pytest.fixture
def event_loop_policy():
    """Run async tests on the stock asyncio loop."""
    return asyncio.DefaultEventLoopPolicy()


@pytest.fixture(autouse=True)
def relay_debug_logging(caplog):
    """Capture relay logs at DEBUG so per-symbol log lines are formatted too."""
    caplog.set_level(logging.DEBUG, logger="app")
    yield caplog
