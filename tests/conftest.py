"""Shared test configuration."""

from __future__ import annotations

import pytest

from release_report.logging_config import setup_logging


@pytest.fixture(autouse=True, scope="session")
def configure_logging() -> None:
    """Send structured logs to stderr for the whole session."""
    setup_logging(environment="development", log_level="DEBUG")
