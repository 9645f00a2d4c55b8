"""Shared pytest fixtures for dotforge tests.

For unit-specific fixtures, see unit/conftest.py.

NOTE: Do NOT add __init__.py to test directories - pytest uses importlib mode
which can cause namespace collisions with __init__.py files.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import structlog

if TYPE_CHECKING:
    from collections.abc import Generator


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers",
        "cli: mark test as exercising the click command line",
    )


@pytest.fixture(autouse=True)
def reset_tracer() -> Generator[None, None, None]:
    """Reset cached tracers before and after each test."""
    from dotforge.telemetry import reset_tracer as _reset

    _reset()
    yield
    _reset()


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Restore structlog defaults after each test.

    configure_logging() binds the current sys.stderr, which capture
    fixtures and CliRunner replace and close.
    """
    yield
    structlog.reset_defaults()
