"""CLI output helpers and exit codes.

Errors and progress go to stderr; generated content and listings go to
stdout so they can be redirected.

Example:
    from dotforge.cli.utils import error_exit, ExitCode

    if not path.exists():
        error_exit("Config file not found", exit_code=ExitCode.FILE_NOT_FOUND, path=str(path))
"""

from __future__ import annotations

import sys
from enum import IntEnum
from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from typing import NoReturn


class ExitCode(IntEnum):
    """Exit codes for dotforge commands."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    USAGE_ERROR = 2

    FILE_NOT_FOUND = 3
    """Project config file not found."""

    VALIDATION_ERROR = 5
    """Config file or plugin config failed validation."""

    SYNTHESIS_ERROR = 7
    """At least one stack failed to synthesize."""


def _with_context(prefix: str, message: str, context: dict[str, str | int | bool | None]) -> str:
    context_str = ", ".join(f"{k}={v}" for k, v in context.items() if v is not None)
    if context_str:
        return f"{prefix}: {message} ({context_str})"
    return f"{prefix}: {message}"


def error(message: str, **context: str | int | bool | None) -> None:
    """Print an error message to stderr.

    Example:
        error("Plugin failed", stack="main")
        # Output: Error: Plugin failed (stack=main)
    """
    click.echo(_with_context("Error", message, context), err=True)


def error_exit(
    message: str,
    exit_code: ExitCode = ExitCode.GENERAL_ERROR,
    **context: str | int | bool | None,
) -> NoReturn:
    """Print an error message to stderr and exit with ``exit_code``."""
    error(message, **context)
    sys.exit(exit_code)


def warn(message: str, **context: str | int | bool | None) -> None:
    click.echo(_with_context("Warning", message, context), err=True)


def success(message: str) -> None:
    click.echo(message)


def info(message: str) -> None:
    click.echo(message, err=True)


__all__ = ["ExitCode", "error", "error_exit", "info", "success", "warn"]
