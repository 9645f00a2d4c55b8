"""dotforge command-line interface."""

from __future__ import annotations

from dotforge.cli.main import cli, main

__all__ = ["cli", "main"]
