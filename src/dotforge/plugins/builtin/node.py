"""Shared settings for the built-in Node.js plugins."""

from __future__ import annotations

from typing import Literal

PackageManager = Literal["npm", "pnpm", "yarn", "bun"]

DEFAULT_BRANCHES: tuple[str, ...] = ("main", "master")

INSTALL_COMMANDS: dict[str, str] = {
    "npm": "npm ci",
    "pnpm": "pnpm install",
    "yarn": "yarn install --frozen-lockfile",
    "bun": "bun install",
}


def install_command(package_manager: str) -> str:
    return INSTALL_COMMANDS.get(package_manager, INSTALL_COMMANDS["npm"])


def working_directory_fields(working_directory: str | None) -> dict[str, str]:
    if not working_directory:
        return {}
    return {"working-directory": working_directory}
