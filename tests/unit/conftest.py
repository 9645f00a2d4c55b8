"""Unit test fixtures for dotforge.

Unit tests run without network access or installed third-party plugins.
Plugins are built in memory with ``make_plugin`` or written to ``tmp_path``
with ``write_plugin_file``.
"""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock

import pytest

from dotforge.constructs.base import Stack
from dotforge.schemas import PluginConfig, StackConfig

if TYPE_CHECKING:
    from collections.abc import Callable


class FakePlugin:
    """Duck-typed plugin recording every hook call."""

    def __init__(
        self,
        name: str,
        dependencies: list[str] | None = None,
        conflicts: list[str] | None = None,
        synthesize: Callable[[Stack], Any] | None = None,
        validate: Callable[[Stack], Any] | None = None,
        calls: list[str] | None = None,
    ) -> None:
        self.name = name
        self.version = "0.0.1"
        self.description = f"{name} test plugin"
        self.dependencies = dependencies or []
        self.conflicts = conflicts or []
        self.calls = calls if calls is not None else []
        self.seen_configs: list[dict[str, Any]] = []
        self._synthesize = synthesize
        self._validate = validate

    def validate(self, stack: Stack) -> Any:
        self.calls.append(f"{self.name}.validate")
        if self._validate is not None:
            return self._validate(stack)
        return None

    def synthesize(self, stack: Stack) -> Any:
        self.calls.append(f"{self.name}.synthesize")
        self.seen_configs.append(dict(stack.config))
        if self._synthesize is not None:
            return self._synthesize(stack)
        stack.add_workflow(self.name, {"on": "push", "jobs": {}})
        return None


@pytest.fixture
def make_plugin() -> Callable[..., FakePlugin]:
    """Factory fixture for FakePlugin instances.

    Usage:
        def test_x(make_plugin: Callable[..., FakePlugin]) -> None:
            plugin = make_plugin("ci", dependencies=["lint"])
    """

    def _make(name: str, **kwargs: Any) -> FakePlugin:
        return FakePlugin(name, **kwargs)

    return _make


@pytest.fixture
def dict_loader() -> Callable[[dict[str, Any]], Callable[[PluginConfig, Path], Any]]:
    """Factory building a loader that returns plugins keyed by package reference."""

    def _build(plugins: dict[str, Any]) -> Callable[[PluginConfig, Path], Any]:
        def _loader(config: PluginConfig, project_root: Path) -> Any:
            if config.package not in plugins:
                raise ModuleNotFoundError(f"No module named '{config.package}'")
            return plugins[config.package]

        return _loader

    return _build


@pytest.fixture
def write_plugin_file(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write a plugin module relative to ``tmp_path`` and return its path."""

    def _write(relative: str, source: str) -> Path:
        target = tmp_path / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(textwrap.dedent(source), encoding="utf-8")
        return target

    return _write


@pytest.fixture
def stack() -> Stack:
    return Stack(None, "main")


@pytest.fixture
def stack_config() -> Callable[..., StackConfig]:
    def _make(plugins: list[str], name: str = "main", **kwargs: Any) -> StackConfig:
        return StackConfig(name=name, plugins=plugins, **kwargs)

    return _make


@pytest.fixture
def mock_entry_point() -> Callable[[str, Any], MagicMock]:
    """Factory fixture to create mock entry points whose load() returns ``target``."""

    def _create(name: str, target: Any) -> MagicMock:
        ep = MagicMock(spec=["name", "group", "value", "load"])
        ep.name = name
        ep.group = "dotforge.plugins"
        ep.value = f"{name}_package:Plugin"
        ep.load.return_value = target
        return ep

    return _create
