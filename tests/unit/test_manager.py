"""Unit tests for PluginManager loading and per-stack execution."""

from __future__ import annotations

import types
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest
from pydantic import BaseModel

from dotforge.constructs.base import Stack
from dotforge.errors import (
    ConfigValidationError,
    ConflictError,
    MissingDependencyError,
    PluginError,
    PluginExecutionError,
    PluginLoadError,
    UnresolvedPluginError,
)
from dotforge.plugins.base import Plugin, PluginDescription
from dotforge.plugins.helpers import ActionsHelper, SharedWorkflowHelper
from dotforge.plugins.manager import PluginManager, check_constraints, merge_plugin_config
from dotforge.schemas import PluginConfig, StackConfig

if TYPE_CHECKING:
    from collections.abc import Callable


def _configs(*names: str, **extra: Any) -> list[PluginConfig]:
    return [PluginConfig(name=name, package=name, **extra) for name in names]


async def _loaded_manager(tmp_path: Path, loader_factory: Any, plugins: dict[str, Any]) -> PluginManager:
    manager = PluginManager(tmp_path, loader=loader_factory(plugins))
    await manager.load_plugins(_configs(*plugins))
    return manager


class TestMergePluginConfig:
    """Tests for configuration layering."""

    def test_stack_config_wins(self) -> None:
        plugin_config = PluginConfig(name="ci", package="ci", config={"a": 1, "b": 1})
        stack_config = StackConfig(name="main", plugins=["ci"], config={"b": 2})

        merged = merge_plugin_config(plugin_config, stack_config)

        assert merged["a"] == 1
        assert merged["b"] == 2

    def test_actions_precedence(self) -> None:
        plugin_config = PluginConfig(
            name="ci",
            package="ci",
            actions={"a/1": "plugin", "a/2": "plugin", "a/3": "plugin", "a/4": "plugin"},
            config={"actions": {"a/2": "plugin-config", "a/3": "plugin-config", "a/4": "plugin-config"}},
        )
        stack_config = StackConfig(
            name="main",
            plugins=["ci"],
            config={"actions": {"a/3": "stack-config", "a/4": "stack-config"}},
            actions={"a/4": "stack"},
        )

        merged = merge_plugin_config(plugin_config, stack_config)

        assert merged["actions"] == {
            "a/1": "plugin",
            "a/2": "plugin-config",
            "a/3": "stack-config",
            "a/4": "stack",
        }

    def test_actions_always_present(self) -> None:
        merged = merge_plugin_config(
            PluginConfig(name="ci", package="ci"), StackConfig(name="main", plugins=["ci"])
        )
        assert merged == {"actions": {}}


class TestCheckConstraints:
    """Tests for dependency and conflict checks over a batch."""

    def test_missing_dependency_names_all_missing(self, make_plugin: Callable[..., Any]) -> None:
        release = make_plugin("release", dependencies=["ci", "lint"])

        with pytest.raises(MissingDependencyError) as exc_info:
            check_constraints([("release", release)])

        assert exc_info.value.plugin_name == "release"
        assert exc_info.value.missing_dependencies == ["ci", "lint"]

    def test_dependency_satisfied_regardless_of_order(self, make_plugin: Callable[..., Any]) -> None:
        release = make_plugin("release", dependencies=["ci"])
        ci = make_plugin("ci")

        check_constraints([("release", release), ("ci", ci)])

    @pytest.mark.parametrize("order", [("a", "b"), ("b", "a")])
    def test_conflict_detected_in_either_order(
        self, make_plugin: Callable[..., Any], order: tuple[str, str]
    ) -> None:
        plugins = {"a": make_plugin("a", conflicts=["b"]), "b": make_plugin("b")}

        with pytest.raises(ConflictError) as exc_info:
            check_constraints([(name, plugins[name]) for name in order])

        assert exc_info.value.plugin_name == "a"
        assert exc_info.value.conflicting_plugin == "b"

    def test_self_conflict_ignored(self, make_plugin: Callable[..., Any]) -> None:
        check_constraints([("a", make_plugin("a", conflicts=["a"]))])

    def test_plugins_without_metadata(self) -> None:
        check_constraints([("bare", types.SimpleNamespace(name="bare", synthesize=lambda s: None))])


class TestLoadPlugins:
    """Tests for PluginManager.load_plugins()."""

    @pytest.mark.asyncio
    async def test_registers_by_config_name(
        self, tmp_path: Path, make_plugin: Callable[..., Any], dict_loader: Any
    ) -> None:
        plugin = make_plugin("internal-name")
        manager = PluginManager(tmp_path, loader=dict_loader({"pkg": plugin}))

        results = await manager.load_plugins([{"name": "ci", "package": "pkg"}])

        assert len(results) == 1
        assert manager.is_plugin_loaded("ci")
        assert manager.get_loaded_plugin("ci") is plugin
        assert manager.get_loaded_plugins() == [plugin]

    @pytest.mark.asyncio
    async def test_later_load_overwrites(
        self, tmp_path: Path, make_plugin: Callable[..., Any], dict_loader: Any
    ) -> None:
        first, second = make_plugin("a"), make_plugin("b")
        manager = PluginManager(tmp_path, loader=dict_loader({"one": first, "two": second}))

        await manager.load_plugins([PluginConfig(name="x", package="one")])
        await manager.load_plugins([PluginConfig(name="x", package="two")])

        assert manager.get_loaded_plugin("x") is second

    @pytest.mark.asyncio
    async def test_failure_registers_nothing(
        self, tmp_path: Path, make_plugin: Callable[..., Any], dict_loader: Any
    ) -> None:
        manager = PluginManager(tmp_path, loader=dict_loader({"a": make_plugin("a")}))

        with pytest.raises(PluginLoadError):
            await manager.load_plugins(_configs("a", "missing"))

        assert not manager.is_plugin_loaded("a")

    @pytest.mark.asyncio
    async def test_invalid_config_rejected(self, tmp_path: Path) -> None:
        manager = PluginManager(tmp_path, loader=lambda config, root: None)

        with pytest.raises(ConfigValidationError):
            await manager.load_plugins([{"name": "ci"}])

    @pytest.mark.asyncio
    async def test_registries_are_per_manager(
        self, tmp_path: Path, make_plugin: Callable[..., Any], dict_loader: Any
    ) -> None:
        first = await _loaded_manager(tmp_path, dict_loader, {"ci": make_plugin("ci")})
        second = PluginManager(tmp_path)

        assert first.is_plugin_loaded("ci")
        assert not second.is_plugin_loaded("ci")

        first.clear_loaded_plugins()
        assert first.get_loaded_plugins() == []


class TestExecutePluginsForStack:
    """Tests for PluginManager.execute_plugins_for_stack()."""

    @pytest.mark.asyncio
    async def test_runs_in_declared_order_with_validate_first(
        self, tmp_path: Path, make_plugin: Callable[..., Any], dict_loader: Any
    ) -> None:
        calls: list[str] = []
        plugins = {"b": make_plugin("b", calls=calls), "a": make_plugin("a", calls=calls)}
        manager = await _loaded_manager(tmp_path, dict_loader, plugins)
        stack = Stack(None, "main")

        results = await manager.execute_plugins_for_stack(
            stack, StackConfig(name="main", plugins=["b", "a"]), _configs("a", "b")
        )

        assert calls == ["b.validate", "b.synthesize", "a.validate", "a.synthesize"]
        assert [r.name for r in results] == ["b", "a"]
        assert all(r.success and r.error is None for r in results)
        assert all(r.duration >= 0 for r in results)
        assert sorted(stack.workflows) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_missing_dependency(
        self, tmp_path: Path, make_plugin: Callable[..., Any], dict_loader: Any
    ) -> None:
        calls: list[str] = []
        manager = await _loaded_manager(
            tmp_path,
            dict_loader,
            {"release": make_plugin("release", dependencies=["ci"], calls=calls), "ci": make_plugin("ci")},
        )

        with pytest.raises(MissingDependencyError, match="ci") as exc_info:
            await manager.execute_plugins_for_stack(
                Stack(None, "main"), StackConfig(name="main", plugins=["release"]), _configs("release", "ci")
            )

        assert exc_info.value.missing_dependencies == ["ci"]
        assert calls == []

    @pytest.mark.asyncio
    async def test_conflict_checked_before_any_plugin_runs(
        self, tmp_path: Path, make_plugin: Callable[..., Any], dict_loader: Any
    ) -> None:
        calls: list[str] = []
        manager = await _loaded_manager(
            tmp_path,
            dict_loader,
            {"a": make_plugin("a", calls=calls), "b": make_plugin("b", conflicts=["a"], calls=calls)},
        )

        with pytest.raises(ConflictError):
            await manager.execute_plugins_for_stack(
                Stack(None, "main"), StackConfig(name="main", plugins=["a", "b"]), _configs("a", "b")
            )

        assert calls == []

    @pytest.mark.asyncio
    async def test_not_loaded_plugin(self, tmp_path: Path) -> None:
        manager = PluginManager(tmp_path)

        with pytest.raises(UnresolvedPluginError, match="not loaded") as exc_info:
            await manager.execute_plugins_for_stack(
                Stack(None, "main"), StackConfig(name="main", plugins=["ci"]), _configs("ci")
            )

        assert exc_info.value.plugin_name == "ci"
        assert exc_info.value.stack_name == "main"

    @pytest.mark.asyncio
    async def test_missing_configuration(
        self, tmp_path: Path, make_plugin: Callable[..., Any], dict_loader: Any
    ) -> None:
        manager = await _loaded_manager(tmp_path, dict_loader, {"ci": make_plugin("ci")})

        with pytest.raises(UnresolvedPluginError, match="no configuration"):
            await manager.execute_plugins_for_stack(
                Stack(None, "main"), StackConfig(name="main", plugins=["ci"]), []
            )

    @pytest.mark.asyncio
    async def test_invalid_stack_config(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigValidationError, match="stack configuration"):
            await PluginManager(tmp_path).execute_plugins_for_stack(
                Stack(None, "main"), {"name": "main", "plugins": []}, []
            )

    @pytest.mark.asyncio
    async def test_failure_carries_partial_results(
        self, tmp_path: Path, make_plugin: Callable[..., Any], dict_loader: Any
    ) -> None:
        def explode(stack: Stack) -> None:
            raise RuntimeError("synthesis exploded")

        calls: list[str] = []
        manager = await _loaded_manager(
            tmp_path,
            dict_loader,
            {
                "q": make_plugin("q", calls=calls),
                "p": make_plugin("p", synthesize=explode, calls=calls),
                "r": make_plugin("r", calls=calls),
            },
        )

        with pytest.raises(PluginExecutionError) as exc_info:
            await manager.execute_plugins_for_stack(
                Stack(None, "main"), StackConfig(name="main", plugins=["q", "p", "r"]), _configs("q", "p", "r")
            )

        error = exc_info.value
        assert error.plugin_name == "p"
        assert error.stack_name == "main"
        assert isinstance(error.cause, RuntimeError)
        assert error.__cause__ is error.cause
        assert [(r.name, r.success) for r in error.results] == [("q", True), ("p", False)]
        assert error.results[1].error is error.cause
        assert "r.validate" not in calls

    @pytest.mark.asyncio
    async def test_validate_failure_skips_synthesize(
        self, tmp_path: Path, make_plugin: Callable[..., Any], dict_loader: Any
    ) -> None:
        def reject(stack: Stack) -> None:
            raise ValueError("bad config")

        calls: list[str] = []
        manager = await _loaded_manager(
            tmp_path, dict_loader, {"ci": make_plugin("ci", validate=reject, calls=calls)}
        )

        with pytest.raises(PluginExecutionError, match="bad config"):
            await manager.execute_plugins_for_stack(
                Stack(None, "main"), StackConfig(name="main", plugins=["ci"]), _configs("ci")
            )

        assert calls == ["ci.validate"]

    @pytest.mark.asyncio
    async def test_async_hooks_are_awaited(self, tmp_path: Path, dict_loader: Any) -> None:
        events: list[str] = []

        class AsyncPlugin:
            name = "async"

            async def validate(self, stack: Stack) -> None:
                events.append("validate")

            async def synthesize(self, stack: Stack) -> None:
                events.append("synthesize")
                stack.set_metadata("async", True)

        manager = await _loaded_manager(tmp_path, dict_loader, {"async": AsyncPlugin()})
        stack = Stack(None, "main")

        await manager.execute_plugins_for_stack(
            stack, StackConfig(name="main", plugins=["async"]), _configs("async")
        )

        assert events == ["validate", "synthesize"]
        assert stack.get_metadata("async") is True

    @pytest.mark.asyncio
    async def test_plugin_without_validate(self, tmp_path: Path, dict_loader: Any) -> None:
        bare = types.SimpleNamespace(name="bare", synthesize=lambda stack: stack.set_metadata("bare", 1))
        manager = await _loaded_manager(tmp_path, dict_loader, {"bare": bare})
        stack = Stack(None, "main")

        await manager.execute_plugins_for_stack(stack, StackConfig(name="main", plugins=["bare"]), _configs("bare"))

        assert stack.get_metadata("bare") == 1

    @pytest.mark.asyncio
    async def test_stack_context_refreshed_per_plugin(
        self, tmp_path: Path, make_plugin: Callable[..., Any], dict_loader: Any
    ) -> None:
        helpers: list[Any] = []

        def capture(stack: Stack) -> None:
            helpers.append(stack.actions)
            assert isinstance(stack.shared_workflows, SharedWorkflowHelper)
            assert stack.stack_config is not None
            assert stack.project_root == str(tmp_path)

        a = make_plugin("a", synthesize=capture)
        b = make_plugin("b", synthesize=capture)
        manager = await _loaded_manager(tmp_path, dict_loader, {"a": a, "b": b})
        configs = [
            PluginConfig(name="a", package="a", config={"who": "a", "shared": "plugin"}),
            PluginConfig(name="b", package="b", config={"who": "b"}),
        ]

        await manager.execute_plugins_for_stack(
            Stack(None, "main"),
            StackConfig(name="main", plugins=["a", "b"], config={"shared": "stack"}),
            configs,
        )

        assert a.seen_configs == [{"who": "a", "shared": "stack", "actions": {}}]
        assert b.seen_configs == [{"who": "b", "shared": "stack", "actions": {}}]
        assert len(helpers) == 2
        assert all(isinstance(helper, ActionsHelper) for helper in helpers)
        assert helpers[0] is not helpers[1]

    @pytest.mark.asyncio
    async def test_later_plugins_see_earlier_contributions(
        self, tmp_path: Path, make_plugin: Callable[..., Any], dict_loader: Any
    ) -> None:
        seen: list[Any] = []
        first = make_plugin("first", synthesize=lambda stack: stack.set_metadata("first", "done"))
        second = make_plugin("second", synthesize=lambda stack: seen.append(stack.get_metadata("first")))
        manager = await _loaded_manager(tmp_path, dict_loader, {"first": first, "second": second})

        await manager.execute_plugins_for_stack(
            Stack(None, "main"), StackConfig(name="main", plugins=["first", "second"]), _configs("first", "second")
        )

        assert seen == ["done"]


class _Schema(BaseModel):
    level: int


class _DescribedPlugin(Plugin):
    @property
    def name(self) -> str:
        return "described"

    @property
    def version(self) -> str:
        return "2.0.0"

    @property
    def conflicts(self) -> list[str]:
        return ["other"]

    def get_config_schema(self) -> type[BaseModel]:
        return _Schema

    def synthesize(self, stack: Stack) -> None:
        raise AssertionError("describe must not run synthesize")


class TestDescribePlugins:
    """Tests for describe_plugin, list_plugins and schema validation."""

    @pytest.mark.asyncio
    async def test_describe_plugin(self, tmp_path: Path, dict_loader: Any) -> None:
        manager = await _loaded_manager(tmp_path, dict_loader, {"described": _DescribedPlugin()})

        description = await manager.describe_plugin("described")

        assert isinstance(description, PluginDescription)
        assert description.version == "2.0.0"
        assert description.conflicts == ["other"]
        assert description.config_schema is _Schema

    @pytest.mark.asyncio
    async def test_describe_unknown_plugin(self, tmp_path: Path) -> None:
        assert await PluginManager(tmp_path).describe_plugin("nope") is None

    @pytest.mark.asyncio
    async def test_describe_falls_back_to_attributes(
        self, tmp_path: Path, make_plugin: Callable[..., Any], dict_loader: Any
    ) -> None:
        manager = await _loaded_manager(tmp_path, dict_loader, {"ci": make_plugin("ci", dependencies=["lint"])})

        description = await manager.describe_plugin("ci")

        assert description is not None
        assert description.name == "ci"
        assert description.version == "0.0.1"
        assert description.dependencies == ["lint"]

    @pytest.mark.asyncio
    async def test_describe_accepts_mapping(self, tmp_path: Path, dict_loader: Any) -> None:
        plugin = types.SimpleNamespace(
            name="m", synthesize=lambda s: None, describe=lambda: {"name": "m", "tags": ["x"]}
        )
        manager = await _loaded_manager(tmp_path, dict_loader, {"m": plugin})

        description = await manager.describe_plugin("m")

        assert description is not None
        assert description.tags == ["x"]

    @pytest.mark.asyncio
    async def test_invalid_description_rejected(self, tmp_path: Path, dict_loader: Any) -> None:
        plugin = types.SimpleNamespace(name="m", synthesize=lambda s: None, describe=lambda: {"name": ""})
        manager = await _loaded_manager(tmp_path, dict_loader, {"m": plugin})

        with pytest.raises(PluginError, match="Invalid plugin description for 'm'"):
            await manager.describe_plugin("m")

    @pytest.mark.asyncio
    async def test_list_plugins_tolerates_describe_failure(self, tmp_path: Path, dict_loader: Any) -> None:
        def broken() -> Any:
            raise RuntimeError("no")

        plugins = {
            "described": _DescribedPlugin(),
            "broken": types.SimpleNamespace(name="broken", synthesize=lambda s: None, describe=broken),
        }
        manager = await _loaded_manager(tmp_path, dict_loader, plugins)

        listing = await manager.list_plugins()

        assert [name for name, _ in listing] == ["described", "broken"]
        assert listing[0][1] is not None
        assert listing[1][1] is None

    @pytest.mark.asyncio
    async def test_validate_against_schema(self, tmp_path: Path, dict_loader: Any) -> None:
        manager = await _loaded_manager(tmp_path, dict_loader, {"described": _DescribedPlugin()})

        validated = await manager.validate_plugin_config_against_schema("described", {"level": 3})
        assert validated == _Schema(level=3)

        with pytest.raises(ConfigValidationError, match="level"):
            await manager.validate_plugin_config_against_schema("described", {"level": "high"})

    @pytest.mark.asyncio
    async def test_validate_without_schema(
        self, tmp_path: Path, make_plugin: Callable[..., Any], dict_loader: Any
    ) -> None:
        manager = await _loaded_manager(tmp_path, dict_loader, {"ci": make_plugin("ci")})

        with pytest.raises(PluginError, match="does not provide a configuration schema"):
            await manager.validate_plugin_config_against_schema("ci", {})
