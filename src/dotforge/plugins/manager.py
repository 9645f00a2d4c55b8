"""Plugin manager: loading, constraint checks and per-stack execution.

The manager owns the name -> plugin registry for one run. Construct a
fresh manager per independent run (or test); registries are never shared.

Execution of a stack:

1. Validate the stack config and every plugin config.
2. Every plugin the stack names must be loaded and configured
   (UnresolvedPluginError otherwise).
3. Check dependencies and conflicts over the whole batch before anything
   runs, so the check does not depend on declaration order.
4. For each plugin, in the stack's declared order: merge configuration,
   refresh the stack's transient context, await ``validate`` (if any),
   then await ``synthesize``, and record the result.

The first failing plugin halts the stack. The raised PluginExecutionError
carries every result recorded so far, including the failing one.

Example:
    >>> manager = PluginManager(project_root=".")
    >>> await manager.load_plugins([PluginConfig(name="ci", package="ci")])
    >>> results = await manager.execute_plugins_for_stack(
    ...     Stack(None, "main"),
    ...     StackConfig(name="main", plugins=["ci"]),
    ...     [PluginConfig(name="ci", package="ci")],
    ... )
    >>> results[0].success
    True
"""

from __future__ import annotations

import inspect
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, ValidationError

from dotforge.errors import (
    ConfigValidationError,
    ConflictError,
    MissingDependencyError,
    PluginError,
    PluginExecutionError,
    UnresolvedPluginError,
)
from dotforge.plugins.base import PluginDescription
from dotforge.plugins.helpers import ActionsHelper, SharedWorkflowHelper
from dotforge.plugins.resolver import PluginLoaderFn, PluginLoadResult, PluginResolver
from dotforge.schemas import (
    PluginConfig,
    StackConfig,
    convert_pydantic_errors,
    validate_plugin_config,
    validate_stack_config,
)
from dotforge.telemetry import PLUGIN_ATTRIBUTE, PLUGIN_SPAN, STACK_ATTRIBUTE, create_span

if TYPE_CHECKING:
    from dotforge.constructs.base import Stack

logger = structlog.get_logger(__name__)


@dataclass
class PluginExecutionResult:
    """Outcome of running one plugin against a stack.

    Attributes:
        plugin: The plugin object that ran.
        success: Whether validate and synthesize both completed.
        error: The exception raised by the plugin, if any.
        duration: Wall time in seconds.
    """

    plugin: Any
    success: bool
    error: BaseException | None = None
    duration: float = 0.0

    @property
    def name(self) -> str:
        return str(self.plugin.name)


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def merge_plugin_config(plugin_config: PluginConfig, stack_config: StackConfig) -> dict[str, Any]:
    """Overlay stack configuration on plugin configuration.

    Stack keys win over plugin keys. The ``actions`` mapping is merged per
    action reference with priority, highest first: the stack's ``actions``,
    the stack config's nested ``actions``, the plugin config's nested
    ``actions``, the plugin's own ``actions``.
    """
    merged: dict[str, Any] = {**plugin_config.config, **stack_config.config}
    merged["actions"] = {
        **(plugin_config.actions or {}),
        **(plugin_config.config.get("actions") or {}),
        **(stack_config.config.get("actions") or {}),
        **(stack_config.actions or {}),
    }
    return merged


def check_constraints(plugins: Iterable[tuple[str, Any]]) -> None:
    """Check dependencies and conflicts across one executing batch.

    Args:
        plugins: ``(name, plugin)`` pairs of the batch.

    Raises:
        MissingDependencyError: A plugin's dependency is absent from the batch.
        ConflictError: A plugin's declared conflict is present in the batch.
    """
    batch = list(plugins)
    names = {name for name, _ in batch}

    for name, plugin in batch:
        dependencies = list(getattr(plugin, "dependencies", None) or [])
        missing = [dep for dep in dependencies if dep not in names]
        if missing:
            logger.error("check_constraints.missing_dependency", plugin=name, missing=missing)
            raise MissingDependencyError(name, missing)

        for conflict in getattr(plugin, "conflicts", None) or []:
            if conflict in names and conflict != name:
                logger.error("check_constraints.conflict", plugin=name, conflicting_plugin=conflict)
                raise ConflictError(name, conflict)


class PluginManager:
    """Loads plugins and executes them against stacks.

    Attributes:
        project_root: Project root handed to plugins through the stack.
        resolver: Resolver used by ``load_plugins``.
    """

    def __init__(
        self,
        project_root: Path | str,
        resolver: PluginResolver | None = None,
        loader: PluginLoaderFn | None = None,
    ) -> None:
        """Initialize the manager with an empty registry.

        Args:
            project_root: Directory local plugin references resolve against.
            resolver: Resolver to use; built from ``project_root`` when omitted.
            loader: Loader injected into the default resolver.
        """
        self.project_root = Path(project_root)
        self.resolver = resolver or PluginResolver(self.project_root, loader=loader)
        self._loaded: dict[str, Any] = {}

    async def load_plugins(
        self, plugin_configs: Iterable[PluginConfig | Mapping[str, Any]]
    ) -> list[PluginLoadResult]:
        """Validate, resolve and register plugins.

        Later loads overwrite earlier registrations with the same name.

        Raises:
            ConfigValidationError: If a config fails schema validation.
            PluginLoadError: If any enabled config fails to resolve; nothing
                from the batch is registered.
        """
        configs = self.validate_plugin_configurations(plugin_configs)
        logger.info("load_plugins.started", plugin_count=len(configs))

        results = self.resolver.resolve_plugins(configs)
        for result in results:
            if result.config.name in self._loaded:
                logger.debug("load_plugins.replaced", name=result.config.name)
            self._loaded[result.config.name] = result.plugin

        logger.info("load_plugins.completed", loaded_count=len(results))
        return results

    async def execute_plugins_for_stack(
        self,
        stack: Stack,
        stack_config: StackConfig | Mapping[str, Any],
        plugin_configs: Iterable[PluginConfig | Mapping[str, Any]],
    ) -> list[PluginExecutionResult]:
        """Run the stack's plugins in declared order against ``stack``.

        Returns:
            One result per plugin, in execution order.

        Raises:
            ConfigValidationError: If the stack or a plugin config is invalid.
            UnresolvedPluginError: If a named plugin is not loaded or not configured.
            MissingDependencyError: If a dependency is absent from the stack.
            ConflictError: If two conflicting plugins are in the stack.
            PluginExecutionError: If a validate or synthesize hook raises.
        """
        stack_config = validate_stack_config(stack_config)
        configs = {config.name: config for config in self.validate_plugin_configurations(plugin_configs)}

        batch: list[tuple[str, Any, PluginConfig]] = []
        for name in stack_config.plugins:
            if name not in self._loaded:
                raise UnresolvedPluginError(name, stack_config.name, "not loaded")
            if name not in configs:
                raise UnresolvedPluginError(name, stack_config.name, "no configuration")
            batch.append((name, self._loaded[name], configs[name]))

        check_constraints((name, plugin) for name, plugin, _ in batch)

        logger.info("execute_plugins.started", stack=stack_config.name, plugins=stack_config.plugins)

        results: list[PluginExecutionResult] = []
        for name, plugin, config in batch:
            self._prepare_stack(stack, stack_config, config)

            start = time.perf_counter()
            try:
                with create_span(PLUGIN_SPAN, {STACK_ATTRIBUTE: stack_config.name, PLUGIN_ATTRIBUTE: name}):
                    validate = getattr(plugin, "validate", None)
                    if callable(validate):
                        await _maybe_await(validate(stack))
                    await _maybe_await(plugin.synthesize(stack))
            except Exception as e:
                results.append(
                    PluginExecutionResult(
                        plugin=plugin,
                        success=False,
                        error=e,
                        duration=time.perf_counter() - start,
                    )
                )
                logger.error(
                    "execute_plugin.failed",
                    stack=stack_config.name,
                    plugin=name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise PluginExecutionError(name, stack_config.name, e, list(results)) from e

            duration = time.perf_counter() - start
            results.append(PluginExecutionResult(plugin=plugin, success=True, duration=duration))
            logger.debug("execute_plugin.success", stack=stack_config.name, plugin=name, duration=duration)

        logger.info("execute_plugins.completed", stack=stack_config.name, plugin_count=len(results))
        return results

    def _prepare_stack(self, stack: Stack, stack_config: StackConfig, plugin_config: PluginConfig) -> None:
        # The stack is shared across plugins; later plugins see earlier contributions.
        stack.config = merge_plugin_config(plugin_config, stack_config)
        stack.stack_config = stack_config
        stack.project_root = str(self.project_root)
        stack.actions = ActionsHelper(stack)
        stack.shared_workflows = SharedWorkflowHelper(stack)

    def get_loaded_plugin(self, name: str) -> Any | None:
        return self._loaded.get(name)

    def get_loaded_plugins(self) -> list[Any]:
        return list(self._loaded.values())

    def is_plugin_loaded(self, name: str) -> bool:
        return name in self._loaded

    def clear_loaded_plugins(self) -> None:
        self._loaded.clear()
        logger.debug("clear_loaded_plugins.done")

    def validate_plugin_configurations(
        self, plugin_configs: Iterable[PluginConfig | Mapping[str, Any]]
    ) -> list[PluginConfig]:
        return [validate_plugin_config(config) for config in plugin_configs]

    def validate_stack_configurations(
        self, stack_configs: Iterable[StackConfig | Mapping[str, Any]]
    ) -> list[StackConfig]:
        return [validate_stack_config(config) for config in stack_configs]

    async def describe_plugin(self, name: str) -> PluginDescription | None:
        """Describe a loaded plugin without running any of its hooks.

        Returns:
            The description, or None when no plugin with that name is loaded.

        Raises:
            PluginError: If the plugin's ``describe()`` returns something that
                is not a description with a non-empty name.
        """
        plugin = self._loaded.get(name)
        if plugin is None:
            return None

        describe = getattr(plugin, "describe", None)
        if not callable(describe):
            return PluginDescription(
                name=plugin.name,
                version=getattr(plugin, "version", None),
                description=getattr(plugin, "description", None) or None,
                dependencies=list(getattr(plugin, "dependencies", None) or []),
                conflicts=list(getattr(plugin, "conflicts", None) or []),
            )

        description = await _maybe_await(describe())
        if isinstance(description, PluginDescription):
            return description
        if not isinstance(description, Mapping):
            raise PluginError(f"Invalid plugin description for '{name}': must be a mapping")
        try:
            return PluginDescription.model_validate(description)
        except ValidationError as e:
            details = ", ".join(f"{err['field']}: {err['message']}" for err in convert_pydantic_errors(e))
            raise PluginError(f"Invalid plugin description for '{name}': {details}") from e

    async def list_plugins(self) -> list[tuple[str, PluginDescription | None]]:
        """List loaded plugins with their descriptions.

        A plugin whose ``describe()`` fails is still listed, with None.
        """
        listing: list[tuple[str, PluginDescription | None]] = []
        for name in list(self._loaded):
            try:
                description = await self.describe_plugin(name)
            except Exception as e:
                logger.warning("list_plugins.describe_failed", plugin=name, error=str(e))
                description = None
            listing.append((name, description))
        return listing

    async def get_plugin_config_schema(self, name: str) -> type[BaseModel] | None:
        description = await self.describe_plugin(name)
        if description is None:
            return None
        return description.config_schema

    async def validate_plugin_config_against_schema(self, name: str, config: Mapping[str, Any]) -> BaseModel:
        """Validate ``config`` against the plugin's declared config schema.

        Raises:
            PluginError: If the plugin provides no configuration schema.
            ConfigValidationError: If ``config`` does not match the schema.
        """
        schema = await self.get_plugin_config_schema(name)
        if schema is None:
            raise PluginError(f"Plugin '{name}' does not provide a configuration schema")
        try:
            return schema.model_validate(dict(config))
        except ValidationError as e:
            raise ConfigValidationError(f"configuration of plugin '{name}'", convert_pydantic_errors(e)) from e


__all__ = [
    "PluginExecutionResult",
    "PluginManager",
    "check_constraints",
    "merge_plugin_config",
]
