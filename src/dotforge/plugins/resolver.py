"""Plugin resolution from configuration references.

A PluginConfig's ``package`` is either a local path or a named package:

- Local path (``./``, ``../`` or absolute): a ``.py`` file, or a directory
  containing ``__init__.py``, resolved against the project root and
  imported from its location.
- Named package: first looked up by name in the ``dotforge.plugins`` entry
  point group, then imported as a module. ``module:attribute`` selects an
  attribute explicitly.

From a module, the ``plugin`` attribute is used, then ``default``. A class
is instantiated with no arguments. The resulting object must have a
callable ``synthesize`` and a non-empty string ``name``.

Loading is injectable: pass ``loader=`` to swap the import mechanism (it
receives the PluginConfig and project root and returns a module, class or
plugin object); extraction and validation still apply.

Example:
    >>> resolver = PluginResolver("/path/to/project")
    >>> result = resolver.resolve_plugin(PluginConfig(name="ci", package="ci"))
    >>> result.plugin.name
    'ci'
"""

from __future__ import annotations

import importlib
import importlib.util
import inspect
import re
import sys
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from importlib.metadata import entry_points
from pathlib import Path
from types import ModuleType
from typing import Any

import structlog

from dotforge.errors import PluginLoadError
from dotforge.schemas import PluginConfig

logger = structlog.get_logger(__name__)

PLUGIN_ENTRY_POINT_GROUP = "dotforge.plugins"

MODULE_EXPORTS: tuple[str, ...] = ("plugin", "default")
"""Module attributes searched, in order, for the plugin export."""

LOCAL_MODULE_PREFIX = "_dotforge_local_plugin"

PluginLoaderFn = Callable[[PluginConfig, Path], Any]


@dataclass
class PluginLoadResult:
    """A resolved plugin together with the configuration it was loaded from."""

    plugin: Any
    config: PluginConfig


class _LoadFailure(Exception):
    """Internal signal carrying the reason a reference could not be loaded."""


def is_local_reference(reference: str) -> bool:
    return reference.startswith(("./", "../")) or Path(reference).is_absolute()


def _local_module_name(config: PluginConfig) -> str:
    return f"{LOCAL_MODULE_PREFIX}_{re.sub(r'[^0-9a-zA-Z_]', '_', config.name)}"


def _load_local(config: PluginConfig, project_root: Path) -> ModuleType:
    target = (project_root / config.package).resolve()
    if not target.exists():
        raise _LoadFailure(f"local plugin not found at {target}")

    search_locations: list[str] | None = None
    if target.is_dir():
        module_path = target / "__init__.py"
        search_locations = [str(target)]
    else:
        module_path = target
    if not module_path.is_file():
        raise _LoadFailure(f"plugin entry point not found: {module_path}")

    module_name = _local_module_name(config)
    spec = importlib.util.spec_from_file_location(
        module_name,
        module_path,
        submodule_search_locations=search_locations,
    )
    if spec is None or spec.loader is None:
        raise _LoadFailure(f"cannot import plugin entry point {module_path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        sys.modules.pop(module_name, None)
        raise
    return module


def _find_entry_point(name: str) -> Any | None:
    for ep in entry_points(group=PLUGIN_ENTRY_POINT_GROUP):
        if ep.name == name:
            return ep
    return None


def _load_named(config: PluginConfig) -> Any:
    reference = config.package
    module_name, _, attribute = reference.partition(":")

    if not attribute:
        ep = _find_entry_point(reference)
        if ep is not None:
            logger.debug("load_plugin.entry_point", name=config.name, entry_point=ep.value)
            return ep.load()

    try:
        module = importlib.import_module(module_name)
    except ModuleNotFoundError as e:
        missing = e.name or ""
        if missing != module_name and not module_name.startswith(f"{missing}."):
            raise _LoadFailure(f"package '{module_name}' requires missing module '{missing}'") from e
        raise _LoadFailure(f"cannot resolve package '{module_name}'; make sure it is installed") from e

    if not attribute:
        return module
    try:
        return getattr(module, attribute)
    except AttributeError as e:
        raise _LoadFailure(f"module '{module_name}' has no attribute '{attribute}'") from e


def default_loader(config: PluginConfig, project_root: Path) -> Any:
    """Import the target named by ``config.package``."""
    if is_local_reference(config.package):
        return _load_local(config, project_root)
    return _load_named(config)


def extract_plugin(target: Any) -> Any:
    """Turn a loaded module, class or object into a validated plugin instance.

    Raises:
        _LoadFailure: If no export is found or the export is not a plugin.
    """
    plugin = target
    if isinstance(target, ModuleType):
        plugin = next(
            (getattr(target, attr) for attr in MODULE_EXPORTS if getattr(target, attr, None) is not None),
            None,
        )
        if plugin is None:
            raise _LoadFailure(
                "plugin module must export either a 'plugin' or a 'default' attribute"
            )

    if inspect.isclass(plugin):
        if inspect.isabstract(plugin):
            raise _LoadFailure(f"plugin class '{plugin.__name__}' is abstract")
        plugin = plugin()

    if not callable(getattr(plugin, "synthesize", None)):
        raise _LoadFailure("plugin must implement the 'synthesize' method")

    name = getattr(plugin, "name", None)
    if not isinstance(name, str) or not name:
        raise _LoadFailure("plugin must have a valid 'name' property")

    return plugin


class PluginResolver:
    """Resolves PluginConfig references into plugin objects.

    Attributes:
        project_root: Directory local references are resolved against.
    """

    def __init__(self, project_root: Path | str, loader: PluginLoaderFn | None = None) -> None:
        self.project_root = Path(project_root)
        self._loader = loader or default_loader

    def resolve_plugin(self, config: PluginConfig) -> PluginLoadResult:
        """Load and validate the plugin referenced by ``config``.

        Raises:
            PluginLoadError: If the target or entry point is missing, the
                module has no plugin export, or the export is not a valid plugin.
        """
        logger.debug("resolve_plugin.started", name=config.name, package=config.package)
        try:
            plugin = extract_plugin(self._loader(config, self.project_root))
        except PluginLoadError:
            raise
        except _LoadFailure as e:
            logger.error("resolve_plugin.failed", name=config.name, package=config.package, reason=str(e))
            raise PluginLoadError(config.name, config.package, str(e)) from e
        except Exception as e:
            logger.error("resolve_plugin.failed", name=config.name, package=config.package, reason=str(e))
            raise PluginLoadError(config.name, config.package, f"{type(e).__name__}: {e}") from e

        logger.debug("resolve_plugin.success", name=config.name, plugin=plugin.name)
        return PluginLoadResult(plugin=plugin, config=config)

    def resolve_plugins(self, configs: Iterable[PluginConfig]) -> list[PluginLoadResult]:
        """Resolve every enabled config in input order.

        The first failure aborts the batch; no partial results are returned.

        Raises:
            PluginLoadError: From the first config that fails to resolve.
        """
        results: list[PluginLoadResult] = []
        for config in configs:
            if not config.enabled:
                logger.debug("resolve_plugins.skipped", name=config.name)
                continue
            results.append(self.resolve_plugin(config))
        return results


__all__ = [
    "PLUGIN_ENTRY_POINT_GROUP",
    "PluginLoadResult",
    "PluginLoaderFn",
    "PluginResolver",
    "default_loader",
    "extract_plugin",
    "is_local_reference",
]
