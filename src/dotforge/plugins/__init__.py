"""Plugin system: contract, resolution, helpers and execution."""

from __future__ import annotations

from dotforge.plugins.base import Plugin, PluginDescription
from dotforge.plugins.helpers import ActionsHelper, SharedWorkflowHelper
from dotforge.plugins.manager import PluginExecutionResult, PluginManager
from dotforge.plugins.resolver import PLUGIN_ENTRY_POINT_GROUP, PluginLoadResult, PluginResolver

__all__ = [
    "PLUGIN_ENTRY_POINT_GROUP",
    "ActionsHelper",
    "Plugin",
    "PluginDescription",
    "PluginExecutionResult",
    "PluginLoadResult",
    "PluginManager",
    "PluginResolver",
    "SharedWorkflowHelper",
]
