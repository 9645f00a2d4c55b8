"""Exception hierarchy for dotforge.

All exceptions inherit from DotforgeError so callers can catch every
dotforge failure with a single except clause.

Exception Hierarchy:
    DotforgeError (base)
    ├── ConfigValidationError      # Config record failed schema validation
    ├── ConfigFileError            # Project config file missing or malformed
    ├── PluginError (base for the plugin system)
    │   ├── PluginLoadError        # Reference could not be turned into a plugin
    │   ├── UnresolvedPluginError  # Stack names a plugin that is not loaded/configured
    │   ├── MissingDependencyError # Declared dependency absent from the stack
    │   ├── ConflictError          # Two conflicting plugins in the same stack
    │   └── PluginExecutionError   # validate/synthesize hook raised
    └── ConstructError (base for the construct tree)
        ├── MissingStackError      # Construct has no owning stack
        ├── WorkflowDefinitionError  # Step or job has an illegal shape
        └── SharedWorkflowInputError # Reusable workflow called without required inputs

Example:
    >>> from dotforge.errors import MissingDependencyError
    >>> raise MissingDependencyError("release", ["ci"])
    Traceback (most recent call last):
        ...
    MissingDependencyError: Plugin 'release' has missing dependencies: ci
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path

    from dotforge.plugins.manager import PluginExecutionResult


class DotforgeError(Exception):
    """Base exception for all dotforge errors."""

    pass


class ConfigValidationError(DotforgeError):
    """Raised when a configuration record fails schema validation.

    Attributes:
        subject: What was being validated (e.g. "plugin configuration 'ci'").
        errors: List of ``{"field": ..., "message": ...}`` dictionaries.

    Example:
        >>> errors = [{"field": "name", "message": "String should have at least 1 character"}]
        >>> raise ConfigValidationError("stack configuration", errors)
        Traceback (most recent call last):
            ...
        ConfigValidationError: Invalid stack configuration: name: String should have ...
    """

    def __init__(self, subject: str, errors: list[dict[str, Any]]) -> None:
        """Initialize ConfigValidationError.

        Args:
            subject: Human-readable name of the validated record.
            errors: Field-level error details.
        """
        self.subject = subject
        self.errors = errors
        details = ", ".join(f"{e['field']}: {e['message']}" for e in errors)
        super().__init__(f"Invalid {subject}: {details}")


class ConfigFileError(DotforgeError):
    """Raised when the project configuration file cannot be used.

    Attributes:
        path: Path of the offending file (or search start directory).
        reason: Why the file could not be used.
    """

    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Config file error at {path}: {reason}")


class PluginError(DotforgeError):
    """Base exception for all plugin-system errors.

    Example:
        >>> try:
        ...     await manager.execute_plugins_for_stack(stack, stack_config, configs)
        ... except PluginError as e:
        ...     print(f"Plugin operation failed: {e}")
    """

    pass


class PluginLoadError(PluginError):
    """Raised when a plugin reference cannot be resolved into a plugin.

    Attributes:
        name: Name of the plugin configuration being resolved.
        reference: The package reference (local path or package name).
        reason: What went wrong (missing target, missing export, ...).

    Example:
        >>> raise PluginLoadError("ci", "./plugins/ci.py", "file not found")
        Traceback (most recent call last):
            ...
        PluginLoadError: Failed to load plugin 'ci' from './plugins/ci.py': file not found
    """

    def __init__(self, name: str, reference: str, reason: str) -> None:
        """Initialize PluginLoadError.

        Args:
            name: Plugin configuration name.
            reference: Package reference that failed to load.
            reason: Description of the failure.
        """
        self.name = name
        self.reference = reference
        self.reason = reason
        super().__init__(f"Failed to load plugin '{name}' from '{reference}': {reason}")


class UnresolvedPluginError(PluginError):
    """Raised when a stack names a plugin that cannot be executed.

    Either the plugin was never loaded into the manager, or no plugin
    configuration with that name was supplied.

    Attributes:
        plugin_name: The plugin named by the stack.
        stack_name: The stack that named it.
        reason: "not loaded" or "no configuration".
    """

    def __init__(self, plugin_name: str, stack_name: str, reason: str) -> None:
        self.plugin_name = plugin_name
        self.stack_name = stack_name
        self.reason = reason
        super().__init__(
            f"Plugin '{plugin_name}' required by stack '{stack_name}' is unresolved: {reason}"
        )


class MissingDependencyError(PluginError):
    """Raised when a plugin's declared dependency is not part of the stack.

    Attributes:
        plugin_name: The plugin with missing dependencies.
        missing_dependencies: Names of the dependencies that are absent.

    Example:
        >>> raise MissingDependencyError("release", ["ci"])
        Traceback (most recent call last):
            ...
        MissingDependencyError: Plugin 'release' has missing dependencies: ci
    """

    def __init__(self, plugin_name: str, missing_dependencies: list[str]) -> None:
        """Initialize MissingDependencyError.

        Args:
            plugin_name: The plugin with missing dependencies.
            missing_dependencies: Dependency names that are not in the stack.
        """
        self.plugin_name = plugin_name
        self.missing_dependencies = missing_dependencies
        deps_str = ", ".join(missing_dependencies)
        super().__init__(f"Plugin '{plugin_name}' has missing dependencies: {deps_str}")


class ConflictError(PluginError):
    """Raised when two conflicting plugins are part of the same stack.

    Attributes:
        plugin_name: The plugin declaring the conflict.
        conflicting_plugin: The co-occurring plugin it conflicts with.

    Example:
        >>> raise ConflictError("npm-release", "pnpm-release")
        Traceback (most recent call last):
            ...
        ConflictError: Plugin 'npm-release' conflicts with 'pnpm-release' in the same stack
    """

    def __init__(self, plugin_name: str, conflicting_plugin: str) -> None:
        self.plugin_name = plugin_name
        self.conflicting_plugin = conflicting_plugin
        super().__init__(
            f"Plugin '{plugin_name}' conflicts with '{conflicting_plugin}' in the same stack"
        )


class PluginExecutionError(PluginError):
    """Raised when a plugin's validate or synthesize hook fails.

    The error carries every result recorded for the stack so far, including
    the successful plugins that ran before the failing one and the failing
    entry itself.

    Attributes:
        plugin_name: The plugin whose hook raised.
        stack_name: The stack being synthesized.
        cause: The original exception.
        results: Partial per-plugin results collected before the failure.
    """

    def __init__(
        self,
        plugin_name: str,
        stack_name: str,
        cause: BaseException,
        results: list[PluginExecutionResult],
    ) -> None:
        """Initialize PluginExecutionError.

        Args:
            plugin_name: The plugin whose hook raised.
            stack_name: The stack being synthesized.
            cause: The original exception.
            results: Results recorded so far, in execution order.
        """
        self.plugin_name = plugin_name
        self.stack_name = stack_name
        self.cause = cause
        self.results = results
        super().__init__(
            f"Plugin '{plugin_name}' failed to execute in stack '{stack_name}': {cause}"
        )


class ConstructError(DotforgeError):
    """Base exception for construct tree errors."""

    pass


class MissingStackError(ConstructError):
    """Raised when a construct has no enclosing Stack.

    Attributes:
        path: Construct path of the orphaned node.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"No stack found for construct '{path}'")


class WorkflowDefinitionError(ConstructError):
    """Raised when a workflow element has an illegal shape.

    Attributes:
        path: Location of the element (e.g. "ci/jobs/test/steps/2").
        reason: Description of the violation.
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid workflow definition at '{path}': {reason}")


class SharedWorkflowInputError(ConstructError):
    """Raised when a reusable workflow is called without its required inputs.

    Attributes:
        workflow_id: The reusable workflow id.
        missing: Required input names that were not supplied.
    """

    def __init__(self, workflow_id: str, missing: list[str]) -> None:
        self.workflow_id = workflow_id
        self.missing = missing
        super().__init__(
            f"Shared workflow '{workflow_id}' is missing required inputs: {', '.join(missing)}"
        )


__all__ = [
    "ConfigFileError",
    "ConfigValidationError",
    "ConflictError",
    "ConstructError",
    "DotforgeError",
    "MissingDependencyError",
    "MissingStackError",
    "PluginError",
    "PluginExecutionError",
    "PluginLoadError",
    "SharedWorkflowInputError",
    "UnresolvedPluginError",
    "WorkflowDefinitionError",
]
