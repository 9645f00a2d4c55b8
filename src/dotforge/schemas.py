"""Configuration records for plugins, stacks and the project.

PluginConfig and StackConfig are the persisted records the manager
consumes; ProjectConfig is the top-level document loaded by
``dotforge.config``. All models are immutable and reject unknown keys.

Example:
    >>> config = validate_plugin_config({"name": "ci", "package": "ci"})
    >>> config.enabled
    True
    >>> validate_stack_config({"name": "main", "plugins": []})
    Traceback (most recent call last):
        ...
    ConfigValidationError: Invalid stack configuration: plugins: ...
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from dotforge.errors import ConfigValidationError

NAME_PATTERN = r"^[a-zA-Z0-9_-]+$"
"""Plugin and stack names: alphanumerics, hyphens and underscores."""

VERSION_PATTERN = r"^\d+\.\d+\.\d+"

ModelT = TypeVar("ModelT", bound=BaseModel)

Name = Annotated[str, Field(min_length=1, pattern=NAME_PATTERN)]


class PluginConfig(BaseModel):
    """How one plugin is loaded and configured.

    Attributes:
        name: Unique plugin configuration name, referenced by stacks.
        package: Local path (``./plugins/ci.py``) or named package
            (``ci``, ``my_pkg.plugins:Plugin``).
        config: Free-form plugin configuration.
        actions: Per-plugin action version overrides (``{"actions/checkout": "v4"}``).
        enabled: Disabled configs are skipped by the resolver.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: Name = Field(description="Plugin configuration name")
    package: str = Field(min_length=1, description="Plugin package reference")
    config: dict[str, Any] = Field(default_factory=dict)
    actions: dict[str, str] | None = None
    enabled: bool = True


class StackConfig(BaseModel):
    """An ordered set of plugins synthesized together into one stack.

    Attributes:
        name: Unique stack name.
        plugins: Plugin configuration names, in execution order.
        config: Stack-level configuration overlaid on every plugin's config.
        actions: Stack-level action version overrides; highest priority.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: Name = Field(description="Stack name")
    plugins: list[str] = Field(min_length=1)
    config: dict[str, Any] = Field(default_factory=dict)
    actions: dict[str, str] | None = None

    @field_validator("plugins")
    @classmethod
    def validate_unique_plugins(cls, v: list[str]) -> list[str]:
        """Reject duplicate plugin names within a stack."""
        if len(set(v)) != len(v):
            raise ValueError("Stack plugins must be unique")
        return v


class ProjectConfig(BaseModel):
    """Top-level project configuration document."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    version: str = Field(default="1.0.0", pattern=VERSION_PATTERN)
    root_dir: str = Field(default="src", min_length=1)
    output_dir: str = Field(default=".github", min_length=1)
    plugins: list[PluginConfig] = Field(default_factory=list)
    stacks: list[StackConfig] = Field(default_factory=list)

    @field_validator("plugins")
    @classmethod
    def validate_unique_plugin_names(cls, v: list[PluginConfig]) -> list[PluginConfig]:
        names = [plugin.name for plugin in v]
        if len(set(names)) != len(names):
            raise ValueError("Plugin names must be unique")
        return v

    @field_validator("stacks")
    @classmethod
    def validate_unique_stack_names(cls, v: list[StackConfig]) -> list[StackConfig]:
        names = [stack.name for stack in v]
        if len(set(names)) != len(names):
            raise ValueError("Stack names must be unique")
        return v


def convert_pydantic_errors(error: ValidationError) -> list[dict[str, Any]]:
    """Convert a pydantic ValidationError to field-level error details.

    Returns:
        List of dicts with ``field``, ``message`` and ``type`` keys. Model-level
        errors use ``<root>`` as the field.
    """
    errors: list[dict[str, Any]] = []
    for err in error.errors():
        loc = err.get("loc", ())
        field_path = ".".join(str(part) for part in loc) or "<root>"
        errors.append(
            {
                "field": field_path,
                "message": err.get("msg", "Unknown error"),
                "type": err.get("type", "unknown"),
            }
        )
    return errors


def _validate(model: type[ModelT], data: ModelT | Mapping[str, Any], subject: str) -> ModelT:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ConfigValidationError(subject, convert_pydantic_errors(e)) from e


def validate_plugin_config(data: PluginConfig | Mapping[str, Any]) -> PluginConfig:
    """Validate a plugin configuration record.

    Raises:
        ConfigValidationError: Naming each offending field and violation.
    """
    name = data.get("name") if isinstance(data, Mapping) else data.name
    return _validate(PluginConfig, data, f"plugin configuration '{name}'")


def validate_stack_config(data: StackConfig | Mapping[str, Any]) -> StackConfig:
    """Validate a stack configuration record.

    Raises:
        ConfigValidationError: Naming each offending field and violation.
    """
    return _validate(StackConfig, data, "stack configuration")


def validate_project_config(data: ProjectConfig | Mapping[str, Any]) -> ProjectConfig:
    return _validate(ProjectConfig, data, "project configuration")


__all__ = [
    "NAME_PATTERN",
    "PluginConfig",
    "ProjectConfig",
    "StackConfig",
    "convert_pydantic_errors",
    "validate_plugin_config",
    "validate_project_config",
    "validate_stack_config",
]
