"""Plugin contract.

A plugin is any object exposing ``name`` and ``synthesize(stack)``, and
optionally ``version``, ``description``, ``dependencies``, ``conflicts``,
``validate(stack)`` and ``describe()``. Hooks may be plain functions or
coroutines; the manager awaits whatever they return.

Plugin is the convenience base class implementing every optional member.

Example:
    >>> class HelloPlugin(Plugin):
    ...     @property
    ...     def name(self) -> str:
    ...         return "hello"
    ...
    ...     def synthesize(self, stack: Stack) -> None:
    ...         stack.add_file_resource("HELLO.md", "hello\\n")
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from dotforge.errors import ConfigValidationError
from dotforge.schemas import convert_pydantic_errors

if TYPE_CHECKING:
    from dotforge.constructs.base import Stack


class PluginDescription(BaseModel):
    """Read-only description of a plugin.

    Attributes:
        name: Plugin name.
        version: Plugin version, if declared.
        description: Human-readable summary.
        config_schema: Pydantic model class validating the plugin config.
        dependencies: Plugins that must run in the same stack.
        conflicts: Plugins that must not run in the same stack.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    name: str = Field(min_length=1)
    version: str | None = None
    description: str | None = None
    author: str | None = None
    homepage: str | None = None
    repository: str | None = None
    license: str | None = None
    keywords: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    conflicts: list[str] = Field(default_factory=list)
    config_schema: type[BaseModel] | None = None
    tags: list[str] = Field(default_factory=list)
    category: str | None = None


class Plugin(ABC):
    """Base class for dotforge plugins.

    Abstract members:
        name: Unique plugin name for the load session.
        synthesize(stack): Write workflows, resources and metadata into the stack.

    Optional members (overridable):
        version, description, dependencies, conflicts: Metadata used for
            describe output and batch constraint checks.
        validate(stack): Runs before ``synthesize``; raising halts the stack.
        get_config_schema(): Pydantic model class for the plugin config.
        describe(): Returns a PluginDescription.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Plugin name (e.g. 'ci', 'release')."""
        ...

    @property
    def version(self) -> str | None:
        return None

    @property
    def description(self) -> str:
        return ""

    @property
    def dependencies(self) -> list[str]:
        """Names of plugins that must be part of the same stack.

        Example:
            >>> class ReleasePlugin(Plugin):
            ...     @property
            ...     def dependencies(self) -> list[str]:
            ...         return ["ci"]
        """
        return []

    @property
    def conflicts(self) -> list[str]:
        """Names of plugins that must not be part of the same stack."""
        return []

    def validate(self, stack: Stack) -> None | Awaitable[None]:  # noqa: B027
        """Check the merged configuration on ``stack.config`` before synthesis.

        The default implementation accepts everything.
        """

    @abstractmethod
    def synthesize(self, stack: Stack) -> None | Awaitable[None]:
        """Contribute workflows, resources and metadata to ``stack``."""
        ...

    def get_config_schema(self) -> type[BaseModel] | None:
        """Return the pydantic model validating this plugin's config, if any."""
        return None

    def describe(self) -> PluginDescription | Awaitable[PluginDescription]:
        """Describe the plugin from its declared metadata."""
        return PluginDescription(
            name=self.name,
            version=self.version,
            description=self.description or None,
            dependencies=list(self.dependencies),
            conflicts=list(self.conflicts),
            config_schema=self.get_config_schema(),
        )

    def parse_config(self, stack: Stack) -> Any:
        """Validate ``stack.config`` against ``get_config_schema()``.

        Returns the validated model, or the raw mapping when the plugin has
        no schema. Keys other than the schema's fields (``actions``, stack
        level settings) are ignored.

        Raises:
            ConfigValidationError: If the config does not match the schema.
        """
        schema = self.get_config_schema()
        if schema is None:
            return dict(stack.config)
        accepted = set(schema.model_fields)
        accepted.update(field.alias for field in schema.model_fields.values() if field.alias)
        known = {key: value for key, value in stack.config.items() if key in accepted}
        try:
            return schema.model_validate(known)
        except ValidationError as e:
            raise ConfigValidationError(
                f"configuration of plugin '{self.name}'", convert_pydantic_errors(e)
            ) from e


__all__ = ["Plugin", "PluginDescription"]
