"""Plugin description formatting and config schema introspection.

Renders PluginDescription objects as plain text (``dotforge plugins
describe``) or markdown, and extracts field-level information from a
plugin's pydantic config model.
"""

from __future__ import annotations

import types
from dataclasses import dataclass, field
from typing import Any, Literal, Union, get_args, get_origin

from pydantic import BaseModel
from pydantic.fields import FieldInfo

from dotforge.plugins.base import PluginDescription

_TYPE_NAMES: dict[Any, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    tuple: "array",
    set: "array",
    dict: "object",
    Any: "any",
}

_CONSTRAINTS: tuple[tuple[str, str], ...] = (
    ("min_length", "minimum length"),
    ("max_length", "maximum length"),
    ("ge", "minimum"),
    ("gt", "greater than"),
    ("le", "maximum"),
    ("lt", "less than"),
    ("pattern", "pattern"),
)

_EXAMPLE_VALUES: dict[str, Any] = {
    "string": "example-value",
    "integer": 10,
    "number": 10,
    "boolean": True,
    "array": [],
    "object": {},
}


@dataclass
class ConfigFieldInfo:
    """Description of one config field."""

    name: str
    type: str
    required: bool
    description: str | None = None
    default: Any = None
    options: list[Any] | None = None
    validation: str | None = None


@dataclass
class ConfigSchemaInfo:
    fields: list[ConfigFieldInfo] = field(default_factory=list)
    example: dict[str, Any] = field(default_factory=dict)


def _unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        optional = len(args) != len(get_args(annotation))
        if len(args) == 1:
            return args[0], optional
        return Union[tuple(args)], optional
    return annotation, False


def _type_name(annotation: Any) -> str:
    annotation, _ = _unwrap_optional(annotation)
    origin = get_origin(annotation)
    if origin is Literal:
        return "enum"
    if origin is Union or origin is types.UnionType:
        return " | ".join(_type_name(arg) for arg in get_args(annotation))
    if origin is not None:
        return _TYPE_NAMES.get(origin, getattr(origin, "__name__", str(origin)))
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return "object"
    return _TYPE_NAMES.get(annotation, getattr(annotation, "__name__", str(annotation)))


def _options(annotation: Any) -> list[Any] | None:
    annotation, _ = _unwrap_optional(annotation)
    if get_origin(annotation) is Literal:
        return list(get_args(annotation))
    return None


def _validation(info: FieldInfo, options: list[Any] | None) -> str | None:
    rules: list[str] = []
    for constraint in info.metadata:
        for attribute, label in _CONSTRAINTS:
            value = getattr(constraint, attribute, None)
            if value is not None:
                rules.append(f"{label}: {value}")
    if options:
        rules.append(f"options: {', '.join(str(option) for option in options)}")
    return ", ".join(rules) or None


def _field_info(name: str, info: FieldInfo) -> ConfigFieldInfo:
    options = _options(info.annotation)
    required = info.is_required()
    return ConfigFieldInfo(
        name=info.alias or name,
        type=_type_name(info.annotation),
        required=required,
        description=info.description,
        default=None if required else info.get_default(call_default_factory=True),
        options=options,
        validation=_validation(info, options),
    )


def _example_value(info: ConfigFieldInfo) -> Any:
    if info.default is not None:
        return info.default
    if info.options:
        return info.options[0]
    return _EXAMPLE_VALUES.get(info.type, "example-value")


def extract_config_schema_info(schema: type[BaseModel] | None) -> ConfigSchemaInfo:
    """Extract field name, type, requiredness, default and options from a config model.

    Example:
        >>> class Config(BaseModel):
        ...     runs_on: str = "ubuntu-latest"
        ...     package_manager: Literal["npm", "pnpm"] = "npm"
        >>> [f.name for f in extract_config_schema_info(Config).fields]
        ['runs_on', 'package_manager']
    """
    info = ConfigSchemaInfo()
    if schema is None:
        return info
    for name, field_info in schema.model_fields.items():
        config_field = _field_info(name, field_info)
        info.fields.append(config_field)
        info.example[config_field.name] = _example_value(config_field)
    return info


def format_config_schema_info(info: ConfigSchemaInfo) -> str:
    if not info.fields:
        return "Configuration: none"

    lines = ["Configuration:"]
    for config_field in info.fields:
        marker = "required" if config_field.required else "optional"
        lines.append(f"  {config_field.name} ({config_field.type}, {marker})")
        if config_field.description:
            lines.append(f"    {config_field.description}")
        if config_field.default is not None:
            lines.append(f"    default: {config_field.default!r}")
        if config_field.validation:
            lines.append(f"    {config_field.validation}")
    return "\n".join(lines)


def format_plugin_description(description: PluginDescription) -> str:
    """Format a description for terminal display."""
    lines = [f"Name: {description.name}"]

    for label, value in (
        ("Version", description.version),
        ("Description", description.description),
        ("Author", description.author),
        ("License", description.license),
        ("Category", description.category),
    ):
        if value:
            lines.append(f"{label}: {value}")

    for label, values in (
        ("Keywords", description.keywords),
        ("Dependencies", description.dependencies),
        ("Conflicts", description.conflicts),
    ):
        if values:
            lines.append(f"{label}: {', '.join(values)}")

    if description.config_schema is not None:
        lines.append("")
        lines.append(format_config_schema_info(extract_config_schema_info(description.config_schema)))

    if description.repository:
        lines.append("")
        lines.append(f"Repository: {description.repository}")
    if description.homepage:
        lines.append(f"Homepage: {description.homepage}")

    return "\n".join(lines)


def generate_plugin_markdown(description: PluginDescription) -> str:
    """Render a description as a markdown document with a config table."""
    lines = [f"# {description.name}", ""]
    if description.description:
        lines.extend([description.description, ""])

    if description.version:
        lines.append(f"**Version:** {description.version}")
    if description.author:
        lines.append(f"**Author:** {description.author}")
    if description.license:
        lines.append(f"**License:** {description.license}")
    if description.category:
        lines.append(f"**Category:** {description.category}")
    if description.dependencies:
        lines.append(f"**Dependencies:** {', '.join(description.dependencies)}")
    if description.conflicts:
        lines.append(f"**Conflicts:** {', '.join(description.conflicts)}")
    if lines[-1] != "":
        lines.append("")

    info = extract_config_schema_info(description.config_schema)
    if info.fields:
        lines.extend(
            [
                "## Configuration",
                "",
                "| Field | Type | Required | Default | Description |",
                "|---|---|---|---|---|",
            ]
        )
        for config_field in info.fields:
            default = "" if config_field.default is None else f"`{config_field.default!r}`"
            lines.append(
                f"| `{config_field.name}` | {config_field.type} | "
                f"{'yes' if config_field.required else 'no'} | {default} | "
                f"{config_field.description or ''} |"
            )
        lines.append("")

    if description.repository or description.homepage:
        lines.append("## Links")
        lines.append("")
        if description.repository:
            lines.append(f"- Repository: {description.repository}")
        if description.homepage:
            lines.append(f"- Homepage: {description.homepage}")
        lines.append("")

    return "\n".join(lines)


__all__ = [
    "ConfigFieldInfo",
    "ConfigSchemaInfo",
    "extract_config_schema_info",
    "format_config_schema_info",
    "format_plugin_description",
    "generate_plugin_markdown",
]
