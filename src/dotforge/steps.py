"""Workflow step models and the action invocation helper.

A step is either an action step (``uses`` an external action pinned to a
version, with an input mapping) or a run step (shell script plus optional
working directory). The two are separate models so a step carrying both
``uses`` and ``run`` cannot be constructed.

Example:
    >>> step = create_step("actions/checkout", {"name": "Checkout"})
    >>> step.uses
    'actions/checkout@latest'
    >>> step.id.startswith("step-")
    True
    >>> run_step("Test", "pytest").run
    'pytest'
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from dotforge.errors import WorkflowDefinitionError

logger = structlog.get_logger(__name__)

DEFAULT_ACTION_VERSION = "latest"
"""Version used when no override, explicit ref or fallback ref is available."""

STEP_ID_PREFIX = "step-"

_HASH_MASK = 0xFFFFFFFF


class _StepBase(BaseModel):
    """Fields shared by both step kinds."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: str | None = None
    if_: str | None = Field(default=None, alias="if")
    name: str | None = None
    env: dict[str, Any] | None = None
    continue_on_error: bool | str | None = Field(default=None, alias="continue-on-error")
    timeout_minutes: int | str | None = Field(default=None, alias="timeout-minutes")

    def to_dict(self) -> dict[str, Any]:
        """Return the step as a workflow mapping with workflow key names."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ActionStep(_StepBase):
    """A step invoking an external action pinned to a version.

    Attributes:
        uses: Action reference with version, e.g. ``actions/checkout@v4``.
        with_: Action inputs (serialized as ``with``).
    """

    uses: str = Field(..., min_length=1)
    with_: dict[str, Any] | None = Field(default=None, alias="with")

    @property
    def action(self) -> str:
        """Action reference without the pinned version."""
        return self.uses.rsplit("@", 1)[0]

    @property
    def version(self) -> str | None:
        """Pinned version, or None when the reference is unpinned."""
        if "@" not in self.uses:
            return None
        return self.uses.rsplit("@", 1)[1]


class RunStep(_StepBase):
    """A step running a shell script."""

    run: str = Field(..., min_length=1)
    shell: str | None = None
    working_directory: str | None = Field(default=None, alias="working-directory")


Step = Union[ActionStep, RunStep]


def parse_step(data: Step | Mapping[str, Any], path: str = "step") -> Step:
    """Turn a step mapping into an ActionStep or RunStep.

    Args:
        data: Step model or mapping using workflow key names (``uses``,
            ``run``, ``with``, ``working-directory``...) or field names.
        path: Location used in error messages.

    Returns:
        The matching step model. Unrecognized keys are dropped.

    Raises:
        WorkflowDefinitionError: If the mapping sets both or neither of
            ``uses`` and ``run``, or a field has the wrong type.
    """
    if isinstance(data, (ActionStep, RunStep)):
        return data

    has_uses = data.get("uses") is not None
    has_run = data.get("run") is not None
    if has_uses and has_run:
        raise WorkflowDefinitionError(path, "step sets both 'uses' and 'run'")
    if not has_uses and not has_run:
        raise WorkflowDefinitionError(path, "step must set either 'uses' or 'run'")

    model: type[ActionStep] | type[RunStep] = ActionStep if has_uses else RunStep
    try:
        return model.model_validate(dict(data))
    except ValidationError as e:
        reasons = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise WorkflowDefinitionError(path, reasons) from e


def generate_step_id(
    name: str | None,
    uses: str,
    inputs: Mapping[str, Any] | None = None,
    ref: str | None = None,
) -> str:
    """Derive a deterministic step id from the step's logical identity.

    The canonical JSON encoding of ``(name, uses, inputs, ref)`` is folded
    with a 32-bit rolling hash (``h * 31 + c``). Identical inputs always
    give identical ids, so later steps can reference
    ``step.<id>.outputs.<key>`` without tracking ids by hand.

    Args:
        name: Step display name.
        uses: Action reference without version.
        inputs: Action inputs.
        ref: Resolved action version.

    Returns:
        An id of the form ``step-xxxxxxxx``.
    """
    # Empty inputs serialize like no inputs
    inputs = inputs or None
    payload = {
        key: value
        for key, value in (("name", name), ("uses", uses), ("inputs", inputs), ("ref", ref))
        if value is not None
    }
    content = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)

    value = 0
    for char in content:
        value = (value * 31 + ord(char)) & _HASH_MASK

    # Interpret as signed 32-bit before taking the magnitude
    if value & 0x80000000:
        value -= 1 << 32
    return f"{STEP_ID_PREFIX}{abs(value):08x}"


def resolve_action_version(
    uses: str,
    ref: str | None = None,
    context: Mapping[str, Any] | None = None,
    fallback_ref: str | None = None,
) -> str:
    """Resolve the pinned version for an action reference.

    Priority: the merged config's ``actions`` entry for ``uses``, then the
    explicit ``ref``, then ``fallback_ref``, then ``"latest"``.
    """
    overrides = (context or {}).get("actions") or {}
    override = overrides.get(uses)
    if override:
        return str(override)
    if ref:
        return ref
    if fallback_ref:
        return fallback_ref
    return DEFAULT_ACTION_VERSION


def create_step(
    uses: str,
    step: Mapping[str, Any] | None = None,
    ref: str | None = None,
    context: Mapping[str, Any] | None = None,
    fallback_ref: str | None = None,
) -> ActionStep:
    """Build an action step with a resolved version and a stable id.

    Args:
        uses: Action reference, e.g. ``actions/checkout``. A reference that
            already carries ``@version`` contributes that version as the
            explicit ref unless ``ref`` is given.
        step: Extra step fields (``name``, ``with``, ``env``, ``id``...).
        ref: Explicit version.
        context: Merged plugin configuration whose ``actions`` mapping
            overrides versions per action reference.
        fallback_ref: Version used when neither override nor ref apply.

    Returns:
        ActionStep with ``uses`` set to ``<uses>@<version>``.

    Raises:
        WorkflowDefinitionError: If ``step`` carries a ``run`` script.
    """
    overrides = dict(step or {})
    if overrides.get("run") is not None:
        raise WorkflowDefinitionError(uses, "action step cannot carry a 'run' script")
    overrides.pop("uses", None)

    if "@" in uses:
        uses, pinned = uses.rsplit("@", 1)
        ref = ref or pinned

    version = resolve_action_version(uses, ref=ref, context=context, fallback_ref=fallback_ref)

    inputs = overrides.get("with", overrides.get("with_"))
    if not overrides.get("id"):
        overrides["id"] = generate_step_id(overrides.get("name"), uses, inputs, version)

    logger.debug("create_step.resolved", uses=uses, version=version, step_id=overrides["id"])

    overrides["uses"] = f"{uses}@{version}"
    return ActionStep.model_validate(overrides)


def run_step(name: str, script: str, step: Mapping[str, Any] | None = None) -> RunStep:
    """Build a run step.

    Args:
        name: Step display name.
        script: Shell script to execute.
        step: Extra step fields (``shell``, ``working-directory``, ``env``...).
    """
    fields = dict(step or {})
    if fields.get("uses") is not None:
        raise WorkflowDefinitionError(name, "run step cannot carry a 'uses' reference")
    fields["name"] = name
    fields["run"] = script
    return RunStep.model_validate(fields)


__all__ = [
    "DEFAULT_ACTION_VERSION",
    "ActionStep",
    "RunStep",
    "Step",
    "create_step",
    "generate_step_id",
    "parse_step",
    "resolve_action_version",
    "run_step",
]
