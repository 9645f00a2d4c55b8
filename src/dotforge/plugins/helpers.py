"""Helper handles injected into the stack before each plugin runs.

The manager builds fresh helpers per plugin invocation so they always see
that plugin's merged configuration through ``stack.config``.

Example:
    >>> actions = ActionsHelper(stack)
    >>> actions.invoke_action("actions/setup-node", {"node-version": "20"}).uses
    'actions/setup-node@latest'
    >>> chain = actions.chain("actions/cache", {"path": "~/.npm"}, outputs=["cache-hit"])
    >>> chain.outputs["cache-hit"].path.endswith(".outputs.cache-hit")
    True
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from dotforge.constructs.shared_workflow import SharedWorkflowConstruct
from dotforge.outputs import StepChain
from dotforge.steps import ActionStep, RunStep, Step, create_step, run_step

if TYPE_CHECKING:
    from dotforge.constructs.base import Stack


class ActionsHelper:
    """Builds action and run steps against a stack's merged configuration.

    Attributes:
        fallback_ref: Version used when neither an override nor an explicit
            ref is available (before falling back to ``latest``).
    """

    def __init__(self, stack: Stack, fallback_ref: str | None = None) -> None:
        self._stack = stack
        self.fallback_ref = fallback_ref

    def run(self, name: str, script: str, step: Mapping[str, Any] | None = None) -> RunStep:
        return run_step(name, script, step)

    def invoke_action(
        self,
        uses: str,
        inputs: Mapping[str, Any] | None = None,
        step: Mapping[str, Any] | None = None,
        ref: str | None = None,
    ) -> ActionStep:
        """Create an action step, resolving the version through the override chain.

        Args:
            uses: Action reference (e.g. ``actions/checkout``).
            inputs: Action inputs, serialized as ``with``.
            step: Extra step fields (``name``, ``id``, ``if``...).
            ref: Explicit version, overridden by configured ``actions`` entries.
        """
        fields = dict(step or {})
        if inputs:
            fields["with"] = dict(inputs)
        return create_step(
            uses,
            fields,
            ref=ref,
            context=self._stack.config,
            fallback_ref=self.fallback_ref,
        )

    def chain(
        self,
        uses: str,
        inputs: Mapping[str, Any] | None = None,
        outputs: Iterable[str] = (),
        step: Mapping[str, Any] | None = None,
        ref: str | None = None,
    ) -> StepChain:
        """Invoke an action and expose its declared outputs as handles."""
        return StepChain(self.invoke_action(uses, inputs, step, ref), outputs)

    def step_chain(self, initial_step: Step | Mapping[str, Any], outputs: Iterable[str] = ()) -> StepChain:
        return StepChain(initial_step, outputs)

    def find_action(self, uses: str) -> dict[str, str] | None:
        """Return ``{"uses": ..., "ref": ...}`` when an override exists for ``uses``."""
        overrides = self._stack.config.get("actions") or {}
        ref = overrides.get(uses)
        if not ref:
            return None
        return {"uses": uses, "ref": ref}

    def get_action_ref(self, uses: str) -> str | None:
        action = self.find_action(uses)
        return action["ref"] if action else None


class SharedWorkflowHelper:
    """Creates reusable workflows on the stack."""

    def __init__(self, stack: Stack) -> None:
        self._stack = stack

    def create(
        self,
        id: str,
        inputs: dict[str, dict[str, Any]] | None = None,
        workflow: dict[str, Any] | None = None,
    ) -> SharedWorkflowConstruct:
        return SharedWorkflowConstruct(self._stack, id, inputs, workflow)

    def create_simple(
        self,
        id: str,
        inputs: dict[str, dict[str, Any]] | None,
        steps: list[Step | Mapping[str, Any]],
        runs_on: str | list[str] = "ubuntu-latest",
        name: str | None = None,
        outputs: dict[str, str] | None = None,
        env: dict[str, str] | None = None,
        permissions: dict[str, str] | str | None = None,
    ) -> SharedWorkflowConstruct:
        """Create a reusable workflow with a single job named after ``id``."""
        job: dict[str, Any] = {
            "runs-on": runs_on,
            "steps": list(steps),
            "outputs": outputs,
            "env": env,
            "permissions": permissions,
        }
        workflow = {"name": name or id, "jobs": {id: job}}
        return self.create(id, inputs, workflow)


__all__ = ["ActionsHelper", "SharedWorkflowHelper"]
