"""Reusable (``workflow_call``) workflow construct.

A shared workflow is written to ``workflows/<id>.yml`` like any other
workflow, triggered by ``workflow_call`` with declared inputs. Other
workflows invoke it through a job produced by ``call()``.

Example:
    >>> shared = SharedWorkflowConstruct(
    ...     stack,
    ...     "build",
    ...     {"node-version": {"type": "string", "required": True}},
    ...     {"jobs": {"build": {"runs-on": "ubuntu-latest", "steps": [{"run": "make"}]}}},
    ... )
    >>> shared.call({"node-version": "20"}, needs=["lint"])["uses"]
    './.github/workflows/build.yml'
"""

from __future__ import annotations

from typing import Any

from dotforge.constructs.base import Construct, Job, Workflow
from dotforge.errors import SharedWorkflowInputError

SHARED_WORKFLOW_PATH_PREFIX = "./.github/workflows"


class SharedWorkflowConstruct(Construct):
    """A reusable workflow with typed inputs.

    Attributes:
        workflow_path: Repository path used by calling jobs.
    """

    def __init__(
        self,
        scope: Construct,
        id: str,
        inputs: dict[str, dict[str, Any]] | None = None,
        workflow: Workflow | None = None,
    ) -> None:
        super().__init__(scope, id)
        self._inputs: dict[str, dict[str, Any]] = dict(inputs or {})
        self._workflow: Workflow = {key: value for key, value in (workflow or {}).items() if key != "on"}
        self.workflow_path = f"{SHARED_WORKFLOW_PATH_PREFIX}/{id}.yml"
        self.stack.add_workflow(id, self.workflow)

    @property
    def inputs(self) -> dict[str, dict[str, Any]]:
        return dict(self._inputs)

    @property
    def workflow(self) -> Workflow:
        """Workflow mapping with the ``workflow_call`` trigger and its inputs."""
        trigger: dict[str, Any] = {"workflow_call": {"inputs": self._inputs} if self._inputs else None}
        workflow = dict(self._workflow)
        workflow["on"] = trigger
        workflow.setdefault("jobs", {})
        return workflow

    def call(self, inputs: dict[str, Any] | None = None, **job: Any) -> Job:
        """Build a job that calls this workflow.

        Args:
            inputs: Input values passed as ``with``.
            **job: Extra job fields (``needs``, ``if``, ``secrets``...).

        Raises:
            SharedWorkflowInputError: If a required input is not supplied.
        """
        values = dict(inputs or {})
        missing = [
            name
            for name, definition in self._inputs.items()
            if definition.get("required") and name not in values
        ]
        if missing:
            raise SharedWorkflowInputError(self.node.id, missing)

        call: Job = {"uses": self.workflow_path, "with": values}
        call.update(job)
        return call


__all__ = ["SharedWorkflowConstruct"]
