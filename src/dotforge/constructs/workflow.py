"""Workflow and job constructs.

WorkflowConstruct registers its workflow mapping on the owning Stack as
soon as it is created; JobConstruct registers its job mapping on the
parent workflow. Both keep a live reference to the registered mapping so
steps added later show up at synth time.

Example:
    >>> stack = Stack(None, "main")
    >>> wf = WorkflowConstruct(stack, "ci", {"on": {"push": {}}})
    >>> job = JobConstruct(wf, "test", {"runs-on": "ubuntu-latest"})
    >>> _ = job.add_action_step("actions/checkout").add_run_step("echo hi")
    >>> [s.get("run") or s.get("uses") for s in wf.jobs["test"]["steps"]]
    ['actions/checkout@latest', 'echo hi']
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from dotforge.constructs.base import Construct, Job, Stack, Workflow
from dotforge.steps import Step, create_step, parse_step


class WorkflowConstruct(Construct):
    """A workflow registered on the owning stack under its construct id."""

    def __init__(self, scope: Stack, id: str, workflow: Workflow | None = None) -> None:
        super().__init__(scope, id)
        self._workflow: Workflow = dict(workflow or {})
        self._workflow.setdefault("jobs", {})
        self._jobs: dict[str, JobConstruct] = {}
        self.stack.add_workflow(id, self._workflow)

    def add_job(self, id: str, job: JobConstruct) -> JobConstruct:
        self._jobs[id] = job
        self._workflow["jobs"][id] = job.job
        return job

    def get_job(self, id: str) -> JobConstruct | None:
        return self._jobs.get(id)

    @property
    def workflow(self) -> Workflow:
        return self._workflow

    @property
    def jobs(self) -> dict[str, Job]:
        return dict(self._workflow["jobs"])


class JobConstruct(Construct):
    """A job inside a WorkflowConstruct.

    Action steps added through ``add_action_step`` resolve their pinned
    version against the owning stack's merged configuration, so stack and
    plugin ``actions`` overrides apply.
    """

    def __init__(self, scope: WorkflowConstruct, id: str, job: Job | None = None) -> None:
        super().__init__(scope, id)
        self._job: Job = dict(job or {})
        scope.add_job(id, self)

    def add_step(self, step: Step | Mapping[str, Any]) -> JobConstruct:
        """Append a step; mappings are checked for the ``uses``/``run`` shape."""
        parsed = parse_step(step, path=f"{self.node.path}/steps/{len(self.steps)}")
        self._job.setdefault("steps", []).append(parsed.to_dict())
        return self

    def add_steps(self, steps: Iterable[Step | Mapping[str, Any]]) -> JobConstruct:
        for step in steps:
            self.add_step(step)
        return self

    def add_action_step(
        self,
        uses: str,
        inputs: Mapping[str, Any] | None = None,
        step: Mapping[str, Any] | None = None,
        ref: str | None = None,
    ) -> JobConstruct:
        fields = dict(step or {})
        if inputs:
            fields["with"] = dict(inputs)
        return self.add_step(create_step(uses, fields, ref=ref, context=self.stack.config))

    def add_run_step(self, run: str, step: Mapping[str, Any] | None = None) -> JobConstruct:
        fields = dict(step or {})
        fields["run"] = run
        return self.add_step(fields)

    @property
    def job(self) -> Job:
        return self._job

    @property
    def steps(self) -> list[dict[str, Any]]:
        return list(self._job.get("steps", []))


__all__ = ["JobConstruct", "WorkflowConstruct"]
