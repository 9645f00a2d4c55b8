"""Canonical workflow serialization.

Workflows are re-keyed into a fixed order before being dumped so that
regenerating the same stack always produces byte-identical YAML, no matter
in which order plugins populated the in-memory mappings. Keys outside the
recognized set are dropped, and empty ``with`` mappings are omitted.

Pythonic spellings (``runs_on``, ``timeout_minutes``, ``if_``...) are accepted
as aliases of the workflow key names.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

import yaml

from dotforge.errors import WorkflowDefinitionError
from dotforge.outputs import OutputValue
from dotforge.steps import parse_step

WORKFLOW_KEY_ORDER: tuple[str, ...] = (
    "name",
    "run-name",
    "on",
    "permissions",
    "env",
    "defaults",
    "concurrency",
    "jobs",
)

JOB_KEY_ORDER: tuple[str, ...] = (
    "name",
    "permissions",
    "needs",
    "if",
    "runs-on",
    "environment",
    "concurrency",
    "outputs",
    "env",
    "defaults",
    "steps",
    "strategy",
    "container",
    "services",
    "uses",
    "with",
    "secrets",
    "timeout-minutes",
    "continue-on-error",
)

STEP_KEY_ORDER: tuple[str, ...] = (
    "id",
    "if",
    "name",
    "uses",
    "run",
    "shell",
    "with",
    "env",
    "continue-on-error",
    "timeout-minutes",
    "working-directory",
)

KEY_ALIASES: dict[str, str] = {
    "run_name": "run-name",
    "runs_on": "runs-on",
    "runsOn": "runs-on",
    "if_": "if",
    "with_": "with",
    "timeout_minutes": "timeout-minutes",
    "timeoutMinutes": "timeout-minutes",
    "continue_on_error": "continue-on-error",
    "continueOnError": "continue-on-error",
    "working_directory": "working-directory",
}

PERMISSION_ALIASES: dict[str, str] = {
    "id_token": "id-token",
    "idToken": "id-token",
    "pull_requests": "pull-requests",
    "pullRequests": "pull-requests",
    "security_events": "security-events",
    "securityEvents": "security-events",
}

STRATEGY_ALIASES: dict[str, str] = {
    "fail_fast": "fail-fast",
    "failFast": "fail-fast",
    "max_parallel": "max-parallel",
    "maxParallel": "max-parallel",
}


class _CanonicalDumper(yaml.SafeDumper):
    """SafeDumper that never emits anchors or aliases.

    Only YAML 1.2 booleans are treated as booleans, so keys such as ``on``
    are written plain instead of quoted.
    Output handles are written as their ``${{ ... }}`` expression.
    """

    def ignore_aliases(self, data: Any) -> bool:
        return True


_BOOL_TAG = "tag:yaml.org,2002:bool"

_CanonicalDumper.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _BOOL_TAG]
    for first, resolvers in yaml.SafeDumper.yaml_implicit_resolvers.items()
}
_CanonicalDumper.add_implicit_resolver(
    _BOOL_TAG,
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)


def _represent_output_value(dumper: yaml.SafeDumper, value: OutputValue) -> yaml.ScalarNode:
    return dumper.represent_str(value.expr)


_CanonicalDumper.add_representer(OutputValue, _represent_output_value)


def dump_yaml(data: Any) -> str:
    """Dump ``data`` as block-style YAML preserving mapping order."""
    return yaml.dump(
        data,
        Dumper=_CanonicalDumper,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
        indent=2,
        width=1 << 30,
    )


def _normalize_keys(mapping: Mapping[str, Any], aliases: Mapping[str, str]) -> dict[str, Any]:
    normalized: dict[str, Any] = {}
    for key, value in mapping.items():
        normalized[aliases.get(key, key)] = value
    return normalized


def _ordered(mapping: Mapping[str, Any], order: tuple[str, ...]) -> dict[str, Any]:
    return {key: mapping[key] for key in order if mapping.get(key) is not None}


def _canonical_permissions(permissions: Any) -> Any:
    if isinstance(permissions, Mapping):
        return _normalize_keys(permissions, PERMISSION_ALIASES)
    return permissions


def canonicalize_step(step: Any, path: str = "step") -> dict[str, Any]:
    """Return a step mapping in canonical key order."""
    data = parse_step(step if not isinstance(step, Mapping) else _normalize_keys(step, KEY_ALIASES), path)
    ordered = _ordered(data.to_dict(), STEP_KEY_ORDER)
    if not ordered.get("with"):
        ordered.pop("with", None)
    return ordered


def canonicalize_job(job: Mapping[str, Any], path: str = "job") -> dict[str, Any]:
    """Return a job mapping in canonical key order.

    Raises:
        WorkflowDefinitionError: If the job sets both ``steps`` and ``uses``.
    """
    data = _normalize_keys(job, KEY_ALIASES)
    if data.get("steps") and data.get("uses"):
        raise WorkflowDefinitionError(path, "job sets both 'steps' and a reusable workflow 'uses'")

    if data.get("steps") is not None:
        data["steps"] = [
            canonicalize_step(step, f"{path}/steps/{index}")
            for index, step in enumerate(data["steps"])
        ]
    if data.get("permissions") is not None:
        data["permissions"] = _canonical_permissions(data["permissions"])
    if isinstance(data.get("strategy"), Mapping):
        data["strategy"] = _normalize_keys(data["strategy"], STRATEGY_ALIASES)

    ordered = _ordered(data, JOB_KEY_ORDER)
    if not ordered.get("with"):
        ordered.pop("with", None)
    return ordered


def canonicalize_workflow(workflow: Mapping[str, Any], path: str = "workflow") -> dict[str, Any]:
    """Return a workflow mapping with workflow, job and step keys in canonical order."""
    data = _normalize_keys(workflow, KEY_ALIASES)
    if data.get("permissions") is not None:
        data["permissions"] = _canonical_permissions(data["permissions"])
    jobs = data.get("jobs") or {}
    data["jobs"] = {
        job_id: canonicalize_job(job, f"{path}/jobs/{job_id}") for job_id, job in jobs.items()
    }
    return _ordered(data, WORKFLOW_KEY_ORDER)


__all__ = [
    "JOB_KEY_ORDER",
    "STEP_KEY_ORDER",
    "WORKFLOW_KEY_ORDER",
    "canonicalize_job",
    "canonicalize_step",
    "canonicalize_workflow",
    "dump_yaml",
]
