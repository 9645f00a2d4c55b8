"""Construct tree and the Stack aggregate.

Every construct carries a ConstructNode holding its id, a weak reference
to its parent scope, its path, and a direct pointer to the owning Stack.
The owning Stack is resolved once when the node is created, so looking it
up later never walks the tree.

The Stack collects workflows, file resources and free-form metadata from
every plugin of one synthesis pass, and converts them into
``{relative path: text}`` with ``synth()``.

Example:
    >>> stack = Stack(None, "main")
    >>> stack.add_workflow("ci", {"on": "push", "jobs": {}})
    >>> sorted(stack.synth())
    ['workflows/ci.yml']
"""

from __future__ import annotations

import weakref
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from dotforge.errors import MissingStackError
from dotforge.serialization import canonicalize_workflow, dump_yaml

if TYPE_CHECKING:
    from dotforge.plugins.helpers import ActionsHelper, SharedWorkflowHelper
    from dotforge.schemas import StackConfig

logger = structlog.get_logger(__name__)

Workflow = dict[str, Any]
"""A workflow mapping (name, on, permissions, env, concurrency, jobs...)."""

Job = dict[str, Any]
"""A job mapping (runs-on, needs, steps or uses, strategy...)."""

WORKFLOWS_DIR = "workflows"


@dataclass
class Resource:
    """A non-workflow file or directory under the generated tree.

    Attributes:
        content: File content. Strings are written verbatim, anything else
            is serialized as YAML.
        children: Nested resources when this resource is a directory.
    """

    content: Any = None
    children: dict[str, Resource] | None = None


class ConstructNode:
    """Tree bookkeeping for one construct.

    Attributes:
        id: Identifier, unique among siblings.
        path: Slash-joined ids from the root down to this node.
    """

    def __init__(self, host: Construct, scope: Construct | None, id: str) -> None:
        self.id = id
        self._scope_ref = weakref.ref(scope) if scope is not None else None
        self.path = id if scope is None else f"{scope.node.path}/{id}"

        if isinstance(host, Stack):
            self._stack: Stack | None = host
        elif scope is not None:
            self._stack = scope.node._stack
        else:
            self._stack = None

    @property
    def scope(self) -> Construct | None:
        """Parent construct, or None for a root (or a collected parent)."""
        if self._scope_ref is None:
            return None
        return self._scope_ref()

    def find_stack(self) -> Stack:
        """Return the owning Stack.

        Raises:
            MissingStackError: If no ancestor is a Stack.
        """
        if self._stack is None:
            raise MissingStackError(self.path)
        return self._stack


class Construct:
    """Base class for every node in the construct tree."""

    def __init__(self, scope: Construct | None, id: str) -> None:
        self.node = ConstructNode(self, scope, id)

    @property
    def stack(self) -> Stack:
        """Owning Stack (raises MissingStackError when there is none)."""
        return self.node.find_stack()


class Stack(Construct):
    """Root aggregate for one synthesis pass.

    Besides its durable content (workflows, resources, metadata) the stack
    holds transient per-plugin context that the PluginManager replaces
    before each plugin runs: the merged configuration, the active stack
    configuration, the project root and fresh helper handles.

    Attributes:
        config: Merged configuration of the plugin currently executing.
        stack_config: Configuration of the stack being synthesized.
        project_root: Project root directory.
        actions: Action invocation helper bound to this stack.
        shared_workflows: Reusable workflow helper bound to this stack.
    """

    def __init__(self, scope: Construct | None = None, id: str = "Stack") -> None:
        super().__init__(scope, id)
        self._workflows: dict[str, Workflow] = {}
        self._resources: dict[str, Resource] = {}
        self._metadata: dict[str, Any] = {}

        self.config: dict[str, Any] = {}
        self.stack_config: StackConfig | None = None
        self.project_root: str | None = None
        self.actions: ActionsHelper | None = None
        self.shared_workflows: SharedWorkflowHelper | None = None

    @property
    def name(self) -> str:
        return self.node.id

    def add_workflow(self, id: str, workflow: Workflow) -> None:
        """Register a workflow; an existing workflow with the same id is replaced."""
        if id in self._workflows:
            logger.debug("add_workflow.replaced", stack=self.name, workflow=id)
        self._workflows[id] = workflow

    def add_resource(self, path: str, resource: Resource) -> None:
        """Register a resource; an existing resource at ``path`` is replaced."""
        if path in self._resources:
            logger.debug("add_resource.replaced", stack=self.name, path=path)
        self._resources[path] = resource

    def add_file_resource(self, path: str, content: Any) -> None:
        self.add_resource(path, Resource(content=content))

    def add_directory_resource(self, path: str, children: dict[str, Resource] | None = None) -> None:
        self.add_resource(path, Resource(children=dict(children or {})))

    def set_metadata(self, key: str, value: Any) -> None:
        self._metadata[key] = value

    def get_metadata(self, key: str, default: Any = None) -> Any:
        return self._metadata.get(key, default)

    @property
    def metadata(self) -> dict[str, Any]:
        return dict(self._metadata)

    @property
    def workflows(self) -> dict[str, Workflow]:
        return dict(self._workflows)

    @property
    def resources(self) -> dict[str, Resource]:
        return dict(self._resources)

    def synth(self) -> dict[str, str]:
        """Convert the stack into ``{relative path: text}``.

        Workflows land at ``workflows/<id>.yml`` in canonical key order;
        resources land at their own paths. Stored state is not modified, so
        repeated calls give identical output.

        Raises:
            WorkflowDefinitionError: If a step or job has an illegal shape.
        """
        files: dict[str, str] = {}

        for workflow_id, workflow in self._workflows.items():
            canonical = canonicalize_workflow(workflow, path=workflow_id)
            files[f"{WORKFLOWS_DIR}/{workflow_id}.yml"] = dump_yaml(canonical)

        self._synth_resources("", self._resources, files)

        logger.debug(
            "synth.completed",
            stack=self.name,
            workflow_count=len(self._workflows),
            file_count=len(files),
        )
        return files

    def _synth_resources(
        self,
        base_path: str,
        resources: dict[str, Resource],
        files: dict[str, str],
    ) -> None:
        for name, resource in resources.items():
            full_path = f"{base_path}/{name}" if base_path else name
            if resource.content is not None:
                if isinstance(resource.content, str):
                    files[full_path] = resource.content
                else:
                    files[full_path] = dump_yaml(resource.content)
            elif resource.children is not None:
                self._synth_resources(full_path, resource.children, files)


__all__ = [
    "Construct",
    "ConstructNode",
    "Job",
    "Resource",
    "Stack",
    "Workflow",
]
