"""Non-workflow file constructs.

Each construct registers a Resource on the owning stack at its declared
path. The construct id is the path with separators replaced by dashes so
nested paths stay unique among siblings.
"""

from __future__ import annotations

from typing import Any

from dotforge.constructs.base import Construct, Resource, Stack

CODEOWNERS_PATH = "CODEOWNERS"
PULL_REQUEST_TEMPLATE_PATH = "PULL_REQUEST_TEMPLATE.md"
DEPENDABOT_PATH = "dependabot.yml"


class ResourceConstruct(Construct):
    """A file or directory registered on the stack.

    Attributes:
        resource_path: Path of the resource relative to the output root.
    """

    def __init__(
        self,
        scope: Stack,
        path: str,
        content: Any = None,
        children: dict[str, Resource] | None = None,
    ) -> None:
        super().__init__(scope, path.replace("/", "-").replace("\\", "-"))
        self.resource_path = path
        self._resource = Resource(content=content, children=children)
        self.stack.add_resource(path, self._resource)

    @property
    def resource(self) -> Resource:
        return self._resource

    def update_content(self, content: Any) -> None:
        self._resource.content = content

    def add_child(self, name: str, child: Resource) -> None:
        if self._resource.children is None:
            self._resource.children = {}
        self._resource.children[name] = child


class FileResourceConstruct(ResourceConstruct):
    def __init__(self, scope: Stack, path: str, content: Any) -> None:
        super().__init__(scope, path, content=content)


class DirectoryResourceConstruct(ResourceConstruct):
    def __init__(self, scope: Stack, path: str, children: dict[str, Resource] | None = None) -> None:
        super().__init__(scope, path, children=dict(children or {}))

    def add_file(self, name: str, content: Any) -> None:
        self.add_child(name, Resource(content=content))

    def add_directory(self, name: str, children: dict[str, Resource] | None = None) -> None:
        self.add_child(name, Resource(children=dict(children or {})))


class CodeownersConstruct(FileResourceConstruct):
    """CODEOWNERS file, one ``pattern owner owner...`` line per entry.

    Example:
        >>> CodeownersConstruct(stack, {"*": ["@org/core"], "docs/": ["@org/docs"]})
    """

    def __init__(self, scope: Stack, owners: dict[str, list[str]]) -> None:
        lines = [" ".join([pattern, *reviewers]) for pattern, reviewers in owners.items()]
        super().__init__(scope, CODEOWNERS_PATH, "\n".join(lines) + "\n")


class PullRequestTemplateConstruct(FileResourceConstruct):
    def __init__(self, scope: Stack, content: str) -> None:
        super().__init__(scope, PULL_REQUEST_TEMPLATE_PATH, content)


class DependabotConstruct(FileResourceConstruct):
    """dependabot.yml built from a structured config (serialized as YAML)."""

    def __init__(self, scope: Stack, config: dict[str, Any]) -> None:
        super().__init__(scope, DEPENDABOT_PATH, dict(config))


__all__ = [
    "CodeownersConstruct",
    "DependabotConstruct",
    "DirectoryResourceConstruct",
    "FileResourceConstruct",
    "PullRequestTemplateConstruct",
    "ResourceConstruct",
]
