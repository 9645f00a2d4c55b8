"""Built-in ``release`` plugin: publishes Node.js packages from release branches.

Requires the ``ci`` plugin in the same stack.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from dotforge.constructs.base import Stack
from dotforge.constructs.workflow import JobConstruct, WorkflowConstruct
from dotforge.plugins.base import Plugin
from dotforge.plugins.builtin.node import (
    DEFAULT_BRANCHES,
    PackageManager,
    install_command,
    working_directory_fields,
)
from dotforge.plugins.helpers import ActionsHelper
from dotforge.steps import Step

DEFAULT_REGISTRY = "https://registry.npmjs.org"


class ReleaseConfig(BaseModel):
    """Configuration of the ``release`` plugin.

    At most one of ``release_it``, ``semantic_release`` and
    ``custom_release_command`` may be set; release-it is used when none is.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    branches: list[str] = Field(default_factory=lambda: list(DEFAULT_BRANCHES))
    package_manager: PackageManager = "pnpm"
    build_command: str | None = None
    registry: str = Field(default=DEFAULT_REGISTRY, description="npm registry URL")
    working_directory: str | None = None
    node_version: str = "20"
    release_it: bool = False
    semantic_release: bool = False
    custom_release_command: str | None = None

    @model_validator(mode="after")
    def validate_single_release_tool(self) -> ReleaseConfig:
        """Reject configs enabling more than one release tool."""
        enabled = [self.release_it, self.semantic_release, bool(self.custom_release_command)]
        if sum(enabled) > 1:
            raise ValueError(
                "Only one release tool can be enabled: release_it, semantic_release, "
                "or custom_release_command"
            )
        return self

    @property
    def release_command(self) -> str:
        if self.custom_release_command:
            return self.custom_release_command
        if self.semantic_release:
            return "npx semantic-release"
        return "npx release-it"


class ReleasePlugin(Plugin):
    """Generates ``workflows/release.yml`` and records ``release`` metadata."""

    @property
    def name(self) -> str:
        return "release"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def description(self) -> str:
        return "Automated release workflow for Node.js packages"

    @property
    def dependencies(self) -> list[str]:
        return ["ci"]

    def get_config_schema(self) -> type[BaseModel]:
        return ReleaseConfig

    def validate(self, stack: Stack) -> None:
        self.parse_config(stack)

    def synthesize(self, stack: Stack) -> None:
        config: ReleaseConfig = self.parse_config(stack)
        actions = stack.actions or ActionsHelper(stack)

        workflow = WorkflowConstruct(
            stack,
            "release",
            {
                "name": "Release",
                "on": {"push": {"branches": list(config.branches)}},
                "permissions": {"contents": "write", "id-token": "write", "packages": "write"},
            },
        )
        job = JobConstruct(workflow, "release", {"runs-on": "ubuntu-latest"})
        job.add_steps(self._steps(config, actions))

        stack.set_metadata(
            "release",
            {
                "enabled": True,
                "branches": list(config.branches),
                "package_manager": config.package_manager,
                "registry": config.registry,
                "release_command": config.release_command,
            },
        )

    def _steps(self, config: ReleaseConfig, actions: ActionsHelper) -> list[Step]:
        cwd = working_directory_fields(config.working_directory)
        setup_inputs: dict[str, Any] = {"node-version": config.node_version, "registry-url": config.registry}
        if config.package_manager == "pnpm":
            setup_inputs["cache"] = "pnpm"

        steps: list[Step] = [
            actions.invoke_action(
                "actions/checkout",
                {"fetch-depth": 0, "token": "${{ secrets.GITHUB_TOKEN }}"},
                {"name": "Checkout code"},
                ref="v4",
            )
        ]
        if config.package_manager == "pnpm":
            steps.append(
                actions.invoke_action(
                    "pnpm/action-setup", {"version": "latest"}, {"name": "Install pnpm"}, ref="v2"
                )
            )
        steps.append(
            actions.invoke_action("actions/setup-node", setup_inputs, {"name": "Setup Node.js"}, ref="v4")
        )
        steps.append(actions.run("Install dependencies", install_command(config.package_manager), cwd))
        if config.build_command:
            steps.append(actions.run("Build", config.build_command, cwd))
        steps.append(
            actions.run(
                "Release",
                config.release_command,
                {
                    **cwd,
                    "env": {
                        "GITHUB_TOKEN": "${{ secrets.GITHUB_TOKEN }}",
                        "NPM_TOKEN": "${{ secrets.NPM_TOKEN }}",
                    },
                },
            )
        )
        return steps


plugin = ReleasePlugin

__all__ = ["ReleaseConfig", "ReleasePlugin"]
