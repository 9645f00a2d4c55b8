"""Built-in ``ci`` plugin: a test matrix workflow for Node.js projects."""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

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

logger = structlog.get_logger(__name__)


class CIConfig(BaseModel):
    """Configuration of the ``ci`` plugin."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    node_versions: list[str] = Field(
        default_factory=lambda: ["18", "20"],
        min_length=1,
        description="Node.js versions of the test matrix",
    )
    package_manager: PackageManager = Field(default="pnpm", description="Package manager")
    test_command: str | None = Field(default=None, description="Defaults to '<package manager> test'")
    build_command: str | None = Field(default=None, description="Build step, skipped when unset")
    lint_command: str | None = Field(default=None, description="Lint step, skipped when unset")
    working_directory: str | None = Field(default=None, description="Directory for run steps")
    runs_on: str | list[str] = Field(default="ubuntu-latest", description="Runner label(s)")
    branches: list[str] = Field(default_factory=lambda: list(DEFAULT_BRANCHES))
    pull_request: bool = Field(default=True, description="Run on pull requests")
    push: bool = Field(default=True, description="Run on pushes")


class CIPlugin(Plugin):
    """Generates ``workflows/ci.yml`` and records ``ci`` metadata on the stack."""

    @property
    def name(self) -> str:
        return "ci"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def description(self) -> str:
        return "Standard CI workflow for Node.js projects"

    def get_config_schema(self) -> type[BaseModel]:
        return CIConfig

    def validate(self, stack: Stack) -> None:
        self.parse_config(stack)

    def synthesize(self, stack: Stack) -> None:
        config: CIConfig = self.parse_config(stack)
        actions = stack.actions or ActionsHelper(stack)

        triggers: dict[str, Any] = {}
        if config.push:
            triggers["push"] = {"branches": list(config.branches)}
        if config.pull_request:
            triggers["pull_request"] = {"branches": list(config.branches)}

        workflow = WorkflowConstruct(
            stack,
            "ci",
            {"name": "CI", "on": triggers, "permissions": {"contents": "read"}},
        )
        job = JobConstruct(
            workflow,
            "test",
            {
                "runs-on": config.runs_on,
                "strategy": {"matrix": {"node-version": list(config.node_versions)}},
            },
        )
        job.add_steps(self._steps(config, actions))

        stack.set_metadata(
            "ci",
            {
                "enabled": True,
                "node_versions": list(config.node_versions),
                "package_manager": config.package_manager,
                "has_tests": True,
                "has_build": config.build_command is not None,
                "has_lint": config.lint_command is not None,
            },
        )
        logger.debug("synthesize.completed", plugin=self.name, stack=stack.name)

    def _steps(self, config: CIConfig, actions: ActionsHelper) -> list[Step]:
        cwd = working_directory_fields(config.working_directory)
        setup_inputs: dict[str, Any] = {"node-version": "${{ matrix.node-version }}"}
        if config.package_manager == "pnpm":
            setup_inputs["cache"] = "pnpm"

        steps: list[Step] = [actions.invoke_action("actions/checkout", step={"name": "Checkout code"}, ref="v4")]
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
        if config.lint_command:
            steps.append(actions.run("Run lint", config.lint_command, cwd))
        if config.build_command:
            steps.append(actions.run("Build", config.build_command, cwd))
        steps.append(actions.run("Run tests", config.test_command or f"{config.package_manager} test", cwd))
        return steps


plugin = CIPlugin

__all__ = ["CIConfig", "CIPlugin"]
