"""dotforge: generate CI workflow files from composable plugins.

This package provides:
- Stack and the construct tree (workflows, jobs, file resources)
- Step builders with version override resolution and stable step ids
- Plugin contract, resolver and manager
- StackSynthesizer: per-stack synthesis with failure isolation
- Configuration models and project config discovery

Example:
    >>> from dotforge import StackSynthesizer
    >>> results = await StackSynthesizer(project_root=Path(".")).synthesize_and_write()
    >>> results.success
    True

    >>> from dotforge import Plugin, Stack
    >>> class LintPlugin(Plugin):
    ...     @property
    ...     def name(self) -> str:
    ...         return "lint"
    ...     def synthesize(self, stack: Stack) -> None:
    ...         stack.add_workflow("lint", {"on": "push", "jobs": {}})

See Also:
    - dotforge.plugins: Plugin contract, resolver and manager
    - dotforge.constructs: Stack and workflow constructs
"""

from __future__ import annotations

__version__ = "0.1.0"

from dotforge.constructs import JobConstruct, Resource, SharedWorkflowConstruct, Stack, WorkflowConstruct
from dotforge.errors import (
    ConfigFileError,
    ConfigValidationError,
    ConflictError,
    DotforgeError,
    MissingDependencyError,
    MissingStackError,
    PluginError,
    PluginExecutionError,
    PluginLoadError,
    SharedWorkflowInputError,
    UnresolvedPluginError,
    WorkflowDefinitionError,
)
from dotforge.outputs import OutputValue, StepChain
from dotforge.plugins import Plugin, PluginDescription, PluginExecutionResult, PluginManager, PluginResolver
from dotforge.schemas import PluginConfig, ProjectConfig, StackConfig
from dotforge.steps import ActionStep, RunStep, create_step, run_step
from dotforge.synthesizer import StackError, StackSynthesizer, SynthesisResult, SynthesisResults

__all__ = [
    "ActionStep",
    "ConfigFileError",
    "ConfigValidationError",
    "ConflictError",
    "DotforgeError",
    "JobConstruct",
    "MissingDependencyError",
    "MissingStackError",
    "OutputValue",
    "Plugin",
    "PluginConfig",
    "PluginDescription",
    "PluginError",
    "PluginExecutionError",
    "PluginExecutionResult",
    "PluginLoadError",
    "PluginManager",
    "PluginResolver",
    "ProjectConfig",
    "Resource",
    "RunStep",
    "SharedWorkflowConstruct",
    "SharedWorkflowInputError",
    "Stack",
    "StackConfig",
    "StackError",
    "StackSynthesizer",
    "StepChain",
    "SynthesisResult",
    "SynthesisResults",
    "UnresolvedPluginError",
    "WorkflowDefinitionError",
    "WorkflowConstruct",
    "__version__",
    "create_step",
    "run_step",
]
