"""Multi-stack synthesis.

StackSynthesizer drives a whole project: for every declared stack it
builds a fresh Stack, loads only the plugins that stack needs, runs them
through the PluginManager and converts the stack to ``{path: text}``.

A failure in one stack never stops the others. ``synthesize_all()``
collects it as a StackError and moves on; ``success`` is False when any
stack failed. ``synthesize_stack()`` is the single-stack entry point and
raises instead.

Example:
    >>> synthesizer = StackSynthesizer(project_root=Path("."))
    >>> results = await synthesizer.synthesize_all()
    >>> results.success
    True
    >>> sorted(results.results[0].files)
    ['workflows/ci.yml']
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from dotforge.config import find_config_path, load_config, project_root_for
from dotforge.constructs.base import Stack
from dotforge.plugins.manager import PluginExecutionResult, PluginManager
from dotforge.plugins.resolver import PluginLoaderFn
from dotforge.schemas import PluginConfig, ProjectConfig, StackConfig
from dotforge.telemetry import STACK_ATTRIBUTE, STACK_SPAN, create_span

logger = structlog.get_logger(__name__)


@dataclass
class SynthesisResult:
    """Output of one successfully synthesized stack.

    Attributes:
        stack: The populated Stack.
        stack_config: The stack's configuration.
        plugin_results: Per-plugin results in execution order.
        files: Relative path to file text.
        output_path: Directory the files are written under.
    """

    stack: Stack
    stack_config: StackConfig
    plugin_results: list[PluginExecutionResult]
    files: dict[str, str]
    output_path: Path


@dataclass
class StackError:
    """A failure isolated to one stack (or to the batch, when stack_name is None)."""

    stack_name: str | None
    error: BaseException

    def __str__(self) -> str:
        if self.stack_name is None:
            return str(self.error)
        return f"{self.stack_name}: {self.error}"


@dataclass
class SynthesisResults:
    results: list[SynthesisResult] = field(default_factory=list)
    errors: list[StackError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def files(self) -> dict[str, str]:
        """Files of every successful stack; later stacks win on path collisions."""
        merged: dict[str, str] = {}
        for result in self.results:
            merged.update(result.files)
        return merged


class StackSynthesizer:
    """Synthesizes every stack of a project.

    Attributes:
        project_root: Project root directory.
        config: Project configuration.
        output_path: Directory generated files are written under.
        manager: Plugin manager shared by every stack of this run.
    """

    def __init__(
        self,
        config: ProjectConfig | None = None,
        project_root: Path | str | None = None,
        config_path: Path | str | None = None,
        output_dir: Path | str | None = None,
        manager: PluginManager | None = None,
        loader: PluginLoaderFn | None = None,
    ) -> None:
        """Initialize the synthesizer.

        Args:
            config: Project configuration. Loaded from ``config_path`` (or
                discovered from ``project_root``) when omitted.
            project_root: Project root. Derived from the config file location
                when omitted.
            config_path: Explicit project config file.
            output_dir: Output directory, overriding ``config.output_dir``.
                Relative paths resolve against the project root.
            manager: Plugin manager to use; a fresh one is built when omitted.
            loader: Plugin loader injected into a freshly built manager.

        Raises:
            ConfigFileError: If the config file is missing or malformed.
            ConfigValidationError: If the config content is invalid.
        """
        if config is None:
            path = Path(config_path) if config_path else find_config_path(project_root)
            config = load_config(path)
            if project_root is None:
                project_root = project_root_for(path)

        self.config = config
        self.project_root = Path(project_root) if project_root is not None else Path.cwd()
        self.output_path = self.project_root / Path(output_dir or config.output_dir)
        self.manager = manager or PluginManager(self.project_root, loader=loader)

    async def synthesize_all(self) -> SynthesisResults:
        """Synthesize every configured stack, isolating failures per stack."""
        results = SynthesisResults()
        logger.info("synthesize_all.started", stack_count=len(self.config.stacks))

        for stack_config in self.config.stacks:
            try:
                await self._load_stack_plugins(stack_config)
                results.results.append(await self.synthesize_stack(stack_config))
            except Exception as e:
                logger.error(
                    "synthesize_stack.failed",
                    stack=stack_config.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                results.errors.append(StackError(stack_config.name, e))

        logger.info(
            "synthesize_all.completed",
            success=results.success,
            stack_count=len(results.results),
            error_count=len(results.errors),
        )
        return results

    async def synthesize_stack(
        self,
        stack_config: StackConfig,
        plugin_configs: Iterable[PluginConfig] | None = None,
    ) -> SynthesisResult:
        """Synthesize one stack with already loaded plugins.

        Raises:
            DotforgeError: Any validation, resolution, execution or shape
                error, unchanged.
            yaml.YAMLError: If a workflow holds a value that cannot be dumped.
        """
        configs = list(self.config.plugins if plugin_configs is None else plugin_configs)
        stack = Stack(None, stack_config.name)

        with create_span(STACK_SPAN, {STACK_ATTRIBUTE: stack_config.name}) as span:
            plugin_results = await self.manager.execute_plugins_for_stack(stack, stack_config, configs)
            files = stack.synth()
            span.set_attribute("dotforge.file_count", len(files))

        logger.debug("synthesize_stack.completed", stack=stack_config.name, file_count=len(files))
        return SynthesisResult(
            stack=stack,
            stack_config=stack_config,
            plugin_results=plugin_results,
            files=files,
            output_path=self.output_path,
        )

    async def synthesize_and_write(self) -> SynthesisResults:
        """Synthesize every stack and write the files of successful ones."""
        results = await self.synthesize_all()
        for result in results.results:
            try:
                write_files(result.files, result.output_path)
            except OSError as e:
                logger.error("write_files.failed", stack=result.stack_config.name, error=str(e))
                results.errors.append(StackError(result.stack_config.name, e))
        return results

    async def _load_stack_plugins(self, stack_config: StackConfig) -> None:
        pending = [
            config
            for config in self.config.plugins
            if config.name in stack_config.plugins and not self.manager.is_plugin_loaded(config.name)
        ]
        if pending:
            await self.manager.load_plugins(pending)


def write_files(files: dict[str, str], output_path: Path | str) -> list[Path]:
    """Write ``files`` under ``output_path``, creating parent directories.

    Returns:
        Paths written, in input order.
    """
    root = Path(output_path)
    written: list[Path] = []
    for relative, content in files.items():
        target = root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        written.append(target)
        logger.debug("write_files.written", path=str(target))
    return written


__all__ = [
    "StackError",
    "StackSynthesizer",
    "SynthesisResult",
    "SynthesisResults",
    "write_files",
]
