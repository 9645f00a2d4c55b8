"""Step output handles and the step chain builder.

An action invocation declares output keys; each key becomes an
OutputValue bound to the invoking step's id. Later steps reference those
handles instead of spelling out ``${{ step.<id>.outputs.<key> }}``.

Example:
    >>> chain = StepChain(create_step("actions/cache", {"id": "cache"}), ["cache-hit"])
    >>> chain.outputs["cache-hit"].expr
    '${{ step.cache.outputs.cache-hit }}'
    >>> chain.then(lambda out: run_step("Report", f"echo {out['cache-hit'].expr}")).steps[-1].name
    'Report'
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import Any

from dotforge.steps import Step, parse_step

OUTPUT_CONTEXT = "step"
"""Expression context prefix used for step output paths."""


class OutputValue:
    """Symbolic handle to one output of one step.

    ``str(value)`` gives the raw path (``step.<id>.outputs.<key>``) and
    ``value.expr`` wraps it as a workflow expression.
    """

    __slots__ = ("path",)

    def __init__(self, path: str) -> None:
        self.path = path

    @classmethod
    def for_step(cls, step_id: str, key: str) -> OutputValue:
        return cls(f"{OUTPUT_CONTEXT}.{step_id}.outputs.{key}")

    @property
    def expr(self) -> str:
        return f"${{{{ {self.path} }}}}"

    def __str__(self) -> str:
        return self.path

    def __repr__(self) -> str:
        return f"OutputValue({self.path!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OutputValue):
            return NotImplemented
        return self.path == other.path

    def __hash__(self) -> int:
        return hash(self.path)


def bind_outputs(step_id: str, keys: Iterable[str]) -> dict[str, OutputValue]:
    """Bind each declared output key to ``step_id``."""
    return {key: OutputValue.for_step(step_id, key) for key in keys}


class StepChain:
    """Ordered step list anchored on an initial step and its outputs.

    The initial step's declared outputs are exposed as OutputValue handles.
    ``then()`` appends a step built from those handles, so a caller can
    consume outputs without tracking the generated step id.

    Attributes:
        output_keys: Output names declared by the initial step.
    """

    def __init__(self, initial_step: Step | Mapping[str, Any], output_keys: Iterable[str] = ()) -> None:
        self._steps: list[Step] = [parse_step(initial_step)]
        self.output_keys: list[str] = list(output_keys)

    @property
    def initial_step(self) -> Step:
        return self._steps[0]

    @property
    def outputs(self) -> dict[str, OutputValue]:
        """Output handles bound to the initial step's id.

        Steps without an id fall back to an empty id segment, which still
        renders but cannot be resolved by the workflow engine.
        """
        return bind_outputs(self.initial_step.id or "", self.output_keys)

    def then(self, factory: Callable[[dict[str, OutputValue]], Step | Mapping[str, Any]]) -> StepChain:
        """Append the step returned by ``factory(outputs)``."""
        new_step = parse_step(factory(self.outputs), path=f"chain/{len(self._steps)}")
        self._steps.append(new_step)
        return self

    def with_id(self, step_id: str) -> StepChain:
        """Replace the initial step's id; output handles follow the new id."""
        self._steps[0] = self.initial_step.model_copy(update={"id": step_id})
        return self

    @property
    def steps(self) -> list[Step]:
        return list(self._steps)

    @property
    def last_step(self) -> Step:
        return self._steps[-1]

    def __iter__(self) -> Iterator[Step]:
        return iter(list(self._steps))

    def __len__(self) -> int:
        return len(self._steps)


__all__ = ["OUTPUT_CONTEXT", "OutputValue", "StepChain", "bind_outputs"]
