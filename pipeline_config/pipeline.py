"""Decoded pipeline aggregate.

A `Pipeline` keeps its raw steps and resolves them on demand: every call to
`steps()` (and the helpers beside it) composes the caller's context, picks each
step's effective body and decodes it. Nothing is cached and nothing shared is
written, so repeated calls with the same context give equal results.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from evalkit.context import EvaluationContext, append_context
from evalkit.selectors import LabelSelector, SelectorEvaluator
from pipeline_config.scope import ScopeResolver
from pipeline_config.shapes import RawStep
from pipeline_config.steps import Step, decode_step, extract_labels

if TYPE_CHECKING:
    from pipeline_config.registry import PipelineRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineRef:
    """Address of a pipeline by id, for callers that should not hold the pipeline."""

    id: str

    def to_dict(self) -> dict[str, Any]:
        return {"pipeline": {"id": self.id}}


@dataclass(frozen=True)
class Pipeline:
    id: str
    name: str | None
    raw_steps: tuple[RawStep, ...]
    description: str | None = None
    context: EvaluationContext | None = field(default=None, compare=False, repr=False)
    registry: "PipelineRegistry | None" = field(default=None, compare=False, repr=False)

    __hash__ = None  # type: ignore[assignment]

    def ref(self) -> PipelineRef:
        return PipelineRef(id=self.id)

    def step_names(self) -> list[str]:
        return [raw.name for raw in self.raw_steps]

    def _selector(self) -> SelectorEvaluator:
        if self.registry is not None:
            return self.registry.selector
        return LabelSelector()

    def steps(self, ctx: EvaluationContext | None = None) -> list[Step]:
        """Resolve and decode every step in declaration order.

        The first scope or decode failure is raised; a partial list is never
        returned.
        """

        composed = append_context(self.context, ctx)
        resolver = ScopeResolver(self._selector())

        out: list[Step] = []
        for raw in self.raw_steps:
            scope = resolver.match(composed, raw.workspace_scoped, raw.label_scoped)
            if scope is None:
                body, path, scope_label = raw.body, raw.path, None
            else:
                body, path, scope_label = scope.body, scope.path, scope.describe()
            out.append(decode_step(raw.name, body, composed, path=path, scope=scope_label))

        logger.debug("Resolved %d step(s) for pipeline %s", len(out), self.id)
        return out

    def step_capability_refs(self, ctx: EvaluationContext | None = None) -> list[str | None]:
        """Return each step's capability type without decoding its fields."""

        composed = append_context(self.context, ctx)
        resolver = ScopeResolver(self._selector())

        refs: list[str | None] = []
        for raw in self.raw_steps:
            scope = resolver.match(composed, raw.workspace_scoped, raw.label_scoped)
            refs.append(raw.use_type if scope is None else scope.use_type)
        return refs

    def step_labels(self, ctx: EvaluationContext | None = None) -> list[dict[str, str]]:
        """Return the labels declared on each step's base body."""

        composed = append_context(self.context, ctx)
        return [extract_labels(raw.body, composed, path=raw.path) for raw in self.raw_steps]
