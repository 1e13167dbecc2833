from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import Any, Iterable

from evalkit.config_namespace import ConfigNamespace
from evalkit.context import EvaluationContext, append_context
from evalkit.diagnostics import decode_body
from evalkit.selectors import LabelSelector, SelectorEvaluator
from pipeline_config.foundation.config_io import load_document
from pipeline_config.pipeline import Pipeline
from pipeline_config.shapes import PipelineDefinition, parse_document

logger = logging.getLogger(__name__)


class PipelineRegistry:
    """All declared pipelines in raw form plus the base evaluation context.

    The registry is read-only after construction. Lookups compose the caller's
    context onto the base context as a new node and never write back, so one
    registry can be shared between threads.
    """

    def __init__(
        self,
        definitions: Iterable[PipelineDefinition],
        *,
        base_context: EvaluationContext | None = None,
        selector: SelectorEvaluator | None = None,
    ):
        self._definitions: tuple[PipelineDefinition, ...] = tuple(definitions)
        self._base_context = base_context
        self._selector: SelectorEvaluator = selector or LabelSelector()

    @classmethod
    def from_document(
        cls,
        payload: Mapping[str, Any] | None,
        *,
        base_context: EvaluationContext | None = None,
        selector: SelectorEvaluator | None = None,
        strict: bool = False,
    ) -> "PipelineRegistry":
        """Build a registry from a loaded document mapping.

        Document `variables` form the root of the base context; `base_context`
        (if given) is layered on top of them.
        """

        document = parse_document(payload, strict=strict)
        root = EvaluationContext(variables=document.variables) if document.variables else None
        return cls(
            document.pipelines,
            base_context=append_context(root, base_context),
            selector=selector,
        )

    @classmethod
    def from_file(
        cls,
        path: str | os.PathLike[str] | None = None,
        *,
        base_context: EvaluationContext | None = None,
        selector: SelectorEvaluator | None = None,
        strict: bool = False,
    ) -> "PipelineRegistry":
        payload, meta = load_document(path)
        logger.info("Loaded pipeline document %s (mode=%s)", meta["path"], meta["mode"])
        return cls.from_document(payload, base_context=base_context, selector=selector, strict=strict)

    @property
    def definitions(self) -> tuple[PipelineDefinition, ...]:
        return self._definitions

    @property
    def base_context(self) -> EvaluationContext | None:
        return self._base_context

    @property
    def selector(self) -> SelectorEvaluator:
        return self._selector

    def list_ids(self) -> list[str]:
        return [definition.id for definition in self._definitions]

    def lookup(self, pipeline_id: str, ctx: EvaluationContext | None = None) -> Pipeline | None:
        """Return the pipeline declared as `pipeline_id`, or None if there is none.

        Raises:
            DecodeError: If the pipeline exists but its fields cannot be decoded.
        """

        composed = append_context(self._base_context, ctx)

        definition = next((d for d in self._definitions if d.id == pipeline_id), None)
        if definition is None:
            logger.debug("Pipeline %r not declared", pipeline_id)
            return None

        def _decode(ns: ConfigNamespace) -> Pipeline:
            return Pipeline(
                id=definition.id,
                name=definition.name,
                raw_steps=definition.raw_steps,
                description=ns.get_str("description", default=None),
                context=composed,
                registry=self,
            )

        pipeline = decode_body(definition.remain, composed, _decode, path=definition.path)
        logger.debug("Decoded pipeline %s (%d raw step(s))", pipeline.id, len(pipeline.raw_steps))
        return pipeline
