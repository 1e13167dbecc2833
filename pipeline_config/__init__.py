"""Scoped pipeline configuration: shape parse, scope resolution and step decoding."""

from pipeline_config.errors import DecodeError, Diagnostic, ScopeEvaluationError, ShapeError
from pipeline_config.pipeline import Pipeline, PipelineRef
from pipeline_config.registry import PipelineRegistry
from pipeline_config.scope import ScopeResolver, build_scope_context, scope_match
from pipeline_config.shapes import (
    ConfigDocument,
    PipelineDefinition,
    RawStep,
    ScopedBody,
    parse_document,
)
from pipeline_config.steps import Step, Use, decode_step, extract_labels

__all__ = [
    "ConfigDocument",
    "DecodeError",
    "Diagnostic",
    "Pipeline",
    "PipelineDefinition",
    "PipelineRef",
    "PipelineRegistry",
    "RawStep",
    "ScopeEvaluationError",
    "ScopeResolver",
    "ScopedBody",
    "ShapeError",
    "Step",
    "Use",
    "build_scope_context",
    "decode_step",
    "extract_labels",
    "parse_document",
    "scope_match",
]
