"""Reusable evaluation kernel (context chain, templates, selectors, decoding).

This package is intentionally independent of `pipeline_config.*`. Document
layout, scoping rules and pipeline semantics live in the consuming application.
"""

from evalkit.config_namespace import ConfigNamespace
from evalkit.context import (
    DEFAULT_FUNCTIONS,
    EvaluationContext,
    append_context,
    finalize_context,
)
from evalkit.diagnostics import DecodeError, Diagnostic, decode_body, diagnostic_from_exception
from evalkit.expressions import (
    ExpressionError,
    evaluate_expression,
    evaluate_template,
    evaluate_value,
)
from evalkit.selectors import LabelSelector, SelectorEvaluator, SelectorSyntaxError, parse_selector

__all__ = [
    "ConfigNamespace",
    "DEFAULT_FUNCTIONS",
    "DecodeError",
    "Diagnostic",
    "EvaluationContext",
    "ExpressionError",
    "LabelSelector",
    "SelectorEvaluator",
    "SelectorSyntaxError",
    "append_context",
    "decode_body",
    "diagnostic_from_exception",
    "evaluate_expression",
    "evaluate_template",
    "evaluate_value",
    "finalize_context",
    "parse_selector",
]
