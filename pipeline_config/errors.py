"""Error taxonomy for pipeline configuration resolution.

A missing pipeline is not an error: `PipelineRegistry.lookup` returns None.
"""

from __future__ import annotations

from evalkit.diagnostics import DecodeError, Diagnostic
from evalkit.expressions import ExpressionError


class ShapeError(ValueError):
    """The document does not have the structure of a pipeline document."""


class ScopeEvaluationError(ValueError):
    """A workspace name or label selector could not be evaluated."""

    def __init__(self, message: str, *, kind: str, rule: str, path: str | None = None):
        self.kind = kind
        self.rule = rule
        self.path = path
        where = f" at {path}" if path else ""
        super().__init__(f"Cannot evaluate {kind} scope {rule!r}{where}: {message}")


__all__ = [
    "DecodeError",
    "Diagnostic",
    "ExpressionError",
    "ScopeEvaluationError",
    "ShapeError",
]
