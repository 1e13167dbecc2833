"""Body decoding with diagnostics.

`decode_body` is the single entry point used to turn a raw body into a typed
value: every template in the body is evaluated against a finalized context,
then a caller-supplied decode function reads typed fields through a
`ConfigNamespace`. All failures are reported as one `DecodeError` carrying the
individual diagnostics; no partial result is ever returned.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Iterable, TypeVar

from evalkit.config_namespace import ConfigNamespace
from evalkit.context import EvaluationContext, finalize_context
from evalkit.expressions import ExpressionError, evaluate_value

T = TypeVar("T")


@dataclass(frozen=True)
class Diagnostic:
    summary: str
    path: str | None = None
    expression: str | None = None
    detail: str | None = None

    def __str__(self) -> str:
        text = f"{self.path}: {self.summary}" if self.path else self.summary
        if self.expression is not None:
            text += f" (expression: ${{{self.expression}}})"
        if self.detail:
            text += f"; {self.detail}"
        return text


class DecodeError(ValueError):
    """A body could not be decoded; wraps one or more diagnostics."""

    def __init__(self, diagnostics: Iterable[Diagnostic], *, path: str | None = None):
        self.diagnostics: tuple[Diagnostic, ...] = tuple(diagnostics)
        self.path = path
        where = f" {path}" if path else ""
        details = "; ".join(str(d) for d in self.diagnostics) or "no diagnostics"
        super().__init__(f"Failed to decode{where}: {details}")


def diagnostic_from_exception(exc: Exception, *, path: str | None = None) -> Diagnostic:
    if isinstance(exc, ExpressionError):
        return Diagnostic(summary=exc.message, path=exc.path or path, expression=exc.expression)
    return Diagnostic(summary=str(exc), path=path)


def decode_body(
    body: Mapping[str, Any],
    ctx: EvaluationContext | None,
    decode_fn: Callable[[ConfigNamespace], T],
    *,
    path: str,
) -> T:
    if not isinstance(body, Mapping):
        raise DecodeError(
            [Diagnostic(summary=f"Body must be a mapping (type={type(body).__name__})", path=path)],
            path=path,
        )

    errors: list[ExpressionError] = []
    evaluated = evaluate_value(dict(body), finalize_context(ctx), path=path, errors=errors)
    if errors:
        raise DecodeError([diagnostic_from_exception(exc, path=path) for exc in errors], path=path)

    ns = ConfigNamespace(evaluated, path=path)
    try:
        result = decode_fn(ns)
        ns.assert_consumed()
    except DecodeError:
        raise
    except (TypeError, ValueError) as exc:
        raise DecodeError([diagnostic_from_exception(exc, path=path)], path=path) from exc
    return result
