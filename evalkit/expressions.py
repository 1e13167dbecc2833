"""`${...}` template evaluation against an `EvaluationContext`.

Strings may embed expressions as `${expr}`. A string that consists of exactly
one expression evaluates to the expression's typed value; anything else is
rendered as text. `$${` produces a literal `${`.

Expressions use a restricted Python grammar: literals, variable names, dotted
access into mappings, subscripts, list/tuple/dict displays and calls to
functions bound in the context. Any other syntax is rejected.
"""

from __future__ import annotations

import ast
from collections.abc import Mapping
from typing import Any

from evalkit.context import EvaluationContext


class ExpressionError(ValueError):
    """An expression could not be parsed or evaluated."""

    def __init__(self, message: str, *, expression: str | None = None, path: str | None = None):
        self.message = message
        self.expression = expression
        self.path = path
        parts = [message]
        if path:
            parts.append(f"at {path}")
        if expression is not None:
            parts.append(f"in ${{{expression}}}")
        super().__init__(" ".join(parts))

    def with_path(self, path: str) -> "ExpressionError":
        if self.path:
            return self
        return ExpressionError(self.message, expression=self.expression, path=path)


def _join_path(parent: str, key: Any) -> str:
    if isinstance(key, int):
        return f"{parent}[{key}]"
    if not parent:
        return str(key)
    return f"{parent}.{key}"


def _split_template(text: str) -> list[tuple[str, str]]:
    """Split `text` into ("lit", ...) and ("expr", ...) parts."""

    parts: list[tuple[str, str]] = []
    literal: list[str] = []
    i = 0
    n = len(text)
    while i < n:
        if text.startswith("$${", i):
            literal.append("${")
            i += 3
            continue
        if not text.startswith("${", i):
            literal.append(text[i])
            i += 1
            continue

        start = i + 2
        depth = 0
        quote: str | None = None
        j = start
        while j < n:
            ch = text[j]
            if quote is not None:
                if ch == "\\":
                    j += 2
                    continue
                if ch == quote:
                    quote = None
            elif ch in ("'", '"'):
                quote = ch
            elif ch in "{[(":
                depth += 1
            elif ch in ")]":
                depth -= 1
            elif ch == "}":
                if depth == 0:
                    break
                depth -= 1
            j += 1
        if j >= n:
            raise ExpressionError("Unterminated template expression", expression=text[start:])

        if literal:
            parts.append(("lit", "".join(literal)))
            literal = []
        parts.append(("expr", text[start:j]))
        i = j + 1

    if literal:
        parts.append(("lit", "".join(literal)))
    return parts


def _get_member(value: Any, key: Any, *, expression: str) -> Any:
    if isinstance(value, Mapping):
        if key not in value:
            raise ExpressionError(f"Unknown key {key!r}", expression=expression)
        return value[key]
    if isinstance(value, (list, tuple)):
        if isinstance(key, bool) or not isinstance(key, int):
            raise ExpressionError(
                f"List index must be an int (type={type(key).__name__})", expression=expression
            )
        try:
            return value[key]
        except IndexError:
            raise ExpressionError(
                f"List index {key} out of range (length={len(value)})", expression=expression
            ) from None
    raise ExpressionError(
        f"Cannot access {key!r} on a value of type {type(value).__name__}", expression=expression
    )


def _eval_node(node: ast.AST, ctx: EvaluationContext, *, expression: str) -> Any:
    if isinstance(node, ast.Constant):
        return node.value

    if isinstance(node, ast.Name):
        try:
            return ctx.lookup_variable(node.id)
        except KeyError:
            raise ExpressionError(f"Undefined variable {node.id!r}", expression=expression) from None

    if isinstance(node, ast.Attribute):
        base = _eval_node(node.value, ctx, expression=expression)
        return _get_member(base, node.attr, expression=expression)

    if isinstance(node, ast.Subscript):
        if isinstance(node.slice, ast.Slice):
            raise ExpressionError("Slices are not supported", expression=expression)
        base = _eval_node(node.value, ctx, expression=expression)
        key = _eval_node(node.slice, ctx, expression=expression)
        return _get_member(base, key, expression=expression)

    if isinstance(node, (ast.List, ast.Tuple)):
        items = []
        for element in node.elts:
            if isinstance(element, ast.Starred):
                raise ExpressionError("Star expressions are not supported", expression=expression)
            items.append(_eval_node(element, ctx, expression=expression))
        return items

    if isinstance(node, ast.Dict):
        out: dict[Any, Any] = {}
        for key_node, value_node in zip(node.keys, node.values):
            if key_node is None:
                raise ExpressionError("Mapping unpacking is not supported", expression=expression)
            key = _eval_node(key_node, ctx, expression=expression)
            out[key] = _eval_node(value_node, ctx, expression=expression)
        return out

    if isinstance(node, ast.Call):
        if not isinstance(node.func, ast.Name):
            raise ExpressionError("Only named functions can be called", expression=expression)
        name = node.func.id
        try:
            func = ctx.lookup_function(name)
        except KeyError:
            raise ExpressionError(f"Undefined function {name!r}", expression=expression) from None
        args = []
        for arg in node.args:
            if isinstance(arg, ast.Starred):
                raise ExpressionError("Star arguments are not supported", expression=expression)
            args.append(_eval_node(arg, ctx, expression=expression))
        kwargs = {}
        for keyword in node.keywords:
            if keyword.arg is None:
                raise ExpressionError("Keyword unpacking is not supported", expression=expression)
            kwargs[keyword.arg] = _eval_node(keyword.value, ctx, expression=expression)
        try:
            return func(*args, **kwargs)
        except ExpressionError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise ExpressionError(
                f"Call to {name}() failed: {exc}", expression=expression
            ) from exc

    raise ExpressionError(
        f"Unsupported expression element: {type(node).__name__}", expression=expression
    )


def evaluate_expression(expression: str, ctx: EvaluationContext, *, path: str = "") -> Any:
    text = (expression or "").strip()
    if not text:
        raise ExpressionError("Empty expression", expression=expression, path=path or None)
    try:
        tree = ast.parse(text, mode="eval")
    except SyntaxError as exc:
        raise ExpressionError(
            f"Invalid expression syntax: {exc.msg}", expression=text, path=path or None
        ) from None
    try:
        return _eval_node(tree.body, ctx, expression=text)
    except ExpressionError as exc:
        if not path:
            raise
        raise exc.with_path(path) from None
    except TypeError as exc:
        # e.g. unhashable keys in a dict display or mapping subscript
        raise ExpressionError(str(exc), expression=text, path=path or None) from exc
    except RecursionError:
        raise ExpressionError("Expression is nested too deeply", expression=text, path=path or None) from None


def _render(value: Any, *, expression: str, path: str) -> str:
    if value is None:
        raise ExpressionError("Cannot interpolate a null value", expression=expression, path=path or None)
    if isinstance(value, (Mapping, list, tuple)):
        raise ExpressionError(
            f"Cannot interpolate a value of type {type(value).__name__}",
            expression=expression,
            path=path or None,
        )
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def evaluate_template(text: str, ctx: EvaluationContext, *, path: str = "") -> Any:
    if "${" not in text:
        return text
    try:
        parts = _split_template(text)
    except ExpressionError as exc:
        if not path:
            raise
        raise exc.with_path(path) from None

    if len(parts) == 1 and parts[0][0] == "expr":
        return evaluate_expression(parts[0][1], ctx, path=path)

    chunks: list[str] = []
    for kind, chunk in parts:
        if kind == "lit":
            chunks.append(chunk)
            continue
        value = evaluate_expression(chunk, ctx, path=path)
        chunks.append(_render(value, expression=chunk.strip(), path=path))
    return "".join(chunks)


def evaluate_value(
    value: Any,
    ctx: EvaluationContext,
    *,
    path: str = "",
    errors: list[ExpressionError] | None = None,
) -> Any:
    """Evaluate every template string inside `value` (recursively).

    When `errors` is given, failures are appended to it and the failing leaf
    evaluates to None so the rest of the tree is still checked. Otherwise the
    first failure is raised.
    """

    if isinstance(value, str):
        try:
            return evaluate_template(value, ctx, path=path)
        except ExpressionError as exc:
            if errors is None:
                raise
            errors.append(exc)
            return None

    if isinstance(value, Mapping):
        return {
            key: evaluate_value(item, ctx, path=_join_path(path, key), errors=errors)
            for key, item in value.items()
        }

    if isinstance(value, (list, tuple)):
        return [
            evaluate_value(item, ctx, path=_join_path(path, idx), errors=errors)
            for idx, item in enumerate(value)
        ]

    return value
