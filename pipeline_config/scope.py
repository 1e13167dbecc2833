"""Scope resolution: pick the effective override body for a step.

The active workspace and labels are read from the evaluation context
(`workspace` and `labels` variables). Precedence is fixed:

1. the first workspace-scoped rule whose name equals the active workspace;
2. otherwise the first label-scoped rule whose selector matches the labels;
3. otherwise no override (the step's base body applies).

A matching workspace rule wins even when a label rule also matches.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Callable

from evalkit.context import EvaluationContext, finalize_context
from evalkit.expressions import ExpressionError, evaluate_template
from evalkit.selectors import LabelSelector, SelectorEvaluator, SelectorSyntaxError
from pipeline_config.errors import ScopeEvaluationError
from pipeline_config.shapes import ScopedBody

logger = logging.getLogger(__name__)

WORKSPACE_VARIABLE = "workspace"
LABELS_VARIABLE = "labels"


def build_scope_context(
    *,
    workspace: str | None = None,
    labels: Mapping[str, str] | None = None,
    variables: Mapping[str, Any] | None = None,
    functions: Mapping[str, Callable[..., Any]] | None = None,
) -> EvaluationContext:
    """Build a caller context carrying the active workspace and labels."""

    bindings = dict(variables or {})
    if workspace is not None:
        bindings[WORKSPACE_VARIABLE] = {"name": workspace}
    if labels is not None:
        bindings[LABELS_VARIABLE] = dict(labels)
    return EvaluationContext(variables=bindings, functions=functions)


def active_workspace(ctx: EvaluationContext | None) -> str | None:
    if ctx is None:
        return None
    raw = ctx.lookup_variable(WORKSPACE_VARIABLE, None)
    if raw is None:
        return None
    if isinstance(raw, str):
        return raw
    if isinstance(raw, Mapping) and isinstance(raw.get("name"), str):
        return raw["name"]
    raise ScopeEvaluationError(
        "context variable must be a string or a mapping with a string 'name'",
        kind="workspace",
        rule=WORKSPACE_VARIABLE,
    )


def active_labels(ctx: EvaluationContext | None) -> dict[str, str]:
    if ctx is None:
        return {}
    raw = ctx.lookup_variable(LABELS_VARIABLE, None)
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ScopeEvaluationError(
            f"context variable must be a mapping (type={type(raw).__name__})",
            kind="label",
            rule=LABELS_VARIABLE,
        )
    return {str(key): str(value) for key, value in raw.items()}


def _evaluate_rule(rule: ScopedBody, ctx: EvaluationContext) -> str:
    try:
        value = evaluate_template(rule.match, ctx)
    except ExpressionError as exc:
        raise ScopeEvaluationError(str(exc), kind=rule.kind, rule=rule.match, path=rule.path) from exc
    if not isinstance(value, str):
        raise ScopeEvaluationError(
            f"evaluated to {type(value).__name__}, expected a string",
            kind=rule.kind,
            rule=rule.match,
            path=rule.path,
        )
    return value


class ScopeResolver:
    def __init__(self, selector: SelectorEvaluator | None = None):
        self.selector = selector or LabelSelector()

    def match(
        self,
        ctx: EvaluationContext | None,
        workspace_scoped: Sequence[ScopedBody],
        label_scoped: Sequence[ScopedBody],
    ) -> ScopedBody | None:
        if not workspace_scoped and not label_scoped:
            return None

        eval_ctx = finalize_context(ctx)

        workspace = active_workspace(ctx)
        for rule in workspace_scoped:
            if _evaluate_rule(rule, eval_ctx) == workspace:
                logger.debug("Scope matched workspace %r (%s)", workspace, rule.path)
                return rule

        labels = active_labels(ctx)
        for rule in label_scoped:
            selector = _evaluate_rule(rule, eval_ctx)
            try:
                matched = self.selector.matches(selector, labels)
            except SelectorSyntaxError as exc:
                raise ScopeEvaluationError(
                    str(exc), kind=rule.kind, rule=rule.match, path=rule.path
                ) from exc
            if matched:
                logger.debug("Scope matched label selector %r (%s)", selector, rule.path)
                return rule

        return None


def scope_match(
    ctx: EvaluationContext | None,
    workspace_scoped: Sequence[ScopedBody],
    label_scoped: Sequence[ScopedBody],
    *,
    selector: SelectorEvaluator | None = None,
) -> ScopedBody | None:
    return ScopeResolver(selector).match(ctx, workspace_scoped, label_scoped)
