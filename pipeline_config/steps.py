from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from evalkit.config_namespace import ConfigNamespace
from evalkit.context import EvaluationContext
from evalkit.diagnostics import decode_body


@dataclass(frozen=True)
class Use:
    """Reference to the capability a step invokes when it runs."""

    type: str
    options: Mapping[str, Any] = field(default_factory=dict)

    __hash__ = None  # type: ignore[assignment]


@dataclass(frozen=True)
class Step:
    name: str
    use: Use | None = None
    image: str | None = None
    labels: Mapping[str, str] = field(default_factory=dict)
    depends_on: tuple[str, ...] = ()
    scope: str | None = None
    context: EvaluationContext | None = field(default=None, compare=False, repr=False)

    __hash__ = None  # type: ignore[assignment]

    @property
    def use_type(self) -> str | None:
        return self.use.type if self.use is not None else None

    def to_dict(self) -> dict[str, Any]:
        use = None
        if self.use is not None:
            use = {"type": self.use.type, "options": dict(self.use.options)}
        return {
            "name": self.name,
            "image": self.image,
            "use": use,
            "labels": dict(self.labels),
            "depends_on": list(self.depends_on),
            "scope": self.scope,
        }


def decode_step(
    name: str,
    body: Mapping[str, Any],
    ctx: EvaluationContext | None,
    *,
    path: str,
    scope: str | None = None,
) -> Step:
    """Decode an effective step body into a `Step` stamped with `ctx`.

    A body without a `use` block decodes to a step whose `use` is None; a `use`
    block that is present must name its `type`.

    Raises:
        DecodeError: If a field is missing/invalid or an expression fails.
    """

    def _decode(ns: ConfigNamespace) -> Step:
        declared = ns.data.get("use") is not None
        use_ns = ns.namespace("use", default=None)
        use = None
        if declared:
            use = Use(
                type=use_ns.get_str("type"),
                options=use_ns.get_mapping("options", default={}),
            )
        return Step(
            name=name,
            use=use,
            image=ns.get_str("image", default=None),
            labels=ns.get_str_mapping("labels", default={}),
            depends_on=tuple(ns.get_list_str("depends_on", default=(), allow_empty=True)),
            scope=scope,
            context=ctx,
        )

    return decode_body(body, ctx, _decode, path=path)


def extract_labels(
    body: Mapping[str, Any], ctx: EvaluationContext | None, *, path: str
) -> dict[str, str]:
    """Evaluate only the `labels` field of a body; other fields are not touched."""

    partial = {"labels": body["labels"]} if "labels" in body else {}
    return decode_body(
        partial,
        ctx,
        lambda ns: ns.get_str_mapping("labels", default={}),
        path=path,
    )
