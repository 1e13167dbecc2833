"""Shape pass: parse a pipeline document into raw, unevaluated definitions.

This module owns the structural layer of the document only. Step bodies stay
opaque here; they are evaluated later, once the runtime context is known and
the effective (base or scope-overridden) body has been chosen.

Document layout::

    variables: {...}          # optional base context variables
    pipelines:
      - id: deploy
        name: Deploy          # optional
        <pipeline fields>     # decoded on lookup
        steps:
          - name: build
            <step fields>     # the step's base body
            workspace_scoped:
              - workspace: production
                body: {...}
            label_scoped:
              - selector: env=prod
                body: {...}
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Literal

from pipeline_config.errors import ShapeError

logger = logging.getLogger(__name__)

ScopeKind = Literal["workspace", "label"]

_DOCUMENT_KEYS = ("pipelines", "variables")
_PIPELINE_SHAPE_KEYS = ("id", "name", "steps")
_STEP_SHAPE_KEYS = ("name", "workspace_scoped", "label_scoped")
_SCOPE_MATCH_KEY: dict[str, str] = {"workspace": "workspace", "label": "selector"}


def _frozen(body: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(copy.deepcopy(dict(body)))


def _use_type(body: Mapping[str, Any], *, path: str) -> str | None:
    """Read the literal capability type from a body's `use` block."""

    raw_use = body.get("use")
    if raw_use is None:
        return None
    if not isinstance(raw_use, Mapping):
        raise ShapeError(f"{path}.use must be a mapping (type={type(raw_use).__name__})")
    raw_type = raw_use.get("type")
    if raw_type is None:
        return None
    if not isinstance(raw_type, str) or not raw_type.strip():
        raise ShapeError(f"{path}.use.type must be a non-empty string")
    if "${" in raw_type:
        raise ShapeError(f"{path}.use.type must be a literal, not an expression (got {raw_type!r})")
    return raw_type.strip()


@dataclass(frozen=True)
class ScopedBody:
    """One workspace- or label-scoped override of a step body."""

    kind: ScopeKind
    match: str
    body: Mapping[str, Any]
    path: str
    use_type: str | None = None

    __hash__ = None  # type: ignore[assignment]

    def describe(self) -> str:
        return f"{self.kind}:{self.match}"


@dataclass(frozen=True)
class RawStep:
    name: str
    body: Mapping[str, Any]
    path: str
    use_type: str | None = None
    workspace_scoped: tuple[ScopedBody, ...] = ()
    label_scoped: tuple[ScopedBody, ...] = ()

    __hash__ = None  # type: ignore[assignment]


@dataclass(frozen=True)
class PipelineDefinition:
    """Raw pipeline as declared; `remain` holds the not-yet-typed top-level fields."""

    id: str
    name: str | None
    raw_steps: tuple[RawStep, ...]
    body: Mapping[str, Any]
    remain: Mapping[str, Any]
    path: str

    __hash__ = None  # type: ignore[assignment]


@dataclass(frozen=True)
class ConfigDocument:
    pipelines: tuple[PipelineDefinition, ...]
    variables: Mapping[str, Any]

    __hash__ = None  # type: ignore[assignment]


def _require_mapping(value: Any, *, path: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ShapeError(f"{path} must be a mapping (type={type(value).__name__})")
    for key in value.keys():
        if not isinstance(key, str) or not key.strip():
            raise ShapeError(f"{path} keys must be non-empty strings (got {key!r})")
    return value


def _require_name(value: Any, *, path: str) -> str:
    if not isinstance(value, str):
        raise ShapeError(f"{path} must be a string (type={type(value).__name__})")
    text = value.strip()
    if not text:
        raise ShapeError(f"{path} cannot be empty")
    return text


def _parse_scoped(raw: Any, *, kind: ScopeKind, path: str) -> tuple[ScopedBody, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, (list, tuple)):
        raise ShapeError(f"{path} must be a list (type={type(raw).__name__})")

    match_key = _SCOPE_MATCH_KEY[kind]
    entries: list[ScopedBody] = []
    for idx, item in enumerate(raw):
        item_path = f"{path}[{idx}]"
        entry = _require_mapping(item, path=item_path)
        unknown = sorted(k for k in entry.keys() if k not in (match_key, "body"))
        if unknown:
            raise ShapeError(f"Unknown keys under {item_path}: {', '.join(unknown)}")
        if match_key not in entry:
            raise ShapeError(f"Missing required key: {item_path}.{match_key}")
        match = _require_name(entry.get(match_key), path=f"{item_path}.{match_key}")
        if entry.get("body") is None:
            raise ShapeError(f"Missing override body: {item_path}.body")
        body = _require_mapping(entry["body"], path=f"{item_path}.body")
        entries.append(
            ScopedBody(
                kind=kind,
                match=match,
                body=_frozen(body),
                path=f"{item_path}.body",
                use_type=_use_type(body, path=f"{item_path}.body"),
            )
        )
    return tuple(entries)


def parse_step(raw: Any, *, path: str) -> RawStep:
    entry = _require_mapping(raw, path=path)
    if "name" not in entry:
        raise ShapeError(f"Missing required key: {path}.name")
    name = _require_name(entry.get("name"), path=f"{path}.name")
    body = {k: v for k, v in entry.items() if k not in _STEP_SHAPE_KEYS}
    return RawStep(
        name=name,
        body=_frozen(body),
        path=path,
        use_type=_use_type(body, path=path),
        workspace_scoped=_parse_scoped(
            entry.get("workspace_scoped"), kind="workspace", path=f"{path}.workspace_scoped"
        ),
        label_scoped=_parse_scoped(entry.get("label_scoped"), kind="label", path=f"{path}.label_scoped"),
    )


def parse_pipeline(raw: Any, *, path: str) -> PipelineDefinition:
    entry = _require_mapping(raw, path=path)
    if "id" not in entry:
        raise ShapeError(f"Missing required key: {path}.id")
    pipeline_id = _require_name(entry.get("id"), path=f"{path}.id")

    raw_name = entry.get("name")
    name = None if raw_name is None else _require_name(raw_name, path=f"{path}.name")

    raw_steps = entry.get("steps")
    if raw_steps is None:
        raw_steps = []
    if not isinstance(raw_steps, (list, tuple)):
        raise ShapeError(f"{path}.steps must be a list (type={type(raw_steps).__name__})")
    steps = tuple(parse_step(item, path=f"{path}.steps[{idx}]") for idx, item in enumerate(raw_steps))

    seen: set[str] = set()
    for step in steps:
        if step.name in seen:
            raise ShapeError(f"Duplicate step name in {path}: {step.name}")
        seen.add(step.name)

    return PipelineDefinition(
        id=pipeline_id,
        name=name,
        raw_steps=steps,
        body=_frozen(entry),
        remain=_frozen({k: v for k, v in entry.items() if k not in _PIPELINE_SHAPE_KEYS}),
        path=path,
    )


def parse_document(payload: Any, *, strict: bool = False) -> ConfigDocument:
    """Parse a loaded document mapping into raw pipeline definitions.

    Unknown top-level keys are logged (or rejected when `strict`). Duplicate
    pipeline ids are logged but kept; lookups use the first declaration.
    """

    if payload is None:
        payload = {}
    document = _require_mapping(payload, path="<document>")

    unknown = sorted(k for k in document.keys() if k not in _DOCUMENT_KEYS)
    if unknown:
        message = "Unknown pipeline document keys: " + ", ".join(unknown)
        if strict:
            raise ShapeError(message)
        logger.warning(message)

    raw_variables = document.get("variables")
    variables = {} if raw_variables is None else dict(_require_mapping(raw_variables, path="variables"))

    raw_pipelines = document.get("pipelines")
    if raw_pipelines is None:
        raw_pipelines = []
    if not isinstance(raw_pipelines, (list, tuple)):
        raise ShapeError(f"pipelines must be a list (type={type(raw_pipelines).__name__})")

    pipelines = tuple(
        parse_pipeline(item, path=f"pipelines[{idx}]") for idx, item in enumerate(raw_pipelines)
    )

    seen: set[str] = set()
    for definition in pipelines:
        if definition.id in seen:
            logger.warning(
                "Duplicate pipeline id %r at %s; lookups resolve to the first declaration",
                definition.id,
                definition.path,
            )
        seen.add(definition.id)

    logger.debug("Parsed %d pipeline definition(s)", len(pipelines))
    return ConfigDocument(pipelines=pipelines, variables=_frozen(variables))
