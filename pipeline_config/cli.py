from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from typing import Any

from pipeline_config.foundation.logging_utils import setup_operational_logger
from pipeline_config.registry import PipelineRegistry
from pipeline_config.scope import build_scope_context


def _parse_pairs(items: Sequence[str] | None, *, flag: str) -> dict[str, str]:
    out: dict[str, str] = {}
    for item in items or []:
        if "=" not in item:
            raise ValueError(f"{flag} expects KEY=VALUE (got {item!r})")
        key, value = item.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError(f"{flag} key cannot be empty (got {item!r})")
        out[key] = value
    return out


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", help="Pipeline document (default: $PIPELINE_CONFIG or ./pipelines.yaml)")
    common.add_argument("--workspace", help="Active workspace name")
    common.add_argument("--label", action="append", default=[], metavar="KEY=VALUE", help="Active label")
    common.add_argument("--var", action="append", default=[], metavar="KEY=VALUE", help="Context variable")
    common.add_argument("--json", action="store_true", help="Print JSON instead of text")
    common.add_argument("--strict", action="store_true", help="Reject unknown document keys")
    common.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")

    parser = argparse.ArgumentParser(prog="pipeline-config", add_help=True)
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", parents=[common], help="List declared pipeline ids")
    for name, help_text in (
        ("show", "Show a pipeline's identity and step names"),
        ("steps", "Resolve and decode a pipeline's steps"),
        ("uses", "List the capability type of each step"),
        ("labels", "List the labels declared on each step"),
    ):
        cmd = sub.add_parser(name, parents=[common], help=help_text)
        cmd.add_argument("pipeline_id")

    return parser


def _emit(payload: Any, *, as_json: bool, lines: Sequence[str]) -> None:
    if as_json:
        print(json.dumps(payload, indent=2, sort_keys=True, default=str))
        return
    for line in lines:
        print(line)


def _run(args: argparse.Namespace) -> int:
    variables = _parse_pairs(args.var, flag="--var")
    labels = _parse_pairs(args.label, flag="--label")
    ctx = build_scope_context(workspace=args.workspace, labels=labels or None, variables=variables)

    registry = PipelineRegistry.from_file(args.config, strict=args.strict)

    if args.command == "list":
        ids = registry.list_ids()
        _emit(ids, as_json=args.json, lines=ids)
        return 0

    pipeline = registry.lookup(args.pipeline_id, ctx)
    if pipeline is None:
        print(f"Unknown pipeline: {args.pipeline_id}", file=sys.stderr)
        return 1

    if args.command == "show":
        payload = {
            "ref": pipeline.ref().to_dict(),
            "name": pipeline.name,
            "description": pipeline.description,
            "steps": pipeline.step_names(),
        }
        lines = [f"id: {pipeline.id}", f"name: {pipeline.name or ''}"]
        if pipeline.description:
            lines.append(f"description: {pipeline.description}")
        lines.extend(f"- {name}" for name in pipeline.step_names())
        _emit(payload, as_json=args.json, lines=lines)
        return 0

    if args.command == "steps":
        steps = pipeline.steps()
        lines = []
        for step in steps:
            scope = f" [{step.scope}]" if step.scope else ""
            image = f" image={step.image}" if step.image else ""
            lines.append(f"{step.name}: use={step.use_type or '<none>'}{image}{scope}")
        _emit([step.to_dict() for step in steps], as_json=args.json, lines=lines)
        return 0

    if args.command == "uses":
        refs = pipeline.step_capability_refs()
        pairs = list(zip(pipeline.step_names(), refs))
        _emit(
            [{"step": name, "use": ref} for name, ref in pairs],
            as_json=args.json,
            lines=[f"{name}: {ref or '<none>'}" for name, ref in pairs],
        )
        return 0

    if args.command == "labels":
        step_labels = pipeline.step_labels()
        pairs = list(zip(pipeline.step_names(), step_labels))
        lines = []
        for name, step_label in pairs:
            rendered = ", ".join(f"{k}={v}" for k, v in sorted(step_label.items()))
            lines.append(f"{name}: {rendered}")
        _emit(
            [{"step": name, "labels": step_label} for name, step_label in pairs],
            as_json=args.json,
            lines=lines,
        )
        return 0

    raise AssertionError(f"Unhandled command: {args.command}")


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    logger = setup_operational_logger(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        return _run(args)
    except (OSError, ValueError) as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
