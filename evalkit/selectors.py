"""Label selector evaluation.

Selectors use the familiar equality/set-based syntax; comma-separated
requirements must all hold:

- `key=value` / `key==value`: label present with that value
- `key!=value`: label absent or with a different value
- `key`: label present
- `!key`: label absent
- `key in (a, b)` / `key notin (a, b)`
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal, Protocol

Operator = Literal["eq", "neq", "exists", "absent", "in", "notin"]

_KEY_RE = re.compile(r"^[A-Za-z0-9]([A-Za-z0-9_.\-/]*[A-Za-z0-9])?$")
_SET_RE = re.compile(r"^(?P<key>\S+)\s+(?P<op>in|notin)\s*\((?P<values>[^()]*)\)$")


class SelectorSyntaxError(ValueError):
    pass


class SelectorEvaluator(Protocol):
    def matches(self, selector: str, labels: Mapping[str, str]) -> bool:
        """Return True if `labels` satisfy `selector`."""


@dataclass(frozen=True)
class Requirement:
    key: str
    op: Operator
    values: tuple[str, ...] = ()

    def matches(self, labels: Mapping[str, str]) -> bool:
        present = self.key in labels
        value = labels.get(self.key)
        if self.op == "exists":
            return present
        if self.op == "absent":
            return not present
        if self.op == "eq":
            return present and value == self.values[0]
        if self.op == "neq":
            return not present or value != self.values[0]
        if self.op == "in":
            return present and value in self.values
        return not present or value not in self.values


def _check_key(key: str, *, selector: str) -> str:
    key = key.strip()
    if not _KEY_RE.match(key):
        raise SelectorSyntaxError(f"Invalid label key {key!r} in selector {selector!r}")
    return key


def _value(raw: str) -> str:
    value = raw.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def _split_requirements(selector: str) -> list[str]:
    # Commas inside `in (...)` value lists do not separate requirements.
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in selector:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                raise SelectorSyntaxError(f"Unbalanced parentheses in selector {selector!r}")
        if ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    if depth != 0:
        raise SelectorSyntaxError(f"Unbalanced parentheses in selector {selector!r}")
    parts.append("".join(current))
    return parts


def parse_selector(selector: str) -> tuple[Requirement, ...]:
    if not isinstance(selector, str):
        raise SelectorSyntaxError(f"Selector must be a string (type={type(selector).__name__})")
    text = selector.strip()
    if not text:
        raise SelectorSyntaxError("Selector cannot be empty")

    requirements: list[Requirement] = []
    for raw in _split_requirements(text):
        term = raw.strip()
        if not term:
            raise SelectorSyntaxError(f"Empty requirement in selector {selector!r}")

        set_match = _SET_RE.match(term)
        if set_match:
            key = _check_key(set_match.group("key"), selector=selector)
            values = tuple(_value(v) for v in set_match.group("values").split(",") if v.strip())
            if not values:
                raise SelectorSyntaxError(f"Empty value set for {key!r} in selector {selector!r}")
            requirements.append(Requirement(key, set_match.group("op"), values))  # type: ignore[arg-type]
            continue

        if "!=" in term:
            key, value = term.split("!=", 1)
            requirements.append(Requirement(_check_key(key, selector=selector), "neq", (_value(value),)))
            continue
        if "==" in term:
            key, value = term.split("==", 1)
            requirements.append(Requirement(_check_key(key, selector=selector), "eq", (_value(value),)))
            continue
        if "=" in term:
            key, value = term.split("=", 1)
            requirements.append(Requirement(_check_key(key, selector=selector), "eq", (_value(value),)))
            continue
        if term.startswith("!"):
            requirements.append(Requirement(_check_key(term[1:], selector=selector), "absent"))
            continue
        requirements.append(Requirement(_check_key(term, selector=selector), "exists"))

    return tuple(requirements)


class LabelSelector:
    """Default `SelectorEvaluator`."""

    def matches(self, selector: str, labels: Mapping[str, str]) -> bool:
        return all(req.matches(labels) for req in parse_selector(selector))
