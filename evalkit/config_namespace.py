"""Strict, consumed-keys-enforcing mapping reader for typed decoders."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

_MISSING = object()


def _join_path(parent: str, key: str) -> str:
    if not parent:
        return key
    return f"{parent}.{key}"


@dataclass
class ConfigNamespace:
    """Read typed values out of an evaluated body, tracking which keys were used.

    `assert_consumed()` rejects any key the decoder never asked for, so typos in
    configuration fail loudly instead of being ignored.
    """

    data: Mapping[str, Any]
    path: str
    _consumed: set[str] = field(default_factory=set, init=False, repr=False)
    _children: dict[str, "ConfigNamespace"] = field(default_factory=dict, init=False, repr=False)

    def key_path(self, key: str) -> str:
        return _join_path(self.path, key.strip())

    def consumed_keys(self) -> tuple[str, ...]:
        return tuple(sorted(self._consumed))

    def unconsumed_keys(self) -> tuple[str, ...]:
        return tuple(sorted(str(k) for k in self.data.keys() if k not in self._consumed))

    def assert_consumed(self) -> None:
        unknown = list(self.unconsumed_keys())
        if unknown:
            path = self.path or "<root>"
            consumed = ", ".join(self.consumed_keys()) or "<none>"
            raise ValueError(
                f"Unknown config keys under {path}: {', '.join(unknown)} (consumed: {consumed})"
            )
        for child in self._children.values():
            child.assert_consumed()

    def _get_raw(self, key: str, *, default: Any) -> Any:
        if not isinstance(key, str) or not key.strip():
            raise TypeError("ConfigNamespace key must be a non-empty string")
        normalized = key.strip()
        if normalized in self._children:
            raise ValueError(f"{self.key_path(normalized)} already accessed as a nested namespace")

        self._consumed.add(normalized)
        if normalized not in self.data:
            if default is _MISSING:
                raise ValueError(f"Missing required config key: {self.key_path(normalized)}")
            return default
        return self.data.get(normalized)

    def namespace(
        self,
        key: str,
        *,
        default: Mapping[str, Any] | None | object = _MISSING,
    ) -> "ConfigNamespace":
        normalized = (key or "").strip()
        if not normalized:
            raise TypeError("ConfigNamespace key must be a non-empty string")
        if normalized in self._children:
            return self._children[normalized]

        raw = self.data.get(normalized)
        self._consumed.add(normalized)
        if raw is None:
            if default is _MISSING:
                raise ValueError(f"Missing required config namespace: {self.key_path(normalized)}")
            if default is not None and not isinstance(default, Mapping):
                raise TypeError(f"default for {self.key_path(normalized)} must be a mapping or None")
            raw = dict(default) if default is not None else {}
        elif not isinstance(raw, Mapping):
            raise TypeError(
                f"{self.key_path(normalized)} must be a mapping (type={type(raw).__name__})"
            )

        child = ConfigNamespace(dict(raw), path=self.key_path(normalized))
        self._children[normalized] = child
        return child

    def get_str(
        self,
        key: str,
        *,
        default: str | None | object = _MISSING,
        allow_empty: bool = False,
    ) -> str | None:
        if default is not _MISSING and default is not None and not isinstance(default, str):
            raise TypeError(f"{self.key_path(key)} default must be a string or None")

        raw = self._get_raw(key, default=default)
        if raw is None:
            return None
        if not isinstance(raw, str):
            raise TypeError(f"{self.key_path(key)} must be a string (type={type(raw).__name__})")
        value = raw.strip()
        if not value and not allow_empty:
            raise ValueError(f"{self.key_path(key)} cannot be empty")
        return value

    def get_mapping(
        self,
        key: str,
        *,
        default: Mapping[str, Any] | object = _MISSING,
    ) -> dict[str, Any]:
        """Read an opaque mapping value (contents are not validated)."""

        raw = self._get_raw(key, default=default)
        if raw is None:
            return {}
        if not isinstance(raw, Mapping):
            raise TypeError(f"{self.key_path(key)} must be a mapping (type={type(raw).__name__})")
        return dict(raw)

    def get_str_mapping(
        self,
        key: str,
        *,
        default: Mapping[str, str] | object = _MISSING,
    ) -> dict[str, str]:
        raw = self.get_mapping(key, default=default)
        out: dict[str, str] = {}
        for item_key, item_value in raw.items():
            if not isinstance(item_key, str) or not item_key.strip():
                raise ValueError(f"{self.key_path(key)} keys must be non-empty strings")
            if isinstance(item_value, bool) or not isinstance(item_value, (str, int, float)):
                raise TypeError(
                    f"{self.key_path(key)}.{item_key} must be a string "
                    f"(type={type(item_value).__name__})"
                )
            out[item_key.strip()] = str(item_value)
        return out

    def get_list_str(
        self,
        key: str,
        *,
        default: list[str] | tuple[str, ...] | object = _MISSING,
        allow_empty: bool = False,
    ) -> list[str]:
        if default is not _MISSING and not isinstance(default, (list, tuple)):
            raise TypeError(f"{self.key_path(key)} default must be a list[str]")

        raw = self._get_raw(key, default=default)
        if raw is default and default is not _MISSING:
            raw = list(default)  # type: ignore[arg-type]

        if not isinstance(raw, (list, tuple)):
            raise TypeError(f"{self.key_path(key)} must be a list[str] (type={type(raw).__name__})")

        items: list[str] = []
        for idx, item in enumerate(raw):
            if not isinstance(item, str):
                raise TypeError(
                    f"{self.key_path(key)}[{idx}] must be a string (type={type(item).__name__})"
                )
            trimmed = item.strip()
            if not trimmed:
                raise ValueError(f"{self.key_path(key)}[{idx}] cannot be empty")
            items.append(trimmed)

        if not items and not allow_empty:
            raise ValueError(f"{self.key_path(key)} cannot be empty")
        return items
