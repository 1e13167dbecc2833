from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

DEFAULT_ENV_VAR = "PIPELINE_CONFIG"
DEFAULT_DOCUMENT_NAME = "pipelines.yaml"


def find_repo_root(start: str | os.PathLike[str] | None = None) -> str:
    start_path = Path(start or os.getcwd()).resolve()
    if start_path.is_file():
        start_path = start_path.parent

    markers = ("pyproject.toml", ".git")
    for candidate in (start_path, *start_path.parents):
        if (candidate / "pyproject.toml").is_file():
            return str(candidate)
        if (candidate / ".git").exists():
            return str(candidate)

    raise FileNotFoundError(
        "Cannot locate repo root: searched from "
        f"{start_path} for {', '.join(markers)}"
    )


def _load_yaml_mapping(path: str) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        raise ValueError(f"Pipeline document must contain a YAML mapping: {path}")
    return dict(payload)


def find_document_path(
    path: str | os.PathLike[str] | None = None,
    *,
    env_var: str | None = DEFAULT_ENV_VAR,
    start_dir: str | os.PathLike[str] | None = None,
) -> tuple[str, str]:
    """Return (absolute document path, mode).

    Resolution order: explicit `path`, then the `env_var` environment variable,
    then `pipelines.yaml` at the repo root.
    """

    if path is not None and str(path).strip():
        expanded = os.path.expandvars(os.path.expanduser(str(path).strip()))
        return os.path.abspath(expanded), "explicit"

    if env_var:
        raw_env = os.environ.get(env_var, "").strip()
        if raw_env:
            expanded = os.path.expandvars(os.path.expanduser(raw_env))
            return os.path.abspath(expanded), "env"

    repo_root = find_repo_root(start_dir)
    return os.path.join(repo_root, DEFAULT_DOCUMENT_NAME), "repo_root"


def load_document(
    path: str | os.PathLike[str] | None = None,
    *,
    env_var: str | None = DEFAULT_ENV_VAR,
    start_dir: str | os.PathLike[str] | None = None,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Load a pipeline document from YAML.

    Returns:
        (payload, meta) where meta records the resolved path and how it was found.

    Raises:
        FileNotFoundError: If the document does not exist.
        ValueError: If the file is not valid YAML or not a mapping.
    """

    document_path, mode = find_document_path(path, env_var=env_var, start_dir=start_dir)
    if not os.path.exists(document_path):
        raise FileNotFoundError(f"Missing pipeline document: {document_path}")

    payload = _load_yaml_mapping(document_path)
    meta = {"mode": mode, "path": document_path, "env_var": env_var}
    return payload, meta
