import os

import pytest

from pipeline_config.foundation.config_io import find_document_path, load_document
from pipeline_config.registry import PipelineRegistry

DOCUMENT = """\
variables:
  registry: ghcr.io/acme
pipelines:
  - id: deploy
    steps:
      - name: build
        image: ${registry}/builder
        use:
          type: docker
"""


def test_load_document_explicit_path(tmp_path, monkeypatch):
    monkeypatch.delenv("PIPELINE_CONFIG", raising=False)
    path = tmp_path / "pipelines.yaml"
    path.write_text(DOCUMENT, encoding="utf-8")

    payload, meta = load_document(str(path))

    assert payload["variables"] == {"registry": "ghcr.io/acme"}
    assert meta["mode"] == "explicit"
    assert meta["path"] == os.path.abspath(str(path))


def test_load_document_env_override(tmp_path, monkeypatch):
    path = tmp_path / "custom.yaml"
    path.write_text(DOCUMENT, encoding="utf-8")
    monkeypatch.setenv("PIPELINE_CONFIG", str(path))

    payload, meta = load_document()

    assert meta["mode"] == "env"
    assert [p["id"] for p in payload["pipelines"]] == ["deploy"]


def test_find_document_path_defaults_to_repo_root(tmp_path):
    (tmp_path / "pyproject.toml").write_text("", encoding="utf-8")
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)

    path, mode = find_document_path(env_var=None, start_dir=nested)

    assert mode == "repo_root"
    assert path == os.path.join(str(tmp_path.resolve()), "pipelines.yaml")


def test_load_document_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError, match=r"Missing pipeline document"):
        load_document(str(tmp_path / "nope.yaml"))


def test_load_document_invalid_yaml_names_the_file(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("pipelines: [1, 2\n", encoding="utf-8")

    with pytest.raises(ValueError) as excinfo:
        load_document(str(path))

    assert "broken.yaml" in str(excinfo.value)


def test_load_document_requires_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ValueError, match=r"must contain a YAML mapping"):
        load_document(str(path))


def test_registry_from_file_resolves_document_variables(tmp_path):
    path = tmp_path / "pipelines.yaml"
    path.write_text(DOCUMENT, encoding="utf-8")

    registry = PipelineRegistry.from_file(path)

    assert registry.lookup("deploy").steps()[0].image == "ghcr.io/acme/builder"
