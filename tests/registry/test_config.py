"""Tests for route_registry.config layering (env > YAML > defaults)."""

from __future__ import annotations

import os
import textwrap

import pytest

from route_registry.config import Config

_ENV_KEYS = (
    "ROUTE_REGISTRY_APP_DIR",
    "ROUTE_REGISTRY_REGISTRY_DIR",
    "ROUTE_REGISTRY_ENTRY_FILES",
    "ROUTE_REGISTRY_EMBEDDING_PROVIDER",
    "ROUTE_REGISTRY_EMBEDDING_DIMENSIONS",
    "ROUTE_REGISTRY_SCAN_WORKERS",
    "ROUTE_REGISTRY_TOP_K",
    "ROUTE_REGISTRY_LOG_LEVEL",
    "OPENAI_API_KEY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults():
    cfg = Config()
    assert cfg.APP_DIR == os.path.join("src", "app")
    assert cfg.REGISTRY_DIR == "registry"
    assert cfg.ENTRY_FILES == ["page.tsx", "page.ts", "page.jsx", "page.js"]
    assert cfg.PATH_ALIASES == {"@/": "src/"}
    assert cfg.EMBEDDING_PROVIDER == "hashing"
    assert cfg.EMBEDDING_DIMENSIONS == 256
    assert cfg.SCAN_WORKERS == 4
    assert cfg.TOP_K == 5
    assert cfg.LOG_LEVEL == "WARNING"


def test_yaml_file(tmp_path):
    path = tmp_path / ".route-registry.yaml"
    path.write_text(textwrap.dedent("""\
        app_dir: app
        entry_files: [page.tsx, route.ts]
        path_aliases:
          "~/": "src/"
        embedding_provider: NGRAM
        embedding_dimensions: 512
        openai:
          api_key: sk-test
    """))
    cfg = Config.load(str(path))
    assert cfg.APP_DIR == "app"
    assert cfg.ENTRY_FILES == ["page.tsx", "route.ts"]
    assert cfg.PATH_ALIASES == {"~/": "src/"}
    assert cfg.EMBEDDING_PROVIDER == "ngram"
    assert cfg.EMBEDDING_DIMENSIONS == 512
    assert cfg.OPENAI_API_KEY == "sk-test"


def test_env_overrides_yaml(monkeypatch):
    monkeypatch.setenv("ROUTE_REGISTRY_APP_DIR", "frontend/app")
    monkeypatch.setenv("ROUTE_REGISTRY_ENTRY_FILES", "page.tsx, page.js")
    monkeypatch.setenv("ROUTE_REGISTRY_SCAN_WORKERS", "0")
    cfg = Config({"app_dir": "ignored"})
    assert cfg.APP_DIR == "frontend/app"
    assert cfg.ENTRY_FILES == ["page.tsx", "page.js"]
    assert cfg.SCAN_WORKERS == 1


def test_missing_explicit_file_falls_back_to_defaults(tmp_path):
    cfg = Config.load(str(tmp_path / "absent.yaml"))
    assert cfg.TOP_K == 5


def test_invalid_yaml_ignored(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("app_dir: [unclosed\n")
    assert Config.load(str(path)).APP_DIR == os.path.join("src", "app")


def test_bad_value_raises(monkeypatch):
    monkeypatch.setenv("ROUTE_REGISTRY_TOP_K", "many")
    with pytest.raises(ValueError):
        Config()


def test_resolve_aliases(tmp_path):
    cfg = Config({"path_aliases": {"@/": "src/", "#lib/": "lib"}})
    resolved = cfg.resolve_aliases(str(tmp_path))
    assert resolved["@/"] == os.path.join(str(tmp_path), "src/")
    assert resolved["#lib/"] == os.path.join(str(tmp_path), "lib")
