"""Shared fixtures for the route registry tests."""

from __future__ import annotations

import textwrap

import pytest


@pytest.fixture()
def write_tree(tmp_path):
    """Return a helper that writes ``{relative path: source}`` under *tmp_path*."""

    def _write(files: dict[str, str]) -> str:
        for rel, src in files.items():
            path = tmp_path / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(src), encoding="utf-8")
        return str(tmp_path)

    return _write


@pytest.fixture()
def app_dir(tmp_path):
    """The conventional ``src/app`` directory inside *tmp_path*."""
    path = tmp_path / "src" / "app"
    path.mkdir(parents=True)
    return str(path)


@pytest.fixture()
def registry_dir(tmp_path):
    return str(tmp_path / "registry")
