"""
Tests for the `route-registry` CLI.

Runs ``main()`` in-process against a temporary project and checks the
printed output and exit codes.
"""

from __future__ import annotations

import json
import os

import pytest

from route_registry.cli import main


_PAGE = """\
    import { LoginForm } from "@/components/login-form";
    export async function signIn(email: string, password: string) {}
    export default function Page() {
      return <LoginForm remember onSubmit={signIn} />;
    }
"""


@pytest.fixture()
def project(write_tree, tmp_path, monkeypatch):
    for key in ("ROUTE_REGISTRY_APP_DIR", "ROUTE_REGISTRY_REGISTRY_DIR", "ROUTE_REGISTRY_EMBEDDING_PROVIDER"):
        monkeypatch.delenv(key, raising=False)
    write_tree({
        "src/app/login/page.tsx": _PAGE,
        "src/app/page.tsx": 'import { Hero } from "./hero";\nexport default () => <Hero title="Welcome" />;\n',
    })
    return str(tmp_path)


def _run(project: str, *args: str) -> None:
    main(["--project-root", project, "--config", os.path.join(project, "none.yaml"), *args])


def test_scan_show_search(project, capsys):
    _run(project, "scan", "--no-progress", "--json")
    summary = json.loads(capsys.readouterr().out)
    assert summary["scanned"] == 2
    assert summary["failures"] == {}
    assert os.path.isfile(os.path.join(project, "registry", "login.registry.json"))

    _run(project, "show", "login", "--json")
    shown = json.loads(capsys.readouterr().out)
    assert shown["route"] == "login"
    assert [c["name"] for c in shown["components"]] == ["LoginForm"]
    assert [a["name"] for a in shown["actions"]] == ["signIn"]

    _run(project, "search", "sign in with email and password", "--top-k", "1", "--json")
    (hit,) = json.loads(capsys.readouterr().out)
    assert hit["route"] == "login"

    _run(project, "search", "welcome hero", "--routes", "--json")
    hits = json.loads(capsys.readouterr().out)
    assert [h["kind"] for h in hits] == ["route", "route"]
    assert hits[0]["route"] == ""


def test_human_readable_output(project, capsys):
    _run(project, "scan", "--no-progress")
    out = capsys.readouterr().out
    assert "Scan complete" in out
    assert "Components: 2" in out

    _run(project, "show", "login")
    out = capsys.readouterr().out
    assert "<LoginForm> (remember: boolean, onSubmit: unknown)" in out
    assert "mutation signIn(email: string, password: string)" in out

    _run(project, "search", "login form")
    assert "Search results for: 'login form'" in capsys.readouterr().out


def test_missing_app_dir(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc_info:
        _run(str(tmp_path), "scan", "--no-progress")
    assert exc_info.value.code == 1
    assert "App directory not found" in capsys.readouterr().err


def test_search_without_registry(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc_info:
        _run(str(tmp_path), "search", "anything")
    assert exc_info.value.code == 1
    assert "route-registry scan" in capsys.readouterr().err


def test_show_missing_route(project, capsys):
    _run(project, "scan", "--no-progress", "--json")
    capsys.readouterr()
    with pytest.raises(SystemExit) as exc_info:
        _run(project, "show", "nowhere")
    assert exc_info.value.code == 1


def test_failed_routes_do_not_fail_scan(project, write_tree, capsys):
    write_tree({"src/app/broken/page.tsx": "export default function (\n"})
    _run(project, "scan", "--no-progress")
    out = capsys.readouterr().out
    assert "Failed:     1" in out
    assert "! broken:" in out


def test_no_command_is_usage_error():
    with pytest.raises(SystemExit) as exc_info:
        main([])
    assert exc_info.value.code == 2
