"""
Unit tests for route_registry.artifacts

Artifact naming, atomic writes, schema validation on read and the
RegistryLoader error states.
"""

from __future__ import annotations

import json
import os

import pytest

from route_registry.artifacts import (
    LoadState,
    RegistryLoader,
    artifact_name,
    iter_artifacts,
    load_registry,
    read_registry,
    write_registry,
)
from route_registry.errors import NotFoundError, ParseError, UsageError
from route_registry.models import (
    SCHEMA_VERSION,
    ActionDescriptor,
    ActionKind,
    Parameter,
    PropType,
    RouteRegistry,
    UIComponent,
)
from route_registry.store import RegistryVectorStore
from route_registry.vectorizer import HashingVectorizer


class _ShortVectorizer(HashingVectorizer):
    """Reports fewer dimensions than the vectors it produces."""

    @property
    def dimensions(self) -> int:
        return 8


def _sample(route: str = "a/b") -> RouteRegistry:
    return RouteRegistry(
        route=route,
        components=(
            UIComponent(
                name="Card",
                props={"title": PropType.STRING, "count": PropType.NUMBER},
                source_location="a/b/page.tsx:4:5",
                summary="Component: Card",
                import_source="@/components/card",
                occurrences=2,
            ),
        ),
        actions=(
            ActionDescriptor(
                name="createThing",
                kind=ActionKind.MUTATION,
                parameters=(Parameter("name", PropType.STRING),),
                summary="Action: createThing",
            ),
        ),
    )


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------

class TestArtifactName:
    def test_nested_route(self):
        assert artifact_name("a/b") == "a_b.registry.json"

    def test_separator_runs(self):
        assert artifact_name("a//b\\\\c") == "a_b_c.registry.json"

    def test_root_route(self):
        assert artifact_name("") == "_root.registry.json"
        assert artifact_name("index") == "index.registry.json"

    def test_dynamic_segment(self):
        assert artifact_name("blog/[slug]") == "blog_[slug].registry.json"


# ---------------------------------------------------------------------------
# Write / read
# ---------------------------------------------------------------------------

class TestWriteRead:
    def test_round_trip(self, tmp_path):
        registry = _sample()
        path = write_registry(registry, str(tmp_path / "out"))
        assert os.path.basename(path) == "a_b.registry.json"
        assert read_registry(path) == registry

    def test_json_layout(self, tmp_path):
        path = write_registry(_sample(), str(tmp_path))
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        assert set(data) == {"route", "components", "actions", "scanned_at", "version"}
        assert data["version"] == SCHEMA_VERSION
        assert data["components"][0]["props"] == {"title": "string", "count": "number"}
        assert data["actions"][0]["parameters"] == [{"name": "name", "type": "string"}]
        assert data["actions"][0]["kind"] == "mutation"

    def test_overwrite_leaves_no_temp_files(self, tmp_path):
        write_registry(_sample(), str(tmp_path))
        write_registry(_sample(), str(tmp_path))
        assert os.listdir(tmp_path) == ["a_b.registry.json"]

    def test_missing(self, tmp_path):
        with pytest.raises(NotFoundError):
            load_registry(str(tmp_path), "nope")

    def test_malformed_json(self, tmp_path):
        (tmp_path / "x.registry.json").write_text("{not json")
        with pytest.raises(ParseError):
            load_registry(str(tmp_path), "x")

    def test_schema_violation(self, tmp_path):
        (tmp_path / "x.registry.json").write_text(json.dumps({"components": []}))
        with pytest.raises(ParseError):
            load_registry(str(tmp_path), "x")

    def test_unknown_action_kind(self, tmp_path):
        data = _sample("x").to_dict()
        data["actions"][0]["kind"] = "teleport"
        (tmp_path / "x.registry.json").write_text(json.dumps(data))
        with pytest.raises(ParseError, match="teleport"):
            load_registry(str(tmp_path), "x")

    def test_unknown_prop_type_degrades(self, tmp_path):
        data = _sample("x").to_dict()
        data["components"][0]["props"]["title"] = "date"
        (tmp_path / "x.registry.json").write_text(json.dumps(data))
        registry = load_registry(str(tmp_path), "x")
        assert registry.components[0].props["title"] is PropType.UNKNOWN


class TestIterArtifacts:
    def test_sorted_and_filtered(self, tmp_path):
        for route in ("b", "a", ""):
            write_registry(_sample(route), str(tmp_path))
        (tmp_path / "notes.txt").write_text("x")
        names = [os.path.basename(p) for p in iter_artifacts(str(tmp_path))]
        assert names == ["_root.registry.json", "a.registry.json", "b.registry.json"]

    def test_missing_dir(self, tmp_path):
        with pytest.raises(NotFoundError):
            list(iter_artifacts(str(tmp_path / "missing")))


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

class TestRegistryLoader:
    def test_load_adds_to_store(self, tmp_path):
        write_registry(_sample(), str(tmp_path))
        store = RegistryVectorStore(HashingVectorizer(32))
        result = RegistryLoader(str(tmp_path), store).load("a/b")
        assert result.state is LoadState.LOADED
        assert result.ok
        assert result.registry.route == "a/b"
        assert store.routes() == ["a/b"]
        assert len(store) == 2

    def test_missing_is_error_state(self, tmp_path):
        result = RegistryLoader(str(tmp_path)).load("nope")
        assert result.state is LoadState.ERROR
        assert isinstance(result.error, NotFoundError)
        assert result.registry is None

    def test_malformed_is_error_state(self, tmp_path):
        (tmp_path / "x.registry.json").write_text("[]")
        result = RegistryLoader(str(tmp_path)).load("x")
        assert result.state is LoadState.ERROR
        assert isinstance(result.error, ParseError)

    def test_route_mismatch(self, tmp_path):
        write_registry(_sample("a/b"), str(tmp_path))
        os.rename(tmp_path / "a_b.registry.json", tmp_path / "c.registry.json")
        result = RegistryLoader(str(tmp_path)).load("c")
        assert result.state is LoadState.ERROR

    def test_preload(self, tmp_path):
        write_registry(_sample("a"), str(tmp_path))
        store = RegistryVectorStore(HashingVectorizer(32))
        results = RegistryLoader(str(tmp_path), store).preload(["a", "missing"])
        assert [r.state for r in results] == [LoadState.LOADED, LoadState.ERROR]
        assert store.routes() == ["a"]

    def test_dimension_mismatch_is_raised(self, tmp_path):
        write_registry(_sample(), str(tmp_path))
        store = RegistryVectorStore(_ShortVectorizer(16))
        with pytest.raises(UsageError):
            RegistryLoader(str(tmp_path), store).load("a/b")
        assert store.routes() == []
