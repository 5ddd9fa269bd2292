"""
Data model for route registries and their vector entries.

A :class:`RouteRegistry` is the extracted metadata for one route: the UI
components its entry file renders and the actions (handlers, queries,
mutations) it exposes.  Registries are serialised to JSON artifacts by
:mod:`route_registry.artifacts` and embedded by
:mod:`route_registry.store`.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

import numpy as np

from .errors import ParseError

SCHEMA_VERSION = "1.0.0"


# ---------------------------------------------------------------------------
# Tagged variants
# ---------------------------------------------------------------------------

class PropType(str, Enum):
    """Statically inferred type of a prop or parameter."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "PropType":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class ActionKind(str, Enum):
    QUERY = "query"
    MUTATION = "mutation"
    HANDLER = "handler"


# ---------------------------------------------------------------------------
# Registry items
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UIComponent:
    """A component rendered by a route's entry file."""

    name: str
    props: dict[str, PropType] = field(default_factory=dict)
    source_location: str = ""
    summary: str = ""
    import_source: str = ""
    occurrences: int = 1

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "props": {k: v.value for k, v in self.props.items()},
            "source_location": self.source_location,
            "summary": self.summary,
            "import_source": self.import_source,
            "occurrences": self.occurrences,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "UIComponent":
        props = data.get("props") or {}
        if not isinstance(props, dict):
            raise ParseError(f"component props must be an object, got {type(props).__name__}")
        return cls(
            name=str(data["name"]),
            props={str(k): PropType.parse(v) for k, v in props.items()},
            source_location=str(data.get("source_location", "")),
            summary=str(data.get("summary", "")),
            import_source=str(data.get("import_source", "")),
            occurrences=int(data.get("occurrences", 1)),
        )


@dataclass(frozen=True)
class Parameter:
    name: str
    type: PropType = PropType.UNKNOWN

    def to_dict(self) -> dict:
        return {"name": self.name, "type": self.type.value}


@dataclass(frozen=True)
class ActionDescriptor:
    """
    A server action, request handler or data operation exposed by a route.

    ``source`` records where the action was found: ``"export"`` for an
    exported function, ``"local"`` for an event handler defined or used by
    the page, ``"graphql"`` for an operation definition and ``"hook"`` for
    an operation hook whose document could not be resolved.
    """

    name: str
    kind: ActionKind
    parameters: tuple[Parameter, ...] = ()
    summary: str = ""
    source: str = "export"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "parameters": [p.to_dict() for p in self.parameters],
            "summary": self.summary,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ActionDescriptor":
        try:
            kind = ActionKind(data["kind"])
        except ValueError as exc:
            raise ParseError(f"unknown action kind: {data['kind']!r}") from exc
        params = tuple(
            Parameter(str(p["name"]), PropType.parse(p.get("type")))
            for p in data.get("parameters") or []
        )
        return cls(
            name=str(data["name"]),
            kind=kind,
            parameters=params,
            summary=str(data.get("summary", "")),
            source=str(data.get("source", "export")),
        )


@dataclass(frozen=True)
class RouteRegistry:
    """
    Extracted metadata for one route.

    Registries are immutable; a re-scan produces a new one that replaces the
    old artifact and the old vector entries wholesale.
    """

    route: str
    components: tuple[UIComponent, ...] = ()
    actions: tuple[ActionDescriptor, ...] = ()
    scanned_at: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )
    version: str = SCHEMA_VERSION

    def same_content(self, other: "RouteRegistry") -> bool:
        """Compare everything except the scan timestamp."""
        return (
            self.route == other.route
            and self.components == other.components
            and self.actions == other.actions
            and self.version == other.version
        )

    def to_dict(self) -> dict:
        return {
            "route": self.route,
            "components": [c.to_dict() for c in self.components],
            "actions": [a.to_dict() for a in self.actions],
            "scanned_at": self.scanned_at.isoformat(),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "RouteRegistry":
        """
        Rebuild a registry from its JSON form.

        Raises
        ------
        ParseError
            If *data* does not follow the artifact schema.
        """
        if not isinstance(data, dict):
            raise ParseError("registry artifact must be a JSON object")
        try:
            scanned_at = datetime.datetime.fromisoformat(
                str(data["scanned_at"]).replace("Z", "+00:00")
            )
            return cls(
                route=str(data["route"]),
                components=tuple(UIComponent.from_dict(c) for c in data.get("components") or []),
                actions=tuple(ActionDescriptor.from_dict(a) for a in data.get("actions") or []),
                scanned_at=scanned_at,
                version=str(data.get("version", SCHEMA_VERSION)),
            )
        except ParseError:
            raise
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ParseError(f"malformed registry artifact: {exc}") from exc


# ---------------------------------------------------------------------------
# Vector store records
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class VectorEntry:
    """One embedded item held by the vector store."""

    owner_id: str
    route: str
    vector: np.ndarray
    source_ref: Optional[Union[UIComponent, ActionDescriptor]]
    kind: str           # "component" | "action" | "route"
    seq: int = 0

    @property
    def name(self) -> str:
        if self.source_ref is None:
            return self.route
        return self.source_ref.name


@dataclass(frozen=True)
class SearchResult:
    """A ranked similarity hit."""

    route: str
    owner_id: str
    kind: str
    name: str
    score: float
    item: Optional[Union[UIComponent, ActionDescriptor]] = None

    def to_dict(self) -> dict:
        return {
            "route": self.route,
            "owner_id": self.owner_id,
            "kind": self.kind,
            "name": self.name,
            "score": round(self.score, 6),
        }
