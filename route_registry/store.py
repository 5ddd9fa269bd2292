"""
In-memory vector store for route registries.

Two indexes are kept:

* the component-level index, one entry per component or action summary
  (owner id ``<route>#<n>``)
* the route-level index, one aggregate entry per route (owner id
  ``<route>``), embedded from the route id followed by every summary

Searches are an exact linear scan of cosine similarity using numpy.
Writers build a new immutable snapshot and swap it in under a lock; readers
grab the current snapshot and compute without locking, so a search never
sees a half-replaced route.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np

from .errors import UsageError
from .models import RouteRegistry, SearchResult, VectorEntry
from .vectorizer import Vectorizer, l2_normalize

logger = logging.getLogger(__name__)

Query = Union[str, Sequence[float], np.ndarray]

# Scores equal to this many decimals are treated as ties and ordered by
# insertion.
_TIE_DECIMALS = 12


def route_document(registry: RouteRegistry) -> str:
    """Text embedded for the route-level entry of *registry*."""
    parts = [f"Route: {registry.route or '/'}"]
    parts.extend(item.summary or item.name for item in registry.components)
    parts.extend(item.summary or item.name for item in registry.actions)
    return "\n\n".join(parts)


@dataclass(frozen=True)
class _Index:
    entries: tuple[VectorEntry, ...] = ()
    matrix: Optional[np.ndarray] = None

    @classmethod
    def of(cls, entries: Sequence[VectorEntry]) -> "_Index":
        entries = tuple(entries)
        if not entries:
            return cls()
        matrix = np.stack([e.vector for e in entries])
        matrix.setflags(write=False)
        return cls(entries, matrix)


@dataclass(frozen=True)
class _Snapshot:
    components: _Index = _Index()
    routes: _Index = _Index()


class RegistryVectorStore:
    """Embeds registries and answers top-K similarity queries.

    Parameters
    ----------
    vectorizer:
        Embedder used for registry summaries and text queries.  Its
        dimensionality becomes the store's.
    """

    def __init__(self, vectorizer: Vectorizer) -> None:
        self._vectorizer = vectorizer
        self._dimensions = int(vectorizer.dimensions)
        self._lock = threading.Lock()
        self._snapshot = _Snapshot()
        self._next_seq = 0

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_id(self) -> str:
        return self._vectorizer.model_id

    @property
    def vectorizer(self) -> Vectorizer:
        return self._vectorizer

    def __len__(self) -> int:
        """Number of component-level entries."""
        return len(self._snapshot.components.entries)

    def routes(self) -> list[str]:
        """Indexed route ids, in insertion order."""
        return [e.route for e in self._snapshot.routes.entries]

    def entries_for_route(self, route: str) -> list[VectorEntry]:
        """Component-level entries for *route* followed by its route-level entry."""
        snap = self._snapshot
        return [
            e for e in snap.components.entries + snap.routes.entries if e.route == route
        ]

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def _check_vector(self, vec, what: str) -> np.ndarray:
        arr = np.asarray(vec, dtype=np.float64)
        if arr.ndim != 1 or arr.shape[0] != self._dimensions:
            raise UsageError(
                f"{what} has dimensionality {arr.shape[-1] if arr.ndim else 0}, "
                f"store expects {self._dimensions} ({self.model_id})"
            )
        return l2_normalize(arr)

    def add_registry(self, registry: RouteRegistry) -> int:
        """
        Embed *registry* and replace any entries previously held for its route.

        Returns
        -------
        int
            Number of component-level entries added.

        Raises
        ------
        EmbeddingError
            From the vectorizer; the store is left unchanged.
        UsageError
            If the vectorizer returns vectors of the wrong length.
        """
        items = list(registry.components) + list(registry.actions)
        kinds = ["component"] * len(registry.components) + ["action"] * len(registry.actions)
        texts = [item.summary or item.name for item in items]
        texts.append(route_document(registry))

        raw = self._vectorizer.embed_batch(texts)
        if len(raw) != len(texts):
            raise UsageError(
                f"vectorizer returned {len(raw)} vectors for {len(texts)} texts"
            )
        vectors = [self._check_vector(v, "vectorizer output") for v in raw]

        route = registry.route
        with self._lock:
            seq = self._next_seq
            new_items = []
            for n, (item, kind, vec) in enumerate(zip(items, kinds, vectors)):
                new_items.append(VectorEntry(
                    owner_id=f"{route}#{n}",
                    route=route,
                    vector=vec,
                    source_ref=item,
                    kind=kind,
                    seq=seq,
                ))
                seq += 1
            route_entry = VectorEntry(
                owner_id=route,
                route=route,
                vector=vectors[-1],
                source_ref=None,
                kind="route",
                seq=seq,
            )
            self._next_seq = seq + 1

            snap = self._snapshot
            components = [e for e in snap.components.entries if e.route != route]
            routes = [e for e in snap.routes.entries if e.route != route]
            replaced = len(routes) != len(snap.routes.entries)
            self._snapshot = _Snapshot(
                components=_Index.of(components + new_items),
                routes=_Index.of(routes + [route_entry]),
            )

        logger.debug(
            "[RegistryVectorStore] %s route %r: %d entries",
            "Replaced" if replaced else "Added", route, len(new_items),
        )
        return len(new_items)

    def remove_route(self, route: str) -> bool:
        """Drop every entry for *route*.  Returns False if it was not indexed."""
        with self._lock:
            snap = self._snapshot
            routes = [e for e in snap.routes.entries if e.route != route]
            if len(routes) == len(snap.routes.entries):
                return False
            components = [e for e in snap.components.entries if e.route != route]
            self._snapshot = _Snapshot(_Index.of(components), _Index.of(routes))
        logger.debug("[RegistryVectorStore] Removed route %r", route)
        return True

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def _query_vector(self, query: Query) -> np.ndarray:
        if isinstance(query, str):
            return self._check_vector(self._vectorizer.embed(query), "query embedding")
        return self._check_vector(query, "query vector")

    def _search(self, index: _Index, query: Query, top_k: int) -> list[SearchResult]:
        if top_k < 0:
            raise UsageError(f"top_k must be >= 0, got {top_k}")
        q = None if isinstance(query, str) else self._query_vector(query)
        if top_k == 0 or not index.entries:
            return []
        if q is None:
            q = self._query_vector(query)

        scores = np.clip(index.matrix @ q, -1.0, 1.0)
        rounded = np.round(scores, _TIE_DECIMALS)
        order = sorted(
            range(len(index.entries)),
            key=lambda i: (-rounded[i], index.entries[i].seq),
        )
        results = []
        for i in order[:top_k]:
            entry = index.entries[i]
            results.append(SearchResult(
                route=entry.route,
                owner_id=entry.owner_id,
                kind=entry.kind,
                name=entry.name,
                score=float(scores[i]),
                item=entry.source_ref,
            ))
        return results

    def find_similar_components(self, query: Query, top_k: int = 5) -> list[SearchResult]:
        """
        Rank component and action entries by cosine similarity to *query*.

        Parameters
        ----------
        query:
            Natural-language text (embedded with the store's vectorizer) or
            a precomputed vector of the store's dimensionality.
        top_k:
            Maximum number of results; larger values return everything.

        Raises
        ------
        UsageError
            For a negative *top_k* or a vector of the wrong length.
        """
        return self._search(self._snapshot.components, query, top_k)

    def find_similar_routes(self, query: Query, top_k: int = 5) -> list[SearchResult]:
        """Rank routes by cosine similarity to *query*; see :meth:`find_similar_components`."""
        return self._search(self._snapshot.routes, query, top_k)
