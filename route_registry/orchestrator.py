"""
Orchestrator: scans a whole project and builds stores from its artifacts.

Full scan:
  1. Enumerate routes under the app directory
  2. Scan each route's entry file (in a thread pool)
  3. Persist one artifact per route
  4. Log a per-route summary; failed routes are logged and counted

Store build:
  Loads every artifact of a registry directory into a fresh vector store.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from .artifacts import iter_artifacts, read_registry
from .discovery import DEFAULT_ENTRY_FILES, discover_routes
from .errors import RegistryError, UsageError
from .scanner import RegistryScanner
from .store import RegistryVectorStore
from .vectorizer import Vectorizer

logger = logging.getLogger(__name__)


@dataclass
class RouteOutcome:
    """Result of scanning one route."""
    route: str
    ok: bool
    component_count: int = 0
    action_count: int = 0
    artifact: str = ""
    error: str = ""


@dataclass
class ScanSummary:
    route_count: int = 0
    scanned: int = 0
    failed: int = 0
    component_count: int = 0
    action_count: int = 0
    elapsed_seconds: float = 0.0
    outcomes: list[RouteOutcome] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "route_count": self.route_count,
            "scanned": self.scanned,
            "failed": self.failed,
            "component_count": self.component_count,
            "action_count": self.action_count,
            "elapsed_seconds": self.elapsed_seconds,
            "failures": {o.route: o.error for o in self.outcomes if not o.ok},
        }


def _scan_one(scanner: RegistryScanner, route: str) -> RouteOutcome:
    try:
        registry = scanner.scan_route(route)
        artifact = scanner.save(registry)
    except RegistryError as exc:
        logger.warning("Skipping route %r: %s", route or "/", exc)
        return RouteOutcome(route, ok=False, error=str(exc))
    except Exception as exc:
        logger.warning("Unexpected error scanning route %r: %s", route or "/", exc)
        return RouteOutcome(route, ok=False, error=f"{type(exc).__name__}: {exc}")

    logger.info(
        "Route %s: %d components, %d actions",
        route or "/", len(registry.components), len(registry.actions),
    )
    return RouteOutcome(
        route,
        ok=True,
        component_count=len(registry.components),
        action_count=len(registry.actions),
        artifact=artifact,
    )


def scan_project(
    app_dir: str,
    registry_dir: str,
    entry_files: Iterable[str] = DEFAULT_ENTRY_FILES,
    path_aliases: Optional[dict[str, str]] = None,
    workers: int = 4,
    progress_callback: Optional[Callable[[int, int, str], None]] = None,
) -> ScanSummary:
    """
    Scan every route under *app_dir* and write its artifact to *registry_dir*.

    Parameters
    ----------
    app_dir:
        The app directory holding the route tree.
    registry_dir:
        Output directory for ``*.registry.json`` artifacts.
    workers:
        Size of the scan thread pool.
    progress_callback:
        Optional callable called with (completed, total, route) as routes
        finish.

    Returns
    -------
    ScanSummary
        Counts plus one :class:`RouteOutcome` per route in discovery order.

    Raises
    ------
    RegistryIOError
        If *app_dir* is missing or unreadable.
    """
    start_time = time.time()
    entry_files = tuple(entry_files)
    routes = list(discover_routes(app_dir, entry_files))
    scanner = RegistryScanner(
        app_dir,
        registry_dir=registry_dir,
        entry_files=entry_files,
        path_aliases=path_aliases,
    )

    outcomes: dict[str, RouteOutcome] = {}
    total = len(routes)
    if routes:
        with ThreadPoolExecutor(max_workers=max(1, min(workers, total))) as pool:
            futures = {pool.submit(_scan_one, scanner, route): route for route in routes}
            for done, future in enumerate(as_completed(futures), start=1):
                route = futures[future]
                outcomes[route] = future.result()
                if progress_callback:
                    progress_callback(done, total, route)

    ordered = [outcomes[r] for r in routes]
    summary = ScanSummary(
        route_count=total,
        scanned=sum(1 for o in ordered if o.ok),
        failed=sum(1 for o in ordered if not o.ok),
        component_count=sum(o.component_count for o in ordered),
        action_count=sum(o.action_count for o in ordered),
        elapsed_seconds=round(time.time() - start_time, 2),
        outcomes=ordered,
    )
    logger.info(
        "Scan complete: %d/%d routes, %d components, %d actions in %.1fs",
        summary.scanned, summary.route_count,
        summary.component_count, summary.action_count,
        summary.elapsed_seconds,
    )
    return summary


def build_store(registry_dir: str, vectorizer: Vectorizer) -> RegistryVectorStore:
    """
    Load every artifact in *registry_dir* into a new :class:`RegistryVectorStore`.

    Unreadable or malformed artifacts are logged and skipped.

    Raises
    ------
    NotFoundError
        If *registry_dir* does not exist.
    UsageError
        If *vectorizer* produces vectors the store cannot hold.
    """
    store = RegistryVectorStore(vectorizer)
    loaded = 0
    for path in iter_artifacts(registry_dir):
        try:
            store.add_registry(read_registry(path))
            loaded += 1
        except UsageError:
            raise
        except RegistryError as exc:
            logger.warning("Skipping artifact %s: %s", path, exc)
    logger.info("Loaded %d registries into the vector store (%s)", loaded, store.model_id)
    return store
