"""
Registry artifacts: one versioned JSON file per route.

File name: the route id with runs of ``/`` or ``\\`` replaced by ``_``
plus ``.registry.json``.  The root route becomes ``_root``; app-router
folders starting with ``_`` are private and never form a route, so the
name is unambiguous.  Writes go to a temporary file in the same directory
which is fsynced and then renamed over the target, so readers only ever
see complete artifacts.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Iterator, Optional

from .errors import NotFoundError, ParseError, RegistryError, RegistryIOError, UsageError
from .models import RouteRegistry

if TYPE_CHECKING:
    from .store import RegistryVectorStore

logger = logging.getLogger(__name__)

ARTIFACT_SUFFIX = ".registry.json"
ROOT_STEM = "_root"
_SEPARATORS_RE = re.compile(r"[\\/]+")


def artifact_name(route: str) -> str:
    """``"a/b"`` → ``"a_b.registry.json"``; the root route maps to ``_root``."""
    stem = _SEPARATORS_RE.sub("_", route.strip("/\\")) or ROOT_STEM
    return stem + ARTIFACT_SUFFIX


def artifact_path(registry_dir: str, route: str) -> str:
    return os.path.join(registry_dir, artifact_name(route))


def write_registry(registry: RouteRegistry, registry_dir: str) -> str:
    """
    Atomically persist *registry* under *registry_dir*.

    Returns
    -------
    str
        Path of the written artifact.

    Raises
    ------
    RegistryIOError
        If the directory cannot be created or the file cannot be written.
    """
    path = artifact_path(registry_dir, registry.route)
    try:
        os.makedirs(registry_dir, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=registry_dir, prefix=".", suffix=".tmp")
    except OSError as exc:
        raise RegistryIOError(f"Cannot write to registry directory {registry_dir}: {exc}") from exc

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(registry.to_dict(), f, indent=2)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except OSError as exc:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise RegistryIOError(f"Cannot write artifact {path}: {exc}") from exc
    logger.debug("Wrote registry artifact %s", path)
    return path


def read_registry(path: str) -> RouteRegistry:
    """
    Load a registry artifact from *path*.

    Raises
    ------
    NotFoundError
        The file does not exist.
    ParseError
        The file is not valid JSON or does not follow the artifact schema.
    RegistryIOError
        The file exists but cannot be read.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as exc:
        raise NotFoundError(f"No registry artifact at {path}") from exc
    except json.JSONDecodeError as exc:
        raise ParseError(f"Malformed JSON in {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ParseError(f"Artifact {path} is not UTF-8: {exc}") from exc
    except OSError as exc:
        raise RegistryIOError(f"Cannot read artifact {path}: {exc}") from exc
    return RouteRegistry.from_dict(data)


def load_registry(registry_dir: str, route: str) -> RouteRegistry:
    """Load the artifact for *route* from *registry_dir*."""
    return read_registry(artifact_path(registry_dir, route))


def iter_artifacts(registry_dir: str) -> Iterator[str]:
    """
    Yield artifact paths in *registry_dir*, sorted by file name.

    Raises
    ------
    NotFoundError
        If *registry_dir* is not a directory.
    """
    if not os.path.isdir(registry_dir):
        raise NotFoundError(f"Registry directory not found: {registry_dir}")
    try:
        names = sorted(os.listdir(registry_dir))
    except OSError as exc:
        raise RegistryIOError(f"Cannot list registry directory {registry_dir}: {exc}") from exc
    for name in names:
        if name.endswith(ARTIFACT_SUFFIX) and not name.startswith("."):
            yield os.path.join(registry_dir, name)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

class LoadState(str, Enum):
    LOADED = "loaded"
    ERROR = "error"


@dataclass(frozen=True)
class LoadResult:
    """Outcome of loading one route's artifact."""

    route: str
    state: LoadState
    registry: Optional[RouteRegistry] = None
    error: Optional[RegistryError] = None

    @property
    def ok(self) -> bool:
        return self.state is LoadState.LOADED


class RegistryLoader:
    """
    Loads route artifacts on demand and feeds them to a vector store.

    Missing, unreadable or malformed artifacts and embedding failures do
    not propagate: the call returns a :class:`LoadResult` whose ``state``
    says whether the registry is available.  A :class:`UsageError` from the
    store (e.g. a dimensionality mismatch) is raised.

    Parameters
    ----------
    registry_dir:
        Directory holding the ``*.registry.json`` artifacts.
    store:
        Optional store that successfully loaded registries are added to.
    """

    def __init__(self, registry_dir: str, store: Optional["RegistryVectorStore"] = None) -> None:
        self.registry_dir = registry_dir
        self.store = store

    def load(self, route: str) -> LoadResult:
        route = route.replace("\\", "/").strip("/")
        try:
            registry = load_registry(self.registry_dir, route)
            if registry.route != route:
                raise ParseError(
                    f"artifact {artifact_name(route)} holds route {registry.route!r}, expected {route!r}"
                )
            if self.store is not None:
                self.store.add_registry(registry)
        except UsageError:
            raise
        except RegistryError as exc:
            logger.warning("Could not load registry for route %r: %s", route or "/", exc)
            return LoadResult(route, LoadState.ERROR, error=exc)
        return LoadResult(route, LoadState.LOADED, registry=registry)

    def preload(self, routes: Iterable[str]) -> list[LoadResult]:
        """Load several routes; one result per route, in order."""
        return [self.load(route) for route in routes]
