"""
Route discovery: enumerates route ids of a file-system routed app.

A route id is the path of a directory holding an entry file (``page.tsx``
by default), relative to the app directory, using ``/`` separators.  The
app directory's own page is the route ``""``.  Private folders (leading
``_``) never form routes.

Only page entry files are looked for by default.  Route handlers
(``route.ts``, whose ``GET`` / ``POST`` exports become handler actions) are
discovered when their file names are added to *entry_files*.
"""

from __future__ import annotations

import logging
import os
from typing import Iterable, Iterator

from .errors import RegistryIOError

logger = logging.getLogger(__name__)

DEFAULT_ENTRY_FILES: tuple[str, ...] = ("page.tsx", "page.ts", "page.jsx", "page.js")

_SKIP_DIRS: frozenset[str] = frozenset({
    "node_modules", "dist", "build", "__pycache__",
    "coverage", "out", ".next", ".turbo", ".vercel",
})


class RouteDiscovery:
    """
    Lazy, restartable depth-first sequence of route ids.

    Every call to ``iter()`` starts a fresh traversal, so callers can stop
    early (``itertools.islice``) and iterate again later.

    Raises
    ------
    RegistryIOError
        At construction, if *root_dir* is absent or not a readable directory.
    """

    def __init__(self, root_dir: str, entry_files: Iterable[str] = DEFAULT_ENTRY_FILES) -> None:
        self.root_dir = os.path.abspath(root_dir)
        self.entry_files = tuple(entry_files)
        if not os.path.isdir(self.root_dir):
            raise RegistryIOError(f"Route root is not a directory: {root_dir}")
        if not os.access(self.root_dir, os.R_OK | os.X_OK):
            raise RegistryIOError(f"Route root is not readable: {root_dir}")

    def __iter__(self) -> Iterator[str]:
        return self._walk(self.root_dir, "")

    def _walk(self, abs_dir: str, rel_dir: str) -> Iterator[str]:
        try:
            with os.scandir(abs_dir) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as exc:
            if not rel_dir:
                raise RegistryIOError(f"Cannot read route root {abs_dir}: {exc}") from exc
            logger.warning("Skipping unreadable directory %s: %s", abs_dir, exc)
            return

        names = {e.name for e in entries if e.is_file()}
        if any(entry in names for entry in self.entry_files):
            yield rel_dir

        for entry in entries:
            if not entry.is_dir(follow_symlinks=False):
                continue
            if entry.name in _SKIP_DIRS or entry.name.startswith((".", "_")):
                continue
            child_rel = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
            yield from self._walk(entry.path, child_rel)


def discover_routes(root_dir: str, entry_files: Iterable[str] = DEFAULT_ENTRY_FILES) -> RouteDiscovery:
    """
    Return the route ids under *root_dir* as a lazy, restartable iterable.

    Parameters
    ----------
    root_dir:
        The app directory (e.g. ``src/app``).
    entry_files:
        File names that mark a directory as a route.
    """
    return RouteDiscovery(root_dir, entry_files)
