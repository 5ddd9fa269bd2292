"""
`route-registry` command line interface.

Commands
--------
route-registry scan                          -- scan every route, write artifacts
route-registry scan --app-dir src/app        -- scan a specific app directory
route-registry search "<query>"              -- find similar components / actions
route-registry search "<query>" --routes     -- find similar routes
route-registry search "<query>" --top-k 10 --json
route-registry show <route>                  -- print a route's registry artifact
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Optional

from tqdm import tqdm

from .artifacts import load_registry
from .config import Config
from .errors import NotFoundError, RegistryError
from .models import ActionDescriptor, UIComponent

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _fail(message: str) -> None:
    print(message, file=sys.stderr)
    sys.exit(1)


def _load_config(args: argparse.Namespace) -> Config:
    try:
        return Config.load(args.config)
    except (TypeError, ValueError) as exc:
        _fail(f"Invalid configuration: {exc}")


def _resolve(project_root: str, path: str) -> str:
    return path if os.path.isabs(path) else os.path.join(project_root, path)


def _registry_dir(args: argparse.Namespace, cfg: Config) -> str:
    return _resolve(args.project_root, args.registry_dir or cfg.REGISTRY_DIR)


def _describe_item(item) -> str:
    if isinstance(item, UIComponent):
        props = ", ".join(f"{k}: {v.value}" for k, v in item.props.items())
        return f"<{item.name}> ({props})" if props else f"<{item.name}>"
    if isinstance(item, ActionDescriptor):
        params = ", ".join(f"{p.name}: {p.type.value}" for p in item.parameters)
        return f"{item.kind.value} {item.name}({params})"
    return ""


# ---------------------------------------------------------------------------
# Sub-command handlers
# ---------------------------------------------------------------------------

def _cmd_scan(args: argparse.Namespace, cfg: Config) -> None:
    """Scan all routes of the project and write their artifacts."""
    from .orchestrator import scan_project

    app_dir = _resolve(args.project_root, args.app_dir or cfg.APP_DIR)
    registry_dir = _registry_dir(args, cfg)
    if not os.path.isdir(app_dir):
        _fail(f"App directory not found: {app_dir}")

    print(f"Scanning routes in: {app_dir}", file=sys.stderr)
    pbar = None
    progress = None
    if not args.no_progress:
        pbar = tqdm(total=None, unit="route", desc="Scanning", file=sys.stderr)

        def progress(current: int, total: int, route: str) -> None:
            if pbar.total != total:
                pbar.total = total
                pbar.refresh()
            pbar.set_postfix_str(route or "/", refresh=False)
            pbar.update(1)

    try:
        summary = scan_project(
            app_dir,
            registry_dir,
            entry_files=cfg.ENTRY_FILES,
            path_aliases=cfg.resolve_aliases(args.project_root),
            workers=args.workers or cfg.SCAN_WORKERS,
            progress_callback=progress,
        )
    except RegistryError as exc:
        _fail(f"Scan failed: {exc}")
    finally:
        if pbar is not None:
            pbar.close()

    if args.json:
        print(json.dumps(summary.to_dict(), indent=2))
        return

    print(
        f"\nScan complete:\n"
        f"  Routes:     {summary.scanned}/{summary.route_count}\n"
        f"  Components: {summary.component_count}\n"
        f"  Actions:    {summary.action_count}\n"
        f"  Failed:     {summary.failed}\n"
        f"  Time:       {summary.elapsed_seconds:.1f}s\n"
        f"  Artifacts:  {registry_dir}"
    )
    for outcome in summary.outcomes:
        if not outcome.ok:
            print(f"  ! {outcome.route or '/'}: {outcome.error}")


def _cmd_search(args: argparse.Namespace, cfg: Config) -> None:
    """Similarity search over the scanned registries."""
    from .orchestrator import build_store
    from .vectorizer import create_vectorizer

    if args.provider:
        cfg.EMBEDDING_PROVIDER = args.provider
    top_k = cfg.TOP_K if args.top_k is None else args.top_k
    registry_dir = _registry_dir(args, cfg)

    try:
        vectorizer = create_vectorizer(cfg)
        store = build_store(registry_dir, vectorizer)
        if args.routes:
            results = store.find_similar_routes(args.query, top_k)
        else:
            results = store.find_similar_components(args.query, top_k)
    except NotFoundError:
        _fail(f"No registry found at {registry_dir}. Run `route-registry scan` first.")
    except RegistryError as exc:
        _fail(f"Search failed: {exc}")

    if args.json:
        print(json.dumps([r.to_dict() for r in results], indent=2))
        return

    if not results:
        print(f"No results found for: {args.query!r}")
        return

    print(f"\nSearch results for: {args.query!r}  [{len(results)} result(s)]")
    print("-" * 70)
    for i, r in enumerate(results, 1):
        print(f"\n  [{i}] {r.kind}: {r.name}")
        print(f"       Route  : /{r.route}")
        print(f"       Score  : {r.score:.4f}")
        detail = _describe_item(r.item)
        if detail:
            print(f"       Detail : {detail}")


def _cmd_show(args: argparse.Namespace, cfg: Config) -> None:
    """Print the stored registry for one route."""
    registry_dir = _registry_dir(args, cfg)
    route = args.route.strip("/")
    try:
        registry = load_registry(registry_dir, route)
    except NotFoundError:
        _fail(f"No registry artifact for route {args.route!r} in {registry_dir}")
    except RegistryError as exc:
        _fail(f"Cannot read registry for route {args.route!r}: {exc}")

    if args.json:
        print(json.dumps(registry.to_dict(), indent=2))
        return

    print(f"Route: /{registry.route}  (scanned {registry.scanned_at.isoformat()}, v{registry.version})")
    print(f"\nComponents [{len(registry.components)}]")
    for comp in registry.components:
        print(f"  {_describe_item(comp):<50}  {comp.source_location}")
    print(f"\nActions [{len(registry.actions)}]")
    for action in registry.actions:
        print(f"  {_describe_item(action):<50}  ({action.source})")


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    """Build and return the `route-registry` argument parser."""
    parser = argparse.ArgumentParser(
        prog="route-registry",
        description="Static route registry scanner and similarity search",
    )
    parser.add_argument("--config", default=None, help="Path to a .route-registry.yaml file")
    parser.add_argument(
        "--project-root", default=os.getcwd(),
        help="Directory that relative paths are resolved against (default: CWD)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    # --- scan ---
    scan_p = subparsers.add_parser("scan", help="Scan all routes and write registry artifacts")
    scan_p.add_argument("--app-dir", default=None, help="Route tree root (default: src/app)")
    scan_p.add_argument("--registry-dir", default=None, help="Artifact output directory")
    scan_p.add_argument("--workers", type=int, default=None, help="Number of scan threads")
    scan_p.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    scan_p.add_argument("--json", action="store_true", help="Print the summary as JSON")
    scan_p.set_defaults(func=_cmd_scan)

    # --- search ---
    search_p = subparsers.add_parser("search", help="Find components, actions or routes by description")
    search_p.add_argument("query", help="Natural-language query")
    search_p.add_argument("--routes", action="store_true", help="Rank whole routes instead of components")
    search_p.add_argument("--top-k", type=int, default=None, help="Number of results (default: 5)")
    search_p.add_argument("--registry-dir", default=None, help="Artifact directory")
    search_p.add_argument(
        "--provider", choices=["hashing", "ngram", "openai"], default=None,
        help="Embedding provider (overrides config)",
    )
    search_p.add_argument("--json", action="store_true", help="Print results as JSON")
    search_p.set_defaults(func=_cmd_search)

    # --- show ---
    show_p = subparsers.add_parser("show", help="Print the registry for one route")
    show_p.add_argument("route", help="Route id, e.g. dashboard/settings")
    show_p.add_argument("--registry-dir", default=None, help="Artifact directory")
    show_p.add_argument("--json", action="store_true", help="Print the raw artifact")
    show_p.set_defaults(func=_cmd_show)

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: Optional[list[str]] = None) -> None:
    """
    Main entry point for the `route-registry` console script.

    Parameters
    ----------
    argv:
        Argument list without the program name.  Defaults to sys.argv.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    cfg = _load_config(args)

    level = logging.DEBUG if args.verbose else getattr(logging, cfg.LOG_LEVEL, logging.WARNING)
    if not logging.root.handlers:
        logging.basicConfig(
            level=level,
            format="%(levelname)s  %(name)s  %(message)s",
        )
    logging.getLogger("route_registry").setLevel(level)

    args.func(args, cfg)


if __name__ == "__main__":
    main()
