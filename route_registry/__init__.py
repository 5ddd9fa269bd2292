"""
route_registry: static route registry scanner and similarity search.

Public API for library usage::

    from route_registry import RegistryScanner, RegistryVectorStore, HashingVectorizer

    registry = RegistryScanner("src/app").scan_route("dashboard/settings")
    store = RegistryVectorStore(HashingVectorizer())
    store.add_registry(registry)
    store.find_similar_components("a form to change the password", top_k=3)
"""

from .artifacts import LoadResult, LoadState, RegistryLoader, load_registry, read_registry, write_registry
from .discovery import discover_routes
from .errors import (
    EmbeddingError,
    NotFoundError,
    ParseError,
    RegistryError,
    RegistryIOError,
    UsageError,
)
from .models import (
    ActionDescriptor,
    ActionKind,
    Parameter,
    PropType,
    RouteRegistry,
    SearchResult,
    UIComponent,
    VectorEntry,
)
from .orchestrator import ScanSummary, build_store, scan_project
from .scanner import RegistryScanner
from .store import RegistryVectorStore
from .vectorizer import HashingVectorizer, OpenAIVectorizer, Vectorizer, create_vectorizer

__all__ = [
    "ActionDescriptor", "ActionKind", "EmbeddingError", "HashingVectorizer",
    "LoadResult", "LoadState", "NotFoundError", "OpenAIVectorizer", "Parameter",
    "ParseError", "PropType", "RegistryError", "RegistryIOError", "RegistryLoader",
    "RegistryScanner", "RegistryVectorStore", "RouteRegistry", "ScanSummary",
    "SearchResult", "UIComponent", "UsageError", "VectorEntry", "Vectorizer",
    "build_store", "create_vectorizer", "discover_routes", "load_registry",
    "read_registry", "scan_project", "write_registry",
]
