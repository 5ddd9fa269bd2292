"""
Tree-sitter front end for route entry files.

Supports: TypeScript, TSX, JavaScript (with JSX).

Uses tree-sitter >= 0.23 API with individual language packages.  Syntax
trees are walked directly (no query files) so the scanner only depends on
node types and field names that are stable across grammar releases.
"""

from __future__ import annotations

import hashlib
import logging
import os
import threading
from dataclasses import dataclass
from typing import Iterator, Optional

import tree_sitter as ts

from .errors import NotFoundError, ParseError, RegistryIOError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Language mapping
# ---------------------------------------------------------------------------

EXTENSION_TO_LANGUAGE: dict[str, str] = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascript",
}

# Extensions tried, in order, when resolving an extension-less import.
MODULE_EXTENSIONS: tuple[str, ...] = (".ts", ".tsx", ".js", ".jsx", ".mjs")


def detect_language(file_path: str) -> Optional[str]:
    """
    Return the tree-sitter language name for *file_path*, or None if unsupported.

    Parameters
    ----------
    file_path:
        Any file path; only the extension is examined.
    """
    ext = os.path.splitext(file_path)[1].lower()
    return EXTENSION_TO_LANGUAGE.get(ext)


# ---------------------------------------------------------------------------
# Language → tree-sitter objects
# ---------------------------------------------------------------------------

def _get_lang_func(language: str):
    """Return the tree-sitter language() function for *language*, or None."""
    if language == "typescript":
        import tree_sitter_typescript as m
        return m.language_typescript
    elif language == "tsx":
        import tree_sitter_typescript as m
        return m.language_tsx
    elif language == "javascript":
        import tree_sitter_javascript as m
        return m.language
    return None


# Language objects are immutable and shared; parsers are not thread-safe and
# are cached per thread.
_LANG_CACHE: dict[str, ts.Language] = {}
_LANG_LOCK = threading.Lock()
_PARSERS = threading.local()


def _get_ts_language(language: str) -> ts.Language:
    with _LANG_LOCK:
        if language not in _LANG_CACHE:
            func = _get_lang_func(language)
            if func is None:
                raise ParseError(f"No tree-sitter grammar for language: {language}")
            _LANG_CACHE[language] = ts.Language(func())
        return _LANG_CACHE[language]


def _get_ts_parser(language: str) -> ts.Parser:
    cache: Optional[dict] = getattr(_PARSERS, "cache", None)
    if cache is None:
        cache = _PARSERS.cache = {}
    if language not in cache:
        cache[language] = ts.Parser(_get_ts_language(language))
    return cache[language]


# ---------------------------------------------------------------------------
# Parsed source
# ---------------------------------------------------------------------------

@dataclass
class ParsedSource:
    """A successfully parsed source file."""
    path: str
    language: str
    hash: str
    root: "ts.Node"


@dataclass(frozen=True)
class ImportBinding:
    """
    A local name bound by an import statement.

    ``kind`` is ``"default"``, ``"named"`` or ``"namespace"``; ``imported``
    is the exported name (``"default"`` / ``"*"`` for the first two).
    """
    local: str
    imported: str
    source: str
    kind: str


# ---------------------------------------------------------------------------
# Node helpers
# ---------------------------------------------------------------------------

def node_text(node) -> str:
    """Decode a tree-sitter Node's text as UTF-8."""
    if node is None or not node.text:
        return ""
    return node.text.decode("utf-8", errors="replace")


def named_children(node) -> list:
    """Named children of *node*, comments excluded."""
    if node is None:
        return []
    return [c for c in node.named_children if c.type != "comment"]


def walk(node) -> Iterator:
    """Yield *node* and all its descendants in source (pre-)order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def location(node) -> str:
    """1-based ``line:col`` of *node*'s start."""
    row, col = node.start_point
    return f"{row + 1}:{col + 1}"


def string_value(node) -> Optional[str]:
    """
    Return the literal value of a string node, or of a template string
    without substitutions.  Returns None for anything else.
    """
    if node is None:
        return None
    if node.type == "string":
        return node_text(node)[1:-1]
    if node.type == "template_string":
        if any(c.type == "template_substitution" for c in node.children):
            return None
        return node_text(node)[1:-1]
    return None


# Error nodes inside these JSX parts make the element itself unreadable.
_JSX_STRUCTURE = frozenset({
    "jsx_opening_element",
    "jsx_closing_element",
    "jsx_self_closing_element",
    "jsx_attribute",
    "jsx_expression",
})


def _syntax_errors(root) -> Iterator:
    """Yield the outermost ERROR and MISSING nodes of *root*."""
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            yield node
            continue
        if node.has_error:
            stack.extend(reversed(node.children))


def _in_jsx_text(node) -> bool:
    """True if the error *node* sits among the children of a JSX element."""
    if node.is_missing:
        return False
    parent = node.parent
    while parent is not None:
        if parent.type == "jsx_element":
            return True
        if parent.type in _JSX_STRUCTURE or parent.type == "program":
            return False
        parent = parent.parent
    return False


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_code(source_bytes: bytes, language: str, file_path: str = "") -> ParsedSource:
    """
    Parse raw code bytes with the grammar for *language*.

    Raises
    ------
    ParseError
        If no grammar is available or the syntax tree contains errors.
        Errors confined to JSX child text (e.g. a bare ``&``, which
        Babel accepts) are logged and parsing continues on the
        recovered tree.
    """
    parser = _get_ts_parser(language)
    try:
        tree = parser.parse(source_bytes)
    except Exception as exc:
        raise ParseError(f"Parse error in {file_path or '<source>'}: {exc}") from exc

    root = tree.root_node
    if root.has_error:
        for node in _syntax_errors(root):
            if not _in_jsx_text(node):
                raise ParseError(
                    f"Syntax error in {file_path or '<source>'} at {location(node)}"
                )
            logger.debug(
                "[parser] %s:%s: ignoring malformed JSX text %r",
                file_path or "<source>", location(node), node_text(node),
            )

    return ParsedSource(
        path=file_path,
        language=language,
        hash=hashlib.sha256(source_bytes).hexdigest(),
        root=root,
    )


def parse_file(file_path: str) -> ParsedSource:
    """
    Read and parse a single source file.

    Raises
    ------
    NotFoundError
        If the file does not exist.
    RegistryIOError
        If the file cannot be read.
    ParseError
        If the extension is unsupported or the file is not syntactically valid.
    """
    language = detect_language(file_path)
    if language is None:
        raise ParseError(f"Unsupported file extension: {file_path}")
    try:
        with open(file_path, "rb") as fh:
            source_bytes = fh.read()
    except FileNotFoundError as exc:
        raise NotFoundError(f"No such file: {file_path}") from exc
    except OSError as exc:
        raise RegistryIOError(f"Cannot read file {file_path}: {exc}") from exc
    return parse_code(source_bytes, language, file_path)


# ---------------------------------------------------------------------------
# Imports
# ---------------------------------------------------------------------------

def _is_type_only(node) -> bool:
    return any(c.type == "type" for c in node.children)


def extract_imports(root) -> dict[str, ImportBinding]:
    """
    Return value imports of a module keyed by local name, in source order.

    Type-only imports (``import type {...}``) bind no runtime value and are
    left out.
    """
    bindings: dict[str, ImportBinding] = {}
    for stmt in named_children(root):
        if stmt.type != "import_statement" or _is_type_only(stmt):
            continue
        source = string_value(stmt.child_by_field_name("source")) or ""
        for clause in named_children(stmt):
            if clause.type != "import_clause":
                continue
            for part in named_children(clause):
                if part.type == "identifier":
                    local = node_text(part)
                    bindings[local] = ImportBinding(local, "default", source, "default")
                elif part.type == "namespace_import":
                    ids = [c for c in named_children(part) if c.type == "identifier"]
                    if ids:
                        local = node_text(ids[0])
                        bindings[local] = ImportBinding(local, "*", source, "namespace")
                elif part.type == "named_imports":
                    for spec in named_children(part):
                        if spec.type != "import_specifier" or _is_type_only(spec):
                            continue
                        name_node = spec.child_by_field_name("name")
                        alias_node = spec.child_by_field_name("alias")
                        imported = string_value(name_node) or node_text(name_node)
                        local = node_text(alias_node) if alias_node else imported
                        bindings[local] = ImportBinding(local, imported, source, "named")
    return bindings
