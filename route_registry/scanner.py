"""
Registry scanner: static extraction of components and actions per route.

For one route the scanner:
  1. resolves the route to its entry file (``<base_dir>/<route>/page.tsx``)
  2. parses it via tree-sitter
  3. collects imported components rendered by JSX or ``createElement``
     calls, with prop types inferred from the call sites
  4. collects exported handlers / server actions, the page's own event
     handlers and GraphQL operations (declared locally, imported from
     project modules, or passed to operation hooks)

Unresolvable or dynamic references are skipped and logged; they never fail
the scan.  The scanner holds no mutable state, so one instance can scan
many routes concurrently.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .discovery import DEFAULT_ENTRY_FILES
from .errors import NotFoundError, RegistryError, RegistryIOError
from .models import ActionDescriptor, ActionKind, Parameter, PropType, RouteRegistry, UIComponent
from .parser import (
    EXTENSION_TO_LANGUAGE,
    MODULE_EXTENSIONS,
    ImportBinding,
    ParsedSource,
    extract_imports,
    location,
    named_children,
    node_text,
    parse_file,
    string_value,
    walk,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Naming conventions
# ---------------------------------------------------------------------------

HTTP_METHODS: frozenset[str] = frozenset({
    "GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS",
})

# Route-segment exports the framework reads itself; they are not actions.
_FRAMEWORK_EXPORTS: frozenset[str] = frozenset({
    "generateMetadata", "generateStaticParams", "generateViewport",
    "generateImageMetadata", "generateSitemaps",
})

_QUERY_PREFIXES: tuple[str, ...] = (
    "get", "fetch", "list", "load", "find", "search", "query", "read",
)

_OPERATION_HOOKS: dict[str, ActionKind] = {
    "useQuery": ActionKind.QUERY,
    "useLazyQuery": ActionKind.QUERY,
    "useSuspenseQuery": ActionKind.QUERY,
    "useSubscription": ActionKind.QUERY,
    "useMutation": ActionKind.MUTATION,
}

_GQL_TAGS: frozenset[str] = frozenset({"gql", "graphql"})

_ELEMENT_FACTORIES: frozenset[str] = frozenset({
    "createElement", "jsx", "jsxs", "_jsx", "_jsxs",
})

_FUNCTION_NODES: frozenset[str] = frozenset({
    "arrow_function", "function_expression", "function", "generator_function",
})

_DECLARATION_NODES: frozenset[str] = frozenset({
    "function_declaration", "generator_function_declaration",
    "lexical_declaration", "variable_declaration",
})

_PREDEFINED_TYPES: dict[str, PropType] = {
    "string": PropType.STRING,
    "number": PropType.NUMBER,
    "bigint": PropType.NUMBER,
    "boolean": PropType.BOOLEAN,
}

_GRAPHQL_TYPES: dict[str, PropType] = {
    "String": PropType.STRING,
    "ID": PropType.STRING,
    "Int": PropType.NUMBER,
    "Float": PropType.NUMBER,
    "Boolean": PropType.BOOLEAN,
}

_COMPARISON_OPS: frozenset[str] = frozenset({
    "==", "===", "!=", "!==", "<", "<=", ">", ">=", "instanceof", "in",
})

_OPERATION_RE = re.compile(r"\b(query|mutation|subscription)\b\s*([A-Za-z_]\w*)?\s*(?:\(([^)]*)\))?")
_VARIABLE_RE = re.compile(r"\$(\w+)\s*:\s*([\w\[\]!]+)")
_DOCUMENT_NAME_RE = re.compile(r"[A-Z][A-Z0-9_]*")

_MAX_TEXT_CHARS = 200


def action_kind_for(name: str) -> ActionKind:
    """Classify an exported function by its name."""
    if name in HTTP_METHODS:
        return ActionKind.HANDLER
    for prefix in ("handle", "on"):
        if _has_word_prefix(name, prefix):
            return ActionKind.HANDLER
    for prefix in _QUERY_PREFIXES:
        if _has_word_prefix(name, prefix):
            return ActionKind.QUERY
    return ActionKind.MUTATION


def _has_word_prefix(name: str, prefix: str) -> bool:
    if not name.lower().startswith(prefix):
        return False
    rest = name[len(prefix):]
    return not rest or rest[0].isupper() or rest[0] in "_$" or rest[0].isdigit()


def _is_event_prop(name: str) -> bool:
    return len(name) > 2 and name.startswith("on") and name[2].isupper()


def _is_action_name(name: str) -> bool:
    if name in HTTP_METHODS:
        return True
    if not name or name in _FRAMEWORK_EXPORTS:
        return False
    return not name[0].isupper()


# ---------------------------------------------------------------------------
# Static type inference
# ---------------------------------------------------------------------------

def type_from_annotation(node) -> PropType:
    """Map a TypeScript type node to a :class:`PropType`."""
    if node is None:
        return PropType.UNKNOWN
    kind = node.type
    if kind in ("type_annotation", "parenthesized_type"):
        inner = named_children(node)
        return type_from_annotation(inner[0]) if inner else PropType.UNKNOWN
    if kind == "predefined_type":
        return _PREDEFINED_TYPES.get(node_text(node), PropType.UNKNOWN)
    if kind == "literal_type":
        inner = named_children(node)
        if not inner:
            return PropType.UNKNOWN
        return infer_expression_type(inner[0], {})
    if kind == "template_literal_type":
        return PropType.STRING
    if kind == "union_type":
        tags = {type_from_annotation(c) for c in named_children(node)}
        return tags.pop() if len(tags) == 1 else PropType.UNKNOWN
    return PropType.UNKNOWN


def infer_expression_type(node, local_types: dict[str, PropType]) -> PropType:
    """
    Infer the type of an expression from its source text alone.

    *local_types* maps same-file variable names to types taken from their
    declarations.
    """
    if node is None:
        return PropType.UNKNOWN
    kind = node.type
    if kind in ("string", "template_string"):
        return PropType.STRING
    if kind == "number":
        return PropType.NUMBER
    if kind in ("true", "false"):
        return PropType.BOOLEAN
    if kind == "identifier":
        return local_types.get(node_text(node), PropType.UNKNOWN)
    if kind in ("parenthesized_expression", "non_null_expression"):
        inner = named_children(node)
        return infer_expression_type(inner[0], local_types) if inner else PropType.UNKNOWN
    if kind in ("as_expression", "satisfies_expression"):
        parts = named_children(node)
        if len(parts) >= 2:
            tag = type_from_annotation(parts[-1])
            if tag is not PropType.UNKNOWN:
                return tag
        return infer_expression_type(parts[0], local_types) if parts else PropType.UNKNOWN
    if kind == "unary_expression":
        op = node_text(node.child_by_field_name("operator"))
        if op == "!":
            return PropType.BOOLEAN
        if op in ("-", "+", "~"):
            return PropType.NUMBER
        if op == "typeof":
            return PropType.STRING
        return PropType.UNKNOWN
    if kind == "binary_expression":
        op = node_text(node.child_by_field_name("operator"))
        if op in _COMPARISON_OPS:
            return PropType.BOOLEAN
        if op in ("-", "*", "/", "%", "**"):
            return PropType.NUMBER
        if op == "+":
            left = infer_expression_type(node.child_by_field_name("left"), local_types)
            right = infer_expression_type(node.child_by_field_name("right"), local_types)
            if PropType.STRING in (left, right):
                return PropType.STRING
            if left is right is PropType.NUMBER:
                return PropType.NUMBER
    return PropType.UNKNOWN


def _collect_local_types(root) -> dict[str, PropType]:
    """Types of same-file variables, from annotations or literal initializers."""
    found: dict[str, PropType] = {}
    conflicting: set[str] = set()

    def _record(name: str, tag: PropType) -> None:
        if tag is PropType.UNKNOWN or name in conflicting:
            return
        if name in found and found[name] is not tag:
            conflicting.add(name)
            del found[name]
            return
        found[name] = tag

    for node in walk(root):
        if node.type == "variable_declarator":
            name_node = node.child_by_field_name("name")
            if name_node is None or name_node.type != "identifier":
                continue
            tag = type_from_annotation(node.child_by_field_name("type"))
            if tag is PropType.UNKNOWN:
                tag = infer_expression_type(node.child_by_field_name("value"), {})
            _record(node_text(name_node), tag)
        elif node.type in ("required_parameter", "optional_parameter"):
            pattern = node.child_by_field_name("pattern")
            if pattern is not None and pattern.type == "identifier":
                _record(node_text(pattern), type_from_annotation(node.child_by_field_name("type")))
    return found


# ---------------------------------------------------------------------------
# GraphQL documents
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GraphQLOperation:
    """An operation parsed from a ``gql`` tagged template."""
    symbol: str
    kind: ActionKind
    operation_name: str
    parameters: tuple[Parameter, ...]


def _graphql_type(type_text: str) -> PropType:
    base = type_text.rstrip("!")
    if base.startswith("["):
        return PropType.UNKNOWN
    return _GRAPHQL_TYPES.get(base, PropType.UNKNOWN)


def parse_graphql_operation(symbol: str, document: str) -> Optional[GraphQLOperation]:
    """
    Extract kind, name and variables of the first operation in *document*.

    Returns None for documents holding only fragments.
    """
    text = "\n".join(
        line for line in document.splitlines() if not line.lstrip().startswith("#")
    )
    if text.lstrip().startswith("{"):
        return GraphQLOperation(symbol, ActionKind.QUERY, symbol, ())
    match = _OPERATION_RE.search(text)
    if match is None:
        return None
    op_type, op_name, var_block = match.groups()
    kind = ActionKind.MUTATION if op_type == "mutation" else ActionKind.QUERY
    params = tuple(
        Parameter(name, _graphql_type(type_text))
        for name, type_text in _VARIABLE_RE.findall(var_block or "")
    )
    return GraphQLOperation(symbol, kind, op_name or symbol, params)


def _gql_template(call_node) -> Optional[str]:
    """Return the document text if *call_node* is a ``gql`...``` tagged template."""
    if call_node is None or call_node.type != "call_expression":
        return None
    func = call_node.child_by_field_name("function")
    args = call_node.child_by_field_name("arguments")
    if func is None or args is None or args.type != "template_string":
        return None
    if node_text(func) not in _GQL_TAGS:
        return None
    return node_text(args)[1:-1]


def collect_graphql_operations(root) -> dict[str, tuple[GraphQLOperation, int]]:
    """Map variable name → (operation, start byte) for every gql declaration."""
    operations: dict[str, tuple[GraphQLOperation, int]] = {}
    for node in walk(root):
        if node.type != "variable_declarator":
            continue
        name_node = node.child_by_field_name("name")
        document = _gql_template(node.child_by_field_name("value"))
        if name_node is None or document is None:
            continue
        symbol = node_text(name_node)
        op = parse_graphql_operation(symbol, document)
        if op is not None and symbol not in operations:
            operations[symbol] = (op, node.start_byte)
    return operations


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------

def _format_params(params: Iterable[tuple[str, PropType]]) -> str:
    return ", ".join(f"{name} ({tag.value})" for name, tag in params)


def component_summary(draft: "_ComponentDraft", route: str) -> str:
    """Format a component into embeddable text."""
    lines = [f"Component: {draft.name}", f"Route: {route or '/'}"]
    if draft.import_source:
        lines.append(f"Imported from: {draft.import_source}")
    if draft.props:
        lines.append(f"Props: {_format_params(draft.props.items())}")
    if draft.events:
        lines.append(f"Events: {', '.join(draft.events)}")
    if draft.accessibility:
        lines.append("Accessibility: " + ", ".join(f"{k}={v}" for k, v in draft.accessibility.items()))
    if draft.links:
        lines.append(f"Links: {', '.join(draft.links)}")
    if draft.labels:
        lines.append(f"Labels: {', '.join(draft.labels)}")
    if draft.text:
        text = " ".join(draft.text)
        lines.append(f"Text: {text[:_MAX_TEXT_CHARS]}")
    return "\n".join(lines)


def action_summary(
    name: str,
    kind: ActionKind,
    params: Iterable[Parameter],
    route: str,
    extra: Iterable[str] = (),
) -> str:
    """Format an action into embeddable text."""
    params = list(params)
    lines = [f"Action: {name}", f"Kind: {kind.value}", f"Route: {route or '/'}"]
    if params:
        lines.append(f"Parameters: {_format_params((p.name, p.type) for p in params)}")
    lines.extend(extra)
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Per-file analysis
# ---------------------------------------------------------------------------

@dataclass
class _ComponentDraft:
    name: str
    import_source: str
    source_location: str
    props: dict[str, PropType] = field(default_factory=dict)
    events: list[str] = field(default_factory=list)
    accessibility: dict[str, str] = field(default_factory=dict)
    links: list[str] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)
    text: list[str] = field(default_factory=list)
    occurrences: int = 0

    def merge_prop(self, name: str, tag: PropType) -> None:
        if name not in self.props:
            self.props[name] = tag
        elif self.props[name] is not tag:
            self.props[name] = PropType.UNKNOWN

    def build(self, route: str) -> UIComponent:
        return UIComponent(
            name=self.name,
            props=dict(self.props),
            source_location=self.source_location,
            summary=component_summary(self, route),
            import_source=self.import_source,
            occurrences=self.occurrences,
        )


def _append_unique(items: list[str], value: str) -> None:
    if value and value not in items:
        items.append(value)


class _EntryAnalysis:
    """Extraction state for a single entry file; discarded after the scan."""

    def __init__(self, scanner: "RegistryScanner", route: str, parsed: ParsedSource, rel_path: str) -> None:
        self.scanner = scanner
        self.route = route
        self.parsed = parsed
        self.rel_path = rel_path
        self.root = parsed.root
        self.imports = extract_imports(self.root)
        self.local_types = _collect_local_types(self.root)
        self._module_cache: dict[str, dict[str, tuple[GraphQLOperation, int]]] = {}

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    def components(self) -> list[UIComponent]:
        drafts: dict[str, _ComponentDraft] = {}
        for node in walk(self.root):
            if node.type == "jsx_element":
                opening = next((c for c in node.children if c.type == "jsx_opening_element"), None)
                if opening is not None:
                    self._visit_jsx(node, opening, drafts)
            elif node.type == "jsx_self_closing_element":
                self._visit_jsx(node, node, drafts)
            elif node.type == "call_expression":
                self._visit_factory_call(node, drafts)
        return [d.build(self.route) for d in drafts.values()]

    def _resolve_component(self, name_node) -> Optional[tuple[str, ImportBinding]]:
        """Return ``(display name, import binding)`` for a tag, or None."""
        if name_node is None:
            return None
        name = node_text(name_node)
        if name_node.type == "identifier":
            if not name or not name[0].isupper():
                return None                     # intrinsic element
        elif name_node.type not in ("member_expression", "nested_identifier"):
            logger.debug("[scanner] %s: skipping dynamic element %r", self.rel_path, name)
            return None
        root_name = name.split(".", 1)[0]
        binding = self.imports.get(root_name)
        if binding is None:
            logger.debug(
                "[scanner] %s:%s: %s is not an imported component, skipping",
                self.rel_path, location(name_node), name,
            )
            return None
        return name, binding

    def _draft_for(self, drafts: dict[str, _ComponentDraft], name: str, binding: ImportBinding, node) -> _ComponentDraft:
        draft = drafts.get(name)
        if draft is None:
            draft = _ComponentDraft(
                name=name,
                import_source=binding.source,
                source_location=f"{self.rel_path}:{location(node)}",
            )
            drafts[name] = draft
        draft.occurrences += 1
        return draft

    def _visit_jsx(self, element, opening, drafts: dict[str, _ComponentDraft]) -> None:
        resolved = self._resolve_component(opening.child_by_field_name("name"))
        if resolved is None:
            return
        name, binding = resolved
        draft = self._draft_for(drafts, name, binding, element)

        for attr in named_children(opening):
            if attr.type != "jsx_attribute":
                continue
            parts = named_children(attr)
            if not parts:
                continue
            prop = node_text(parts[0])
            value = parts[1] if len(parts) > 1 else None
            literal = string_value(value) if value is not None and value.type == "string" else None
            if value is None:
                tag = PropType.BOOLEAN
            elif value.type == "string":
                tag = PropType.STRING
            elif value.type == "jsx_expression":
                inner = named_children(value)
                tag = infer_expression_type(inner[0], self.local_types) if inner else PropType.UNKNOWN
                if inner:
                    literal = string_value(inner[0])
            else:
                tag = PropType.UNKNOWN
            draft.merge_prop(prop, tag)
            self._describe_prop(draft, prop, literal)

        if element.type == "jsx_element":
            for child in walk(element):
                if child.type == "jsx_text":
                    _append_unique(draft.text, " ".join(node_text(child).split()))

    @staticmethod
    def _describe_prop(draft: _ComponentDraft, prop: str, literal: Optional[str]) -> None:
        if _is_event_prop(prop):
            _append_unique(draft.events, prop)
        elif literal is None:
            return
        elif prop == "role" or prop.startswith("aria-"):
            draft.accessibility.setdefault(prop, literal)
        elif prop == "href":
            _append_unique(draft.links, literal)
        elif prop not in ("className", "style", "key", "id"):
            _append_unique(draft.labels, f"{prop}={literal}")

    def _visit_factory_call(self, call, drafts: dict[str, _ComponentDraft]) -> None:
        func = call.child_by_field_name("function")
        if func is None:
            return
        if func.type == "member_expression":
            func_name = node_text(func.child_by_field_name("property"))
        else:
            func_name = node_text(func)
        if func_name not in _ELEMENT_FACTORIES:
            return
        args = named_children(call.child_by_field_name("arguments"))
        if not args or args[0].type == "string":
            return
        if args[0].type not in ("identifier", "member_expression"):
            logger.debug(
                "[scanner] %s:%s: dynamic %s() target, skipping",
                self.rel_path, location(call), func_name,
            )
            return
        resolved = self._resolve_component(args[0])
        if resolved is None:
            return
        name, binding = resolved
        draft = self._draft_for(drafts, name, binding, call)
        if len(args) > 1 and args[1].type == "object":
            for key, value in self._object_entries(args[1]):
                draft.merge_prop(key, infer_expression_type(value, self.local_types))
                self._describe_prop(draft, key, string_value(value))

    def _object_entries(self, obj) -> list[tuple[str, object]]:
        entries = []
        for member in named_children(obj):
            if member.type == "pair":
                key_node = member.child_by_field_name("key")
                key = string_value(key_node) or node_text(key_node)
                entries.append((key, member.child_by_field_name("value")))
            elif member.type == "shorthand_property_identifier":
                entries.append((node_text(member), _Shorthand(node_text(member))))
        return entries

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def actions(self) -> list[ActionDescriptor]:
        found: list[tuple[int, ActionDescriptor]] = []
        symbols: set[str] = set()

        def _add(pos: int, symbol: str, action: ActionDescriptor) -> None:
            if symbol in symbols:
                return
            symbols.add(symbol)
            found.append((pos, action))

        for pos, name, params in self._exported_functions():
            kind = action_kind_for(name)
            _add(pos, name, ActionDescriptor(
                name=name,
                kind=kind,
                parameters=params,
                summary=action_summary(name, kind, params, self.route),
                source="export",
            ))

        for pos, name, params, events in self._local_handlers():
            extra = [f"Bound to: {', '.join(events)}"] if events else []
            _add(pos, name, ActionDescriptor(
                name=name,
                kind=ActionKind.HANDLER,
                parameters=params,
                summary=action_summary(name, ActionKind.HANDLER, params, self.route, extra),
                source="local",
            ))

        local_ops = collect_graphql_operations(self.root)
        for symbol, (op, pos) in local_ops.items():
            _add(pos, symbol, self._operation_action(op))

        imported_ops = self._imported_operations()
        for symbol, (op, pos, source) in imported_ops.items():
            _add(pos, symbol, self._operation_action(op, source))

        for pos, symbol, action in self._hook_operations(local_ops, imported_ops):
            _add(pos, symbol, action)

        found.sort(key=lambda item: item[0])
        result: list[ActionDescriptor] = []
        names: set[str] = set()
        for _pos, action in found:
            if action.name in names:
                logger.debug("[scanner] %s: duplicate action name %s, keeping first", self.rel_path, action.name)
                continue
            names.add(action.name)
            result.append(action)
        return result

    def _operation_action(self, op: GraphQLOperation, source: str = "") -> ActionDescriptor:
        extra = [f"Operation: {op.operation_name}", f"Document: {op.symbol}"]
        if source:
            extra.append(f"Imported from: {source}")
        return ActionDescriptor(
            name=op.operation_name,
            kind=op.kind,
            parameters=op.parameters,
            summary=action_summary(op.operation_name, op.kind, op.parameters, self.route, extra),
            source="graphql",
        )

    def _exported_functions(self) -> list[tuple[int, str, tuple[Parameter, ...]]]:
        local_functions = self._top_level_functions()
        results = []
        for stmt in named_children(self.root):
            if stmt.type != "export_statement":
                continue
            if any(c.type == "default" for c in stmt.children):
                continue
            decl = stmt.child_by_field_name("declaration")
            if decl is not None:
                for name, params_node in _declared_functions(decl):
                    if _is_action_name(name):
                        results.append((stmt.start_byte, name, self._parameters(params_node)))
                continue
            clause = next((c for c in named_children(stmt) if c.type == "export_clause"), None)
            if clause is None or stmt.child_by_field_name("source") is not None:
                continue
            for spec in named_children(clause):
                if spec.type != "export_specifier":
                    continue
                local = node_text(spec.child_by_field_name("name"))
                alias_node = spec.child_by_field_name("alias")
                exported = node_text(alias_node) if alias_node else local
                if local not in local_functions:
                    logger.debug("[scanner] %s: export %s is not a local function, skipping", self.rel_path, exported)
                    continue
                if _is_action_name(exported) and exported != "default":
                    results.append((spec.start_byte, exported, self._parameters(local_functions[local])))
        return results

    def _local_handlers(self) -> list[tuple[int, str, tuple[Parameter, ...], list[str]]]:
        """
        Event handlers defined or used by the page itself.

        A handler is a ``handle*`` function declared anywhere in the file or
        called by name, or a locally declared function passed to an ``on*``
        prop.  Parameters come from the declaration when there is one.
        """
        declared: dict[str, tuple[int, object]] = {}
        for node in walk(self.root):
            if node.type in _DECLARATION_NODES:
                for name, params_node in _declared_functions(node):
                    declared.setdefault(name, (node.start_byte, params_node))

        used: dict[str, int] = {}
        events: dict[str, list[str]] = {}
        for node in walk(self.root):
            if node.type == "call_expression":
                func = node.child_by_field_name("function")
                if func is not None and func.type == "identifier" and _has_word_prefix(node_text(func), "handle"):
                    used.setdefault(node_text(func), node.start_byte)
            elif node.type == "jsx_attribute":
                parts = named_children(node)
                if len(parts) < 2 or parts[1].type != "jsx_expression":
                    continue
                prop = node_text(parts[0])
                if not _is_event_prop(prop):
                    continue
                inner = named_children(parts[1])
                if not inner or inner[0].type != "identifier":
                    continue
                name = node_text(inner[0])
                if name in declared or _has_word_prefix(name, "handle"):
                    used.setdefault(name, inner[0].start_byte)
                    _append_unique(events.setdefault(name, []), prop)

        names = dict.fromkeys([n for n in declared if _has_word_prefix(n, "handle")] + list(used))
        results = []
        for name in names:
            if name in declared:
                pos, params_node = declared[name]
                params = self._parameters(params_node)
            else:
                pos, params = used[name], ()
            results.append((pos, name, params, events.get(name, [])))
        return results

    def _top_level_functions(self) -> dict[str, object]:
        functions: dict[str, object] = {}
        for stmt in named_children(self.root):
            decl = stmt.child_by_field_name("declaration") if stmt.type == "export_statement" else stmt
            if decl is None:
                continue
            for name, params_node in _declared_functions(decl):
                functions.setdefault(name, params_node)
        return functions

    def _parameters(self, params_node) -> tuple[Parameter, ...]:
        if params_node is None:
            return ()
        if params_node.type == "identifier":
            return (Parameter(node_text(params_node), PropType.UNKNOWN),)
        params: list[Parameter] = []
        for child in named_children(params_node):
            kind = child.type
            if kind in ("required_parameter", "optional_parameter"):
                pattern = child.child_by_field_name("pattern")
                if pattern is not None and node_text(pattern) == "this":
                    continue
                tag = type_from_annotation(child.child_by_field_name("type"))
                if tag is PropType.UNKNOWN:
                    tag = infer_expression_type(child.child_by_field_name("value"), self.local_types)
                params.append(Parameter(_pattern_name(pattern), tag))
            elif kind == "assignment_pattern":
                params.append(Parameter(
                    _pattern_name(child.child_by_field_name("left")),
                    infer_expression_type(child.child_by_field_name("right"), self.local_types),
                ))
            elif kind in ("identifier", "rest_pattern", "object_pattern", "array_pattern"):
                params.append(Parameter(_pattern_name(child), PropType.UNKNOWN))
        return tuple(params)

    def _resolve_module(self, source: str) -> Optional[str]:
        if source.startswith("./") or source.startswith("../"):
            base = os.path.normpath(os.path.join(os.path.dirname(self.parsed.path), source))
        else:
            for prefix, target in self.scanner.path_aliases:
                if source.startswith(prefix):
                    base = os.path.join(target, source[len(prefix):])
                    break
            else:
                return None
        if os.path.splitext(base)[1].lower() in EXTENSION_TO_LANGUAGE and os.path.isfile(base):
            return base
        for ext in MODULE_EXTENSIONS:
            if os.path.isfile(base + ext):
                return base + ext
        for ext in MODULE_EXTENSIONS:
            candidate = os.path.join(base, "index" + ext)
            if os.path.isfile(candidate):
                return candidate
        return None

    def _module_operations(self, path: str) -> dict[str, tuple[GraphQLOperation, int]]:
        if path not in self._module_cache:
            try:
                parsed = parse_file(path)
                self._module_cache[path] = collect_graphql_operations(parsed.root)
            except RegistryError as exc:
                logger.warning("[scanner] %s: cannot analyse imported module %s: %s", self.rel_path, path, exc)
                self._module_cache[path] = {}
        return self._module_cache[path]

    def _imported_operations(self) -> dict[str, tuple[GraphQLOperation, int, str]]:
        """Imported UPPER_SNAKE bindings that resolve to gql documents."""
        hook_args = {symbol for _pos, symbol, _kind, _node in self._hook_calls()}
        by_source: dict[str, list[ImportBinding]] = {}
        for binding in self.imports.values():
            if binding.kind != "named":
                continue
            if _DOCUMENT_NAME_RE.fullmatch(binding.imported) or binding.local in hook_args:
                by_source.setdefault(binding.source, []).append(binding)

        operations: dict[str, tuple[GraphQLOperation, int, str]] = {}
        for stmt in named_children(self.root):
            if stmt.type != "import_statement":
                continue
            source = string_value(stmt.child_by_field_name("source"))
            # Several statements may import from one module; the first one wins.
            bindings = by_source.pop(source, None)
            if not bindings:
                continue
            path = self._resolve_module(source)
            if path is None:
                continue
            module_ops = self._module_operations(path)
            for binding in bindings:
                entry = module_ops.get(binding.imported)
                if entry is not None:
                    operations[binding.local] = (entry[0], stmt.start_byte, source)
        return operations

    def _hook_calls(self) -> list[tuple[int, str, ActionKind, object]]:
        calls = []
        for node in walk(self.root):
            if node.type != "call_expression":
                continue
            func = node.child_by_field_name("function")
            if func is None:
                continue
            if func.type == "member_expression":
                hook = node_text(func.child_by_field_name("property"))
            else:
                hook = node_text(func)
            kind = _OPERATION_HOOKS.get(hook)
            if kind is None:
                continue
            args = named_children(node.child_by_field_name("arguments"))
            symbol = node_text(args[0]) if args and args[0].type == "identifier" else ""
            calls.append((node.start_byte, symbol, kind, node))
        return calls

    def _hook_operations(self, local_ops, imported_ops) -> list[tuple[int, str, ActionDescriptor]]:
        results = []
        for pos, symbol, kind, call in self._hook_calls():
            args = named_children(call.child_by_field_name("arguments"))
            if not args:
                continue
            document = _gql_template(args[0])
            if document is not None:
                hook = node_text(call.child_by_field_name("function"))
                op = parse_graphql_operation(f"{hook}@{location(call)}", document)
                if op is not None:
                    results.append((pos, op.symbol, self._operation_action(op)))
                continue
            if not symbol:
                logger.debug(
                    "[scanner] %s:%s: operation document is not a static reference, skipping",
                    self.rel_path, location(call),
                )
                continue
            if symbol in local_ops or symbol in imported_ops:
                continue
            params = self._hook_variables(args[1] if len(args) > 1 else None)
            binding = self.imports.get(symbol)
            extra = [f"Document: {symbol}"]
            if binding is not None:
                extra.append(f"Imported from: {binding.source}")
            logger.debug("[scanner] %s: document %s unresolved, using hook call site", self.rel_path, symbol)
            results.append((pos, symbol, ActionDescriptor(
                name=symbol,
                kind=kind,
                parameters=params,
                summary=action_summary(symbol, kind, params, self.route, extra),
                source="hook",
            )))
        return results

    def _hook_variables(self, options) -> tuple[Parameter, ...]:
        if options is None or options.type != "object":
            return ()
        for key, value in self._object_entries(options):
            if key == "variables" and getattr(value, "type", None) == "object":
                return tuple(
                    Parameter(name, infer_expression_type(v, self.local_types))
                    for name, v in self._object_entries(value)
                )
        return ()


class _Shorthand:
    """Stand-in node for ``{ name }`` object shorthand, typed like an identifier."""

    type = "identifier"

    def __init__(self, name: str) -> None:
        self.text = name.encode("utf-8")


def _pattern_name(pattern) -> str:
    if pattern is None:
        return ""
    if pattern.type == "rest_pattern":
        inner = named_children(pattern)
        return node_text(inner[0]) if inner else node_text(pattern).lstrip(".")
    return " ".join(node_text(pattern).split())


def _declared_functions(decl) -> list[tuple[str, object]]:
    """``(name, parameters node)`` for functions declared by *decl*."""
    if decl.type in ("function_declaration", "generator_function_declaration"):
        name_node = decl.child_by_field_name("name")
        return [(node_text(name_node), decl.child_by_field_name("parameters"))] if name_node else []
    if decl.type not in ("lexical_declaration", "variable_declaration"):
        return []
    functions = []
    for declarator in named_children(decl):
        if declarator.type != "variable_declarator":
            continue
        name_node = declarator.child_by_field_name("name")
        value = declarator.child_by_field_name("value")
        if name_node is None or value is None:
            continue
        func = _unwrap_function(value)
        if func is None:
            continue
        params = func.child_by_field_name("parameters") or func.child_by_field_name("parameter")
        functions.append((node_text(name_node), params))
    return functions


def _unwrap_function(value):
    """Return the function node of ``value`` or of a wrapper call like ``withAuth(async () => ...)``."""
    if value.type in _FUNCTION_NODES:
        return value
    if value.type == "call_expression" and _gql_template(value) is None:
        args = value.child_by_field_name("arguments")
        if args is not None and args.type == "arguments":
            for arg in named_children(args):
                if arg.type in _FUNCTION_NODES:
                    return arg
    return None


# ---------------------------------------------------------------------------
# Public scanner
# ---------------------------------------------------------------------------

class RegistryScanner:
    """
    Extracts a :class:`RouteRegistry` for routes under *base_dir*.

    Parameters
    ----------
    base_dir:
        The app directory holding the route tree (e.g. ``src/app``).
    registry_dir:
        Directory where :meth:`save` writes artifacts.  Optional for
        scan-only use.
    entry_files:
        File names that can serve as a route's entry file, in priority order.
    path_aliases:
        Import prefix → directory map used to resolve project imports.
        Defaults to ``{"@/": <parent of base_dir>}``.
    """

    def __init__(
        self,
        base_dir: str,
        registry_dir: Optional[str] = None,
        entry_files: Iterable[str] = DEFAULT_ENTRY_FILES,
        path_aliases: Optional[dict[str, str]] = None,
    ) -> None:
        self.base_dir = os.path.abspath(base_dir)
        self.registry_dir = os.path.abspath(registry_dir) if registry_dir else None
        self.entry_files = tuple(entry_files)
        if path_aliases is None:
            path_aliases = {"@/": os.path.dirname(self.base_dir)}
        # Longest prefix first so "@/lib/" wins over "@/".
        self.path_aliases: list[tuple[str, str]] = sorted(
            ((prefix, os.path.abspath(target)) for prefix, target in path_aliases.items()),
            key=lambda kv: -len(kv[0]),
        )

    # ------------------------------------------------------------------
    # Route resolution
    # ------------------------------------------------------------------

    def normalize_route(self, route: str) -> str:
        """Use ``/`` separators and drop a trailing entry-file name."""
        parts = [p for p in route.replace("\\", "/").split("/") if p and p != "."]
        if parts and parts[-1] in self.entry_files:
            parts.pop()
        return "/".join(parts)

    def resolve_entry(self, route: str) -> str:
        """
        Return the absolute path of *route*'s entry file.

        Raises
        ------
        NotFoundError
            If no entry file exists, or the route points outside *base_dir*.
        """
        route = self.normalize_route(route)
        route_dir = os.path.normpath(os.path.join(self.base_dir, *route.split("/")))
        if os.path.commonpath([self.base_dir, route_dir]) != self.base_dir:
            raise NotFoundError(f"Route {route!r} is outside {self.base_dir}")
        for name in self.entry_files:
            candidate = os.path.join(route_dir, name)
            if os.path.isfile(candidate):
                return candidate
        raise NotFoundError(
            f"No entry file ({', '.join(self.entry_files)}) for route {route!r} in {route_dir}"
        )

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def scan_route(self, route: str) -> RouteRegistry:
        """
        Statically analyse *route*'s entry file.

        Returns
        -------
        RouteRegistry
            Components and actions in source order; identical for an
            unchanged file apart from ``scanned_at``.

        Raises
        ------
        NotFoundError
            No entry file exists for the route.
        ParseError
            The entry file is not syntactically analysable.
        RegistryIOError
            The entry file cannot be read.
        """
        route = self.normalize_route(route)
        entry_path = self.resolve_entry(route)
        parsed = parse_file(entry_path)
        rel_path = os.path.relpath(entry_path, self.base_dir).replace(os.sep, "/")

        analysis = _EntryAnalysis(self, route, parsed, rel_path)
        components = analysis.components()
        actions = analysis.actions()
        logger.debug(
            "[scanner] %s: %d components, %d actions",
            rel_path, len(components), len(actions),
        )
        return RouteRegistry(route=route, components=tuple(components), actions=tuple(actions))

    def save(self, registry: RouteRegistry) -> str:
        """Write *registry* to the artifact directory; return the artifact path."""
        from .artifacts import write_registry

        if self.registry_dir is None:
            raise RegistryIOError("RegistryScanner has no registry_dir to save into")
        return write_registry(registry, self.registry_dir)

    def scan_and_save(self, route: str) -> RouteRegistry:
        """Scan *route* and persist its artifact."""
        registry = self.scan_route(route)
        self.save(registry)
        return registry
