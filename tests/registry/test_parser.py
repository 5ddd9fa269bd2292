"""
Unit tests for route_registry.parser

Language detection, parsing of TS/TSX/JS sources via tree-sitter, error
reporting and import extraction.
"""

from __future__ import annotations

import textwrap

import pytest

from route_registry.errors import NotFoundError, ParseError
from route_registry.parser import (
    detect_language,
    extract_imports,
    parse_code,
    parse_file,
    string_value,
    walk,
)


# ---------------------------------------------------------------------------
# Language detection
# ---------------------------------------------------------------------------

class TestDetectLanguage:
    def test_tsx(self):
        assert detect_language("app/page.tsx") == "tsx"

    def test_typescript(self):
        assert detect_language("lib/api.ts") == "typescript"
        assert detect_language("lib/api.mts") == "typescript"

    def test_javascript_and_jsx(self):
        assert detect_language("page.js") == "javascript"
        assert detect_language("page.jsx") == "javascript"

    def test_case_insensitive(self):
        assert detect_language("PAGE.TSX") == "tsx"

    def test_unsupported(self):
        assert detect_language("styles.css") is None
        assert detect_language("README") is None


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

class TestParse:
    def test_parse_tsx(self):
        src = b"export default function Page() { return <div>hi</div>; }\n"
        parsed = parse_code(src, "tsx", "page.tsx")
        assert parsed.root.type == "program"
        assert parsed.language == "tsx"
        assert len(parsed.hash) == 64

    def test_hash_is_stable(self):
        src = b"const x: number = 1;\n"
        assert parse_code(src, "typescript").hash == parse_code(src, "typescript").hash

    def test_syntax_error(self):
        with pytest.raises(ParseError) as exc_info:
            parse_code(b"export function ( {\n", "tsx", "broken.tsx")
        assert "broken.tsx" in str(exc_info.value)

    def test_bare_ampersand_in_jsx_text_is_tolerated(self):
        src = textwrap.dedent("""\
            import { Button } from "@/components/ui/button";
            export default function Page() {
              return <Button>Save & Reload</Button>;
            }
        """).encode("utf-8")
        parsed = parse_code(src, "tsx", "page.tsx")
        tags = [n for n in walk(parsed.root) if n.type == "jsx_element"]
        assert len(tags) == 1

    def test_error_outside_jsx_text_still_fails(self):
        src = textwrap.dedent("""\
            export default function Page() {
              return <main>Save & Reload</main>;
            }
            export function broken( {
        """).encode("utf-8")
        with pytest.raises(ParseError):
            parse_code(src, "tsx", "page.tsx")

    def test_parse_file(self, tmp_path):
        p = tmp_path / "page.jsx"
        p.write_text("export default () => <main />;\n", encoding="utf-8")
        parsed = parse_file(str(p))
        assert parsed.language == "javascript"
        assert parsed.path == str(p)

    def test_missing_file(self, tmp_path):
        with pytest.raises(NotFoundError):
            parse_file(str(tmp_path / "page.tsx"))

    def test_unsupported_extension(self, tmp_path):
        p = tmp_path / "page.vue"
        p.write_text("<template></template>")
        with pytest.raises(ParseError):
            parse_file(str(p))

    def test_walk_is_preorder(self):
        parsed = parse_code(b"const a = 1; const b = 2;\n", "typescript")
        names = [n.text.decode() for n in walk(parsed.root) if n.type == "identifier"]
        assert names == ["a", "b"]

    def test_string_value(self):
        parsed = parse_code(b"const a = 'x'; const b = `y`; const c = `${a}`;\n", "typescript")
        values = [
            string_value(n) for n in walk(parsed.root)
            if n.type in ("string", "template_string")
        ]
        assert values == ["x", "y", None]


# ---------------------------------------------------------------------------
# Imports
# ---------------------------------------------------------------------------

class TestExtractImports:
    def _imports(self, src: str):
        parsed = parse_code(textwrap.dedent(src).encode(), "tsx")
        return extract_imports(parsed.root)

    def test_binding_kinds(self):
        imports = self._imports("""\
            import React from "react";
            import * as UI from "@/components/ui";
            import { Card, Button as Btn } from "./widgets";
        """)
        assert imports["React"].kind == "default"
        assert imports["UI"].kind == "namespace"
        assert imports["UI"].source == "@/components/ui"
        assert imports["Card"].imported == "Card"
        assert imports["Btn"].imported == "Button"
        assert imports["Btn"].source == "./widgets"
        assert list(imports) == ["React", "UI", "Card", "Btn"]

    def test_type_only_imports_skipped(self):
        imports = self._imports("""\
            import type { Props } from "./types";
            import { type Theme, Card } from "./widgets";
        """)
        assert "Props" not in imports
        assert "Theme" not in imports
        assert "Card" in imports

    def test_side_effect_import(self):
        assert self._imports('import "./globals.css";\n') == {}
