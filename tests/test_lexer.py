"""Tests for sanitizer/lexer.py: line tokenizer for flowchart statements."""
from __future__ import annotations

import pytest
from sanitizer.lexer import (
    AMP,
    ARROW,
    CLASS,
    IDENT,
    SEMI,
    SHAPE,
    TEXT,
    match_arrow,
    split_statements,
    tokenize,
)


def _types(line):
    return [tok.type for tok in tokenize(line)]


# ═══════════════════════════════════════════════════════════
# Arrows
# ═══════════════════════════════════════════════════════════

class TestArrowKinds:
    """Every arrow family resolves to its kind."""

    @pytest.mark.parametrize("arrow,kind", [
        ("-->", "solid"),
        ("--->", "solid"),
        ("---", "open"),
        ("==>", "thick"),
        ("===", "thick-open"),
        ("-.->", "dotted"),
        ("-..->", "dotted"),
        ("-.-", "dotted-open"),
        ("--o", "circle-end"),
        ("--x", "cross-end"),
        ("~~~", "invisible"),
        ("<-->", "bidirectional"),
        ("<==>", "thick-bidirectional"),
        ("<-.->", "dotted-bidirectional"),
        ("o--o", "circle-both"),
        ("x--x", "cross-both"),
    ])
    def test_kind(self, arrow, kind):
        tokens = tokenize(f"A {arrow} B")
        assert [t.type for t in tokens] == [IDENT, ARROW, IDENT]
        assert tokens[1].kind == kind
        assert tokens[1].value == arrow
        assert not tokens[1].partial

    def test_no_spaces(self):
        tokens = tokenize("A-->B")
        assert [t.value for t in tokens] == ["A", "-->", "B"]

    def test_pipe_label(self):
        arrow = tokenize("A -->|yes| B")[1]
        assert arrow.kind == "solid"
        assert arrow.label == "yes"
        assert arrow.value == "-->|yes|"

    def test_inline_label_solid(self):
        arrow = tokenize("A -- maybe later --> B")[1]
        assert arrow.kind == "solid"
        assert arrow.label == "maybe later"
        assert not arrow.partial

    def test_inline_label_thick(self):
        arrow = tokenize("A == big ==> B")[1]
        assert arrow.kind == "thick"
        assert arrow.label == "big"

    def test_inline_label_dotted(self):
        arrow = tokenize("A -. soft .-> B")[1]
        assert arrow.kind == "dotted"
        assert arrow.label == "soft"

    @pytest.mark.parametrize("opener,kind", [
        ("--", "solid"),
        ("==", "thick"),
        ("-.", "dotted"),
    ])
    def test_partial(self, opener, kind):
        tokens = tokenize(f"A {opener}")
        assert tokens[-1].type == ARROW
        assert tokens[-1].partial
        assert tokens[-1].kind == kind

    def test_match_arrow_none_on_ident(self):
        assert match_arrow("A --> B", 0) is None

    def test_match_arrow_at_offset(self):
        tok = match_arrow("A --> B", 2)
        assert tok.start == 2 and tok.end == 5


# ═══════════════════════════════════════════════════════════
# Identifiers and shapes
# ═══════════════════════════════════════════════════════════

class TestIdentifiers:

    def test_hyphenated_id_stops_before_arrow(self):
        tokens = tokenize("my-node-->other_node")
        assert [t.value for t in tokens] == ["my-node", "-->", "other_node"]

    def test_numeric_id(self):
        assert tokenize("1 --> 2")[0].value == "1"

    def test_class_shorthand(self):
        tokens = tokenize("A:::warn --> B")
        assert tokens[1].type == CLASS
        assert tokens[1].label == "warn"


class TestShapes:

    @pytest.mark.parametrize("text,kind,label", [
        ("A[Label]", "rectangle", "Label"),
        ("A(Rounded)", "round", "Rounded"),
        ("A{Choice?}", "diamond", "Choice?"),
        ("A((Circle))", "round", "Circle"),
        ("A([Stadium])", "round", "Stadium"),
        ("A[[Sub]]", "rectangle", "Sub"),
        ("A[(Database)]", "rectangle", "Database"),
        ("A{{Hex}}", "diamond", "Hex"),
    ])
    def test_shape_family(self, text, kind, label):
        tokens = tokenize(text)
        assert [t.type for t in tokens] == [IDENT, SHAPE]
        assert tokens[1].kind == kind
        assert tokens[1].label == label
        assert tokens[1].closed

    def test_quoted_label_keeps_brackets(self):
        shape = tokenize('A["Label [x]"] --> B')[1]
        assert shape.label == "Label [x]"
        assert shape.quoted
        assert shape.closed

    def test_unclosed_shape(self):
        shape = tokenize("A[Label")[1]
        assert not shape.closed
        assert shape.label == "Label"

    def test_shape_spans(self):
        tokens = tokenize("  A[x] --> B")
        assert tokens[0].start == 2
        assert tokens[1].start == tokens[0].end

    def test_bracket_without_ident_is_text(self):
        assert _types("[x]")[0] == TEXT


# ═══════════════════════════════════════════════════════════
# Separators and junk
# ═══════════════════════════════════════════════════════════

class TestSeparators:

    def test_amp_and_semi(self):
        assert _types("A & B --> C; D") == [IDENT, AMP, IDENT, ARROW, IDENT, SEMI, IDENT]

    def test_text_runs_merge(self):
        tokens = tokenize("A --> B !!")
        assert tokens[-1].type == TEXT
        assert tokens[-1].value == "!!"

    def test_split_statements(self):
        segments = split_statements(tokenize("A --> B; ; C --> D;"))
        assert [[t.value for t in seg] for seg in segments] == [
            ["A", "-->", "B"],
            ["C", "-->", "D"],
        ]

    def test_empty_line(self):
        assert tokenize("") == []
        assert tokenize("   ") == []
