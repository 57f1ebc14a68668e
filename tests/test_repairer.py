"""Tests for sanitizer/repairer.py: structural repairs."""
from __future__ import annotations

import pytest
from models import DEFAULT_CLASS_STYLE, LineKind
from sanitizer.normalizer import normalize
from sanitizer.parser import classify_line
from sanitizer.repairer import (
    balance_brackets,
    close_subgraphs,
    define_missing_nodes,
    fix_class_def,
    repair,
)


# ═══════════════════════════════════════════════════════════
# Step 1: brackets
# ═══════════════════════════════════════════════════════════

class TestBalanceBrackets:

    @pytest.mark.parametrize("line,fixed", [
        ("    A[Label --> B", "    A[Label --> B]"),
        ("A((Round", "A((Round))"),
        ("A[x (y", "A[x (y)]"),
        ("A{Choice", "A{Choice}"),
        ("A[a <b", "A[a <b]>"),
    ])
    def test_missing_closers(self, line, fixed):
        assert balance_brackets(line) == fixed

    @pytest.mark.parametrize("line", [
        "A[x] --> B(y)",
        "A]] --> B",
        'A["a [b"] --> B',
        "A <--> B",
        "A <-.-> B",
        "A{x < 5}",
        "A[<b>bold</b>] --> B",
    ])
    def test_balanced_or_surplus_unchanged(self, line):
        assert balance_brackets(line) == line

    def test_angle_closer_kept_off_arrow(self):
        assert balance_brackets("A <b --") == "A <b -- >"


# ═══════════════════════════════════════════════════════════
# Step 2: classDef
# ═══════════════════════════════════════════════════════════

class TestFixClassDef:

    def test_no_style(self):
        assert fix_class_def("classDef bare", DEFAULT_CLASS_STYLE) == f"classDef bare {DEFAULT_CLASS_STYLE}"

    def test_invalid_style(self):
        assert fix_class_def("  classDef warn red", DEFAULT_CLASS_STYLE) == (
            f"  classDef warn {DEFAULT_CLASS_STYLE}"
        )

    def test_valid_style_unchanged(self):
        line = "classDef ok fill:#f00,stroke:#333"
        assert fix_class_def(line, DEFAULT_CLASS_STYLE) == line

    def test_default_style_from_settings(self, isolated_settings):
        isolated_settings.settings.sanitizer.default_class_style = "fill:#000"
        assert repair("graph TD\nclassDef x\nA --> B").split("\n")[-2] == "classDef x fill:#000"


# ═══════════════════════════════════════════════════════════
# Step 3: subgraphs
# ═══════════════════════════════════════════════════════════

class TestCloseSubgraphs:

    def test_appends_missing_ends(self):
        lines = ["graph TD", "subgraph a", "subgraph b", "subgraph c", "A-->B", "end", ""]
        assert close_subgraphs(lines) == [
            "graph TD", "subgraph a", "subgraph b", "subgraph c", "A-->B", "end", "end", "end",
        ]

    def test_surplus_end_left_alone(self):
        lines = ["graph TD", "end", "end"]
        assert close_subgraphs(lines) == lines


# ═══════════════════════════════════════════════════════════
# Step 4: undefined nodes
# ═══════════════════════════════════════════════════════════

class TestDefineMissingNodes:

    def test_inserted_after_header_and_comments(self):
        assert define_missing_nodes(["graph TD", "%% c", "A --> B"]) == [
            "graph TD", "%% c", "    A[A]", "    B[B]", "A --> B",
        ]

    def test_unknown_is_skipped(self):
        assert define_missing_nodes(["graph TD", "    A --> Unknown"]) == [
            "graph TD", "    A[A]", "    A --> Unknown",
        ]

    def test_defined_nodes_untouched(self):
        lines = ["graph TD", "    A[a] --> B[b]"]
        assert define_missing_nodes(lines) == lines

    def test_header_only_document(self):
        assert define_missing_nodes(["graph TD"]) == ["graph TD"]


# ═══════════════════════════════════════════════════════════
# Whole pass
# ═══════════════════════════════════════════════════════════

class TestRepair:

    def test_all_steps(self):
        text = "graph TD\n    A[Start --> B\n    subgraph S\n    C --> D"
        assert repair(text) == (
            "graph TD\n"
            "    C[C]\n"
            "    D[D]\n"
            "    A[Start --> B]\n"
            "    subgraph S\n"
            "    C --> D\n"
            "end"
        )

    def test_reserved_node_ids(self):
        text = "graph TD\n    Start --> subgraph"
        out = repair(text)
        assert out == "graph TD\n    Start[Start]\n    subgraph_[subgraph_]\n    Start --> subgraph"
        kinds = [classify_line(line) for line in out.split("\n")]
        assert LineKind.SUBGRAPH not in kinds
        assert LineKind.END not in kinds

    def test_other_diagram_unchanged(self):
        text = 'pie title Pets\n    "Dogs" : 3 ('
        assert repair(text) == text

    def test_blank(self):
        assert repair("") == ""

    def test_comment_brackets_untouched(self):
        text = "graph TD\n%% (unbalanced\n    A[a] --> B[b]"
        assert repair(text) == text


IDEMPOTENCE_CORPUS = [
    "",
    "graph TD",
    "A --> B",
    "graph TD\n    A[x --> B(y",
    "subgraph a\nsubgraph b\n",
    "classDef x",
    "A <b --",
    'A["q',
    "A & B --> C\nC -->|l| D{d",
    "graph LR\nend\nend\nsubgraph z",
    "%% only comment",
    "A[<b>bold</b>] --> B",
    "A o--o B x--x C",
    "A((",
    "))((",
    "A -- text --> B[",
    'pie\n  "a" : 1',
    "graph TD; A-->B; B-->C[",
    "Some prose first.\ngraph TD\nA --> B --> C{{x",
    "graph TD\n    Start --> subgraph",
    "graph TD\n    A --> classDef\n    B --> end",
    "A[Load] --> graph LR",
    "flowchart --> C",
    "subgraph[Title] --> end\nend --> B",
]


class TestIdempotence:

    @pytest.mark.parametrize("text", IDEMPOTENCE_CORPUS)
    def test_repair_twice_is_repair_once(self, text):
        once = repair(text)
        assert repair(once) == once

    @pytest.mark.parametrize("text", IDEMPOTENCE_CORPUS)
    def test_after_normalize(self, text):
        once = repair(normalize(text))
        assert repair(once) == once

    @pytest.mark.parametrize("text", IDEMPOTENCE_CORPUS)
    def test_every_subgraph_closed(self, text):
        kinds = [classify_line(line) for line in repair(normalize(text)).split("\n")]
        assert kinds.count(LineKind.SUBGRAPH) <= kinds.count(LineKind.END)
