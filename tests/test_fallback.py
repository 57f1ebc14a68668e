"""Tests for sanitizer/fallback.py: rebuilding a diagram from its graph."""
from __future__ import annotations

from models import EMPTY_DIAGRAM, NO_NODES_DIAGRAM
from sanitizer import synthesize


class TestSynthesize:

    def test_blank(self):
        assert synthesize(None) == EMPTY_DIAGRAM
        assert synthesize("   ") == EMPTY_DIAGRAM

    def test_layout_and_styling_dropped(self):
        text = "graph LR\n    A[Start] --> B[End]\n    style A fill:#f00"
        assert synthesize(text) == "graph TD\n    A[Start]\n    B[End]\n    A --> B"

    def test_last_label_wins(self):
        assert synthesize("A[One] --> B\nA[Two]") == (
            "graph TD\n    A[Two]\n    B[B]\n    A --> B"
        )

    def test_dangling_arrow_points_at_unknown(self):
        assert synthesize("A[Start] -->") == (
            "graph TD\n    A[Start]\n    Unknown[Unknown]\n    A --> Unknown"
        )

    def test_arrow_kinds_flattened(self):
        assert synthesize("A ==> B\nB -.-> C") == (
            "graph TD\n    A[A]\n    B[B]\n    C[C]\n    A --> B\n    B --> C"
        )

    def test_subgraphs_flattened(self):
        out = synthesize("graph TD\nsubgraph S\nA --> B\nend")
        assert "subgraph" not in out
        assert "end" not in out.split("\n")

    def test_unsafe_label_quoted(self):
        out = synthesize("A[f(x)] --> B")
        assert '    A["f(x)"]' in out.split("\n")

    def test_prose_has_no_nodes(self):
        assert synthesize("There is nothing to draw here.") == NO_NODES_DIAGRAM

    def test_internal_failure(self, monkeypatch):
        def boom(text):
            raise RuntimeError("extractor exploded")

        monkeypatch.setattr("sanitizer.fallback.extract", boom)
        assert synthesize("A --> B") == NO_NODES_DIAGRAM
