"""
sanitizer/fallback.py

Rebuild a diagram from scratch out of whatever nodes and edges can be
recovered, discarding the original layout, styling and subgraphs.
"""

from __future__ import annotations

from typing import List, Optional

from debug_trace import trace, trace_exception
from models import EMPTY_DIAGRAM, NO_NODES_DIAGRAM, quote_label
from sanitizer.extractor import extract
from sanitizer.normalizer import repair_dangling_arrows
from sanitizer.validator import validate


def synthesize(text: Optional[str]) -> str:
    """Emit a flat ``graph TD`` holding every recovered node and edge.

    Nodes come first, one ``id[label]`` line each in first-appearance
    order with the last label seen; edges follow as plain ``-->`` links.
    The result is passed through ``validate``.
    """
    if text is None or not text.strip():
        return EMPTY_DIAGRAM

    try:
        cleaned = "\n".join(
            repair_dangling_arrows(line).rstrip().rstrip(";")
            for line in text.replace("\r\n", "\n").split("\n")
        )
        graph = extract(cleaned)

        endpoints = {node_id for edge in graph.edges for node_id in (edge.source, edge.target)}
        order: List[str] = [
            node_id for node_id in graph.referenced
            if node_id in graph.labels or node_id in endpoints
        ]

        if not order:
            trace("Nothing recoverable, using canonical no-nodes diagram", "FALLBACK")
            return NO_NODES_DIAGRAM

        lines = ["graph TD"]
        for node_id in order:
            label = graph.labels.get(node_id) or node_id
            lines.append(f"    {node_id}[{quote_label(label)}]")
        for edge in graph.edges:
            lines.append(f"    {edge.source} --> {edge.target}")

        trace(f"Rebuilt {len(order)} node(s), {len(graph.edges)} edge(s)", "FALLBACK")
        return validate("\n".join(lines))
    except Exception:
        trace_exception("synthesize failed")
        return NO_NODES_DIAGRAM

