"""
sanitizer/validator.py

Final structural check before rendering. Guarantees a single declaration,
a definition for every edge endpoint, and at least one edge.
"""

from __future__ import annotations

import re
from typing import List, Set

from debug_trace import trace, trace_exception
from models import (
    EMPTY_DIAGRAM,
    ERROR_DIAGRAM,
    NO_NODES_DIAGRAM,
    PASS_THROUGH_KINDS,
    SENTINEL_NODE,
    DiagramDocument,
    DiagramHeader,
    LineKind,
)
from settings import get_settings
from sanitizer.parser import parse_document


_INDENT = re.compile(r"^[ \t]*")


def _collect_definitions(doc: DiagramDocument) -> Set[str]:
    defined: Set[str] = set()
    for line in doc.lines:
        if line.kind == LineKind.SUBGRAPH and line.subgraph_id:
            defined.add(line.subgraph_id)
        elif line.kind == LineKind.STATEMENT:
            defined.update(node.node_id for node in line.nodes)
    return defined


def _validate_flowchart(doc: DiagramDocument, header: DiagramHeader, indent: str) -> str:
    defined = _collect_definitions(doc)
    out: List[str] = [header.to_text()]
    nodes: List[str] = []
    edge_count = 0

    def define(node_id: str, line_indent: str) -> None:
        if node_id not in defined:
            defined.add(node_id)
            out.append(f"{line_indent}{node_id}[{node_id}]")
            trace(f"Synthesised definition for {node_id}", "VALID")

    for line in doc.lines:
        if line.kind == LineKind.HEADER:
            continue
        if line.kind in PASS_THROUGH_KINDS:
            out.append(line.text)
            continue
        if line.kind != LineKind.STATEMENT or not line.statements:
            if line.kind != LineKind.BLANK:
                trace(f"Dropped line: {line.text.strip()!r}", "VALID")
            continue

        line_indent = _INDENT.match(line.text).group(0) or indent
        for edge in line.edges:
            define(edge.source, line_indent)
            define(edge.target, line_indent)

        if line.strict:
            out.append(line.text)
        else:
            trace(f"Rebuilt line: {line.text.strip()!r}", "VALID")
            out.extend(f"{line_indent}{statement.to_text()}" for statement in line.statements)

        for statement in line.statements:
            for ref in statement.refs():
                if ref.node_id not in nodes:
                    nodes.append(ref.node_id)
            edge_count += len(statement.edges())

    if not nodes:
        trace("No nodes survived, using canonical no-nodes diagram", "VALID")
        return NO_NODES_DIAGRAM

    if edge_count == 0:
        if len(nodes) >= 2:
            first, second = nodes[0], nodes[1]
        else:
            first, second = nodes[0], SENTINEL_NODE
        trace(f"No edges, adding {first} --> {second}", "VALID")
        define(first, indent)
        out.append(f"{indent}{first} --> {second}")
        define(second, indent)

    return "\n".join(out)


def validate(text: str) -> str:
    """Validate and fix sanitized diagram text.

    Args:
        text: Output of the repairer.

    Returns:
        Renderable diagram text. Never raises: an internal failure yields
        the canonical error diagram.
    """
    if not text or not text.strip():
        return EMPTY_DIAGRAM

    try:
        doc = parse_document(text)
        header = doc.header or DiagramHeader()

        if not header.is_flowchart:
            first = next(i for i, line in enumerate(doc.lines) if line.kind == LineKind.HEADER)
            body = [line.text for i, line in enumerate(doc.lines) if i != first]
            return "\n".join([header.to_text()] + body)

        return _validate_flowchart(doc, header, get_settings().settings.sanitizer.indent)
    except Exception:
        trace_exception("validate failed")
        return ERROR_DIAGRAM
