"""
sanitizer/extractor.py

Collect node definitions, references and edges from diagram text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from models import DiagramDocument, Edge, LineKind, NodeDefinition
from sanitizer.parser import parse_document


@dataclass
class GraphExtraction:
    """Nodes and edges found in a diagram.

    Attributes:
        defined: Node id -> first definition seen, in definition order.
        labels: Node id -> last label seen, in first-definition order.
        referenced: Every node id mentioned in a statement, in order,
            without duplicates.
        edges: Edges in source order, ``&`` groups expanded.
        subgraphs: Ids declared by ``subgraph`` lines.
    """
    defined: Dict[str, NodeDefinition] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)
    referenced: List[str] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)
    subgraphs: List[str] = field(default_factory=list)

    @property
    def undefined(self) -> List[str]:
        """Referenced ids with neither a definition nor a subgraph."""
        return [
            node_id for node_id in self.referenced
            if node_id not in self.defined and node_id not in self.subgraphs
        ]

    @property
    def is_empty(self) -> bool:
        return not self.referenced


def extract_document(doc: DiagramDocument) -> GraphExtraction:
    """Collect the graph of an already parsed document."""
    result = GraphExtraction()
    seen = set()

    for line in doc.lines:
        if line.kind == LineKind.SUBGRAPH:
            if line.subgraph_id and line.subgraph_id not in result.subgraphs:
                result.subgraphs.append(line.subgraph_id)
            continue
        if line.kind != LineKind.STATEMENT:
            continue

        for statement in line.statements:
            for ref in statement.refs():
                if ref.node_id not in seen:
                    seen.add(ref.node_id)
                    result.referenced.append(ref.node_id)
            for definition in statement.definitions():
                result.defined.setdefault(definition.node_id, definition)
                result.labels[definition.node_id] = definition.label
            result.edges.extend(statement.edges())

    return result


def extract(text: Optional[str]) -> GraphExtraction:
    """Parse ``text`` and collect its graph.

    Declaration, comment, subgraph, end, classDef and directive lines
    contribute no nodes; damaged statements contribute what salvage
    recovers from them.
    """
    if not text:
        return GraphExtraction()
    return extract_document(parse_document(text))
