"""
models.py

Data models and constants for the diagram sanitizer and render pipeline.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional


# ----------------------------
# Canonical documents
# ----------------------------

SENTINEL_NODE = "Unknown"

EMPTY_DIAGRAM = "graph TD\n    A[Empty] --> B[Diagram]"
NO_NODES_DIAGRAM = "graph TD\n    A[Repository] --> B[Components]"
ERROR_DIAGRAM = "graph TD\n    A[Error] --> B[In] --> C[Processing]"
MINIMAL_DIAGRAM = "graph TD\n    A[Error] --> B[Rendering Failed]"
DEFAULT_RESPONSE_DIAGRAM = "graph TD\n    A[Repository] --> B[Components]\n    B --> C[Features]"

DEFAULT_CLASS_STYLE = "fill:#f9f9f9,stroke:#666,stroke-width:1px"


# ----------------------------
# Diagram declarations
# ----------------------------

FLOWCHART_TYPES = ("graph", "flowchart")

# Order matters: ``stateDiagram-v2`` must be tried before ``stateDiagram``.
DIAGRAM_TYPES = (
    "graph", "flowchart", "sequenceDiagram", "classDiagram",
    "stateDiagram-v2", "stateDiagram", "erDiagram", "gantt", "pie", "journey",
)

# Words the flowchart grammar reserves; a node cannot be named after one
RESERVED_NODE_IDS = frozenset(DIAGRAM_TYPES + (
    "subgraph", "end", "classDef", "class", "style", "linkStyle",
    "click", "direction", "accTitle", "accDescr",
))

VALID_DIRECTIONS = ("TB", "TD", "BT", "RL", "LR")
DEFAULT_DIRECTION = "TD"


def canonical_direction(value: Optional[str]) -> str:
    """Upper-case a direction token, replacing anything unknown with ``TD``."""
    if not value:
        return DEFAULT_DIRECTION
    upper = value.strip().upper()
    return upper if upper in VALID_DIRECTIONS else DEFAULT_DIRECTION


# ----------------------------
# Shapes and brackets
# ----------------------------

# First character of a node's opening bracket run -> shape kind.
SHAPE_BY_OPENER: Dict[str, str] = {
    "[": "rectangle",
    "(": "round",
    "{": "diamond",
}

SHAPE_BRACKETS: Dict[str, tuple] = {
    "rectangle": ("[", "]"),
    "round":     ("(", ")"),
    "diamond":   ("{", "}"),
}

# Bracket families in the order missing closers are appended.
BRACKET_PAIRS: Dict[str, str] = {
    "(": ")",
    "[": "]",
    "{": "}",
    "<": ">",
}


# ----------------------------
# Arrow kinds
# ----------------------------

# Arrow kind -> canonical token emitted when a line is rebuilt.
ARROW_KINDS: Dict[str, str] = {
    "solid":                "-->",
    "open":                 "---",
    "thick":                "==>",
    "thick-open":           "===",
    "dotted":               "-.->",
    "dotted-open":          "-.-",
    "circle-end":           "--o",
    "cross-end":            "--x",
    "invisible":            "~~~",
    "bidirectional":        "<-->",
    "thick-bidirectional":  "<==>",
    "dotted-bidirectional": "<-.->",
    "circle-both":          "o--o",
    "cross-both":           "x--x",
}


def resolve_arrow_token(kind: str, fallback: str = "-->") -> str:
    """Resolve an arrow kind to its canonical token.

    Args:
        kind: Arrow kind such as ``'thick'`` or ``'circle-end'``.
        fallback: Token to return if the kind is unknown.

    Returns:
        The canonical arrow token, or *fallback*.
    """
    return ARROW_KINDS.get(kind, fallback)


# ----------------------------
# Line kinds
# ----------------------------

class LineKind:
    """Classification of a single diagram line."""
    HEADER = "header"
    COMMENT = "comment"
    SUBGRAPH = "subgraph"
    END = "end"
    CLASSDEF = "classdef"
    DIRECTIVE = "directive"
    STATEMENT = "statement"
    BLANK = "blank"
    JUNK = "junk"


PASS_THROUGH_KINDS = frozenset([
    LineKind.COMMENT, LineKind.SUBGRAPH, LineKind.END,
    LineKind.CLASSDEF, LineKind.DIRECTIVE,
])


# ----------------------------
# Graph model
# ----------------------------

@dataclass
class NodeDefinition:
    """A node id with its label and bracket-family shape."""
    node_id: str
    label: str
    shape: str = "rectangle"

    def to_text(self) -> str:
        opener, closer = SHAPE_BRACKETS.get(self.shape, ("[", "]"))
        return f"{self.node_id}{opener}{quote_label(self.label)}{closer}"


@dataclass
class Edge:
    """A directed connection between two node ids."""
    source: str
    target: str
    arrow: str = "solid"
    label: str = ""


@dataclass
class NodeRef:
    """A node mention inside a statement, optionally carrying a definition."""
    node_id: str
    label: Optional[str] = None
    shape: Optional[str] = None
    css_class: str = ""

    @property
    def is_definition(self) -> bool:
        return self.label is not None

    def to_text(self) -> str:
        text = self.node_id
        if self.label is not None:
            text = NodeDefinition(self.node_id, self.label, self.shape or "rectangle").to_text()
        if self.css_class:
            text += f":::{self.css_class}"
        return text


@dataclass
class Link:
    """An arrow between two groups of a statement."""
    kind: str = "solid"
    label: str = ""

    def to_text(self) -> str:
        token = resolve_arrow_token(self.kind)
        if self.label:
            return f"{token}|{quote_label(self.label)}|"
        return token


@dataclass
class Statement:
    """A chain ``group (link group)*`` where each group is ``ref (& ref)*``.

    ``links[i]`` joins ``groups[i]`` to ``groups[i + 1]``.
    """
    groups: List[List[NodeRef]] = field(default_factory=list)
    links: List[Link] = field(default_factory=list)

    def refs(self) -> List[NodeRef]:
        return [ref for group in self.groups for ref in group]

    def definitions(self) -> List[NodeDefinition]:
        return [
            NodeDefinition(ref.node_id, ref.label, ref.shape or "rectangle")
            for ref in self.refs() if ref.is_definition
        ]

    def edges(self) -> List[Edge]:
        """Expand the chain, taking the cartesian product across ``&`` groups."""
        edges: List[Edge] = []
        for i, link in enumerate(self.links):
            for src in self.groups[i]:
                for dst in self.groups[i + 1]:
                    edges.append(Edge(src.node_id, dst.node_id, link.kind, link.label))
        return edges

    def to_text(self) -> str:
        parts = [" & ".join(ref.to_text() for ref in self.groups[0])]
        for link, group in zip(self.links, self.groups[1:]):
            parts.append(link.to_text())
            parts.append(" & ".join(ref.to_text() for ref in group))
        return " ".join(parts)


@dataclass
class DiagramHeader:
    """The diagram-type declaration that opens a document.

    Attributes:
        diagram_type: ``graph``, ``flowchart``, ``sequenceDiagram`` ...
        direction: Canonical direction for flowcharts, ``None`` otherwise.
        extra: Trailing text kept verbatim for non-flowchart headers
            (e.g. ``pie title Pets``).
    """
    diagram_type: str = "graph"
    direction: Optional[str] = DEFAULT_DIRECTION
    extra: str = ""

    @property
    def is_flowchart(self) -> bool:
        return self.diagram_type in FLOWCHART_TYPES

    def to_text(self) -> str:
        if self.is_flowchart:
            return f"{self.diagram_type} {canonical_direction(self.direction)}"
        if self.extra:
            return f"{self.diagram_type} {self.extra}"
        return self.diagram_type


@dataclass
class DiagramLine:
    """One source line with its classification and parsed content.

    ``statements`` holds the salvaged chains of a statement line;
    ``strict`` is True when every statement on the line parsed cleanly
    and the line can be kept verbatim.
    """
    kind: str
    text: str
    statements: List[Statement] = field(default_factory=list)
    strict: bool = False
    subgraph_id: str = ""
    depth: int = 0

    @property
    def nodes(self) -> List[NodeDefinition]:
        return [d for s in self.statements for d in s.definitions()]

    @property
    def edges(self) -> List[Edge]:
        return [e for s in self.statements for e in s.edges()]


@dataclass
class DiagramDocument:
    """Header plus every line of a diagram, header lines included."""
    header: Optional[DiagramHeader] = None
    lines: List[DiagramLine] = field(default_factory=list)

    def count(self, kind: str) -> int:
        return sum(1 for line in self.lines if line.kind == kind)

    def to_text(self) -> str:
        return "\n".join(line.text for line in self.lines)


def quote_label(label: str) -> str:
    """Wrap a label in double quotes when it holds bracket-like characters."""
    if any(ch in label for ch in '[](){}|"'):
        return '"' + label.replace('"', "#quot;") + '"'
    return label


def safe_node_id(node_id: str) -> str:
    """Suffix a reserved word with ``_`` so it can stand as a node id."""
    return node_id + "_" if node_id in RESERVED_NODE_IDS else node_id


# ----------------------------
# Render results
# ----------------------------

class RenderTier(enum.Enum):
    """Escalating fallback strategies, in the order they are attempted."""
    PRIMARY = "primary"
    SANITIZED = "sanitized"
    MINIMAL = "minimal"
    MANUAL = "manual"


@dataclass
class TierAttempt:
    """Outcome of one tier: markup on success, a reason on failure."""
    tier: RenderTier
    source: str = ""
    markup: Optional[str] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.markup is not None


@dataclass
class RenderResult:
    """What the pipeline hands back for display.

    Attributes:
        markup: Rendered SVG (or the manual fallback SVG).
        tier: Tier that produced the markup.
        diagnostic: Notice shown when ``tier`` is not PRIMARY.
        source: Diagram text that was rendered (empty for MANUAL).
        title: Optional display title, passed through untouched.
        request_id: Identifier of the request that produced this result.
        failures: Reasons recorded by the tiers that failed first.
    """
    markup: str
    tier: RenderTier
    diagnostic: Optional[str] = None
    source: str = ""
    title: Optional[str] = None
    request_id: int = 0
    failures: List[TierAttempt] = field(default_factory=list)

    @property
    def is_fallback(self) -> bool:
        return self.tier is not RenderTier.PRIMARY
