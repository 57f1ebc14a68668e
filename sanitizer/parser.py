"""
sanitizer/parser.py

Line-based parser for Mermaid flowchart text.

Each line is classified by a small state machine (header, comment,
subgraph, end, classDef, directive, statement, blank, junk); statement
lines are tokenized and parsed against the grammar

    statement := group (ARROW group)*
    group     := ref ('&' ref)*
    ref       := IDENT [SHAPE] [CLASS]

``parse_statement`` accepts only statements that match the grammar
exactly. ``salvage_statement`` recovers every maximal well-formed chain
from a damaged statement so it can be re-emitted in canonical form.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

from models import (
    DIAGRAM_TYPES,
    FLOWCHART_TYPES,
    DiagramDocument,
    DiagramHeader,
    DiagramLine,
    LineKind,
    Link,
    NodeRef,
    RESERVED_NODE_IDS,
    Statement,
    safe_node_id,
)
from sanitizer.lexer import (
    AMP,
    ARROW,
    CLASS,
    IDENT,
    SHAPE,
    Token,
    split_statements,
    tokenize,
)


_FLOWCHART_HEADER = re.compile(
    r"^\s*(graph|flowchart)(?:[ \t]+([A-Za-z]+)(?=[\s;]|$))?[ \t]*(?:;[ \t]*(.*?)|[ \t]+(.*?))?\s*$"
)
_OTHER_HEADER = re.compile(
    r"^\s*(" + "|".join(re.escape(t) for t in DIAGRAM_TYPES if t not in FLOWCHART_TYPES) + r")\b(.*)$"
)
_SUBGRAPH = re.compile(r"^\s*subgraph\b\s*([A-Za-z0-9_][A-Za-z0-9_-]*)?")
_END = re.compile(r"^\s*end\s*;?\s*$")
_CLASSDEF = re.compile(r"^\s*classDef\b")
_DIRECTIVE = re.compile(r"^\s*(class|style|linkStyle|click|direction|accTitle|accDescr)\b")
# A reserved word used as a node: followed by a link, "&" or a shape
_KEYWORD_AS_NODE = re.compile(
    r"^\s*(?:" + "|".join(re.escape(w) for w in sorted(RESERVED_NODE_IDS, key=len, reverse=True)) + r")"
    r"(?:\s*(?:--|==|-\.|<-|<=|~~~|&)|[\[\(\{>])"
)

# Characters a bare (unquoted) label cannot contain
_UNSAFE_LABEL_CHARS = set('[](){}"|')


@dataclass
class HeaderMatch:
    """A parsed declaration line and any statement text that followed it."""
    header: DiagramHeader
    rest: str = ""


# ═══════════════════════════════════════════════════════════
# Line classification
# ═══════════════════════════════════════════════════════════

def parse_header(line: str) -> Optional[HeaderMatch]:
    """Parse a diagram-type declaration.

    ``graph TD; A-->B`` yields the ``graph TD`` header with ``A-->B`` as
    the remainder. Directions are canonicalised by the header model, so
    ``graph lr`` and ``graph XY`` both parse (to LR and TD respectively).

    Returns:
        A HeaderMatch, or None if the line is not a declaration.
    """
    m = _FLOWCHART_HEADER.match(line)
    if m:
        direction = m.group(2).upper() if m.group(2) else None
        rest = m.group(3) or m.group(4) or ""
        return HeaderMatch(DiagramHeader(m.group(1), direction), rest.strip())
    m = _OTHER_HEADER.match(line)
    if m:
        return HeaderMatch(DiagramHeader(m.group(1), None, m.group(2).strip()))
    return None


def classify_line(line: str) -> str:
    """Return the LineKind of a single line."""
    stripped = line.strip()
    if not stripped:
        return LineKind.BLANK
    if stripped.startswith("%"):
        return LineKind.COMMENT
    if _KEYWORD_AS_NODE.match(stripped):
        return LineKind.STATEMENT
    if parse_header(stripped) is not None:
        return LineKind.HEADER
    if _SUBGRAPH.match(stripped):
        return LineKind.SUBGRAPH
    if _END.match(stripped):
        return LineKind.END
    if _CLASSDEF.match(stripped):
        return LineKind.CLASSDEF
    if _DIRECTIVE.match(stripped):
        return LineKind.DIRECTIVE
    if any(tok.type == IDENT for tok in tokenize(stripped)):
        return LineKind.STATEMENT
    return LineKind.JUNK


def subgraph_id(line: str) -> str:
    """Return the id a ``subgraph`` line declares, or ``""``."""
    m = _SUBGRAPH.match(line)
    return (m.group(1) or "") if m else ""


# ═══════════════════════════════════════════════════════════
# Statement grammar
# ═══════════════════════════════════════════════════════════

def _label_is_safe(tok: Token) -> bool:
    if not tok.label:
        return False
    return tok.quoted or not (set(tok.label) & _UNSAFE_LABEL_CHARS)


def parse_statement(tokens: List[Token]) -> Optional[Statement]:
    """Parse one ``;``-free token list strictly.

    Returns:
        The Statement, or None if any token falls outside the grammar.
    """
    if not tokens:
        return None

    groups: List[List[NodeRef]] = [[]]
    links: List[Link] = []
    i = 0
    n = len(tokens)
    expect_ref = True

    while i < n:
        tok = tokens[i]
        if expect_ref:
            if tok.type != IDENT or tok.value in RESERVED_NODE_IDS:
                return None
            ref = NodeRef(tok.value)
            i += 1
            if i < n and tokens[i].type == SHAPE:
                shape = tokens[i]
                if shape.start != tok.end or not shape.closed or not _label_is_safe(shape):
                    return None
                ref.label = shape.label
                ref.shape = shape.kind
                i += 1
            if i < n and tokens[i].type == CLASS:
                ref.css_class = tokens[i].label
                i += 1
            groups[-1].append(ref)
            expect_ref = False
        elif tok.type == AMP:
            expect_ref = True
            i += 1
        elif tok.type == ARROW and not tok.partial:
            links.append(Link(tok.kind, tok.label))
            groups.append([])
            expect_ref = True
            i += 1
        else:
            return None

    if expect_ref:
        return None
    return Statement(groups, links)


def _flush(groups: List[List[NodeRef]], links: List[Link], out: List[Statement]) -> None:
    if not groups:
        return
    # Drop a trailing connector with no group after it
    del links[len(groups) - 1:]
    statement = Statement(groups, links)
    if links or any(ref.is_definition for ref in statement.refs()):
        out.append(statement)


def salvage_statement(tokens: List[Token]) -> List[Statement]:
    """Recover the well-formed chains from a damaged token list.

    Junk tokens end the current chain. A chain is kept when it carries an
    edge or at least one labelled node; dangling connectors are dropped.
    Shapes written with a gap after their node id are re-attached, empty
    labels fall back to the node id.
    """
    out: List[Statement] = []
    groups: List[List[NodeRef]] = []
    links: List[Link] = []
    # "start" | "ref" (just read a ref) | "amp" | "link"
    state = "start"

    for tok in tokens:
        if tok.type == IDENT:
            if state == "ref":
                _flush(groups, links, out)
                groups, links = [], []
                state = "start"
            if state in ("start", "link"):
                groups.append([])
            groups[-1].append(NodeRef(safe_node_id(tok.value)))
            state = "ref"
        elif tok.type == SHAPE and state == "ref" and groups[-1][-1].label is None:
            ref = groups[-1][-1]
            ref.label = tok.label.strip() or ref.node_id
            ref.shape = tok.kind
        elif tok.type == CLASS and state == "ref":
            groups[-1][-1].css_class = tok.label
        elif tok.type == AMP and state == "ref":
            state = "amp"
        elif tok.type == ARROW and not tok.partial and state == "ref":
            links.append(Link(tok.kind, tok.label))
            state = "link"
        else:
            # Junk: close the chain, dropping any dangling connector
            _flush(groups, links, out)
            groups, links = [], []
            state = "start"

    _flush(groups, links, out)
    return out


# ═══════════════════════════════════════════════════════════
# Lines and documents
# ═══════════════════════════════════════════════════════════

def parse_line(text: str, depth: int = 0) -> DiagramLine:
    """Classify and parse one line of diagram text."""
    kind = classify_line(text)
    line = DiagramLine(kind, text, depth=depth)

    if kind == LineKind.SUBGRAPH:
        line.subgraph_id = subgraph_id(text)
    elif kind == LineKind.STATEMENT:
        strict = True
        for segment in split_statements(tokenize(text)):
            statement = parse_statement(segment)
            if statement is not None:
                line.statements.append(statement)
            else:
                strict = False
                line.statements.extend(salvage_statement(segment))
        line.strict = strict

    return line


def parse_document(text: str) -> DiagramDocument:
    """Parse diagram text into a DiagramDocument.

    The first declaration becomes the document header. Statement text that
    shares a line with a declaration is parsed as its own line. Subgraph
    nesting depth is recorded on every line; an ``end`` without an open
    subgraph leaves the depth at zero.
    """
    doc = DiagramDocument()
    depth = 0

    for raw in text.split("\n"):
        kind = classify_line(raw)
        if kind == LineKind.HEADER:
            match = parse_header(raw)
            if doc.header is None:
                doc.header = match.header
            doc.lines.append(DiagramLine(LineKind.HEADER, raw, depth=depth))
            if match.rest:
                doc.lines.append(parse_line("    " + match.rest, depth))
            continue

        line = parse_line(raw, depth)
        if kind == LineKind.SUBGRAPH:
            depth += 1
        elif kind == LineKind.END:
            depth = max(0, depth - 1)
            line.depth = depth
        doc.lines.append(line)

    return doc
