"""
utils.py

Helpers for pulling diagram text out of free-form AI responses.
"""

from __future__ import annotations

import re
from typing import List, Optional

from debug_trace import trace
from models import DEFAULT_RESPONSE_DIAGRAM
from sanitizer.extractor import extract


# Section headings that usually introduce a diagram, in priority order
DIAGRAM_SECTIONS = (
    "diagram",
    "workflow diagram",
    "architecture diagram",
    "mermaid diagram",
    "repository structure",
)

_MERMAID_BLOCK = re.compile(r"```[ \t]*mermaid\b\s*([\s\S]*?)```", re.IGNORECASE)

# "## Heading", "**Heading**", "3. Heading:" or "Heading:" on a line of its own
_HEADING = re.compile(
    r"^\s*(?:#{1,6}\s*|\*\*)?(?:\d+\.?\s*)?([A-Za-z][A-Za-z ]*?)\s*(?:\*\*)?\s*:?\s*(?:\*\*)?\s*$"
)
_HEADING_MARK = re.compile(r"^\s*(?:#{1,6}\s|\*\*|\d+\.\s)|:\s*$")

_DIAGRAM_HINTS = ("graph", "flowchart", "->", "-->")


def extract_mermaid_block(text: Optional[str]) -> Optional[str]:
    """
    Return the body of the first ```mermaid fenced block.

    Args:
        text: Response text that may contain a fenced block

    Returns:
        The block body with surrounding whitespace stripped, or None if
        there is no mermaid block
    """
    if not text:
        return None
    m = _MERMAID_BLOCK.search(text)
    if not m:
        return None
    return m.group(1).strip()


def extract_section(text: str, heading: str) -> str:
    """
    Return the lines under a heading such as ``Diagram:`` or ``## Diagram``.

    The section runs until the next heading-like line or the end of text.
    Matching is case-insensitive; an empty string means no such section.
    """
    lines = text.split("\n")
    wanted = heading.strip().lower()

    for i, line in enumerate(lines):
        m = _HEADING.match(line)
        if not m or m.group(1).strip().lower() != wanted or not _HEADING_MARK.search(line):
            continue
        body: List[str] = []
        for follower in lines[i + 1:]:
            if _HEADING.match(follower) and _HEADING_MARK.search(follower):
                break
            body.append(follower)
        return "\n".join(body).strip()

    return ""


def extract_diagram_from_text(text: str) -> Optional[str]:
    """
    Scrape a diagram out of loosely structured prose.

    Long lines and lines containing ``.`` or ``;`` are treated as prose and
    skipped; node ids and connections are collected from what is left.

    Returns:
        A ``graph TD`` diagram, or None when nothing diagram-like was found
    """
    kept = [line for line in text.split("\n")
            if len(line) <= 100 and "." not in line and ";" not in line]
    graph = extract("\n".join(kept))

    nodes: List[str] = []
    for node_id in graph.referenced:
        if node_id in graph.defined or any(node_id in (e.source, e.target) for e in graph.edges):
            nodes.append(node_id)

    if not nodes:
        return None

    lines = ["graph TD"]
    lines += [f"    {node_id}[{node_id}]" for node_id in nodes]
    lines += [f"    {edge.source} --> {edge.target}" for edge in graph.edges]
    return "\n".join(lines)


def extract_mermaid_diagram(response_text: Optional[str]) -> str:
    """
    Find the diagram in an AI response.

    Tries, in order: a ```mermaid fenced block, a section under one of
    DIAGRAM_SECTIONS that contains diagram syntax, a scrape of diagram-like
    lines, and finally a default three-node diagram.
    """
    text = (response_text or "").replace("\r\n", "\n")

    block = extract_mermaid_block(text)
    if block:
        trace("Diagram found in fenced block", "NORM")
        return block

    for heading in DIAGRAM_SECTIONS:
        section = extract_section(text, heading)
        if section and any(hint in section for hint in _DIAGRAM_HINTS):
            trace(f"Diagram found in section {heading!r}", "NORM")
            return section

    scraped = extract_diagram_from_text(text)
    if scraped:
        trace("Diagram scraped from response text", "NORM")
        return scraped

    trace("No diagram in response, using default diagram", "NORM")
    return DEFAULT_RESPONSE_DIAGRAM
