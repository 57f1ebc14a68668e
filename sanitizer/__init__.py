"""
sanitizer package

Normalize, repair and validate Mermaid flowchart text produced by an
unreliable generator, and rebuild it from scratch when that fails.
"""

from __future__ import annotations

from typing import Optional

from debug_trace import trace
from sanitizer.extractor import GraphExtraction, extract
from sanitizer.fallback import synthesize
from sanitizer.normalizer import normalize
from sanitizer.parser import classify_line, parse_document
from sanitizer.repairer import repair
from sanitizer.validator import validate
from models import LineKind


def sanitize(text: Optional[str]) -> str:
    """Normalize, repair and validate ``text`` into renderable diagram text."""
    normalized = normalize(text)
    repaired = repair(normalized)
    validated = validate(repaired)
    trace(f"Sanitized {len(text or '')} chars into {validated.count(chr(10)) + 1} line(s)", "VALID")
    return validated


def has_diagram_syntax(text: Optional[str]) -> bool:
    """True when ``text`` holds a declaration, an edge, or a clean node definition.

    Prose is False even when salvage can pull a lone node out of an aside
    such as ``The service (API) talks to the database.``, as is blank input.
    """
    if text is None or not text.strip():
        return False
    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    if any(classify_line(line) == LineKind.HEADER for line in lines):
        return True
    for line in parse_document(normalize(text)).lines:
        for statement in line.statements:
            if statement.links or (line.strict and statement.definitions()):
                return True
    return False


__all__ = [
    "GraphExtraction",
    "extract",
    "has_diagram_syntax",
    "normalize",
    "parse_document",
    "repair",
    "sanitize",
    "synthesize",
    "validate",
]
