"""
sanitizer/normalizer.py

First cleanup pass over raw diagram text: line endings, escaped newlines,
declaration placement, and dangling arrows.
"""

from __future__ import annotations

import re
from typing import List, Optional

from debug_trace import trace
from models import ARROW_KINDS, EMPTY_DIAGRAM, SENTINEL_NODE, LineKind
from settings import get_settings
from sanitizer.lexer import ARROW, IDENT, SEMI, SHAPE, tokenize
from sanitizer.parser import classify_line, parse_header


# ``-- >`` and ``== >`` written with a stray gap
_SPACED_ARROWS = [
    (re.compile(r"--[ \t]+>"), "-->"),
    (re.compile(r"==[ \t]+>"), "==>"),
]


def _unescape_enabled() -> bool:
    return get_settings().settings.sanitizer.unescape_newlines


def repair_dangling_arrows(line: str) -> str:
    """Point arrows that end a statement at the ``Unknown`` sentinel.

    Headless ``--``, ``==`` and ``-.`` are completed to ``-->``, ``==>`` and
    ``-.->``; complete arrows keep their original text. ``A[Label] A --``
    collapses to ``A[Label] --> Unknown``.
    """
    tokens = tokenize(line)
    if not tokens:
        return line

    # Arrows that are the last token of a statement
    dangling = []
    for i, tok in enumerate(tokens):
        if tok.type != ARROW:
            continue
        if i + 1 == len(tokens) or tokens[i + 1].type == SEMI:
            dangling.append(i)

    # Rewrite back to front so earlier spans stay valid
    for i in reversed(dangling):
        tok = tokens[i]
        arrow = ARROW_KINDS[tok.kind] if tok.partial else tok.value
        start = tok.start
        if (i >= 3
                and tokens[i - 1].type == IDENT
                and tokens[i - 2].type == SHAPE
                and tokens[i - 3].type == IDENT
                and tokens[i - 1].value == tokens[i - 3].value):
            # Drop the repeated id: "A[Label] A --" -> "A[Label] --> Unknown"
            start = tokens[i - 1].start
        line = f"{line[:start]}{arrow} {SENTINEL_NODE}{line[tok.end:]}"
        trace(f"Dangling arrow completed: {tok.value!r} -> {arrow} {SENTINEL_NODE}", "NORM")

    return line


def _split_header_lines(lines: List[str]) -> List[str]:
    out: List[str] = []
    for line in lines:
        match = parse_header(line) if classify_line(line) == LineKind.HEADER else None
        if match is None or not match.header.is_flowchart:
            out.append(line)
            continue
        out.append(match.header.to_text())
        if match.rest:
            trace(f"Split statements off declaration: {match.rest!r}", "NORM")
            out.extend("    " + part.strip() for part in match.rest.split(";") if part.strip())
    return out


def _collapse_duplicate_headers(lines: List[str]) -> List[str]:
    out: List[str] = []
    previous = None
    for line in lines:
        kind = classify_line(line)
        if kind == LineKind.BLANK:
            out.append(line)
            continue
        if kind == LineKind.HEADER:
            key = parse_header(line).header.to_text()
            if key == previous:
                trace(f"Dropped duplicate declaration: {line.strip()!r}", "NORM")
                continue
            previous = key
        else:
            previous = None
        out.append(line)
    return out


def _place_header(lines: List[str]) -> List[str]:
    # Leading comments (and %%{init}%% directives) stay above the declaration
    first_content = 0
    while first_content < len(lines) and classify_line(lines[first_content]) in (
            LineKind.COMMENT, LineKind.BLANK):
        first_content += 1

    header_index: Optional[int] = None
    for i in range(first_content, len(lines)):
        if classify_line(lines[i]) == LineKind.HEADER:
            header_index = i
            break

    if header_index is None:
        trace("No declaration found, prepending 'graph TD'", "NORM")
        return lines[:first_content] + ["graph TD"] + lines[first_content:]
    if header_index != first_content:
        trace(f"Moved declaration from line {header_index} to line {first_content}", "NORM")
        header = lines.pop(header_index)
        lines.insert(first_content, header)
    return lines


def normalize(text: Optional[str]) -> str:
    """Normalize raw diagram text.

    Args:
        text: Raw text from the generator; may be None or blank.

    Returns:
        Text whose first non-comment line is a diagram declaration, with
        unix line endings, no trailing semicolons, and no dangling arrows.
        Blank input yields the canonical empty diagram.
    """
    if text is None or not text.strip():
        trace("Empty input, using canonical empty diagram", "NORM")
        return EMPTY_DIAGRAM

    text = text.replace("\r\n", "\n").replace("\r", "\n").strip()

    if "\n" not in text and "\\n" in text and _unescape_enabled():
        trace("Expanding escaped newlines", "NORM")
        text = text.replace("\\n", "\n").strip()

    lines = text.split("\n")
    lines = _split_header_lines(lines)
    lines = _collapse_duplicate_headers(lines)

    header = None
    for line in lines:
        if classify_line(line) == LineKind.HEADER:
            header = parse_header(line).header
            break
    fix_arrows = header is None or header.is_flowchart

    out: List[str] = []
    for line in lines:
        kind = classify_line(line)
        if kind == LineKind.STATEMENT and fix_arrows:
            for pattern, replacement in _SPACED_ARROWS:
                line = pattern.sub(replacement, line)
            line = repair_dangling_arrows(line)
        if kind != LineKind.COMMENT:
            line = line.rstrip()
            while line.endswith(";"):
                line = line[:-1].rstrip()
        out.append(line)

    return "\n".join(_place_header(out))
