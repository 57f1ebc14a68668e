"""
sanitizer/repairer.py

Structural repairs applied after normalization:

    1. missing closing brackets
    2. classDef lines without a style
    3. unterminated subgraphs
    4. referenced nodes that were never defined

Each step is a pure text function and the sequence is idempotent: a
second ``repair`` leaves its own output untouched. Surplus closing
brackets and surplus ``end`` lines are left as they are.
"""

from __future__ import annotations

import re
from typing import Dict, List

from debug_trace import trace, trace_call
from models import BRACKET_PAIRS, SENTINEL_NODE, LineKind
from settings import get_settings
from sanitizer.extractor import extract
from sanitizer.lexer import match_arrow
from sanitizer.parser import classify_line, parse_header


_CLOSERS = {closer: opener for opener, closer in BRACKET_PAIRS.items()}
_CLASSDEF = re.compile(r"^(\s*classDef\s+)([A-Za-z0-9_,-]+)(.*)$")


# ═══════════════════════════════════════════════════════════
# Step 1: brackets
# ═══════════════════════════════════════════════════════════

def _bracket_deficit(line: str) -> Dict[str, int]:
    """Count unmatched openers per family, ignoring quotes and arrows."""
    depth = {opener: 0 for opener in BRACKET_PAIRS}
    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        if ch == '"':
            close = line.find('"', i + 1)
            if close >= 0:
                i = close + 1
                continue
            i += 1
            continue
        if ch in "-=<~ox":
            arrow = match_arrow(line, i)
            if arrow is not None and not arrow.partial:
                i = arrow.end
                continue
        if ch in BRACKET_PAIRS:
            # "<" only opens a tag-like group such as <br> or </b>
            if ch != "<" or (i + 1 < n and (line[i + 1].isalpha() or line[i + 1] == "/")):
                depth[ch] += 1
        elif ch in _CLOSERS:
            opener = _CLOSERS[ch]
            if depth[opener] > 0:
                depth[opener] -= 1
        i += 1
    return depth


def balance_brackets(line: str) -> str:
    """Append the closers a line is missing, in family order."""
    deficit = _bracket_deficit(line)
    suffix = "".join(BRACKET_PAIRS[opener] * count for opener, count in deficit.items())
    if not suffix:
        return line
    # Keep an appended ">" from fusing with a trailing "-" into an arrow
    if suffix.startswith(">") and line.rstrip()[-1:] in ("-", "=", "."):
        suffix = " " + suffix
    trace(f"Closed brackets {suffix.strip()!r} on: {line.strip()!r}", "REPAIR")
    return line + suffix


# ═══════════════════════════════════════════════════════════
# Step 2: classDef styles
# ═══════════════════════════════════════════════════════════

def fix_class_def(line: str, default_style: str) -> str:
    """Give a ``classDef`` without a ``prop:value`` style the default one."""
    m = _CLASSDEF.match(line)
    if not m or ":" in m.group(3):
        return line
    trace(f"classDef {m.group(2)} given default style", "REPAIR")
    return f"{m.group(1)}{m.group(2)} {default_style}"


# ═══════════════════════════════════════════════════════════
# Step 3: subgraphs
# ═══════════════════════════════════════════════════════════

def close_subgraphs(lines: List[str]) -> List[str]:
    """Append one ``end`` per ``subgraph`` left open."""
    kinds = [classify_line(line) for line in lines]
    missing = kinds.count(LineKind.SUBGRAPH) - kinds.count(LineKind.END)
    if missing <= 0:
        return lines
    trace(f"Appending {missing} missing 'end' line(s)", "REPAIR")
    lines = list(lines)
    while lines and not lines[-1].strip():
        lines.pop()
    return lines + ["end"] * missing


# ═══════════════════════════════════════════════════════════
# Step 4: undefined nodes
# ═══════════════════════════════════════════════════════════

def define_missing_nodes(lines: List[str], indent: str = "    ") -> List[str]:
    """Insert ``X[X]`` for referenced ids that have no definition.

    Definitions go immediately before the first line that is neither a
    declaration nor a comment, in reference order. ``Unknown`` is left for
    the validator.
    """
    missing = [node_id for node_id in extract("\n".join(lines)).undefined
               if node_id != SENTINEL_NODE]
    if not missing:
        return lines

    insert_at = len(lines)
    for i, line in enumerate(lines):
        if classify_line(line) not in (LineKind.HEADER, LineKind.COMMENT):
            insert_at = i
            break

    trace(f"Defining {len(missing)} referenced node(s): {', '.join(missing)}", "REPAIR")
    definitions = [f"{indent}{node_id}[{node_id}]" for node_id in missing]
    return lines[:insert_at] + definitions + lines[insert_at:]


# ═══════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════

@trace_call("REPAIR")
def repair(text: str) -> str:
    """Run the four structural repairs over normalized diagram text.

    Documents declared as something other than a flowchart are returned
    unchanged.
    """
    if not text or not text.strip():
        return text

    lines = text.split("\n")
    kinds = [classify_line(line) for line in lines]

    if LineKind.HEADER in kinds:
        header = parse_header(lines[kinds.index(LineKind.HEADER)]).header
        if not header.is_flowchart:
            return text

    config = get_settings().settings.sanitizer

    for i, kind in enumerate(kinds):
        if kind in (LineKind.HEADER, LineKind.COMMENT, LineKind.BLANK):
            continue
        lines[i] = balance_brackets(lines[i])
        if kind == LineKind.CLASSDEF:
            lines[i] = fix_class_def(lines[i], config.default_class_style)

    lines = close_subgraphs(lines)
    lines = define_missing_nodes(lines, config.indent)
    return "\n".join(lines)
