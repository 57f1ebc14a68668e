"""
sanitizer/lexer.py

Tokenizer for single lines of Mermaid flowchart text.

A line is split into typed tokens that keep their source spans, so callers
can both reason about the structure (arrows, node shapes, ``&`` groups) and
rewrite the original text in place without disturbing what they did not
touch.

Token types:

    IDENT   node id (``[A-Za-z0-9_-]``, never swallowing an arrow)
    SHAPE   bracket group after a node id, e.g. ``[Label]`` or ``((Round))``
    ARROW   link token with its kind and optional ``|label|``
    AMP     ``&`` between node ids
    SEMI    ``;`` statement separator
    CLASS   ``:::name`` class shorthand
    TEXT    anything else
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from models import SHAPE_BY_OPENER


IDENT = "IDENT"
SHAPE = "SHAPE"
ARROW = "ARROW"
AMP = "AMP"
SEMI = "SEMI"
CLASS = "CLASS"
TEXT = "TEXT"


@dataclass
class Token:
    """A lexical token with its ``[start, end)`` span in the source line.

    Attributes:
        type: One of the token type constants above.
        value: Raw source text of the token.
        start: Offset of the first character.
        end: Offset one past the last character.
        label: Node label (SHAPE) or edge label (ARROW).
        kind: Arrow kind (ARROW) or shape kind (SHAPE).
        closed: False for a SHAPE whose closing bracket never came.
        partial: True for a headless ``--``, ``==`` or ``-.`` ARROW.
        quoted: True when a SHAPE label was written in double quotes.
    """
    type: str
    value: str
    start: int
    end: int
    label: str = ""
    kind: str = ""
    closed: bool = True
    partial: bool = False
    quoted: bool = False


# ═══════════════════════════════════════════════════════════
# Arrow vocabulary
# ═══════════════════════════════════════════════════════════

# Longest and most specific forms first; lengthened forms (``--->``,
# ``====``) collapse to the same kind.
_ARROW_PATTERNS: List[Tuple[str, "re.Pattern[str]"]] = [
    ("dotted-bidirectional", re.compile(r"<-\.+->")),
    ("thick-bidirectional",  re.compile(r"<==+>")),
    ("bidirectional",        re.compile(r"<--+>")),
    ("circle-both",          re.compile(r"o--+o(?![A-Za-z0-9_])")),
    ("cross-both",           re.compile(r"x--+x(?![A-Za-z0-9_])")),
    ("dotted",               re.compile(r"-\.+->")),
    ("dotted-open",          re.compile(r"-\.+-")),
    ("thick",                re.compile(r"==+>")),
    ("thick-open",           re.compile(r"===+")),
    ("solid",                re.compile(r"--+>")),
    ("circle-end",           re.compile(r"--+o(?![A-Za-z0-9_])")),
    ("cross-end",            re.compile(r"--+x(?![A-Za-z0-9_])")),
    ("open",                 re.compile(r"---+")),
    ("invisible",            re.compile(r"~~~+")),
]

_PIPE_LABEL = re.compile(r"[ \t]*\|([^|]*)\|")

# ``A -- text --> B``; the opener decides which closers are legal.
_INLINE_LABEL = {
    "--": re.compile(r"--[ \t]+([^\s|;][^|;]*?)[ \t]+(--+>|---+|--+o(?![A-Za-z0-9_])|--+x(?![A-Za-z0-9_]))"),
    "==": re.compile(r"==[ \t]+([^\s|;][^|;]*?)[ \t]+(==+>|===+)"),
    "-.": re.compile(r"-\.[ \t]+([^\s|;][^|;]*?)[ \t]+(\.-+>|\.-+)"),
}

# Headless openers and the kind they complete to.
PARTIAL_ARROWS = {
    "--": "solid",
    "==": "thick",
    "-.": "dotted",
}

_IDENT = re.compile(r"[A-Za-z0-9_](?:[A-Za-z0-9_]|-(?![-.>=]))*")
_CLASS = re.compile(r":::([A-Za-z0-9_-]+)")

# Compound shape openers, tried before single brackets.
_SHAPE_CLOSERS = [
    ("((", "))"),
    ("([", "])"),
    ("[[", "]]"),
    ("[(", ")]"),
    ("{{", "}}"),
    ("(", ")"),
    ("[", "]"),
    ("{", "}"),
]


def _closer_kind(opener: str, closer: str) -> str:
    if opener == "-.":
        return "dotted" if closer.endswith(">") else "dotted-open"
    for kind, pattern in _ARROW_PATTERNS:
        if pattern.fullmatch(closer):
            return kind
    return PARTIAL_ARROWS[opener]


def match_arrow(line: str, pos: int) -> Optional[Token]:
    """Match an arrow token starting exactly at ``pos``.

    Complete arrows (with an optional ``|label|``) are tried first, then
    the inline-label form, then the headless partial forms.

    Returns:
        An ARROW token, or None if no arrow starts at ``pos``.
    """
    for kind, pattern in _ARROW_PATTERNS:
        m = pattern.match(line, pos)
        if not m:
            continue
        end = m.end()
        label = ""
        pm = _PIPE_LABEL.match(line, end)
        if pm:
            label = pm.group(1).strip()
            end = pm.end()
        return Token(ARROW, line[pos:end], pos, end, label=label, kind=kind)

    opener = line[pos:pos + 2]
    if opener in _INLINE_LABEL:
        m = _INLINE_LABEL[opener].match(line, pos)
        if m:
            return Token(
                ARROW, m.group(0), pos, m.end(),
                label=m.group(1).strip(), kind=_closer_kind(opener, m.group(2)),
            )
        return Token(ARROW, opener, pos, pos + 2, kind=PARTIAL_ARROWS[opener], partial=True)

    return None


def _match_shape(line: str, pos: int) -> Optional[Token]:
    for opener, closer in _SHAPE_CLOSERS:
        if not line.startswith(opener, pos):
            continue
        kind = SHAPE_BY_OPENER[opener[0]]
        i = pos + len(opener)
        # Quoted label: brackets inside the quotes are not structural
        stripped_start = i
        while stripped_start < len(line) and line[stripped_start] in " \t":
            stripped_start += 1
        if stripped_start < len(line) and line[stripped_start] == '"':
            close_quote = line.find('"', stripped_start + 1)
            if close_quote >= 0:
                label = line[stripped_start + 1:close_quote]
                after = close_quote + 1
                while after < len(line) and line[after] in " \t":
                    after += 1
                if line.startswith(closer, after):
                    end = after + len(closer)
                    return Token(SHAPE, line[pos:end], pos, end,
                                 label=label, kind=kind, quoted=True)
        close = line.find(closer, i)
        if close < 0:
            label = line[i:].strip().strip('"')
            return Token(SHAPE, line[pos:], pos, len(line),
                         label=label, kind=kind, closed=False)
        end = close + len(closer)
        return Token(SHAPE, line[pos:end], pos, end, label=line[i:close].strip(), kind=kind)
    return None


# ═══════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════

def tokenize(line: str) -> List[Token]:
    """Split one line into tokens; whitespace is dropped, spans are kept."""
    tokens: List[Token] = []
    pos = 0
    n = len(line)

    while pos < n:
        ch = line[pos]
        if ch in " \t":
            pos += 1
            continue

        if ch == ";":
            tokens.append(Token(SEMI, ch, pos, pos + 1))
            pos += 1
            continue

        if ch == "&":
            tokens.append(Token(AMP, ch, pos, pos + 1))
            pos += 1
            continue

        m = _CLASS.match(line, pos)
        if m:
            tokens.append(Token(CLASS, m.group(0), pos, m.end(), label=m.group(1)))
            pos = m.end()
            continue

        arrow = match_arrow(line, pos)
        if arrow is not None:
            tokens.append(arrow)
            pos = arrow.end
            continue

        # A shape only binds to the node id written right before it
        if ch in "([{" and tokens and tokens[-1].type == IDENT:
            shape = _match_shape(line, pos)
            if shape is not None:
                tokens.append(shape)
                pos = shape.end
                continue

        m = _IDENT.match(line, pos)
        if m:
            tokens.append(Token(IDENT, m.group(0), pos, m.end()))
            pos = m.end()
            continue

        # Merge runs of unrecognised characters into one TEXT token
        if tokens and tokens[-1].type == TEXT and tokens[-1].end == pos:
            prev = tokens[-1]
            prev.value += ch
            prev.end = pos + 1
        else:
            tokens.append(Token(TEXT, ch, pos, pos + 1))
        pos += 1

    return tokens


def split_statements(tokens: List[Token]) -> List[List[Token]]:
    """Split a token list on SEMI tokens, dropping empty segments."""
    segments: List[List[Token]] = []
    current: List[Token] = []
    for tok in tokens:
        if tok.type == SEMI:
            if current:
                segments.append(current)
            current = []
        else:
            current.append(tok)
    if current:
        segments.append(current)
    return segments
