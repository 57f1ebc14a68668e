"""
rendering/pipeline.py

Tiered rendering of untrusted diagram text.

Each tier is a total function returning a ``TierAttempt``; a small
selection loop tries them in order and stops at the first success:

    PRIMARY    sanitizer output (or the rebuilt diagram in rebuild mode)
    SANITIZED  normalized text stripped to a safe character set
    MINIMAL    a fixed two-node error diagram
    MANUAL     a static SVG built without the engine; cannot fail
"""

from __future__ import annotations

import re
from typing import Callable, List, Optional

from debug_trace import trace, trace_exception
from models import MINIMAL_DIAGRAM, RenderResult, RenderTier, TierAttempt
from settings import get_settings
from sanitizer import has_diagram_syntax, normalize, sanitize, synthesize
from rendering.engine import MmdcRenderEngine, RenderEngine, RenderRejected
from utils import extract_mermaid_block


SANITIZED_NOTICE = "Diagram was simplified due to syntax issues"
MINIMAL_NOTICE = "Failed to render diagram due to syntax errors"
MANUAL_NOTICE = "Failed to render diagram"

_NOTICES = {
    RenderTier.PRIMARY: None,
    RenderTier.SANITIZED: SANITIZED_NOTICE,
    RenderTier.MINIMAL: MINIMAL_NOTICE,
    RenderTier.MANUAL: MANUAL_NOTICE,
}

MANUAL_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="400" height="100" viewBox="0 0 400 100">'
    '<rect x="1" y="1" width="398" height="98" rx="6" fill="#fff5f5" stroke="#e53e3e" stroke-width="2"/>'
    '<text x="200" y="55" text-anchor="middle" font-family="trebuchet ms, verdana, arial, sans-serif" '
    'font-size="16" fill="#c53030">Diagram Rendering Failed</text>'
    '</svg>'
)


def strip_to_allowed(text: str, pattern: Optional[str] = None) -> str:
    """Remove every character matched by ``pattern``.

    The default pattern keeps letters, digits, whitespace and ``[]-_>``.
    """
    if pattern is None:
        pattern = get_settings().settings.sanitizer.sanitized_strip_pattern
    return re.sub(pattern, "", text)


class RenderAttemptPipeline:
    """Render raw diagram text, falling back tier by tier.

    Args:
        engine: Render engine; defaults to ``MmdcRenderEngine()``.
        rebuild: Render the rebuilt diagram in the PRIMARY tier instead of
            the sanitized original.
        strip_pattern: Regex of characters removed in the SANITIZED tier.
    """

    def __init__(
        self,
        engine: Optional[RenderEngine] = None,
        rebuild: bool = False,
        strip_pattern: Optional[str] = None,
    ):
        self.engine = engine if engine is not None else MmdcRenderEngine()
        self.rebuild = rebuild
        self.strip_pattern = strip_pattern

    # ─────────────────────────────────────────────────────────
    # Tiers
    # ─────────────────────────────────────────────────────────

    def _attempt(self, tier: RenderTier, build: Callable[[], str]) -> TierAttempt:
        attempt = TierAttempt(tier)
        try:
            attempt.source = build()
            markup = self.engine.render(attempt.source)
        except RenderRejected as e:
            attempt.reason = str(e) or "render rejected"
        except Exception as e:
            trace_exception(f"{tier.name} tier raised")
            attempt.reason = f"{type(e).__name__}: {e}"
        else:
            if markup and markup.strip():
                attempt.markup = markup
            else:
                attempt.reason = "engine returned empty markup"
        return attempt

    def _primary(self, raw: Optional[str]) -> TierAttempt:
        if raw is not None and raw.strip() and not has_diagram_syntax(raw):
            return TierAttempt(RenderTier.PRIMARY, reason="input holds no diagram syntax")
        if self.rebuild:
            return self._attempt(RenderTier.PRIMARY, lambda: synthesize(normalize(raw)))
        return self._attempt(RenderTier.PRIMARY, lambda: sanitize(raw))

    def _sanitized(self, raw: Optional[str]) -> TierAttempt:
        if raw is not None and raw.strip() and not has_diagram_syntax(raw):
            return TierAttempt(RenderTier.SANITIZED, reason="input holds no diagram syntax")
        return self._attempt(
            RenderTier.SANITIZED,
            lambda: strip_to_allowed(normalize(raw), self.strip_pattern),
        )

    def _minimal(self, raw: Optional[str]) -> TierAttempt:
        return self._attempt(RenderTier.MINIMAL, lambda: MINIMAL_DIAGRAM)

    def _manual(self, raw: Optional[str]) -> TierAttempt:
        return TierAttempt(RenderTier.MANUAL, markup=MANUAL_SVG)

    # ─────────────────────────────────────────────────────────
    # Selection loop
    # ─────────────────────────────────────────────────────────

    def run(self, raw: Optional[str], title: Optional[str] = None, request_id: int = 0) -> RenderResult:
        """Render ``raw`` with the first tier that succeeds.

        Never raises; the MANUAL tier always produces markup.
        """
        if raw and get_settings().settings.sanitizer.extract_fenced_blocks:
            block = extract_mermaid_block(raw)
            if block is not None:
                trace("Using fenced mermaid block from input", "TIER")
                raw = block

        failures: List[TierAttempt] = []
        # MANUAL always succeeds, so the loop always ends on a success
        for tier_fn in (self._primary, self._sanitized, self._minimal, self._manual):
            attempt = tier_fn(raw)
            if attempt.ok:
                break
            trace(f"Request {request_id}: {attempt.tier.name} failed: {attempt.reason}", "TIER")
            failures.append(attempt)

        trace(f"Request {request_id}: rendered by {attempt.tier.name}", "TIER")
        return RenderResult(
            markup=attempt.markup,
            tier=attempt.tier,
            diagnostic=_NOTICES[attempt.tier],
            source=attempt.source,
            title=title,
            request_id=request_id,
            failures=failures,
        )


def sanitize_and_render(
    raw_text: Optional[str],
    engine: Optional[RenderEngine] = None,
    title: Optional[str] = None,
    rebuild: bool = False,
) -> RenderResult:
    """Sanitize ``raw_text`` and render it, falling back as needed.

    Args:
        raw_text: Diagram text from the generator; may be None, empty,
            fenced in markdown, or mixed with prose.
        engine: Render engine; defaults to the Mermaid CLI.
        title: Display title carried through to the result.
        rebuild: Rebuild the diagram from its nodes and edges before the
            first render attempt.

    Returns:
        A RenderResult whose tier says which strategy produced the markup.
    """
    return RenderAttemptPipeline(engine, rebuild=rebuild).run(raw_text, title=title)
