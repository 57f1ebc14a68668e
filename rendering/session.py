"""
rendering/session.py

Ownership of the latest render result.

A session hands out monotonically increasing request ids. A finished
result is accepted only when its id is newer than the id of the result
currently held, so a slow render started earlier can never replace the
result of a request made after it.
"""

from __future__ import annotations

import threading
from typing import Optional

from debug_trace import trace
from models import RenderResult
from rendering.pipeline import RenderAttemptPipeline


class RenderSession:
    """Holds the newest accepted RenderResult for one display surface.

    Args:
        pipeline: Pipeline used by ``render``; defaults to a new
            ``RenderAttemptPipeline``.
    """

    def __init__(self, pipeline: Optional[RenderAttemptPipeline] = None):
        self.pipeline = pipeline if pipeline is not None else RenderAttemptPipeline()
        self._lock = threading.Lock()
        self._next_id = 0
        self._result: Optional[RenderResult] = None

    @property
    def result(self) -> Optional[RenderResult]:
        """The newest accepted result, or None before the first one."""
        with self._lock:
            return self._result

    @property
    def latest_request_id(self) -> int:
        """Id of the most recent ``begin()`` call (0 before any)."""
        with self._lock:
            return self._next_id

    def begin(self) -> int:
        """Start a new request and return its id."""
        with self._lock:
            self._next_id += 1
            trace(f"Request {self._next_id} started", "SESSION")
            return self._next_id

    def accept(self, request_id: int, result: RenderResult) -> bool:
        """Store ``result`` unless a newer request's result is already held.

        Returns:
            True if the result was stored, False if it was stale.
        """
        with self._lock:
            held = self._result.request_id if self._result is not None else 0
            if request_id <= held:
                trace(f"Discarded stale result {request_id} (holding {held})", "SESSION")
                return False
            result.request_id = request_id
            self._result = result
            trace(f"Accepted result {request_id} ({result.tier.name})", "SESSION")
            return True

    def render(self, raw_text: Optional[str], title: Optional[str] = None) -> RenderResult:
        """Render synchronously under a fresh request id.

        Returns:
            The result of this request; whether it became ``self.result``
            depends on whether a newer request finished first.
        """
        request_id = self.begin()
        result = self.pipeline.run(raw_text, title=title, request_id=request_id)
        self.accept(request_id, result)
        return result
