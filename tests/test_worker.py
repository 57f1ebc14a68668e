"""Tests for rendering/worker.py: QThread render worker."""
from __future__ import annotations

import time

import pytest

QtCore = pytest.importorskip("PyQt6.QtCore")

from models import RenderTier  # noqa: E402
from rendering.engine import RenderEngine  # noqa: E402
from rendering.pipeline import RenderAttemptPipeline  # noqa: E402
from rendering.session import RenderSession  # noqa: E402
from rendering.worker import RenderWorker, start_render_thread  # noqa: E402


class EchoEngine(RenderEngine):
    def render(self, text):
        return f"<svg>{text}</svg>"


class BrokenPipeline:
    def run(self, raw_text, title=None, request_id=0):
        raise RuntimeError("pipeline unavailable")


_apps = []


@pytest.fixture
def app():
    instance = QtCore.QCoreApplication.instance()
    if instance is None:
        instance = QtCore.QCoreApplication([])
        _apps.append(instance)
    return instance


class TestRenderWorker:

    def test_finished_signal(self, app):
        session = RenderSession(RenderAttemptPipeline(EchoEngine()))
        worker = RenderWorker(session, 3, "A --> B", title="Flow")
        got = []
        worker.finished.connect(lambda request_id, result: got.append((request_id, result)))
        worker.run()
        assert len(got) == 1
        request_id, result = got[0]
        assert request_id == 3
        assert result.request_id == 3
        assert result.title == "Flow"
        assert result.tier is RenderTier.PRIMARY

    def test_failed_signal(self, app):
        worker = RenderWorker(RenderSession(BrokenPipeline()), 1, "A --> B")
        errors = []
        worker.failed.connect(lambda request_id, msg: errors.append((request_id, msg)))
        worker.run()
        assert errors[0][0] == 1
        assert "pipeline unavailable" in errors[0][1]


class TestStartRenderThread:

    def test_result_reaches_session(self, app):
        session = RenderSession(RenderAttemptPipeline(EchoEngine()))
        thread, worker = start_render_thread(session, "A --> B", title="Flow")

        deadline = time.monotonic() + 10
        while session.result is None and time.monotonic() < deadline:
            app.processEvents()
            time.sleep(0.01)
        thread.wait(5000)

        assert session.result is not None
        assert session.result.request_id == 1
        assert session.result.title == "Flow"
