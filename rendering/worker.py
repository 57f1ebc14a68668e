"""
rendering/worker.py

Background worker that runs the render pipeline off the UI thread.
"""

from __future__ import annotations

import traceback
from typing import Optional, Tuple

from PyQt6.QtCore import QObject, QThread, pyqtSignal

from rendering.session import RenderSession


class RenderWorker(QObject):
    """
    Background worker that renders one request of a RenderSession.

    Signals:
        finished(int, object): Emitted with the request id and RenderResult
        failed(int, str): Emitted with the request id and error message
    """

    finished = pyqtSignal(int, object)
    failed = pyqtSignal(int, str)

    def __init__(self, session: RenderSession, request_id: int,
                 raw_text: Optional[str], title: Optional[str] = None):
        super().__init__()
        self.session = session
        self.request_id = request_id
        self.raw_text = raw_text
        self.title = title

    def run(self):
        """Execute the render request."""
        try:
            result = self.session.pipeline.run(
                self.raw_text, title=self.title, request_id=self.request_id
            )
            self.finished.emit(self.request_id, result)
        except Exception as e:
            msg = f"{e}\n\n{traceback.format_exc()}"
            self.failed.emit(self.request_id, msg)


def start_render_thread(session: RenderSession, raw_text: Optional[str],
                        title: Optional[str] = None) -> Tuple[QThread, RenderWorker]:
    """Start a render request on a new QThread.

    The finished result is offered to ``session.accept``, which discards it
    if a newer request has already delivered. The caller must keep the
    returned thread and worker referenced until the thread finishes.

    Returns:
        ``(thread, worker)``; connect to ``worker.finished`` to be told
        when the result arrives.
    """
    request_id = session.begin()

    thread = QThread()
    worker = RenderWorker(session, request_id, raw_text, title)
    worker.moveToThread(thread)

    thread.started.connect(worker.run)
    worker.finished.connect(session.accept)
    worker.finished.connect(thread.quit)
    worker.failed.connect(thread.quit)
    worker.finished.connect(worker.deleteLater)
    worker.failed.connect(worker.deleteLater)
    thread.finished.connect(thread.deleteLater)

    thread.start()
    return thread, worker
