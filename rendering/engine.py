"""
rendering/engine.py

Render Mermaid diagram text to SVG with the Mermaid CLI (``mmdc``).

The diagram text is written to a temporary directory, ``mmdc`` renders it
there, and the SVG text is read back; the temporary directory is always
removed. Any failure (missing executable, syntax rejection, timeout, no
output) surfaces as ``RenderRejected``.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional

from debug_trace import trace
from settings import get_settings


class RenderRejected(RuntimeError):
    """The render engine refused or failed to render a diagram."""


class RenderEngine:
    """Interface for anything that turns diagram text into markup."""

    def render(self, text: str) -> str:
        """Render ``text`` and return the markup.

        Raises:
            RenderRejected: If the text cannot be rendered.
        """
        raise NotImplementedError


def find_mmdc() -> Optional[str]:
    """Find the Mermaid CLI (mmdc) executable.

    Search order:
        1. diagramguard settings (render.mmdc_path)
        2. MMDC_PATH environment variable
        3. mmdc on system PATH

    Returns:
        Path to mmdc executable if found, None otherwise.
    """
    # 1. Settings
    configured = get_settings().settings.render.mmdc_path
    if configured and os.path.isfile(configured):
        return configured

    # 2. Environment variable
    env_path = os.environ.get("MMDC_PATH")
    if env_path and os.path.isfile(env_path):
        return env_path

    # 3. System PATH
    return shutil.which("mmdc")


class MmdcRenderEngine(RenderEngine):
    """Render engine backed by the ``mmdc`` command line tool.

    Args:
        mmdc_path: Executable to run. Defaults to ``find_mmdc()``.
        timeout: Seconds before a render is abandoned.
        use_npx: Run ``npx -y @mermaid-js/mermaid-cli`` instead of ``mmdc``.
        background: Background colour passed to ``mmdc -b``.

    Unset arguments are taken from the ``[render]`` settings section.
    """

    def __init__(
        self,
        mmdc_path: Optional[str] = None,
        timeout: Optional[float] = None,
        use_npx: Optional[bool] = None,
        background: Optional[str] = None,
    ):
        config = get_settings().settings.render
        self.mmdc_path = mmdc_path
        self.timeout = config.timeout_seconds if timeout is None else timeout
        self.use_npx = config.use_npx if use_npx is None else use_npx
        self.background = config.background if background is None else background

    def _command(self) -> List[str]:
        if self.use_npx:
            npx = shutil.which("npx")
            if npx is None:
                raise RenderRejected("npx not found; install Node.js or disable render.use_npx")
            return [npx, "-y", "@mermaid-js/mermaid-cli"]

        mmdc = self.mmdc_path or find_mmdc()
        if mmdc is None:
            raise RenderRejected(
                "Mermaid CLI (mmdc) not found.\n\n"
                "Install with:  npm install -g @mermaid-js/mermaid-cli\n\n"
                "Or set the MMDC_PATH environment variable to the mmdc executable."
            )
        return [mmdc]

    def render(self, text: str) -> str:
        tmp_dir = tempfile.mkdtemp(prefix="diagramguard_mmd_")
        try:
            source = Path(tmp_dir) / "diagram.mmd"
            output = Path(tmp_dir) / "diagram.svg"
            source.write_text(text, encoding="utf-8")

            cmd = self._command() + ["-i", str(source), "-o", str(output)]
            if self.background:
                cmd += ["-b", self.background]
            trace(f"mmdc command: {' '.join(cmd)}", "MMDC")

            try:
                result = subprocess.run(
                    cmd,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout,
                )
            except subprocess.TimeoutExpired:
                raise RenderRejected(f"mmdc timed out after {self.timeout:g}s")
            except OSError as e:
                raise RenderRejected(f"mmdc could not be started: {e}")

            if result.returncode != 0:
                raise RenderRejected(
                    f"mmdc rendering failed (exit {result.returncode}):\n"
                    f"{result.stderr.strip()}"
                )

            # Verify output was created
            if not output.is_file():
                raise RenderRejected(
                    f"mmdc ran successfully but produced no SVG output.\n"
                    f"Command: {' '.join(cmd)}\n"
                    f"stdout: {result.stdout.strip()}\n"
                    f"stderr: {result.stderr.strip()}"
                )

            return output.read_text(encoding="utf-8")
        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)
