"""Tests for main.py: the diagramguard command line."""
from __future__ import annotations

import io

import pytest

import main as cli
from rendering.engine import RenderEngine
from rendering.pipeline import sanitize_and_render


class EchoEngine(RenderEngine):
    def render(self, text):
        return f"<svg>{text}</svg>"


@pytest.fixture
def fake_render(monkeypatch):
    def render(raw, title=None, rebuild=False):
        return sanitize_and_render(raw, engine=EchoEngine(), title=title, rebuild=rebuild)

    monkeypatch.setattr(cli, "sanitize_and_render", render)


class TestSanitizeOnly:

    def test_file_to_stdout(self, tmp_path, capsys):
        src = tmp_path / "in.mmd"
        src.write_text("B --> C", encoding="utf-8")
        assert cli.main([str(src), "--sanitize-only"]) == 0
        out = capsys.readouterr().out
        assert out.startswith("graph TD\n")
        assert "    B[B]" in out

    def test_stdin(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO("graph LR\n    A --> "))
        assert cli.main(["-", "--sanitize-only"]) == 0
        assert "A --> Unknown" in capsys.readouterr().out

    def test_rebuild(self, tmp_path, capsys):
        src = tmp_path / "in.mmd"
        src.write_text("graph LR\n    A[Start] --> B\n    style A fill:#f00", encoding="utf-8")
        assert cli.main([str(src), "--sanitize-only", "--rebuild"]) == 0
        assert capsys.readouterr().out == "graph TD\n    A[Start]\n    B[B]\n    A --> B\n"

    def test_output_file(self, tmp_path):
        src = tmp_path / "in.mmd"
        dst = tmp_path / "out.mmd"
        src.write_text("```mermaid\nA --> B\n```", encoding="utf-8")
        assert cli.main([str(src), "--sanitize-only", "-o", str(dst)]) == 0
        assert dst.read_text(encoding="utf-8").startswith("graph TD")

    def test_from_response(self, tmp_path, capsys):
        src = tmp_path / "response.txt"
        src.write_text("Overview: a tool.\n\nDiagram:\ngraph TD\n    UI --> API\n", encoding="utf-8")
        assert cli.main([str(src), "--sanitize-only", "--from-response"]) == 0
        out = capsys.readouterr().out
        assert "UI --> API" in out
        assert "Overview" not in out


class TestRender:

    def test_primary(self, tmp_path, capsys, fake_render):
        src = tmp_path / "in.mmd"
        dst = tmp_path / "out.svg"
        src.write_text("graph TD\n    A[Start] --> B[End]", encoding="utf-8")
        assert cli.main([str(src), "-o", str(dst), "--title", "Flow"]) == 0
        assert "tier: primary" in capsys.readouterr().err
        assert dst.read_text(encoding="utf-8").startswith("<svg>graph TD")

    def test_fallback_reports_diagnostic(self, tmp_path, capsys, fake_render):
        src = tmp_path / "in.txt"
        src.write_text("Sorry, I was unable to create the diagram.", encoding="utf-8")
        assert cli.main([str(src)]) == 0
        captured = capsys.readouterr()
        assert "tier: minimal" in captured.err
        assert "diagnostic:" in captured.err
        assert captured.out.startswith("<svg>")

    def test_trace_flag(self, tmp_path, capsys, fake_render):
        src = tmp_path / "in.mmd"
        src.write_text("A --> B", encoding="utf-8")
        assert cli.main([str(src), "--trace"]) == 0
        assert "[TIER]" in capsys.readouterr().err


class TestErrors:

    def test_missing_input(self, tmp_path, capsys):
        assert cli.main([str(tmp_path / "missing.mmd")]) == 2
        assert "cannot read" in capsys.readouterr().err
