"""
main.py

Command line entry point for diagramguard.

Reads diagram text (or a whole AI response) from a file or stdin,
sanitizes it, renders it through the tiered pipeline and writes the
resulting SVG, or only the sanitized text with ``--sanitize-only``.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

import debug_trace
from debug_trace import trace, close_log
from rendering import sanitize_and_render
from sanitizer import normalize, sanitize, synthesize
from utils import extract_mermaid_block, extract_mermaid_diagram


def _read_input(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def _write_output(text: str, target: Optional[str]) -> None:
    if target is None or target == "-":
        sys.stdout.write(text)
        if not text.endswith("\n"):
            sys.stdout.write("\n")
        return
    Path(target).write_text(text, encoding="utf-8")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="diagramguard",
        description="Sanitize and render Mermaid flowcharts produced by AI models.",
    )
    ap.add_argument("input", help="Diagram text file, or '-' for stdin")
    ap.add_argument("-o", "--output", default=None, help="Output path (default: stdout)")
    ap.add_argument("--title", default=None, help="Display title carried on the result")
    ap.add_argument("--sanitize-only", action="store_true",
                    help="Write the sanitized diagram text instead of rendering it")
    ap.add_argument("--rebuild", action="store_true",
                    help="Rebuild the diagram from its nodes and edges before rendering")
    ap.add_argument("--from-response", action="store_true",
                    help="Input is a full AI response; locate the diagram inside it first")
    ap.add_argument("--png", default=None, metavar="OUT.png",
                    help="Also rasterise the rendered SVG to this PNG file")
    ap.add_argument("--trace", action="store_true", help="Print trace output to stderr")
    return ap


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the CLI; returns the process exit code."""
    args = build_parser().parse_args(argv)

    debug_trace.configure_from_settings()
    if args.trace:
        debug_trace.configure(True, debug_trace.LOG_FILE, debug_trace.CATEGORIES)

    try:
        raw = _read_input(args.input)
    except OSError as e:
        print(f"diagramguard: cannot read {args.input}: {e}", file=sys.stderr)
        return 2

    if args.from_response:
        raw = extract_mermaid_diagram(raw)

    try:
        if args.sanitize_only:
            raw = extract_mermaid_block(raw) or raw
            text = synthesize(normalize(raw)) if args.rebuild else sanitize(raw)
            _write_output(text, args.output)
            return 0

        result = sanitize_and_render(raw, title=args.title, rebuild=args.rebuild)
        print(f"tier: {result.tier.value}", file=sys.stderr)
        if result.diagnostic:
            print(f"diagnostic: {result.diagnostic}", file=sys.stderr)
        for failure in result.failures:
            trace(f"{failure.tier.name}: {failure.reason}", "TIER")

        _write_output(result.markup, args.output)

        if args.png:
            from rendering.raster import render_svg_to_png
            try:
                render_svg_to_png(result.markup, args.png)
            except RuntimeError as e:
                print(f"diagramguard: PNG export failed: {e}", file=sys.stderr)
                return 1
        return 0
    finally:
        close_log()


if __name__ == "__main__":
    sys.exit(main())
