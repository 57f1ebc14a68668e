"""
rendering/raster.py

Rasterise rendered diagram SVG to PNG using Qt's SVG renderer.

Mermaid outputs ``<foreignObject>`` with embedded XHTML for all text
labels. Qt's ``QSvgRenderer`` cannot render ``<foreignObject>``, so the
SVG is pre-processed first, replacing each ``<foreignObject>`` with a
native SVG ``<text>`` element, and CSS class rules are inlined as
presentation attributes.
"""

from __future__ import annotations

import os
import re
import sys
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional

from PyQt6.QtCore import QByteArray, QSize, Qt
from PyQt6.QtGui import QGuiApplication, QImage, QPainter
from PyQt6.QtSvg import QSvgRenderer

from debug_trace import trace
from settings import get_settings

# Register namespaces so ET.tostring() doesn't mangle them with ns0/ns1 prefixes
ET.register_namespace("", "http://www.w3.org/2000/svg")
ET.register_namespace("xlink", "http://www.w3.org/1999/xlink")

_SVG_NS = "http://www.w3.org/2000/svg"
_XHTML_NS = "http://www.w3.org/1999/xhtml"

# Presentation attributes that Qt's SVG renderer honours
_SVG_ATTRS = {
    "stroke", "fill", "stroke-width", "stroke-dasharray",
    "stroke-linecap", "stroke-linejoin", "stroke-opacity",
    "fill-opacity", "opacity", "font-size", "font-family",
    "font-weight", "font-style", "text-anchor",
    "dominant-baseline", "visibility",
}


# Keeps an application created here alive for the rest of the process
_app: Optional[QGuiApplication] = None


def _ensure_gui_application() -> QGuiApplication:
    """Text rendering needs a QGuiApplication; start an offscreen one if absent."""
    global _app
    app = QGuiApplication.instance()
    if app is None:
        os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
        app = _app = QGuiApplication(sys.argv[:1])
    elif not isinstance(app, QGuiApplication):
        raise RuntimeError("A non-GUI QCoreApplication is running; PNG export needs QGuiApplication")
    return app


def render_svg_to_png(svg_text: str, png_path: str, scale: Optional[float] = None) -> str:
    """Rasterise SVG markup to a PNG file.

    Args:
        svg_text: SVG document text, e.g. ``RenderResult.markup``.
        png_path: Destination file.
        scale: Scale factor applied to the SVG's default size; defaults to
            the ``render.png_scale`` setting.

    Returns:
        ``png_path``.

    Raises:
        RuntimeError: If the SVG cannot be loaded, rendered or saved.
    """
    if scale is None:
        scale = get_settings().settings.render.png_scale

    _ensure_gui_application()
    fixed_svg = preprocess_svg_for_qt(svg_text)

    renderer = QSvgRenderer(QByteArray(fixed_svg.encode("utf-8")))
    if not renderer.isValid():
        raise RuntimeError("QSvgRenderer could not load the SVG markup")

    default_size = renderer.defaultSize()
    if default_size.isEmpty():
        raise RuntimeError("SVG has no intrinsic size")

    target_w = int(default_size.width() * scale)
    target_h = int(default_size.height() * scale)

    image = QImage(
        QSize(target_w, target_h),
        QImage.Format.Format_ARGB32_Premultiplied,
    )
    image.fill(Qt.GlobalColor.white)

    painter = QPainter(image)
    renderer.render(painter)
    painter.end()

    if not image.save(png_path, "PNG"):
        raise RuntimeError(f"Failed to save rendered PNG: {png_path}")

    trace(f"Wrote {target_w}x{target_h} PNG to {png_path}", "MMDC")
    return png_path


# ─────────────────────────────────────────────────────────
# SVG clean-up for QSvgRenderer
# ─────────────────────────────────────────────────────────

_CLASS_RULE = re.compile(r"\.([a-zA-Z0-9_-]+)\s*\{([^}]+)\}")
_DECLARATION = re.compile(r"([\w-]+)\s*:\s*([^;]+)")
_CSS_SIZE = {
    "width": re.compile(r"(?<![\w-])width:\s*([\d.]+)px"),
    "height": re.compile(r"(?<![\w-])height:\s*([\d.]+)px"),
}

_LABEL_FONT = "trebuchet ms, verdana, arial, sans-serif"


def _set_size_from_css(root: ET.Element) -> None:
    """Give a root with only a CSS size an explicit viewBox, width and height."""
    if root.get("viewBox"):
        return
    style = root.get("style", "")
    sizes = {name: pattern.search(style) for name, pattern in _CSS_SIZE.items()}
    if not all(sizes.values()):
        return
    width, height = sizes["width"].group(1), sizes["height"].group(1)
    root.set("viewBox", f"0 0 {width} {height}")
    root.set("width", width)
    root.set("height", height)


def _class_rules(css_text: str) -> Dict[str, Dict[str, str]]:
    """Map class name -> presentation attributes from ``.name { ... }`` rules.

    For compound selectors such as ``#mermaid-svg .edge`` the last class
    token is used.
    """
    rules: Dict[str, Dict[str, str]] = {}
    for rule in _CLASS_RULE.finditer(css_text):
        props = {
            decl.group(1).strip(): decl.group(2).strip()
            for decl in _DECLARATION.finditer(rule.group(2))
            if decl.group(1).strip() in _SVG_ATTRS
        }
        if props:
            rules.setdefault(rule.group(1), {}).update(props)
    return rules


def _remove_all(root: ET.Element, tag: str) -> List[str]:
    """Remove every ``tag`` element; return the text they held."""
    parents = {child: parent for parent in root.iter() for child in parent}
    texts: List[str] = []
    for el in list(root.iter(tag)):
        if el.text:
            texts.append(el.text)
        parent = parents.get(el)
        if parent is not None:
            parent.remove(el)
    return texts


def _inline_css_classes(root: ET.Element) -> None:
    """Move ``<style>`` class rules onto the elements as attributes.

    QSvgRenderer ignores ``<style>``; explicit attributes already on an
    element win over the class rule.
    """
    rules = _class_rules("\n".join(_remove_all(root, f"{{{_SVG_NS}}}style")))
    if not rules:
        return
    for el in root.iter():
        for token in el.get("class", "").split():
            for prop, value in rules.get(token, {}).items():
                if el.get(prop) is None:
                    el.set(prop, value)


def _box_length(value: Optional[str]) -> float:
    # Percent sizes carry no usable box
    if not value or value.endswith("%"):
        return 0.0
    return float(value)


def _label_text_element(fo: ET.Element, parent: ET.Element) -> Optional[ET.Element]:
    """Build the ``<text>`` that replaces a label ``<foreignObject>``.

    Returns None for empty or zero-size placeholders.
    """
    content = _extract_fo_text(fo)
    width = _box_length(fo.get("width"))
    height = _box_length(fo.get("height"))
    if not content or width < 1 or height < 1:
        return None

    text_el = ET.Element(f"{{{_SVG_NS}}}text", {
        "x": str(round(width / 2, 2)),
        "y": str(round(height / 2, 2)),
        "text-anchor": "middle",
        "dominant-baseline": "central",
        "font-family": _LABEL_FONT,
        "font-size": str(_guess_font_size(parent)),
        "fill": "#333",
    })
    text_el.text = content
    return text_el


def preprocess_svg_for_qt(svg_text: str) -> str:
    """Return a copy of Mermaid SVG markup that QSvgRenderer draws correctly.

    Mermaid writes every label as XHTML inside ``<foreignObject>``, which
    Qt skips. Each one is replaced by a native ``<text>`` centred in the
    same box. CSS class rules are inlined, XHTML ``<style>`` blocks are
    dropped, and a CSS-only size becomes a viewBox.
    """
    root = ET.fromstring(svg_text)

    _set_size_from_css(root)
    _inline_css_classes(root)
    _remove_all(root, f"{{{_XHTML_NS}}}style")

    parents = {child: parent for parent in root.iter() for child in parent}
    for fo in list(root.iter(f"{{{_SVG_NS}}}foreignObject")):
        parent = parents.get(fo)
        if parent is None:
            continue
        index = list(parent).index(fo)
        parent.remove(fo)
        replacement = _label_text_element(fo, parent)
        if replacement is not None:
            parent.insert(index, replacement)

    return ET.tostring(root, encoding="unicode")


def _extract_fo_text(fo: ET.Element) -> str:
    """Join the readable text of a ``<foreignObject>``'s XHTML content.

    Font Awesome ``<i class="fa ...">`` icons contribute only their tail.
    """
    parts: List[str] = []
    for el in fo.iter():
        local = el.tag.rsplit("}", 1)[-1]
        icon = local == "i" and "fa" in el.get("class", "")
        if el.text and el.text.strip() and not icon:
            parts.append(el.text.strip())
        if el.tail and el.tail.strip():
            parts.append(el.tail.strip())
    return " ".join(parts)


def _guess_font_size(label_g: ET.Element) -> int:
    """Edge labels (``edgeLabel`` groups, ``L_`` ids) get 12px, nodes 14px."""
    if "edgeLabel" in label_g.get("class", "") or label_g.get("data-id", "").startswith("L_"):
        return 12
    return 14
