"""
rendering package

Mermaid CLI render engine, the tiered fallback pipeline, and ownership of
the latest result. The Qt worker and rasteriser live in
``rendering.worker`` and ``rendering.raster``.
"""

from rendering.engine import MmdcRenderEngine, RenderEngine, RenderRejected, find_mmdc
from rendering.pipeline import RenderAttemptPipeline, sanitize_and_render
from rendering.session import RenderSession

__all__ = [
    "MmdcRenderEngine",
    "RenderAttemptPipeline",
    "RenderEngine",
    "RenderRejected",
    "RenderSession",
    "find_mmdc",
    "sanitize_and_render",
]
