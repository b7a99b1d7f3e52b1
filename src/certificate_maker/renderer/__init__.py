"""Document rendering package: turns records into print-ready files.

Uses Jinja2 templates + Playwright (headless Chromium) for PDF generation.
"""

from __future__ import annotations

from certificate_maker.renderer.pdf_engine import PdfRenderer
from certificate_maker.renderer.pipeline import (
    GeneratedArtifact,
    RenderPipeline,
    build_render_context,
)
from certificate_maker.renderer.templates import Template, TemplateCatalog

__all__ = [
    "PdfRenderer",
    "GeneratedArtifact",
    "RenderPipeline",
    "build_render_context",
    "Template",
    "TemplateCatalog",
]
