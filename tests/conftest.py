"""Shared fixtures: a template tree on disk and a browser-free renderer."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from certificate_maker.renderer.templates import TemplateCatalog


def _write_pdf(path, **kwargs):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"%PDF-1.4 fake")
    return path


def _write_png(path, **kwargs):
    path = Path(path)
    path.write_bytes(b"\x89PNG fake")
    return path


@pytest.fixture
def fake_renderer():
    """Stands in for PdfRenderer; exports write small placeholder files."""
    renderer = MagicMock()
    renderer.export_pdf.side_effect = _write_pdf
    renderer.export_fitted_pdf.side_effect = lambda path, max_pages, **kw: _write_pdf(path)
    renderer.export_screenshot.side_effect = _write_png
    return renderer


@pytest.fixture
def template_dir(tmp_path) -> Path:
    """A template folder holding the top-level ``greeting`` template."""
    root = tmp_path / "templates"
    root.mkdir()
    (root / "greeting.html").write_text("Hello {{Name}}", encoding="utf-8")
    (root / "settings.yaml").write_text("file_name: '{{Name}}'\n", encoding="utf-8")
    return root


@pytest.fixture
def catalog(tmp_path, template_dir) -> TemplateCatalog:
    return TemplateCatalog(
        template_dir,
        tmp_path / "intermediaries",
        tmp_path / "results",
    )


@pytest.fixture
def roster_csv(tmp_path) -> Path:
    path = tmp_path / "roster.csv"
    path.write_text("Name,Template,File\nAda,greeting,\n", encoding="utf-8")
    return path
