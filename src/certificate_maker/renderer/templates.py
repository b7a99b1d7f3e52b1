"""Template catalog: loads, compiles and caches certificate templates.

Templates live under the template folder as::

    <template_folder>/<path>/<slug>.html
    <template_folder>/<path>/settings.yaml

and are referred to by the slash-qualified name ``<path>/<slug>``.  All
templates in one folder share that folder's ``settings.yaml``, which must
at least provide the ``file_name`` pattern.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jinja2
import yaml

from certificate_maker.exceptions import TemplateInvalid, TemplateNotFound
from certificate_maker.renderer.filters import setup_jinja_env

logger = logging.getLogger(__name__)

SETTINGS_FILE_NAME = "settings.yaml"

OUTPUT_PDF = "pdf"
OUTPUT_PNG = "png"

# settings.yaml keys passed straight through to PdfRenderer.export_pdf
_PDF_OPTION_KEYS = ("format", "landscape", "margin", "width", "height", "scale", "print_background")


@dataclass
class Template:
    name: str                       # e.g. "awards/gold"
    file_slug: str                  # "gold"
    path_slug: str                  # "awards" ("" for top-level templates)
    path: Path                      # folder holding the .html and settings.yaml
    template_file: Path
    intermediary_folder: Path
    output_folder: Path
    file_name: str                  # raw filename pattern from settings
    compiled_template: jinja2.Template
    compiled_file_name: jinja2.Template
    settings: dict[str, Any] = field(default_factory=dict)

    @property
    def base_path(self) -> str:
        """Absolute template folder with a trailing slash, for asset links."""
        return self.path.resolve().as_posix() + "/"

    @property
    def output_type(self) -> str:
        return str(self.settings.get("output", OUTPUT_PDF)).lower()

    @property
    def max_pages(self) -> int | None:
        return self.settings.get("max_pages")

    @property
    def viewport(self) -> dict | None:
        return self.settings.get("viewport")

    def pdf_options(self) -> dict[str, Any]:
        """Per-template overrides for the PDF export (format, landscape, ...)."""
        return {k: self.settings[k] for k in _PDF_OPTION_KEYS if k in self.settings}

    def render_contents(self, context: dict) -> str:
        return self.compiled_template.render(context)

    def render_file_name(self, context: dict) -> str:
        return self.compiled_file_name.render(context)


def split_template_name(name: str) -> tuple[str, str]:
    """Split ``"a/b/slug"`` into ``("a/b", "slug")``."""
    path_slug, _, file_slug = name.strip().strip("/").rpartition("/")
    return path_slug, file_slug


def _parse_max_pages(settings_file: Path, value: Any) -> int:
    try:
        pages = int(value)
    except (TypeError, ValueError):
        pages = 0
    if isinstance(value, bool) or pages < 1:
        raise TemplateInvalid(
            f"{settings_file}: max_pages must be a positive whole number, got {value!r}"
        )
    return pages


class TemplateCatalog:
    """Loads each template on first use and keeps it for the whole run."""

    def __init__(
        self,
        template_folder: str | Path,
        intermediary_folder: str | Path,
        output_folder: str | Path,
    ):
        self.template_folder = Path(template_folder)
        self.intermediary_folder = Path(intermediary_folder)
        self.output_folder = Path(output_folder)
        self.env = setup_jinja_env(self.template_folder)
        self._templates: dict[str, Template] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._templates

    def __len__(self) -> int:
        return len(self._templates)

    def get(self, name: str) -> Template:
        """Return the cached template, loading it on first reference."""
        template = self._templates.get(name)
        if template is None:
            template = self._load(name)
            self._templates[name] = template
        return template

    # -- Loading ------------------------------------------------------------

    def _load(self, name: str) -> Template:
        path_slug, file_slug = split_template_name(name)
        if not file_slug:
            raise TemplateNotFound("No template name given")

        path = self.template_folder / path_slug
        root = self.template_folder.resolve()
        if root != path.resolve() and root not in path.resolve().parents:
            raise TemplateNotFound(f"Template {name!r} is outside {self.template_folder}")

        template_file = path / f"{file_slug}.html"
        settings_file = path / SETTINGS_FILE_NAME

        settings = self._read_settings(name, settings_file)

        file_name = settings.get("file_name")
        if not file_name:
            raise TemplateInvalid(f"{settings_file} does not define 'file_name'")

        if settings.get("max_pages") is not None:
            settings["max_pages"] = _parse_max_pages(settings_file, settings["max_pages"])

        intermediary_folder = Path(
            settings.get("intermediary_folder") or self.intermediary_folder / path_slug
        )
        output_folder = Path(settings.get("output_folder") or self.output_folder / path_slug)
        intermediary_folder.mkdir(parents=True, exist_ok=True)
        output_folder.mkdir(parents=True, exist_ok=True)

        try:
            contents = template_file.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise TemplateNotFound(f"Template file not found: {template_file}") from exc

        try:
            compiled_template = self.env.from_string(contents)
            compiled_file_name = self.env.from_string(str(file_name))
        except jinja2.TemplateSyntaxError as exc:
            raise TemplateInvalid(
                f"Template {name!r} has a syntax error on line {exc.lineno}: {exc.message}"
            ) from exc

        template = Template(
            name=name,
            file_slug=file_slug,
            path_slug=path_slug,
            path=path,
            template_file=template_file,
            intermediary_folder=intermediary_folder,
            output_folder=output_folder,
            file_name=str(file_name),
            compiled_template=compiled_template,
            compiled_file_name=compiled_file_name,
            settings=settings,
        )
        logger.info("Template loaded: %s (%s)", name, template_file)
        logger.debug("Template settings for %s: %s", name, settings)
        return template

    @staticmethod
    def _read_settings(name: str, settings_file: Path) -> dict[str, Any]:
        try:
            raw = settings_file.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise TemplateNotFound(
                f"Settings file for template {name!r} not found: {settings_file}"
            ) from exc

        try:
            settings = yaml.safe_load(raw) or {}
        except yaml.YAMLError as exc:
            raise TemplateInvalid(f"Could not parse {settings_file}: {exc}") from exc

        if not isinstance(settings, dict):
            raise TemplateInvalid(f"{settings_file} must contain a mapping of settings")
        return settings
