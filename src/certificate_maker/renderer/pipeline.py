"""Per-record render pipeline.

Turns one record into one generated file:

  bind -> render -> materialize -> distribute -> persist -> cleanup

Steps run strictly in order; the first failure ends the pipeline, but
cleanup always runs.  The pipeline never touches the table directly: the
file reference is handed to a ``persist`` callback owned by the caller.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional

import jinja2

from certificate_maker.data.models import RecordRow
from certificate_maker.exceptions import ConversionError, RenderError, TemplateNotFound
from certificate_maker.renderer.templates import OUTPUT_PNG, Template, TemplateCatalog
from certificate_maker.renderer.text_utils import clean_filename

if TYPE_CHECKING:
    from certificate_maker.google.drive import DriveUploader
    from certificate_maker.renderer.pdf_engine import PdfRenderer

logger = logging.getLogger(__name__)

# Reserved render-context keys; record columns with these names are
# still reachable through h["..."].
RECORD_ALIASES = ("h", "header")
SYSTEM_KEY = "s"


class PipelineStep(Enum):
    PENDING = "pending"
    BIND = "bind"
    RENDER = "render"
    MATERIALIZE = "materialize"
    DISTRIBUTE = "distribute"
    PERSIST = "persist"
    DONE = "done"


@dataclass
class GeneratedArtifact:
    intermediary_path: Optional[Path] = None
    output_path: Optional[Path] = None
    remote_url: Optional[str] = None

    @property
    def reference(self) -> str:
        """What gets written back to the table: the URL if uploaded, else the local path."""
        if self.remote_url:
            return self.remote_url
        return str(self.output_path) if self.output_path else ""


def build_render_context(
    fields: dict[str, str], template: Template, timestamp: int | None = None,
) -> dict:
    """Build the mapping a template is rendered against.

    Aliases go in first and are never replaced by a same-named column.
    """
    record = dict(fields)
    context: dict = {alias: record for alias in RECORD_ALIASES}
    context[SYSTEM_KEY] = {
        "path": template.base_path,
        "timestamp": timestamp if timestamp is not None else int(time.time() * 1000),
    }
    for key, value in record.items():
        if key in context:
            continue
        context[key] = value
    return context


class RenderPipeline:
    """Generates the file for a single record."""

    def __init__(
        self,
        record: RecordRow,
        *,
        catalog: TemplateCatalog,
        renderer: PdfRenderer,
        default_template: str = "",
        template_override: Optional[str] = None,
        uploader: Optional[DriveUploader] = None,
        persist: Optional[Callable[[str], None]] = None,
        preserve_intermediary: bool = False,
        preserve_output: bool = True,
    ):
        self.record = record
        self.catalog = catalog
        self.renderer = renderer
        self.template_name = template_override or default_template
        self.uploader = uploader
        self.persist = persist
        self.preserve_intermediary = preserve_intermediary
        self.preserve_output = preserve_output

        self.step = PipelineStep.PENDING
        self.template: Optional[Template] = None
        self.context: dict = {}
        self.contents = ""
        self.file_name = ""
        self.artifact = GeneratedArtifact()

    def run(self) -> GeneratedArtifact:
        """Run every step for this record; cleanup runs even on failure."""
        try:
            self.bind()
            self.render()
            self.materialize()
            self.distribute()
            self.persist_reference()
            self.step = PipelineStep.DONE
        except Exception:
            logger.error("Record #%d failed during %s", self.record.index, self.step.value)
            raise
        finally:
            self.cleanup()
        return self.artifact

    # -- Steps --------------------------------------------------------------

    def bind(self) -> None:
        self.step = PipelineStep.BIND
        if not self.template_name:
            raise TemplateNotFound(
                f"Record #{self.record.index} names no template and no default is set"
            )
        self.template = self.catalog.get(self.template_name)
        self.context = build_render_context(self.record.fields, self.template)

    def render(self) -> None:
        self.step = PipelineStep.RENDER
        try:
            self.contents = self.template.render_contents(self.context)
            raw_name = self.template.render_file_name(self.context)
        except jinja2.TemplateError as exc:
            raise RenderError(
                f"Template {self.template.name!r} failed for record #{self.record.index}: {exc}"
            ) from exc
        except OSError as exc:
            raise RenderError(
                f"Template {self.template.name!r} could not read a file for "
                f"record #{self.record.index}: {exc}"
            ) from exc
        except Exception as exc:
            raise RenderError(
                f"Template {self.template.name!r} failed for record #{self.record.index}: "
                f"{type(exc).__name__}: {exc}"
            ) from exc

        self.file_name = clean_filename(raw_name)
        if not self.file_name:
            raise RenderError(
                f"File name pattern {self.template.file_name!r} rendered empty "
                f"for record #{self.record.index}"
            )

    def materialize(self) -> None:
        self.step = PipelineStep.MATERIALIZE
        template = self.template

        html_path = template.intermediary_folder / f"{self.file_name}.html"
        self.artifact.intermediary_path = html_path
        try:
            html_path.write_text(self.contents, encoding="utf-8")
        except OSError as exc:
            raise ConversionError(f"Could not write {html_path}: {exc}") from exc

        self.renderer.navigate(html_path.resolve().as_uri())

        if template.output_type == OUTPUT_PNG:
            output_path = template.output_folder / f"{self.file_name}.png"
            self.artifact.output_path = output_path
            self.renderer.export_screenshot(output_path, viewport=template.viewport)
        else:
            output_path = template.output_folder / f"{self.file_name}.pdf"
            self.artifact.output_path = output_path
            if template.max_pages:
                self.renderer.export_fitted_pdf(
                    output_path, template.max_pages, **template.pdf_options()
                )
            else:
                self.renderer.export_pdf(output_path, **template.pdf_options())

        logger.debug("Record #%d rendered to %s", self.record.index, output_path)

    def distribute(self) -> None:
        if self.uploader is None:
            return
        self.step = PipelineStep.DISTRIBUTE
        self.artifact.remote_url = self.uploader.upload(self.artifact.output_path)

    def persist_reference(self) -> None:
        if self.persist is None:
            return
        self.step = PipelineStep.PERSIST
        self.persist(self.artifact.reference)

    def cleanup(self) -> None:
        """Remove local files the run was not asked to keep.

        The final file is only removed once it has been uploaded.
        """
        intermediary = self.artifact.intermediary_path
        if intermediary is not None and not self.preserve_intermediary:
            intermediary.unlink(missing_ok=True)

        output = self.artifact.output_path
        if output is not None and not self.preserve_output and self.artifact.remote_url:
            output.unlink(missing_ok=True)
