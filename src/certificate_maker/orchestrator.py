"""Runs the render pipeline over every record of the table, in order."""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from certificate_maker.data.store import RecordStore
from certificate_maker.renderer.pipeline import GeneratedArtifact, RenderPipeline
from certificate_maker.renderer.templates import TemplateCatalog

if TYPE_CHECKING:
    from certificate_maker.google.drive import DriveUploader
    from certificate_maker.renderer.pdf_engine import PdfRenderer

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    processed: int = 0
    skipped: int = 0
    artifacts: list[GeneratedArtifact] = field(default_factory=list)


class Orchestrator:
    """Drives one RenderPipeline per record, never more than one at a time.

    Any pipeline error ends the run: a half-updated table is worse than a
    stopped one.
    """

    def __init__(
        self,
        store: RecordStore,
        catalog: TemplateCatalog,
        renderer: PdfRenderer,
        *,
        default_template: str = "",
        uploader: Optional[DriveUploader] = None,
        change: bool = True,
        replace: bool = False,
        preserve_intermediary: bool = False,
        preserve_output: bool = True,
    ):
        self.store = store
        self.catalog = catalog
        self.renderer = renderer
        self.default_template = default_template
        self.uploader = uploader
        self.change = change
        self.replace = replace
        self.preserve_intermediary = preserve_intermediary
        self.preserve_output = preserve_output

    def should_skip(self, record) -> bool:
        """Skip records that already reference a file, unless replacing."""
        if self.replace or not self.store.has_file_column:
            return False
        return bool(self.store.file_reference(record))

    def make_pipeline(self, record) -> RenderPipeline:
        persist = None
        if self.change and self.store.has_file_column:
            persist = functools.partial(self.store.save_file_reference, record.index)

        return RenderPipeline(
            record,
            catalog=self.catalog,
            renderer=self.renderer,
            default_template=self.default_template,
            template_override=self.store.template_for(record),
            uploader=self.uploader,
            persist=persist,
            preserve_intermediary=self.preserve_intermediary,
            preserve_output=self.preserve_output,
        )

    def run(self) -> RunSummary:
        summary = RunSummary()
        if self.change and not self.store.has_file_column:
            logger.warning(
                "File column %r not found; references will not be saved",
                self.store.file_header,
            )

        for record in self.store:
            if self.should_skip(record):
                logger.info("Skipping record #%d (file exists)", record.index)
                summary.skipped += 1
                continue

            logger.info("Processing record #%d", record.index)
            artifact = self.make_pipeline(record).run()
            summary.processed += 1
            summary.artifacts.append(artifact)
            logger.info("Record #%d -> %s", record.index, artifact.reference)

        logger.info(
            "Run complete: %d processed, %d skipped", summary.processed, summary.skipped,
        )
        return summary
