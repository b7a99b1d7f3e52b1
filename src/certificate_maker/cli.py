"""Command-line entry point: generate one file per spreadsheet row."""

from __future__ import annotations

import argparse
import logging
import sys
from contextlib import ExitStack
from typing import Optional

from certificate_maker.config import Settings, load_settings
from certificate_maker.data.sources import SOURCE_CSV, SOURCE_GOOGLE_SHEET, create_source
from certificate_maker.data.store import RecordStore
from certificate_maker.exceptions import CertificateError
from certificate_maker.orchestrator import Orchestrator, RunSummary
from certificate_maker.renderer.pdf_engine import PdfRenderer
from certificate_maker.renderer.templates import TemplateCatalog
from certificate_maker.version import __version__

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="certificate-maker",
        description="Merge spreadsheet rows into HTML templates and render them to PDF.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    bool_flag = argparse.BooleanOptionalAction

    p.add_argument("--template_header", help="Label of the column with template information.")
    p.add_argument("--file_header", help="Label of the column with references to resulting files.")
    p.add_argument("--preserve_intermediary", action=bool_flag, default=None,
                   help="Keep intermediary HTML files after processing.")
    p.add_argument("--preserve_output", action=bool_flag, default=None,
                   help="Keep local result files after upload.")
    p.add_argument("--upload", action=bool_flag, default=None,
                   help="Upload files to Google Drive.")
    p.add_argument("--change", action=bool_flag, default=None,
                   help="Update the data source with references to resulting files.")
    p.add_argument("-r", "--replace", action="store_const", const=True, default=None,
                   help="Process all records, replacing existing files rather than skipping.")
    p.add_argument("--output_folder", help="Where to store resulting files.")
    p.add_argument("--intermediary_folder", help="Where to store intermediary files.")
    p.add_argument("--template_folder", help="Where to find template files.")
    p.add_argument("--config_file", help="Location of the settings file.")
    p.add_argument("--credentials_file", help="Location of the OAuth client credentials file.")
    p.add_argument("--token_file", help="Location of the stored OAuth token file.")
    p.add_argument("--source", choices=(SOURCE_CSV, SOURCE_GOOGLE_SHEET),
                   help="Which data backend to read records from.")
    p.add_argument("-c", "--csv_file", help="Location of a CSV to pull data from.")
    p.add_argument("-s", "--google_sheet_id", help="ID of a Google Sheet to pull data from.")
    p.add_argument("-w", "--worksheet", help="Name of the tab in the Google Sheet.")
    p.add_argument("-d", "--google_folder_id", help="ID of a Google Drive folder to upload to.")
    p.add_argument("-t", "--template", help="Template to use by default.")
    p.add_argument("--debug", action="store_const", const=True, default=None,
                   help="Verbose logging.")
    return p


def run(settings: Settings) -> RunSummary:
    """Build the collaborators for *settings* and process every record."""
    with ExitStack() as stack:
        google_client = None
        uploader = None
        if settings.needs_google:
            from certificate_maker.google import DriveUploader, GoogleClient, GoogleCredentials

            logger.info("Initializing Google client...")
            credentials = GoogleCredentials.from_files(
                settings.credentials_file, settings.token_file,
            )
            google_client = stack.enter_context(GoogleClient(credentials))
            if settings.upload:
                uploader = DriveUploader(google_client, settings.google_folder_id)

        store = RecordStore(
            create_source(settings, google_client),
            template_header=settings.template_header,
            file_header=settings.file_header,
        ).load()

        catalog = TemplateCatalog(
            settings.template_folder,
            settings.intermediary_folder,
            settings.output_folder,
        )

        renderer = stack.enter_context(PdfRenderer())

        orchestrator = Orchestrator(
            store,
            catalog,
            renderer,
            default_template=settings.template,
            uploader=uploader,
            change=settings.change,
            replace=settings.replace,
            preserve_intermediary=settings.preserve_intermediary,
            preserve_output=settings.preserve_output,
        )
        return orchestrator.run()


def main(argv: Optional[list[str]] = None) -> int:
    from dotenv import load_dotenv

    load_dotenv()

    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    try:
        settings = load_settings(vars(args)).validate()
        if settings.debug:
            logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Settings: %s", settings)
        summary = run(settings)
    except CertificateError as e:
        logger.error("%s: %s", type(e).__name__, e)
        return 1

    print(f"Done: {summary.processed} generated, {summary.skipped} skipped.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
