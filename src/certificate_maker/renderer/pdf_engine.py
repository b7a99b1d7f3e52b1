"""Playwright-based PDF rendering engine with auto-shrink support.

One headless Chromium page is opened per run and reused for every record:
the page is navigated to a record's intermediary HTML file and then
exported.  Use ``PdfRenderer`` as a context manager so the browser is
closed even when a record fails.
"""

from __future__ import annotations

import logging
from pathlib import Path

from certificate_maker.exceptions import ConversionError

logger = logging.getLogger(__name__)

LAUNCH_ARGS = ("--no-sandbox", "--disable-setuid-sandbox")

AUTO_SHRINK_SCALES = (0.95, 0.90, 0.85, 0.80)


def count_pages(pdf_path: Path) -> int | None:
    """Count pages in a PDF file. Returns None on failure."""
    try:
        from pypdf import PdfReader
        return len(PdfReader(str(pdf_path)).pages)
    except ImportError:
        return None
    except (OSError, ValueError):
        logger.warning("Could not count pages in %s", pdf_path)
        return None


class PdfRenderer:
    """A single headless Chromium page shared by all records of a run."""

    def __init__(self, launch_args: tuple[str, ...] = LAUNCH_ARGS):
        self.launch_args = list(launch_args)
        self._playwright = None
        self._browser = None
        self._page = None

    # -- Lifecycle ----------------------------------------------------------

    def start(self) -> "PdfRenderer":
        from playwright.sync_api import Error as PlaywrightError
        from playwright.sync_api import sync_playwright

        logger.info("Starting headless Chromium")
        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(args=self.launch_args)
            self._page = self._browser.new_page()
        except PlaywrightError as exc:
            self.close()
            raise ConversionError(f"Could not start headless Chromium: {exc}") from exc
        return self

    def close(self) -> None:
        if self._browser is not None:
            try:
                self._browser.close()
            except Exception:
                logger.debug("Browser close failed", exc_info=True)
            self._browser = None
            self._page = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None

    def __enter__(self):
        return self.start()

    def __exit__(self, *args):
        self.close()

    @property
    def page(self):
        if self._page is None:
            raise ConversionError("Renderer is not started")
        return self._page

    # -- Operations ---------------------------------------------------------

    def navigate(self, uri: str) -> None:
        """Load a document (normally a ``file://`` URI) into the page."""
        from playwright.sync_api import Error as PlaywrightError

        logger.debug("Navigating to %s", uri)
        try:
            self.page.goto(uri, wait_until="networkidle")
        except PlaywrightError as exc:
            raise ConversionError(f"Could not load {uri}: {exc}") from exc

    def export_pdf(
        self,
        output_path: Path,
        *,
        format: str | None = None,
        landscape: bool | None = None,
        margin: dict | None = None,
        width: str | None = None,
        height: str | None = None,
        scale: float = 1.0,
        print_background: bool = True,
    ) -> Path:
        """Print the loaded page to PDF.

        Args:
            output_path: Where to write the PDF.
            format: Paper format (e.g. "Letter", "A4"); Chromium's default
                when None.
            landscape: Paper orientation; portrait when None.
            margin: Dict with top/bottom/left/right as CSS length strings.
            width: Explicit paper width, overrides format.
            height: Explicit paper height, overrides format.
            scale: Page rendering scale (0.1-2.0). Use < 1.0 to shrink.
            print_background: Whether to print CSS backgrounds.

        Returns:
            Path to the generated PDF.
        """
        from playwright.sync_api import Error as PlaywrightError

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        pdf_opts: dict = {
            "path": str(output_path),
            "print_background": print_background,
            "scale": scale,
        }
        if width and height:
            pdf_opts["width"] = width
            pdf_opts["height"] = height
        elif format:
            pdf_opts["format"] = format
        if landscape is not None:
            pdf_opts["landscape"] = landscape
        if margin:
            pdf_opts["margin"] = margin

        try:
            self.page.pdf(**pdf_opts)
        except PlaywrightError as exc:
            raise ConversionError(f"PDF export to {output_path} failed: {exc}") from exc
        return output_path

    def export_fitted_pdf(self, output_path: Path, max_pages: int, **pdf_opts) -> Path:
        """Export to PDF, shrinking the scale until it fits in *max_pages*.

        Uses Playwright's scale parameter (proportional shrink of entire page)
        rather than CSS overrides, so all elements shrink uniformly.
        """
        pdf_opts.pop("scale", None)
        result = self.export_pdf(output_path, **pdf_opts)

        pages = count_pages(result)
        if pages is None or pages <= max_pages:
            return result

        for scale in AUTO_SHRINK_SCALES:
            result = self.export_pdf(output_path, scale=scale, **pdf_opts)
            pages = count_pages(result)
            if pages is not None and pages <= max_pages:
                logger.info("Auto-shrink: scale=%.2f gave %d pages", scale, pages)
                return result

        logger.warning("%s still has %s pages at the smallest scale", result.name, pages)
        return result

    def export_screenshot(
        self,
        output_path: Path,
        *,
        viewport: dict | None = None,
        full_page: bool = True,
    ) -> Path:
        """Capture the loaded page as a PNG image."""
        from playwright.sync_api import Error as PlaywrightError

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            if viewport:
                self.page.set_viewport_size(
                    {"width": int(viewport["width"]), "height": int(viewport["height"])}
                )
            self.page.screenshot(path=str(output_path), full_page=full_page)
        except (PlaywrightError, KeyError, TypeError, ValueError) as exc:
            raise ConversionError(f"Screenshot to {output_path} failed: {exc}") from exc
        return output_path
