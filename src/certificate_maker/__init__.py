"""Certificate Maker: merge spreadsheet rows into HTML templates and print PDFs."""

from certificate_maker.version import __version__

__all__ = ["__version__"]
