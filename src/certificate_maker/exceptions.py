"""Custom exception hierarchy for certificate_maker."""

from __future__ import annotations


class CertificateError(Exception):
    """Base exception for all certificate_maker errors."""


class ConfigError(CertificateError):
    """Invalid or incomplete run configuration."""


class AuthError(CertificateError):
    """Authentication or credential errors with the Google APIs."""


class NetworkError(CertificateError):
    """Transient network errors (timeout, connection refused, DNS failure)."""


class SourceUnavailable(CertificateError):
    """The tabular source could not be loaded (missing file, bad sheet, auth)."""


class PersistError(CertificateError):
    """Writing a value back to the tabular source failed."""


class TemplateError(CertificateError):
    """Base class for template loading problems."""


class TemplateNotFound(TemplateError):
    """The template file or its settings file does not exist."""


class TemplateInvalid(TemplateError):
    """The template or its settings could not be parsed or compiled."""


class RenderError(CertificateError):
    """Evaluating a template expression against a record failed."""


class ConversionError(CertificateError):
    """The headless browser could not load or export a document."""


class UploadError(CertificateError):
    """Uploading a generated file to Google Drive failed."""
