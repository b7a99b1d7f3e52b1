"""Google Sheets / Drive access package."""

from certificate_maker.google.auth import GoogleCredentials
from certificate_maker.google.client import GoogleClient
from certificate_maker.google.drive import DriveUploader

__all__ = [
    "GoogleCredentials",
    "GoogleClient",
    "DriveUploader",
]
