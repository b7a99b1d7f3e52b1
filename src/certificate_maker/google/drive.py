"""Google Drive uploader for generated files."""

from __future__ import annotations

import json
import logging
import mimetypes
import uuid
from pathlib import Path

from certificate_maker.exceptions import CertificateError, UploadError
from certificate_maker.google.client import GoogleClient

logger = logging.getLogger(__name__)

UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"
OPEN_URL = "https://docs.google.com/open?id={file_id}"


def _multipart_related(metadata: dict, payload: bytes, mime_type: str) -> tuple[bytes, str]:
    """Build a multipart/related body (JSON metadata part + media part)."""
    boundary = f"==={uuid.uuid4().hex}==="
    head = (
        f"--{boundary}\r\n"
        "Content-Type: application/json; charset=UTF-8\r\n\r\n"
        f"{json.dumps(metadata)}\r\n"
        f"--{boundary}\r\n"
        f"Content-Type: {mime_type}\r\n\r\n"
    ).encode("utf-8")
    tail = f"\r\n--{boundary}--\r\n".encode("utf-8")
    return head + payload + tail, f"multipart/related; boundary={boundary}"


class DriveUploader:
    """Uploads files into a Drive folder and returns a shareable link."""

    def __init__(self, client: GoogleClient, folder_id: str = ""):
        self.client = client
        self.folder_id = folder_id

    def upload(self, path: Path) -> str:
        """Upload *path* and return its ``docs.google.com/open`` URL."""
        path = Path(path)
        mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"

        metadata: dict = {"name": path.name}
        if self.folder_id:
            metadata["parents"] = [self.folder_id]

        try:
            payload = path.read_bytes()
        except OSError as exc:
            raise UploadError(f"Could not read {path} for upload: {exc}") from exc

        body, content_type = _multipart_related(metadata, payload, mime_type)

        try:
            resp = self.client.request(
                "POST",
                UPLOAD_URL,
                params={"uploadType": "multipart", "fields": "id"},
                content=body,
                headers={"Content-Type": content_type},
                retry=False,
            )
        except CertificateError as exc:
            raise UploadError(f"Upload of {path.name} failed: {exc}") from exc

        try:
            file_id = resp.json()["id"]
        except (ValueError, KeyError) as exc:
            raise UploadError(f"Drive returned no file id for {path.name}") from exc

        url = OPEN_URL.format(file_id=file_id)
        logger.info("Uploaded %s -> %s", path.name, url)
        return url
