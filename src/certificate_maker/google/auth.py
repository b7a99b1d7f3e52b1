"""OAuth credentials for the Google APIs: stored token + refresh.

The interactive consent flow is not handled here: a token file produced
by a previous authorization must already exist.  Access tokens are
refreshed with the stored refresh token and written back to disk.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

import httpx

from certificate_maker.exceptions import AuthError, NetworkError

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.file",
]

# Refresh a little before the real expiry.
EXPIRY_MARGIN_SECONDS = 60


def _parse_expiry(token: dict) -> Optional[float]:
    """Read the expiry from either token file flavour, as epoch seconds."""
    if token.get("expiry_date"):
        return float(token["expiry_date"]) / 1000.0
    if token.get("expiry"):
        raw = str(token["expiry"]).replace("Z", "+00:00")
        try:
            return datetime.fromisoformat(raw).timestamp()
        except ValueError:
            logger.warning("Unparseable token expiry %r", token["expiry"])
    return None


class GoogleCredentials:
    """Client secrets + stored token, with on-demand refresh."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        token: dict,
        *,
        token_uri: str = DEFAULT_TOKEN_URI,
        token_file: Path | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_uri = token_uri
        self.token_file = Path(token_file) if token_file else None
        self._token = dict(token)

    @classmethod
    def from_files(cls, credentials_file: str | Path, token_file: str | Path) -> "GoogleCredentials":
        """Load client secrets and the stored token from disk."""
        credentials_file = Path(credentials_file)
        token_file = Path(token_file)

        try:
            secrets = json.loads(credentials_file.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise AuthError(f"Credentials file not found: {credentials_file}") from exc
        except json.JSONDecodeError as exc:
            raise AuthError(f"Credentials file is not valid JSON: {credentials_file}") from exc

        block = secrets.get("installed") or secrets.get("web")
        if not block or "client_id" not in block or "client_secret" not in block:
            raise AuthError(
                f"Credentials file {credentials_file} has no 'installed' or 'web' client"
            )

        try:
            token = json.loads(token_file.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise AuthError(
                f"Token file not found: {token_file}. "
                "Authorize the application once to create it."
            ) from exc
        except json.JSONDecodeError as exc:
            raise AuthError(f"Token file is not valid JSON: {token_file}") from exc

        logger.debug("Loaded Google credentials for client %s", block["client_id"])
        return cls(
            block["client_id"],
            block["client_secret"],
            token,
            token_uri=block.get("token_uri", DEFAULT_TOKEN_URI),
            token_file=token_file,
        )

    # -- Token state --------------------------------------------------------

    @property
    def refresh_token(self) -> Optional[str]:
        return self._token.get("refresh_token")

    @property
    def can_refresh(self) -> bool:
        return bool(self.refresh_token)

    @property
    def expired(self) -> bool:
        expiry = _parse_expiry(self._token)
        if expiry is None:
            return False
        return time.time() >= expiry - EXPIRY_MARGIN_SECONDS

    @property
    def access_token(self) -> str:
        """Return a usable access token, refreshing first if needed."""
        token = self._token.get("access_token") or self._token.get("token")
        if not token or self.expired:
            self.refresh()
            token = self._token["access_token"]
        return token

    # -- Refresh ------------------------------------------------------------

    def refresh(self) -> None:
        """Exchange the refresh token for a new access token."""
        if not self.can_refresh:
            raise AuthError("Access token expired and no refresh token is stored")

        logger.debug("Refreshing Google access token")
        try:
            resp = httpx.post(
                self.token_uri,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": self.refresh_token,
                    "grant_type": "refresh_token",
                },
                timeout=30.0,
            )
        except httpx.RequestError as exc:
            raise NetworkError(f"Could not reach the token endpoint: {exc}") from exc

        if resp.status_code != 200:
            raise AuthError(
                f"Token refresh failed (HTTP {resp.status_code}). "
                "Re-authorize the application."
            )

        data = resp.json()
        self._token["access_token"] = data["access_token"]
        self._token.pop("token", None)
        self._token.pop("expiry", None)
        if "expires_in" in data:
            self._token["expiry_date"] = int((time.time() + int(data["expires_in"])) * 1000)
        if data.get("refresh_token"):
            self._token["refresh_token"] = data["refresh_token"]

        self._save()

    def _save(self) -> None:
        if self.token_file is None:
            return
        try:
            self.token_file.parent.mkdir(parents=True, exist_ok=True)
            self.token_file.write_text(json.dumps(self._token), encoding="utf-8")
            logger.debug("Token stored to %s", self.token_file)
        except OSError:
            logger.warning("Could not store refreshed token to %s", self.token_file)
