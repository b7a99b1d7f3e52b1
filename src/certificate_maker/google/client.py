"""
Google API client: authenticated HTTP for the Sheets and Drive APIs.

All traffic to googleapis.com goes through this module.
"""

from __future__ import annotations

import logging
import time

import httpx

from certificate_maker.exceptions import AuthError, CertificateError, NetworkError
from certificate_maker.google.auth import GoogleCredentials

logger = logging.getLogger(__name__)

# Methods retried once on a transient failure by default.
IDEMPOTENT_METHODS = ("GET", "PUT")


class GoogleClient:
    """Bearer-token HTTP client shared by the Sheets source and Drive uploader."""

    def __init__(self, credentials: GoogleCredentials, timeout: float = 30.0):
        self.credentials = credentials
        self.client = httpx.Client(follow_redirects=True, timeout=timeout)

    # -- HTTP helpers -------------------------------------------------------

    def request(
        self, method: str, url: str, *, retry: bool | None = None, **kwargs,
    ) -> httpx.Response:
        """Execute an authorized request.

        Idempotent methods (GET, PUT) are retried once on a transient
        failure (timeout, connection error, HTTP 5xx); pass ``retry`` to
        override.  Any request is replayed once after refreshing the token
        on HTTP 401.
        """
        if retry is None:
            retry = method.upper() in IDEMPOTENT_METHODS
        last_exc: Exception | None = None
        refreshed = False
        for attempt in range(2):
            retry_transient = retry and attempt == 0
            headers = dict(kwargs.pop("headers", None) or {})
            headers["Authorization"] = f"Bearer {self.credentials.access_token}"
            try:
                logger.debug("%s %s (attempt %d)", method, url, attempt + 1)
                resp = self.client.request(method, url, headers=headers, **kwargs)
                logger.debug("Response: %d (%d bytes)", resp.status_code, len(resp.content))
                resp.raise_for_status()
                return resp
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                if status == 401 and not refreshed and self.credentials.can_refresh:
                    self.credentials.refresh()
                    refreshed = True
                    last_exc = exc
                    kwargs["headers"] = headers
                    continue
                if status in (401, 403):
                    raise AuthError(
                        f"Google API refused the request (HTTP {status}). "
                        "Check the token and the document's sharing settings."
                    ) from exc
                if status >= 500 and retry_transient:
                    last_exc = exc
                    kwargs["headers"] = headers
                    time.sleep(2)
                    continue
                raise CertificateError(
                    f"Google API returned HTTP {status} for {method} {url}: "
                    f"{_error_message(exc.response)}"
                ) from exc
            except httpx.TimeoutException as exc:
                if retry_transient:
                    last_exc = exc
                    kwargs["headers"] = headers
                    time.sleep(2)
                    continue
                raise NetworkError("Request timed out connecting to Google") from exc
            except httpx.RequestError as exc:
                if retry_transient:
                    last_exc = exc
                    kwargs["headers"] = headers
                    time.sleep(2)
                    continue
                raise NetworkError(f"Network error connecting to Google: {exc}") from exc
        raise NetworkError("Request failed after retry") from last_exc

    def get_json(self, url: str, **kwargs) -> dict:
        return self.request("GET", url, **kwargs).json()

    # -- Cleanup ------------------------------------------------------------

    def close(self):
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def _error_message(resp: httpx.Response) -> str:
    """Pull the human-readable message out of a Google error payload."""
    try:
        return resp.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return resp.text[:200]
