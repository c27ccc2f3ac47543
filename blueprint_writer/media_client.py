"""Async HTTP client for the media service.

Fetches image bytes for a blueprint media identifier from
``<base_url>/api/image?imageid=<id>``.  The service answers either with the
raw image (binary body, ``image/*`` content type) or with JSON carrying the
image as plain base64 or as a ``data:`` URL.

Typical usage::

    client = MediaClient("https://sitepaige.com", timeout=30)
    payload = await client.fetch("0b7c4a5e-6f1d-4c2b-9a8e-3d2f1e0c9b8a")
    Path("logo.png").write_bytes(payload.content)

Any failure raises :class:`~blueprint_writer.errors.CollaboratorError`; the
media stage records it as an unresolved identifier and carries on.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any

import httpx

from .collaborators import MediaPayload
from .errors import CollaboratorError
from .utils import debug_log

_JSON_TYPES = ("application/json", "text/json")
_DATA_KEYS = ("image", "data", "base64", "buffer")
_MIME_KEYS = ("contentType", "mime", "mimetype")


def decode_data_url(value: str) -> tuple[bytes, str]:
    """Split ``data:<mime>;base64,<data>`` into ``(bytes, mime)``."""
    comma = value.find(",")
    meta = value[5:comma] if comma > 5 else value[5:]
    data = value[comma + 1:] if comma >= 0 else value
    mime = meta.split(";", 1)[0]
    return base64.b64decode(data), mime


class MediaClient:
    """Async client for the media service's image endpoint."""

    def __init__(self, base_url: str = "https://sitepaige.com", timeout: float = 30.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout, connect=10.0),
        )

    @staticmethod
    def _decode_json(identifier: str, payload: Any) -> MediaPayload:
        encoded: Any = None
        mime = ""
        if isinstance(payload, str):
            encoded = payload
        elif isinstance(payload, dict):
            encoded = next((payload[k] for k in _DATA_KEYS if payload.get(k)), None)
            mime = next((str(payload[k]) for k in _MIME_KEYS if payload.get(k)), "")

        if not isinstance(encoded, str) or not encoded:
            raise CollaboratorError("media", identifier, "JSON response missing base64 image data")

        try:
            if encoded.startswith("data:"):
                content, mime = decode_data_url(encoded)
            else:
                content = base64.b64decode(encoded)
        except (binascii.Error, ValueError) as exc:
            raise CollaboratorError("media", identifier, f"invalid base64 image data: {exc}") from exc
        return MediaPayload(content=content, content_type=mime)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch(self, identifier: str) -> MediaPayload:
        """Download the image for *identifier*.

        Raises:
            CollaboratorError: On connection errors, timeouts, non-2xx
                responses, undecodable bodies or empty content.
        """
        try:
            async with self._client() as client:
                response = await client.get("/api/image", params={"imageid": identifier})
                response.raise_for_status()
        except httpx.ConnectError as exc:
            raise CollaboratorError("media", identifier, f"cannot connect to {self.base_url}") from exc
        except httpx.TimeoutException as exc:
            raise CollaboratorError("media", identifier, f"timed out after {self.timeout}s") from exc
        except httpx.HTTPStatusError as exc:
            raise CollaboratorError(
                "media", identifier, f"HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise CollaboratorError("media", identifier, str(exc)) from exc

        content_type = response.headers.get("content-type", "").lower()
        debug_log(f"[media] {identifier} -> {response.status_code} {content_type or '<no type>'}")

        if any(t in content_type for t in _JSON_TYPES):
            try:
                payload = response.json()
            except ValueError as exc:
                raise CollaboratorError("media", identifier, "expected JSON body") from exc
            result = self._decode_json(identifier, payload)
        else:
            result = MediaPayload(content=response.content, content_type=content_type)

        if not result.content:
            raise CollaboratorError("media", identifier, "no image bytes in response")
        return result
