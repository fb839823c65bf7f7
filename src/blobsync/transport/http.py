"""HTTP transport for attachment bytes.

This module provides:
- HTTPTransport: Transport implementation over httpx

URL layout: ``{server_url}/{bucket}/i/{object_key}/b/{attribute}``.
Uploads PUT each chunk with a Content-Range header; downloads stream a GET.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from urllib.parse import quote

import httpx

from blobsync.core.config import DEFAULT_CHUNK_SIZE, ServerConfig
from blobsync.transfers.errors import (
    PermanentTransportError,
    TransientTransportError,
    TransportError,
)
from blobsync.transfers.record import TransferInfo

logger = logging.getLogger(__name__)

# Status codes worth retrying
TRANSIENT_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


def binary_path(info: TransferInfo) -> str:
    """Build the server path for an attachment."""
    return (
        f"/{quote(info.bucket_name, safe='')}/i/{quote(info.object_key, safe='')}"
        f"/b/{quote(info.attribute_name, safe='')}"
    )


def error_for_status(response: httpx.Response) -> TransportError:
    """Classify an unsuccessful HTTP response."""
    status = response.status_code
    if status in (401, 403):
        message = "Invalid or expired token"
    elif status == 404:
        message = "Attachment not found"
    elif status == 413:
        message = "Payload too large"
    else:
        message = f"Server returned {status}"

    if status in TRANSIENT_STATUS_CODES:
        return TransientTransportError(message, status)
    return PermanentTransportError(message, status)


class HTTPTransport:
    """Moves attachment bytes over HTTP.

    Usage:
        with HTTPTransport(ServerConfig(server_url, token)) as transport:
            manager = TransferManager(transport)
    """

    def __init__(
        self,
        config: ServerConfig,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            config: Server URL, token and timeouts.
            chunk_size: Bytes per chunk yielded while downloading.
            client: Preconfigured httpx client (mostly for tests).
        """
        self._config = config
        self._chunk_size = chunk_size
        self._client = client or httpx.Client(
            base_url=config.server_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
            headers={"Authorization": f"Bearer {config.token}"},
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> HTTPTransport:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def send(self, info: TransferInfo, chunk: bytes, offset: int) -> None:
        """Upload one chunk.

        Raises:
            TransportError: On network failure or an error status.
        """
        total = info.length if info.length is not None else "*"
        if chunk:
            content_range = f"bytes {offset}-{offset + len(chunk) - 1}/{total}"
        else:
            content_range = f"bytes */{total}"
        try:
            response = self._client.put(
                binary_path(info),
                content=chunk,
                headers={
                    "Content-Type": "application/octet-stream",
                    "Content-Range": content_range,
                },
            )
        except httpx.TimeoutException as e:
            raise TransientTransportError(f"Upload timed out: {e}") from e
        except httpx.TransportError as e:
            raise TransientTransportError(f"Upload failed: {e}") from e

        if response.is_error:
            raise error_for_status(response)
        logger.debug(f"Sent {len(chunk)} bytes at offset {offset} for {binary_path(info)}")

    def receive(self, info: TransferInfo, expected_length: int | None) -> Iterator[bytes]:
        """Stream an attachment.

        Closing the returned generator closes the HTTP response.

        Raises:
            TransportError: On network failure or an error status.
        """
        try:
            with self._client.stream("GET", binary_path(info)) as response:
                if response.is_error:
                    raise error_for_status(response)
                yield from response.iter_bytes(self._chunk_size)
        except httpx.TimeoutException as e:
            raise TransientTransportError(f"Download timed out: {e}") from e
        except httpx.TransportError as e:
            raise TransientTransportError(f"Download failed: {e}") from e
