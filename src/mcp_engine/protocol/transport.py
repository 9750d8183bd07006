"""Transport layer for MCP communication.

Provides the newline-delimited stdio transport, Server-Sent Events framing for
push channels, and an HTTP webhook transport for pushing notifications.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Protocol, TextIO, runtime_checkable

import httpx

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """Raised when a transport cannot deliver a message."""

    pass


@runtime_checkable
class Transport(Protocol):
    """Minimal transport contract consumed by the core."""

    def send(self, data: str) -> None: ...

    def is_connected(self) -> bool: ...


def format_sse_event(event: str, data: Any) -> str:
    """Format a Server-Sent Event frame.

    Args:
        event: Event name.
        data: JSON-serializable payload.

    Returns:
        ``event: <name>\\ndata: <json>\\n\\n``
    """
    return f"event: {event}\ndata: {json.dumps(data, separators=(',', ':'))}\n\n"


class StdioTransport:
    """STDIO transport for MCP communication.

    Reads JSON-RPC messages from stdin and writes responses to stdout.
    Nothing else may be written to stdout; logging goes through the
    ``logging`` module to stderr.
    """

    def __init__(
        self,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            stdin: Input stream (defaults to sys.stdin).
            stdout: Output stream (defaults to sys.stdout).
        """
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        self._connected = True

    def read_message(self) -> str | None:
        """Read a message from stdin.

        Reads lines until a non-empty line is found.

        Returns:
            Message string (stripped), or None on EOF.
        """
        while True:
            try:
                line = self._stdin.readline()
            except (OSError, ValueError):
                self._connected = False
                return None

            if not line:  # EOF
                self._connected = False
                return None

            line = line.strip()
            if line:  # Skip empty lines
                return line

    def write_message(self, message: str) -> None:
        """Write a message to stdout.

        Args:
            message: JSON string to write.
        """
        self._stdout.write(message + "\n")
        self._stdout.flush()

    def send(self, data: str) -> None:
        """Push a server-initiated message (e.g. a notification)."""
        if not self._connected:
            raise TransportError("stdio transport is closed")
        self.write_message(data)

    def is_connected(self) -> bool:
        return self._connected


class WebhookTransport:
    """Push transport that POSTs each message to a client webhook URL.

    The transport reports itself disconnected after ``max_failures``
    consecutive delivery failures so that the broker falls back to buffering.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 10.0,
        headers: dict[str, str] | None = None,
        max_failures: int = 3,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            url: Webhook endpoint receiving JSON-RPC notification bodies.
            timeout: Request timeout in seconds.
            headers: Extra headers sent with each request.
            max_failures: Consecutive failures before reporting disconnected.
            client: Optional preconfigured httpx client.
        """
        self._url = url
        self._max_failures = max_failures
        self._failures = 0
        self._closed = False
        self._client = client or httpx.Client(
            timeout=timeout,
            headers={"Content-Type": "application/json", **(headers or {})},
        )

    @property
    def url(self) -> str:
        return self._url

    def send(self, data: str) -> None:
        """POST a message body to the webhook.

        Raises:
            TransportError: If the request fails or returns an error status.
        """
        if self._closed:
            raise TransportError(f"Webhook transport closed: {self._url}")

        try:
            response = self._client.post(self._url, content=data)
            response.raise_for_status()
        except httpx.HTTPError as e:
            self._failures += 1
            logger.warning("Webhook delivery to %s failed: %s", self._url, e)
            raise TransportError(f"Webhook delivery failed: {e}") from e

        self._failures = 0

    def is_connected(self) -> bool:
        return not self._closed and self._failures < self._max_failures

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._closed = True
        self._client.close()

    def __enter__(self) -> WebhookTransport:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit."""
        self.close()
