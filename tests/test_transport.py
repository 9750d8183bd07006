"""Tests for the stdio and webhook transports and SSE framing."""

import io
import json
from unittest.mock import MagicMock

import httpx
import pytest

from mcp_engine.protocol.transport import (
    StdioTransport,
    Transport,
    TransportError,
    WebhookTransport,
    format_sse_event,
)


class TestStdioTransport:
    """Tests for STDIO transport layer."""

    def test_reads_line_from_stdin(self):
        """Should read a line from stdin."""
        mock_stdin = io.StringIO('{"jsonrpc":"2.0","id":1,"method":"test"}\n')
        transport = StdioTransport(stdin=mock_stdin, stdout=io.StringIO())

        assert transport.read_message() == '{"jsonrpc":"2.0","id":1,"method":"test"}'

    def test_writes_line_to_stdout(self):
        """Should write a line to stdout with newline."""
        mock_stdout = io.StringIO()
        transport = StdioTransport(stdin=io.StringIO(), stdout=mock_stdout)

        transport.write_message('{"jsonrpc":"2.0","id":1,"result":{}}')

        assert mock_stdout.getvalue() == '{"jsonrpc":"2.0","id":1,"result":{}}\n'

    def test_returns_none_on_eof(self):
        """Should return None and report disconnected when stdin is exhausted."""
        transport = StdioTransport(stdin=io.StringIO(""), stdout=io.StringIO())

        assert transport.read_message() is None
        assert not transport.is_connected()

    def test_skips_empty_lines(self):
        """Should skip empty lines and strip whitespace."""
        transport = StdioTransport(stdin=io.StringIO('\n\n  {"valid": true}  \n'), stdout=io.StringIO())

        assert transport.read_message() == '{"valid": true}'

    def test_returns_none_on_read_exception(self):
        """Should return None when read raises an exception."""
        mock_stdin = MagicMock()
        mock_stdin.readline.side_effect = OSError("Pipe broken")
        transport = StdioTransport(stdin=mock_stdin, stdout=io.StringIO())

        assert transport.read_message() is None

    def test_send_pushes_notification(self):
        mock_stdout = io.StringIO()
        transport = StdioTransport(stdin=io.StringIO(), stdout=mock_stdout)

        transport.send('{"jsonrpc":"2.0","method":"notifications/tools/list_changed"}')

        assert mock_stdout.getvalue().endswith("list_changed\"}\n")

    def test_send_after_eof_fails(self):
        transport = StdioTransport(stdin=io.StringIO(""), stdout=io.StringIO())
        transport.read_message()

        with pytest.raises(TransportError):
            transport.send("{}")

    def test_stdout_carries_only_frames(self):
        """Every stdout line must be a protocol frame."""
        mock_stdout = io.StringIO()
        transport = StdioTransport(stdin=io.StringIO("\n"), stdout=mock_stdout)

        transport.read_message()
        transport.write_message('{"jsonrpc":"2.0","id":1,"result":{}}')

        lines = mock_stdout.getvalue().splitlines()
        assert [json.loads(line)["id"] for line in lines] == [1]

    def test_satisfies_transport_protocol(self):
        assert isinstance(StdioTransport(stdin=io.StringIO(), stdout=io.StringIO()), Transport)


class TestWebhookTransport:
    """Tests for the httpx webhook transport."""

    def make_client(self, status_code: int = 200) -> MagicMock:
        client = MagicMock(spec=httpx.Client)
        request = httpx.Request("POST", "https://client.example/hook")
        client.post.return_value = httpx.Response(status_code, request=request)
        return client

    def test_posts_message_body(self):
        client = self.make_client()
        transport = WebhookTransport("https://client.example/hook", client=client)

        transport.send('{"jsonrpc":"2.0","method":"x"}')

        client.post.assert_called_once_with(
            "https://client.example/hook", content='{"jsonrpc":"2.0","method":"x"}'
        )
        assert transport.is_connected()

    def test_http_error_raises_transport_error(self):
        transport = WebhookTransport("https://client.example/hook", client=self.make_client(500))

        with pytest.raises(TransportError, match="Webhook delivery failed"):
            transport.send("{}")

    def test_disconnects_after_consecutive_failures(self):
        client = self.make_client()
        client.post.side_effect = httpx.ConnectError("refused")
        transport = WebhookTransport("https://client.example/hook", client=client, max_failures=2)

        for _ in range(2):
            with pytest.raises(TransportError):
                transport.send("{}")

        assert not transport.is_connected()

    def test_success_resets_failure_count(self):
        client = self.make_client()
        request = httpx.Request("POST", "https://client.example/hook")
        client.post.side_effect = [
            httpx.ConnectError("refused"),
            httpx.Response(200, request=request),
            httpx.ConnectError("refused"),
        ]
        transport = WebhookTransport("https://client.example/hook", client=client, max_failures=2)

        with pytest.raises(TransportError):
            transport.send("{}")
        transport.send("{}")
        with pytest.raises(TransportError):
            transport.send("{}")

        assert transport.is_connected()

    def test_closed_transport_rejects_send(self):
        client = self.make_client()
        with WebhookTransport("https://client.example/hook", client=client) as transport:
            pass

        client.close.assert_called_once()
        assert not transport.is_connected()
        with pytest.raises(TransportError, match="closed"):
            transport.send("{}")


class TestSseFraming:
    """Tests for Server-Sent Event frames."""

    def test_formats_event_frame(self):
        frame = format_sse_event("heartbeat", {"timestamp": "t"})

        assert frame == 'event: heartbeat\ndata: {"timestamp":"t"}\n\n'

    def test_data_is_single_line_json(self):
        frame = format_sse_event("notification", {"text": "a\nb"})
        data_line = frame.split("\n")[1]

        assert json.loads(data_line.removeprefix("data: ")) == {"text": "a\nb"}
