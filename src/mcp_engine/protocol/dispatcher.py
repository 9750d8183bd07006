"""Request dispatcher - routes JSON-RPC messages to registered handlers.

The dispatcher owns the error boundary of the server: typed JsonRpcErrors
raised by handlers are serialized unchanged, anything else is downgraded to
INTERNAL_ERROR.
"""

from __future__ import annotations

import itertools
import logging
import traceback
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from mcp_engine.protocol import jsonrpc
from mcp_engine.protocol.errors import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    JsonRpcError,
    MethodNotFoundError,
)
from mcp_engine.protocol.jsonrpc import (
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    MessageKind,
)
from mcp_engine.protocol.lifecycle import ProtocolSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestContext:
    """Context passed to request handlers alongside the params."""

    request_id: int | str
    method: str
    session: ProtocolSession


RequestHandler = Callable[[Any, RequestContext], Any]
NotificationHandler = Callable[[Any], None]
ResponseCallback = Callable[[JsonRpcResponse], None]
RequestGuard = Callable[[str, Any], None]


class RequestDispatcher:
    """Routes single and batch messages for one session.

    Handler maps are copied into read-only mappings at construction and never
    change afterwards.
    """

    def __init__(
        self,
        session: ProtocolSession,
        request_handlers: Mapping[str, RequestHandler],
        notification_handlers: Mapping[str, NotificationHandler] | None = None,
        *,
        debug: bool = False,
        request_guard: RequestGuard | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            session: Protocol session consulted for readiness.
            request_handlers: Method name to request handler.
            notification_handlers: Method name to notification handler.
            debug: Attach exception details to INTERNAL_ERROR responses.
            request_guard: Optional hook run before each routed request; it may
                raise a JsonRpcError (e.g. rate limiting) to reject the call.
        """
        self._session = session
        self._request_handlers = MappingProxyType(dict(request_handlers))
        self._notification_handlers = MappingProxyType(dict(notification_handlers or {}))
        self._debug = debug
        self._request_guard = request_guard
        self._pending_responses: dict[int | str, ResponseCallback] = {}
        self._request_ids = itertools.count(1)

    @property
    def session(self) -> ProtocolSession:
        return self._session

    @property
    def request_methods(self) -> list[str]:
        return list(self._request_handlers)

    @property
    def notification_methods(self) -> list[str]:
        return list(self._notification_handlers)

    def handle_raw(self, raw: str | bytes) -> str | None:
        """Decode a raw frame, handle it and encode the reply.

        Args:
            raw: Raw JSON-RPC frame.

        Returns:
            Encoded response (or batch response), or None when nothing is owed.
        """
        try:
            payload = jsonrpc.decode(raw)
        except JsonRpcError as e:
            logger.warning("Rejected frame: %s", e.message)
            return jsonrpc.encode(jsonrpc.build_error(e.code, e.message, e.data, None))

        reply = self.handle(payload)
        if reply is None:
            return None
        return jsonrpc.encode(reply)

    def handle(self, payload: Any) -> dict[str, Any] | list[dict[str, Any]] | None:
        """Handle a decoded payload (single message or batch).

        Args:
            payload: Decoded JSON value.

        Returns:
            Response dict, list of response dicts for a batch, or None.
        """
        if isinstance(payload, list):
            return self._handle_batch(payload)
        return self._handle_single(payload)

    def expect_response(self, msg_id: int | str, callback: ResponseCallback) -> None:
        """Register a callback for the response to an outgoing request.

        The callback is consumed by the first response carrying ``msg_id``.
        """
        self._pending_responses[msg_id] = callback

    def send_request(
        self, method: str, params: dict[str, Any] | None, callback: ResponseCallback
    ) -> dict[str, Any]:
        """Build an outgoing request and register its response callback.

        Returns:
            The request message, ready to be encoded and written.
        """
        msg_id = next(self._request_ids)
        self.expect_response(msg_id, callback)
        return jsonrpc.build_request(method, params, msg_id)

    def _handle_batch(self, batch: list[Any]) -> dict[str, Any] | list[dict[str, Any]] | None:
        if not batch:
            return jsonrpc.build_error(INVALID_REQUEST, "Invalid Request: empty batch")

        responses: list[dict[str, Any]] = []
        for element in batch:
            response = self._handle_single(element)
            if response is not None:
                responses.append(response)

        return responses or None

    def _handle_single(self, message: Any) -> dict[str, Any] | None:
        kind = jsonrpc.classify(message)
        if kind is MessageKind.INVALID:
            logger.warning("Invalid JSON-RPC message received: %r", message)
            return jsonrpc.build_error(INVALID_REQUEST, "Invalid Request")

        parsed = jsonrpc.parse_message(message)
        if isinstance(parsed, JsonRpcRequest):
            return self._handle_request(parsed)
        if isinstance(parsed, JsonRpcNotification):
            self._handle_notification(parsed)
            return None
        self._handle_response(parsed)
        return None

    def _handle_request(self, request: JsonRpcRequest) -> dict[str, Any]:
        method = request.method
        logger.debug("Processing request %s (id=%s)", method, request.id)

        try:
            self._session.require_ready(method)
            jsonrpc.validate_params(request.params)

            handler = self._request_handlers.get(method)
            if handler is None:
                raise MethodNotFoundError(f"Method not found: {method}", {"method": method})

            if self._request_guard is not None:
                self._request_guard(method, request.params)

            context = RequestContext(request_id=request.id, method=method, session=self._session)
            result = handler(request.params, context)
            return jsonrpc.build_success(result, request.id)

        except JsonRpcError as e:
            logger.info("Request %s failed with %s: %s", method, e.code, e.message)
            return jsonrpc.build_error(e.code, e.message, e.data, request.id)

        except Exception as e:
            logger.exception("Unexpected error handling %s", method)
            return self._internal_error(e, request.id)

    def _handle_notification(self, notification: JsonRpcNotification) -> None:
        method = notification.method
        handler = self._notification_handlers.get(method)
        if handler is None:
            logger.info("No handler for notification method: %s", method)
            return

        try:
            jsonrpc.validate_params(notification.params)
            handler(notification.params)
        except JsonRpcError as e:
            logger.warning("Notification %s rejected: %s", method, e.message)
        except Exception:
            logger.exception("Notification handler error for %s", method)

    def _handle_response(self, response: JsonRpcResponse) -> None:
        callback = self._pending_responses.pop(response.id, None)
        if callback is None:
            logger.warning("Dropping response with unknown id: %s", response.id)
            return

        try:
            callback(response)
        except Exception:
            logger.exception("Response callback error for id %s", response.id)

    def _internal_error(self, error: Exception, msg_id: int | str | None) -> dict[str, Any]:
        if not self._debug:
            return jsonrpc.build_error(INTERNAL_ERROR, "Internal error", None, msg_id)

        frames = traceback.extract_tb(error.__traceback__)
        location = f"{frames[-1].filename}:{frames[-1].lineno}" if frames else None
        data = {
            "exception_type": type(error).__name__,
            "message": str(error),
            "location": location,
        }
        return jsonrpc.build_error(INTERNAL_ERROR, f"Internal error: {error}", data, msg_id)
