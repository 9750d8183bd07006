"""Streaming push delivery over Server-Sent Events.

``stream_notifications`` is an async generator yielding SSE frames for one
client. An HTTP layer iterates it and writes each frame to the response;
the client is subscribed for the lifetime of the stream unless it already
has a subscription, which is reused and left in place afterwards.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from typing import Any

from mcp_engine.notifications.broker import NotificationBroker
from mcp_engine.notifications.models import utcnow
from mcp_engine.protocol.transport import format_sse_event

logger = logging.getLogger(__name__)

DisconnectCheck = Callable[[], bool | Awaitable[bool]]


async def _is_disconnected(check: DisconnectCheck | None) -> bool:
    if check is None:
        return False
    result = check()
    if inspect.isawaitable(result):
        result = await result
    return bool(result)


async def stream_notifications(
    broker: NotificationBroker,
    client_id: str,
    types: Iterable[str] | None = None,
    *,
    filter: dict[str, Any] | None = None,
    heartbeat_interval: float = 30.0,
    poll_interval: float = 0.1,
    batch_size: int = 10,
    is_disconnected: DisconnectCheck | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> AsyncIterator[str]:
    """Stream a client's notifications as SSE frames.

    Emits a ``connected`` event, then on every poll cycle a ``heartbeat``
    when the interval has elapsed and up to ``batch_size`` buffered
    notifications as ``notification`` events.

    Args:
        broker: Broker the client subscribes to.
        client_id: Client identifier.
        types: Notification types to receive; None means all. Ignored when
            the client is already subscribed.
        filter: Optional predicate filter, applied like ``types``.
        heartbeat_interval: Seconds between heartbeats.
        poll_interval: Seconds to sleep between poll cycles.
        batch_size: Maximum notifications drained per cycle.
        is_disconnected: Optional check (sync or async) ending the stream.
        clock: Monotonic time source.

    Yields:
        SSE frames.
    """
    created = not broker.is_subscribed(client_id)
    if created:
        broker.subscribe(client_id, types, filter=filter)
    else:
        logger.info("SSE stream for %s reuses its existing subscription", client_id)
    logger.info("SSE stream opened for %s", client_id)
    try:
        yield format_sse_event(
            "connected", {"client_id": client_id, "server_time": utcnow().isoformat()}
        )
        last_heartbeat = clock()

        while not await _is_disconnected(is_disconnected):
            if clock() - last_heartbeat >= heartbeat_interval:
                yield format_sse_event("heartbeat", {"timestamp": utcnow().isoformat()})
                last_heartbeat = clock()

            for item in broker.take_pending(client_id, batch_size):
                yield format_sse_event("notification", item.message)

            await asyncio.sleep(poll_interval)
    finally:
        if created:
            broker.unsubscribe(client_id)
        logger.info("SSE stream closed for %s", client_id)
