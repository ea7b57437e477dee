"""Socket lifecycle state machine with reconnect.

The manager never talks to a network itself; a ``SocketTransport`` does
the I/O and reports closes and errors back through ``handle_close`` and
``handle_error``. Subscribers observe transitions through ``on()``, so the
whole lifecycle can be driven from tests without a socket.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
from collections import defaultdict
from collections.abc import Callable
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import structlog

from ..utils.async_helpers import create_reconnect_retrying
from ..utils.logging import LogEventNames

if TYPE_CHECKING:
    from tenacity import AsyncRetrying

    from ..config.schema import ReconnectConfig
    from ..interfaces.transport import SocketTransport

log = structlog.get_logger()

Callback = Callable[..., Any]


class ConnectionState(StrEnum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class ConnectionEvent(StrEnum):
    """Notifications emitted by the ConnectionManager."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    WAITING_FOR_RECONNECT = "waiting_for_reconnect"
    RECONNECT_ATTEMPT_FAILED = "reconnect_attempt_failed"
    RECONNECT_FAILED = "reconnect_failed"
    ERROR = "error"


class ConnectionManager:
    """Owns connection state and the reconnect policy.

    A close reported by the transport re-enters CONNECTING when
    ``auto_reconnect`` is set. A close requested through ``disconnect()``
    never does, whatever the flag says.

    Reconnecting only stops on ``disconnect()``. When ``max_attempts`` bounds
    a round, each exhausted round emits RECONNECT_FAILED and, after
    ``max_delay``, the next round begins.

    Example:
        manager = ConnectionManager(transport, auto_reconnect=True)
        manager.on(ConnectionEvent.DISCONNECTED, lambda **_: print("lost"))
        await manager.connect()
    """

    def __init__(
        self,
        transport: SocketTransport,
        auto_reconnect: bool = True,
        reconnect: ReconnectConfig | None = None,
        retrying_factory: Callable[[], AsyncRetrying] | None = None,
    ) -> None:
        self._transport = transport
        self.auto_reconnect = auto_reconnect
        self._state = ConnectionState.CLOSED
        self._user_closing = False
        self._listeners: dict[ConnectionEvent, list[Callback]] = defaultdict(list)
        self._reconnect_task: asyncio.Task[None] | None = None
        self._round_delay = reconnect.max_delay if reconnect is not None else 0.0

        if retrying_factory is None:
            if reconnect is not None:
                retrying_factory = lambda: create_reconnect_retrying(  # noqa: E731
                    max_attempts=reconnect.max_attempts,
                    initial_delay=reconnect.initial_delay,
                    max_delay=reconnect.max_delay,
                    exponential_base=reconnect.exponential_base,
                )
            else:
                retrying_factory = create_reconnect_retrying
        self._retrying_factory = retrying_factory

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == ConnectionState.OPEN

    @property
    def reconnect_task(self) -> asyncio.Task[None] | None:
        """The running reconnect loop, if any."""
        return self._reconnect_task

    def on(self, event: ConnectionEvent, callback: Callback) -> None:
        """Register ``callback`` for ``event``; it may be sync or async."""
        self._listeners[event].append(callback)

    async def _emit(self, event: ConnectionEvent, **data: Any) -> None:
        for callback in list(self._listeners[event]):
            try:
                result = callback(**data)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                log.exception("connection_listener_failed", connection_event=str(event), error=str(e))

    async def connect(self) -> None:
        """
        Open the connection.

        Raises:
            Exception: Whatever the transport raised; the state returns to CLOSED
        """
        if self._state in (ConnectionState.OPEN, ConnectionState.CONNECTING):
            return

        self._user_closing = False
        self._state = ConnectionState.CONNECTING
        log.info(LogEventNames.SOCKET_CONNECTING)
        await self._emit(ConnectionEvent.CONNECTING)

        try:
            await self._transport.connect()
        except Exception:
            self._state = ConnectionState.CLOSED
            raise

        await self._opened()

    async def disconnect(self) -> None:
        """Close the connection and suppress any automatic reconnect."""
        self._user_closing = True
        await self._cancel_reconnect()

        if self._state == ConnectionState.CLOSED:
            return

        self._state = ConnectionState.CLOSING
        try:
            await self._transport.disconnect()
        finally:
            await self.handle_close()

    async def handle_close(self) -> None:
        """Process a close reported by the transport or by ``disconnect()``."""
        if self._state == ConnectionState.CLOSED:
            return
        if self._reconnect_task is not None and not self._reconnect_task.done():
            # A failed attempt inside the reconnect loop; the loop handles it
            return

        self._state = ConnectionState.CLOSED
        log.info(LogEventNames.SOCKET_DISCONNECTED, user_initiated=self._user_closing)
        await self._emit(ConnectionEvent.DISCONNECTED)

        if self.auto_reconnect and not self._user_closing:
            log.info(LogEventNames.WAITING_FOR_RECONNECT)
            await self._emit(ConnectionEvent.WAITING_FOR_RECONNECT)
            self._state = ConnectionState.CONNECTING
            self._reconnect_task = asyncio.create_task(self._reconnect(), name="socket_reconnect")

    async def handle_error(self, error: BaseException | Any) -> None:
        """Report a transport error. Errors alone never change state."""
        log.error(LogEventNames.SOCKET_ERROR, error=str(error), state=str(self._state))
        await self._emit(ConnectionEvent.ERROR, error=error)

    async def _opened(self) -> None:
        self._state = ConnectionState.OPEN
        log.info(LogEventNames.SOCKET_CONNECTED)
        await self._emit(ConnectionEvent.CONNECTED)

    async def _reconnect(self) -> None:
        while not self._user_closing:
            try:
                async for attempt in self._retrying_factory():
                    with attempt:
                        if self._user_closing:
                            return
                        try:
                            await self._transport.connect()
                        except Exception as e:
                            await self._emit(
                                ConnectionEvent.RECONNECT_ATTEMPT_FAILED,
                                attempt=attempt.retry_state.attempt_number,
                                error=e,
                            )
                            raise
            except Exception as e:
                # A bounded round ran out; report it and start another
                log.error(LogEventNames.RECONNECT_FAILED, error=str(e), error_type=type(e).__name__)
                await self._emit(ConnectionEvent.RECONNECT_FAILED, error=e)
                await asyncio.sleep(self._round_delay)
                continue

            if not self._user_closing:
                await self._opened()
            return

    async def _cancel_reconnect(self) -> None:
        task = self._reconnect_task
        self._reconnect_task = None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
