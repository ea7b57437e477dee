"""Bridge orchestrator that coordinates all components.

This module implements the Bridge class that serves as the main entry point
for the Slack event bridge. It:
- Manages the adapter lifecycle (connect, authenticate, disconnect)
- Suppresses retried deliveries before any work is scheduled
- Classifies each event in its own task so slow lookups never block intake
- Hands normalized messages to the bot framework's listener
- Handles graceful shutdown on signals (SIGTERM, SIGINT)
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

import structlog

from ..config.schema import BridgeConfig
from ..utils.async_helpers import BridgeError
from ..utils.logging import LogEventNames, bind_context, unbind_context
from .classifier import MessageClassifier
from .dedup import DeliveryDeduplicator
from .entity_cache import EntityCache
from .user_store import InMemoryUserStore

if TYPE_CHECKING:
    from ..adapters.chat.slack import SlackAdapter
    from ..interfaces.listener import MessageListener, UserStore
    from ..models.envelope import EventEnvelope

log = structlog.get_logger()


class BridgeStartupError(BridgeError):
    """Failed to start the bridge."""


class Bridge:
    """Main orchestrator that coordinates all components.

    Responsibilities:
    - Connect the adapter and learn the bot's identity
    - Filter retried deliveries through the DeliveryDeduplicator
    - Route envelopes through the MessageClassifier to the listener
    - Handle graceful startup and shutdown

    Example:
        bridge = Bridge(config, adapter, listener)
        await bridge.start()  # Blocks until shutdown signal
    """

    def __init__(
        self,
        config: BridgeConfig,
        adapter: SlackAdapter,
        listener: MessageListener,
        user_store: UserStore | None = None,
    ) -> None:
        """Initialize the Bridge.

        Args:
            config: Application configuration
            adapter: Slack adapter providing envelopes and lookups
            listener: Bot framework receiver of normalized messages
            user_store: Directory filled by user sync
        """
        self._config = config
        self._adapter = adapter
        self._listener = listener
        self._user_store = user_store if user_store is not None else InMemoryUserStore()

        self._cache = EntityCache(
            adapter,
            ttl=config.cache.ttl,
            maxsize=config.cache.maxsize,
            lookup_timeout=config.cache.lookup_timeout,
        )
        self._dedup = DeliveryDeduplicator(ttl=config.dedup.ttl, maxsize=config.dedup.maxsize)
        self._classifier: MessageClassifier | None = None

        self._active_tasks: set[asyncio.Task[None]] = set()
        self._running = False
        self._shutdown_event: asyncio.Event | None = None

        self._events_dispatched = 0
        self._duplicates_suppressed = 0
        self._errors_count = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def cache(self) -> EntityCache:
        return self._cache

    @property
    def dedup(self) -> DeliveryDeduplicator:
        return self._dedup

    @property
    def user_store(self) -> UserStore:
        return self._user_store

    @property
    def classifier(self) -> MessageClassifier | None:
        return self._classifier

    @property
    def stats(self) -> dict[str, int]:
        """Return processing statistics."""
        return {
            "events_dispatched": self._events_dispatched,
            "duplicates_suppressed": self._duplicates_suppressed,
            "errors_count": self._errors_count,
            "active_tasks": len(self._active_tasks),
        }

    async def start(self) -> None:
        """Start the bridge and dispatch events until shutdown.

        Raises:
            BridgeStartupError: If connecting or authenticating fails
        """
        if self._running:
            log.warning("bridge_already_running")
            return

        log.info(LogEventNames.BRIDGE_STARTING)
        self._shutdown_event = asyncio.Event()

        try:
            identity = await self._adapter.authenticate(
                name=self._config.bot.name,
                alias=self._config.bot.alias,
            )
            self._classifier = MessageClassifier(self._cache, identity)

            await self._adapter.connection.connect()

            if self._config.slack.disable_user_sync:
                log.info("user_sync_disabled")
            else:
                await self._adapter.sync_users(self._user_store, self._cache)

            self._setup_signal_handlers()
        except Exception as e:
            log.exception("bridge_startup_failed", error=str(e))
            await self._cleanup()
            raise BridgeStartupError(f"Failed to start bridge: {e}") from e

        self._running = True
        log.info(LogEventNames.BRIDGE_STARTED, bot_id=identity.id, bot_name=identity.name)

        await self._listen_for_envelopes()

    async def stop(self) -> None:
        """Stop intake, drain in-flight events, then disconnect."""
        if not self._running:
            log.warning("bridge_not_running")
            return

        log.info(LogEventNames.BRIDGE_STOPPING, active_tasks=len(self._active_tasks))

        if self._shutdown_event:
            self._shutdown_event.set()

        await self._wait_for_tasks()
        await self._cleanup()

        self._running = False
        log.info(LogEventNames.BRIDGE_STOPPED, **self.stats)

    def submit(self, envelope: EventEnvelope) -> asyncio.Task[None] | None:
        """Schedule one envelope for processing.

        The duplicate check runs here, before any await, so a retry that
        arrives while the first delivery is still being handled is dropped.

        Returns:
            The processing task, or None if the delivery was suppressed
        """
        if not self._dedup.should_process(envelope.delivery_id, envelope.retry_num):
            self._duplicates_suppressed += 1
            return None

        task = asyncio.create_task(
            self.handle_envelope(envelope),
            name=f"event_{envelope.delivery_id or 'unknown'}",
        )
        self._active_tasks.add(task)
        task.add_done_callback(self._active_tasks.discard)
        return task

    async def handle_envelope(self, envelope: EventEnvelope) -> None:
        """Classify one envelope and dispatch the result.

        Every failure is logged and contained to this event. Log lines
        emitted while handling carry ``delivery_id`` and ``event_type``.
        """
        if self._classifier is None:
            log.error("bridge_not_authenticated", delivery_id=envelope.delivery_id)
            return

        bind_context(delivery_id=envelope.delivery_id, event_type=envelope.event.get("type"))
        try:
            try:
                message = await self._classifier.classify(envelope.event)
            except Exception as e:
                self._errors_count += 1
                log.exception(LogEventNames.EVENT_CLASSIFICATION_FAILED, error=str(e))
                return

            if message is None:
                return

            log.debug(LogEventNames.EVENT_CLASSIFIED, kind=str(message.kind), room=message.room)

            try:
                await self._listener.receive(message)
                self._events_dispatched += 1
            except Exception as e:
                self._errors_count += 1
                log.exception(LogEventNames.LISTENER_FAILED, kind=str(message.kind), error=str(e))
        finally:
            unbind_context("delivery_id", "event_type")
            if self._config.dedup.release_on_complete:
                self._dedup.release(envelope.delivery_id)

    async def _listen_for_envelopes(self) -> None:
        log.info("starting_envelope_listener")

        try:
            async for envelope in self._adapter.envelopes():
                if self._shutdown_event and self._shutdown_event.is_set():
                    log.info("shutdown_signal_received_stopping_listener")
                    break
                self.submit(envelope)
        except asyncio.CancelledError:
            log.info("envelope_listener_cancelled")

    async def _wait_for_tasks(self) -> None:
        """Wait for active tasks to complete with timeout."""
        if not self._active_tasks:
            return

        log.info("waiting_for_active_tasks", count=len(self._active_tasks))

        done, pending = await asyncio.wait(
            set(self._active_tasks),
            timeout=self._config.runtime.shutdown_timeout,
        )

        if pending:
            log.warning("cancelling_pending_tasks", count=len(pending))
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        log.info("tasks_completed", completed=len(done), cancelled=len(pending))

    async def _cleanup(self) -> None:
        try:
            await self._adapter.close()
            log.info("slack_disconnected")
        except Exception as e:
            log.warning("slack_disconnect_error", error=str(e))

        self._active_tasks.clear()

    def _setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(
                sig,
                lambda s: asyncio.create_task(self._handle_signal(s)),
                sig,
            )
            log.debug("signal_handler_registered", signal=sig.name)

    async def _handle_signal(self, sig: signal.Signals) -> None:
        log.info("received_signal", signal=sig.name)
        await self.stop()


def create_bridge(config: BridgeConfig, listener: MessageListener) -> Bridge:
    """Build a Bridge with a Slack adapter from configuration.

    Args:
        config: Application configuration
        listener: Receiver of normalized messages

    Returns:
        Configured Bridge instance
    """
    # Import here to keep the core free of slack-sdk at import time
    from ..adapters.chat.slack import SlackAdapter

    adapter = SlackAdapter(
        config.slack,
        reconnect=config.reconnect,
        queue_size=config.runtime.queue_size,
    )
    return Bridge(config, adapter, listener)
