"""Slack adapter using slack-sdk Socket Mode and the async Web API client.

This module connects the bridge to Slack:
- Socket Mode requests are acknowledged on arrival and queued as envelopes
- Socket closes and errors are reported to a ConnectionManager
- Users and conversations are fetched for the entity cache
- Outbound send, reply and topic calls go through the Web API
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import AsyncIterator, Callable
from typing import TYPE_CHECKING, Any

import aiohttp
import structlog
from slack_sdk.errors import SlackApiError
from slack_sdk.socket_mode.aiohttp import SocketModeClient
from slack_sdk.socket_mode.request import SocketModeRequest
from slack_sdk.socket_mode.response import SocketModeResponse
from slack_sdk.web.async_client import AsyncWebClient

from ...core.classifier import is_direct_room
from ...core.connection import ConnectionManager
from ...models.entity import BotIdentity, EntityKind
from ...models.envelope import EventEnvelope
from ...models.message import Envelope
from ...utils.async_helpers import EntityLookupError, RateLimitError
from ...utils.logging import LogEventNames

if TYPE_CHECKING:
    from ...config.schema import ReconnectConfig, SlackConfig
    from ...core.entity_cache import EntityCache
    from ...interfaces.listener import UserStore

log = structlog.get_logger()

MessagePart = str | dict[str, Any]


class SlackAdapterError(Exception):
    """Base exception for Slack adapter errors."""


class ConnectionError(SlackAdapterError):
    """Raised when connection to Slack fails."""


def is_user_room(room: str) -> bool:
    """Whether a room id is actually a user id that needs a DM opened."""
    return room[:1] in ("U", "W")


def rate_limit_from(error: SlackApiError) -> RateLimitError | None:
    """Translate a rate-limit response into a RateLimitError."""
    response = error.response
    status = getattr(response, "status_code", None)
    if status != 429 and response.get("error") != "ratelimited":
        return None

    headers = getattr(response, "headers", None) or {}
    retry_after = headers.get("Retry-After") or headers.get("retry-after")
    try:
        seconds = int(retry_after) if retry_after is not None else None
    except (TypeError, ValueError):
        seconds = None
    return RateLimitError(str(error), retry_after=seconds)


class SlackAdapter:
    """Slack transport, entity lookup and outbound API for the bridge.

    The adapter is the ``SocketTransport`` under its own ConnectionManager
    and the ``EntityLookup`` behind the entity cache. The socket client's
    built-in reconnect is disabled; the manager owns that policy.

    Example:
        adapter = SlackAdapter(config.slack, reconnect=config.reconnect)
        await adapter.connection.connect()
        async for envelope in adapter.envelopes():
            ...
        await adapter.close()
    """

    def __init__(
        self,
        config: SlackConfig,
        reconnect: ReconnectConfig | None = None,
        web_client: AsyncWebClient | None = None,
        socket_client: SocketModeClient | None = None,
        queue_size: int = 1000,
    ) -> None:
        """Initialize the Slack adapter.

        Args:
            config: Slack-specific configuration.
            reconnect: Backoff used when the socket drops.
            web_client: Pre-built Web API client (tests).
            socket_client: Pre-built Socket Mode client (tests).
            queue_size: Maximum acknowledged envelopes awaiting dispatch.
        """
        self._config = config
        self._web = web_client or AsyncWebClient(token=config.bot_token, proxy=config.proxy)
        self._socket = socket_client or SocketModeClient(
            app_token=config.app_token,
            web_client=self._web,
            proxy=config.proxy,
            auto_reconnect_enabled=False,
        )
        self._socket.socket_mode_request_listeners.append(self._on_socket_request)
        self._socket.on_close_listeners.append(self._on_socket_close)
        self._socket.on_error_listeners.append(self._on_socket_error)

        self.connection = ConnectionManager(
            self,
            auto_reconnect=config.auto_reconnect,
            reconnect=reconnect,
        )

        self._queue: asyncio.Queue[EventEnvelope] = asyncio.Queue(maxsize=queue_size)
        self._closed = asyncio.Event()
        self._dm_rooms: dict[str, str] = {}
        self._identity: BotIdentity | None = None

    @property
    def web(self) -> AsyncWebClient:
        return self._web

    @property
    def identity(self) -> BotIdentity | None:
        return self._identity

    # -------------------------------------------------------------------------
    # SocketTransport
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the Socket Mode connection."""
        self._closed.clear()
        await self._socket.connect()

    async def disconnect(self) -> None:
        """Close the current Socket Mode session."""
        await self._socket.disconnect()

    async def close(self) -> None:
        """Disconnect for good and stop ``envelopes()``."""
        self._closed.set()
        try:
            await self.connection.disconnect()
        finally:
            await self._socket.close()

    async def _on_socket_request(self, client: SocketModeClient, req: SocketModeRequest) -> None:
        await client.send_socket_mode_response(SocketModeResponse(envelope_id=req.envelope_id))

        if req.type != "events_api":
            log.debug("socket_request_ignored", request_type=req.type)
            return

        envelope = EventEnvelope.from_payload(
            {
                "envelope_id": req.envelope_id,
                "body": req.payload,
                "retry_num": req.retry_attempt,
                "retry_reason": req.retry_reason,
            }
        )
        log.debug(
            LogEventNames.EVENT_RECEIVED,
            delivery_id=envelope.delivery_id,
            event_type=envelope.event.get("type"),
            retry_num=envelope.retry_num,
        )
        await self._queue.put(envelope)

    async def _on_socket_close(self, *args: Any) -> None:
        await self.connection.handle_close()

    async def _on_socket_error(self, error: Any) -> None:
        await self.connection.handle_error(error)

    async def envelopes(self) -> AsyncIterator[EventEnvelope]:
        """Yield acknowledged envelopes until the adapter is closed.

        Yields:
            EventEnvelope: Each events_api delivery, retries included.
        """
        while not self._closed.is_set():
            try:
                envelope = await asyncio.wait_for(self._queue.get(), timeout=1.0)
                yield envelope
            except TimeoutError:
                continue
            except asyncio.CancelledError:
                break

    # -------------------------------------------------------------------------
    # Identity and entity lookup
    # -------------------------------------------------------------------------

    async def authenticate(self, name: str | None = None, alias: str | None = None) -> BotIdentity:
        """Identify the bot through ``auth.test``.

        Args:
            name: Overrides the user name Slack reports.
            alias: Address prefix used instead of ``@name``.

        Raises:
            ConnectionError: If Slack rejects the token.
        """
        try:
            response = await self._web.auth_test()
        except SlackApiError as e:
            raise ConnectionError(f"Slack authentication failed: {e}") from e

        self._identity = BotIdentity(
            id=response.get("user_id", ""),
            name=name or response.get("user", ""),
            alias=alias,
            team_id=response.get("team_id"),
        )
        log.info(
            "slack_authenticated",
            bot_id=self._identity.id,
            bot_name=self._identity.name,
            team_id=self._identity.team_id,
        )
        return self._identity

    async def fetch(self, kind: EntityKind, entity_id: str) -> dict[str, Any]:
        """Fetch a user or conversation from the Web API.

        Raises:
            EntityLookupError: If Slack reports an error or an empty result,
                or the request fails in transit.
        """
        field = "user" if kind == EntityKind.USER else "channel"
        try:
            if kind == EntityKind.USER:
                response = await self._web.users_info(user=entity_id)
            else:
                response = await self._web.conversations_info(channel=entity_id)
        except SlackApiError as e:
            limited = rate_limit_from(e)
            if limited:
                self._log_rate_limit(limited, method=f"{field}_info")
            raise EntityLookupError(f"Failed to fetch {kind} {entity_id}: {e}") from e
        except (aiohttp.ClientError, OSError) as e:
            # Transport failures; OSError covers TimeoutError
            raise EntityLookupError(f"Failed to fetch {kind} {entity_id}: {type(e).__name__}: {e}") from e

        value = response.get(field)
        if not value:
            raise EntityLookupError(f"Empty {kind} response for {entity_id}")
        return dict(value)

    # -------------------------------------------------------------------------
    # User sync
    # -------------------------------------------------------------------------

    async def sync_users(self, store: UserStore, cache: EntityCache | None = None) -> int:
        """Load every workspace member into ``store``, page by page.

        Returns:
            Number of members stored.
        """
        total = 0
        cursor: str | None = None

        while True:
            kwargs: dict[str, Any] = {"limit": 200}
            if cursor:
                kwargs["cursor"] = cursor
            try:
                response = await self._web.users_list(**kwargs)
            except SlackApiError as e:
                limited = rate_limit_from(e)
                if limited:
                    self._log_rate_limit(limited, method="users_list")
                else:
                    log.error("user_sync_failed", error=str(e))
                break

            total += self.users_loaded(response, store, cache)
            cursor = (response.get("response_metadata") or {}).get("next_cursor")
            if not cursor:
                break

        log.info(LogEventNames.USERS_SYNCED, count=total)
        return total

    def users_loaded(
        self,
        response: Any,
        store: UserStore,
        cache: EntityCache | None = None,
    ) -> int:
        """Upsert the members of one ``users.list`` page.

        A response without a ``members`` list is ignored.
        """
        members = response.get("members") if response is not None else None
        if not isinstance(members, list):
            log.error(LogEventNames.USER_SYNC_MALFORMED)
            return 0

        count = 0
        for member in members:
            if not isinstance(member, dict) or not member.get("id"):
                continue
            fields = {
                "name": member.get("name"),
                "real_name": member.get("real_name"),
                "email_address": (member.get("profile") or {}).get("email"),
            }
            # Absent fields leave the stored values alone
            fields = {key: value for key, value in fields.items() if value is not None}
            store.user_for_id(member["id"], **fields, slack=member)
            if cache is not None:
                cache.put(EntityKind.USER, member["id"], member)
            count += 1
        return count

    # -------------------------------------------------------------------------
    # Outbound
    # -------------------------------------------------------------------------

    async def send(
        self,
        envelope: Envelope,
        *parts: MessagePart,
        callback: Callable[[], Any] | None = None,
    ) -> None:
        """Post each non-empty part to the envelope's room.

        A room that is a user id is replaced by the DM conversation with that
        user. Failures are logged; the callback still runs once.
        """
        room = await self._target_room(envelope.room)
        if room is not None:
            for part in parts:
                if not part:
                    continue
                await self._post(room, part, envelope.thread_ts)

        if callback is not None:
            result = callback()
            if inspect.isawaitable(result):
                await result

    async def reply(
        self,
        envelope: Envelope,
        *parts: MessagePart,
        callback: Callable[[], Any] | None = None,
    ) -> None:
        """Like ``send``, but mentions the user when the room is not a DM."""
        if envelope.user is not None and not is_direct_room(envelope.room):
            mention = f"<@{envelope.user.id}>: "
            parts = tuple(
                f"{mention}{part}" if isinstance(part, str) and part else part for part in parts
            )
        await self.send(envelope, *parts, callback=callback)

    async def set_topic(self, envelope: Envelope, topic: str) -> None:
        """Set the conversation topic; DMs have none."""
        if is_direct_room(envelope.room):
            log.debug("topic_skipped_for_dm", room=envelope.room)
            return

        try:
            await self._web.conversations_setTopic(channel=envelope.room, topic=topic)
        except SlackApiError as e:
            self._log_api_error(e, method="conversations_setTopic", room=envelope.room)

    async def _target_room(self, room: str) -> str | None:
        if not is_user_room(room):
            return room
        if room in self._dm_rooms:
            return self._dm_rooms[room]

        try:
            response = await self._web.conversations_open(users=room)
        except SlackApiError as e:
            self._log_api_error(e, method="conversations_open", room=room)
            return None

        channel_id = (response.get("channel") or {}).get("id")
        if not channel_id:
            log.error(LogEventNames.SEND_FAILED, room=room, error="conversations_open returned no channel")
            return None
        self._dm_rooms[room] = channel_id
        return channel_id

    async def _post(self, room: str, part: MessagePart, thread_ts: str | None) -> None:
        kwargs: dict[str, Any] = {"channel": room}
        if isinstance(part, dict):
            kwargs.update(part)
        else:
            kwargs["text"] = part
        if thread_ts:
            kwargs["thread_ts"] = thread_ts

        try:
            response = await self._web.chat_postMessage(**kwargs)
        except SlackApiError as e:
            self._log_api_error(e, method="chat_postMessage", room=room)
            return

        log.debug(LogEventNames.MESSAGE_SENT, room=room, ts=response.get("ts"), thread_ts=thread_ts)

    def _log_api_error(self, error: SlackApiError, method: str, room: str) -> None:
        limited = rate_limit_from(error)
        if limited:
            self._log_rate_limit(limited, method=method, room=room)
            return
        log.error(
            LogEventNames.SEND_FAILED,
            method=method,
            room=room,
            error=error.response.get("error") or str(error),
        )

    def _log_rate_limit(self, error: RateLimitError, **context: Any) -> None:
        log.error(LogEventNames.RATE_LIMITED, retry_after=error.retry_after, error=str(error), **context)
