"""Maps raw Slack events onto normalized message variants."""

import re
from typing import Any

import structlog

from ..models.entity import BotIdentity, EntityKind
from ..models.message import (
    ChatUser,
    EnterMessage,
    FileSharedMessage,
    LeaveMessage,
    NormalizedMessage,
    ReactionMessage,
    ReactionType,
    TextMessage,
    TopicMessage,
)
from ..utils.logging import LogEventNames
from .entity_cache import EntityCache
from .text import TextNormalizer

log = structlog.get_logger()

MEMBERSHIP_EVENTS = {
    "member_joined_channel": EnterMessage,
    "member_left_channel": LeaveMessage,
}

REACTION_EVENTS = {
    "reaction_added": ReactionType.ADDED,
    "reaction_removed": ReactionType.REMOVED,
}


def is_direct_room(room: str | None) -> bool:
    """Whether a conversation id names a direct-message channel."""
    return bool(room) and room.startswith("D")


class MessageClassifier:
    """Turns one Slack event into at most one NormalizedMessage.

    Unknown event types, events without a sender or conversation, and the
    bot's own messages classify to None.
    """

    def __init__(
        self,
        cache: EntityCache,
        identity: BotIdentity,
        normalizer: TextNormalizer | None = None,
    ) -> None:
        self._cache = cache
        self._identity = identity
        self._normalizer = normalizer or TextNormalizer(cache, identity)
        # A name ending in a word character must not run into the next word
        names = [
            re.escape(n) + (r"(?![\w-])" if re.search(r"\w$", n) else "")
            for n in (identity.name, identity.alias)
            if n
        ]
        self._addressed = re.compile(rf"^@?(?:{'|'.join(names)})", re.IGNORECASE) if names else None

    @property
    def identity(self) -> BotIdentity:
        return self._identity

    async def classify(self, event: dict[str, Any]) -> NormalizedMessage | None:
        """
        Classify a raw event.

        Args:
            event: The ``event`` object of an Events API payload

        Returns:
            The matching message variant, or None if the event is dropped
        """
        event_type = event.get("type")

        if event_type == "message":
            return await self._classify_message(event)
        elif event_type in MEMBERSHIP_EVENTS:
            return await self._classify_membership(event, MEMBERSHIP_EVENTS[event_type])
        elif event_type in REACTION_EVENTS:
            return await self._classify_reaction(event, REACTION_EVENTS[event_type])
        elif event_type == "file_shared":
            return await self._classify_file_shared(event)

        self._dropped(event, "unrecognized_event_type")
        return None

    async def _classify_message(self, event: dict[str, Any]) -> NormalizedMessage | None:
        user_id = event.get("user")
        room = event.get("channel")
        if not user_id:
            self._dropped(event, "missing_user")
            return None
        if user_id == self._identity.id:
            self._dropped(event, "self_echo")
            return None
        if not room:
            self._dropped(event, "missing_channel")
            return None

        # Warms the cache for this room; a failed lookup only loses the is_im hint
        conversation = await self._cache.resolve(EntityKind.CONVERSATION, room)
        user = await self._chat_user(user_id, room)
        ts = event.get("ts") or event.get("event_ts") or ""

        if event.get("subtype") == "channel_topic":
            return TopicMessage(user=user, topic=event.get("topic") or "", ts=ts, raw_event=event)

        normalized = await self._normalizer.normalize(event.get("text"), event.get("attachments"))
        text = normalized.text
        if self._is_direct(event, room, conversation) and not self._is_addressed(text):
            text = f"{self._identity.address} {text}"

        return TextMessage(
            user=user,
            text=text,
            raw_text=normalized.raw_text,
            ts=ts,
            raw_event=event,
            mentions=normalized.mentions,
            thread_ts=event.get("thread_ts"),
        )

    async def _classify_membership(
        self, event: dict[str, Any], variant: type[EnterMessage] | type[LeaveMessage]
    ) -> NormalizedMessage | None:
        user_id = event.get("user")
        room = event.get("channel")
        if not user_id or not room:
            self._dropped(event, "missing_user_or_channel")
            return None

        return variant(
            user=await self._chat_user(user_id, room),
            ts=event.get("ts") or event.get("event_ts") or "",
            raw_event=event,
        )

    async def _classify_reaction(
        self, event: dict[str, Any], reaction_type: ReactionType
    ) -> NormalizedMessage | None:
        item = event.get("item") or {}
        user_id = event.get("user")
        room = event.get("channel") or item.get("channel")
        if not user_id or not room:
            self._dropped(event, "missing_user_or_channel")
            return None

        item_user = None
        raw_item_user = event.get("item_user")
        if isinstance(raw_item_user, dict):
            raw_item_user = raw_item_user.get("id")
        if raw_item_user:
            item_user = await self._chat_user(raw_item_user, room)

        return ReactionMessage(
            type=reaction_type,
            user=await self._chat_user(user_id, room),
            reaction=event.get("reaction") or "",
            item=item,
            item_user=item_user,
            ts=event.get("event_ts") or event.get("ts") or "",
            raw_event=event,
        )

    async def _classify_file_shared(self, event: dict[str, Any]) -> NormalizedMessage | None:
        user_id = event.get("user_id") or event.get("user")
        room = event.get("channel_id") or event.get("channel")
        file_id = event.get("file_id") or (event.get("file") or {}).get("id")
        if not user_id or not room or not file_id:
            self._dropped(event, "missing_user_channel_or_file")
            return None

        return FileSharedMessage(
            user=await self._chat_user(user_id, room),
            file_id=file_id,
            ts=event.get("event_ts") or event.get("ts") or "",
            raw_event=event,
        )

    async def _chat_user(self, user_id: str, room: str) -> ChatUser:
        info = await self._cache.resolve(EntityKind.USER, user_id) or {}
        profile = info.get("profile") or {}
        return ChatUser(
            id=user_id,
            name=info.get("name") or user_id,
            room=room,
            real_name=info.get("real_name") or profile.get("real_name"),
            email_address=profile.get("email"),
        )

    def _is_direct(
        self, event: dict[str, Any], room: str, conversation: dict[str, Any] | None
    ) -> bool:
        if event.get("channel_type") == "im" or is_direct_room(room):
            return True
        return bool(conversation and conversation.get("is_im"))

    def _is_addressed(self, text: str) -> bool:
        return bool(self._addressed and self._addressed.match(text))

    def _dropped(self, event: dict[str, Any], reason: str) -> None:
        log.debug(
            LogEventNames.EVENT_DROPPED,
            event_type=event.get("type"),
            subtype=event.get("subtype"),
            reason=reason,
        )
