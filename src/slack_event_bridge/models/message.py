"""Normalized message variants handed to the bot framework.

Every inbound Slack event that survives classification becomes exactly one
of the frozen dataclasses below. The set is closed: consumers branch on
``message.kind`` (or ``isinstance``) and adding an event kind means adding a
variant here and an arm in ``core.classifier``.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class MessageKind(StrEnum):
    """Tag identifying a NormalizedMessage variant."""

    TEXT = "text"
    REACTION = "reaction"
    FILE_SHARED = "file_shared"
    ENTER = "enter"
    LEAVE = "leave"
    TOPIC = "topic"


class MentionType(StrEnum):
    """What a bracketed reference points at."""

    USER = "user"
    CONVERSATION = "conversation"


class ReactionType(StrEnum):
    """Whether a reaction was added or removed."""

    ADDED = "added"
    REMOVED = "removed"


@dataclass(frozen=True)
class ChatUser:
    """The sender of an event, with the conversation it happened in."""

    id: str
    name: str
    room: str  # Conversation id the event belongs to
    real_name: str | None = None
    email_address: str | None = None


@dataclass(frozen=True)
class Mention:
    """A user or conversation reference found in message text."""

    id: str
    type: MentionType
    info: dict[str, Any] | None = None  # Cached metadata at scan time, if any


@dataclass(frozen=True)
class TextMessage:
    """A plain chat message with normalized text."""

    user: ChatUser
    text: str
    raw_text: str  # Entity-decoded, link markup intact
    ts: str
    raw_event: dict[str, Any]
    mentions: tuple[Mention, ...] = ()
    thread_ts: str | None = None  # None if not in a thread
    kind: MessageKind = field(default=MessageKind.TEXT, init=False)

    @property
    def room(self) -> str:
        return self.user.room


@dataclass(frozen=True)
class ReactionMessage:
    """An emoji reaction added to or removed from an item."""

    type: ReactionType
    user: ChatUser
    reaction: str
    item: dict[str, Any]
    ts: str
    raw_event: dict[str, Any]
    item_user: ChatUser | None = None
    kind: MessageKind = field(default=MessageKind.REACTION, init=False)

    @property
    def room(self) -> str:
        return self.user.room


@dataclass(frozen=True)
class FileSharedMessage:
    """A file shared into a conversation."""

    user: ChatUser
    file_id: str
    ts: str
    raw_event: dict[str, Any]
    kind: MessageKind = field(default=MessageKind.FILE_SHARED, init=False)

    @property
    def room(self) -> str:
        return self.user.room


@dataclass(frozen=True)
class EnterMessage:
    """A user joined a conversation."""

    user: ChatUser
    ts: str
    raw_event: dict[str, Any]
    kind: MessageKind = field(default=MessageKind.ENTER, init=False)

    @property
    def room(self) -> str:
        return self.user.room


@dataclass(frozen=True)
class LeaveMessage:
    """A user left a conversation."""

    user: ChatUser
    ts: str
    raw_event: dict[str, Any]
    kind: MessageKind = field(default=MessageKind.LEAVE, init=False)

    @property
    def room(self) -> str:
        return self.user.room


@dataclass(frozen=True)
class TopicMessage:
    """A conversation topic was changed."""

    user: ChatUser
    topic: str
    ts: str
    raw_event: dict[str, Any]
    kind: MessageKind = field(default=MessageKind.TOPIC, init=False)

    @property
    def room(self) -> str:
        return self.user.room


NormalizedMessage = (
    TextMessage | ReactionMessage | FileSharedMessage | EnterMessage | LeaveMessage | TopicMessage
)


@dataclass(frozen=True)
class Envelope:
    """Addressing information for an outbound send, reply or topic change."""

    room: str
    user: ChatUser | None = None
    message: NormalizedMessage | None = None

    @property
    def thread_ts(self) -> str | None:
        """Thread of the inbound message this envelope answers, if any."""
        if isinstance(self.message, TextMessage):
            return self.message.thread_ts
        return None

    @classmethod
    def for_message(cls, message: NormalizedMessage) -> "Envelope":
        """Build an envelope that answers ``message`` in its own room."""
        return cls(room=message.user.room, user=message.user, message=message)
