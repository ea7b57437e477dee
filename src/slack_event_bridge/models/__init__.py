"""Data models and transfer objects."""

from .entity import BotIdentity, CacheEntry, EntityKind
from .envelope import EventEnvelope
from .message import (
    ChatUser,
    EnterMessage,
    Envelope,
    FileSharedMessage,
    LeaveMessage,
    Mention,
    MentionType,
    MessageKind,
    NormalizedMessage,
    ReactionMessage,
    ReactionType,
    TextMessage,
    TopicMessage,
)

__all__ = [
    # Entity models
    "BotIdentity",
    "CacheEntry",
    "EntityKind",
    # Inbound
    "EventEnvelope",
    # Message models
    "ChatUser",
    "EnterMessage",
    "Envelope",
    "FileSharedMessage",
    "LeaveMessage",
    "Mention",
    "MentionType",
    "MessageKind",
    "NormalizedMessage",
    "ReactionMessage",
    "ReactionType",
    "TextMessage",
    "TopicMessage",
]
