"""Entity cache records and bot identity."""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class EntityKind(StrEnum):
    """Kinds of Slack entity the cache resolves."""

    USER = "user"
    CONVERSATION = "conversation"


@dataclass(frozen=True)
class CacheEntry:
    """A fetched entity and when it was fetched."""

    key: tuple[EntityKind, str]
    value: dict[str, Any]
    fetched_at: float  # Clock reading, not wall time


@dataclass(frozen=True)
class BotIdentity:
    """Who the bot is on the workspace."""

    id: str
    name: str
    alias: str | None = None
    team_id: str | None = None

    @property
    def address(self) -> str:
        """How a message addressing the bot starts."""
        return self.alias or f"@{self.name}"
