"""Interface for fetching Slack entities by id."""

from typing import Any, Protocol

from ..models.entity import EntityKind


class EntityLookup(Protocol):
    """Fetches user and conversation metadata from the Slack Web API."""

    async def fetch(self, kind: EntityKind, entity_id: str) -> dict[str, Any]:
        """
        Fetch one entity.

        Args:
            kind: Whether ``entity_id`` names a user or a conversation
            entity_id: Slack id such as ``U123`` or ``C456``

        Returns:
            The entity's metadata as returned by Slack

        Raises:
            EntityLookupError: If Slack reports an error or returns nothing
        """
        ...
