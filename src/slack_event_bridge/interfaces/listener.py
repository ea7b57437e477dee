"""Interface for the bot framework that consumes normalized messages."""

from typing import Protocol

from ..models.message import NormalizedMessage


class MessageListener(Protocol):
    """Receiver of classified messages.

    The bridge calls ``receive`` once per logical Slack event. A listener
    that raises only affects the event it was handed.
    """

    async def receive(self, message: NormalizedMessage) -> None:
        """
        Handle one normalized message.

        Args:
            message: The classified event
        """
        ...


class UserStore(Protocol):
    """Directory of known users, filled by bulk sync."""

    def user_for_id(self, user_id: str, **fields: object) -> dict[str, object]:
        """
        Create or update the record for ``user_id``.

        Args:
            user_id: Slack user id
            **fields: Attributes to merge into the record

        Returns:
            The stored record after the merge
        """
        ...
