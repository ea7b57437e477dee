"""Interface for the socket underneath the connection manager."""

from typing import Protocol


class SocketTransport(Protocol):
    """A persistent event socket that can be opened and closed."""

    async def connect(self) -> None:
        """
        Open the socket.

        Raises:
            Exception: Any failure to establish the connection
        """
        ...

    async def disconnect(self) -> None:
        """Close the socket without reopening it."""
        ...
