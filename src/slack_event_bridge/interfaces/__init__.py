"""Protocol definitions for pluggable collaborators."""

from .listener import MessageListener, UserStore
from .lookup import EntityLookup
from .transport import SocketTransport

__all__ = ["EntityLookup", "MessageListener", "SocketTransport", "UserStore"]
