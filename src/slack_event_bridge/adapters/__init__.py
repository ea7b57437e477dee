"""Concrete implementations of collaborator interfaces."""

from .chat.slack import SlackAdapter

__all__ = ["SlackAdapter"]
