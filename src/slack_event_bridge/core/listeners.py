"""Listener registration for bot code that consumes normalized messages.

Bot code registers callbacks with ``listen``, ``hear_reaction`` and
``file_shared``; the registry is itself a ``MessageListener`` and is what
the bridge dispatches to.

Each registration helper accepts the same argument shapes:

    registry.hear_reaction(callback)
    registry.hear_reaction({"id": "thumbs"}, callback)
    registry.hear_reaction(matcher, callback)
    registry.hear_reaction(matcher, {"id": "thumbs"}, callback)
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import structlog

from ..models.message import FileSharedMessage, NormalizedMessage, ReactionMessage
from ..utils.logging import LogEventNames

log = structlog.get_logger()

Matcher = Callable[[NormalizedMessage], bool]
Callback = Callable[[NormalizedMessage], Any]


@dataclass
class Listener:
    """A matcher, its options and the callback run on a match."""

    matcher: Matcher
    callback: Callback
    options: dict[str, Any] = field(default_factory=lambda: {"id": None})


def _parse_registration(args: tuple[Any, ...]) -> tuple[Matcher | None, dict[str, Any], Callback]:
    """Split ``[matcher,] [options,] callback`` into its parts.

    Raises:
        TypeError: If the arguments fit none of the accepted shapes
    """
    if not args or not callable(args[-1]):
        raise TypeError("A listener needs a callback as its last argument")

    callback = args[-1]
    matcher: Matcher | None = None
    options: dict[str, Any] = {"id": None}

    for arg in args[:-1]:
        if isinstance(arg, dict):
            options = {"id": None, **arg}
        elif callable(arg) and matcher is None:
            matcher = arg
        else:
            raise TypeError(f"Unexpected listener argument: {arg!r}")

    return matcher, options, callback


class ListenerRegistry:
    """Ordered set of listeners; dispatches each message to every match.

    A callback that raises is logged and does not stop the listeners after
    it.
    """

    def __init__(self) -> None:
        self.listeners: list[Listener] = []

    def listen(self, *args: Any) -> Listener:
        """Register a listener for any message; the matcher defaults to all."""
        matcher, options, callback = _parse_registration(args)
        return self._add(matcher or (lambda _message: True), options, callback)

    def hear_reaction(self, *args: Any) -> Listener:
        """Register a listener for reactions added or removed."""
        return self._add_typed(ReactionMessage, args)

    def file_shared(self, *args: Any) -> Listener:
        """Register a listener for files shared into a conversation."""
        return self._add_typed(FileSharedMessage, args)

    def _add_typed(self, message_type: type, args: tuple[Any, ...]) -> Listener:
        user_matcher, options, callback = _parse_registration(args)

        def matcher(message: NormalizedMessage) -> bool:
            if not isinstance(message, message_type):
                return False
            return bool(user_matcher(message)) if user_matcher else True

        return self._add(matcher, options, callback)

    def _add(self, matcher: Matcher, options: dict[str, Any], callback: Callback) -> Listener:
        listener = Listener(matcher=matcher, callback=callback, options=options)
        self.listeners.append(listener)
        return listener

    async def receive(self, message: NormalizedMessage) -> None:
        for listener in list(self.listeners):
            try:
                if not listener.matcher(message):
                    continue
                result = listener.callback(message)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                log.exception(
                    LogEventNames.LISTENER_FAILED,
                    listener_id=listener.options.get("id"),
                    kind=str(message.kind),
                    error=str(e),
                )
