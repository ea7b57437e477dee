"""Inbound delivery envelope."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class EventEnvelope:
    """One delivery of a Slack Events API payload.

    Slack re-sends an event it considers unacknowledged; the re-delivery
    carries the same ``event_id`` and a non-zero ``retry_num``.
    """

    event: dict[str, Any]
    body: dict[str, Any] = field(default_factory=dict)
    envelope_id: str | None = None
    retry_num: int = 0
    retry_reason: str = ""

    @property
    def event_id(self) -> str | None:
        return self.body.get("event_id")

    @property
    def delivery_id(self) -> str | None:
        """Identity of the logical event, stable across retries."""
        return self.event_id or self.envelope_id

    @property
    def is_retry(self) -> bool:
        return self.retry_num > 0

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "EventEnvelope":
        """Build an envelope from a raw delivery dict.

        Accepts both ``{body: {event, retry_num, retry_reason}, event}`` and
        the Socket Mode shape where the retry fields and ``envelope_id`` sit
        next to ``body``.
        """
        body: dict[str, Any] = payload.get("body") or {}
        event: dict[str, Any] = payload.get("event") or body.get("event") or {}

        retry_num = payload.get("retry_num")
        if retry_num is None:
            retry_num = body.get("retry_num")
        retry_reason = payload.get("retry_reason") or body.get("retry_reason") or ""

        return cls(
            event=event,
            body=body,
            envelope_id=payload.get("envelope_id"),
            retry_num=int(retry_num or 0),
            retry_reason=retry_reason,
        )
