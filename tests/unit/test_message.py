"""Tests for message, envelope and entity models."""

from dataclasses import FrozenInstanceError

import pytest

from slack_event_bridge.models.entity import BotIdentity
from slack_event_bridge.models.envelope import EventEnvelope
from slack_event_bridge.models.message import (
    ChatUser,
    EnterMessage,
    Envelope,
    FileSharedMessage,
    LeaveMessage,
    Mention,
    MentionType,
    MessageKind,
    ReactionMessage,
    ReactionType,
    TextMessage,
    TopicMessage,
)

USER = ChatUser(id="U123", name="name", room="C123")


class TestVariants:
    """Test the closed set of normalized messages."""

    def test_text_message(self) -> None:
        mention = Mention(id="U999", type=MentionType.USER)
        message = TextMessage(
            user=USER,
            text="hi @other",
            raw_text="hi <@U999>",
            ts="1.0",
            raw_event={"type": "message"},
            mentions=(mention,),
        )
        assert message.kind == MessageKind.TEXT
        assert message.room == "C123"
        assert message.thread_ts is None
        assert message.mentions[0].info is None

    @pytest.mark.parametrize(
        "message,kind",
        [
            (ReactionMessage(ReactionType.ADDED, USER, "+1", {"ts": "1.0"}, "2.0", {}), MessageKind.REACTION),
            (FileSharedMessage(USER, "F123", "1.0", {}), MessageKind.FILE_SHARED),
            (EnterMessage(USER, "1.0", {}), MessageKind.ENTER),
            (LeaveMessage(USER, "1.0", {}), MessageKind.LEAVE),
            (TopicMessage(USER, "new topic", "1.0", {}), MessageKind.TOPIC),
        ],
    )
    def test_kind_tags(self, message: object, kind: MessageKind) -> None:
        assert message.kind == kind  # type: ignore[attr-defined]
        assert message.room == "C123"  # type: ignore[attr-defined]

    def test_kind_not_settable(self) -> None:
        with pytest.raises(TypeError):
            EnterMessage(USER, "1.0", {}, kind=MessageKind.LEAVE)  # type: ignore[call-arg]

    def test_frozen(self) -> None:
        with pytest.raises(FrozenInstanceError):
            USER.name = "changed"  # type: ignore[misc]


class TestEnvelope:
    """Test outbound addressing."""

    def test_for_message(self) -> None:
        message = TextMessage(USER, "hi", "hi", "1.0", {}, thread_ts="0.5")
        envelope = Envelope.for_message(message)
        assert envelope.room == "C123"
        assert envelope.user is USER
        assert envelope.thread_ts == "0.5"

    def test_thread_ts_only_for_text(self) -> None:
        envelope = Envelope.for_message(EnterMessage(USER, "1.0", {}))
        assert envelope.thread_ts is None
        assert Envelope(room="C123").thread_ts is None


class TestEventEnvelope:
    """Test inbound delivery parsing."""

    def test_socket_mode_shape(self) -> None:
        envelope = EventEnvelope.from_payload(
            {
                "envelope_id": "abc",
                "body": {"event_id": "Ev1", "event": {"type": "message"}},
                "retry_num": 2,
                "retry_reason": "timeout",
            }
        )
        assert envelope.event == {"type": "message"}
        assert envelope.delivery_id == "Ev1"
        assert envelope.retry_num == 2
        assert envelope.retry_reason == "timeout"
        assert envelope.is_retry

    def test_retry_fields_in_body(self) -> None:
        envelope = EventEnvelope.from_payload(
            {"body": {"event_id": "Ev1", "retry_num": 1, "retry_reason": "http_error"}, "event": {"type": "x"}}
        )
        assert envelope.retry_num == 1
        assert envelope.retry_reason == "http_error"
        assert envelope.event == {"type": "x"}

    def test_missing_retry_fields(self) -> None:
        envelope = EventEnvelope.from_payload({"envelope_id": "abc", "body": {}, "retry_num": None})
        assert envelope.retry_num == 0
        assert envelope.retry_reason == ""
        assert not envelope.is_retry

    def test_delivery_id_falls_back_to_envelope_id(self) -> None:
        envelope = EventEnvelope.from_payload({"envelope_id": "abc", "body": {}})
        assert envelope.event_id is None
        assert envelope.delivery_id == "abc"

    def test_no_identity(self) -> None:
        assert EventEnvelope(event={}).delivery_id is None


class TestBotIdentity:
    """Test how the bot is addressed."""

    def test_address_defaults_to_name(self) -> None:
        assert BotIdentity(id="UBOT", name="bot").address == "@bot"

    def test_alias_wins(self) -> None:
        assert BotIdentity(id="UBOT", name="bot", alias="!").address == "!"
