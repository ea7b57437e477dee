"""Tests for Slack markup normalization and mention extraction."""

from __future__ import annotations

import pytest
from conftest import BOT_ID, CHANNEL_ID, USER_ID, FakeLookup

from slack_event_bridge.core.entity_cache import EntityCache
from slack_event_bridge.core.text import (
    TextNormalizer,
    decode_entities,
    render_link,
    with_attachment_fallbacks,
)
from slack_event_bridge.models.entity import BotIdentity, EntityKind
from slack_event_bridge.models.message import MentionType


@pytest.fixture
def normalizer(cache: EntityCache, identity: BotIdentity) -> TextNormalizer:
    return TextNormalizer(cache, identity)


async def normalize(normalizer: TextNormalizer, text: str) -> str:
    return (await normalizer.normalize(text)).text


class TestDecodeEntities:
    """Test HTML entity decoding."""

    def test_decodes_standard_entities(self) -> None:
        assert decode_entities("foo &gt; &amp; &lt; &gt;&amp;&lt;") == "foo > & < >&<"

    def test_decodes_quote_and_numeric(self) -> None:
        assert decode_entities("&quot;hi&quot; &#39; &#x41;") == "\"hi\" ' A"

    def test_decodes_exactly_once(self) -> None:
        assert decode_entities("&amp;lt;") == "&lt;"

    def test_plain_text_unchanged(self) -> None:
        assert decode_entities("already > decoded & fine") == "already > decoded & fine"

    def test_invalid_codepoint_left_alone(self) -> None:
        assert decode_entities("&#99999999999;") == "&#99999999999;"


class TestLinks:
    """Test URL-like references."""

    async def test_http_link(self, normalizer: TextNormalizer) -> None:
        assert await normalize(normalizer, "foo <http://www.example.com> bar") == (
            "foo http://www.example.com bar"
        )

    async def test_https_link(self, normalizer: TextNormalizer) -> None:
        assert await normalize(normalizer, "foo <https://www.example.com> bar") == (
            "foo https://www.example.com bar"
        )

    async def test_skype_link(self, normalizer: TextNormalizer) -> None:
        assert await normalize(normalizer, "foo <skype:echo123?call> bar") == (
            "foo skype:echo123?call bar"
        )

    async def test_labelled_link(self, normalizer: TextNormalizer) -> None:
        assert await normalize(normalizer, "foo <https://www.example.com|label> bar") == (
            "foo label (https://www.example.com) bar"
        )

    async def test_substring_label_collapses(self, normalizer: TextNormalizer) -> None:
        assert await normalize(normalizer, "foo <https://www.example.com|example.com> bar") == (
            "foo https://www.example.com bar"
        )

    async def test_label_equal_to_target_collapses(self, normalizer: TextNormalizer) -> None:
        assert await normalize(normalizer, "foo <https://example.com|example.com> bar") == (
            "foo https://example.com bar"
        )

    async def test_label_with_entities_decoded_once(self, normalizer: TextNormalizer) -> None:
        assert await normalize(
            normalizer, "foo <https://www.example.com|label &gt; &amp; &lt;> bar"
        ) == "foo label > & < (https://www.example.com) bar"

    async def test_mailto_link(self, normalizer: TextNormalizer) -> None:
        assert await normalize(normalizer, "foo <mailto:name@example.com> bar") == (
            "foo name@example.com bar"
        )

    async def test_mailto_link_with_email_label(self, normalizer: TextNormalizer) -> None:
        assert await normalize(
            normalizer, "foo <mailto:name@example.com|name@example.com> bar"
        ) == "foo name@example.com bar"

    def test_label_comparison_is_case_sensitive(self) -> None:
        assert render_link("https://example.com", "Example.com") == "Example.com (https://example.com)"

    def test_label_with_scheme_compared_without_it(self) -> None:
        assert render_link("https://example.com/path", "http://example.com") == (
            "https://example.com/path"
        )

    async def test_encoded_brackets_do_not_form_references(self, normalizer: TextNormalizer) -> None:
        assert await normalize(normalizer, "a &lt;@U999&gt; b") == "a <@U999> b"


class TestUserAndConversationReferences:
    """Test @user and #conversation references."""

    async def test_user_resolved_to_name(self, normalizer: TextNormalizer) -> None:
        assert await normalize(normalizer, "foo <@U123> bar") == "foo @name bar"

    async def test_user_label(self, normalizer: TextNormalizer) -> None:
        assert await normalize(normalizer, "foo <@U123|label> bar") == "foo @label bar"

    async def test_unknown_user_left_as_is(self, normalizer: TextNormalizer) -> None:
        assert await normalize(normalizer, "foo <@U555> bar") == "foo <@U555> bar"

    async def test_user_without_name_left_as_is(
        self, normalizer: TextNormalizer, lookup: FakeLookup
    ) -> None:
        lookup.entities[(EntityKind.USER, "U789")] = {"id": "U789"}
        assert await normalize(normalizer, "foo <@U789> bar") == "foo <@U789> bar"

    async def test_conversation_resolved_to_name(self, normalizer: TextNormalizer) -> None:
        assert await normalize(normalizer, "foo <#C123> bar") == "foo #general bar"

    async def test_conversation_label(self, normalizer: TextNormalizer) -> None:
        assert await normalize(normalizer, "foo <#C123|label> bar") == "foo #label bar"

    async def test_unknown_conversation_left_as_is(self, normalizer: TextNormalizer) -> None:
        assert await normalize(normalizer, "foo <#C555> bar") == "foo <#C555> bar"

    async def test_bot_renders_as_name(self, normalizer: TextNormalizer, lookup: FakeLookup) -> None:
        assert await normalize(normalizer, f"<@{BOT_ID}> foo") == "@bot foo"
        assert lookup.count(EntityKind.USER, BOT_ID) == 0

    async def test_bot_renders_as_alias(self, cache: EntityCache) -> None:
        normalizer = TextNormalizer(cache, BotIdentity(id="1234", name="bot", alias="!"))
        assert await normalize(normalizer, "<@1234> foo") == "! foo"

    async def test_labelled_reference_does_not_fetch(
        self, normalizer: TextNormalizer, lookup: FakeLookup
    ) -> None:
        await normalize(normalizer, "foo <@U123|label> <#C123|chan>")
        assert lookup.calls == []


class TestSpecialReferences:
    """Test <!...> references."""

    @pytest.mark.parametrize("word", ["everyone", "channel", "group", "here"])
    async def test_broadcast(self, normalizer: TextNormalizer, word: str) -> None:
        assert await normalize(normalizer, f"foo <!{word}> bar") == f"foo @{word} bar"

    async def test_subteam(self, normalizer: TextNormalizer) -> None:
        assert await normalize(normalizer, "foo <!subteam^S123|@subteam> bar") == "foo @subteam bar"

    async def test_subteam_doubled_at_collapsed(self, normalizer: TextNormalizer) -> None:
        assert await normalize(normalizer, "<!subteam^S123|@@ops>") == "@ops"

    async def test_labelled_command(self, normalizer: TextNormalizer) -> None:
        assert await normalize(normalizer, "foo <!foobar|hello> bar") == "foo hello bar"

    async def test_unknown_command_left_as_is(self, normalizer: TextNormalizer) -> None:
        assert await normalize(normalizer, "foo <!foobar> bar") == "foo <!foobar> bar"


class TestSinglePass:
    """Test rewriting several references in one text."""

    async def test_multiple_kinds(self, normalizer: TextNormalizer) -> None:
        text = "foo <@U123|label> bar <#C123> <!channel> <https://www.example.com|label>"
        assert await normalize(normalizer, text) == (
            "foo @label bar #general @channel label (https://www.example.com)"
        )

    async def test_non_reference_brackets_untouched(self, normalizer: TextNormalizer) -> None:
        assert await normalize(normalizer, "1 <3 and <nope>") == "1 <3 and <nope>"

    async def test_raw_text_keeps_markup(self, normalizer: TextNormalizer) -> None:
        result = await normalizer.normalize("foo <http://www.example.com> &amp; bar")
        assert result.text == "foo http://www.example.com & bar"
        assert result.raw_text == "foo <http://www.example.com> & bar"


class TestAttachments:
    """Test attachment fallbacks."""

    async def test_empty_text_with_attachment(self, normalizer: TextNormalizer) -> None:
        result = await normalizer.normalize(None, [{"fallback": "first"}])
        assert result.text == "\nfirst"

    async def test_empty_attachment_list(self, normalizer: TextNormalizer) -> None:
        result = await normalizer.normalize("foo", [])
        assert result.text == "foo"

    async def test_flattens_attachments(self, normalizer: TextNormalizer) -> None:
        result = await normalizer.normalize("foo bar", [{"fallback": "first"}, {"fallback": "second"}])
        assert result.text == "foo bar\nfirst\nsecond"

    def test_attachments_without_fallback_skipped(self) -> None:
        assert with_attachment_fallbacks("foo", [{"text": "x"}, {"fallback": ""}]) == "foo"


class TestMentions:
    """Test mention extraction."""

    async def test_single_user_mention(self, normalizer: TextNormalizer) -> None:
        result = await normalizer.normalize("foo <@U123> bar")
        assert len(result.mentions) == 1
        assert result.mentions[0].id == USER_ID
        assert result.mentions[0].type == MentionType.USER

    async def test_unresolved_mention_has_no_info(self, normalizer: TextNormalizer) -> None:
        result = await normalizer.normalize("foo <@U123|label> bar")
        assert len(result.mentions) == 1
        assert result.mentions[0].info is None

    async def test_mention_info_from_cache(self, normalizer: TextNormalizer, cache: EntityCache) -> None:
        cache.put(EntityKind.USER, USER_ID, {"id": USER_ID, "name": "name"})
        result = await normalizer.normalize("foo <@U123> bar")
        assert result.mentions[0].info == {"id": USER_ID, "name": "name"}

    async def test_info_reflects_cache_before_resolution(self, normalizer: TextNormalizer) -> None:
        result = await normalizer.normalize("<@U123> <@U123>")
        assert result.mentions[0].info is None
        assert result.mentions[1].info is not None

    async def test_multiple_mentions_in_order(self, normalizer: TextNormalizer) -> None:
        result = await normalizer.normalize("foo <@U123> bar <#C123> baz <@U123|label> qux")
        assert [(m.id, m.type) for m in result.mentions] == [
            (USER_ID, MentionType.USER),
            (CHANNEL_ID, MentionType.CONVERSATION),
            (USER_ID, MentionType.USER),
        ]

    async def test_specials_and_links_are_not_mentions(self, normalizer: TextNormalizer) -> None:
        result = await normalizer.normalize("<!here> <https://example.com> <!subteam^S1|@team>")
        assert result.mentions == ()
