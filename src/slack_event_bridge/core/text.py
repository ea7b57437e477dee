"""Slack markup normalization and mention extraction.

Slack delivers message text with HTML-escaped ``&``, ``<`` and ``>`` and
encodes references as ``<target>`` or ``<target|label>``. This module turns
that into the text a human would read and, in the same scan, records which
users and conversations were referenced.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import structlog

from ..models.entity import BotIdentity, EntityKind
from ..models.message import Mention, MentionType
from .entity_cache import EntityCache

log = structlog.get_logger()

ENTITY_PATTERN = re.compile(r"&(amp|lt|gt|quot|#\d+|#[xX][0-9a-fA-F]+);")

# Targets start with a sigil or a URL scheme. Anything else in angle
# brackets is not markup and stays untouched.
REFERENCE_PATTERN = re.compile(
    r"<(?P<target>[@#!][^<>|]*|[A-Za-z][A-Za-z0-9+.\-]*:[^<>|]*)(?:\|(?P<label>[^<>]*))?>"
)

SCHEME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:(?://)?")

BROADCAST_WORDS = frozenset({"everyone", "channel", "group", "here"})

_NAMED_ENTITIES = {"amp": "&", "lt": "<", "gt": ">", "quot": '"'}


def _decode_entity(match: re.Match[str]) -> str:
    name = match.group(1)
    if name in _NAMED_ENTITIES:
        return _NAMED_ENTITIES[name]
    try:
        if name[1] in "xX":
            return chr(int(name[2:], 16))
        return chr(int(name[1:]))
    except (ValueError, OverflowError):
        return match.group(0)


def decode_entities(text: str) -> str:
    """Decode Slack's HTML entities in one left-to-right pass.

    ``&amp;lt;`` becomes ``&lt;``, not ``<``.
    """
    return ENTITY_PATTERN.sub(_decode_entity, text)


def _strip_scheme(value: str) -> str:
    return SCHEME_PATTERN.sub("", value, count=1)


def render_link(target: str, label: str | None) -> str:
    """Render a URL-like reference.

    The label is dropped when it is just the start or end of the target
    (``<https://example.com|example.com>``). Otherwise it is shown with the
    target in parentheses.
    """
    display = target[len("mailto:") :] if target.lower().startswith("mailto:") else target
    if not label:
        return display

    bare_target = _strip_scheme(target)
    bare_label = _strip_scheme(label)
    if bare_target.startswith(bare_label) or bare_target.endswith(bare_label):
        return display
    return f"{label} ({display})"


def render_special(target: str, label: str | None, token: str) -> str:
    """Render a ``<!...>`` reference; unknown words without a label are kept."""
    word = target[1:]
    if word in BROADCAST_WORDS:
        return f"@{word}"
    if word.startswith("subteam^"):
        if not label:
            return token
        return label[1:] if label.startswith("@@") else label
    if label:
        return label
    return token


def with_attachment_fallbacks(text: str | None, attachments: Iterable[dict[str, Any]] | None) -> str:
    """Append each attachment's ``fallback`` on its own line."""
    body = text or ""
    for attachment in attachments or ():
        fallback = attachment.get("fallback") if isinstance(attachment, dict) else None
        if fallback:
            body += f"\n{fallback}"
    return body


@dataclass(frozen=True)
class NormalizedText:
    """Result of one normalization pass."""

    text: str
    raw_text: str
    mentions: tuple[Mention, ...]


class TextNormalizer:
    """Rewrites Slack markup to display text and collects mentions.

    Example:
        normalizer = TextNormalizer(cache, identity)
        result = await normalizer.normalize("hi <@U123>")
        result.text  # "hi @alice"
    """

    def __init__(self, cache: EntityCache, identity: BotIdentity | None = None) -> None:
        self._cache = cache
        self._identity = identity

    async def normalize(
        self,
        text: str | None,
        attachments: Iterable[dict[str, Any]] | None = None,
    ) -> NormalizedText:
        """
        Normalize message text in a single pass over its references.

        Args:
            text: Raw text as delivered by Slack
            attachments: Attachments whose fallbacks extend the body

        Returns:
            Display text, decoded raw text and mentions in order of appearance
        """
        body = with_attachment_fallbacks(text, attachments)
        mentions: list[Mention] = []
        parts: list[str] = []
        position = 0

        for match in REFERENCE_PATTERN.finditer(body):
            parts.append(decode_entities(body[position : match.start()]))
            parts.append(await self._rewrite(match, mentions))
            position = match.end()
        parts.append(decode_entities(body[position:]))

        return NormalizedText(
            text="".join(parts),
            raw_text=decode_entities(body),
            mentions=tuple(mentions),
        )

    async def _rewrite(self, match: re.Match[str], mentions: list[Mention]) -> str:
        token = decode_entities(match.group(0))
        target = decode_entities(match.group("target"))
        label = match.group("label")
        if label is not None:
            label = decode_entities(label)

        sigil = target[0]
        if sigil == "@":
            return await self._rewrite_entity(
                target[1:], label, token, "@", EntityKind.USER, MentionType.USER, mentions
            )
        elif sigil == "#":
            return await self._rewrite_entity(
                target[1:],
                label,
                token,
                "#",
                EntityKind.CONVERSATION,
                MentionType.CONVERSATION,
                mentions,
            )
        elif sigil == "!":
            return render_special(target, label, token)
        return render_link(target, label)

    async def _rewrite_entity(
        self,
        entity_id: str,
        label: str | None,
        token: str,
        sigil: str,
        kind: EntityKind,
        mention_type: MentionType,
        mentions: list[Mention],
    ) -> str:
        # Mentions record what the cache held before this token was resolved
        mentions.append(Mention(id=entity_id, type=mention_type, info=self._cache.peek(kind, entity_id)))

        if label:
            return f"{sigil}{label}"

        if kind == EntityKind.USER and self._identity and entity_id == self._identity.id:
            return self._identity.address

        info = await self._cache.resolve(kind, entity_id)
        name = info.get("name") if info else None
        if not name:
            log.debug("reference_unresolved", kind=str(kind), entity_id=entity_id)
            return token
        return f"{sigil}{name}"
