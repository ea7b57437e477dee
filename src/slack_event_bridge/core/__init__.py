"""Core normalization and dispatch components.

This module exports the main classes:
- Bridge: Orchestrator that feeds Slack events to the listener
- MessageClassifier: Maps raw events onto message variants
- TextNormalizer: Rewrites Slack markup and extracts mentions
- EntityCache: Stale-tolerant user and conversation cache
- DeliveryDeduplicator: Suppresses retried deliveries
- ConnectionManager: Socket state machine with reconnect
- ListenerRegistry: Listener registration and dispatch for bot code
"""

from slack_event_bridge.core.bridge import Bridge, BridgeStartupError, create_bridge
from slack_event_bridge.core.classifier import MessageClassifier
from slack_event_bridge.core.connection import ConnectionEvent, ConnectionManager, ConnectionState
from slack_event_bridge.core.dedup import DeliveryDeduplicator
from slack_event_bridge.core.entity_cache import EntityCache
from slack_event_bridge.core.listeners import Listener, ListenerRegistry
from slack_event_bridge.core.text import NormalizedText, TextNormalizer, decode_entities
from slack_event_bridge.core.user_store import InMemoryUserStore

__all__ = [
    "Bridge",
    "BridgeStartupError",
    "ConnectionEvent",
    "ConnectionManager",
    "ConnectionState",
    "DeliveryDeduplicator",
    "EntityCache",
    "InMemoryUserStore",
    "Listener",
    "ListenerRegistry",
    "MessageClassifier",
    "NormalizedText",
    "TextNormalizer",
    "create_bridge",
    "decode_entities",
]
