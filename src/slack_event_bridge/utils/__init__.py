"""Utility functions and helpers.

This module provides various utilities for the Slack event bridge:
- security: Token redaction for logs and config dumps
- async_helpers: Exceptions, timeouts and reconnect retry
- logging: Structured logging with secret sanitization
"""

from slack_event_bridge.utils.async_helpers import (
    BridgeError,
    EntityLookupError,
    RateLimitError,
    create_reconnect_retrying,
    with_timeout,
)
from slack_event_bridge.utils.logging import (
    LogEventNames,
    LogFormat,
    LogLevel,
    bind_context,
    configure_logging,
    unbind_context,
)
from slack_event_bridge.utils.security import (
    RedactionError,
    SecretRedactor,
    SecurityError,
)

__all__ = [
    # Errors and retry
    "BridgeError",
    "EntityLookupError",
    "RateLimitError",
    "create_reconnect_retrying",
    "with_timeout",
    # Logging
    "LogEventNames",
    "LogFormat",
    "LogLevel",
    "bind_context",
    "configure_logging",
    "unbind_context",
    # Security
    "RedactionError",
    "SecretRedactor",
    "SecurityError",
]
