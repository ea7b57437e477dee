"""Structured logging configuration with secret sanitization.

This module provides logging configuration for the Slack Event Bridge:
- Configurable log levels and output formats (JSON/console)
- Automatic redaction of Slack tokens in log output
- Context injection for correlating log lines of one delivery
- File and console output support
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from enum import StrEnum
from pathlib import Path
from typing import Any, cast

import structlog

from slack_event_bridge.utils.security import SecretRedactor


class LogFormat(StrEnum):
    """Log output format options."""

    JSON = "json"
    CONSOLE = "console"


class LogLevel(StrEnum):
    """Log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


_redactor: SecretRedactor | None = None


def _get_redactor() -> SecretRedactor:
    """Get or create the global secret redactor."""
    global _redactor
    if _redactor is None:
        _redactor = SecretRedactor(placeholder="[REDACTED]")
    return _redactor


def sanitize_log_value(value: Any) -> Any:
    """Recursively sanitize secrets from log values.

    Args:
        value: Value to sanitize (can be nested dict/list/str)

    Returns:
        Sanitized value with secrets redacted
    """
    redactor = _get_redactor()

    if isinstance(value, str):
        return redactor.redact(value)
    elif isinstance(value, dict):
        return {k: sanitize_log_value(v) for k, v in value.items()}
    elif isinstance(value, (list, tuple)):
        return type(value)(sanitize_log_value(v) for v in value)
    else:
        return value


def secret_sanitizer(
    logger: logging.Logger,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Structlog processor to sanitize secrets from log entries."""
    result = sanitize_log_value(event_dict)
    return cast(MutableMapping[str, Any], result)


def add_context_processor(
    logger: logging.Logger,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Add the service name and version to all log entries."""
    event_dict["service"] = "slack-event-bridge"

    try:
        from slack_event_bridge._version import __version__

        event_dict["version"] = __version__
    except (ImportError, RuntimeError):
        pass

    return event_dict


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    log_format: LogFormat | str = LogFormat.JSON,
    file_path: Path | str | None = None,
    file_enabled: bool = False,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        file_path: Path to log file (if file logging enabled)
        file_enabled: Whether to enable file logging

    Example:
        # For development (colored console output)
        configure_logging(level="DEBUG", log_format="console")

        # For production (JSON for log aggregation)
        configure_logging(level="INFO", log_format="json")
    """
    if isinstance(level, str):
        level = LogLevel(level.upper())
    if isinstance(log_format, str):
        log_format = LogFormat(log_format.lower())

    numeric_level = getattr(logging, level.value)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        add_context_processor,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        secret_sanitizer,
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == LogFormat.JSON:
        shared_processors.append(structlog.processors.JSONRenderer())
    else:
        shared_processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True, exception_formatter=structlog.dev.plain_traceback
            )
        )

    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = []

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    handlers.append(console_handler)

    if file_enabled and file_path:
        try:
            file_path = Path(file_path)
            file_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(file_path)
            file_handler.setLevel(numeric_level)
            handlers.append(file_handler)
        except OSError as e:
            # Continue with console only
            console_logger = logging.getLogger("slack_event_bridge.logging")
            console_logger.warning(f"Could not create log file {file_path}: {e}")

    logging.basicConfig(
        format="%(message)s",
        level=numeric_level,
        handlers=handlers,
        force=True,
    )

    # slack_sdk logs every socket frame at DEBUG
    logging.getLogger("slack_sdk").setLevel(max(numeric_level, logging.INFO))


def bind_context(**kwargs: Any) -> None:
    """Bind contextual variables for all subsequent log calls.

    Example:
        bind_context(delivery_id="Ev08EH8M45HT", channel="C123")
        log.info("event_classified")  # Includes delivery_id and channel
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove contextual variables."""
    structlog.contextvars.unbind_contextvars(*keys)


class LogEventNames:
    """Standard log event names for consistency."""

    # Bridge lifecycle
    BRIDGE_STARTING = "bridge_starting"
    BRIDGE_STARTED = "bridge_started"
    BRIDGE_STOPPING = "bridge_stopping"
    BRIDGE_STOPPED = "bridge_stopped"

    # Event processing
    EVENT_RECEIVED = "event_received"
    EVENT_DROPPED = "event_dropped"
    EVENT_CLASSIFIED = "event_classified"
    EVENT_CLASSIFICATION_FAILED = "event_classification_failed"
    DUPLICATE_DELIVERY = "duplicate_delivery_suppressed"
    LISTENER_FAILED = "listener_dispatch_failed"

    # Entity cache
    CACHE_HIT = "entity_cache_hit"
    CACHE_MISS = "entity_cache_miss"
    CACHE_EXPIRED = "entity_cache_expired"
    CACHE_STALE_SERVED = "entity_cache_stale_served"
    LOOKUP_FAILED = "entity_lookup_failed"

    # Connection
    SOCKET_CONNECTING = "socket_connecting"
    SOCKET_CONNECTED = "socket_connected"
    SOCKET_DISCONNECTED = "socket_disconnected"
    SOCKET_ERROR = "socket_error"
    WAITING_FOR_RECONNECT = "waiting_for_reconnect"
    RECONNECT_FAILED = "reconnect_failed"

    # Outbound
    MESSAGE_SENT = "message_sent"
    SEND_FAILED = "send_failed"
    RATE_LIMITED = "slack_rate_limited"

    # Users
    USERS_SYNCED = "users_synced"
    USER_SYNC_MALFORMED = "user_sync_malformed_response"
