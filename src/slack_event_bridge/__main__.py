"""Entry point for running the Slack event bridge.

This module provides the main entry point for the bridge.
It handles:
- Configuration loading
- Logging setup with secret sanitization
- Bridge lifecycle management
- A default listener that logs every normalized message
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

import structlog

from slack_event_bridge._version import __version__
from slack_event_bridge.models.message import NormalizedMessage, TextMessage
from slack_event_bridge.utils.security import mask_config_value, sanitize_for_logging

log = structlog.get_logger()


class LoggingListener:
    """Listener that writes each normalized message to the log."""

    async def receive(self, message: NormalizedMessage) -> None:
        fields: dict[str, Any] = {
            "kind": str(message.kind),
            "room": message.room,
            "user_id": message.user.id,
            "user_name": message.user.name,
            "ts": message.ts,
        }
        if isinstance(message, TextMessage):
            fields["text"] = sanitize_for_logging(message.text)
            fields["mentions"] = [m.id for m in message.mentions]
            fields["thread_ts"] = message.thread_ts
        log.info("message_received", **fields)


def setup_logging(debug: bool = False, log_format: str = "console") -> None:
    """Configure structured logging with secret sanitization.

    Args:
        debug: Enable debug logging if True
        log_format: Output format ("json" or "console")
    """
    from slack_event_bridge.utils.logging import LogFormat, LogLevel, configure_logging

    level = LogLevel.DEBUG if debug else LogLevel.INFO
    configure_logging(level=level, log_format=LogFormat(log_format.lower()))


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="slack-event-bridge",
        description="Slack event bridge - Socket Mode events as normalized bot messages",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config/config.yaml"),
        help="Path to configuration file (default: config/config.yaml)",
    )

    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse config and validate without connecting to Slack",
    )

    parser.add_argument(
        "--format",
        choices=["json", "console"],
        default="console",
        help="Log output format (default: console)",
    )

    return parser.parse_args(argv)


async def run_bridge(config_path: Path, dry_run: bool = False, debug: bool = False) -> int:
    """Run the bridge.

    Args:
        config_path: Path to configuration file
        dry_run: If True, only validate config without starting
        debug: Keep DEBUG logging even if the config asks for less

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    log.info("starting_slack_event_bridge", version=__version__, config_path=str(config_path))

    try:
        from pydantic import ValidationError

        from slack_event_bridge.config.loader import load_config

        try:
            config = load_config(config_path)
        except ValidationError as e:
            # One line per rejected field, e.g. a malformed bot or app token
            for error in e.errors():
                log.error(error["msg"].removeprefix("Value error, "), field=".".join(map(str, error["loc"])))
            return 1
        log.info("configuration_loaded")

        from slack_event_bridge.utils.logging import configure_logging

        configure_logging(
            level="DEBUG" if debug else config.logging.level,
            log_format=config.logging.format,
            file_path=config.logging.file.path if config.logging.file.enabled else None,
            file_enabled=config.logging.file.enabled,
        )

        if dry_run:
            log.info(
                "dry_run_mode_config_valid",
                bot_token=mask_config_value("bot_token", config.slack.bot_token),
                app_token=mask_config_value("app_token", config.slack.app_token),
                proxy=mask_config_value("proxy", config.slack.proxy) if config.slack.proxy else None,
                auto_reconnect=config.slack.auto_reconnect,
                user_sync=not config.slack.disable_user_sync,
            )
            return 0

        from slack_event_bridge.core.bridge import create_bridge
        from slack_event_bridge.core.listeners import ListenerRegistry

        registry = ListenerRegistry()
        registry.listen(LoggingListener().receive)
        bridge = create_bridge(config, registry)
        await bridge.start()

        return 0

    except FileNotFoundError as e:
        log.error("configuration_file_not_found", path=str(config_path), error=str(e))
        return 1
    except ValueError as e:
        log.error("configuration_invalid", error=str(e))
        return 1
    except Exception as e:
        log.exception("fatal_error", error=str(e))
        return 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(debug=args.debug, log_format=args.format)

    try:
        return asyncio.run(run_bridge(args.config, args.dry_run, args.debug))
    except KeyboardInterrupt:
        log.info("shutting_down_gracefully")
        return 0


if __name__ == "__main__":
    sys.exit(main())
