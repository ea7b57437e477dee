"""Pydantic models for configuration schema."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SlackConfig(BaseModel):
    """Slack-specific configuration."""

    bot_token: str
    app_token: str
    proxy: str | None = None
    disable_user_sync: bool = False
    auto_reconnect: bool = True

    @field_validator("bot_token")
    @classmethod
    def validate_bot_token(cls, v: str) -> str:
        """Validate Slack bot token format."""
        if not v.startswith("xoxb-"):
            raise ValueError("Invalid botToken provided, please follow the upgrade instructions")
        return v

    @field_validator("app_token")
    @classmethod
    def validate_app_token(cls, v: str) -> str:
        """Validate Slack app token format."""
        if not v.startswith("xapp-"):
            raise ValueError("Invalid appToken provided, please follow the upgrade instructions")
        return v

    @field_validator("proxy")
    @classmethod
    def blank_proxy_is_none(cls, v: str | None) -> str | None:
        """Treat an empty proxy (e.g. an unset ``${VAR:-}``) as no proxy."""
        return v or None


class BotConfig(BaseModel):
    """How the bot is addressed in chat."""

    name: str | None = Field(None, description="Overrides the name reported by auth.test")
    alias: str | None = None


class CacheConfig(BaseModel):
    """Entity cache configuration."""

    ttl: float = Field(300.0, gt=0, description="Freshness window in seconds")
    maxsize: int = Field(5000, ge=1)
    lookup_timeout: float = Field(10.0, gt=0, le=120.0)


class DedupConfig(BaseModel):
    """Retried-delivery suppression configuration."""

    ttl: float = Field(3600.0, gt=0, description="How long a delivery id is remembered")
    maxsize: int = Field(10000, ge=1)
    release_on_complete: bool = False


class ReconnectConfig(BaseModel):
    """Backoff for automatic socket reconnects."""

    # Attempts per reconnect round; unbounded when unset
    max_attempts: int | None = Field(None, ge=1, le=100)
    initial_delay: float = Field(1.0, ge=0.1, le=10.0)
    max_delay: float = Field(60.0, ge=1.0, le=600.0)
    exponential_base: float = Field(2.0, ge=1.5, le=4.0)


class FileLoggingConfig(BaseModel):
    """File logging configuration."""

    enabled: bool = False
    path: Path = Path("/var/log/slack-event-bridge/bridge.log")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "json"
    file: FileLoggingConfig = FileLoggingConfig()


class RuntimeConfig(BaseModel):
    """Runtime configuration."""

    shutdown_timeout: float = Field(
        30.0, ge=0, le=600, description="Seconds to wait for in-flight events on shutdown"
    )
    queue_size: int = Field(1000, ge=1, description="Acknowledged events awaiting dispatch")


class BridgeConfig(BaseSettings):
    """Root configuration for the Slack event bridge."""

    slack: SlackConfig
    bot: BotConfig = BotConfig()
    cache: CacheConfig = CacheConfig()
    dedup: DedupConfig = DedupConfig()
    reconnect: ReconnectConfig = ReconnectConfig()
    runtime: RuntimeConfig = RuntimeConfig()
    logging: LoggingConfig = LoggingConfig()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SLACK_BRIDGE_",
        env_nested_delimiter="__",
    )
