"""Configuration management for the Pulse monitoring service."""

import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class NotificationConfig(BaseModel):
    """Alert delivery configuration."""
    default_channel: str = Field(default="email", description="Channel used when a project sets no notify type")
    notify_on_recovery: bool = Field(default=False, description="Send a message when an open alert is resolved")
    email_from: str = Field(default="alerts@pulse.local", description="Sender address for alert e-mails")
    resend_api_key: Optional[str] = Field(default=None, description="Resend API key for e-mail delivery")
    resend_api_url: str = Field(default="https://api.resend.com/emails", description="Resend e-mail endpoint")
    telegram_bot_token: Optional[str] = Field(default=None, description="Telegram bot token")
    telegram_chat_id: Optional[str] = Field(default=None, description="Telegram chat receiving alerts")
    timeout_seconds: float = Field(default=15.0, description="Timeout for notification HTTP calls")


class UptimeConfig(BaseModel):
    """Uptime aggregation and retention configuration."""
    cron_minutes: int = Field(default=30, description="Run the aggregation every N minutes")
    window_minutes: int = Field(default=30, description="Trailing window summarized per run")
    retention_enabled: bool = Field(default=False, description="Prune raw checks older than the window after summarizing")


class MonitorSettings(BaseModel):
    """Main configuration for the monitoring service."""

    # Storage
    db_path: str = Field(default="data/pulse.db", description="SQLite database path")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="console", description="console or json")

    # Scheduling
    config_poll_seconds: int = Field(default=30, description="How often the desired configuration is re-read")
    default_check_interval_seconds: int = Field(default=300, description="Interval used when a project sets none")
    max_overlapping_probes: int = Field(default=3, description="Concurrent in-flight ticks allowed per target")
    misfire_grace_seconds: int = Field(default=30, description="How late a tick may still start")

    # Probing
    probe_timeout_seconds: float = Field(default=10.0, description="Per-probe HTTP timeout")
    user_agent: str = Field(default="PulseMonitor/0.1", description="User-Agent sent with probes")

    # Status app
    http_host: str = Field(default="0.0.0.0", description="Status app bind host")
    http_port: int = Field(default=8000, description="Status app port")

    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    uptime: UptimeConfig = Field(default_factory=UptimeConfig)


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes", "on")


def load_config(config_path: Optional[str] = None) -> MonitorSettings:
    """Load configuration from file or environment variables."""
    if config_path is None:
        config_path = os.getenv("PULSE_CONFIG", "config/pulse.yaml")

    config_data: dict = {}

    if config_path and os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}
        if not isinstance(config_data, dict):
            raise ValueError("Config YAML must be a mapping")

    env_overrides = {
        "db_path": os.getenv("PULSE_DB_PATH"),
        "log_level": os.getenv("LOG_LEVEL"),
        "log_format": os.getenv("LOG_FORMAT"),
        "config_poll_seconds": os.getenv("PULSE_CONFIG_POLL_SECONDS"),
        "probe_timeout_seconds": os.getenv("PULSE_PROBE_TIMEOUT_SECONDS"),
        "http_port": os.getenv("PORT"),
    }
    for key, value in env_overrides.items():
        if value is None:
            continue
        if key in ("config_poll_seconds", "http_port"):
            value = int(value)
        elif key == "probe_timeout_seconds":
            value = float(value)
        config_data[key] = value

    notifications = dict(config_data.get("notifications") or {})
    notification_env = {
        "resend_api_key": os.getenv("RESEND_API_KEY"),
        "email_from": os.getenv("PULSE_EMAIL_FROM"),
        "telegram_bot_token": os.getenv("TELEGRAM_BOT_TOKEN"),
        "telegram_chat_id": os.getenv("TELEGRAM_CHAT_ID"),
    }
    for key, value in notification_env.items():
        if value is not None:
            notifications[key] = value
    config_data["notifications"] = notifications

    uptime = dict(config_data.get("uptime") or {})
    retention = os.getenv("PULSE_RETENTION_ENABLED")
    if retention is not None:
        uptime["retention_enabled"] = _env_bool(retention)
    config_data["uptime"] = uptime

    return MonitorSettings(**config_data)


def get_config() -> MonitorSettings:
    """Get the global configuration instance."""
    return load_config()
