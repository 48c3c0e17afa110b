"""settings.py – Runtime configuration

All knobs come from environment variables; the three credentials fall back
to Google Secret Manager through :pyfunc:`isummarize.helper_functions.resolve_secret`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional
import os

from isummarize.errors import ConfigError
from isummarize.helper_functions import resolve_secret

__all__ = [
    "SamplingConfig",
    "Settings",
    "load_settings",
]


@dataclass(frozen=True)
class SamplingConfig:
    """Sampling parameters forwarded to the completion endpoint."""

    temperature: float = 0.7
    max_tokens: int = 2048
    top_p: float = 1.0
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0

    def as_kwargs(self) -> Dict[str, float]:
        return {
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "top_p": self.top_p,
            "frequency_penalty": self.frequency_penalty,
            "presence_penalty": self.presence_penalty,
        }


@dataclass(frozen=True)
class Settings:
    slack_bot_token: str
    openai_api_key: str
    slack_signing_secret: Optional[str] = None
    openai_model: str = "gpt-4o"
    archive_url: str = "https://isummarize.slack.com/archives"
    channel_types: str = "public_channel"
    trigger_phrase: str = "@i_summarize summarize"
    lookback_hours: int = 24
    history_limit: int = 100
    interval_seconds: int = 86400
    channel_workers: int = 1
    request_timeout: float = 30.0
    initial_recipient: Optional[str] = None
    sampling: SamplingConfig = field(default_factory=SamplingConfig)


def _number_env(name: str, default, cast=int):
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def load_settings() -> Settings:
    """Build :class:`Settings` from the environment (and Secret Manager)."""
    return Settings(
        slack_bot_token=resolve_secret("SLACK_BOT_TOKEN", "isummarize-slack-bot-token"),
        openai_api_key=resolve_secret("OPENAI_API_KEY", "isummarize-openai-key"),
        slack_signing_secret=resolve_secret(
            "SLACK_SIGNING_SECRET", "isummarize-slack-signing-secret", required=False
        ),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o"),
        archive_url=os.getenv(
            "SLACK_ARCHIVE_URL", "https://isummarize.slack.com/archives"
        ).rstrip("/"),
        channel_types=os.getenv("SLACK_CHANNEL_TYPES", "public_channel"),
        trigger_phrase=os.getenv("SUMMARY_TRIGGER_PHRASE", "@i_summarize summarize"),
        lookback_hours=_number_env("SUMMARY_LOOKBACK_HOURS", 24),
        history_limit=_number_env("SUMMARY_HISTORY_LIMIT", 100),
        interval_seconds=_number_env("SUMMARY_INTERVAL_SECONDS", 86400),
        channel_workers=max(1, _number_env("SUMMARY_CHANNEL_WORKERS", 1)),
        request_timeout=_number_env("REQUEST_TIMEOUT_SECONDS", 30.0, float),
        initial_recipient=os.getenv("INITIAL_RECIPIENT") or None,
    )
