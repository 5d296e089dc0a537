"""Runtime configuration for the planner assistant and its store."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

DEFAULT_MODEL_CHAIN: tuple[str, ...] = (
    "gemini-2.5-flash-lite",
    "gemini-2.5-flash",
    "gemini-3-flash-preview",
)
DEFAULT_API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(slots=True)
class AssistantSettings:
    """Model chain, retry and transport settings."""

    api_key: str = ""
    api_base_url: str = DEFAULT_API_BASE_URL
    model_chain: tuple[str, ...] = DEFAULT_MODEL_CHAIN
    max_retries: int = 2
    retry_base_delay_seconds: float = 3.0
    request_timeout_seconds: float = 30.0
    command_deadline_seconds: float = 0.0


@dataclass(slots=True)
class UserContextSettings:
    """User context settings."""

    user_id: str = "default_user"
    user_name: str = "Default User"


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".devplanner.db")
    sqlite_busy_timeout_ms: int = 5_000
    log_level: str = "WARNING"
    assistant: AssistantSettings = field(default_factory=AssistantSettings)
    user_context: UserContextSettings = field(default_factory=UserContextSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        return cls(
            db_path=db_path or Path(os.getenv("DEVPLANNER_DB_PATH", ".devplanner.db")),
            sqlite_busy_timeout_ms=int(os.getenv("DEVPLANNER_SQLITE_BUSY_TIMEOUT_MS", "5000")),
            log_level=os.getenv("DEVPLANNER_LOG_LEVEL", "WARNING").strip().upper(),
            assistant=AssistantSettings(
                api_key=os.getenv(
                    "DEVPLANNER_GEMINI_API_KEY",
                    os.getenv("GEMINI_API_KEY", ""),
                ).strip(),
                api_base_url=os.getenv("DEVPLANNER_API_BASE_URL", DEFAULT_API_BASE_URL).strip(),
                model_chain=_collect_model_chain(),
                max_retries=int(os.getenv("DEVPLANNER_MAX_RETRIES", "2")),
                retry_base_delay_seconds=float(
                    os.getenv("DEVPLANNER_RETRY_BASE_DELAY_SECONDS", "3.0"),
                ),
                request_timeout_seconds=float(
                    os.getenv("DEVPLANNER_REQUEST_TIMEOUT_SECONDS", "30.0"),
                ),
                command_deadline_seconds=float(
                    os.getenv("DEVPLANNER_COMMAND_DEADLINE_SECONDS", "0"),
                ),
            ),
            user_context=UserContextSettings(
                user_id=os.getenv("DEVPLANNER_USER_ID", "default_user"),
                user_name=os.getenv("DEVPLANNER_USER_NAME", "Default User"),
            ),
        )

    def validate_for_assistant(self, *, require_api_key: bool = True) -> None:
        """Raise configuration error if the model chain cannot be driven."""

        assistant = self.assistant
        if require_api_key and not assistant.api_key:
            raise ValueError(
                "Gemini API key is required. Set DEVPLANNER_GEMINI_API_KEY or GEMINI_API_KEY.",
            )
        if not assistant.model_chain:
            raise ValueError("DEVPLANNER_MODEL_CHAIN must list at least one model.")
        if assistant.max_retries < 0:
            raise ValueError("DEVPLANNER_MAX_RETRIES must be >= 0.")
        if assistant.retry_base_delay_seconds < 0:
            raise ValueError("DEVPLANNER_RETRY_BASE_DELAY_SECONDS must be >= 0.")
        if assistant.request_timeout_seconds <= 0:
            raise ValueError("DEVPLANNER_REQUEST_TIMEOUT_SECONDS must be > 0.")
        if assistant.command_deadline_seconds < 0:
            raise ValueError("DEVPLANNER_COMMAND_DEADLINE_SECONDS must be >= 0.")
        parsed = urlparse(assistant.api_base_url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(
                "Invalid DEVPLANNER_API_BASE_URL: "
                f"{assistant.api_base_url!r}. Expected an absolute http(s) URL.",
            )
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(
                f"Invalid DEVPLANNER_LOG_LEVEL: {self.log_level!r}. "
                f"Use one of {sorted(_LOG_LEVELS)}.",
            )


def _collect_model_chain() -> tuple[str, ...]:
    raw = os.getenv("DEVPLANNER_MODEL_CHAIN", "").strip()
    if not raw:
        return DEFAULT_MODEL_CHAIN
    return _normalize_model_chain(raw.split(","))


def _normalize_model_chain(values: list[str] | tuple[str, ...]) -> tuple[str, ...]:
    deduped: list[str] = []
    seen: set[str] = set()
    for value in values:
        normalized = value.strip()
        if not normalized:
            continue
        if normalized in seen:
            continue
        seen.add(normalized)
        deduped.append(normalized)
    return tuple(deduped)
