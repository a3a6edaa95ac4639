from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path

from dotenv import load_dotenv

from geckopilot.core.contracts import RetryPolicy
from geckopilot.core.errors import ConfigError


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class PilotConfig:
    email: str
    password: str
    base_url: str = "https://www.geckoboard.com"
    app_url: str = "https://app.geckoboard.com/"
    headless: bool = False
    viewport_width: int = 1920
    viewport_height: int = 1080
    default_timeout_ms: int = 30_000
    action_budget_ms: int = 10_000
    settle_timeout_ms: int = 5_000
    name_prefix: str = "AUTO-TEST-"
    name_suffix: str = "-Widget-Test"
    legacy_name_patterns: tuple[str, ...] = (r"^Dashboard \d+$", r"Zendesk Test")
    output_dir: str = "geckopilot-output"
    confirm_deletes: bool = True
    offer_cleanup_on_exit: bool = True
    navigation_retry: RetryPolicy = RetryPolicy(max_attempts=3, initial_backoff_ms=500)
    interaction_retry: RetryPolicy = RetryPolicy()

    @property
    def login_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/login"

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir)

    @property
    def screenshot_dir(self) -> Path:
        return self.output_path / "screenshots"

    @property
    def run_log_path(self) -> Path:
        return self.output_path / "run-log.txt"

    @property
    def confirmation_ledger_path(self) -> Path:
        return self.output_path / "confirmations.jsonl"

    def with_overrides(self, **changes) -> "PilotConfig":
        return replace(self, **{key: value for key, value in changes.items() if value is not None})

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> "PilotConfig":
        load_dotenv(dotenv_path)
        email = os.getenv("GECKOBOARD_EMAIL", "")
        password = os.getenv("GECKOBOARD_PASSWORD", "")
        if not email or not password:
            raise ConfigError(
                "Missing required environment variables: GECKOBOARD_EMAIL and GECKOBOARD_PASSWORD must be set"
            )
        return cls(
            email=email,
            password=password,
            base_url=os.getenv("GECKOBOARD_BASE_URL", cls.base_url),
            app_url=os.getenv("GECKOBOARD_APP_URL", cls.app_url),
            headless=_env_bool("HEADLESS_MODE", cls.headless),
            default_timeout_ms=_env_int("TIMEOUT_MS", cls.default_timeout_ms),
            action_budget_ms=_env_int("GECKOPILOT_ACTION_BUDGET_MS", cls.action_budget_ms),
            name_prefix=os.getenv("GECKOPILOT_NAME_PREFIX", cls.name_prefix),
            output_dir=os.getenv("GECKOPILOT_OUTPUT_DIR", cls.output_dir),
            confirm_deletes=_env_bool("GECKOPILOT_CONFIRM_DELETES", cls.confirm_deletes),
        )
