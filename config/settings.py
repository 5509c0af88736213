"""Application configuration using pydantic-settings."""

from __future__ import annotations

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration loaded from environment / .env file."""

    # ── Target portal ─────────────────────────────────────────────────────────
    target_url: str = Field(
        default="https://harb.cma.gov.il/",
        description="Entry page of the record lookup form",
    )
    base_origin: str = Field(
        default="https://harb.cma.gov.il",
        description="Origin used to resolve the relative export link",
    )
    # Title attribute of the anchor that opens the printable results document.
    export_link_title: str = Field(default="הדפס")

    # ── CAPTCHA solver ────────────────────────────────────────────────────────
    captcha_api_url: str = Field(
        default="https://api.bestcaptchasolver.com/",
        description="Solver base URL, must end with a slash",
    )
    captcha_access_token: str = Field(default="")
    captcha_alphanumeric: int = Field(default=1)
    captcha_poll_attempts: int = Field(default=5, ge=1)
    captcha_poll_interval_seconds: float = Field(default=2.0, ge=0)
    captcha_timeout_seconds: float = Field(default=30.0)

    # ── Session store ─────────────────────────────────────────────────────────
    # "redis" in production; "file" reads <session_dir>/<key>.json for local runs.
    session_backend: str = Field(default="redis")
    session_key: str = Field(default="HARB_LOGIN_COOKIES_AFRICA")
    redis_url: str = Field(default="redis://localhost:6379/0")
    session_dir: str = Field(default="data/sessions")

    # ── Browser ───────────────────────────────────────────────────────────────
    browser_headless: bool = Field(default=True)
    navigation_timeout_ms: int = Field(default=30_000)
    element_timeout_ms: int = Field(default=15_000)
    result_timeout_ms: int = Field(default=30_000)

    # Missing dropdown options fail the form step unless this is set.
    allow_missing_options: bool = Field(default=False)

    # ── Caller-side retries ───────────────────────────────────────────────────
    retry_attempts: int = Field(default=1, ge=1)
    retry_delay_seconds: float = Field(default=2.0)

    # ── HTTP server ───────────────────────────────────────────────────────────
    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=3002)
    cors_origins: List[str] = Field(default=["*"])

    # ── Logging ───────────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default="logs/harb-agent.log")
    log_json: bool = Field(default=False)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
