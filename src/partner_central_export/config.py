from __future__ import annotations

import os
import re
import json
from pathlib import Path
from typing import Union
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .util.dates import DateEncoding


_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")

DEFAULT_LOGIN_URL = "https://www.expediapartnercentral.com/Account/Logon?signedOff=true"


def _expand_env_vars(value: object) -> object:
    if isinstance(value, str):
        def repl(match: re.Match[str]) -> str:
            var = match.group(1)
            return os.getenv(var, "")

        return _ENV_VAR_PATTERN.sub(repl, value)
    if isinstance(value, list):
        return [_expand_env_vars(v) for v in value]
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name, "") or "").strip().lower()
    if not raw:
        return bool(default)
    return raw in {"1", "true", "t", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _deep_merge(base: object, override: object) -> object:
    if isinstance(base, dict) and isinstance(override, dict):
        out = dict(base)
        for k, v in override.items():
            if k in out:
                out[k] = _deep_merge(out[k], v)
            else:
                out[k] = v
        return out
    return override


def _parse_list_env(value: str) -> list[str]:
    s = (value or "").strip()
    if not s:
        return []

    # JSON list syntax: ["Collect payments","Virtual card"]
    if s.startswith("["):
        try:
            data = json.loads(s)
            if isinstance(data, list):
                return [str(x).strip() for x in data if str(x).strip()]
        except ValueError:
            pass
    # Filter labels contain spaces, so only commas separate items.
    return [item.strip() for item in s.split(",") if item.strip()]


def _default_config_from_env() -> dict:
    """
    Env-only config so a `.env` file is enough for most runs; YAML is an optional override.
    """
    return {
        "portal": {
            "login_url": os.getenv("PORTAL_LOGIN_URL", DEFAULT_LOGIN_URL),
            "email": os.getenv("PORTAL_EMAIL", ""),
            "password": os.getenv("PORTAL_PASSWORD", ""),
            "headless": not _env_bool("PORTAL_HEADFUL", default=False),
            "slow_mo_ms": _env_int("PORTAL_SLOWMO_MS", 0),
            "default_timeout_ms": _env_int("PORTAL_DEFAULT_TIMEOUT_MS", 60_000),
            "debug_dir": os.getenv("PORTAL_DEBUG_DIR", "data/debug"),
            "step_debug": _env_bool("PORTAL_STEP_DEBUG", default=False),
        },
        "gmail_imap": {
            "host": os.getenv("GMAIL_IMAP_HOST", "imap.gmail.com"),
            "user": os.getenv("GMAIL_IMAP_USER", ""),
            "app_password": os.getenv("GMAIL_IMAP_APP_PASSWORD", ""),
            "folder": os.getenv("GMAIL_IMAP_FOLDER", "INBOX"),
            "sender_hint": os.getenv("GMAIL_IMAP_SENDER_HINT", ""),
            "subject_hint": os.getenv("GMAIL_IMAP_SUBJECT_HINT", ""),
            "code_regex": os.getenv("GMAIL_IMAP_CODE_REGEX", r"\b(\d{6,10})\b"),
            "max_messages": _env_int("GMAIL_IMAP_MAX_MESSAGES", 5),
        },
        "scrape": {
            "chunk_span_days": _env_int("SCRAPE_CHUNK_SPAN_DAYS", 2),
            "payment_filters": _parse_list_env(os.getenv("SCRAPE_PAYMENT_FILTERS", "")),
            "ui_date_encoding": os.getenv("SCRAPE_UI_DATE_ENCODING", DateEncoding.DAY_FIRST.value),
            "calendar_prev_button_index": _env_int("SCRAPE_CALENDAR_PREV_INDEX", 0),
            "calendar_next_button_index": _env_int("SCRAPE_CALENDAR_NEXT_INDEX", 1),
        },
        "export": {
            "out_dir": os.getenv("EXPORT_OUT_DIR", "data/exports"),
        },
        "logging": {
            "level": os.getenv("LOG_LEVEL", "INFO"),
            "file_path": os.getenv("LOG_FILE", "data/export.log"),
            "error_file_path": os.getenv("LOG_ERROR_FILE", ""),
        },
    }


class PortalConfig(BaseModel):
    """
    Partner Central login + browser settings.

    `email`/`password` are defaults; a ScrapeRequest carries its own credentials.
    """

    login_url: str = DEFAULT_LOGIN_URL
    email: str = ""
    password: str = Field(default="", repr=False)
    headless: bool = True
    slow_mo_ms: int = 0
    default_timeout_ms: int = 60_000
    debug_dir: str = "data/debug"
    step_debug: bool = False

    @field_validator("login_url")
    @classmethod
    def _validate_url(cls, v: str) -> str:
        v = (v or "").strip() or DEFAULT_LOGIN_URL
        parsed = urlparse(v)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(f"portal.login_url must be a full URL (got {v!r})")
        return v


class GmailImapConfig(BaseModel):
    host: str = "imap.gmail.com"
    user: str = ""
    app_password: str = Field(default="", repr=False)
    folder: str = "INBOX"
    sender_hint: str = ""
    subject_hint: str = ""
    code_regex: str = r"\b(\d{6,10})\b"
    max_messages: int = Field(default=5, ge=1, le=50)

    @property
    def configured(self) -> bool:
        return bool(self.user and self.app_password)


class ScrapeConfig(BaseModel):
    chunk_span_days: int = Field(default=2, ge=1)

    # Filters on the reservations page
    date_type_filter: str = "Checking out"
    payment_filters: list[str] = Field(default_factory=list)
    page_size: str = "100"

    # Date picker
    ui_date_encoding: DateEncoding = DateEncoding.DAY_FIRST
    calendar_prev_button_index: int = Field(default=0, ge=0)
    calendar_next_button_index: int = Field(default=1, ge=0)
    calendar_settle_ms: int = 200
    calendar_open_settle_ms: int = 1_000
    calendar_confirm_settle_ms: int = 2_000

    # Results table
    apply_loader_appear_timeout_ms: int = 10_000
    apply_loader_timeout_ms: int = 30_000
    rows_timeout_ms: int = 30_000
    stabilize_max_polls: int = Field(default=15, ge=1)
    stabilize_interval_ms: int = 2_000
    page_settle_ms: int = 2_000
    max_pages: int = Field(default=200, ge=1)
    max_page_reloads: int = Field(default=3, ge=0)

    # Detail dialog
    detail_timeout_ms: int = 8_000
    detail_settle_ms: int = 2_000
    detail_attempts: int = Field(default=3, ge=1)
    detail_backoff_ms: int = 1_000
    dialog_close_settle_ms: int = 1_500

    # Login
    typing_delay_ms: int = 100
    password_timeout_ms: int = 10_000
    passcode_input_timeout_ms: int = 60_000
    passcode_wait_seconds: int = 15
    passcode_poll_timeout_seconds: int = 120
    post_login_timeout_ms: int = 60_000

    # Orchestration
    chunk_attempts: int = Field(default=2, ge=1)
    chunk_retry_delay_ms: int = 2_000

    @model_validator(mode="after")
    def _validate_nav_buttons(self) -> "ScrapeConfig":
        if self.calendar_prev_button_index == self.calendar_next_button_index:
            raise ValueError("scrape.calendar_prev_button_index and calendar_next_button_index must differ")
        return self


class ExportConfig(BaseModel):
    out_dir: str = "data/exports"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file_path: str = "data/export.log"
    error_file_path: str = ""


class AppConfig(BaseModel):
    portal: PortalConfig = PortalConfig()
    gmail_imap: GmailImapConfig = GmailImapConfig()
    scrape: ScrapeConfig = ScrapeConfig()
    export: ExportConfig = ExportConfig()
    logging: LoggingConfig = LoggingConfig()


def load_config(path: Union[str, Path, None] = None) -> AppConfig:
    raw: dict = {}
    if path:
        p = Path(path)
        if p.exists():
            raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
            raw = _expand_env_vars(raw)  # supports ${ENV_VAR} in YAML

    merged = _deep_merge(_default_config_from_env(), raw)
    return AppConfig.model_validate(merged)
