import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

# Keys kept identical to the Apps Script deployment so existing .env files keep working
KEY_SPREADSHEET_ID = "SPREADSHEET_ID_SECRET"
KEY_LOG_SHEET_NAME = "SHEET_NAME_VALUE"
KEY_DISCORD_URL = "DISCORD_WEBHOOK_URL_SECRET"
KEY_DISCORD_URL_SHAROUSHI = "DISCORD_WEBHOOK_URL_SHAROUSHI"

DEFAULT_LOG_SHEET_NAME = "NotionWebhookLog"
DEFAULT_STATE_SHEET_NAME = "ページ状態履歴"


class ConfigurationError(Exception):
    """Raised when a required setting is missing."""


class WebhookConfig(BaseModel):
    """Settings for one webhook invocation. Built fresh per request."""

    spreadsheet_id: str
    log_sheet_name: str = DEFAULT_LOG_SHEET_NAME
    state_sheet_name: str = DEFAULT_STATE_SHEET_NAME
    discord_webhook_url: Optional[str] = None
    discord_webhook_url_sharoushi: Optional[str] = None
    display_timezone: str = "Asia/Tokyo"
    sheets_backend: str = "google"  # google | memory
    serialize_page_updates: bool = True
    service_account_path: Optional[str] = None

    model_config = {"frozen": True}


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or default


def _env_flag(name: str, default: bool) -> bool:
    value = _env(name)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def load_config() -> WebhookConfig:
    """Read the webhook settings from the environment (.env already loaded)."""
    spreadsheet_id = _env(KEY_SPREADSHEET_ID)
    if not spreadsheet_id:
        raise ConfigurationError(f'Environment variable "{KEY_SPREADSHEET_ID}" is not set.')

    return WebhookConfig(
        spreadsheet_id=spreadsheet_id,
        log_sheet_name=_env(KEY_LOG_SHEET_NAME, DEFAULT_LOG_SHEET_NAME),
        state_sheet_name=_env("STATE_SHEET_NAME", DEFAULT_STATE_SHEET_NAME),
        discord_webhook_url=_env(KEY_DISCORD_URL),
        discord_webhook_url_sharoushi=_env(KEY_DISCORD_URL_SHAROUSHI),
        display_timezone=_env("DISPLAY_TIMEZONE", "Asia/Tokyo"),
        sheets_backend=_env("SHEETS_BACKEND", "google").lower(),
        serialize_page_updates=_env_flag("SERIALIZE_PAGE_UPDATES", True),
        service_account_path=_env("GOOGLE_SERVICE_ACCOUNT_JSON_PATH"),
    )


def load_pdf_parent_folder_id() -> str:
    """Drive folder holding the monthly receipt folders (receipt tool only)."""
    folder_id = _env("PDF_PARENT_FOLDER_ID")
    if not folder_id:
        raise ConfigurationError('Environment variable "PDF_PARENT_FOLDER_ID" is not set.')
    return folder_id
