"""
google_utils/auth.py
--------------------
Loads service-account credentials for the Google APIs (Sheets, Drive, Gmail)
and builds API clients. Credentials are cached per scope set.
"""

import os
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from googleapiclient.discovery import build
from utils.logger import get_logger

logger = get_logger("google_auth")

load_dotenv()

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive.readonly"]
GMAIL_SCOPES = ["https://www.googleapis.com/auth/gmail.compose"]

CREDENTIALS_CACHE: Dict[Tuple[str, Tuple[str, ...], Optional[str]], service_account.Credentials] = {}


def get_google_credentials(
    scopes,
    service_account_path: Optional[str] = None,
    subject: Optional[str] = None,
) -> service_account.Credentials:
    """
    Return (cached) service-account credentials for the given scopes.
    `subject` impersonates a Workspace user; Gmail drafts need it.
    """
    path = service_account_path or os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON_PATH")
    if not path:
        logger.error("Missing GOOGLE_SERVICE_ACCOUNT_JSON_PATH (check .env file).")
        raise EnvironmentError("Missing Google service account credentials")

    key = (path, tuple(sorted(scopes)), subject)
    creds = CREDENTIALS_CACHE.get(key)
    if creds and creds.valid:
        return creds

    try:
        creds = service_account.Credentials.from_service_account_file(path, scopes=list(scopes))
        if subject:
            creds = creds.with_subject(subject)
        creds.refresh(Request())
    except Exception as e:
        logger.error(f"Google credential refresh failed: {e}")
        raise

    CREDENTIALS_CACHE[key] = creds
    logger.info(f"Obtained Google credentials for scopes={list(scopes)}")
    return creds


def build_service(
    name: str,
    version: str,
    scopes,
    service_account_path: Optional[str] = None,
    subject: Optional[str] = None,
):
    """Build a googleapiclient Resource for e.g. ('sheets', 'v4')."""
    creds = get_google_credentials(scopes, service_account_path, subject)
    return build(name, version, credentials=creds, cache_discovery=False)
