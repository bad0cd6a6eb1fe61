"""
app/notion.py
-------------
Maps a Notion page object (as delivered by a database automation webhook)
to the flat PageRecord the notifier works with.
Extraction is total: malformed input degrades to placeholders, never raises.
"""

import datetime
from typing import Any, Optional
from zoneinfo import ZoneInfo

from utils.logger import ExecutionTrace
from .models import PageRecord

PROP_COMPANY = "企業名"
PROP_STATUS = "商談ステータス"
PROP_ASSIGNEE = "担当"
PROP_SHAROUSHI = "社労士連携"

UNKNOWN = "取得失敗"
UNKNOWN_URL = "URL不明"
UNKNOWN_TIME = "日時不明"

PLACEHOLDERS = {UNKNOWN}


def is_known(value: Optional[str]) -> bool:
    """True when a field carries a real value rather than None / a placeholder."""
    return value is not None and value not in PLACEHOLDERS


def _dig(obj: Any, *path) -> Any:
    """Walk dict keys / list indexes, returning None at the first gap."""
    for key in path:
        if isinstance(key, int):
            if not isinstance(obj, list) or len(obj) <= key:
                return None
        elif not isinstance(obj, dict):
            return None
        obj = obj[key] if isinstance(key, int) else obj.get(key)
        if obj is None:
            return None
    return obj


def format_timestamp(value: Optional[str], tz_name: str = "Asia/Tokyo") -> str:
    """Render an ISO-8601 timestamp as 'YYYY/MM/DD HH:MM:SS' in the given zone."""
    if not value or not isinstance(value, str):
        return UNKNOWN_TIME
    try:
        parsed = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return UNKNOWN_TIME
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed.astimezone(ZoneInfo(tz_name)).strftime("%Y/%m/%d %H:%M:%S")


def extract_page_record(page_data: Any, trace: ExecutionTrace, tz_name: str = "Asia/Tokyo") -> PageRecord:
    trace.info("Extracting Notion info...")
    if not isinstance(page_data, dict):
        page_data = {}

    page_id = page_data.get("id") if isinstance(page_data.get("id"), str) else None
    url = page_data.get("url") or UNKNOWN_URL
    last_edited_at = format_timestamp(page_data.get("last_edited_time"), tz_name)

    properties = page_data.get("properties")
    if not isinstance(properties, dict):
        trace.error("'properties' object is missing in page data.")
        return PageRecord(
            id=page_id,
            company_name=UNKNOWN,
            status=UNKNOWN,
            assignee=UNKNOWN,
            liaison_status=UNKNOWN,
            url=str(url),
            last_edited_at=last_edited_at,
        )

    company_name = _dig(properties, PROP_COMPANY, "title", 0, "plain_text") or UNKNOWN
    status = _dig(properties, PROP_STATUS, "status", "name") or UNKNOWN
    assignee = _dig(properties, PROP_ASSIGNEE, "select", "name") or UNKNOWN

    sharoushi_prop = properties.get(PROP_SHAROUSHI)
    liaison_status = _dig(sharoushi_prop, "status", "name")
    if liaison_status is None:
        if sharoushi_prop is None:
            trace.warn(f"Property '{PROP_SHAROUSHI}' is missing.")
        else:
            trace.warn(f"Property '{PROP_SHAROUSHI}' has no status set.")

    record = PageRecord(
        id=page_id,
        company_name=str(company_name),
        status=str(status),
        assignee=str(assignee),
        liaison_status=str(liaison_status) if liaison_status is not None else None,
        url=str(url),
        last_edited_at=last_edited_at,
    )
    trace.info(
        f"Extracted => {PROP_COMPANY}: {record.company_name}, ステータス: {record.status}, "
        f"{PROP_ASSIGNEE}: {record.assignee}, {PROP_SHAROUSHI}: {record.liaison_status}"
    )
    return record
