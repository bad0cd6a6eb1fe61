"""
app/messages.py
---------------
Decides which changes are worth a Discord message and renders them.
Everything here is pure: (previous, current) in, bool / str out.
"""

from typing import Optional

from .models import PageRecord
from .notion import is_known

NO_PREVIOUS = "（変更前データなし）"
UNKNOWN_PREVIOUS = "（不明）"
NOT_SET = "（未設定）"
DIVIDER = "------------------------------------"

STATUS_FIELDS = ("status", "assignee")
SHAROUSHI_FIELDS = ("liaison_status",)


def _worthy(previous: Optional[PageRecord], current: PageRecord, fields) -> bool:
    if previous is None:
        return any(is_known(getattr(current, f)) for f in fields)
    return any(getattr(previous, f) != getattr(current, f) for f in fields)


def status_change_worthy(previous: Optional[PageRecord], current: PageRecord) -> bool:
    return _worthy(previous, current, STATUS_FIELDS)


def liaison_change_worthy(previous: Optional[PageRecord], current: PageRecord) -> bool:
    return _worthy(previous, current, SHAROUSHI_FIELDS)


def _previous_value(previous: Optional[PageRecord], field: str) -> str:
    if previous is None:
        return NO_PREVIOUS
    value = getattr(previous, field)
    return value if value is not None else UNKNOWN_PREVIOUS


def _field_line(label: str, previous: Optional[PageRecord], current: PageRecord, field: str) -> str:
    now = getattr(current, field)
    if previous is None or getattr(previous, field) != now:
        before = _previous_value(previous, field)
        return f"**{label}:** **`{before}`** → **`{now if now is not None else NOT_SET}`** に変更\n"
    return f"**{label}:** {now if now is not None else NOT_SET}\n"


def compose_status_message(previous: Optional[PageRecord], current: PageRecord) -> str:
    body = (
        f"**企業名:** {current.company_name}\n"
        + _field_line("商談ステータス", previous, current, "status")
        + _field_line("担当", previous, current, "assignee")
        + f"**最終更新日時:** {current.last_edited_at}\n"
    )
    return (
        "**Notion顧客情報 更新通知** 📢\n"
        f"{DIVIDER}\n"
        f"{body}"
        f"{DIVIDER}\n"
        f"詳細はこちら: {current.url}"
    )


def compose_liaison_message(previous: Optional[PageRecord], current: PageRecord) -> str:
    before = _previous_value(previous, "liaison_status")
    if previous is not None and previous.liaison_status is None:
        before = NOT_SET
    after = current.liaison_status if current.liaison_status is not None else NOT_SET
    return (
        "**【社労士連携】**\n"
        f"{DIVIDER}\n"
        f"**企業名:** {current.company_name}\n"
        f"**担当:** {current.assignee}\n"
        f"**連携ステータス:** **`{before}`** → **`{after}`** に変更されました。\n"
        f"{DIVIDER}\n"
        f"詳細はこちら: {current.url}"
    )
