from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

LOG_COLUMNS = [
    "受信日時",
    "企業名",
    "ステータス",
    "担当",
    "全体処理ステータス",
    "Discord通知結果",
    "実行ログ・エラー詳細",
    "受信データ (raw)",
    "イベント全体 (raw)",
]

STATE_COLUMNS = [
    "Page ID",
    "Last Known Properties (JSON)",
]

# Overall invocation status, shown to the caller and in the audit sheet
STATUS_SUCCESS = "成功"
STATUS_PARTIAL = "一部エラー"
STATUS_FATAL = "致命的エラー"

CHANNEL_STATUS = "ステータス通知"
CHANNEL_SHAROUSHI = "社労士連携通知"


class NotificationStatus(str, Enum):
    SENT = "sent"
    SKIPPED_NO_URL = "skipped-no-url"
    SKIPPED_INVALID_URL = "skipped-invalid-url"
    SEND_ERROR = "send-error"

    @property
    def label(self) -> str:
        return {
            "sent": "送信成功",
            "skipped-no-url": "URL未設定のためスキップ",
            "skipped-invalid-url": "URL不正のためスキップ",
            "send-error": "送信エラー",
        }[self.value]


class PageRecord(BaseModel):
    id: Optional[str] = None
    company_name: Optional[str] = None
    status: Optional[str] = None
    assignee: Optional[str] = None
    liaison_status: Optional[str] = None
    url: str
    last_edited_at: str


class NotificationOutcome(BaseModel):
    channel: str
    status: NotificationStatus
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status == NotificationStatus.SEND_ERROR

    def summary(self) -> str:
        return f"{self.channel}: {self.status.label}"


class PreviousState(BaseModel):
    row_index: int
    properties: Optional[dict] = None


class WebhookResponse(BaseModel):
    status: str
    message: str


class WebhookResult(BaseModel):
    status: str
    message: str = "Webhook processed."
    outcomes: List[NotificationOutcome] = []
    record: Optional[PageRecord] = None

    def response(self) -> WebhookResponse:
        return WebhookResponse(status=self.status, message=self.message)


class InboundEvent(BaseModel):
    """What the HTTP layer hands to the webhook processor."""

    raw_contents: Optional[str] = None
    full_event: str = "N/A"


class ParsedWebhook(BaseModel):
    raw_contents: str
    full_event: str
    page_data: Optional[dict] = None
