import json
import logging

import httpx

from app.config import WebhookConfig
from utils.logger import ExecutionTrace

STATUS_URL = "https://discord.com/api/webhooks/111/status-token"
SHAROUSHI_URL = "https://discord.com/api/webhooks/222/sharoushi-token"


def make_trace() -> ExecutionTrace:
    return ExecutionTrace(logging.getLogger("tests"))


def make_config(**overrides) -> WebhookConfig:
    values = {
        "spreadsheet_id": "sheet-123",
        "discord_webhook_url": STATUS_URL,
        "discord_webhook_url_sharoushi": SHAROUSHI_URL,
        "sheets_backend": "memory",
    }
    values.update(overrides)
    return WebhookConfig(**values)


def page_properties(company="テスト株式会社", status="商談中", assignee="田中", sharoushi=None):
    props = {
        "企業名": {"title": [{"plain_text": company}]} if company else {"title": []},
        "商談ステータス": {"status": {"name": status} if status else None},
        "担当": {"select": {"name": assignee} if assignee else None},
        "社労士連携": {"status": {"name": sharoushi} if sharoushi else None},
    }
    return props


def page_data(page_id="P1", **kwargs):
    return {
        "id": page_id,
        "url": f"https://www.notion.so/{page_id}",
        "last_edited_time": "2024-05-01T00:05:03.000Z",
        "properties": page_properties(**kwargs),
    }


def webhook_body(page_id="P1", **kwargs) -> str:
    return json.dumps({"source": {"type": "automation"}, "data": page_data(page_id, **kwargs)}, ensure_ascii=False)


class DiscordRecorder:
    """httpx.MockTransport handler that records every Discord POST."""

    def __init__(self, status_code=204, fail_urls=()):
        self.status_code = status_code
        self.fail_urls = set(fail_urls)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if str(request.url) in self.fail_urls:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(self.status_code)

    def contents(self, url=None):
        return [
            json.loads(r.content)["content"]
            for r in self.requests
            if url is None or str(r.url) == url
        ]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))
