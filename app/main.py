import json

from dotenv import load_dotenv
from fastapi import FastAPI, Request

# Load env vars early
load_dotenv()

# Local imports
from .models import InboundEvent, WebhookResponse
from .sheets import open_workbook
from .webhook import PageLocks, process_webhook

app = FastAPI(title="Notion Discord Notifier", version="1.0.0")

# Swappable in tests / local runs
app.state.workbook_factory = open_workbook
app.state.http_client = None
app.state.page_locks = PageLocks()


async def _inbound_event(request: Request) -> InboundEvent:
    body = await request.body()
    raw = body.decode("utf-8", errors="replace") if body else None
    event = {
        "method": request.method,
        "path": request.url.path,
        "queryString": str(request.url.query),
        "parameter": dict(request.query_params),
        "contentType": request.headers.get("content-type"),
        "contentLength": len(body),
        "userAgent": request.headers.get("user-agent"),
        "postData": {"contents": raw, "length": len(body)} if raw else None,
    }
    return InboundEvent(raw_contents=raw, full_event=json.dumps(event, ensure_ascii=False))


# ------------------------------------------------------------
# NOTION WEBHOOK
# ------------------------------------------------------------
@app.post("/webhook/notion", response_model=WebhookResponse)
async def notion_webhook(request: Request):
    event = await _inbound_event(request)
    result = await process_webhook(
        event,
        workbook_factory=request.app.state.workbook_factory,
        client=request.app.state.http_client,
        locks=request.app.state.page_locks,
    )
    return result.response()


# ------------------------------------------------------------
# HEALTH
# ------------------------------------------------------------
@app.get("/healthz")
async def healthz():
    return {"ok": True}
