"""
app/webhook.py
--------------
Handles one Notion page-update webhook end to end:

  config -> worksheets -> parse body -> extract current/previous record
  -> decide + send Discord messages -> save state -> audit row

Nothing is retried. Failures after the worksheets are open downgrade the
overall status but never skip the audit row.
"""

import asyncio
import contextlib
import datetime
import json
from typing import Callable, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

import httpx

from utils.logger import ExecutionTrace, get_logger
from .audit import NA, append_audit_row, build_audit_row
from .config import WebhookConfig, load_config
from .discord import send_discord_message
from .messages import (
    compose_liaison_message,
    compose_status_message,
    liaison_change_worthy,
    status_change_worthy,
)
from .models import (
    CHANNEL_SHAROUSHI,
    CHANNEL_STATUS,
    LOG_COLUMNS,
    STATE_COLUMNS,
    STATUS_FATAL,
    STATUS_PARTIAL,
    STATUS_SUCCESS,
    InboundEvent,
    NotificationOutcome,
    PageRecord,
    ParsedWebhook,
    WebhookResult,
)
from .notion import extract_page_record
from .sheets import WorkbookFactory, Worksheet, open_workbook
from .state import StateStore

logger = get_logger("webhook")

DEFAULT_TIMEZONE = "Asia/Tokyo"


class WebhookParseError(Exception):
    """The request did not carry a usable Notion page."""


class PageLocks:
    """
    One asyncio.Lock per page id.

    Serialises read-previous -> notify -> save for the same page within this
    process, so two near-simultaneous updates cannot both diff against the
    same snapshot. Separate processes are not coordinated. A page's entry is
    dropped once its last holder or waiter leaves.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @contextlib.asynccontextmanager
    async def hold(self, page_id: str):
        lock = self._locks.setdefault(page_id, asyncio.Lock())
        self._users[page_id] = self._users.get(page_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[page_id] -= 1
            if not self._users[page_id]:
                del self._users[page_id]
                del self._locks[page_id]


def parse_webhook_event(event: Optional[InboundEvent], trace: ExecutionTrace) -> ParsedWebhook:
    trace.info("Parsing webhook event...")
    if event is None:
        trace.error("Event object is undefined or null.")
        return ParsedWebhook(raw_contents=NA, full_event="Event object is undefined or null")

    raw = event.raw_contents
    if not raw:
        trace.warn("Request body (postData.contents) is missing.")
        return ParsedWebhook(raw_contents="postData.contents is missing", full_event=event.full_event)

    trace.info(f"Received request body (length: {len(raw)})")
    page_data = None
    try:
        body = json.loads(raw)
    except ValueError as e:
        trace.error(f"Parsing request body as JSON failed: {e}")
    else:
        data = body.get("data") if isinstance(body, dict) else None
        if isinstance(data, dict):
            page_data = data
            trace.info("Notion page data parsed successfully.")
        else:
            trace.warn("'data' property for Notion page is missing in parsed content.")
    return ParsedWebhook(raw_contents=raw, full_event=event.full_event, page_data=page_data)


def _open_sheets(workbook_factory: WorkbookFactory, config: WebhookConfig) -> Tuple[Worksheet, Worksheet]:
    workbook = workbook_factory(config)
    log_sheet = workbook.get_or_create_worksheet(config.log_sheet_name, LOG_COLUMNS)
    state_sheet = workbook.get_or_create_worksheet(config.state_sheet_name, STATE_COLUMNS)
    return log_sheet, state_sheet


async def _notify(
    previous: Optional[PageRecord],
    current: PageRecord,
    config: WebhookConfig,
    client: httpx.AsyncClient,
    trace: ExecutionTrace,
) -> List[NotificationOutcome]:
    outcomes = []
    if status_change_worthy(previous, current):
        trace.info("Preparing state-change Discord notification...")
        outcomes.append(
            await send_discord_message(
                CHANNEL_STATUS,
                config.discord_webhook_url,
                compose_status_message(previous, current),
                client,
                trace,
            )
        )
    else:
        trace.info("No status/assignee change. Status notification suppressed.")

    if liaison_change_worthy(previous, current):
        trace.info("Preparing Sharoushi notification...")
        outcomes.append(
            await send_discord_message(
                CHANNEL_SHAROUSHI,
                config.discord_webhook_url_sharoushi,
                compose_liaison_message(previous, current),
                client,
                trace,
            )
        )
    else:
        trace.info("No Sharoushi change. Sharoushi notification suppressed.")
    return outcomes


async def process_webhook(
    event: Optional[InboundEvent],
    workbook_factory: WorkbookFactory = open_workbook,
    client: Optional[httpx.AsyncClient] = None,
    locks: Optional[PageLocks] = None,
    config_loader: Callable[[], WebhookConfig] = load_config,
) -> WebhookResult:
    trace = ExecutionTrace(logger)
    trace.info("--- Webhook execution start ---")
    received_at = datetime.datetime.now(ZoneInfo(DEFAULT_TIMEZONE))
    overall_status = STATUS_SUCCESS
    outcomes: List[NotificationOutcome] = []
    record: Optional[PageRecord] = None
    parsed: Optional[ParsedWebhook] = None
    log_sheet = None

    try:
        config = config_loader()
        received_at = received_at.astimezone(ZoneInfo(config.display_timezone))
        # Sheets client calls block; run them on worker threads so the loop keeps serving
        log_sheet, state_sheet = await asyncio.to_thread(_open_sheets, workbook_factory, config)

        parsed = parse_webhook_event(event, trace)
        if parsed.page_data is None:
            raise WebhookParseError("Notion page data could not be parsed from webhook.")
        page_id = parsed.page_data.get("id")
        if not page_id:
            raise WebhookParseError("Page ID is missing in the webhook data.")
        page_id = str(page_id)

        guard = contextlib.nullcontext()
        if locks is not None and config.serialize_page_updates:
            guard = locks.hold(page_id)

        async with guard:
            record = extract_page_record(parsed.page_data, trace, config.display_timezone)

            store = StateStore(state_sheet, trace)
            previous_state = await asyncio.to_thread(store.get_previous, page_id)
            previous = None
            if previous_state and previous_state.properties is not None:
                previous = extract_page_record(
                    {"properties": previous_state.properties}, trace, config.display_timezone
                )

            owns_client = client is None
            http = client or httpx.AsyncClient(follow_redirects=True)
            try:
                outcomes = await _notify(previous, record, config, http, trace)
            finally:
                if owns_client:
                    await http.aclose()
            if any(o.failed for o in outcomes):
                overall_status = STATUS_PARTIAL

            properties = parsed.page_data.get("properties")
            if isinstance(properties, dict):
                await asyncio.to_thread(
                    store.upsert,
                    page_id,
                    properties,
                    previous_state.row_index if previous_state else None,
                )
            else:
                trace.warn(f"No 'properties' in page data for {page_id}. Stored state left unchanged.")
    except Exception as e:
        trace.error(f"Critical error in webhook processing: {e}")
        logger.debug("Webhook processing traceback", exc_info=True)
        overall_status = STATUS_FATAL
    finally:
        trace.info("--- Webhook execution end ---")
        row = build_audit_row(
            received_at,
            record,
            overall_status,
            outcomes,
            trace,
            raw_contents=parsed.raw_contents if parsed else NA,
            full_event=parsed.full_event if parsed else NA,
        )
        await asyncio.to_thread(append_audit_row, log_sheet, row, trace)

    return WebhookResult(status=overall_status, outcomes=outcomes, record=record)
