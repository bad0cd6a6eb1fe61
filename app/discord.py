from typing import Optional

import httpx

from utils.logger import ExecutionTrace
from .models import NotificationOutcome, NotificationStatus

DISCORD_WEBHOOK_PREFIX = "https://discord.com/api/webhooks/"
DISCORD_CONTENT_LIMIT = 2000


async def send_discord_message(
    channel: str,
    url: Optional[str],
    content: str,
    client: httpx.AsyncClient,
    trace: ExecutionTrace,
) -> NotificationOutcome:
    """
    POST {"content": ...} to a Discord webhook.
    Missing/invalid URLs are skipped without any network call; unparseable URLs,
    transport and HTTP errors come back as a send-error outcome instead of raising.
    """
    if not url:
        trace.warn(f"{channel}: webhook URL is not configured. Skipping notification.")
        return NotificationOutcome(channel=channel, status=NotificationStatus.SKIPPED_NO_URL)
    if not url.startswith(DISCORD_WEBHOOK_PREFIX):
        trace.warn(f"{channel}: webhook URL is invalid. Skipping notification.")
        return NotificationOutcome(channel=channel, status=NotificationStatus.SKIPPED_INVALID_URL)

    if len(content) > DISCORD_CONTENT_LIMIT:
        content = content[: DISCORD_CONTENT_LIMIT - 1] + "…"

    try:
        r = await client.post(url, json={"content": content}, timeout=20)
        r.raise_for_status()
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        trace.error(f"{channel}: sending message to Discord failed: {e}")
        return NotificationOutcome(channel=channel, status=NotificationStatus.SEND_ERROR, error=str(e))

    trace.info(f"{channel}: successfully sent message to Discord.")
    return NotificationOutcome(channel=channel, status=NotificationStatus.SENT)
