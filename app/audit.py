import datetime
from typing import List, Optional

from utils.logger import ExecutionTrace, get_logger
from .models import NotificationOutcome, PageRecord
from .sheets import Worksheet

logger = get_logger("audit")

NA = "N/A"

# Google Sheets rejects cells longer than this
CELL_LIMIT = 50000


def _cell(value: str) -> str:
    return value if len(value) <= CELL_LIMIT else value[: CELL_LIMIT - 3] + "..."


def build_audit_row(
    received_at: datetime.datetime,
    record: Optional[PageRecord],
    overall_status: str,
    outcomes: List[NotificationOutcome],
    trace: ExecutionTrace,
    raw_contents: str = NA,
    full_event: str = NA,
) -> list:
    """One row in LOG_COLUMNS order."""
    return [
        received_at.strftime("%Y/%m/%d %H:%M:%S"),
        record.company_name if record else NA,
        record.status if record else NA,
        record.assignee if record else NA,
        overall_status,
        "\n".join(o.summary() for o in outcomes),
        _cell(trace.text()),
        _cell(raw_contents),
        _cell(full_event),
    ]


def append_audit_row(sheet: Optional[Worksheet], row: list, trace: ExecutionTrace) -> bool:
    """Append the audit row; failures only reach the local log."""
    if sheet is None:
        logger.critical(f"Log sheet was not available. Logs:\n{trace.text()}")
        return False
    try:
        sheet.append_row(row)
        return True
    except Exception as e:
        logger.critical(f"Error appending audit row to spreadsheet: {e}\nLogs:\n{trace.text()}")
        return False
