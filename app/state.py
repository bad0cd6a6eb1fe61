"""
app/state.py
------------
Page state history: one row per Notion page id holding the raw `properties`
object last seen for it, used to work out what changed between webhooks.

Contract:
  - lookup scans bottom-up; when an id appears twice the lower row wins
    (treated as the most recent write)
  - a row whose JSON cannot be read counts as "no previous state" so a
    corrupted entry never blocks new notifications
  - upsert is last-write-wins with no version check
"""

import json
from typing import Any, Optional

from utils.logger import ExecutionTrace
from .models import PreviousState
from .sheets import Worksheet

KEY_COL = 1
PAYLOAD_COL = 2


class StateStore:
    def __init__(self, sheet: Worksheet, trace: ExecutionTrace):
        self.sheet = sheet
        self.trace = trace

    def get_previous(self, page_id: str) -> Optional[PreviousState]:
        self.trace.info(f"Searching for previous state of page ID: {page_id}")
        values = self.sheet.get_all_values()

        # Skip the header row
        for i in range(len(values) - 1, 0, -1):
            row = values[i]
            if not row or row[0] != page_id:
                continue
            row_index = i + 1
            self.trace.info(f"Previous state found at row {row_index}.")
            raw = row[PAYLOAD_COL - 1] if len(row) >= PAYLOAD_COL else ""
            try:
                properties = json.loads(raw)
            except (TypeError, ValueError):
                self.trace.error(f"Failed to parse stored JSON for page {page_id} at row {row_index}.")
                return None
            if properties is not None and not isinstance(properties, dict):
                self.trace.error(f"Stored state for page {page_id} at row {row_index} is not an object.")
                return None
            return PreviousState(row_index=row_index, properties=properties)

        self.trace.info("No previous state found for this page.")
        return None

    def upsert(self, page_id: str, raw_properties: Any, row_index: Optional[int] = None):
        payload = json.dumps(raw_properties, ensure_ascii=False)
        if row_index and row_index > 1:
            self.sheet.update_cell(row_index, PAYLOAD_COL, payload)
            self.trace.info(f"Updated state for page {page_id} at row {row_index}.")
        else:
            self.sheet.append_row([page_id, payload])
            self.trace.info(f"Appended new state for page {page_id}.")
