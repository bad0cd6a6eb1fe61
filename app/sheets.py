"""
app/sheets.py
-------------
Thin spreadsheet layer used as the service's storage.

Two backends share one small interface:
  - GoogleWorkbook / GoogleWorksheet talk to the Sheets API v4.
  - MemoryWorkbook / MemoryWorksheet keep rows in process (local dev, tests).

Rows and columns are 1-based, row 1 being the header, the same as the
spreadsheet UI.
"""

import threading
from typing import Any, Callable, Dict, List, Optional

from googleapiclient.errors import HttpError

from google_utils.auth import SHEETS_SCOPES, build_service
from utils.logger import get_logger
from .config import WebhookConfig

logger = get_logger("sheets")

# Worksheet lookup-then-create runs on worker threads; keep it atomic per process
_setup_lock = threading.Lock()


class SheetAccessError(Exception):
    """Raised when a spreadsheet or worksheet cannot be opened or created."""


def column_letter(col: int) -> str:
    """1 -> A, 27 -> AA"""
    letters = ""
    while col > 0:
        col, rem = divmod(col - 1, 26)
        letters = chr(65 + rem) + letters
    return letters


class Worksheet:
    title: str

    def get_all_values(self) -> List[List[Any]]:
        raise NotImplementedError

    def append_row(self, values: List[Any]):
        raise NotImplementedError

    def update_cell(self, row: int, col: int, value: Any):
        raise NotImplementedError

    def get_cell(self, row: int, col: int) -> Any:
        values = self.get_all_values()
        if row > len(values) or col > len(values[row - 1]):
            return ""
        return values[row - 1][col - 1]


class Workbook:
    def worksheet(self, title: str) -> Optional[Worksheet]:
        raise NotImplementedError

    def add_worksheet(self, title: str) -> Worksheet:
        raise NotImplementedError

    def get_or_create_worksheet(self, title: str, headers: Optional[List[str]] = None) -> Worksheet:
        """Open a worksheet by title, creating it (with a header row) when absent."""
        try:
            with _setup_lock:
                sheet = self.worksheet(title)
                if sheet is None:
                    sheet = self.add_worksheet(title)
                    if headers:
                        sheet.append_row(list(headers))
                    logger.info(f"Created worksheet '{title}'")
            return sheet
        except SheetAccessError:
            raise
        except Exception as e:
            raise SheetAccessError(f"Could not access or set up worksheet '{title}': {e}") from e


# ------------------------------------------------------------
# IN-MEMORY BACKEND
# ------------------------------------------------------------
class MemoryWorksheet(Worksheet):
    def __init__(self, title: str, rows: Optional[List[List[Any]]] = None):
        self.title = title
        self.rows: List[List[Any]] = [list(r) for r in rows or []]

    def get_all_values(self) -> List[List[Any]]:
        return [list(r) for r in self.rows]

    def append_row(self, values: List[Any]):
        self.rows.append(list(values))

    def update_cell(self, row: int, col: int, value: Any):
        while len(self.rows) < row:
            self.rows.append([])
        target = self.rows[row - 1]
        while len(target) < col:
            target.append("")
        target[col - 1] = value


class MemoryWorkbook(Workbook):
    def __init__(self):
        self.sheets: Dict[str, MemoryWorksheet] = {}

    def worksheet(self, title: str) -> Optional[Worksheet]:
        return self.sheets.get(title)

    def add_worksheet(self, title: str) -> Worksheet:
        sheet = MemoryWorksheet(title)
        self.sheets[title] = sheet
        return sheet


# ------------------------------------------------------------
# GOOGLE SHEETS BACKEND
# ------------------------------------------------------------
class GoogleWorksheet(Worksheet):
    def __init__(self, service, spreadsheet_id: str, title: str):
        self.service = service
        self.spreadsheet_id = spreadsheet_id
        self.title = title

    def _range(self, a1: str = "") -> str:
        quoted = "'" + self.title.replace("'", "''") + "'"
        return f"{quoted}!{a1}" if a1 else quoted

    def get_all_values(self) -> List[List[Any]]:
        resp = self.service.spreadsheets().values().get(
            spreadsheetId=self.spreadsheet_id,
            range=self._range(),
        ).execute()
        return resp.get("values", [])

    def append_row(self, values: List[Any]):
        self.service.spreadsheets().values().append(
            spreadsheetId=self.spreadsheet_id,
            range=self._range("A1"),
            valueInputOption="RAW",
            insertDataOption="INSERT_ROWS",
            body={"values": [list(values)]},
        ).execute()

    def update_cell(self, row: int, col: int, value: Any):
        self.service.spreadsheets().values().update(
            spreadsheetId=self.spreadsheet_id,
            range=self._range(f"{column_letter(col)}{row}"),
            valueInputOption="RAW",
            body={"values": [[value]]},
        ).execute()


class GoogleWorkbook(Workbook):
    def __init__(self, service, spreadsheet_id: str):
        self.service = service
        self.spreadsheet_id = spreadsheet_id

    def _titles(self) -> List[str]:
        try:
            meta = self.service.spreadsheets().get(
                spreadsheetId=self.spreadsheet_id,
                fields="sheets.properties.title",
            ).execute()
        except HttpError as e:
            raise SheetAccessError(f"Could not open spreadsheet {self.spreadsheet_id}: {e}") from e
        return [s["properties"]["title"] for s in meta.get("sheets", [])]

    def worksheet(self, title: str) -> Optional[Worksheet]:
        if title in self._titles():
            return GoogleWorksheet(self.service, self.spreadsheet_id, title)
        return None

    def add_worksheet(self, title: str) -> Worksheet:
        self.service.spreadsheets().batchUpdate(
            spreadsheetId=self.spreadsheet_id,
            body={"requests": [{"addSheet": {"properties": {"title": title}}}]},
        ).execute()
        return GoogleWorksheet(self.service, self.spreadsheet_id, title)


WorkbookFactory = Callable[[WebhookConfig], Workbook]

# One memory workbook per spreadsheet id so state survives between requests
_memory_workbooks: Dict[str, MemoryWorkbook] = {}


def open_workbook(config: WebhookConfig) -> Workbook:
    """Default factory: pick the backend named by SHEETS_BACKEND."""
    if config.sheets_backend == "memory":
        return _memory_workbooks.setdefault(config.spreadsheet_id, MemoryWorkbook())
    try:
        service = build_service(
            "sheets",
            "v4",
            SHEETS_SCOPES,
            service_account_path=config.service_account_path,
        )
    except Exception as e:
        raise SheetAccessError(f"Could not connect to the Sheets API: {e}") from e
    return GoogleWorkbook(service, config.spreadsheet_id)
