import unittest
from unittest.mock import MagicMock

from app.config import WebhookConfig
from app.sheets import (
    GoogleWorkbook,
    GoogleWorksheet,
    MemoryWorkbook,
    MemoryWorksheet,
    SheetAccessError,
    column_letter,
    open_workbook,
)


class ColumnLetterTests(unittest.TestCase):
    def test_letters(self):
        self.assertEqual(column_letter(1), "A")
        self.assertEqual(column_letter(2), "B")
        self.assertEqual(column_letter(26), "Z")
        self.assertEqual(column_letter(27), "AA")
        self.assertEqual(column_letter(703), "AAA")


class MemoryBackendTests(unittest.TestCase):
    def test_get_or_create_adds_header_once(self):
        book = MemoryWorkbook()
        first = book.get_or_create_worksheet("Log", ["a", "b"])
        second = book.get_or_create_worksheet("Log", ["a", "b"])
        self.assertIs(first, second)
        self.assertEqual(first.get_all_values(), [["a", "b"]])

    def test_update_cell_grows_rows(self):
        sheet = MemoryWorksheet("S")
        sheet.update_cell(3, 2, "x")
        self.assertEqual(sheet.get_cell(3, 2), "x")
        self.assertEqual(sheet.get_cell(3, 1), "")
        self.assertEqual(sheet.get_cell(9, 9), "")

    def test_creation_errors_become_sheet_access_errors(self):
        book = MemoryWorkbook()
        book.add_worksheet = MagicMock(side_effect=RuntimeError("quota"))
        with self.assertRaises(SheetAccessError):
            book.get_or_create_worksheet("Log")

    def test_memory_factory_keeps_workbook_per_spreadsheet(self):
        config = WebhookConfig(spreadsheet_id="mem-factory-test", sheets_backend="memory")
        self.assertIs(open_workbook(config), open_workbook(config))


class GoogleBackendTests(unittest.TestCase):
    def setUp(self):
        self.service = MagicMock()
        self.values = self.service.spreadsheets.return_value.values.return_value

    def test_get_all_values(self):
        self.values.get.return_value.execute.return_value = {"values": [["h1"], ["v1"]]}
        sheet = GoogleWorksheet(self.service, "sid", "Log")
        self.assertEqual(sheet.get_all_values(), [["h1"], ["v1"]])
        self.values.get.assert_called_with(spreadsheetId="sid", range="'Log'")

    def test_empty_sheet_has_no_values(self):
        self.values.get.return_value.execute.return_value = {}
        self.assertEqual(GoogleWorksheet(self.service, "sid", "Log").get_all_values(), [])

    def test_append_row(self):
        GoogleWorksheet(self.service, "sid", "ページ状態履歴").append_row(["P1", "{}"])
        kwargs = self.values.append.call_args.kwargs
        self.assertEqual(kwargs["range"], "'ページ状態履歴'!A1")
        self.assertEqual(kwargs["valueInputOption"], "RAW")
        self.assertEqual(kwargs["body"], {"values": [["P1", "{}"]]})

    def test_update_cell(self):
        GoogleWorksheet(self.service, "sid", "It's").update_cell(5, 2, "x")
        kwargs = self.values.update.call_args.kwargs
        self.assertEqual(kwargs["range"], "'It''s'!B5")
        self.assertEqual(kwargs["body"], {"values": [["x"]]})

    def test_workbook_creates_missing_sheet_with_header(self):
        spreadsheets = self.service.spreadsheets.return_value
        spreadsheets.get.return_value.execute.return_value = {
            "sheets": [{"properties": {"title": "Other"}}]
        }
        book = GoogleWorkbook(self.service, "sid")
        sheet = book.get_or_create_worksheet("Log", ["a", "b"])
        self.assertEqual(sheet.title, "Log")
        body = spreadsheets.batchUpdate.call_args.kwargs["body"]
        self.assertEqual(body, {"requests": [{"addSheet": {"properties": {"title": "Log"}}}]})
        self.assertEqual(self.values.append.call_args.kwargs["body"], {"values": [["a", "b"]]})

    def test_workbook_opens_existing_sheet(self):
        spreadsheets = self.service.spreadsheets.return_value
        spreadsheets.get.return_value.execute.return_value = {
            "sheets": [{"properties": {"title": "Log"}}]
        }
        sheet = GoogleWorkbook(self.service, "sid").get_or_create_worksheet("Log", ["a"])
        self.assertEqual(sheet.title, "Log")
        spreadsheets.batchUpdate.assert_not_called()


if __name__ == "__main__":
    unittest.main()
