import base64
import email
import unittest
from unittest.mock import MagicMock

from app.sheets import MemoryWorksheet
from receipts.drafts import (
    MISSING_FIELDS_MESSAGE,
    STATUS_DONE,
    Mailer,
    PdfAttachment,
    ReceiptError,
    ReceiptFolders,
    column_indexes,
    create_drafts_for_rows,
    fill_template,
    parse_row_spec,
)
from receipts.google import DriveReceiptFolders, GmailMailer, build_draft_message

HEADERS = ["契約主名", "メールアドレス", "患者様名", "PDFファイル名", "対象月 (フォルダ名)", " 処理ステータス "]


class FakeFolders(ReceiptFolders):
    def __init__(self, tree):
        self.tree = tree
        self.month_lookups = []

    def find_month_folder(self, name):
        self.month_lookups.append(name)
        return name if name in self.tree else None

    def find_pdf(self, folder_id, file_name):
        if file_name in self.tree[folder_id]:
            return PdfAttachment(name=file_name, content=b"%PDF-1.4")
        return None


class FakeMailer(Mailer):
    def __init__(self):
        self.drafts = []

    def create_draft(self, to, subject, body, attachments):
        self.drafts.append((to, subject, body, [a.name for a in attachments]))


def settings_sheet():
    return MemoryWorksheet("メール設定", [
        ["件名", "領収書送付のご案内（{契約主名}様）"],
        ["本文", "{契約主名}様\n{患者様名}様分の領収書をお送りします。"],
    ])


class RowSpecTests(unittest.TestCase):
    def test_ranges_and_singles(self):
        self.assertEqual(parse_row_spec("2-4, 8,3"), [2, 3, 4, 8])

    def test_invalid(self):
        with self.assertRaises(ValueError):
            parse_row_spec("a-b")
        with self.assertRaises(ValueError):
            parse_row_spec("5-2")


class HelperTests(unittest.TestCase):
    def test_column_indexes_trims_headers(self):
        self.assertEqual(column_indexes(["a ", "", " b"]), {"a": 0, "b": 2})

    def test_fill_template_replaces_every_occurrence(self):
        self.assertEqual(fill_template("{x}-{x}-{y}", {"x": "1"}), "1-1-{y}")


class CreateDraftsTests(unittest.TestCase):
    def setUp(self):
        self.sheet = MemoryWorksheet("送信リスト_2024", [
            HEADERS,
            ["山田太郎", "yamada@example.com", "山田花子", "r1.pdf", "2024-04", ""],
            ["鈴木一郎", "suzuki@example.com", "鈴木次郎", "r2.pdf", "2024-04", STATUS_DONE],
            ["佐藤", "", "佐藤", "r3.pdf", "2024-04", ""],
            ["高橋", "takahashi@example.com", "高橋", "missing.pdf", "2024-04", ""],
            ["伊藤", "ito@example.com", "伊藤", "r5.pdf", "2099-01", ""],
            ["渡辺", "watanabe@example.com", "渡辺", "r6.pdf", "2024-04", ""],
        ])
        self.folders = FakeFolders({"2024-04": {"r1.pdf", "r2.pdf", "r6.pdf"}})
        self.mailer = FakeMailer()

    def run_rows(self, rows):
        return create_drafts_for_rows(self.sheet, settings_sheet(), rows, self.folders, self.mailer)

    def test_full_batch(self):
        summary = self.run_rows([1, 2, 3, 4, 5, 6, 7, 20])

        self.assertEqual(summary.created, 2)
        self.assertEqual(summary.skipped, [3, 20])
        self.assertEqual(sorted(summary.failed), [4, 5, 6])

        status = [r[5] for r in self.sheet.rows[1:]]
        self.assertEqual(status[0], STATUS_DONE)
        self.assertEqual(status[1], STATUS_DONE)
        self.assertEqual(status[2], MISSING_FIELDS_MESSAGE)
        self.assertEqual(status[3], "エラー: PDFファイル「missing.pdf」が見つかりません。")
        self.assertEqual(status[4], "エラー: 月フォルダ「2099-01」が見つかりません。")
        self.assertEqual(status[5], STATUS_DONE)

    def test_draft_content(self):
        self.run_rows([2])
        to, subject, body, attachments = self.mailer.drafts[0]
        self.assertEqual(to, "yamada@example.com")
        self.assertEqual(subject, "領収書送付のご案内（山田太郎様）")
        self.assertEqual(body, "山田太郎様\n山田花子様分の領収書をお送りします。")
        self.assertEqual(attachments, ["r1.pdf"])

    def test_month_folder_is_looked_up_once(self):
        self.run_rows([2, 7])
        self.assertEqual(self.folders.month_lookups, ["2024-04"])

    def test_wrong_sheet_name(self):
        self.sheet.title = "Sheet1"
        with self.assertRaises(ReceiptError):
            self.run_rows([2])

    def test_missing_settings_sheet(self):
        with self.assertRaises(ReceiptError):
            create_drafts_for_rows(self.sheet, None, [2], self.folders, self.mailer)

    def test_missing_column(self):
        self.sheet.rows[0] = HEADERS[:-1]
        with self.assertRaises(ReceiptError):
            self.run_rows([2])

    def test_no_rows_selected(self):
        with self.assertRaises(ReceiptError):
            self.run_rows([])


class GoogleAdapterTests(unittest.TestCase):
    def test_month_folder_query(self):
        service = MagicMock()
        files = service.files.return_value
        files.list.return_value.execute.return_value = {"files": [{"id": "f1", "name": "2024-04"}]}
        folders = DriveReceiptFolders(service, "parent")

        self.assertEqual(folders.find_month_folder("2024-04"), "f1")
        query = files.list.call_args.kwargs["q"]
        self.assertIn("'parent' in parents", query)
        self.assertIn("name = '2024-04'", query)
        self.assertIn("application/vnd.google-apps.folder", query)

    def test_month_folder_not_found(self):
        service = MagicMock()
        service.files.return_value.list.return_value.execute.return_value = {"files": []}
        self.assertIsNone(DriveReceiptFolders(service, "parent").find_month_folder("x"))

    def test_quotes_are_escaped(self):
        service = MagicMock()
        files = service.files.return_value
        files.list.return_value.execute.return_value = {"files": []}
        DriveReceiptFolders(service, "parent").find_pdf("f1", "O'Brien.pdf")
        self.assertIn("name = 'O\\'Brien.pdf'", files.list.call_args.kwargs["q"])

    def test_draft_message_has_pdf_attachment(self):
        msg = build_draft_message("a@example.com", "件名", "本文", [PdfAttachment(name="r1.pdf", content=b"%PDF")])
        self.assertEqual(msg["To"], "a@example.com")
        parts = [p for p in msg.iter_attachments()]
        self.assertEqual(len(parts), 1)
        self.assertEqual(parts[0].get_content_type(), "application/pdf")
        self.assertEqual(parts[0].get_filename(), "r1.pdf")
        self.assertEqual(parts[0].get_content(), b"%PDF")

    def test_gmail_draft_raw_payload(self):
        service = MagicMock()
        GmailMailer(service).create_draft("a@example.com", "件名", "本文", [])
        kwargs = service.users.return_value.drafts.return_value.create.call_args.kwargs
        self.assertEqual(kwargs["userId"], "me")
        raw = base64.urlsafe_b64decode(kwargs["body"]["message"]["raw"])
        parsed = email.message_from_bytes(raw)
        self.assertEqual(parsed["To"], "a@example.com")


if __name__ == "__main__":
    unittest.main()
