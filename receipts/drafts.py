"""
receipts/drafts.py
------------------
Creates Gmail drafts for receipt rows in a "送信リスト_YYYY" worksheet.

For every selected row: look up the month folder under the receipt parent
folder, find the PDF by file name, fill the subject/body templates from the
"メール設定" sheet, create a draft with the PDF attached and mark the row
"作成済み". A failing row gets "エラー: ..." in its status cell and the batch
moves on.
"""

import re
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from app.sheets import Worksheet
from utils.logger import get_logger

logger = get_logger("receipts")

LIST_SHEET_PREFIX = "送信リスト_"
SETTINGS_SHEET_NAME = "メール設定"

COL_STATUS = "処理ステータス"
COL_CLIENT = "契約主名"
COL_EMAIL = "メールアドレス"
COL_PATIENT = "患者様名"
COL_PDF = "PDFファイル名"
COL_MONTH = "対象月 (フォルダ名)"
REQUIRED_COLUMNS = [COL_STATUS, COL_CLIENT, COL_EMAIL, COL_PATIENT, COL_PDF, COL_MONTH]

STATUS_DONE = "作成済み"
MISSING_FIELDS_MESSAGE = "エラー: 必須情報（アドレス, ファイル名, 対象月）が不足しています。"


class ReceiptError(Exception):
    """The run cannot start (wrong sheet, missing settings or columns)."""


class DraftRowError(Exception):
    """One row failed; recorded in its status cell."""


class PdfAttachment(BaseModel):
    name: str
    content: bytes


class DraftRunSummary(BaseModel):
    created: int = 0
    skipped: List[int] = Field(default_factory=list)
    failed: Dict[int, str] = Field(default_factory=dict)


class ReceiptFolders:
    """Where the PDFs live: parent folder -> month folders -> PDF files."""

    def find_month_folder(self, name: str) -> Optional[str]:
        raise NotImplementedError

    def find_pdf(self, folder_id: str, file_name: str) -> Optional[PdfAttachment]:
        raise NotImplementedError


class Mailer:
    def create_draft(self, to: str, subject: str, body: str, attachments: List[PdfAttachment]):
        raise NotImplementedError


def column_indexes(headers: list) -> Dict[str, int]:
    """Header text (trimmed) -> 0-based column index."""
    indexes = {}
    for i, header in enumerate(headers):
        if header:
            indexes[str(header).strip()] = i
    return indexes


def parse_row_spec(spec: str) -> List[int]:
    """'2-5,8' -> [2, 3, 4, 5, 8] (sorted, de-duplicated)"""
    rows = set()
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        match = re.fullmatch(r"(\d+)\s*-\s*(\d+)", part)
        if match:
            start, end = int(match.group(1)), int(match.group(2))
            if start > end:
                raise ValueError(f"Invalid row range: {part}")
            rows.update(range(start, end + 1))
        elif part.isdigit():
            rows.add(int(part))
        else:
            raise ValueError(f"Invalid row selection: {part}")
    return sorted(rows)


def fill_template(template: str, values: Dict[str, str]) -> str:
    for key, value in values.items():
        template = template.replace("{" + key + "}", value)
    return template


def _cell(row: list, index: int) -> str:
    if index >= len(row) or row[index] is None:
        return ""
    return str(row[index]).strip()


def create_drafts_for_rows(
    sheet: Worksheet,
    settings_sheet: Optional[Worksheet],
    rows: List[int],
    folders: ReceiptFolders,
    mailer: Mailer,
) -> DraftRunSummary:
    if not sheet.title.startswith(LIST_SHEET_PREFIX):
        raise ReceiptError(f"「{LIST_SHEET_PREFIX}YYYY」という名前のシートで実行してください。")
    if settings_sheet is None:
        raise ReceiptError(f"「{SETTINGS_SHEET_NAME}」シートが見つかりません。")
    if not rows:
        raise ReceiptError("下書きを作成したい行を選択してください。")

    subject_template = str(settings_sheet.get_cell(1, 2) or "")
    body_template = str(settings_sheet.get_cell(2, 2) or "")

    values = sheet.get_all_values()
    if not values:
        raise ReceiptError(f"シート「{sheet.title}」にヘッダー行がありません。")
    col = column_indexes(values[0])
    missing = [c for c in REQUIRED_COLUMNS if c not in col]
    if missing:
        raise ReceiptError(f"必要な列が見つかりません: {', '.join(missing)}")
    status_col = col[COL_STATUS] + 1

    summary = DraftRunSummary()
    month_folder_cache: Dict[str, str] = {}

    for row_num in rows:
        if row_num == 1:
            logger.info(f"Row {row_num}: header row, skipped.")
            continue
        if row_num > len(values):
            logger.info(f"Row {row_num}: beyond the last row, skipped.")
            summary.skipped.append(row_num)
            continue

        row = values[row_num - 1]
        if _cell(row, col[COL_STATUS]) == STATUS_DONE:
            logger.info(f"Row {row_num}: already '{STATUS_DONE}', skipped.")
            summary.skipped.append(row_num)
            continue

        client_name = _cell(row, col[COL_CLIENT])
        email = _cell(row, col[COL_EMAIL])
        patient_name = _cell(row, col[COL_PATIENT])
        pdf_file_name = _cell(row, col[COL_PDF])
        month = _cell(row, col[COL_MONTH])
        logger.info(f"--- Row {row_num} start ({COL_CLIENT}: {client_name}) ---")

        if not email or not pdf_file_name or not month:
            sheet.update_cell(row_num, status_col, MISSING_FIELDS_MESSAGE)
            summary.failed[row_num] = MISSING_FIELDS_MESSAGE
            logger.warning(f"Row {row_num}: required fields missing, skipped.")
            continue

        try:
            folder_id = month_folder_cache.get(month)
            if folder_id is None:
                logger.info(f"Looking up month folder '{month}'.")
                folder_id = folders.find_month_folder(month)
                if folder_id is None:
                    raise DraftRowError(f"月フォルダ「{month}」が見つかりません。")
                month_folder_cache[month] = folder_id

            pdf = folders.find_pdf(folder_id, pdf_file_name)
            if pdf is None:
                raise DraftRowError(f"PDFファイル「{pdf_file_name}」が見つかりません。")

            subject = fill_template(subject_template, {COL_CLIENT: client_name})
            body = fill_template(body_template, {COL_CLIENT: client_name, COL_PATIENT: patient_name})
            mailer.create_draft(email, subject, body, [pdf])
            logger.info(f"Row {row_num}: Gmail draft created.")

            sheet.update_cell(row_num, status_col, STATUS_DONE)
            summary.created += 1
        except Exception as e:
            logger.error(f"Row {row_num}: {e}")
            sheet.update_cell(row_num, status_col, f"エラー: {e}")
            summary.failed[row_num] = str(e)
        logger.info(f"--- Row {row_num} end ---")

    return summary
