import argparse
import os
import sys

from dotenv import load_dotenv

from app.config import ConfigurationError, load_pdf_parent_folder_id
from app.sheets import GoogleWorkbook, SheetAccessError
from google_utils.auth import DRIVE_SCOPES, GMAIL_SCOPES, SHEETS_SCOPES, build_service
from utils.logger import get_logger
from .drafts import SETTINGS_SHEET_NAME, ReceiptError, create_drafts_for_rows, parse_row_spec
from .google import DriveReceiptFolders, GmailMailer

logger = get_logger("receipts")


def main(argv=None):
    load_dotenv()
    ap = argparse.ArgumentParser(description="Create Gmail drafts with PDF receipts for rows of a send list.")
    ap.add_argument("--sheet", required=True, help="Worksheet name, e.g. 送信リスト_2024")
    ap.add_argument("--rows", required=True, help="Rows to process, e.g. 2-10,14")
    ap.add_argument(
        "--spreadsheet",
        default=os.getenv("RECEIPT_SPREADSHEET_ID"),
        help="Spreadsheet id (defaults to RECEIPT_SPREADSHEET_ID)",
    )
    args = ap.parse_args(argv)

    logger.info("--- create_receipt_drafts start ---")
    try:
        if not args.spreadsheet:
            raise ConfigurationError("No spreadsheet id given (--spreadsheet or RECEIPT_SPREADSHEET_ID).")
        parent_folder_id = load_pdf_parent_folder_id()
        rows = parse_row_spec(args.rows)

        delegated_user = os.getenv("GOOGLE_DELEGATED_USER")
        workbook = GoogleWorkbook(build_service("sheets", "v4", SHEETS_SCOPES), args.spreadsheet)
        folders = DriveReceiptFolders(build_service("drive", "v3", DRIVE_SCOPES), parent_folder_id)
        mailer = GmailMailer(build_service("gmail", "v1", GMAIL_SCOPES, subject=delegated_user))

        sheet = workbook.worksheet(args.sheet)
        if sheet is None:
            raise ReceiptError(f"シート「{args.sheet}」が見つかりません。")
        summary = create_drafts_for_rows(
            sheet, workbook.worksheet(SETTINGS_SHEET_NAME), rows, folders, mailer
        )
    except (ConfigurationError, ReceiptError, SheetAccessError, EnvironmentError, ValueError) as e:
        logger.error(f"create_receipt_drafts failed: {e}")
        print(f"処理中にエラーが発生しました。\n詳細: {e}")
        return 1

    print(f"{summary.created}件のメール下書きを作成しました。Gmailをご確認ください。")
    if summary.failed:
        for row, error in summary.failed.items():
            print(f"  行 {row}: {error}")
    logger.info("--- create_receipt_drafts end ---")
    return 0


if __name__ == "__main__":
    sys.exit(main())
