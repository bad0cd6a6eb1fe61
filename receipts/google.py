"""Drive and Gmail adapters for the receipt draft tool."""

import base64
import io
from email.message import EmailMessage
from typing import List, Optional

from googleapiclient.http import MediaIoBaseDownload

from utils.logger import get_logger
from .drafts import Mailer, PdfAttachment, ReceiptFolders

logger = get_logger("receipts")

PDF_MIME_TYPE = "application/pdf"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


def _quote(value: str) -> str:
    """Escape a literal for a Drive `q` expression."""
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


class DriveReceiptFolders(ReceiptFolders):
    def __init__(self, service, parent_folder_id: str):
        self.service = service
        self.parent_folder_id = parent_folder_id

    def _first(self, query: str) -> Optional[dict]:
        resp = self.service.files().list(
            q=query,
            pageSize=1,
            fields="files(id, name, mimeType)",
            supportsAllDrives=True,
            includeItemsFromAllDrives=True,
        ).execute()
        files = resp.get("files", [])
        return files[0] if files else None

    def find_month_folder(self, name: str) -> Optional[str]:
        found = self._first(
            f"{_quote(self.parent_folder_id)} in parents and name = {_quote(name)} "
            f"and mimeType = '{FOLDER_MIME_TYPE}' and trashed = false"
        )
        return found["id"] if found else None

    def find_pdf(self, folder_id: str, file_name: str) -> Optional[PdfAttachment]:
        found = self._first(
            f"{_quote(folder_id)} in parents and name = {_quote(file_name)} and trashed = false"
        )
        if not found:
            return None

        buffer = io.BytesIO()
        request = self.service.files().get_media(fileId=found["id"], supportsAllDrives=True)
        downloader = MediaIoBaseDownload(buffer, request)
        done = False
        while not done:
            _, done = downloader.next_chunk()
        logger.info(f"Downloaded '{found['name']}' ({buffer.tell()} bytes)")
        return PdfAttachment(name=found["name"], content=buffer.getvalue())


def build_draft_message(to: str, subject: str, body: str, attachments: List[PdfAttachment]) -> EmailMessage:
    msg = EmailMessage()
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(body)
    for att in attachments:
        msg.add_attachment(att.content, maintype="application", subtype="pdf", filename=att.name)
    return msg


class GmailMailer(Mailer):
    def __init__(self, service):
        self.service = service

    def create_draft(self, to: str, subject: str, body: str, attachments: List[PdfAttachment]):
        msg = build_draft_message(to, subject, body, attachments)
        raw = base64.urlsafe_b64encode(msg.as_bytes()).decode("ascii")
        return self.service.users().drafts().create(
            userId="me",
            body={"message": {"raw": raw}},
        ).execute()
