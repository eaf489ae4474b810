"""
Google Docs / Drive gateway for appraisal reports.

Wraps the documents and files resources of google-api-python-client. Edits
are applied with documents.batchUpdate; request bodies come from
core.placeholders.
"""
import io
import json
import time
from typing import Any, Dict, List, Optional

import requests
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from config import Config
from core import placeholders
from utils.exceptions import ReportError
from utils.screener_logger import get_screener_logger
from utils.secrets import get_secret

logger = get_screener_logger()

SCOPES = [
    "https://www.googleapis.com/auth/documents",
    "https://www.googleapis.com/auth/drive",
]


def build_google_services(credentials_json: Optional[str] = None):
    """Create the Docs v1 and Drive v3 services from service-account JSON."""
    credentials_json = credentials_json or get_secret("GOOGLE_DOCS_CREDENTIALS")
    if not credentials_json:
        raise ReportError("GOOGLE_DOCS_CREDENTIALS is not configured")

    try:
        info = json.loads(credentials_json)
        credentials = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
    except (ValueError, KeyError) as e:
        raise ReportError("Invalid Google Docs credentials", detail=str(e))

    docs = build("docs", "v1", credentials=credentials, cache_discovery=False)
    drive = build("drive", "v3", credentials=credentials, cache_discovery=False)
    return docs, drive


def is_image_accessible(image_url: str, timeout: float = 10) -> bool:
    """HEAD the image URL; Docs rejects insertInlineImage for unreachable images."""
    try:
        response = requests.head(image_url, allow_redirects=True, timeout=timeout)
        return response.ok
    except requests.RequestException as e:
        logger.log_warning("docs", f"Image not reachable {image_url}: {e}")
        return False


class GoogleDocsService:
    def __init__(self, docs=None, drive=None, settle_seconds: Optional[float] = None, image_checker=None):
        if docs is None or drive is None:
            docs, drive = build_google_services()
        self.docs = docs
        self.drive = drive
        self.settle_seconds = Config.DOCS_SETTLE_SECONDS if settle_seconds is None else settle_seconds
        self.image_checker = image_checker or is_image_accessible

    # =========================================================================
    # Low-level helpers
    # =========================================================================

    def _settle(self, factor: float = 1.0):
        # Docs applies structural edits asynchronously; re-reading too early misses them
        if self.settle_seconds > 0:
            time.sleep(self.settle_seconds * factor)

    def get_content(self, document_id: str) -> List[Dict[str, Any]]:
        document = self.docs.documents().get(documentId=document_id).execute()
        return document.get("body", {}).get("content", [])

    def batch_update(self, document_id: str, requests_: List[Dict[str, Any]]):
        if not requests_:
            return None
        return self.docs.documents().batchUpdate(
            documentId=document_id,
            body={"requests": requests_}
        ).execute()

    # =========================================================================
    # Drive operations
    # =========================================================================

    def clone_template(self, template_id: str) -> Dict[str, str]:
        """Copy the template document; returns {"id", "link"}."""
        template_id = template_id.strip()
        logger.log_info("docs", f"Cloning template '{template_id}'")
        try:
            copied = self.drive.files().copy(
                fileId=template_id,
                body={"name": placeholders.document_copy_name(Config.REPORT_NAME_PREFIX)},
                fields="id, webViewLink",
                supportsAllDrives=True,
            ).execute()
        except HttpError as e:
            raise ReportError(f"Error cloning the Google Docs template: {e}", detail=str(e))

        logger.log_info("docs", f"Template cloned as {copied['id']}")
        return {"id": copied["id"], "link": copied.get("webViewLink")}

    def move_to_folder(self, file_id: str, folder_id: str):
        """Move a file into folder_id, detaching it from its current parents."""
        try:
            file = self.drive.files().get(fileId=file_id, fields="parents", supportsAllDrives=True).execute()
            previous_parents = ",".join(file.get("parents", []))
            self.drive.files().update(
                fileId=file_id,
                addParents=folder_id,
                removeParents=previous_parents,
                supportsAllDrives=True,
                fields="id, parents",
            ).execute()
        except HttpError as e:
            raise ReportError("Error moving the report into its folder", detail=str(e))

        logger.log_info("docs", f"Moved {file_id} to folder {folder_id}")

    def export_pdf(self, document_id: str) -> bytes:
        try:
            pdf = self.drive.files().export(fileId=document_id, mimeType="application/pdf").execute()
        except HttpError as e:
            raise ReportError("Error exporting the document to PDF", detail=str(e))

        logger.log_info("docs", f"Exported {document_id} to PDF ({len(pdf)} bytes)")
        return pdf

    def upload_pdf(self, pdf_bytes: bytes, filename: str, folder_id: str) -> str:
        """Upload the PDF into folder_id; returns its webViewLink."""
        media = MediaIoBaseUpload(io.BytesIO(pdf_bytes), mimetype="application/pdf", resumable=False)
        try:
            file = self.drive.files().create(
                body={"name": filename, "parents": [folder_id], "mimeType": "application/pdf"},
                media_body=media,
                fields="id, webViewLink",
                supportsAllDrives=True,
            ).execute()
        except HttpError as e:
            raise ReportError("Error uploading the PDF to Google Drive", detail=str(e))

        logger.log_info("docs", f"PDF uploaded to Drive as {file['id']}")
        return file.get("webViewLink")

    # =========================================================================
    # Document edits
    # =========================================================================

    def replace_placeholders(self, document_id: str, data: Dict[str, Any]) -> int:
        """Replace every {{key}} present in the document; returns how many keys matched."""
        try:
            requests_ = placeholders.build_replace_requests(self.get_content(document_id), data)
            self.batch_update(document_id, requests_)
        except HttpError as e:
            raise ReportError("Error replacing placeholders in Google Docs", detail=str(e))

        if requests_:
            logger.log_info("docs", f"Replaced {len(requests_)} placeholders in {document_id}")
        else:
            logger.log_info("docs", "No placeholders found to replace")
        return len(requests_)

    def adjust_title_font_size(self, document_id: str, title: str) -> Optional[int]:
        """Size the title run by its length; returns the size applied, if any."""
        try:
            title_range = placeholders.find_title_range(self.get_content(document_id), title)
            if title_range is None:
                logger.log_warning("docs", "Title not found in the document, font size unchanged")
                return None

            size = placeholders.title_font_size(title)
            self.batch_update(document_id, [placeholders.build_font_size_request(title_range, size)])
        except HttpError as e:
            raise ReportError("Error adjusting the title font size", detail=str(e))

        logger.log_info("docs", f"Title font size set to {size}pt")
        return size

    def insert_formatted_metadata(self, document_id: str, placeholder: str, text: str) -> bool:
        """Replace {{placeholder}} with "key: value" lines, keys in bold."""
        token = placeholders.placeholder_token(placeholder)
        try:
            index = placeholders.find_first_placeholder(self.get_content(document_id), placeholder)
            if index is None:
                logger.log_warning("docs", f"Placeholder {token} not found")
                return False

            self.batch_update(document_id, [
                placeholders.build_delete_range_request(index, index + placeholders.utf16_len(token))
            ])
            self.batch_update(document_id, placeholders.build_metadata_requests(index, text))
        except HttpError as e:
            raise ReportError(f"Error inserting {token} metadata", detail=str(e))

        logger.log_info("docs", f"Inserted formatted metadata at {token}")
        return True

    def add_gallery_table(self, document_id: str, count: int, columns: Optional[int] = None) -> int:
        """
        Replace {{gallery}} with a table holding one {{googlevision<n>}}
        placeholder per image. Returns the number of placeholders inserted.
        """
        columns = columns or Config.GALLERY_COLUMNS
        try:
            index = placeholders.find_first_placeholder(self.get_content(document_id), placeholders.GALLERY_PLACEHOLDER)
            if index is None:
                logger.log_warning("docs", "Placeholder {{gallery}} not found")
                return 0

            token_len = placeholders.utf16_len(placeholders.placeholder_token(placeholders.GALLERY_PLACEHOLDER))
            self.batch_update(document_id, [placeholders.build_delete_range_request(index, index + token_len)])
            self._settle(0.5)

            rows = placeholders.gallery_rows(count, columns)
            logger.log_info("docs", f"Inserting {rows}x{columns} gallery table")
            self.batch_update(document_id, [placeholders.build_insert_table_request(index, rows, columns)])
            self._settle()

            table = placeholders.find_first_table_after(self.get_content(document_id), index)
            if table is None:
                logger.log_warning("docs", "Inserted gallery table not found")
                return 0

            requests_ = placeholders.build_gallery_placeholder_requests(table, count)
            self.batch_update(document_id, requests_)
            self._settle()
        except HttpError as e:
            raise ReportError("Error adding the gallery to Google Docs", detail=str(e))

        logger.log_info("docs", f"Gallery table ready with {len(requests_)} image placeholders")
        return len(requests_)

    def insert_image_at_placeholders(self, document_id: str, placeholder: str, image_url: str) -> bool:
        """
        Replace every {{placeholder}} with the image. Best effort: failures are
        logged and reported as False.
        """
        token = placeholders.placeholder_token(placeholder)
        if not image_url:
            logger.log_warning("docs", f"No image URL for {token}")
            return False

        try:
            ranges = placeholders.find_all_placeholder_ranges(self.get_content(document_id), placeholder)
            if not ranges:
                logger.log_warning("docs", f"No occurrences of {token}")
                return False

            self.batch_update(
                document_id,
                placeholders.build_image_requests(ranges, image_url, Config.REPORT_IMAGE_SIZE_PT)
            )
        except HttpError as e:
            logger.log_warning("docs", f"Could not insert image for {token}: {e}")
            return False

        logger.log_info("docs", f"Replaced {len(ranges)} occurrence(s) of {token} with {image_url}")
        return True

    def remove_placeholders(self, document_id: str, names: List[str]) -> int:
        """Blank out leftover placeholders. Best effort."""
        try:
            requests_ = placeholders.build_remove_requests(self.get_content(document_id), names)
            self.batch_update(document_id, requests_)
        except HttpError as e:
            logger.log_warning("docs", f"Could not remove placeholders {names}: {e}")
            return 0

        if requests_:
            logger.log_info("docs", f"Removed unreplaced placeholders: {', '.join(names)}")
        return len(requests_)

    def replace_gallery_placeholders(self, document_id: str, image_urls: List[str]) -> List[str]:
        """
        Put each gallery image into its {{googlevision<n>}} cell. Placeholders
        whose image is unreachable or fails to insert are removed; their
        names are returned.
        """
        unreplaced = []
        for number, image_url in enumerate(image_urls, start=1):
            name = placeholders.gallery_placeholder_name(number)
            if not image_url or not self.image_checker(image_url):
                logger.log_warning("docs", f"Image {image_url!r} is not accessible, skipping {{{{{name}}}}}")
                unreplaced.append(name)
                continue
            if not self.insert_image_at_placeholders(document_id, name, image_url):
                unreplaced.append(name)

        if unreplaced:
            self.remove_placeholders(document_id, unreplaced)
        return unreplaced
