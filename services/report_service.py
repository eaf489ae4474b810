"""
Report Service - builds the appraisal PDF for a WordPress post.

Clones the Google Docs template, fills it from the post's ACF fields,
exports it to PDF in Drive and writes the links back to the post.
"""
from typing import Dict, Optional

from config import Config
from core import placeholders
from services.google_docs_service import GoogleDocsService
from services.wordpress_client import WordPressClient
from utils.exceptions import ReportError
from utils.screener_logger import RequestContext, get_screener_logger

logger = get_screener_logger()

METADATA_KEYS = [
    "test", "ad_copy", "age_text", "age1", "condition",
    "signature1", "signature2", "style", "valuation_method",
    "conclusion1", "conclusion2", "authorship", "table",
    "glossary", "value",
]

# ACF image field -> template placeholder
IMAGE_FIELDS = {
    "age": "age_image",
    "signature": "signature_image",
    "main": "main_image",
}


class ReportService:
    def __init__(self, wordpress: Optional[WordPressClient] = None, docs: Optional[GoogleDocsService] = None):
        self._wordpress = wordpress
        self._docs = docs

    @property
    def wordpress(self) -> WordPressClient:
        if self._wordpress is None:
            self._wordpress = WordPressClient()
        return self._wordpress

    @property
    def docs(self) -> GoogleDocsService:
        if self._docs is None:
            self._docs = GoogleDocsService()
        return self._docs

    def collect_post_data(self, post_id) -> Dict:
        """Read everything the template needs from a single fetch of the post."""
        post = self.wordpress.get_post(post_id, fields=("acf", "title", "date"))

        data = {key: self.wordpress.get_metadata(post, key) for key in METADATA_KEYS}
        data["appraisal_value"] = placeholders.format_appraisal_value(data["value"])
        data["appraisal_title"] = self.wordpress.get_title(post)
        data["appraisal_date"] = self.wordpress.get_date(post)

        images = {
            placeholder: self.wordpress.resolve_image_field(post, field)
            for field, placeholder in IMAGE_FIELDS.items()
        }
        gallery = self.wordpress.get_gallery(post, "googlevision")
        return {"data": data, "images": images, "gallery": gallery}

    def generate(self, post_id, session_id: Optional[str] = None, ctx: Optional[RequestContext] = None) -> Dict[str, str]:
        """
        Run the generate-pdf pipeline for a post.

        Returns:
            {"pdfLink": ..., "docLink": ...}

        Raises:
            ReportError: Missing configuration or a failed Docs/Drive step
            WordPressError: The post could not be read or updated
        """
        template_id = Config.GOOGLE_DOCS_TEMPLATE_ID
        folder_id = Config.GOOGLE_DRIVE_FOLDER_ID
        if not template_id:
            raise ReportError("GOOGLE_DOCS_TEMPLATE_ID is not configured")
        if not folder_id:
            raise ReportError("GOOGLE_DRIVE_FOLDER_ID is not configured")

        ctx = ctx or logger.create_request_context(session_id=session_id)
        logger.log_info("report", f"Generating report for post {post_id}", request_id=ctx.request_id)

        with logger.stage(ctx, "fetch_post", component="report"):
            collected = self.collect_post_data(post_id)
        data = collected["data"]

        with logger.stage(ctx, "clone_template", component="report"):
            document = self.docs.clone_template(template_id)
            self.docs.move_to_folder(document["id"], folder_id)
        document_id = document["id"]

        with logger.stage(ctx, "fill_placeholders", component="report"):
            # {{table}} must survive until the formatted metadata replaces it
            replacements = {key: value for key, value in data.items() if not (key == "table" and value)}
            self.docs.replace_placeholders(document_id, replacements)
            if data["appraisal_title"]:
                self.docs.adjust_title_font_size(document_id, data["appraisal_title"])
            if data["table"]:
                self.docs.insert_formatted_metadata(document_id, "table", data["table"])

        if collected["gallery"]:
            with logger.stage(ctx, "gallery", component="report"):
                inserted = self.docs.add_gallery_table(document_id, len(collected["gallery"]))
                if inserted:
                    self.docs.replace_gallery_placeholders(document_id, collected["gallery"][:inserted])

        with logger.stage(ctx, "images", component="report"):
            for placeholder, url in collected["images"].items():
                if url:
                    self.docs.insert_image_at_placeholders(document_id, placeholder, url)
                else:
                    self.docs.remove_placeholders(document_id, [placeholder])

        with logger.stage(ctx, "export_pdf", component="report"):
            pdf_bytes = self.docs.export_pdf(document_id)
            filename = placeholders.report_filename(post_id, session_id, Config.REPORT_NAME_PREFIX)
            pdf_link = self.docs.upload_pdf(pdf_bytes, filename, folder_id)

        with logger.stage(ctx, "update_post", component="report"):
            self.wordpress.update_links(post_id, pdf_link, document["link"])

        logger.log_info(
            "report",
            f"Report for post {post_id} ready in {ctx.elapsed_ms():.0f}ms",
            request_id=ctx.request_id
        )
        return {"pdfLink": pdf_link, "docLink": document["link"]}


# Singleton instance
_report_service = None

def get_report_service() -> ReportService:
    global _report_service
    if _report_service is None:
        _report_service = ReportService()
    return _report_service
