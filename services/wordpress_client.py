"""WordPress REST client for appraisal posts (ACF fields, media and report links)."""
import html
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests

from config import Config
from utils.exceptions import WordPressError
from utils.screener_logger import get_screener_logger
from utils.secrets import get_secret

logger = get_screener_logger()


class WordPressClient:
    """
    Thin client over the WordPress REST API.

    Authenticates with HTTP Basic auth using an application password.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        username: Optional[str] = None,
        app_password: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None
    ):
        self.api_url = (api_url or Config.WORDPRESS_API_URL or "").rstrip("/")
        if not self.api_url:
            raise WordPressError("WORDPRESS_API_URL is not configured")

        self.session = session or requests.Session()
        self.session.auth = (
            username or Config.WORDPRESS_USERNAME or "",
            app_password or get_secret("WORDPRESS_APP_PASSWORD") or "",
        )
        self.session.headers.update({"Content-Type": "application/json"})
        self.timeout = timeout or Config.WORDPRESS_TIMEOUT

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.api_url}/{path.lstrip('/')}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.log_error("wordpress", f"{method} {url} failed: {e}")
            raise WordPressError("Error contacting WordPress", detail=str(e))

        if not response.ok:
            logger.log_error("wordpress", f"{method} {url} returned {response.status_code}: {response.text[:500]}")
            raise WordPressError(
                f"WordPress request failed with status {response.status_code}",
                detail=response.text[:500]
            )
        return response.json()

    # =========================================================================
    # Posts
    # =========================================================================

    def get_post(self, post_id, fields=("acf", "title", "date")) -> Dict[str, Any]:
        """Fetch an appraisal post restricted to the given fields."""
        return self._request("GET", f"appraisals/{post_id}", params={"_fields": ",".join(fields)})

    @staticmethod
    def get_metadata(post: Dict[str, Any], key: str, max_length: Optional[int] = None) -> str:
        """Read an ACF text field, truncating overly long values."""
        max_length = max_length or Config.WORDPRESS_METADATA_MAX_LENGTH
        value = (post.get("acf") or {}).get(key)
        if value is None or value is False:
            return ""
        value = str(value)

        if len(value) > max_length:
            logger.log_warning("wordpress", f"Metadata '{key}' exceeds {max_length} characters and was truncated")
            value = value[:max_length] + "..."
        return value

    @staticmethod
    def get_title(post: Dict[str, Any]) -> str:
        """Rendered post title with HTML entities decoded."""
        title = post.get("title") or {}
        return html.unescape(title.get("rendered") or "")

    @staticmethod
    def get_date(post: Dict[str, Any]) -> str:
        """Publication date as YYYY-MM-DD."""
        raw = post.get("date")
        if not raw:
            return ""
        try:
            return datetime.fromisoformat(raw).strftime("%Y-%m-%d")
        except ValueError:
            raise WordPressError(f"Invalid post date '{raw}'")

    # =========================================================================
    # Media
    # =========================================================================

    def get_media_url(self, media_id) -> Optional[str]:
        """source_url of a media item, or None so callers can skip it."""
        try:
            media = self._request("GET", f"media/{media_id}", params={"_fields": "source_url"})
        except WordPressError as e:
            logger.log_warning("wordpress", f"Could not resolve media {media_id}: {e.message}")
            return None
        return media.get("source_url") or None

    def resolve_image_field(self, post: Dict[str, Any], field_name: str) -> Optional[str]:
        """
        Resolve an ACF image field to a URL.

        The field may hold a URL, a media id or an image object with a url.
        """
        value = (post.get("acf") or {}).get(field_name)
        if not value:
            logger.log_warning("wordpress", f"Image field '{field_name}' is missing or empty")
            return None

        if isinstance(value, str) and value.startswith("http"):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return self.get_media_url(value)
        if isinstance(value, str) and value.isdigit():
            return self.get_media_url(int(value))
        if isinstance(value, dict) and value.get("url"):
            return value["url"]

        logger.log_warning("wordpress", f"Unrecognised format for image field '{field_name}'")
        return None

    def get_gallery(self, post: Dict[str, Any], field_name: str = "googlevision") -> List[str]:
        """URLs of the gallery media ids; unresolvable entries are dropped."""
        gallery = (post.get("acf") or {}).get(field_name) or []
        if not isinstance(gallery, list):
            return []

        urls = []
        for entry in gallery:
            if isinstance(entry, dict):
                url = entry.get("url") or (entry.get("id") and self.get_media_url(entry["id"]))
            else:
                url = self.get_media_url(entry)
            if url:
                urls.append(url)

        logger.log_info("wordpress", f"Gallery resolved {len(urls)} of {len(gallery)} images")
        return urls

    # =========================================================================
    # Updates
    # =========================================================================

    def update_links(self, post_id, pdf_link: str, doc_link: str):
        """Store the report links in the post's pdflink/doclink ACF fields."""
        self._request("POST", f"appraisals/{post_id}", json={"acf": {"pdflink": pdf_link, "doclink": doc_link}})
        logger.log_info("wordpress", f"Updated pdflink/doclink on post {post_id}")
