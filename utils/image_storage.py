"""
Image storage adapters for uploaded customer photos.

- GCSImageStorage: Google Cloud Storage bucket, publicly readable URLs
- LocalDiskImageStorage: files under LOCAL_UPLOAD_DIR, served by GET /image/{sessionId}
- MemoryImageStorage: process memory, served the same way (development and tests)
"""
import mimetypes
import os
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from config import Config
from middleware.security_middleware import sanitize_filename
from utils.exceptions import ImageNotFoundError, StorageError
from utils.screener_logger import get_screener_logger

logger = get_screener_logger()

# Local disk sidecar holding the upload's content type
CONTENT_TYPE_SUFFIX = ".content-type"


@dataclass
class StoredImage:
    key: str
    public_url: str
    content_type: str


def extension_for(content_type: str, filename: str = "") -> str:
    """Pick a file extension from the content type, falling back to the filename."""
    ext = Config.ALLOWED_IMAGE_TYPES.get(content_type)
    if ext:
        return ext
    _, file_ext = os.path.splitext(filename or "")
    return file_ext.lower() or ".bin"


class ImageStorage:
    """Interface shared by all storage backends."""

    # Whether public_url can be fetched by external services (Vision, OpenAI)
    is_public = False

    def save_image(self, session_id: str, data: bytes, content_type: str, filename: str = "") -> StoredImage:
        raise NotImplementedError

    def load_image(self, key: str) -> Tuple[bytes, str]:
        raise NotImplementedError

    def delete_image(self, key: str) -> bool:
        raise NotImplementedError


class GCSImageStorage(ImageStorage):
    """
    Google Cloud Storage adapter.

    Objects are written to uploads/<sessionId>/<filename>; the bucket is
    expected to grant public read so the URL can be handed to OpenAI.
    """

    is_public = True

    def __init__(self, bucket_name: Optional[str] = None, client=None):
        self.bucket_name = bucket_name or Config.GCS_BUCKET_NAME
        if not self.bucket_name:
            raise ValueError("GCS_BUCKET_NAME environment variable not set")

        if client is None:
            from google.cloud import storage
            client = storage.Client(project=Config.GOOGLE_CLOUD_PROJECT)
        self.client = client
        self.bucket = self.client.bucket(self.bucket_name)

    def public_url(self, key: str) -> str:
        return f"https://storage.googleapis.com/{self.bucket_name}/{key}"

    def save_image(self, session_id: str, data: bytes, content_type: str, filename: str = "") -> StoredImage:
        name = sanitize_filename(filename) or f"image{extension_for(content_type)}"
        key = f"uploads/{session_id}/{name}"

        try:
            blob = self.bucket.blob(key)
            blob.upload_from_string(data, content_type=content_type)
        except Exception as e:
            logger.log_error("storage", f"Error uploading {key} to gs://{self.bucket_name}: {e}")
            raise StorageError("Failed to store image", detail=str(e))

        logger.log_info("storage", f"Uploaded {len(data)} bytes to gs://{self.bucket_name}/{key}")
        return StoredImage(key=key, public_url=self.public_url(key), content_type=content_type)

    def load_image(self, key: str) -> Tuple[bytes, str]:
        try:
            blob = self.bucket.get_blob(key)
        except Exception as e:
            raise StorageError("Failed to read image", detail=str(e))

        if blob is None:
            raise ImageNotFoundError(key)

        content_type = blob.content_type or mimetypes.guess_type(key)[0] or "application/octet-stream"
        return blob.download_as_bytes(), content_type

    def delete_image(self, key: str) -> bool:
        try:
            blob = self.bucket.get_blob(key)
            if blob is None:
                return False
            blob.delete()
        except Exception as e:
            logger.log_error("storage", f"Error deleting gs://{self.bucket_name}/{key}: {e}")
            raise StorageError("Failed to delete image", detail=str(e))

        logger.log_info("storage", f"Deleted gs://{self.bucket_name}/{key}")
        return True


class LocalDiskImageStorage(ImageStorage):
    """
    Filesystem adapter storing <sessionId><ext> files in one directory.

    The upload's content type is kept beside each file in a
    <sessionId><ext>.content-type sidecar.
    """

    def __init__(self, upload_dir: Optional[str] = None, base_url: Optional[str] = None):
        self.upload_dir = upload_dir or Config.LOCAL_UPLOAD_DIR
        self.base_url = (base_url or Config.PUBLIC_BASE_URL).rstrip("/")
        os.makedirs(self.upload_dir, exist_ok=True)

    def _path(self, key: str) -> str:
        # Keys are generated by save_image; basename() stops traversal via crafted keys
        return os.path.join(self.upload_dir, os.path.basename(key))

    def _sidecar_path(self, key: str) -> str:
        return self._path(key) + CONTENT_TYPE_SUFFIX

    def save_image(self, session_id: str, data: bytes, content_type: str, filename: str = "") -> StoredImage:
        key = f"{session_id}{extension_for(content_type, filename)}"
        try:
            with open(self._path(key), "wb") as f:
                f.write(data)
            with open(self._sidecar_path(key), "w", encoding="utf-8") as f:
                f.write(content_type)
        except OSError as e:
            logger.log_error("storage", f"Error writing {key}: {e}")
            raise StorageError("Failed to store image", detail=str(e))

        logger.log_info("storage", f"Saved {len(data)} bytes to {self._path(key)}")
        return StoredImage(key=key, public_url=f"{self.base_url}/image/{session_id}", content_type=content_type)

    def load_image(self, key: str) -> Tuple[bytes, str]:
        path = self._path(key)
        if not os.path.isfile(path):
            raise ImageNotFoundError(key)

        with open(path, "rb") as f:
            data = f.read()

        content_type = None
        sidecar = self._sidecar_path(key)
        if os.path.isfile(sidecar):
            with open(sidecar, "r", encoding="utf-8") as f:
                content_type = f.read().strip()
        # Files written before sidecars existed fall back to the extension
        return data, content_type or mimetypes.guess_type(path)[0] or "application/octet-stream"

    def delete_image(self, key: str) -> bool:
        path = self._path(key)
        if not os.path.isfile(path):
            return False
        try:
            os.remove(path)
            if os.path.isfile(self._sidecar_path(key)):
                os.remove(self._sidecar_path(key))
        except OSError as e:
            logger.log_error("storage", f"Error deleting {key}: {e}")
            raise StorageError("Failed to delete image", detail=str(e))
        return True


class MemoryImageStorage(ImageStorage):
    """In-process adapter keeping image bytes in a dict."""

    def __init__(self, base_url: Optional[str] = None):
        self.base_url = (base_url or Config.PUBLIC_BASE_URL).rstrip("/")
        self._images: Dict[str, Tuple[bytes, str]] = {}
        self._lock = threading.Lock()

    def save_image(self, session_id: str, data: bytes, content_type: str, filename: str = "") -> StoredImage:
        with self._lock:
            self._images[session_id] = (data, content_type)
        return StoredImage(key=session_id, public_url=f"{self.base_url}/image/{session_id}", content_type=content_type)

    def load_image(self, key: str) -> Tuple[bytes, str]:
        with self._lock:
            entry = self._images.get(key)
        if entry is None:
            raise ImageNotFoundError(key)
        return entry

    def delete_image(self, key: str) -> bool:
        with self._lock:
            return self._images.pop(key, None) is not None


def create_image_storage(backend: Optional[str] = None) -> ImageStorage:
    """Build the storage adapter named by STORAGE_BACKEND."""
    backend = (backend or Config.STORAGE_BACKEND).lower()
    if backend == "gcs":
        return GCSImageStorage()
    if backend == "local":
        return LocalDiskImageStorage()
    if backend == "memory":
        return MemoryImageStorage()
    raise ValueError(f"Unknown storage backend: {backend}")


# Singleton instance
_image_storage = None

def get_image_storage() -> ImageStorage:
    """Get or create the configured image storage."""
    global _image_storage
    if _image_storage is None:
        _image_storage = create_image_storage()
        logger.log_info("storage", f"Image storage backend: {type(_image_storage).__name__}")
    return _image_storage
