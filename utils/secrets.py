"""
Secret lookup for API keys and service-account credentials.

Secrets come from the environment by default. With SECRET_SOURCE=secret_manager
they are read from Google Secret Manager (latest version) instead.
"""
import os
import threading
from typing import Optional

from config import Config
from utils.exceptions import SecretError
from utils.screener_logger import get_screener_logger

logger = get_screener_logger()

_cache = {}
_lock = threading.Lock()
_client = None


def _get_secret_manager_client():
    global _client
    if _client is None:
        from google.cloud import secretmanager
        _client = secretmanager.SecretManagerServiceClient()
    return _client


def _read_from_secret_manager(name: str) -> str:
    path = f"projects/{Config.GOOGLE_CLOUD_PROJECT}/secrets/{name}/versions/latest"
    try:
        response = _get_secret_manager_client().access_secret_version(request={"name": path})
    except Exception as e:
        logger.log_error("secrets", f"Error reading secret '{name}': {e}")
        raise SecretError(f"Could not read secret '{name}'", detail=str(e))

    logger.log_info("secrets", f"Secret '{name}' loaded from Secret Manager")
    return response.payload.data.decode("utf-8")


def get_secret(name: str, default: Optional[str] = None) -> Optional[str]:
    """
    Return the value of a secret.

    Args:
        name: Secret name (also the environment variable name)
        default: Returned when the environment variable is unset

    Raises:
        SecretError: If Secret Manager is the source and the secret cannot be read
    """
    with _lock:
        if name in _cache:
            return _cache[name]

    if Config.SECRET_SOURCE == "secret_manager":
        value = _read_from_secret_manager(name)
    else:
        value = os.environ.get(name)
        if value is None:
            value = getattr(Config, name, None)
        if value is None:
            return default

    with _lock:
        _cache[name] = value
    return value


def clear_secret_cache():
    """Forget cached secrets (used after rotating credentials and in tests)."""
    with _lock:
        _cache.clear()
