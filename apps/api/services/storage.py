import logging
import os
from typing import Optional

from ..errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

ASSETS_URL_PREFIX = os.getenv("ASSETS_URL_PREFIX")  # e.g. https://cdn.example.com/assets
COVERS_BUCKET = os.getenv("COVERS_BUCKET", "book-covers")
AVATARS_BUCKET = os.getenv("AVATARS_BUCKET", "avatars")

_client = None


def get_client():
    global _client
    if _client is None:
        from google.cloud import storage  # lazy import

        _client = storage.Client()
    return _client


def public_url(bucket_name: str, path: str) -> str:
    if ASSETS_URL_PREFIX:
        return f"{ASSETS_URL_PREFIX.rstrip('/')}/{bucket_name}/{path}"
    return f"https://storage.googleapis.com/{bucket_name}/{path}"


def extension_of(filename: Optional[str], default: str = "bin") -> str:
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[1].lower()
        if ext.isalnum() and len(ext) <= 8:
            return ext
    return default


def upload_public(
    bucket_name: str,
    path: str,
    data: bytes,
    content_type: Optional[str] = None,
    overwrite: bool = False,
) -> str:
    """Upload bytes and return their public URL.

    Without `overwrite` an existing object at `path` is an error rather than
    being replaced.
    """
    try:
        blob = get_client().bucket(bucket_name).blob(path)
        kwargs = {"content_type": content_type or "application/octet-stream"}
        if not overwrite:
            kwargs["if_generation_match"] = 0
        blob.upload_from_string(data, **kwargs)
    except Exception as e:
        logger.error("upload to gs://%s/%s failed", bucket_name, path, exc_info=True)
        raise UpstreamUnavailable("File upload failed") from e
    logger.info("uploaded gs://%s/%s", bucket_name, path)
    return public_url(bucket_name, path)
