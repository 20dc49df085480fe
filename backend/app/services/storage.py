"""MinIO object storage for invoice attachments."""
import io
import logging
import re
import uuid
from datetime import timedelta

from minio import Minio
from minio.error import S3Error
from urllib3.exceptions import HTTPError as Urllib3HTTPError

from app.core.config import settings
from app.core.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

# Errors that mean "object store unreachable or refused", not a caller bug.
STORAGE_ERRORS = (S3Error, Urllib3HTTPError, OSError)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")

# ─── Client singleton ───

def _build_client() -> Minio:
    return Minio(
        endpoint=settings.MINIO_ENDPOINT,
        access_key=settings.MINIO_ACCESS_KEY,
        secret_key=settings.MINIO_SECRET_KEY,
        secure=settings.MINIO_SECURE,
    )


_client: Minio | None = None


def get_client() -> Minio:
    global _client
    if _client is None:
        _client = _build_client()
    return _client


# ─── Bucket bootstrap ───

def ensure_bucket(bucket: str = settings.MINIO_BUCKET_NAME) -> None:
    """Create bucket if it does not already exist. Called on startup."""
    client = get_client()
    try:
        if not client.bucket_exists(bucket):
            client.make_bucket(bucket)
            logger.info("Created MinIO bucket: %s", bucket)
        else:
            logger.debug("MinIO bucket already exists: %s", bucket)
    except S3Error as exc:
        logger.error("Failed to ensure MinIO bucket %s: %s", bucket, exc)
        raise


# ─── Core operations ───

def attachment_object_name(invoice_id: uuid.UUID, filename: str) -> str:
    """Object key for an invoice attachment: invoices/<invoice_id>/<safe name>."""
    safe = _UNSAFE_CHARS.sub("_", filename).strip("._") or "attachment"
    return f"invoices/{invoice_id}/{safe}"


def upload_file(
    object_name: str,
    data: bytes,
    content_type: str,
    bucket: str = settings.MINIO_BUCKET_NAME,
) -> str:
    """Upload bytes to MinIO. Returns the object path."""
    client = get_client()
    try:
        client.put_object(
            bucket_name=bucket,
            object_name=object_name,
            data=io.BytesIO(data),
            length=len(data),
            content_type=content_type,
        )
    except STORAGE_ERRORS as exc:
        logger.error("MinIO upload failed for %s/%s: %s", bucket, object_name, exc)
        raise StoreUnavailableError("Failed to store invoice file. Please try again.") from exc

    logger.info("Uploaded %s/%s (%d bytes)", bucket, object_name, len(data))
    return object_name


def get_presigned_url(
    object_name: str,
    expires_seconds: int = settings.ATTACHMENT_URL_EXPIRE_SECONDS,
    bucket: str = settings.MINIO_BUCKET_NAME,
) -> str | None:
    """Return a pre-signed GET URL, or None if one cannot be produced right now."""
    client = get_client()
    try:
        return client.presigned_get_object(
            bucket_name=bucket,
            object_name=object_name,
            expires=timedelta(seconds=expires_seconds),
        )
    except STORAGE_ERRORS as exc:
        logger.warning("Could not presign %s/%s: %s", bucket, object_name, exc)
        return None


def delete_object(object_name: str, bucket: str = settings.MINIO_BUCKET_NAME) -> None:
    """Delete an object from MinIO."""
    client = get_client()
    client.remove_object(bucket_name=bucket, object_name=object_name)
    logger.info("Deleted %s/%s", bucket, object_name)
