"""
Project file storage on an S3-compatible bucket.

Keys are "<project_id>/<random hex><ext>". Uploads are capped at 50 MB and
limited to contracts, office documents and screenshots.
"""

import logging
import os
import uuid
from functools import lru_cache
from pathlib import Path

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import HTTPException, UploadFile

logger = logging.getLogger(__name__)

STORAGE_BUCKET = os.getenv("STORAGE_BUCKET", "project-files").strip()
MAX_FILE_SIZE = 50 * 1024 * 1024
DOWNLOAD_URL_TTL = 3600

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

# extension -> canonical content type
EXTENSION_TYPES = {
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": DOCX_MIME,
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
}
ALLOWED_MIME_TYPES = set(EXTENSION_TYPES.values()) | {"image/jpg"}
GENERIC_TYPES = {"", "application/octet-stream", "binary/octet-stream"}

StorageFailure = (RuntimeError, BotoCoreError, ClientError)


@lru_cache(maxsize=1)
def _client():
    endpoint = os.getenv("STORAGE_ENDPOINT", "").strip()
    key_id = os.getenv("STORAGE_ACCESS_KEY_ID", "").strip()
    secret = os.getenv("STORAGE_SECRET_ACCESS_KEY", "").strip()
    if not (endpoint and key_id and secret):
        raise RuntimeError("Object storage is not configured (STORAGE_ENDPOINT / STORAGE_ACCESS_KEY_ID / "
                           "STORAGE_SECRET_ACCESS_KEY)")
    return boto3.client(
        "s3",
        endpoint_url=endpoint,
        aws_access_key_id=key_id,
        aws_secret_access_key=secret,
        config=Config(signature_version="s3v4"),
        region_name="auto",
    )


def check_file_type(filename: str, content_type: str) -> str:
    """Content type to store for this upload; 400 when the type is not on the allow-list."""
    declared = (content_type or "").lower().strip()
    if declared in ALLOWED_MIME_TYPES:
        return declared
    ext = Path(filename).suffix.lower()
    if declared in GENERIC_TYPES and ext in EXTENSION_TYPES:
        return EXTENSION_TYPES[ext]
    raise HTTPException(status_code=400, detail=f"File type not allowed: {declared or ext}")


def save_upload(file: UploadFile, project_id) -> tuple[str, str, int, str]:
    """Store an upload. Returns (storage_key, original_name, size, content_type)."""
    name = Path(file.filename).name if file.filename else "unnamed"
    content_type = check_file_type(name, file.content_type)

    # never buffer more than one byte past the cap
    body = file.file.read(MAX_FILE_SIZE + 1)
    if not body:
        raise HTTPException(status_code=400, detail="Empty file")
    if len(body) > MAX_FILE_SIZE:
        raise HTTPException(status_code=413, detail="File too large (max 50MB)")

    key = f"{project_id}/{uuid.uuid4().hex}{Path(name).suffix.lower()}"
    try:
        _client().put_object(Bucket=STORAGE_BUCKET, Key=key, Body=body, ContentType=content_type)
    except StorageFailure as e:
        logger.error("Upload of %s failed: %s", key, e)
        raise HTTPException(status_code=500, detail="File upload failed")

    logger.info("Stored %s (%d bytes)", key, len(body))
    return key, name, len(body), content_type


def get_download_url(key: str, expires_in: int = DOWNLOAD_URL_TTL) -> str:
    try:
        return _client().generate_presigned_url(
            "get_object",
            Params={"Bucket": STORAGE_BUCKET, "Key": key},
            ExpiresIn=expires_in,
        )
    except StorageFailure as e:
        logger.error("Presigning %s failed: %s", key, e)
        raise HTTPException(status_code=500, detail="Failed to generate download link")


def delete_file(key: str) -> bool:
    try:
        _client().delete_object(Bucket=STORAGE_BUCKET, Key=key)
    except StorageFailure as e:
        logger.error("Delete of %s failed: %s", key, e)
        return False
    logger.info("Deleted %s", key)
    return True
