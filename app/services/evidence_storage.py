"""Object storage for evidence files attached to a case.

Evidence ``file_url`` values are either external links supplied by the
complainant (kept as-is) or object keys under ``evidence/<case_id>/``.
"""

import logging
import posixpath
import re
import uuid

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from app.config import settings

logger = logging.getLogger(__name__)

KEY_ROOT = "evidence"
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def is_external_url(file_url: str) -> bool:
    return file_url.lower().startswith(("http://", "https://"))


def safe_file_name(file_name: str) -> str:
    # Complainants upload from any OS; drop directories and odd characters.
    base = posixpath.basename(file_name.replace("\\", "/")).strip()
    cleaned = _UNSAFE_CHARS.sub("_", base).strip("._")
    return cleaned[:200] or "evidence"


class EvidenceStorage:
    @staticmethod
    def is_configured() -> bool:
        return bool(
            settings.s3_endpoint_url
            and settings.s3_access_key
            and settings.s3_secret_key
        )

    @staticmethod
    def _get_client():  # type: ignore[return]
        if not EvidenceStorage.is_configured():
            raise RuntimeError(
                "Evidence storage is not configured. "
                "Set S3_ENDPOINT_URL, S3_ACCESS_KEY, and S3_SECRET_KEY."
            )
        return boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            region_name=settings.s3_region,
            config=Config(signature_version="s3v4"),
        )

    @staticmethod
    def case_prefix(case_id) -> str:
        return f"{KEY_ROOT}/{case_id}/"

    @staticmethod
    def generate_storage_key(case_id, file_name: str) -> str:
        unique = uuid.uuid4().hex[:12]
        prefix = EvidenceStorage.case_prefix(case_id)
        return f"{prefix}{unique}/{safe_file_name(file_name)}"

    @staticmethod
    def key_belongs_to_case(storage_key: str, case_id) -> bool:
        """True when the key sits under the case's prefix without escaping it."""
        prefix = EvidenceStorage.case_prefix(case_id)
        if not storage_key.startswith(prefix) or ".." in storage_key.split("/"):
            return False
        return len(storage_key) > len(prefix)

    @staticmethod
    def object_exists(storage_key: str) -> bool:
        client = EvidenceStorage._get_client()
        try:
            client.head_object(Bucket=settings.s3_bucket_name, Key=storage_key)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in {"404", "NoSuchKey", "NotFound"}:
                return False
            logger.error("Failed to look up evidence object %s: %s", storage_key, e)
            raise
        return True

    @staticmethod
    def generate_upload_url(storage_key: str, mime_type: str) -> str:
        client = EvidenceStorage._get_client()
        url: str = client.generate_presigned_url(
            "put_object",
            Params={
                "Bucket": settings.s3_bucket_name,
                "Key": storage_key,
                "ContentType": mime_type,
            },
            ExpiresIn=settings.s3_presigned_url_expiry,
        )
        logger.info("Issued evidence upload URL for %s", storage_key)
        return url

    @staticmethod
    def generate_download_url(storage_key: str) -> str:
        client = EvidenceStorage._get_client()
        file_name = posixpath.basename(storage_key)
        url: str = client.generate_presigned_url(
            "get_object",
            Params={
                "Bucket": settings.s3_bucket_name,
                "Key": storage_key,
                "ResponseContentDisposition": f'attachment; filename="{file_name}"',
            },
            ExpiresIn=settings.s3_presigned_url_expiry,
        )
        return url


storage = EvidenceStorage()
