"""
Object storage gateway for recording audio
"""
import asyncio
import logging
import re
import time
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

import boto3
from botocore.client import Config

from fieldlink.core.database import utcnow
from fieldlink.core.errors import ServiceUnavailableError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_AUDIO_TYPES = (
    "audio/mpeg",
    "audio/wav",
    "audio/x-wav",
    "audio/mp4",
    "audio/x-m4a",
    "audio/ogg",
)
MAX_FILE_SIZE = 100 * 1024 * 1024
PRESIGN_EXPIRY_SECONDS = 3600


@dataclass
class StoredObject:
    key: str
    url: str


class ObjectStorage(Protocol):
    async def put(self, data: bytes, organization_id: str, filename: str, content_type: str) -> StoredObject: ...
    async def get(self, key: str) -> Tuple[bytes, str]: ...
    async def delete(self, key: str) -> None: ...
    async def presign(self, key: str, expires_in: int = PRESIGN_EXPIRY_SECONDS) -> str: ...


def sanitize_filename(filename: str) -> str:
    return re.sub(r"[^a-zA-Z0-9.-]", "_", filename or "recording")


def build_key(organization_id: str, filename: str, timestamp_ms: Optional[int] = None) -> str:
    """recordings/<org>/<epoch-ms>-<sanitized name>"""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"recordings/{organization_id}/{timestamp_ms}-{sanitize_filename(filename)}"


def validate_file_type(content_type: Optional[str]) -> None:
    if content_type not in ALLOWED_AUDIO_TYPES:
        raise ValidationError(
            f"Invalid file type: {content_type}. Allowed types: {', '.join(ALLOWED_AUDIO_TYPES)}"
        )


def validate_file_size(size: int, max_size: int = MAX_FILE_SIZE) -> None:
    if size > max_size:
        raise ValidationError(f"File too large. Maximum size is {max_size // (1024 * 1024)}MB")


class S3Storage:
    """S3 (or S3-compatible) bucket; boto3 calls run in a worker thread."""

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        endpoint: Optional[str] = None,
    ):
        self.bucket = bucket
        self.region = region
        self.endpoint = endpoint
        session = boto3.session.Session(
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
        )
        self.client = session.client(
            "s3",
            endpoint_url=endpoint or None,
            config=Config(signature_version="s3v4"),
        )

    def _object_url(self, key: str) -> str:
        if self.endpoint:
            return f"{self.endpoint.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    async def put(self, data: bytes, organization_id: str, filename: str, content_type: str) -> StoredObject:
        key = build_key(organization_id, filename)
        await asyncio.to_thread(
            self.client.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
            ServerSideEncryption="AES256",
            Metadata={
                "organization-id": str(organization_id),
                "original-name": sanitize_filename(filename),
                "uploaded-at": utcnow().isoformat(),
            },
        )
        logger.info("Stored object", extra={"key": key, "size": len(data)})
        return StoredObject(key=key, url=self._object_url(key))

    async def get(self, key: str) -> Tuple[bytes, str]:
        response = await asyncio.to_thread(self.client.get_object, Bucket=self.bucket, Key=key)
        body = await asyncio.to_thread(response["Body"].read)
        return body, response.get("ContentType", "application/octet-stream")

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)
        logger.info("Deleted object", extra={"key": key})

    async def presign(self, key: str, expires_in: int = PRESIGN_EXPIRY_SECONDS) -> str:
        return await asyncio.to_thread(
            self.client.generate_presigned_url,
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires_in,
        )


class UnavailableStorage:
    """Used when no storage credentials are configured."""

    message = "File storage is not configured. Set AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY."

    async def put(self, data: bytes, organization_id: str, filename: str, content_type: str) -> StoredObject:
        raise ServiceUnavailableError(self.message)

    async def get(self, key: str) -> Tuple[bytes, str]:
        raise ServiceUnavailableError(self.message)

    async def delete(self, key: str) -> None:
        raise ServiceUnavailableError(self.message)

    async def presign(self, key: str, expires_in: int = PRESIGN_EXPIRY_SECONDS) -> str:
        raise ServiceUnavailableError(self.message)
