"""S3 client wrapper used as the content store for cape images."""

import logging
import os
from typing import Optional

import boto3
from botocore.exceptions import ClientError

from capes.config import settings
from capes.utils.images import content_type_for, sniff_image

logger = logging.getLogger(__name__)


class S3Client:
    """Thin wrapper around boto3 for content-addressed image objects.

    Supports both AWS S3 and S3-compatible services (Tigris, R2, MinIO).
    Falls back to local filesystem storage when image_storage_local is True.
    Keys are image hashes or ``{image_hash}_{transform}``.
    """

    def __init__(self) -> None:
        self.bucket = settings.s3_bucket_name
        self.public_url_base = settings.s3_public_url_base
        self.use_local = settings.image_storage_local
        self.local_root = settings.local_image_root
        self._client: Optional[boto3.client] = None

    @property
    def client(self) -> boto3.client:
        """Lazily initialize the S3 client."""
        if self._client is None:
            client_kwargs: dict[str, str] = {
                "region_name": settings.s3_region,
            }
            if settings.s3_access_key_id and settings.s3_secret_access_key:
                client_kwargs["aws_access_key_id"] = settings.s3_access_key_id
                client_kwargs["aws_secret_access_key"] = settings.s3_secret_access_key
            if settings.s3_endpoint_url:
                client_kwargs["endpoint_url"] = settings.s3_endpoint_url

            self._client = boto3.client("s3", **client_kwargs)
        return self._client

    def upload(
        self,
        key: str,
        data: bytes,
        content_type: str = "image/png",
    ) -> str:
        """Upload an object and return its public URL.

        put_object returns only once the object is durably stored, and S3
        reads after a successful write are consistent.

        Args:
            key: Object key (e.g. '3f1c..e9' or '3f1c..e9_front')
            data: File content as bytes
            content_type: MIME type of the file

        Returns:
            Public URL for the uploaded file
        """
        if self.use_local:
            return self._upload_local(key, data)

        if not self.bucket:
            raise ValueError("S3_BUCKET_NAME not configured")

        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
            logger.info(f"Uploaded {key} to S3 bucket {self.bucket}")
            return self.get_public_url(key)
        except ClientError as e:
            logger.error(f"Failed to upload {key} to S3: {e}")
            raise

    def download(self, key: str) -> Optional[tuple[bytes, str]]:
        """Fetch an object's bytes and content type.

        Returns:
            (data, content_type), or None if the key does not exist
        """
        if self.use_local:
            return self._download_local(key)

        if not self.bucket:
            raise ValueError("S3_BUCKET_NAME not configured")

        try:
            result = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if e.response["Error"]["Code"] in ("404", "NoSuchKey"):
                return None
            logger.error(f"Failed to download {key} from S3: {e}")
            raise
        return result["Body"].read(), result.get("ContentType", "image/png")

    def get_public_url(self, key: str) -> str:
        """Return public URL for a key.

        Uses configured public_url_base (CDN) if available,
        otherwise constructs direct S3 URL.
        """
        if self.use_local:
            return f"/static/img/{key}"

        if self.public_url_base:
            base = self.public_url_base.rstrip("/")
            return f"{base}/{key}"

        if settings.s3_endpoint_url:
            endpoint = settings.s3_endpoint_url.rstrip("/")
            return f"{endpoint}/{self.bucket}/{key}"

        return f"https://{self.bucket}.s3.{settings.s3_region}.amazonaws.com/{key}"

    def _upload_local(self, key: str, data: bytes) -> str:
        """Write to the local filesystem (dev mode)."""
        local_path = os.path.join(self.local_root, key)
        os.makedirs(os.path.dirname(local_path), exist_ok=True)

        with open(local_path, "wb") as f:
            f.write(data)

        logger.info(f"Saved {key} to local filesystem")
        return f"/static/img/{key}"

    def _download_local(self, key: str) -> Optional[tuple[bytes, str]]:
        local_path = os.path.join(self.local_root, key)
        if not os.path.exists(local_path):
            return None
        with open(local_path, "rb") as f:
            data = f.read()
        # Local objects don't carry a content type
        try:
            extension = sniff_image(data).extension
        except ValueError:
            extension = ""
        return data, content_type_for(extension)


# Singleton instance for convenience
s3_client = S3Client()
