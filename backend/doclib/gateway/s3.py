"""S3 bucket for large document storage."""

import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from doclib.config import Settings
from doclib.errors import BackendUnavailable, GatewayError
from doclib.gateway.protocols import GatewayResponse

logger = logging.getLogger(__name__)


class S3Bucket:
    """Storage bucket backed by AWS S3 (or any S3-compatible endpoint)."""

    def __init__(self, client, bucket: str, *, public_url_base: str | None = None):
        self.s3_client = client
        self.bucket = bucket
        self._public_url_base = public_url_base

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3Bucket":
        """Create an S3 client with credentials from settings."""
        client_kwargs = {
            "aws_access_key_id": settings.aws_access_key_id,
            "aws_secret_access_key": settings.aws_secret_access_key,
            "region_name": settings.aws_s3_region,
        }
        # Support MinIO / LocalStack by pointing to a custom endpoint
        if settings.aws_s3_endpoint_url:
            client_kwargs["endpoint_url"] = settings.aws_s3_endpoint_url

        public_url_base = settings.storage_public_url
        if public_url_base is None:
            if settings.aws_s3_endpoint_url:
                public_url_base = f"{settings.aws_s3_endpoint_url.rstrip('/')}/{settings.storage_bucket}"
            else:
                public_url_base = (
                    f"https://{settings.storage_bucket}.s3.{settings.aws_s3_region}.amazonaws.com"
                )

        return cls(
            boto3.client("s3", **client_kwargs),
            settings.storage_bucket,
            public_url_base=public_url_base,
        )

    async def upload(
        self, path: str, data: bytes, *, content_type: str, upsert: bool = False
    ) -> GatewayResponse:
        """
        Upload a file to the bucket.

        Args:
            path: S3 object key for the file
            data: Raw bytes of the file
            content_type: MIME type stored with the object
            upsert: Overwrite an existing object instead of failing

        Returns:
            Response with ``{"path": path}`` or the upload error
        """
        try:
            if not upsert and self._exists(path):
                return GatewayResponse(error=GatewayError(f"The resource already exists: {path}"))
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ContentType=content_type,
            )
        except ClientError as e:
            return GatewayResponse(error=GatewayError(f"Failed to upload file to S3: {str(e)}"))
        except BotoCoreError as e:
            logger.error("S3 upload failed (key=%s): %s", path, str(e))
            return GatewayResponse(error=BackendUnavailable(f"Failed to upload file to S3: {str(e)}"))
        return GatewayResponse(data={"path": path})

    def get_public_url(self, path: str) -> str:
        """Public URL of an object."""
        if self._public_url_base:
            return f"{self._public_url_base.rstrip('/')}/{path}"
        return f"https://{self.bucket}.s3.amazonaws.com/{path}"

    async def remove(self, paths: list[str]) -> GatewayResponse:
        """
        Delete objects from the bucket.

        Returns:
            Response with the deleted keys, or the first per-key error S3 reported
        """
        try:
            response = self.s3_client.delete_objects(
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": path} for path in paths], "Quiet": False},
            )
        except ClientError as e:
            return GatewayResponse(error=GatewayError(f"Failed to delete file from S3: {str(e)}"))
        except BotoCoreError as e:
            return GatewayResponse(error=BackendUnavailable(f"Failed to delete file from S3: {str(e)}"))

        errors = response.get("Errors") or []
        if errors:
            first = errors[0]
            return GatewayResponse(
                error=GatewayError(f"Failed to delete {first.get('Key')}: {first.get('Message')}")
            )
        return GatewayResponse(data=[item["Key"] for item in response.get("Deleted", [])])

    def _exists(self, path: str) -> bool:
        """Check if an object exists in the bucket."""
        try:
            self.s3_client.head_object(Bucket=self.bucket, Key=path)
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
                return False
            raise
