"""
S3-compatible object storage backend (AWS S3, MinIO, Cloudflare R2, etc.)
"""

import logging
import mimetypes
from pathlib import Path
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .base import StorageBackend, StorageError

logger = logging.getLogger(__name__)


class ObjectStorage(StorageBackend):
    """
    S3-compatible object storage backend.
    Works with AWS S3, MinIO, Cloudflare R2, etc.
    """

    def __init__(
        self,
        endpoint_url: Optional[str] = None,
        bucket_name: str = 'email-migration',
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        region: str = 'us-east-1',
        server_side_encryption: Optional[str] = 'AES256',
        client=None,
    ):
        """
        Initialize S3-compatible storage.

        Args:
            endpoint_url: S3 endpoint URL (required for MinIO/R2, optional for AWS)
            bucket_name: S3 bucket name
            access_key: AWS/MinIO access key
            secret_key: AWS/MinIO secret key
            region: AWS region or 'auto' for R2
            server_side_encryption: SSE algorithm, empty to disable
            client: Preconfigured boto3 S3 client (mainly for tests)
        """
        self.bucket_name = bucket_name
        self.endpoint_url = endpoint_url
        self.region = region
        self.server_side_encryption = server_side_encryption or None

        if client is not None:
            self.client = client
            return

        # Path-style addressing keeps MinIO endpoints working
        config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path'},
            retries={'max_attempts': 3, 'mode': 'standard'},
        )

        client_kwargs = {
            'service_name': 's3',
            'config': config,
        }

        if endpoint_url:
            client_kwargs['endpoint_url'] = endpoint_url

        if access_key and secret_key:
            client_kwargs['aws_access_key_id'] = access_key
            client_kwargs['aws_secret_access_key'] = secret_key

        if region and region != 'auto':
            client_kwargs['region_name'] = region

        self.client = boto3.client(**client_kwargs)

    def _extra_args(self, content_type: Optional[str]) -> dict:
        extra = {}
        if content_type:
            extra['ContentType'] = content_type
        if self.server_side_encryption:
            extra['ServerSideEncryption'] = self.server_side_encryption
        return extra

    def check_bucket(self) -> None:
        try:
            self.client.head_bucket(Bucket=self.bucket_name)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Cannot access bucket {self.bucket_name}: {e}") from e

    def ensure_bucket(self) -> bool:
        """Create bucket if it doesn't exist."""
        try:
            self.client.head_bucket(Bucket=self.bucket_name)
            return False
        except ClientError as e:
            code = e.response.get('Error', {}).get('Code', '')
            if code not in ('404', 'NoSuchBucket', 'NotFound'):
                raise StorageError(f"Cannot access bucket {self.bucket_name}: {e}") from e

        create_params = {'Bucket': self.bucket_name}
        # Only add LocationConstraint for non-us-east-1 regions
        if self.region and self.region not in ('auto', 'us-east-1'):
            create_params['CreateBucketConfiguration'] = {
                'LocationConstraint': self.region
            }
        try:
            self.client.create_bucket(**create_params)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Could not create bucket {self.bucket_name}: {e}") from e

        logger.info(f"Created bucket: {self.bucket_name}")
        return True

    def put_content(
        self,
        content: bytes | str,
        key: str,
        content_type: str = 'application/octet-stream',
    ) -> str:
        """Upload in-memory content to S3."""
        body = self.to_bytes(content)

        try:
            self.client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=body,
                Metadata={'sha256': self.compute_sha256(body)},
                **self._extra_args(content_type),
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Upload of {key} failed: {e}", key=key) from e

        return key

    def put_file(
        self,
        local_path: str | Path,
        key: str,
        content_type: Optional[str] = None,
    ) -> str:
        """Upload a local file to S3 (multipart for large files)."""
        if content_type is None:
            content_type = mimetypes.guess_type(str(local_path))[0]

        try:
            self.client.upload_file(
                Filename=str(local_path),
                Bucket=self.bucket_name,
                Key=key,
                ExtraArgs=self._extra_args(content_type),
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Upload of {local_path} to {key} failed: {e}", key=key) from e

        return key

    def exists(self, key: str) -> bool:
        """Check if object exists in S3."""
        try:
            self.client.head_object(Bucket=self.bucket_name, Key=key)
            return True
        except ClientError as e:
            code = e.response.get('Error', {}).get('Code', '')
            if code in ('404', 'NoSuchKey', 'NotFound'):
                return False
            raise StorageError(f"Could not check {key}: {e}", key=key) from e
