"""
S3-compatible object store (Cloudflare R2, AWS S3, MinIO, others).

The storage provider only selects client compatibility settings; semantics are
identical for every provider. Buckets are never created or checked here.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List
import logging

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from clawkeeper.config.schema import StorageCredentials
from clawkeeper.core.errors import ObjectNotFound, StorageError

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


@dataclass(frozen=True)
class ProviderProfile:
    region: str
    addressing_style: str


PROVIDER_PROFILES: Dict[str, ProviderProfile] = {
    "r2": ProviderProfile(region="auto", addressing_style="path"),
    "s3": ProviderProfile(region="us-east-1", addressing_style="virtual"),
    "minio": ProviderProfile(region="us-east-1", addressing_style="path"),
    "other": ProviderProfile(region="us-east-1", addressing_style="auto"),
}


def build_client(creds: StorageCredentials, provider: str) -> Any:
    profile = PROVIDER_PROFILES.get(provider, PROVIDER_PROFILES["other"])
    boto_config = BotoConfig(
        region_name=profile.region,
        signature_version="s3v4",
        s3={"addressing_style": profile.addressing_style},
        # Single attempt; a failed call surfaces to the job.
        retries={"max_attempts": 1, "mode": "standard"},
    )
    return boto3.client(
        "s3",
        endpoint_url=creds.endpoint,
        aws_access_key_id=creds.access_key_id,
        aws_secret_access_key=creds.secret_access_key,
        config=boto_config,
    )


def _error_code(e: ClientError) -> str:
    return str(e.response.get("Error", {}).get("Code", ""))


class S3ObjectStore:
    def __init__(self, bucket: str, client: Any) -> None:
        self.bucket = bucket
        self._client = client

    @classmethod
    def from_credentials(cls, creds: StorageCredentials, provider: str) -> "S3ObjectStore":
        return cls(creds.bucket, build_client(creds, provider))

    def _url(self, key: str) -> str:
        return f"s3://{self.bucket}/{key}"

    def upload_file(self, local_path: Path, key: str) -> None:
        try:
            self._client.upload_file(str(local_path), self.bucket, key)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"upload to {self._url(key)} failed: {e}") from e
        logger.info("uploaded %s", self._url(key))

    def download_file(self, key: str, local_path: Path) -> None:
        try:
            self._client.download_file(self.bucket, key, str(local_path))
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise ObjectNotFound(self._url(key)) from e
            raise StorageError(f"download of {self._url(key)} failed: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"download of {self._url(key)} failed: {e}") from e

    def list_names(self, prefix: str) -> List[str]:
        names: List[str] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix, Delimiter="/"):
                for obj in page.get("Contents", []):
                    name = obj["Key"][len(prefix):]
                    if name:
                        names.append(name)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"listing {self._url(prefix)} failed: {e}") from e
        return names

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"delete of {self._url(key)} failed: {e}") from e
