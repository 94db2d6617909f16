"""Remote object storage for backup archives."""

from .base import BACKUP_PREFIX, ObjectStore
from .s3 import PROVIDER_PROFILES, S3ObjectStore

__all__ = ["BACKUP_PREFIX", "ObjectStore", "PROVIDER_PROFILES", "S3ObjectStore"]
