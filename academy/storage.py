from __future__ import annotations

import io
from datetime import timedelta
from functools import lru_cache
from typing import Optional

from minio import Minio
from minio.error import S3Error

from .config import get_settings


class StorageNotConfiguredError(RuntimeError):
	"""Raised when object storage credentials are missing."""


class StorageError(RuntimeError):
	"""Raised when an object storage call fails."""


class StorageService:
	"""Thin wrapper around the MinIO client for invoice documents."""

	def __init__(self) -> None:
		settings = get_settings()
		if not settings.s3_endpoint or not settings.s3_access_key or not settings.s3_secret_key:
			raise StorageNotConfiguredError("S3 storage is not configured")

		self._client = Minio(
			settings.s3_endpoint,
			access_key=settings.s3_access_key,
			secret_key=settings.s3_secret_key,
			secure=settings.s3_use_ssl,
			region=settings.s3_region,
		)
		self._bucket = settings.s3_bucket_invoices
		self._default_expire = timedelta(seconds=settings.s3_presign_expire_seconds or 3600)
		self._bucket_ready = False

	@property
	def bucket(self) -> str:
		return self._bucket

	def ensure_bucket(self) -> None:
		if self._bucket_ready:
			return
		try:
			if not self._client.bucket_exists(self._bucket):
				self._client.make_bucket(self._bucket)
		except S3Error as exc:
			raise StorageError(f"Unable to ensure bucket '{self._bucket}': {exc}") from exc
		self._bucket_ready = True

	def upload_bytes(self, object_name: str, data: bytes, content_type: str = "application/octet-stream") -> str:
		"""Store ``data`` under ``object_name`` (overwriting) and return the object path."""
		self.ensure_bucket()
		try:
			self._client.put_object(
				self._bucket,
				object_name,
				io.BytesIO(data),
				len(data),
				content_type=content_type,
			)
		except S3Error as exc:
			raise StorageError(f"Failed to upload object {object_name}: {exc}") from exc
		return object_name

	def presigned_download_url(self, object_name: str, expires: Optional[timedelta] = None) -> str:
		expiration = expires or self._default_expire
		try:
			return self._client.presigned_get_object(self._bucket, object_name, expires=expiration)
		except S3Error as exc:
			raise StorageError(f"Failed to create download URL for {object_name}: {exc}") from exc


@lru_cache(maxsize=1)
def get_storage_service() -> StorageService:
	"""Return a cached storage service instance or raise if not configured."""

	return StorageService()


def get_optional_storage() -> StorageService | None:
	"""FastAPI dependency: the storage service, or None when S3 is not configured."""
	try:
		return get_storage_service()
	except StorageNotConfiguredError:
		return None
