"""Storage service for Supabase storage operations on submission documents."""

from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

import httpx

from app.core.config import settings
from app.core.exceptions import StorageError
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class StorageService:
    """Service for managing files in Supabase storage."""

    def __init__(self, bucket: Optional[str] = None):
        self.url = settings.supabase_url.rstrip("/")
        self.bucket = bucket or settings.storage_bucket
        self.service_role_key = settings.supabase_service_role_key
        self.base_api_url = f"{self.url}/storage/v1"
        self.headers = {
            "Authorization": f"Bearer {self.service_role_key}",
            "apikey": self.service_role_key,
        }

    def _object_url(self, path: str) -> str:
        return f"{self.base_api_url}/object/{self.bucket}/{quote(path)}"

    async def upload_file(
        self,
        content: Union[bytes, Any],
        path: str,
        content_type: str = "application/octet-stream",
        upsert: bool = False,
    ) -> Dict[str, Any]:
        """Upload bytes (or an object with an async ``read``) to the bucket.

        Args:
            content: Raw bytes or an UploadFile-like object
            path: Target path within the bucket
            content_type: MIME type stored with the object
            upsert: Overwrite an existing object instead of failing

        Returns:
            Dict containing the upload result

        Raises:
            StorageError: If the upload fails, including a path collision without upsert
        """
        upload_url = self._object_url(path)

        try:
            if hasattr(content, "read"):
                if getattr(content, "content_type", None):
                    content_type = content.content_type
                content = await content.read()

            async with httpx.AsyncClient() as client:
                response = await client.post(
                    upload_url,
                    headers={
                        **self.headers,
                        "Content-Type": content_type,
                        "x-upsert": "true" if upsert else "false",
                    },
                    content=content,
                    timeout=settings.http_timeout,
                )
        except httpx.HTTPError as e:
            LOGGER.error(f"Error uploading file to Supabase: {str(e)}", exc_info=True)
            raise StorageError(f"Storage upload error: {str(e)}", original_error=e) from e

        if response.status_code != 200:
            LOGGER.error(
                f"Failed to upload file to Supabase: {response.text}",
                extra={"bucket": self.bucket, "path": path, "status_code": response.status_code}
            )
            raise StorageError(f"Upload failed: {response.text}")

        LOGGER.info(f"Uploaded {path}", extra={"bucket": self.bucket, "path": path})
        return response.json()

    async def remove_files(self, paths: List[str]) -> List[Dict[str, Any]]:
        """Remove objects from the bucket.

        Raises:
            StorageError: If the delete request fails
        """
        paths = [p for p in paths if p]
        if not paths:
            return []

        url = f"{self.base_api_url}/object/{self.bucket}"
        try:
            async with httpx.AsyncClient() as client:
                response = await client.request(
                    "DELETE",
                    url,
                    headers={**self.headers, "Content-Type": "application/json"},
                    json={"prefixes": paths},
                    timeout=settings.http_timeout,
                )
        except httpx.HTTPError as e:
            LOGGER.error(f"Error removing files from Supabase: {str(e)}", exc_info=True)
            raise StorageError(f"Storage remove error: {str(e)}", original_error=e) from e

        if response.status_code != 200:
            LOGGER.error(
                f"Failed to remove files from Supabase: {response.text}",
                extra={"bucket": self.bucket, "paths": paths, "status_code": response.status_code}
            )
            raise StorageError(f"Remove failed: {response.text}")

        return response.json()

    async def get_signed_url(self, path: str, expires_in: Optional[int] = None) -> Dict[str, Any]:
        """Generate a signed URL for an object.

        Args:
            path: Object path
            expires_in: Expiration time in seconds, defaults to SIGNED_URL_TTL

        Returns:
            The signed URL and the storage path

        Raises:
            StorageError: If URL generation fails
        """
        url = f"{self.base_api_url}/object/sign/{self.bucket}/{quote(path)}"
        expires_in = expires_in or settings.storage.signed_url_ttl

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    url,
                    headers=self.headers,
                    json={"expiresIn": expires_in},
                    timeout=settings.http_timeout,
                )
        except httpx.HTTPError as e:
            LOGGER.error(f"Error generating signed URL: {str(e)}", exc_info=True)
            raise StorageError(f"Signed URL error: {str(e)}", original_error=e) from e

        if response.status_code != 200:
            LOGGER.error(
                f"Failed to generate signed URL: {response.text}",
                extra={"bucket": self.bucket, "path": path, "status_code": response.status_code}
            )
            raise StorageError(f"Signed URL generation failed: {response.text}")

        signed_path = response.json().get("signedURL")
        if not signed_path:
            raise StorageError("Supabase response did not contain signedURL")

        # Supabase answers with a path relative to /storage/v1
        signed_url = signed_path
        if signed_path.startswith("/object/"):
            signed_url = f"{self.base_api_url}{signed_path}"
        elif signed_path.startswith("/"):
            signed_url = f"{self.url}{signed_path}"

        return {
            "signed_url": signed_url,
            "storage_path": path,
        }

    def get_public_url(self, path: str) -> str:
        """Public URL of an object in a public bucket. No request is made."""
        return f"{self.base_api_url}/object/public/{self.bucket}/{quote(path)}"
