"""
Google Cloud Storage object store.

Uses the GCS JSON API directly: simple media uploads for artifacts and
`alt=media` downloads for reads. Objects are addressed internally as
gs://bucket/name; public URLs are derived with public_url_for().
"""

import logging
from urllib.parse import quote

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from banana_weather.config import Settings
from banana_weather.models.schemas import StoredObject
from banana_weather.services.clients.base import (
    BaseHTTPClient,
    ClientConfig,
    UploadError,
)

logger = logging.getLogger(__name__)

RETRY_DECORATOR = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
    reraise=True,
)

GCS_API_URL = "https://storage.googleapis.com"


def public_url_for(ref: str, public_base_url: str) -> str:
    """
    Map an internal storage reference to its public URL.

    Example:
        >>> public_url_for("gs://bucket/videos/1.mp4", "https://storage.googleapis.com")
        'https://storage.googleapis.com/bucket/videos/1.mp4'

    References without the gs:// scheme are returned unchanged.
    """
    if ref.startswith("gs://"):
        return f"{public_base_url.rstrip('/')}/{ref[len('gs://'):]}"
    return ref


class GcsObjectStore(BaseHTTPClient):
    """
    ObjectStore backed by a single GCS bucket.

    Example:
        async with GcsObjectStore.from_settings(settings) as store:
            obj = await store.upload(png, "image_1700000000.png")
            print(obj.ref, obj.public_url)
    """

    provider = "gcs"

    def __init__(
        self,
        config: ClientConfig,
        bucket: str,
        public_base_url: str = GCS_API_URL,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(config, http_client)
        self.bucket = bucket
        self.public_base_url = public_base_url

    @classmethod
    def from_settings(cls, settings: Settings) -> "GcsObjectStore":
        """Create GcsObjectStore from application settings."""
        config = ClientConfig(
            base_url=GCS_API_URL,
            timeout=settings.request_timeout,
            access_token=settings.google_access_token or None,
        )
        return cls(
            config=config,
            bucket=settings.genmedia_bucket,
            public_base_url=settings.public_storage_base_url,
        )

    async def check_health(self) -> bool:
        try:
            response = await self.http_client.get(
                f"{self.config.base_url}/storage/v1/b/{self.bucket}",
                headers=self.auth_headers(),
                timeout=5.0,
            )
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.debug(f"GCS not available: {e}")
            return False

    async def upload(
        self,
        data: bytes,
        suggested_name: str,
        content_type: str = "image/png",
    ) -> StoredObject:
        """
        Upload bytes as a new object.

        Args:
            data: Object content
            suggested_name: Object name within the bucket
            content_type: MIME type stored with the object

        Returns:
            StoredObject(ref="gs://bucket/name", public_url=...)

        Raises:
            UploadError: If the upload fails
        """
        try:
            await self._upload(data, suggested_name, content_type)
        except httpx.HTTPStatusError as e:
            raise UploadError(
                f"Upload of {suggested_name} failed: HTTP {e.response.status_code}",
                provider=self.provider,
                original_error=e,
            ) from e
        except httpx.HTTPError as e:
            raise UploadError(
                f"Upload of {suggested_name} failed: {e}",
                provider=self.provider,
                original_error=e,
            ) from e

        ref = f"gs://{self.bucket}/{suggested_name}"
        logger.info(f"Uploaded {ref} ({len(data)} bytes)")
        return StoredObject(ref=ref, public_url=public_url_for(ref, self.public_base_url))

    async def read(self, name: str) -> bytes:
        """
        Download an object's content.

        Raises:
            UploadError: If the object cannot be fetched
        """
        url = (
            f"{self.config.base_url}/storage/v1/b/{self.bucket}"
            f"/o/{quote(name, safe='')}"
        )
        try:
            return await self._get(url)
        except httpx.HTTPError as e:
            raise UploadError(
                f"Read of {name} failed: {e}",
                provider=self.provider,
                original_error=e,
            ) from e

    @RETRY_DECORATOR
    async def _upload(self, data: bytes, name: str, content_type: str) -> None:
        response = await self.http_client.post(
            f"{self.config.base_url}/upload/storage/v1/b/{self.bucket}/o",
            params={"uploadType": "media", "name": name},
            content=data,
            headers={**self.auth_headers(), "Content-Type": content_type},
        )
        response.raise_for_status()

    @RETRY_DECORATOR
    async def _get(self, url: str) -> bytes:
        response = await self.http_client.get(
            url,
            params={"alt": "media"},
            headers=self.auth_headers(),
        )
        response.raise_for_status()
        return response.content
