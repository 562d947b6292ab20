"""
Veo video client.

Image-to-video generation on Vertex AI is a long-running operation:
`submit` starts it with predictLongRunning and returns a handle, `poll`
queries it once with fetchPredictOperation. Waiting between polls is the
VideoPoller's job, not this client's.
"""

import logging

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from banana_weather.config import Settings
from banana_weather.models.schemas import OperationHandle, OperationStatus
from banana_weather.services.clients.base import (
    BaseHTTPClient,
    ClientConfig,
    VideoError,
)
from banana_weather.services.clients.gemini_image_client import vertex_host
from banana_weather.services.prompt_builder import DEFAULT_VIDEO_PROMPT

logger = logging.getLogger(__name__)

RETRY_DECORATOR = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=4, max=60),
    retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
    reraise=True,
)


class VeoClient(BaseHTTPClient):
    """
    VideoGenerator backed by Veo on Vertex AI.

    Example:
        async with VeoClient.from_settings(settings) as veo:
            handle = await veo.submit("gs://bucket/image_1.png")
            status = await veo.poll(handle)
    """

    provider = "veo"

    def __init__(
        self,
        config: ClientConfig,
        project: str,
        bucket: str,
        location: str = "us-central1",
        model: str = "veo-3.1-fast-generate-preview",
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(config, http_client)
        self.project = project
        self.bucket = bucket
        self.location = location
        self.model = model
        self.base_url = config.base_url or vertex_host(location)

    @classmethod
    def from_settings(cls, settings: Settings) -> "VeoClient":
        """Create VeoClient from application settings."""
        config = ClientConfig(
            base_url="",
            timeout=settings.request_timeout,
            access_token=settings.google_access_token or None,
        )
        return cls(
            config=config,
            project=settings.google_cloud_project,
            bucket=settings.genmedia_bucket,
            location=settings.google_cloud_location,
            model=settings.video_model,
        )

    def _model_url(self, model: str, method: str) -> str:
        return (
            f"{self.base_url}/v1/projects/{self.project}/locations/{self.location}"
            f"/publishers/google/models/{model}:{method}"
        )

    async def check_health(self) -> bool:
        return bool(self.project and self.bucket and self.config.access_token)

    async def submit(self, input_image_ref: str, prompt: str = "") -> OperationHandle:
        """
        Start an image-to-video operation.

        Args:
            input_image_ref: gs:// reference of the seed image
            prompt: Motion prompt (DEFAULT_VIDEO_PROMPT if empty)

        Returns:
            OperationHandle for polling

        Raises:
            VideoError: If the operation could not be started
        """
        request_body = {
            "instances": [
                {
                    "prompt": prompt or DEFAULT_VIDEO_PROMPT,
                    "image": {"gcsUri": input_image_ref, "mimeType": "image/png"},
                }
            ],
            "parameters": {
                "aspectRatio": "9:16",
                "sampleCount": 1,
                "storageUri": f"gs://{self.bucket}/videos/",
            },
        }

        data = await self._call(
            self._model_url(self.model, "predictLongRunning"),
            request_body,
            "submit",
        )

        name = data.get("name")
        if not name:
            raise VideoError(
                "Video operation started without a name",
                raw_response=str(data),
                provider=self.provider,
            )

        logger.info(f"Video operation started: {name}")
        return OperationHandle(name=name, model=self.model)

    async def poll(self, handle: OperationHandle) -> OperationStatus:
        """
        Query a video operation once.

        Raises:
            VideoError: On transport or HTTP errors
        """
        data = await self._call(
            self._model_url(handle.model or self.model, "fetchPredictOperation"),
            {"operationName": handle.name},
            "poll",
        )
        return OperationStatus(
            done=bool(data.get("done", False)),
            error=data.get("error"),
            response=data.get("response"),
        )

    async def _call(self, url: str, body: dict, action: str) -> dict:
        try:
            response = await self._post(url, body)
        except httpx.HTTPStatusError as e:
            raise VideoError(
                f"Video {action} failed: HTTP {e.response.status_code}",
                raw_response=e.response.text[:500],
                provider=self.provider,
                original_error=e,
            ) from e
        except httpx.HTTPError as e:
            raise VideoError(
                f"Video {action} request failed: {e}",
                provider=self.provider,
                original_error=e,
            ) from e

        try:
            return response.json()
        except ValueError as e:
            raise VideoError(
                f"Video {action} returned a non-JSON body",
                raw_response=response.text[:500],
                provider=self.provider,
                original_error=e,
            ) from e

    @RETRY_DECORATOR
    async def _post(self, url: str, body: dict) -> httpx.Response:
        response = await self.http_client.post(
            url,
            json=body,
            headers=self.auth_headers(),
        )
        response.raise_for_status()
        return response
