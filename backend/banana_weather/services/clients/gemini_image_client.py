"""
Gemini image client.

Calls the Vertex AI generateContent endpoint of an image-capable Gemini
model with Google Search grounding enabled (the model looks up the current
forecast itself) and returns the first inline image of the response.
"""

import base64
import binascii
import logging

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from banana_weather.config import Settings
from banana_weather.models.schemas import StyleMode
from banana_weather.services.clients.base import (
    BaseHTTPClient,
    ClientConfig,
    GenerationError,
)
from banana_weather.services.prompt_builder import build_image_prompt

logger = logging.getLogger(__name__)

RETRY_DECORATOR = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=4, max=60),
    retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
    reraise=True,
)

ASPECT_RATIO = "9:16"


def vertex_host(location: str) -> str:
    """Vertex AI API host for a region ("global" has no regional prefix)."""
    if location == "global":
        return "https://aiplatform.googleapis.com"
    return f"https://{location}-aiplatform.googleapis.com"


class GeminiImageClient(BaseHTTPClient):
    """
    ImageGenerator backed by Gemini on Vertex AI.

    Example:
        async with GeminiImageClient.from_settings(settings) as gemini:
            png = await gemini.generate("Paris, France", style_mode=StyleMode.DRINK)
    """

    provider = "gemini"

    def __init__(
        self,
        config: ClientConfig,
        project: str,
        location: str = "global",
        model: str = "gemini-3-pro-image-preview",
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize Gemini image client.

        Args:
            config: Client configuration (base_url may be empty: derived from location)
            project: Google Cloud project ID
            location: Vertex AI location of the image model
            model: Image model name
            settings: Settings used to resolve prompt templates
            http_client: Optional pre-built HTTP client
        """
        super().__init__(config, http_client)
        self.project = project
        self.location = location
        self.model = model
        self.settings = settings
        self.base_url = config.base_url or vertex_host(location)

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeminiImageClient":
        """Create GeminiImageClient from application settings."""
        config = ClientConfig(
            base_url="",
            timeout=settings.request_timeout,
            access_token=settings.google_access_token or None,
        )
        return cls(
            config=config,
            project=settings.google_cloud_project,
            location=settings.image_location,
            model=settings.image_model,
            settings=settings,
        )

    @property
    def endpoint(self) -> str:
        return (
            f"{self.base_url}/v1/projects/{self.project}/locations/{self.location}"
            f"/publishers/google/models/{self.model}:generateContent"
        )

    async def check_health(self) -> bool:
        # Generation is too expensive for a probe; configuration is all we check
        return bool(self.project and self.config.access_token)

    async def generate(
        self,
        location_name: str,
        extra_context: str = "",
        style_mode: StyleMode = StyleMode.RANDOM,
    ) -> bytes:
        """
        Generate a weather illustration for a location.

        Args:
            location_name: Canonical location name
            extra_context: Optional setting hint (fictional places)
            style_mode: Prompt template selector

        Returns:
            Decoded image bytes

        Raises:
            GenerationError: If the request fails or the response has no image
        """
        prompt = build_image_prompt(
            location_name,
            extra_context=extra_context,
            style_mode=style_mode,
            settings=self.settings,
        )

        request_body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "tools": [{"googleSearch": {}}],
            "generationConfig": {
                "responseModalities": ["IMAGE"],
                "imageConfig": {"aspectRatio": ASPECT_RATIO},
            },
        }

        logger.debug(f"Generating image with {self.model}, prompt length: {len(prompt)}")

        try:
            response = await self._post(request_body)
        except httpx.TimeoutException as e:
            logger.error(f"Image generation timeout with {self.model}: {e}")
            raise GenerationError(
                "Image generation timeout",
                provider=self.provider,
                original_error=e,
            ) from e
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Image generation HTTP error: {e.response.status_code} - "
                f"{e.response.text[:200]}"
            )
            raise GenerationError(
                f"HTTP {e.response.status_code}: {e.response.text[:200]}",
                provider=self.provider,
                original_error=e,
            ) from e
        except httpx.HTTPError as e:
            raise GenerationError(
                f"Image generation request failed: {e}",
                provider=self.provider,
                original_error=e,
            ) from e

        try:
            result = response.json()
        except ValueError as e:
            logger.error(f"Image generation returned a non-JSON body: {response.text[:200]}")
            raise GenerationError(
                "Image generation returned a non-JSON body",
                provider=self.provider,
                original_error=e,
            ) from e

        image = self._extract_image(result)
        logger.info(f"Generated image for {location_name} ({len(image)} bytes)")
        return image

    @RETRY_DECORATOR
    async def _post(self, request_body: dict) -> httpx.Response:
        response = await self.http_client.post(
            self.endpoint,
            json=request_body,
            headers=self.auth_headers(),
        )
        response.raise_for_status()
        return response

    def _extract_image(self, result: dict) -> bytes:
        """Return the first inline image of a generateContent response."""
        candidates = result.get("candidates") or []
        if not candidates:
            raise GenerationError("No candidates returned", provider=self.provider)

        parts = (candidates[0].get("content") or {}).get("parts") or []
        for part in parts:
            inline = part.get("inlineData")
            if inline and inline.get("data"):
                try:
                    return base64.b64decode(inline["data"])
                except (binascii.Error, ValueError) as e:
                    raise GenerationError(
                        "Malformed inline image data",
                        provider=self.provider,
                        original_error=e,
                    ) from e

        reason = candidates[0].get("finishReason", "unknown")
        raise GenerationError(
            f"No image data found in response (finishReason={reason})",
            provider=self.provider,
        )
