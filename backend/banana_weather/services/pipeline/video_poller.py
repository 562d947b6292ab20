"""
Polling of long-running video operations.

The poller waits a fixed interval before each poll and stops on completion,
cancellation or deadline. The completed operation's payload changes shape
between model versions, so the result reference is extracted tolerantly.
"""

import asyncio
import json
import logging

from banana_weather.models.schemas import OperationHandle
from banana_weather.services.clients.base import (
    JobCancelledError,
    VideoError,
    VideoGenerator,
    VideoTimeoutError,
)

logger = logging.getLogger(__name__)

# Sample containers, in lookup order
_SAMPLE_LISTS = ("videos", "generatedVideos")
_TOP_LEVEL_KEYS = ("gcsUri", "videoUri", "uri")
_NESTED_KEYS = ("uri", "gcsUri", "videoUri")


def _first_sample(response: dict) -> dict:
    for key in _SAMPLE_LISTS:
        items = response.get(key)
        if isinstance(items, list) and items and isinstance(items[0], dict):
            return items[0]

    nested = response.get("generateVideoResponse")
    if isinstance(nested, dict):
        samples = nested.get("generatedSamples")
        if isinstance(samples, list) and samples and isinstance(samples[0], dict):
            return samples[0]

    return response


def extract_video_uri(response: dict | None) -> str:
    """
    Find the generated video's storage reference in an operation response.

    Tries, first non-empty string wins:
    1. sample.gcsUri
    2. sample.videoUri, sample.uri
    3. sample.video.uri, sample.video.gcsUri, sample.video.videoUri

    where sample is the first entry of `videos`, `generatedVideos` or
    `generateVideoResponse.generatedSamples`, else the response itself.

    Raises:
        VideoError: If no reference is found (raw payload attached)
    """
    if isinstance(response, dict):
        sample = _first_sample(response)

        for key in _TOP_LEVEL_KEYS:
            value = sample.get(key)
            if isinstance(value, str) and value:
                return value

        video = sample.get("video")
        if isinstance(video, dict):
            for key in _NESTED_KEYS:
                value = video.get(key)
                if isinstance(value, str) and value:
                    return value

    raw = json.dumps(response, default=str)
    logger.error(f"Could not extract video URI from response: {raw[:500]}")
    raise VideoError(
        "No video URI found in operation response",
        raw_response=raw,
        provider="veo",
    )


class VideoPoller:
    """
    Waits for a video operation to finish.

    Attributes:
        generator: VideoGenerator used for polling
        interval: Seconds to wait before each poll
        timeout: Overall deadline in seconds
    """

    def __init__(
        self,
        generator: VideoGenerator,
        interval: float = 5.0,
        timeout: float = 600.0,
    ):
        self.generator = generator
        self.interval = interval
        self.timeout = timeout

    async def _wait(self, seconds: float, cancel: asyncio.Event | None) -> None:
        """Sleep, returning early (with JobCancelledError) if cancel is set."""
        if cancel is None:
            await asyncio.sleep(seconds)
            return

        try:
            await asyncio.wait_for(cancel.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise JobCancelledError("Video generation cancelled", provider="veo")

    async def wait(
        self,
        handle: OperationHandle,
        cancel: asyncio.Event | None = None,
    ) -> str:
        """
        Poll until the operation completes.

        Args:
            handle: Operation to watch
            cancel: Optional event; setting it stops the wait promptly

        Returns:
            Storage reference of the generated video (never empty)

        Raises:
            JobCancelledError: If cancel was set
            VideoTimeoutError: If the deadline elapsed first
            VideoError: If the operation failed or its result is unreadable
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        attempt = 0

        while True:
            if cancel is not None and cancel.is_set():
                raise JobCancelledError("Video generation cancelled", provider="veo")

            remaining = deadline - loop.time()
            if remaining <= 0:
                raise VideoTimeoutError(
                    f"Video operation not finished after {self.timeout:.0f}s",
                    provider="veo",
                )

            await self._wait(min(self.interval, remaining), cancel)
            attempt += 1

            try:
                status = await self.generator.poll(handle)
            except VideoError as e:
                logger.warning(f"Poll #{attempt} of {handle.name} failed, retrying: {e}")
                continue

            if not status.done:
                logger.debug(f"Poll #{attempt}: {handle.name} still running")
                continue

            if status.error:
                message = status.error.get("message") or json.dumps(status.error)
                raise VideoError(
                    f"Video operation failed: {message}",
                    raw_response=json.dumps(status.error, default=str),
                    provider="veo",
                )

            uri = extract_video_uri(status.response)
            logger.info(f"Video operation finished after {attempt} polls: {uri}")
            return uri
