"""
Weather artwork orchestrator.

Runs one generation job end to end:

    resolve location -> cache check -> generate image -> upload
    -> generate video -> persist

Progress is streamed through an EventSink as named events (status, result,
video, error). The image is sent to the caller as soon as it exists; the
slow video step follows and may fail without failing the job.
"""

import asyncio
import base64
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from banana_weather.config import Settings
from banana_weather.models.schemas import (
    GenerationOutcome,
    Location,
    PipelineStage,
    ProgressEvent,
    StoredObject,
    StyleMode,
    WeatherRequest,
    WeatherResult,
    location_id,
    utcnow,
)
from banana_weather.services.clients.base import (
    GenerationError,
    ImageGenerator,
    JobCancelledError,
    LocationResolver,
    ObjectStore,
    PersistenceError,
    ResolutionError,
    UploadError,
    VideoError,
    VideoGenerator,
)
from banana_weather.services.clients.gcs_object_store import public_url_for
from banana_weather.services.pipeline.events import EventSink
from banana_weather.services.pipeline.job import GenerationJob
from banana_weather.services.pipeline.video_poller import VideoPoller
from banana_weather.services.storage.metadata_store import MetadataStore

logger = logging.getLogger(__name__)

S = PipelineStage

# User-facing messages
MSG_IDENTIFYING = "Identifying location..."
MSG_FOUND = "Found location: {city}"
MSG_CACHED = "Loading cached forecast..."
MSG_GENERATING = "Getting a banana image of the weather for {city}..."
MSG_PREPARING = "Preparing for animation..."
MSG_ANIMATING = "Animating (Veo 3.1)... this may take a minute."
MSG_FINALIZING = "Finalizing video..."
MSG_COORDS_FAILED = "Failed to resolve location: {error}"
MSG_QUERY_FAILED = "Failed to find city: {error}"
MSG_IMAGE_FAILED = "Failed to generate image: {error}"
MSG_VIDEO_FAILED = "Video generation failed (Beta). Enjoy the image!"


def image_data_uri(data: bytes) -> str:
    """Inline an image as a data: URI (used when it could not be uploaded)."""
    return "data:image/png;base64," + base64.b64encode(data).decode("ascii")


@dataclass
class OrchestratorConfig:
    """
    Orchestrator tunables.

    Attributes:
        cache_ttl: Age below which a stored record is served as-is
        default_city: Query used when the request has neither city nor coordinates
        public_base_url: Prefix for public URLs of stored artifacts
        video_prompt: Motion prompt ("" = generator default)
    """

    cache_ttl: timedelta = timedelta(hours=3)
    default_city: str = "San Francisco"
    public_base_url: str = "https://storage.googleapis.com"
    video_prompt: str = ""

    @classmethod
    def from_settings(cls, settings: Settings) -> "OrchestratorConfig":
        return cls(
            cache_ttl=timedelta(hours=settings.cache_ttl_hours),
            default_city=settings.default_city,
            public_base_url=settings.public_storage_base_url,
        )


class WeatherOrchestrator:
    """
    Coordinates the generation pipeline over injected ports.

    Holds no per-request state: every run() works on its own GenerationJob,
    so one instance serves concurrent requests.

    Example:
        orchestrator = WeatherOrchestrator(
            resolver=geocoding,
            store=JsonMetadataStore(settings.data_dir),
            image_generator=gemini,
            object_store=gcs,
            video_generator=veo,
            config=OrchestratorConfig.from_settings(settings),
        )
        outcome = await orchestrator.run(WeatherRequest(city="Paris"), sink)
    """

    def __init__(
        self,
        resolver: LocationResolver | None,
        store: MetadataStore,
        image_generator: ImageGenerator,
        object_store: ObjectStore | None = None,
        video_generator: VideoGenerator | None = None,
        poller: VideoPoller | None = None,
        config: OrchestratorConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize orchestrator.

        Args:
            resolver: Location resolver (None: stage methods only, run() fails)
            store: Metadata store
            image_generator: Image generator
            object_store: Artifact storage (None disables upload and video)
            video_generator: Video generator (None disables video)
            poller: Video poller (built over video_generator if None)
            config: Tunables (defaults if None)
            clock: Time source for cache freshness and result timestamps
        """
        self.resolver = resolver
        self.store = store
        self.image_generator = image_generator
        self.object_store = object_store
        self.video_generator = video_generator
        if poller is None and video_generator is not None:
            poller = VideoPoller(video_generator)
        self.poller = poller
        self.config = config or OrchestratorConfig()
        self.clock = clock

    # ═══════════════════════════════════════════════════════════════════════════
    # Full Pipeline
    # ═══════════════════════════════════════════════════════════════════════════

    async def run(
        self,
        request: WeatherRequest,
        sink: EventSink,
        cancel: asyncio.Event | None = None,
    ) -> GenerationOutcome:
        """
        Run one generation job.

        Upload and video failures are soft: the job still returns an outcome
        after the `result` event. Cancellation is not: JobCancelledError is
        raised even though `result` was already delivered, and no `error`
        event is sent (the caller who cancelled is gone). The image-only
        record stored before video generation is kept.

        Args:
            request: City query or coordinates
            sink: Destination of progress events
            cancel: Optional event set by the caller to abandon the video wait

        Returns:
            GenerationOutcome (also on soft upload/video failures)

        Raises:
            ResolutionError: If the location cannot be resolved
            GenerationError: If the image cannot be generated
            JobCancelledError: If cancel was set while waiting for the video
        """
        job = GenerationJob(request=request)

        # --- Resolve ---
        await job.emit(sink, ProgressEvent.status(MSG_IDENTIFYING))
        try:
            job.city = await self._resolve(request)
        except ResolutionError as e:
            job.advance(S.FAILED)
            template = MSG_COORDS_FAILED if request.has_coordinates else MSG_QUERY_FAILED
            await job.emit(sink, ProgressEvent.error(template.format(error=e.message)))
            logger.error(f"Location resolution failed: {e}", extra=job.log_extra())
            raise

        logger.info(f"Resolved location to: {job.city}", extra=job.log_extra())
        await job.emit(sink, ProgressEvent.status(MSG_FOUND.format(city=job.city)))

        # --- Cache check ---
        job.advance(S.CACHE_CHECK)
        job.record_id = location_id(job.city)
        job.cached = await self._load_cached(job.record_id)

        if job.cached is not None and self._is_fresh(job.cached):
            return await self._serve_cached(job, sink)

        job.advance(S.CACHE_MISS)

        # --- Image ---
        job.advance(S.GENERATING_IMAGE)
        await job.emit(sink, ProgressEvent.status(MSG_GENERATING.format(city=job.city)))
        try:
            job.image_data = await self.generate_image(job.city)
        except GenerationError as e:
            job.advance(S.FAILED)
            await job.emit(sink, ProgressEvent.error(MSG_IMAGE_FAILED.format(error=e.message)))
            logger.error(f"Image generation failed for '{job.city}': {e}", extra=job.log_extra())
            raise

        job.advance(S.IMAGE_READY)
        result = WeatherResult(
            city=job.city,
            image_base64=base64.b64encode(job.image_data).decode("ascii"),
            last_updated=self.clock(),
        )
        await job.emit(sink, ProgressEvent.result(result))

        if self.object_store is None:
            logger.info(
                "Object store not configured, skipping video generation",
                extra=job.log_extra(),
            )
            await self._persist(job, image_url=image_data_uri(job.image_data))
            job.advance(S.DONE)
            return self._outcome(job)

        # --- Upload ---
        job.advance(S.UPLOADING_IMAGE)
        await job.emit(sink, ProgressEvent.status(MSG_PREPARING))
        try:
            uploaded = await self.upload_image(
                job.image_data, f"image_{time.time_ns()}.png"
            )
        except UploadError as e:
            logger.error(
                f"Failed to upload image for video generation: {e}",
                extra=job.log_extra(),
            )
            await self._persist(job, image_url=image_data_uri(job.image_data))
            job.advance(S.DONE)
            return self._outcome(job)

        job.image_ref = uploaded.ref
        job.image_url = uploaded.public_url
        await self._persist(job, image_url=job.image_url)

        if self.video_generator is None:
            logger.info(
                "Video generator not configured, stopping after image",
                extra=job.log_extra(),
            )
            job.advance(S.DONE)
            return self._outcome(job)

        # --- Video ---
        job.advance(S.GENERATING_VIDEO)
        await job.emit(sink, ProgressEvent.status(MSG_ANIMATING))
        try:
            video = await self.generate_video(job.image_ref, cancel)
        except VideoError as e:
            logger.error(f"Video generation failed for '{job.city}': {e}", extra=job.log_extra())
            job.video_error = e.message
            await job.emit(sink, ProgressEvent.error(MSG_VIDEO_FAILED))
            job.advance(S.DONE)
            return self._outcome(job)
        except JobCancelledError:
            logger.info(
                f"Job for '{job.city}' cancelled during video generation",
                extra=job.log_extra(),
            )
            raise

        job.advance(S.VIDEO_READY)
        job.video_ref = video.ref
        job.video_url = video.public_url
        await job.emit(sink, ProgressEvent.status(MSG_FINALIZING))
        logger.info(f"Video available at: {job.video_url}", extra=job.log_extra())
        await job.emit(sink, ProgressEvent.video(job.video_url))

        # --- Persist ---
        job.advance(S.PERSISTING)
        await self._persist(job, image_url=job.image_url, video_url=job.video_url)
        job.advance(S.DONE)
        return self._outcome(job)

    # ═══════════════════════════════════════════════════════════════════════════
    # Stage Methods (shared with preset generation)
    # ═══════════════════════════════════════════════════════════════════════════

    async def generate_image(
        self,
        location_name: str,
        extra_context: str = "",
        style_mode: StyleMode = StyleMode.RANDOM,
    ) -> bytes:
        """
        Generate the weather image for a location.

        Raises:
            GenerationError: If generation fails or returns nothing
        """
        data = await self.image_generator.generate(
            location_name, extra_context=extra_context, style_mode=style_mode
        )
        if not data:
            raise GenerationError("Image generator returned no data")
        logger.info(f"Successfully generated image for: {location_name}")
        return data

    async def upload_image(self, data: bytes, suggested_name: str) -> StoredObject:
        """
        Upload image bytes.

        Raises:
            UploadError: If upload fails or no object store is configured
        """
        if self.object_store is None:
            raise UploadError("Object store not configured")
        return await self.object_store.upload(data, suggested_name, "image/png")

    async def generate_video(
        self,
        image_ref: str,
        cancel: asyncio.Event | None = None,
    ) -> StoredObject:
        """
        Animate an uploaded image and wait for the result.

        Returns:
            StoredObject with the video's internal reference and public URL

        Raises:
            VideoError: If the job fails, times out or no generator is configured
            JobCancelledError: If cancel was set while waiting
        """
        if self.video_generator is None or self.poller is None:
            raise VideoError("Video generator not configured")

        handle = await self.video_generator.submit(image_ref, self.config.video_prompt)
        ref = await self.poller.wait(handle, cancel)
        return StoredObject(
            ref=ref,
            public_url=public_url_for(ref, self.config.public_base_url),
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # Helpers
    # ═══════════════════════════════════════════════════════════════════════════

    async def _resolve(self, request: WeatherRequest) -> str:
        if self.resolver is None:
            raise ResolutionError("Location resolver not configured")

        if request.has_coordinates:
            return await self.resolver.resolve_by_coordinates(request.lat, request.lng)

        query = request.city.strip() or self.config.default_city
        resolved = await self.resolver.resolve_by_query(query)
        return resolved.name

    async def _load_cached(self, record_id: str) -> Location | None:
        try:
            return await self.store.get(record_id)
        except PersistenceError as e:
            logger.warning(
                f"Cache lookup failed for {record_id}, treating as miss: {e}",
                extra={"location_id": record_id},
            )
            return None

    def _is_fresh(self, record: Location) -> bool:
        if record.last_updated is None:
            return False
        return self.clock() - record.last_updated < self.config.cache_ttl

    async def _serve_cached(self, job: GenerationJob, sink: EventSink) -> GenerationOutcome:
        record = job.cached
        logger.info(f"Cache hit for {job.city}", extra=job.log_extra())

        job.advance(S.CACHE_HIT)
        await job.emit(sink, ProgressEvent.status(MSG_CACHED))
        result = WeatherResult(
            city=job.city,
            image_url=record.image_url,
            last_updated=record.last_updated,
        )
        await job.emit(sink, ProgressEvent.result(result))

        if record.video_url:
            await job.emit(sink, ProgressEvent.video(record.video_url))

        job.image_url = record.image_url
        job.video_url = record.video_url
        job.advance(S.DONE)
        return self._outcome(job, cache_hit=True)

    async def _persist(self, job: GenerationJob, image_url: str, video_url: str = "") -> None:
        """Upsert the job's record; storage failures are logged, never raised."""
        previous = job.cached
        record = Location(
            id=job.record_id,
            name=job.city,
            city_query=job.request.city.strip() or job.city,
            category=previous.category if previous else "",
            is_preset=previous.is_preset if previous else False,
            image_url=image_url,
            video_url=video_url,
        )
        try:
            await self.store.upsert(record)
        except PersistenceError as e:
            logger.error(f"Failed to store record {job.record_id}: {e}", extra=job.log_extra())

    def _outcome(self, job: GenerationJob, cache_hit: bool = False) -> GenerationOutcome:
        return GenerationOutcome(
            location_id=job.record_id,
            city=job.city,
            cache_hit=cache_hit,
            image_url=job.image_url,
            video_url=job.video_url,
            video_error=job.video_error,
        )
