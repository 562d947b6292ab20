"""
Per-invocation state of a weather generation run.

GenerationJob tracks the pipeline stage and the artifacts produced so far,
validates stage transitions, and guards the event ordering contract:
at most one `result`, at most one `video`, `video` only after `result`,
nothing after `video`.
"""

import logging
from dataclasses import dataclass, field

from banana_weather.models.schemas import (
    EventKind,
    Location,
    PipelineStage,
    ProgressEvent,
    WeatherRequest,
)
from banana_weather.services.pipeline.events import EventSink

logger = logging.getLogger(__name__)

S = PipelineStage

TRANSITIONS: dict[PipelineStage, frozenset[PipelineStage]] = {
    S.RESOLVING_LOCATION: frozenset({S.CACHE_CHECK, S.FAILED}),
    S.CACHE_CHECK: frozenset({S.CACHE_HIT, S.CACHE_MISS}),
    S.CACHE_HIT: frozenset({S.DONE}),
    S.CACHE_MISS: frozenset({S.GENERATING_IMAGE}),
    S.GENERATING_IMAGE: frozenset({S.IMAGE_READY, S.FAILED}),
    # DONE directly: no object store configured
    S.IMAGE_READY: frozenset({S.UPLOADING_IMAGE, S.DONE}),
    # DONE directly: upload or video failures are soft
    S.UPLOADING_IMAGE: frozenset({S.GENERATING_VIDEO, S.DONE}),
    S.GENERATING_VIDEO: frozenset({S.VIDEO_READY, S.DONE}),
    S.VIDEO_READY: frozenset({S.PERSISTING}),
    S.PERSISTING: frozenset({S.DONE}),
    S.DONE: frozenset(),
    S.FAILED: frozenset(),
}


class InvalidTransitionError(RuntimeError):
    """Attempted a stage transition the pipeline does not allow."""

    def __init__(self, current: PipelineStage, target: PipelineStage):
        self.current = current
        self.target = target
        super().__init__(f"Invalid transition {current.value} -> {target.value}")


class EventOrderError(RuntimeError):
    """Attempted to emit an event that breaks the ordering contract."""


@dataclass
class GenerationJob:
    """
    State of one pipeline invocation. Created per request, discarded at return.

    Attributes:
        request: Raw caller input
        stage: Current pipeline stage
        city: Canonical location name (after resolution)
        record_id: Derived record ID
        cached: Record found at cache check, fresh or stale
        image_data: Generated image bytes
        image_ref: Internal reference of the uploaded image
        image_url: Public URL of the uploaded image
        video_ref: Internal reference of the generated video
        video_url: Public URL of the generated video
        video_error: Message of a soft video failure
        result_sent: A `result` event was emitted
        video_sent: A `video` event was emitted
    """

    request: WeatherRequest
    stage: PipelineStage = S.RESOLVING_LOCATION
    city: str = ""
    record_id: str = ""
    cached: Location | None = None
    image_data: bytes | None = None
    image_ref: str = ""
    image_url: str = ""
    video_ref: str = ""
    video_url: str = ""
    video_error: str | None = None
    result_sent: bool = False
    video_sent: bool = False
    history: list[PipelineStage] = field(default_factory=list)

    def advance(self, target: PipelineStage) -> None:
        """
        Move to the next stage.

        Raises:
            InvalidTransitionError: If target is not reachable from the current stage
        """
        if target not in TRANSITIONS[self.stage]:
            raise InvalidTransitionError(self.stage, target)

        self.history.append(self.stage)
        logger.debug(f"{self.stage.value} -> {target.value}", extra=self.log_extra())
        self.stage = target

    def log_extra(self) -> dict[str, str]:
        """Job fields for `extra=` on log calls (rendered by logging_config)."""
        return {"location_id": self.record_id or "-", "stage": self.stage.value}

    @property
    def finished(self) -> bool:
        return self.stage in (S.DONE, S.FAILED)

    def check_event(self, event: ProgressEvent) -> None:
        """
        Validate an event against the ordering contract and record it.

        Raises:
            EventOrderError: If the event would break the ordering contract
        """
        if self.video_sent:
            raise EventOrderError(f"No events allowed after video (got {event.kind.value})")

        if event.kind == EventKind.RESULT:
            if self.result_sent:
                raise EventOrderError("Result already emitted")
            self.result_sent = True
        elif event.kind == EventKind.VIDEO:
            if not self.result_sent:
                raise EventOrderError("Video emitted before result")
            self.video_sent = True

    async def emit(self, sink: EventSink, event: ProgressEvent) -> None:
        """Validate and forward an event to the sink."""
        self.check_event(event)
        await sink.emit(event)
