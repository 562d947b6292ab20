"""In-memory doubles for the pipeline ports."""

from datetime import datetime, timedelta, timezone

from banana_weather.models.schemas import (
    EventKind,
    Location,
    LocationFilter,
    LocationStats,
    OperationHandle,
    OperationStatus,
    ProgressEvent,
    ResolvedLocation,
    StoredObject,
    StyleMode,
)
from banana_weather.services.clients.base import (
    GenerationError,
    PersistenceError,
    ResolutionError,
    UploadError,
    VideoError,
)

T0 = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"


class Clock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingEventSink:
    def __init__(self):
        self.events: list[ProgressEvent] = []

    async def emit(self, event: ProgressEvent) -> None:
        self.events.append(event)

    @property
    def kinds(self) -> list[str]:
        return [event.kind.value for event in self.events]

    def of_kind(self, kind: EventKind) -> list[ProgressEvent]:
        return [event for event in self.events if event.kind == kind]


class FakeResolver:
    def __init__(self, names: dict[str, str] | None = None, fail: bool = False):
        self.names = names or {}
        self.fail = fail
        self.queries: list[str] = []
        self.coordinates: list[tuple[float, float]] = []

    async def resolve_by_query(self, text: str) -> ResolvedLocation:
        self.queries.append(text)
        if self.fail:
            raise ResolutionError("ZERO_RESULTS", provider="fake")
        return ResolvedLocation(name=self.names.get(text, text))

    async def resolve_by_coordinates(self, lat: float, lng: float) -> str:
        self.coordinates.append((lat, lng))
        if self.fail:
            raise ResolutionError("ZERO_RESULTS", provider="fake")
        return self.names.get(f"{lat},{lng}", f"Place at {lat},{lng}")


class FakeImageGenerator:
    def __init__(self, data: bytes = PNG_BYTES, fail: bool = False):
        self.data = data
        self.fail = fail
        self.calls: list[tuple[str, str, StyleMode]] = []

    async def generate(
        self,
        location_name: str,
        extra_context: str = "",
        style_mode: StyleMode = StyleMode.RANDOM,
    ) -> bytes:
        self.calls.append((location_name, extra_context, style_mode))
        if self.fail:
            raise GenerationError("quota exceeded", provider="fake")
        return self.data


class FakeObjectStore:
    def __init__(self, bucket: str = "test-bucket", fail: bool = False):
        self.bucket = bucket
        self.fail = fail
        self.objects: dict[str, bytes] = {}

    async def upload(
        self,
        data: bytes,
        suggested_name: str,
        content_type: str = "image/png",
    ) -> StoredObject:
        if self.fail:
            raise UploadError("bucket unavailable", provider="fake")
        self.objects[suggested_name] = data
        return StoredObject(
            ref=f"gs://{self.bucket}/{suggested_name}",
            public_url=f"https://storage.googleapis.com/{self.bucket}/{suggested_name}",
        )

    async def read(self, name: str) -> bytes:
        if name not in self.objects:
            raise UploadError(f"{name} not found", provider="fake")
        return self.objects[name]


class FakeVideoGenerator:
    """Finishes after `polls_needed` polls with the given response."""

    def __init__(
        self,
        response: dict | None = None,
        polls_needed: int = 1,
        error: dict | None = None,
        fail_submit: bool = False,
        transient_failures: int = 0,
    ):
        self.response = response if response is not None else {
            "videos": [{"gcsUri": "gs://test-bucket/videos/out.mp4"}]
        }
        self.polls_needed = polls_needed
        self.error = error
        self.fail_submit = fail_submit
        self.transient_failures = transient_failures
        self.submitted: list[tuple[str, str]] = []
        self.polls = 0

    async def submit(self, input_image_ref: str, prompt: str = "") -> OperationHandle:
        self.submitted.append((input_image_ref, prompt))
        if self.fail_submit:
            raise VideoError("submit rejected", provider="fake")
        return OperationHandle(name="operations/123", model="veo-test")

    async def poll(self, handle: OperationHandle) -> OperationStatus:
        self.polls += 1
        if self.transient_failures:
            self.transient_failures -= 1
            raise VideoError("connection reset", provider="fake")
        if self.polls < self.polls_needed:
            return OperationStatus(done=False)
        if self.error:
            return OperationStatus(done=True, error=self.error)
        return OperationStatus(done=True, response=self.response)


class InMemoryMetadataStore:
    def __init__(self, clock: Clock | None = None):
        self.clock = clock or Clock()
        self.records: dict[str, Location] = {}
        self.writes: list[Location] = []
        self.fail_reads = False
        self.fail_writes = False

    async def get(self, record_id: str) -> Location | None:
        if self.fail_reads:
            raise PersistenceError("read failed", provider="fake")
        return self.records.get(record_id)

    async def upsert(self, record: Location) -> Location:
        if self.fail_writes:
            raise PersistenceError("write failed", provider="fake")
        if not record.id:
            raise PersistenceError("empty id", provider="fake")
        stored = record.model_copy(update={"last_updated": self.clock()})
        self.records[stored.id] = stored
        self.writes.append(stored)
        return stored

    def put(self, record: Location) -> None:
        """Seed a record without touching last_updated."""
        self.records[record.id] = record

    async def aggregate_counts(self) -> LocationStats:
        records = list(self.records.values())
        presets = sum(1 for r in records if r.is_preset)
        return LocationStats(
            total=len(records),
            presets=presets,
            user_generated=len(records) - presets,
            last_updated=max((r.last_updated for r in records if r.last_updated), default=None),
        )

    async def list(
        self,
        limit: int = 0,
        filter_by: LocationFilter = LocationFilter.ALL,
    ) -> list[Location]:
        records = [
            r
            for r in self.records.values()
            if filter_by == LocationFilter.ALL
            or r.is_preset == (filter_by == LocationFilter.PRESET)
        ]
        records.sort(key=lambda r: r.last_updated or T0, reverse=True)
        return records[:limit] if limit > 0 else records
