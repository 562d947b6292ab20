"""
Weather generation pipeline.

Components:
- WeatherOrchestrator: runs a job from location query to stored artwork
- GenerationJob: per-run state, stage transitions and event ordering
- VideoPoller: waits for long-running video operations
- EventChannel / LoggingEventSink: progress event sinks
"""

from .events import EventChannel, EventSink, LoggingEventSink, format_sse
from .job import EventOrderError, GenerationJob, InvalidTransitionError
from .orchestrator import OrchestratorConfig, WeatherOrchestrator
from .video_poller import VideoPoller, extract_video_uri

__all__ = [
    "WeatherOrchestrator",
    "OrchestratorConfig",
    "GenerationJob",
    "InvalidTransitionError",
    "EventOrderError",
    "VideoPoller",
    "extract_video_uri",
    "EventSink",
    "EventChannel",
    "LoggingEventSink",
    "format_sse",
]
