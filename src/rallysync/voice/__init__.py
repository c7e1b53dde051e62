"""Voice layer: rendering, caching and timed delivery of countdown announcements."""

from .announcement_cache import (
    AnnouncementCache,
    CacheEntry,
    CacheStats,
    RenderProfile,
    build_fingerprint,
    fingerprint_groups,
    fingerprint_text,
)
from .clock import AsyncioClock, Clock, ManualClock, TimerHandle
from .narration import (
    PREPARE_TEXT,
    RALLY_COMPLETE_TEXT,
    SEQUENCE_COMPLETE_TEXT,
    AnnouncementCue,
    build_cues,
    completion_text,
    count_in_text,
    count_text,
    describe_schedule,
    group_announcement_text,
    intro_text,
    narrate,
)
from .orchestrator import CountdownOrchestrator, CountdownSession
from .renderer import (
    ConsoleRenderer,
    ElevenLabsAPIError,
    ElevenLabsRenderer,
    RenderedArtifact,
    Renderer,
    VoiceSettings,
    create_renderer,
)
from .sequence import SequenceAssembler
from .sink import (
    ConsoleOutputSink,
    Delivery,
    NullOutputSink,
    OutputSink,
    RecordingOutputSink,
)

__all__ = [
    # Cache
    "AnnouncementCache",
    "CacheEntry",
    "CacheStats",
    "RenderProfile",
    "build_fingerprint",
    "fingerprint_groups",
    "fingerprint_text",
    # Clock
    "AsyncioClock",
    "Clock",
    "ManualClock",
    "TimerHandle",
    # Narration
    "PREPARE_TEXT",
    "RALLY_COMPLETE_TEXT",
    "SEQUENCE_COMPLETE_TEXT",
    "AnnouncementCue",
    "build_cues",
    "completion_text",
    "count_in_text",
    "count_text",
    "describe_schedule",
    "group_announcement_text",
    "intro_text",
    "narrate",
    # Orchestration
    "CountdownOrchestrator",
    "CountdownSession",
    # Rendering
    "ConsoleRenderer",
    "ElevenLabsAPIError",
    "ElevenLabsRenderer",
    "RenderedArtifact",
    "Renderer",
    "VoiceSettings",
    "create_renderer",
    "SequenceAssembler",
    # Output
    "ConsoleOutputSink",
    "Delivery",
    "NullOutputSink",
    "OutputSink",
    "RecordingOutputSink",
]
