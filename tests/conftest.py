"""Pytest configuration and fixtures."""

import pytest

from rallysync.core.config import SyncConfig
from rallysync.core.models import Actor
from rallysync.voice.announcement_cache import AnnouncementCache, RenderProfile
from rallysync.voice.clock import ManualClock
from rallysync.voice.renderer import RenderedArtifact
from rallysync.voice.sink import RecordingOutputSink


class FakeRenderer:
    """Renderer that records calls and can be told to fail or stall."""

    def __init__(self, fail_on=(), gate=None):
        self.calls = []
        self.fail_on = set(fail_on)
        self.gate = gate

    async def render(self, text, profile):
        self.calls.append(text)
        if self.gate is not None:
            await self.gate.wait()
        if text in self.fail_on:
            raise RuntimeError(f"synthesis failed for {text}")
        return RenderedArtifact(text=text)


class FailingSink(RecordingOutputSink):
    """Recording sink whose send fails for selected texts."""

    def __init__(self, fail_on=(), stop_error=False, **kwargs):
        super().__init__(**kwargs)
        self.fail_on = set(fail_on)
        self.stop_error = stop_error

    async def send(self, artifact):
        if artifact.text in self.fail_on:
            raise ConnectionError("voice connection dropped")
        await super().send(artifact)

    def stop(self):
        super().stop()
        if self.stop_error:
            raise RuntimeError("player already destroyed")


@pytest.fixture
def sync_config():
    """Create a test configuration."""
    return SyncConfig(verbose=False, save_logs=False, platform="test")


@pytest.fixture
def profile(sync_config):
    """Render profile for the test configuration."""
    return sync_config.render_profile()


@pytest.fixture
def other_profile():
    """A profile differing only in voice."""
    return RenderProfile(
        pipeline_version="rally-v2",
        voice="Daniel",
        speech_rate=170,
        platform="test",
        provider="console",
    )


@pytest.fixture
def clock():
    """Simulated clock starting at t=1000."""
    return ManualClock(start=1000.0)


@pytest.fixture
def cache():
    """Unbounded announcement cache."""
    return AnnouncementCache()


@pytest.fixture
def renderer():
    """Recording fake renderer."""
    return FakeRenderer()


@pytest.fixture
def sink(clock):
    """Connected recording sink stamped with simulated time."""
    return RecordingOutputSink(clock=clock.now)


@pytest.fixture
def abc_actors():
    """Three travel-variant actors: A 10s, B 15s, C 20s."""
    return [
        Actor.travel("A", 10),
        Actor.travel("B", 15),
        Actor.travel("C", 20),
    ]
