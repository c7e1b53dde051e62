"""Text-to-speech renderers for countdown announcements.

A renderer turns one announcement string into a RenderedArtifact. Supports:
- Console rendering (log only, no audio) for development and text channels
- ElevenLabs cloud TTS, written to disk so the cache can check the file
  still exists before reusing it
- Dry-run mode for ElevenLabs (silent WAV, no API calls)

Usage:
    from rallysync.voice import create_renderer

    renderer = create_renderer("elevenlabs", output_dir=cache_dir)
    artifact = await renderer.render("Alice, Bob go!", profile)
"""

import asyncio
import hashlib
import io
import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

import aiohttp
from pydub import AudioSegment

from .announcement_cache import RenderProfile

logger = logging.getLogger(__name__)


@dataclass
class RenderedArtifact:
    """A rendered announcement.

    Audio lives either in memory (``audio_data``) or on disk (``path``).
    Text-only artifacts (console rendering) carry neither.
    """

    text: str
    audio_data: Optional[bytes] = None
    path: Optional[Path] = None
    audio_format: str = "wav"
    duration_s: Optional[float] = None
    created_at: float = field(default_factory=time.time, compare=False)

    @property
    def has_audio(self) -> bool:
        return self.audio_data is not None or self.path is not None

    def is_valid(self) -> bool:
        """Whether the backing storage is still there."""
        if self.path is not None:
            return Path(self.path).exists()
        return True

    def load_audio(self) -> Optional[bytes]:
        """Audio bytes, reading from disk when needed."""
        if self.audio_data is not None:
            return self.audio_data
        if self.path is not None:
            return Path(self.path).read_bytes()
        return None


@runtime_checkable
class Renderer(Protocol):
    """Protocol for announcement renderers. Must be safe to call concurrently."""

    async def render(self, text: str, profile: RenderProfile) -> RenderedArtifact:
        ...


class ConsoleRenderer:
    """Logs the announcement and returns a text-only artifact."""

    def __init__(self):
        self.rendered_count = 0

    async def render(self, text: str, profile: RenderProfile) -> RenderedArtifact:
        self.rendered_count += 1
        logger.debug(f"Rendered (text only): {text}")
        return RenderedArtifact(text=text)


class ElevenLabsAPIError(Exception):
    """Exception for ElevenLabs API errors."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"ElevenLabs API error {status_code}: {message}")


@dataclass
class VoiceSettings:
    """Voice synthesis settings for the ElevenLabs API."""

    stability: float = 0.6  # Steadier delivery suits countdown calls
    similarity_boost: float = 0.75
    style: float = 0.0
    use_speaker_boost: bool = True

    def to_dict(self):
        return {
            "stability": self.stability,
            "similarity_boost": self.similarity_boost,
            "style": self.style,
            "use_speaker_boost": self.use_speaker_boost,
        }


class ElevenLabsRenderer:
    """ElevenLabs text-to-speech, stored as MP3 files under ``output_dir``."""

    BASE_URL = "https://api.elevenlabs.io/v1"

    def __init__(
        self,
        api_key: Optional[str] = None,
        output_dir: Optional[Path] = None,
        dry_run: bool = False,
        voice_settings: Optional[VoiceSettings] = None,
        default_model: str = "eleven_flash_v2_5",
        min_request_interval: float = 0.1,
    ):
        """Initialize the renderer.

        Args:
            api_key: ElevenLabs API key. If None, reads ELEVENLABS_API_KEY.
            output_dir: Where rendered files are written
            dry_run: If True, produce silent audio without API calls
            voice_settings: Synthesis settings
            default_model: Model used when the profile names none
            min_request_interval: Minimum seconds between API requests
        """
        self.api_key = api_key or os.environ.get("ELEVENLABS_API_KEY")
        self.dry_run = dry_run
        self.voice_settings = voice_settings or VoiceSettings()
        self.default_model = default_model
        self.output_dir = Path(output_dir or Path.home() / ".rallysync" / "announcements")
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.requests_made = 0

        self._session: Optional[aiohttp.ClientSession] = None
        self._last_request_time = 0.0
        self._min_request_interval = min_request_interval
        self._rate_lock = asyncio.Lock()

        if not self.api_key and not self.dry_run:
            logger.warning(
                "No ElevenLabs API key provided. Set ELEVENLABS_API_KEY or "
                "pass api_key parameter. Using dry_run mode."
            )
            self.dry_run = True

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"xi-api-key": self.api_key}
            )
        return self._session

    async def close(self):
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def _rate_limit(self):
        """Apply rate limiting between requests."""
        async with self._rate_lock:
            elapsed = time.time() - self._last_request_time
            if elapsed < self._min_request_interval:
                await asyncio.sleep(self._min_request_interval - elapsed)
            self._last_request_time = time.time()

    @staticmethod
    def _estimate_duration(text: str) -> float:
        """~150 words/min = ~750 chars/min."""
        return (len(text) / 750) * 60

    def _output_path(self, text: str, profile: RenderProfile, suffix: str) -> Path:
        digest = hashlib.sha256(
            f"{profile.pipeline_version}|{profile.voice}|{profile.model}|{text}".encode()
        ).hexdigest()[:16]
        return self.output_dir / f"tts_{digest}.{suffix}"

    async def render(self, text: str, profile: RenderProfile) -> RenderedArtifact:
        model = profile.model or self.default_model
        duration = self._estimate_duration(text)

        if self.dry_run:
            path = self._output_path(text, profile, "wav")
            silence = AudioSegment.silent(duration=max(250, int(duration * 1000)))
            buffer = io.BytesIO()
            silence.export(buffer, format="wav")
            path.write_bytes(buffer.getvalue())
            logger.debug(f"Dry-run TTS: '{text}' -> {path.name}")
            return RenderedArtifact(
                text=text, path=path, audio_format="wav", duration_s=duration
            )

        await self._rate_limit()
        session = await self._get_session()

        url = f"{self.BASE_URL}/text-to-speech/{profile.voice}"
        payload = {
            "text": text,
            "model_id": model,
            "voice_settings": self.voice_settings.to_dict(),
        }
        params = {"output_format": "mp3_44100_128"}

        logger.info(f"TTS request: {len(text)} chars, voice={profile.voice}, model={model}")
        start_time = time.time()

        async with session.post(url, json=payload, params=params) as response:
            if response.status != 200:
                error_text = await response.text()
                logger.error(f"ElevenLabs API error: {response.status} - {error_text}")
                raise ElevenLabsAPIError(response.status, error_text)
            audio_data = await response.read()

        self.requests_made += 1
        logger.debug(f"TTS latency: {(time.time() - start_time) * 1000:.0f}ms")

        path = self._output_path(text, profile, "mp3")
        path.write_bytes(audio_data)
        return RenderedArtifact(text=text, path=path, audio_format="mp3", duration_s=duration)


def create_renderer(provider: str = "console", **kwargs) -> Renderer:
    """Create a renderer for the named provider.

    Args:
        provider: "console" or "elevenlabs"
        **kwargs: Provider-specific arguments

    Returns:
        Configured Renderer instance
    """
    provider = provider.lower()

    if provider == "console":
        return ConsoleRenderer()

    if provider == "elevenlabs":
        return ElevenLabsRenderer(
            api_key=kwargs.get("api_key"),
            output_dir=kwargs.get("output_dir"),
            dry_run=kwargs.get("dry_run", False),
            default_model=kwargs.get("model", "eleven_flash_v2_5"),
        )

    raise ValueError(f"Unknown renderer provider: {provider}")
