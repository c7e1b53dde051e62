"""Runtime configuration dataclass.

Values that change what an announcement sounds like (voice, rate, platform,
renderer, pipeline version) feed the announcement fingerprint, so changing
any of them invalidates previously rendered audio.
"""

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class SyncConfig:
    """Configuration for timing, narration and rendering."""

    # ===========================================
    # RENDERING PIPELINE
    # ===========================================
    # Bump when narration wording or audio processing changes
    pipeline_version: str = "rally-v2"
    # "console" = log announcements only, "elevenlabs" = cloud TTS
    renderer: str = "console"
    voice: str = "Samantha"
    speech_rate: int = 170
    platform: str = sys.platform
    elevenlabs_api_key: Optional[str] = None
    elevenlabs_model: str = "eleven_flash_v2_5"

    # ===========================================
    # NARRATION
    # ===========================================
    announce_intro: bool = True
    # "Be ready." this many seconds before the first group; 0 disables
    prepare_lead_seconds: int = 10
    # Speak every second ("1.", "2.", ...) of a synchronized countdown
    spoken_count: bool = False

    # ===========================================
    # ANNOUNCEMENT CACHE
    # ===========================================
    cache_dir: str = str(Path.home() / ".rallysync" / "announcements")
    # None = unbounded (entries live for the process lifetime)
    cache_max_entries: Optional[int] = None
    cache_ttl_seconds: Optional[float] = None

    # ===========================================
    # LOGGING
    # ===========================================
    verbose: bool = False
    save_logs: bool = False

    def __post_init__(self):
        if self.prepare_lead_seconds < 0:
            raise ValueError("prepare_lead_seconds cannot be negative")
        if self.cache_max_entries is not None and self.cache_max_entries <= 0:
            raise ValueError("cache_max_entries must be positive or None")

    @classmethod
    def from_env(cls, **overrides) -> "SyncConfig":
        """Build a config from RALLYSYNC_* environment variables.

        Call ``load_dotenv()`` first to pick up a local .env file.
        """
        env = os.environ
        values = {}

        if "RALLYSYNC_RENDERER" in env:
            values["renderer"] = env["RALLYSYNC_RENDERER"].lower()
        if "RALLYSYNC_VOICE" in env:
            values["voice"] = env["RALLYSYNC_VOICE"]
        if "RALLYSYNC_SPEECH_RATE" in env:
            values["speech_rate"] = int(env["RALLYSYNC_SPEECH_RATE"])
        if "RALLYSYNC_PREPARE_LEAD" in env:
            values["prepare_lead_seconds"] = int(env["RALLYSYNC_PREPARE_LEAD"])
        if "RALLYSYNC_SPOKEN_COUNT" in env:
            values["spoken_count"] = env["RALLYSYNC_SPOKEN_COUNT"].lower() in ("1", "true", "yes")
        if "RALLYSYNC_CACHE_DIR" in env:
            values["cache_dir"] = env["RALLYSYNC_CACHE_DIR"]
        if env.get("RALLYSYNC_CACHE_MAX_ENTRIES"):
            values["cache_max_entries"] = int(env["RALLYSYNC_CACHE_MAX_ENTRIES"])
        if env.get("RALLYSYNC_CACHE_TTL"):
            values["cache_ttl_seconds"] = float(env["RALLYSYNC_CACHE_TTL"])
        if "RALLYSYNC_VERBOSE" in env:
            values["verbose"] = env["RALLYSYNC_VERBOSE"].lower() in ("1", "true", "yes")

        values["elevenlabs_api_key"] = env.get("ELEVENLABS_API_KEY")
        values.update(overrides)
        return cls(**values)

    def render_profile(self):
        """Rendering parameters that affect output audio."""
        # Import here to avoid circular imports
        from ..voice.announcement_cache import RenderProfile

        model = self.elevenlabs_model if self.renderer == "elevenlabs" else None
        return RenderProfile(
            pipeline_version=self.pipeline_version,
            voice=self.voice,
            speech_rate=self.speech_rate,
            platform=self.platform,
            provider=self.renderer,
            model=model,
        )
