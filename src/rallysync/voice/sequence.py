"""Whole-countdown audio: every cue of a run on one timeline.

For sinks that prefer a single clip over timed announcements, the
SequenceAssembler renders each cue, lays it on a silent pydub timeline at its
offset and exports the mix as WAV. Both the individual cues and the finished
sequence go through the AnnouncementCache, so repeating an identical
countdown reuses the file while it still exists on disk.
"""

import io
import logging
from pathlib import Path
from typing import List, Sequence, Tuple

from pydub import AudioSegment

from .announcement_cache import AnnouncementCache, RenderProfile, fingerprint_groups, fingerprint_text
from .narration import AnnouncementCue
from .renderer import RenderedArtifact, Renderer

logger = logging.getLogger(__name__)


class SequenceAssembler:
    """Assembles a countdown's cues into one audio file."""

    def __init__(
        self,
        renderer: Renderer,
        cache: AnnouncementCache,
        profile: RenderProfile,
        output_dir: Path,
        gap_ms: int = 150,
    ):
        """Initialize the assembler.

        Args:
            renderer: Renders individual cues
            cache: Shared announcement cache
            profile: Rendering parameters (part of every fingerprint)
            output_dir: Where sequence files are written
            gap_ms: Gap between cues that would otherwise overlap
        """
        self.renderer = renderer
        self.cache = cache
        self.profile = profile
        self.output_dir = Path(output_dir)
        self.gap_ms = gap_ms

    def sequence_fingerprint(self, cues: Sequence[AnnouncementCue], total_duration: int) -> str:
        groups = [cue.group for cue in cues if cue.group is not None]
        return fingerprint_groups(
            groups,
            self.profile,
            sequence=True,
            total_duration=total_duration,
            cues=[[cue.offset, cue.text] for cue in cues],
        )

    async def assemble(self, cues: Sequence[AnnouncementCue], total_duration: int) -> RenderedArtifact:
        """Render (or reuse) the full countdown audio.

        Args:
            cues: Cues in speaking order (see narration.build_cues)
            total_duration: Countdown length in seconds

        Returns:
            RenderedArtifact pointing at the exported WAV
        """
        fingerprint = self.sequence_fingerprint(cues, total_duration)
        return await self.cache.get_or_render(
            fingerprint, lambda: self._render_sequence(fingerprint, cues, total_duration)
        )

    async def _render_cue(self, cue: AnnouncementCue) -> RenderedArtifact:
        return await self.cache.get_or_render(
            fingerprint_text(cue.text, self.profile),
            lambda: self.renderer.render(cue.text, self.profile),
        )

    def _to_segment(self, artifact: RenderedArtifact) -> AudioSegment:
        audio = artifact.load_audio()
        if audio is None:
            # Text-only renderer: hold the cue's place with silence
            # Average speaking rate: ~150 words/min = ~750 chars/min
            duration_ms = max(500, int((len(artifact.text) / 750) * 60 * 1000))
            logger.warning(f"No audio for '{artifact.text}', using {duration_ms}ms of silence")
            return AudioSegment.silent(duration=duration_ms)
        return AudioSegment.from_file(io.BytesIO(audio), format=artifact.audio_format)

    async def _render_sequence(
        self,
        fingerprint: str,
        cues: Sequence[AnnouncementCue],
        total_duration: int,
    ) -> RenderedArtifact:
        logger.info(f"Assembling countdown sequence {fingerprint}: {len(cues)} cues, {total_duration}s")

        placed: List[Tuple[int, AudioSegment]] = []
        cursor_ms = 0
        for cue in cues:
            segment = self._to_segment(await self._render_cue(cue))
            start_ms = max(cue.offset * 1000, cursor_ms)
            placed.append((start_ms, segment))
            cursor_ms = start_ms + len(segment) + self.gap_ms

        end_ms = max([total_duration * 1000] + [start + len(seg) for start, seg in placed])
        mixed = AudioSegment.silent(duration=max(end_ms, 1000))
        for start_ms, segment in placed:
            mixed = mixed.overlay(segment, position=start_ms)

        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / f"sequence_{fingerprint}.wav"
        mixed.export(str(path), format="wav")

        logger.info(f"Countdown sequence written: {path.name} ({len(mixed) / 1000:.1f}s)")
        return RenderedArtifact(
            text=" ".join(cue.text for cue in cues),
            path=path,
            audio_format="wav",
            duration_s=len(mixed) / 1000,
        )

