"""Countdown orchestration.

A CountdownSession owns one voice context's countdown: the armed timers, the
delivery tasks they spawn and the state machine

    Idle --schedule--> Scheduled --start--> Running --> Completed
                                               |
                                               +--cancel--> Cancelled

Each distinct cue offset gets one timer. When it fires, the cues at that
offset are rendered concurrently (through the shared AnnouncementCache) and
sent to the output sink in order. A slow render never holds back another
offset's timer, and one failed announcement never stops the rest.

The CountdownOrchestrator keeps one session per context and is the entry
point the command layer talks to.

Usage:
    orchestrator = CountdownOrchestrator.from_config(SyncConfig.from_env())
    orchestrator.attach("guild-1", sink)
    session = orchestrator.launch("guild-1", schedule)
    await session.wait_finished()
"""

import asyncio
import logging
from collections import OrderedDict
from functools import partial
from typing import Any, Dict, List, Optional, Sequence, Set

from ..core.config import SyncConfig
from ..core.enums import SessionState
from ..core.errors import (
    InvalidStateError,
    NoOutputSinkError,
    RallySyncError,
    RenderFailure,
    TransportFailure,
)
from ..core.models import AnnouncementGroup, SynchronizedSchedule
from .announcement_cache import AnnouncementCache, RenderProfile, fingerprint_text
from .clock import AsyncioClock, Clock, TimerHandle
from .narration import SEQUENCE_COMPLETE_TEXT, AnnouncementCue, build_cues, narrate
from .renderer import RenderedArtifact, Renderer, create_renderer
from .sink import OutputSink

logger = logging.getLogger(__name__)


# =============================================================================
# SESSION
# =============================================================================

class CountdownSession:
    """One context's countdown and its timers."""

    def __init__(
        self,
        context_id: str,
        sink: OutputSink,
        renderer: Renderer,
        cache: AnnouncementCache,
        profile: RenderProfile,
        clock: Optional[Clock] = None,
    ):
        self.context_id = context_id
        self.sink = sink
        self.renderer = renderer
        self.cache = cache
        self.profile = profile
        self.clock = clock or AsyncioClock()

        self.state = SessionState.IDLE
        self.run_id = 0
        self.cues: List[AnnouncementCue] = []
        self.total_duration = 0
        self.started_at: Optional[float] = None

        self.delivered: List[str] = []
        self.failures: List[RallySyncError] = []

        self._handles: List[TimerHandle] = []
        self._tasks: Set[asyncio.Task] = set()
        self._offsets_left = 0
        self._finished = asyncio.Event()

    def __repr__(self) -> str:
        return f"CountdownSession(context_id={self.context_id!r}, state={self.state.value}, run_id={self.run_id})"

    @property
    def is_active(self) -> bool:
        return self.state in (SessionState.SCHEDULED, SessionState.RUNNING)

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def schedule(
        self,
        groups: Sequence[AnnouncementGroup],
        total_duration: int,
        intro: Optional[str] = None,
        prepare_lead_seconds: int = 0,
        completion: Optional[str] = SEQUENCE_COMPLETE_TEXT,
        count_to: int = 0,
    ) -> None:
        """Prepare a countdown for the given groups.

        Args:
            groups: Announcement groups from group_schedule()
            total_duration: Offset of the completion announcement
            intro: Optional opening line at offset 0
            prepare_lead_seconds: "Be ready." lead before the first group
            completion: Final announcement text; None skips it
            count_to: Speak each second up to this offset; 0 disables it

        Raises:
            NoOutputSinkError: The sink is not connected
        """
        cues = build_cues(
            groups,
            total_duration,
            intro=intro,
            prepare_lead_seconds=prepare_lead_seconds,
            completion=completion,
            count_to=count_to,
        )
        self.schedule_cues(cues, total_duration)

    def schedule_cues(self, cues: Sequence[AnnouncementCue], total_duration: int) -> None:
        """Prepare a countdown from an explicit cue list (see narration)."""
        if self.sink is None or not self.sink.is_connected():
            raise NoOutputSinkError(f"No connected output for {self.context_id}")

        if self.state == SessionState.RUNNING:
            logger.info(f"[{self.context_id}] New countdown supersedes the running one")
            self.cancel()

        self.cues = sorted(cues, key=lambda cue: cue.sort_key)
        self.total_duration = total_duration
        self.state = SessionState.SCHEDULED
        logger.info(
            f"[{self.context_id}] Countdown scheduled: {len(self.cues)} announcements over {total_duration}s"
        )

    def start(self) -> None:
        """Arm one timer per distinct cue offset. Offset 0 fires immediately.

        Must be called from a running event loop.
        """
        if self.state != SessionState.SCHEDULED:
            raise InvalidStateError(
                f"Cannot start countdown for {self.context_id} from state {self.state.value}"
            )

        self.run_id += 1
        run_id = self.run_id
        self.state = SessionState.RUNNING
        self.started_at = self.clock.now()
        self.delivered = []
        self.failures = []
        self._finished.clear()

        by_offset: Dict[int, List[AnnouncementCue]] = OrderedDict()
        for cue in self.cues:
            by_offset.setdefault(cue.offset, []).append(cue)
        self._offsets_left = len(by_offset)

        logger.info(f"[{self.context_id}] Countdown started (run {run_id}, {len(by_offset)} timers)")

        if not by_offset:
            self._complete(run_id)
            return

        for offset, cues in by_offset.items():
            if offset <= 0:
                self._fire(run_id, offset, cues)
            else:
                self._handles.append(self.clock.after(offset, partial(self._fire, run_id, offset, cues)))

    def cancel(self) -> bool:
        """Stop a running countdown. A no-op unless Running.

        Pending timers are disarmed, in-flight deliveries are cancelled and the
        sink is told to stop playback. Never raises.

        Returns:
            True if a running countdown was cancelled
        """
        if self.state != SessionState.RUNNING:
            return False

        # Deliveries compare against run_id before every send
        self.run_id += 1

        for handle in self._handles:
            try:
                handle.cancel()
            except Exception as e:
                logger.warning(f"[{self.context_id}] Failed to cancel timer: {e}")
        self._handles = []

        for task in list(self._tasks):
            task.cancel()

        try:
            self.sink.stop()
        except Exception as e:
            logger.warning(f"[{self.context_id}] Output sink stop failed: {e}")

        self.state = SessionState.CANCELLED
        self._finished.set()
        logger.info(f"[{self.context_id}] Countdown cancelled")
        return True

    # -------------------------------------------------------------------------
    # Timer firing
    # -------------------------------------------------------------------------

    def _fire(self, run_id: int, offset: int, cues: List[AnnouncementCue]) -> None:
        if run_id != self.run_id or self.state != SessionState.RUNNING:
            return
        logger.debug(f"[{self.context_id}] Timer fired at +{offset}s: {[cue.text for cue in cues]}")
        task = asyncio.ensure_future(self._deliver(run_id, offset, cues))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _render(self, cue: AnnouncementCue) -> RenderedArtifact:
        try:
            return await self.cache.get_or_render(
                fingerprint_text(cue.text, self.profile),
                lambda: self.renderer.render(cue.text, self.profile),
            )
        except RenderFailure:
            raise
        except Exception as e:
            raise RenderFailure(cue.text, str(e)) from e

    async def _deliver(self, run_id: int, offset: int, cues: List[AnnouncementCue]) -> None:
        try:
            results = await asyncio.gather(
                *(self._render(cue) for cue in cues), return_exceptions=True
            )
            for cue, result in zip(cues, results):
                if run_id != self.run_id:
                    logger.debug(f"[{self.context_id}] Discarding stale announcement: {cue.text}")
                    return
                if isinstance(result, asyncio.CancelledError):
                    return
                if isinstance(result, Exception):
                    self._record_failure(result)
                    continue
                await self._send(cue, result)
        finally:
            if run_id == self.run_id:
                self._offsets_left -= 1
                if self._offsets_left <= 0:
                    self._complete(run_id)

    async def _send(self, cue: AnnouncementCue, artifact: RenderedArtifact) -> None:
        if not self.sink.is_connected():
            self._record_failure(TransportFailure(self.context_id, "output sink disconnected"))
            return
        try:
            await self.sink.send(artifact)
        except Exception as e:
            self._record_failure(TransportFailure(self.context_id, str(e)))
            return
        self.delivered.append(cue.text)
        logger.debug(f"[{self.context_id}] Announced: {cue.text}")

    def _record_failure(self, error: Exception) -> None:
        self.failures.append(error)
        if isinstance(error, TransportFailure):
            logger.error(f"[{self.context_id}] {error}")
        else:
            logger.error(f"[{self.context_id}] Skipping announcement: {error}")

    def _complete(self, run_id: int) -> None:
        if run_id != self.run_id or self.state != SessionState.RUNNING:
            return
        self._handles = []
        self.state = SessionState.COMPLETED
        self._finished.set()
        logger.info(
            f"[{self.context_id}] Countdown complete: {len(self.delivered)} delivered, "
            f"{len(self.failures)} failed"
        )

    # -------------------------------------------------------------------------
    # Waiting
    # -------------------------------------------------------------------------

    async def wait_delivered(self) -> None:
        """Wait for every delivery spawned so far (including cancelled ones)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def wait_finished(self) -> SessionState:
        """Wait until the run completes or is cancelled."""
        await self._finished.wait()
        return self.state


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class CountdownOrchestrator:
    """Per-context countdown sessions sharing one renderer and cache."""

    def __init__(
        self,
        renderer: Renderer,
        cache: Optional[AnnouncementCache] = None,
        profile: Optional[RenderProfile] = None,
        clock: Optional[Clock] = None,
        config: Optional[SyncConfig] = None,
    ):
        self.config = config or SyncConfig()
        self.renderer = renderer
        self.cache = cache or AnnouncementCache(
            max_entries=self.config.cache_max_entries,
            ttl_seconds=self.config.cache_ttl_seconds,
        )
        self.profile = profile or self.config.render_profile()
        self.clock = clock or AsyncioClock()
        self._sessions: Dict[str, CountdownSession] = {}

    @classmethod
    def from_config(cls, config: SyncConfig, clock: Optional[Clock] = None) -> "CountdownOrchestrator":
        """Build an orchestrator with the renderer the config names."""
        renderer = create_renderer(
            config.renderer,
            api_key=config.elevenlabs_api_key,
            output_dir=config.cache_dir,
            model=config.elevenlabs_model,
        )
        return cls(renderer=renderer, clock=clock, config=config)

    @property
    def contexts(self) -> List[str]:
        return list(self._sessions)

    def attach(self, context_id: str, sink: OutputSink) -> CountdownSession:
        """Bind an output sink to a context, replacing any previous one."""
        previous = self._sessions.get(context_id)
        if previous is not None:
            previous.cancel()

        session = CountdownSession(
            context_id=context_id,
            sink=sink,
            renderer=self.renderer,
            cache=self.cache,
            profile=self.profile,
            clock=self.clock,
        )
        self._sessions[context_id] = session
        logger.info(f"Attached output for {context_id}")
        return session

    def detach(self, context_id: str) -> bool:
        """Cancel and forget a context's session."""
        session = self._sessions.pop(context_id, None)
        if session is None:
            return False
        session.cancel()
        logger.info(f"Detached output for {context_id}")
        return True

    def session(self, context_id: str) -> Optional[CountdownSession]:
        return self._sessions.get(context_id)

    def is_active(self, context_id: str) -> bool:
        session = self._sessions.get(context_id)
        return session is not None and session.is_active

    def launch(
        self,
        context_id: str,
        schedule: SynchronizedSchedule,
        lead_time: Optional[int] = None,
    ) -> CountdownSession:
        """Narrate a schedule on a context, superseding any running countdown.

        Args:
            context_id: Context with an attached, connected sink
            schedule: Output of one of the timing calculators
            lead_time: Rally lead time to mention in the intro

        Raises:
            NoOutputSinkError: Nothing attached, or the sink is disconnected
        """
        session = self._sessions.get(context_id)
        if session is None:
            raise NoOutputSinkError(f"No output attached for {context_id}")

        cues = narrate(
            schedule,
            announce_intro=self.config.announce_intro,
            prepare_lead_seconds=self.config.prepare_lead_seconds,
            spoken_count=self.config.spoken_count,
            lead_time=lead_time,
        )
        session.schedule_cues(cues, schedule.total_duration)
        session.start()
        return session

    def stop(self, context_id: str) -> bool:
        """Cancel a context's countdown. Returns True if one was running."""
        session = self._sessions.get(context_id)
        if session is None:
            return False
        return session.cancel()

    async def broadcast(self, text: str) -> int:
        """Render once and send to every connected context.

        Returns:
            Number of contexts that received the announcement

        Raises:
            RenderFailure: The announcement could not be rendered
        """
        try:
            artifact = await self.cache.get_or_render(
                fingerprint_text(text, self.profile),
                lambda: self.renderer.render(text, self.profile),
            )
        except Exception as e:
            raise RenderFailure(text, str(e)) from e

        sent = 0
        for context_id, session in list(self._sessions.items()):
            if not session.sink.is_connected():
                continue
            try:
                await session.sink.send(artifact)
                sent += 1
            except Exception as e:
                logger.error(f"Broadcast to {context_id} failed: {e}")

        logger.info(f"Broadcast '{text}' to {sent} context(s)")
        return sent

    def get_stats(self) -> Dict[str, Any]:
        return {
            "contexts": len(self._sessions),
            "active": sum(1 for session in self._sessions.values() if session.is_active),
            "cache": self.cache.get_stats(),
        }

    async def shutdown(self) -> None:
        """Cancel every countdown and release the renderer."""
        for session in self._sessions.values():
            session.cancel()
        for session in self._sessions.values():
            await session.wait_delivered()

        close = getattr(self.renderer, "close", None)
        if close is not None:
            await close()
        logger.info("Countdown orchestrator shut down")


__all__ = [
    "CountdownOrchestrator",
    "CountdownSession",
]
