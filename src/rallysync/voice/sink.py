"""Output sinks: where rendered announcements are played.

The voice-channel transport lives outside this package; it plugs in by
implementing the OutputSink protocol. The sinks here cover the cases the
package itself needs:

- NullOutputSink: never connected (a context that has not joined voice)
- ConsoleOutputSink: logs each announcement
- RecordingOutputSink: keeps every delivery in memory, with timestamps
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, runtime_checkable

from .renderer import RenderedArtifact

logger = logging.getLogger(__name__)


@runtime_checkable
class OutputSink(Protocol):
    """Protocol for announcement output."""

    def is_connected(self) -> bool:
        """Whether the sink can currently accept output."""
        ...

    async def send(self, artifact: RenderedArtifact) -> None:
        """Play or post one rendered announcement."""
        ...

    def stop(self) -> None:
        """Stop whatever is currently playing."""
        ...


class NullOutputSink:
    """A sink that is never connected."""

    def is_connected(self) -> bool:
        return False

    async def send(self, artifact: RenderedArtifact) -> None:
        pass

    def stop(self) -> None:
        pass


class ConsoleOutputSink:
    """Logs announcements instead of playing them."""

    def __init__(self, name: str = "console"):
        self.name = name
        self._connected = True

    def is_connected(self) -> bool:
        return self._connected

    def disconnect(self) -> None:
        self._connected = False

    async def send(self, artifact: RenderedArtifact) -> None:
        logger.info(f"🔊 [{self.name}] {artifact.text}")

    def stop(self) -> None:
        logger.debug(f"[{self.name}] playback stopped")


@dataclass
class Delivery:
    """One announcement as delivered to a RecordingOutputSink."""

    artifact: RenderedArtifact
    delivered_at: Optional[float]

    @property
    def text(self) -> str:
        return self.artifact.text


class RecordingOutputSink:
    """Records deliveries in memory; used by tests and dry runs."""

    def __init__(self, clock: Optional[Callable[[], float]] = None, connected: bool = True):
        """Initialize the sink.

        Args:
            clock: Callable stamping each delivery (e.g. ManualClock.now)
            connected: Initial connection state
        """
        self._clock = clock
        self._connected = connected
        self.deliveries: List[Delivery] = []
        self.stop_count = 0

    def is_connected(self) -> bool:
        return self._connected

    def set_connected(self, connected: bool) -> None:
        self._connected = connected

    async def send(self, artifact: RenderedArtifact) -> None:
        stamp = self._clock() if self._clock else None
        self.deliveries.append(Delivery(artifact=artifact, delivered_at=stamp))

    def stop(self) -> None:
        self.stop_count += 1

    @property
    def texts(self) -> List[str]:
        return [delivery.text for delivery in self.deliveries]
