"""Core data structures for synchronized attack timing."""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .enums import ActorVariant, TimerState
from .errors import InvalidInputError, RallySyncError


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class Actor:
    """A player taking part in a synchronized attack.

    Exactly one of ``travel_duration`` / ``fixed_send_offset`` is meaningful,
    selected by ``variant``.
    """

    name: str
    variant: ActorVariant = ActorVariant.TRAVEL
    travel_duration: int = 0  # Seconds until the attack lands if sent now
    fixed_send_offset: Optional[int] = None  # Seconds after the rally started
    attack_group: int = 1
    saved_group_id: Optional[str] = None  # Saved rally group this player came from
    registered_at: float = field(default_factory=time.time, compare=False)

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidInputError("Player name cannot be empty")
        self.name = self.name.strip()

        if not _is_int(self.attack_group) or self.attack_group <= 0:
            raise InvalidInputError("Attack group must be greater than 0")

        if self.variant == ActorVariant.TRAVEL:
            if not _is_int(self.travel_duration) or self.travel_duration < 0:
                raise InvalidInputError(
                    f"Invalid travel time for {self.name}: {self.travel_duration}"
                )
            self.fixed_send_offset = None
        else:
            if not _is_int(self.fixed_send_offset) or self.fixed_send_offset < 0:
                raise InvalidInputError(
                    f"Send time for {self.name} cannot be negative"
                )
            self.travel_duration = 0

    @classmethod
    def travel(cls, name: str, seconds: int, attack_group: int = 1, **kwargs) -> "Actor":
        """Create a travel-variant actor."""
        return cls(
            name=name,
            variant=ActorVariant.TRAVEL,
            travel_duration=seconds,
            attack_group=attack_group,
            **kwargs,
        )

    @classmethod
    def fixed(cls, name: str, send_offset: int, attack_group: int = 1, **kwargs) -> "Actor":
        """Create a fixed-variant actor pinned to a send offset."""
        return cls(
            name=name,
            variant=ActorVariant.FIXED,
            fixed_send_offset=send_offset,
            attack_group=attack_group,
            **kwargs,
        )

    @property
    def is_fixed(self) -> bool:
        return self.variant == ActorVariant.FIXED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "variant": self.variant.value,
            "travel_duration": self.travel_duration,
            "fixed_send_offset": self.fixed_send_offset,
            "attack_group": self.attack_group,
            "saved_group_id": self.saved_group_id,
        }


@dataclass
class ScheduleEntry:
    """One actor's slot in a synchronized schedule."""

    actor: Actor
    fire_offset: int  # Seconds after the schedule's reference time
    rank: int  # 1-based attack order

    @property
    def name(self) -> str:
        return self.actor.name


@dataclass
class SynchronizedSchedule:
    """Per-actor send offsets that make every attack land together.

    ``reference_time`` is the instant the schedule was computed; offsets are
    relative to it. The deadline variant also carries the adversary arrival
    instant and our own landing instant for display.
    """

    entries: List[ScheduleEntry]
    total_duration: int
    reference_time: float
    attack_group: Optional[int] = None
    rally_name: Optional[str] = None
    target_arrival: Optional[float] = None
    our_fire_instant: Optional[float] = None

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    @property
    def actors(self) -> List[Actor]:
        return [entry.actor for entry in self.entries]

    @property
    def is_deadline_driven(self) -> bool:
        return self.target_arrival is not None

    def offsets(self) -> Dict[str, int]:
        """Map actor name to fire offset."""
        return {entry.name: entry.fire_offset for entry in self.entries}

    def ranks(self) -> Dict[str, int]:
        """Map actor name to attack order."""
        return {entry.name: entry.rank for entry in self.entries}

    def fire_time(self, entry: ScheduleEntry) -> float:
        """Wall-clock instant at which an entry should send."""
        return self.reference_time + entry.fire_offset

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "entries": [
                {
                    "name": entry.name,
                    "fire_offset": entry.fire_offset,
                    "rank": entry.rank,
                    "attack_group": entry.actor.attack_group,
                    "variant": entry.actor.variant.value,
                }
                for entry in self.entries
            ],
            "total_duration": self.total_duration,
            "reference_time": self.reference_time,
            "attack_group": self.attack_group,
            "rally_name": self.rally_name,
            "target_arrival": self.target_arrival,
            "our_fire_instant": self.our_fire_instant,
        }


@dataclass
class AnnouncementGroup:
    """Actors sharing one fire offset, announced together."""

    fire_offset: int
    entries: List[ScheduleEntry] = field(default_factory=list)

    @property
    def members(self) -> List[Actor]:
        return [entry.actor for entry in self.entries]

    @property
    def names(self) -> List[str]:
        return [entry.name for entry in self.entries]


class AdversaryTimer:
    """An enemy rally: a countdown we can observe but not trigger.

    The lead time (rally preparation plus march) is fixed when the timer is
    created. ``start`` records the instant the rally was seen starting.
    """

    def __init__(
        self,
        name: str,
        total_lead_time: int,
        attack_group: int = 1,
        created_at: Optional[float] = None,
    ):
        if not isinstance(name, str) or not name.strip():
            raise InvalidInputError("Rally name cannot be empty")
        if not _is_int(total_lead_time) or total_lead_time <= 0:
            raise InvalidInputError("Rally lead time must be greater than 0")
        if not _is_int(attack_group) or attack_group <= 0:
            raise InvalidInputError("Attack group must be greater than 0")

        self.name = name.strip()
        self.attack_group = attack_group
        self.created_at = created_at if created_at is not None else time.time()
        self._total_lead_time = total_lead_time
        self._started_at: Optional[float] = None

    def __repr__(self) -> str:
        return (
            f"AdversaryTimer(name={self.name!r}, total_lead_time={self._total_lead_time}, "
            f"started_at={self._started_at})"
        )

    @property
    def total_lead_time(self) -> int:
        return self._total_lead_time

    @property
    def started_at(self) -> Optional[float]:
        return self._started_at

    @property
    def is_started(self) -> bool:
        return self._started_at is not None

    @property
    def arrival_instant(self) -> Optional[float]:
        if self._started_at is None:
            return None
        return self._started_at + self._total_lead_time

    def start(self, now: Optional[float] = None) -> None:
        """Transition Pending -> Active."""
        if self._started_at is not None:
            raise RallySyncError(f"Rally {self.name} has already been started")
        self._started_at = time.time() if now is None else now

    def state(self, now: Optional[float] = None) -> TimerState:
        """Current state; Expired once the adversary has arrived."""
        if self._started_at is None:
            return TimerState.PENDING
        now = time.time() if now is None else now
        if now >= self.arrival_instant:
            return TimerState.EXPIRED
        return TimerState.ACTIVE
