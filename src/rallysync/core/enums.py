"""Enumerations for actors, adversary timers and countdown sessions."""

from enum import Enum


class ActorVariant(Enum):
    """How an actor's timing is expressed."""

    TRAVEL = "travel"  # Derived from time-to-target
    FIXED = "fixed"  # Pinned send offset from the adversary timer start


class TimerState(Enum):
    """Lifecycle of an adversary countdown (an enemy rally)."""

    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"


class SessionState(Enum):
    """Lifecycle of a countdown session on one output context."""

    IDLE = "idle"
    SCHEDULED = "scheduled"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CueKind(Enum):
    """Kinds of spoken cue in a countdown run, in narration order."""

    INTRO = "intro"
    PREPARE = "prepare"
    COUNT = "count"  # Spoken second of a synchronized count
    GROUP = "group"
    COMPLETE = "complete"
