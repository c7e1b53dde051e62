"""Attack timing calculations.

Two calculators turn actor timing data into a SynchronizedSchedule:

- ``calculate_sync_schedule``: everyone lands together. The slowest actor
  sends immediately and faster actors wait out the difference.
- ``calculate_deadline_schedule``: everyone lands SAFETY_MARGIN_SECONDS before
  an enemy rally reaches its target. Fixed-variant actors send at their
  pinned offset from the rally start instead.

Both are pure: they read no global state, and the only clock input is the
``now`` argument (defaulting to ``time.time()``).

Also holds the time/player string parsers and display formatters used by the
command layer.
"""

import math
import time
from typing import Iterable, List, Optional, Sequence, Tuple

from .enums import ActorVariant, TimerState
from .errors import (
    EmptyInputError,
    GroupNotFoundError,
    InvalidInputError,
    TimerNotActiveError,
)
from .models import Actor, AdversaryTimer, ScheduleEntry, SynchronizedSchedule

# We land this long before the enemy rally does.
SAFETY_MARGIN_SECONDS = 2

TIME_FORMAT_HINT = 'Use "1:30" for 1 minute 30 seconds or "90" for 90 seconds'
PLAYER_FORMAT_HINT = 'Use "PlayerA:25" for travel time or "PlayerA:11:02" for send time.'


# =============================================================================
# VALIDATION
# =============================================================================

def validate_attack_group(attack_group: Optional[int]) -> Optional[int]:
    """Reject attack group filters that are not positive integers.

    None means "all groups" and passes through.
    """
    if attack_group is None:
        return None
    if isinstance(attack_group, bool) or not isinstance(attack_group, int):
        raise InvalidInputError(f"Attack group must be an integer, got {attack_group!r}")
    if attack_group <= 0:
        raise InvalidInputError("Attack group must be greater than 0")
    return attack_group


def _check_unique_names(actors: Sequence[Actor]) -> None:
    seen = set()
    for actor in actors:
        if actor.name in seen:
            raise InvalidInputError(f"Player {actor.name} appears more than once")
        seen.add(actor.name)


def _rank(pairs: Iterable[Tuple[Actor, int]]) -> List[ScheduleEntry]:
    """Order by (fire_offset, name) and assign 1-based ranks."""
    ordered = sorted(pairs, key=lambda pair: (pair[1], pair[0].name))
    return [
        ScheduleEntry(actor=actor, fire_offset=offset, rank=index)
        for index, (actor, offset) in enumerate(ordered, start=1)
    ]


def _seconds_until(instant: float, now: float) -> int:
    """Whole seconds from now until instant, rounded up, never negative."""
    # Round to the millisecond first so float noise does not add a second
    delta = round(instant - now, 3)
    return max(0, math.ceil(delta))


# =============================================================================
# CALCULATORS
# =============================================================================

def calculate_sync_schedule(
    actors: Sequence[Actor],
    attack_group: Optional[int] = None,
    now: Optional[float] = None,
) -> SynchronizedSchedule:
    """Compute send offsets so every travel-variant actor arrives together.

    Args:
        actors: Registered actors (travel variant)
        attack_group: Optional filter; None schedules all groups together
        now: Reference instant (defaults to time.time())

    Returns:
        SynchronizedSchedule with total_duration = slowest travel time

    Raises:
        EmptyInputError: No actors supplied
        GroupNotFoundError: The requested group has no members
        InvalidInputError: Fixed-variant actors or duplicate names
    """
    if not actors:
        raise EmptyInputError("No players registered")

    if attack_group is not None:
        selected = [actor for actor in actors if actor.attack_group == attack_group]
        if not selected:
            raise GroupNotFoundError(attack_group)
    else:
        selected = list(actors)

    fixed = [actor.name for actor in selected if actor.variant != ActorVariant.TRAVEL]
    if fixed:
        raise InvalidInputError(
            f"Players with a fixed send time need a started rally: {', '.join(fixed)}"
        )
    _check_unique_names(selected)

    total_duration = max(actor.travel_duration for actor in selected)
    entries = _rank(
        (actor, total_duration - actor.travel_duration) for actor in selected
    )

    return SynchronizedSchedule(
        entries=entries,
        total_duration=total_duration,
        reference_time=time.time() if now is None else now,
        attack_group=attack_group,
    )


def calculate_deadline_schedule(
    timer: AdversaryTimer,
    actors: Sequence[Actor],
    now: Optional[float] = None,
) -> SynchronizedSchedule:
    """Compute send offsets so every actor lands just before an enemy rally.

    Travel-variant actors aim for ``arrival - SAFETY_MARGIN_SECONDS``.
    Fixed-variant actors send at ``started_at + fixed_send_offset``. Send
    instants already in the past clamp to offset 0 (send immediately).

    Args:
        timer: A started adversary timer
        actors: Actors joining the counter-attack (either variant)
        now: Reference instant (defaults to time.time())

    Returns:
        SynchronizedSchedule carrying target_arrival and our_fire_instant

    Raises:
        TimerNotActiveError: Rally not started, or already arrived
        EmptyInputError: No actors supplied
    """
    now = time.time() if now is None else now

    state = timer.state(now)
    if state == TimerState.PENDING:
        raise TimerNotActiveError(
            timer.name, f"Rally {timer.name} has not been started yet. Start it first."
        )
    if state == TimerState.EXPIRED:
        raise TimerNotActiveError(timer.name, f"Rally {timer.name} has already arrived")

    if not actors:
        raise EmptyInputError("No players provided for rally attack")
    _check_unique_names(actors)

    target_arrival = timer.arrival_instant
    our_fire_instant = target_arrival - SAFETY_MARGIN_SECONDS

    pairs = []
    for actor in actors:
        if actor.variant == ActorVariant.FIXED:
            trigger_instant = timer.started_at + actor.fixed_send_offset
        else:
            trigger_instant = our_fire_instant - actor.travel_duration
        pairs.append((actor, _seconds_until(trigger_instant, now)))

    entries = _rank(pairs)
    last_offset = entries[-1].fire_offset
    total_duration = max(last_offset, _seconds_until(target_arrival, now))

    return SynchronizedSchedule(
        entries=entries,
        total_duration=total_duration,
        reference_time=now,
        attack_group=timer.attack_group,
        rally_name=timer.name,
        target_arrival=target_arrival,
        our_fire_instant=our_fire_instant,
    )


# =============================================================================
# PARSING
# =============================================================================

def _parse_int(value: str) -> Optional[int]:
    value = value.strip()
    digits = value[1:] if value.startswith("-") else value
    # isdecimal() rejects superscripts and other digit-like characters int() refuses
    if not digits.isdecimal():
        return None
    return int(value)


def parse_time_string(time_string: str) -> int:
    """Parse "1:30" (minutes:seconds) or "90" (seconds) into seconds."""
    if not time_string or not isinstance(time_string, str):
        raise InvalidInputError("Time string is required")

    trimmed = time_string.strip()
    if ":" in trimmed:
        parts = trimmed.split(":")
        if len(parts) != 2:
            raise InvalidInputError(f"Invalid time format. {TIME_FORMAT_HINT}")
        minutes, seconds = _parse_int(parts[0]), _parse_int(parts[1])
        if minutes is None or seconds is None:
            raise InvalidInputError("Invalid time format. Minutes and seconds must be numbers")
        if minutes < 0 or seconds < 0:
            raise InvalidInputError("Time values cannot be negative")
        if seconds >= 60:
            raise InvalidInputError("Seconds must be less than 60")
        return minutes * 60 + seconds

    total = _parse_int(trimmed)
    if total is None:
        raise InvalidInputError(f"Invalid time format. {TIME_FORMAT_HINT}")
    if total < 0:
        raise InvalidInputError("Time cannot be negative")
    return total


def parse_player_string(player_string: str, attack_group: int = 1) -> Actor:
    """Parse "Name:25" (travel seconds) or "Name:11:02" (send offset) into an Actor."""
    if not player_string or not isinstance(player_string, str):
        raise InvalidInputError("Player string is required")

    trimmed = player_string.strip()
    parts = [part.strip() for part in trimmed.split(":")]
    if len(parts) not in (2, 3):
        raise InvalidInputError(f'Invalid player format: "{trimmed}". {PLAYER_FORMAT_HINT}')

    name = parts[0]
    if not name:
        raise InvalidInputError("Player name cannot be empty")

    if len(parts) == 2:
        seconds = _parse_int(parts[1])
        if seconds is None or seconds <= 0:
            raise InvalidInputError(
                f"Invalid travel time for {name}: {parts[1]}. Must be a positive number."
            )
        return Actor.travel(name, seconds, attack_group=attack_group)

    minutes, seconds = _parse_int(parts[1]), _parse_int(parts[2])
    if minutes is None or seconds is None:
        raise InvalidInputError(
            f"Invalid send time for {name}: {parts[1]}:{parts[2]}. "
            "Minutes and seconds must be numbers."
        )
    if minutes < 0 or seconds < 0:
        raise InvalidInputError(f"Send time for {name} cannot be negative")
    if seconds >= 60:
        raise InvalidInputError(f"Seconds for {name} must be less than 60")
    return Actor.fixed(name, minutes * 60 + seconds, attack_group=attack_group)


# =============================================================================
# FORMATTING
# =============================================================================

def format_time_string(total_seconds: int) -> str:
    """Format seconds as "45s" or "1:05"."""
    if total_seconds < 60:
        return f"{total_seconds}s"
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}:{seconds:02d}"


def format_time_remaining(seconds: int) -> str:
    """Format seconds as "2m 10s" / "10s"."""
    if seconds <= 0:
        return "0s"
    minutes, remaining = divmod(seconds, 60)
    if minutes > 0:
        return f"{minutes}m {remaining}s"
    return f"{remaining}s"


def format_spoken_duration(total_seconds: int) -> str:
    """Format seconds for speech: "2 minutes and 10 seconds"."""
    minutes, seconds = divmod(total_seconds, 60)
    if minutes > 0:
        if seconds > 0:
            return f"{minutes} minutes and {seconds} seconds"
        return f"{minutes} minutes"
    return f"{seconds} seconds"
