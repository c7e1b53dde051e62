"""In-memory stores for registered players, enemy rallies and saved rally groups.

Each store is an owned object rather than module state, so several bots (or
tests) can run side by side with independent rosters.
"""

import dataclasses
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from .enums import ActorVariant
from .errors import InvalidInputError, RallySyncError
from .models import Actor, AdversaryTimer, SynchronizedSchedule
from .timing import (
    calculate_deadline_schedule,
    calculate_sync_schedule,
    format_spoken_duration,
    parse_player_string,
    validate_attack_group,
)

logger = logging.getLogger(__name__)


class PlayerRoster:
    """Registered players keyed by name."""

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        """Initialize an empty roster.

        Args:
            clock: Callable returning the current time (default: time.time)
        """
        self._players: Dict[str, Actor] = {}
        self._now = clock or time.time

    def register(
        self,
        name: str,
        travel_seconds: Optional[int] = None,
        attack_group: int = 1,
        saved_group_id: Optional[str] = None,
        send_offset: Optional[int] = None,
    ) -> Actor:
        """Register (or replace) a player.

        Args:
            name: Player name, unique within the roster
            travel_seconds: Seconds to reach the target; must be > 0 unless
                send_offset is given
            attack_group: Attack group (> 0)
            saved_group_id: Saved rally group the player was loaded from
            send_offset: Fixed send time in seconds after a rally starts

        Returns:
            The registered Actor
        """
        validate_attack_group(attack_group)

        if send_offset is not None:
            actor = Actor.fixed(
                name,
                send_offset,
                attack_group=attack_group,
                saved_group_id=saved_group_id,
                registered_at=self._now(),
            )
        else:
            if travel_seconds is None or travel_seconds <= 0:
                raise InvalidInputError(
                    "Time to destination must be greater than 0 or send time must be provided"
                )
            actor = Actor.travel(
                name,
                travel_seconds,
                attack_group=attack_group,
                saved_group_id=saved_group_id,
                registered_at=self._now(),
            )

        self._players[actor.name] = actor
        logger.debug(f"Registered player {actor.name} (group {actor.attack_group})")
        return actor

    def update(
        self,
        name: str,
        travel_seconds: int,
        attack_group: Optional[int] = None,
    ) -> Actor:
        """Update a player's travel time and optionally their group."""
        current = self.get(name)
        if current is None:
            raise InvalidInputError(f"Player {name} not found")
        if travel_seconds is None or travel_seconds <= 0:
            raise InvalidInputError("Time to destination must be greater than 0")
        validate_attack_group(attack_group)

        updated = dataclasses.replace(
            current,
            variant=ActorVariant.TRAVEL,
            travel_duration=travel_seconds,
            fixed_send_offset=None,
            attack_group=attack_group if attack_group is not None else current.attack_group,
        )
        self._players[updated.name] = updated
        return updated

    def remove(self, name: str) -> Actor:
        if name not in self._players:
            raise InvalidInputError(f"Player {name} not found")
        return self._players.pop(name)

    def clear(self) -> int:
        """Remove all players, returning how many were removed."""
        count = len(self._players)
        self._players.clear()
        return count

    def clear_group(self, attack_group: int) -> int:
        """Remove all players of one attack group."""
        validate_attack_group(attack_group)
        names = [p.name for p in self._players.values() if p.attack_group == attack_group]
        for name in names:
            del self._players[name]
        return len(names)

    def get(self, name: str) -> Optional[Actor]:
        return self._players.get(name)

    def has(self, name: str) -> bool:
        return name in self._players

    def all(self) -> List[Actor]:
        return list(self._players.values())

    def by_group(self, attack_group: int) -> List[Actor]:
        return [p for p in self._players.values() if p.attack_group == attack_group]

    def attack_groups(self) -> List[int]:
        """Distinct attack groups, ascending."""
        return sorted({p.attack_group for p in self._players.values()})

    def count(self) -> int:
        return len(self._players)

    def count_by_group(self, attack_group: int) -> int:
        return len(self.by_group(attack_group))

    def __len__(self) -> int:
        return len(self._players)

    def __contains__(self, name: str) -> bool:
        return name in self._players

    def calculate(self, attack_group: Optional[int] = None) -> SynchronizedSchedule:
        """Synchronized-arrival schedule for all players or one group."""
        validate_attack_group(attack_group)
        travel_players = [p for p in self._players.values() if not p.is_fixed]
        return calculate_sync_schedule(travel_players, attack_group, now=self._now())


@dataclass
class SavedRallyGroup:
    """A reusable rally setup: enemy rally timing plus the players who counter it."""

    group_id: str
    rally_name: str
    rally_minutes: int
    travel_seconds: int
    players: List[Actor]
    attack_group: int = 1
    saved_at: float = field(default_factory=time.time)
    updated_at: Optional[float] = None

    @property
    def total_lead_time(self) -> int:
        return self.rally_minutes * 60 + self.travel_seconds


class RallyBoard:
    """Enemy rallies being tracked, plus saved rally groups."""

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._rallies: Dict[str, AdversaryTimer] = {}
        self._saved: Dict[str, SavedRallyGroup] = {}
        self._now = clock or time.time

    # =========================================================================
    # ACTIVE RALLIES
    # =========================================================================

    def add(
        self,
        name: str,
        rally_minutes: int,
        travel_seconds: int,
        attack_group: int = 1,
    ) -> AdversaryTimer:
        """Track a new enemy rally (pending until started).

        A pending rally with the same name is replaced; a running one is not.
        """
        _validate_rally_times(rally_minutes, travel_seconds)
        validate_attack_group(attack_group)

        timer = AdversaryTimer(
            name,
            rally_minutes * 60 + travel_seconds,
            attack_group=attack_group,
            created_at=self._now(),
        )
        self._ensure_replaceable(timer.name)
        if timer.name in self._rallies:
            logger.warning(f"Replacing pending rally {timer.name}")
        self._rallies[timer.name] = timer
        logger.info(f"Tracking rally {timer.name}: lead time {timer.total_lead_time}s")
        return timer

    def update(
        self,
        name: str,
        rally_minutes: int,
        travel_seconds: int,
        attack_group: Optional[int] = None,
    ) -> AdversaryTimer:
        """Replace a pending rally's timing.

        Lead time is fixed once a rally is running, so started rallies
        cannot be updated.
        """
        current = self._require(name)
        if current.is_started:
            raise RallySyncError(f"Rally {name} is already running and cannot be changed")
        _validate_rally_times(rally_minutes, travel_seconds)
        validate_attack_group(attack_group)

        timer = AdversaryTimer(
            current.name,
            rally_minutes * 60 + travel_seconds,
            attack_group=attack_group if attack_group is not None else current.attack_group,
            created_at=current.created_at,
        )
        self._rallies[timer.name] = timer
        return timer

    def remove(self, name: str) -> AdversaryTimer:
        self._require(name)
        return self._rallies.pop(name)

    def clear(self) -> int:
        count = len(self._rallies)
        self._rallies.clear()
        return count

    def get(self, name: str) -> Optional[AdversaryTimer]:
        return self._rallies.get(name)

    def has(self, name: str) -> bool:
        return name in self._rallies

    def all(self) -> List[AdversaryTimer]:
        return list(self._rallies.values())

    def by_group(self, attack_group: int) -> List[AdversaryTimer]:
        return [r for r in self._rallies.values() if r.attack_group == attack_group]

    def attack_groups(self) -> List[int]:
        return sorted({r.attack_group for r in self._rallies.values()})

    def count(self) -> int:
        return len(self._rallies)

    def start(self, name: str) -> AdversaryTimer:
        """Mark a rally as started now."""
        timer = self._require(name)
        timer.start(self._now())
        logger.info(f"Rally {name} started")
        return timer

    def is_started(self, name: str) -> bool:
        timer = self.get(name)
        return timer is not None and timer.is_started

    def seconds_until_arrival(self, name: str) -> Optional[int]:
        """Whole seconds until the enemy arrives, None if not started."""
        timer = self._require(name)
        if not timer.is_started:
            return None
        remaining = timer.arrival_instant - self._now()
        if remaining <= 0:
            return 0
        return math.ceil(remaining)

    def start_announcement(self, name: str) -> Optional[str]:
        """Spoken text announcing that a rally has started."""
        timer = self.get(name)
        if timer is None:
            return None
        spoken = format_spoken_duration(timer.total_lead_time)
        return (
            f"{timer.name} has started a rally. Enemy will arrive in {spoken}. "
            "Prepare for reinforcement!"
        )

    def calculate(self, name: str, actors: Sequence[Actor]) -> SynchronizedSchedule:
        """Deadline-driven schedule for a started rally."""
        return calculate_deadline_schedule(self._require(name), actors, now=self._now())

    def _ensure_replaceable(self, name: str) -> None:
        current = self._rallies.get(name)
        if current is not None and current.is_started:
            raise RallySyncError(
                f"Rally {name} is already running. Remove it before adding it again"
            )

    def _require(self, name: str) -> AdversaryTimer:
        timer = self._rallies.get(name)
        if timer is None:
            raise InvalidInputError(f"Rally {name} not found")
        return timer

    # =========================================================================
    # SAVED RALLY GROUPS
    # =========================================================================

    def save_group(
        self,
        group_id: str,
        rally_name: str,
        rally_minutes: int,
        travel_seconds: int,
        players: Sequence[Union[str, Actor, Dict[str, Any]]],
        attack_group: int = 1,
    ) -> SavedRallyGroup:
        """Save a rally setup for later reuse (in memory)."""
        if not group_id or not group_id.strip():
            raise InvalidInputError("Group ID cannot be empty")
        if not rally_name or not rally_name.strip():
            raise InvalidInputError("Rally name cannot be empty")
        _validate_rally_times(rally_minutes, travel_seconds)
        validate_attack_group(attack_group)

        saved = SavedRallyGroup(
            group_id=group_id.strip(),
            rally_name=rally_name.strip(),
            rally_minutes=rally_minutes,
            travel_seconds=travel_seconds,
            players=_coerce_players(players),
            attack_group=attack_group,
            saved_at=self._now(),
        )
        self._saved[saved.group_id] = saved
        return saved

    def get_saved(self, group_id: str) -> Optional[SavedRallyGroup]:
        return self._saved.get(group_id)

    def all_saved(self) -> List[SavedRallyGroup]:
        return list(self._saved.values())

    def has_saved(self, group_id: str) -> bool:
        return group_id in self._saved

    def delete_saved(self, group_id: str) -> None:
        if group_id not in self._saved:
            raise InvalidInputError(f'Saved rally group "{group_id}" not found')
        del self._saved[group_id]

    def update_saved(
        self,
        group_id: str,
        rally_name: Optional[str] = None,
        rally_minutes: Optional[int] = None,
        travel_seconds: Optional[int] = None,
        players: Optional[Sequence[Union[str, Actor, Dict[str, Any]]]] = None,
    ) -> SavedRallyGroup:
        """Update selected fields of a saved rally group."""
        saved = self._saved.get(group_id)
        if saved is None:
            raise InvalidInputError(f'Saved rally group "{group_id}" not found')

        if rally_name is not None:
            if not rally_name.strip():
                raise InvalidInputError("Rally name cannot be empty")
            saved.rally_name = rally_name.strip()
        if rally_minutes is not None or travel_seconds is not None:
            minutes = rally_minutes if rally_minutes is not None else saved.rally_minutes
            travel = travel_seconds if travel_seconds is not None else saved.travel_seconds
            _validate_rally_times(minutes, travel)
            saved.rally_minutes, saved.travel_seconds = minutes, travel
        if players is not None:
            saved.players = _coerce_players(players)

        saved.updated_at = self._now()
        return saved

    def load_saved(self, group_id: str, roster: PlayerRoster) -> AdversaryTimer:
        """Register a saved group's players and track its rally.

        Players previously loaded from the same group are replaced.
        """
        saved = self._saved.get(group_id)
        if saved is None:
            raise InvalidInputError(f'Saved rally group "{group_id}" not found')
        self._ensure_replaceable(saved.rally_name)

        for actor in roster.all():
            if actor.saved_group_id == group_id:
                roster.remove(actor.name)

        for actor in saved.players:
            if actor.is_fixed:
                roster.register(
                    actor.name,
                    attack_group=saved.attack_group,
                    saved_group_id=group_id,
                    send_offset=actor.fixed_send_offset,
                )
            else:
                roster.register(
                    actor.name,
                    actor.travel_duration,
                    attack_group=saved.attack_group,
                    saved_group_id=group_id,
                )

        logger.info(f"Loaded saved rally group {group_id}: {len(saved.players)} players")
        return self.add(
            saved.rally_name,
            saved.rally_minutes,
            saved.travel_seconds,
            saved.attack_group,
        )


def _validate_rally_times(rally_minutes: int, travel_seconds: int) -> None:
    if rally_minutes is None or rally_minutes <= 0:
        raise InvalidInputError("Rally time must be greater than 0")
    if travel_seconds is None or travel_seconds <= 0:
        raise InvalidInputError("Travel distance must be greater than 0")


def _coerce_players(players: Sequence[Union[str, Actor, Dict[str, Any]]]) -> List[Actor]:
    """Accept "Name:25" strings, Actor objects or dicts."""
    if not players:
        raise InvalidInputError("At least one player must be provided")

    result = []
    for player in players:
        if isinstance(player, Actor):
            result.append(player)
        elif isinstance(player, str):
            result.append(parse_player_string(player))
        elif isinstance(player, dict):
            name = str(player.get("name", "")).strip()
            if not name:
                raise InvalidInputError("Player name cannot be empty")
            travel = player.get("travel_duration")
            send = player.get("send_offset")
            if travel and travel > 0:
                result.append(Actor.travel(name, travel))
            elif send and send > 0:
                result.append(Actor.fixed(name, send))
            else:
                raise InvalidInputError(
                    f"Player {name} must have either travel_duration or send_offset"
                )
        else:
            raise InvalidInputError("Invalid player format")
    return result
