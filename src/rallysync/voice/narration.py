"""Narration script for a countdown run.

Turns a schedule into timed announcement cues:

    offset 0                  intro (optional)
    first_offset - lead       "Be ready." (when that lands after 0)
    1 .. last group offset    "1.", "2.", ... (optional spoken count)
    each group offset         "<names> go!"
    total_duration            "Rally complete." / "Sequence complete."

Cues at the same offset are spoken in the order above. The synchronized
intro lists every player's start second and ends with a "Three. Two. One. Go."
lead-in for the first player.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..core.enums import CueKind
from ..core.grouping import group_schedule
from ..core.models import AnnouncementGroup, SynchronizedSchedule
from ..core.timing import (
    SAFETY_MARGIN_SECONDS,
    format_spoken_duration,
    format_time_remaining,
    format_time_string,
)

PREPARE_TEXT = "Be ready."
RALLY_COMPLETE_TEXT = "Rally complete."
SEQUENCE_COMPLETE_TEXT = "Sequence complete."

_KIND_ORDER = {
    CueKind.INTRO: 0,
    CueKind.PREPARE: 1,
    CueKind.COUNT: 2,
    CueKind.GROUP: 3,
    CueKind.COMPLETE: 4,
}


@dataclass
class AnnouncementCue:
    """One line to speak at a given offset."""

    offset: int
    text: str
    kind: CueKind = CueKind.GROUP
    group: Optional[AnnouncementGroup] = None

    @property
    def sort_key(self):
        return (self.offset, _KIND_ORDER[self.kind])


def group_announcement_text(group: AnnouncementGroup) -> str:
    """Spoken text for a group, e.g. "Alice, Bob go!"."""
    return f"{', '.join(group.names)} go!"


def intro_text(schedule: SynchronizedSchedule, lead_time: Optional[int] = None) -> str:
    """Opening line for a run.

    Args:
        schedule: The schedule being announced
        lead_time: Rally lead time to announce; defaults to the time left
            until the rally lands
    """
    if schedule.is_deadline_driven:
        if lead_time is None:
            lead_time = max(0, math.ceil(schedule.target_arrival - schedule.reference_time))
        return (
            f"{schedule.rally_name} has started a rally. "
            f"It will arrive in {format_spoken_duration(lead_time)}."
        )

    first = schedule.entries[0].name
    lines = [f"Synchronized attack sequence. {first} starts first."]
    for entry in schedule.entries:
        if entry.fire_offset == 0:
            lines.append(f"{entry.name} starts immediately.")
        else:
            lines.append(f"{entry.name} starts at second {entry.fire_offset}.")
    lines.append(count_in_text(first))
    return " ".join(lines)


def count_in_text(name: str) -> str:
    """Lead-in for the first player, e.g. "Alice ready. Three. Two. One. Go."."""
    return f"{name} ready. Three. Two. One. Go."


def count_text(second: int) -> str:
    return f"{second}."


def completion_text(schedule: SynchronizedSchedule) -> str:
    return RALLY_COMPLETE_TEXT if schedule.is_deadline_driven else SEQUENCE_COMPLETE_TEXT


def build_cues(
    groups: Sequence[AnnouncementGroup],
    total_duration: int,
    intro: Optional[str] = None,
    prepare_lead_seconds: int = 0,
    completion: Optional[str] = SEQUENCE_COMPLETE_TEXT,
    count_to: int = 0,
) -> List[AnnouncementCue]:
    """Lay out every cue of a run in speaking order.

    Args:
        groups: Announcement groups (any order)
        total_duration: Offset of the completion cue
        intro: Spoken at offset 0 before anything else; None skips it
        prepare_lead_seconds: "Be ready." this long before the first group;
            skipped when 0 or when it would land at or before offset 0
        completion: Spoken at total_duration; None skips it
        count_to: Speak each second 1..count_to; 0 disables the count
    """
    cues = []
    if intro:
        cues.append(AnnouncementCue(offset=0, text=intro, kind=CueKind.INTRO))

    ordered = sorted(groups, key=lambda group: group.fire_offset)
    if ordered and prepare_lead_seconds > 0:
        prepare_at = ordered[0].fire_offset - prepare_lead_seconds
        if prepare_at > 0:
            cues.append(AnnouncementCue(offset=prepare_at, text=PREPARE_TEXT, kind=CueKind.PREPARE))

    for second in range(1, count_to + 1):
        cues.append(AnnouncementCue(offset=second, text=count_text(second), kind=CueKind.COUNT))

    for group in ordered:
        cues.append(
            AnnouncementCue(
                offset=group.fire_offset,
                text=group_announcement_text(group),
                kind=CueKind.GROUP,
                group=group,
            )
        )

    if completion:
        cues.append(AnnouncementCue(offset=total_duration, text=completion, kind=CueKind.COMPLETE))

    # sorted() is stable, so cues of one kind keep their group order
    return sorted(cues, key=lambda cue: cue.sort_key)


def narrate(
    schedule: SynchronizedSchedule,
    announce_intro: bool = True,
    prepare_lead_seconds: int = 10,
    lead_time: Optional[int] = None,
    spoken_count: bool = False,
) -> List[AnnouncementCue]:
    """Cues for a schedule using the standard wording.

    ``spoken_count`` adds a per-second count up to the last player's start.
    It only applies to synchronized schedules; a rally countdown is paced by
    its group calls.
    """
    count_to = 0
    if spoken_count and not schedule.is_deadline_driven:
        count_to = max(entry.fire_offset for entry in schedule.entries)

    return build_cues(
        group_schedule(schedule),
        schedule.total_duration,
        intro=intro_text(schedule, lead_time) if announce_intro else None,
        prepare_lead_seconds=prepare_lead_seconds,
        completion=completion_text(schedule),
        count_to=count_to,
    )


def describe_schedule(schedule: SynchronizedSchedule) -> str:
    """Plain-text preview of a schedule, one line per player."""
    lines = []
    if schedule.is_deadline_driven:
        remaining = max(0, math.ceil(schedule.target_arrival - schedule.reference_time))
        lines.append(
            f"Rally {schedule.rally_name} lands in {format_time_remaining(remaining)}. "
            f"Counter-attack lands {SAFETY_MARGIN_SECONDS}s earlier."
        )
    else:
        header = "Synchronized attack"
        if schedule.attack_group is not None:
            header += f" (group {schedule.attack_group})"
        lines.append(f"{header}: all land after {format_time_string(schedule.total_duration)}.")

    for entry in schedule.entries:
        actor = entry.actor
        if actor.is_fixed:
            detail = f"fixed send at {format_time_string(actor.fixed_send_offset)}"
        else:
            detail = f"travel {format_time_string(actor.travel_duration)}"
        when = "now" if entry.fire_offset == 0 else f"in {format_time_string(entry.fire_offset)}"
        lines.append(f"{entry.rank}. {entry.name}: send {when} ({detail})")

    return "\n".join(lines)
