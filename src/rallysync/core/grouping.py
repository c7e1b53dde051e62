"""Group schedule entries that share a fire offset.

Players sending at the same second get one combined announcement
("Alice, Bob go!") instead of overlapping individual ones.
"""

from typing import Dict, Iterable, List, Union

from .models import AnnouncementGroup, ScheduleEntry, SynchronizedSchedule


def group_schedule(
    schedule: Union[SynchronizedSchedule, Iterable[ScheduleEntry]],
) -> List[AnnouncementGroup]:
    """Partition entries into groups keyed by exact fire offset.

    Groups come back in ascending offset order; members keep rank order.
    """
    groups: Dict[int, List[ScheduleEntry]] = {}
    for entry in schedule:
        groups.setdefault(entry.fire_offset, []).append(entry)

    return [
        AnnouncementGroup(
            fire_offset=offset,
            entries=sorted(entries, key=lambda e: (e.rank, e.name)),
        )
        for offset, entries in sorted(groups.items())
    ]


def flatten_groups(groups: Iterable[AnnouncementGroup]) -> List[ScheduleEntry]:
    """Entries of all groups in narration order."""
    return [entry for group in groups for entry in group.entries]
