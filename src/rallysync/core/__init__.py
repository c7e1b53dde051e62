"""Pure timing core: data model, calculators, grouping and stores."""

from .config import SyncConfig
from .enums import ActorVariant, CueKind, SessionState, TimerState
from .errors import (
    EmptyInputError,
    GroupNotFoundError,
    InvalidInputError,
    InvalidStateError,
    NoOutputSinkError,
    RallySyncError,
    RenderFailure,
    TimerNotActiveError,
    TransportFailure,
)
from .grouping import flatten_groups, group_schedule
from .models import (
    Actor,
    AdversaryTimer,
    AnnouncementGroup,
    ScheduleEntry,
    SynchronizedSchedule,
)
from .roster import PlayerRoster, RallyBoard, SavedRallyGroup
from .timing import (
    SAFETY_MARGIN_SECONDS,
    calculate_deadline_schedule,
    calculate_sync_schedule,
    format_spoken_duration,
    format_time_remaining,
    format_time_string,
    parse_player_string,
    parse_time_string,
    validate_attack_group,
)

__all__ = [
    "SyncConfig",
    "ActorVariant",
    "CueKind",
    "SessionState",
    "TimerState",
    "RallySyncError",
    "InvalidInputError",
    "InvalidStateError",
    "EmptyInputError",
    "GroupNotFoundError",
    "TimerNotActiveError",
    "NoOutputSinkError",
    "RenderFailure",
    "TransportFailure",
    "group_schedule",
    "flatten_groups",
    "Actor",
    "AdversaryTimer",
    "AnnouncementGroup",
    "ScheduleEntry",
    "SynchronizedSchedule",
    "PlayerRoster",
    "RallyBoard",
    "SavedRallyGroup",
    "SAFETY_MARGIN_SECONDS",
    "calculate_sync_schedule",
    "calculate_deadline_schedule",
    "validate_attack_group",
    "parse_time_string",
    "parse_player_string",
    "format_time_string",
    "format_time_remaining",
    "format_spoken_duration",
]
