"""Tests for the synchronized-arrival and deadline-driven calculators."""

import itertools

import pytest

from rallysync.core.errors import (
    EmptyInputError,
    GroupNotFoundError,
    InvalidInputError,
    TimerNotActiveError,
)
from rallysync.core.models import Actor, AdversaryTimer
from rallysync.core.enums import TimerState
from rallysync.core.timing import (
    SAFETY_MARGIN_SECONDS,
    calculate_deadline_schedule,
    calculate_sync_schedule,
    validate_attack_group,
)


class TestSyncSchedule:
    """Tests for calculate_sync_schedule."""

    def test_three_actor_example(self, abc_actors):
        """Test offsets and ranks for A=10s, B=15s, C=20s."""
        schedule = calculate_sync_schedule(abc_actors, now=500.0)

        assert schedule.total_duration == 20
        assert schedule.offsets() == {"A": 10, "B": 5, "C": 0}
        assert schedule.ranks() == {"C": 1, "B": 2, "A": 3}
        assert schedule.reference_time == 500.0
        assert not schedule.is_deadline_driven

    def test_everyone_arrives_together(self):
        """Test fire_offset + travel_duration == total_duration for every actor."""
        actors = [Actor.travel(f"P{i}", seconds) for i, seconds in enumerate([3, 47, 12, 47, 90, 1])]
        schedule = calculate_sync_schedule(actors, now=0)

        for entry in schedule:
            assert entry.fire_offset + entry.actor.travel_duration == schedule.total_duration
            assert entry.fire_offset >= 0

    def test_stable_under_input_reordering(self):
        """Test that permuting the input yields identical entries."""
        actors = [
            Actor.travel("Zed", 30),
            Actor.travel("Amy", 30),
            Actor.travel("Bob", 10),
            Actor.travel("Cat", 20),
        ]
        baseline = calculate_sync_schedule(actors, now=0)
        expected = [(e.name, e.fire_offset, e.rank) for e in baseline.entries]

        for permutation in itertools.permutations(actors):
            schedule = calculate_sync_schedule(list(permutation), now=0)
            assert [(e.name, e.fire_offset, e.rank) for e in schedule.entries] == expected

    def test_entries_equal_regardless_of_registration_time(self):
        """Test that actors built at different instants give equal entries."""
        first = [Actor.travel("A", 10, registered_at=100.0), Actor.travel("B", 20, registered_at=100.0)]
        later = [Actor.travel("B", 20, registered_at=250.0), Actor.travel("A", 10, registered_at=250.0)]

        assert first[0] == later[1]
        assert calculate_sync_schedule(first, now=0).entries == calculate_sync_schedule(later, now=0).entries

    def test_ties_broken_by_name(self):
        """Test that equal offsets rank alphabetically."""
        actors = [Actor.travel("Zed", 30), Actor.travel("Amy", 30)]
        schedule = calculate_sync_schedule(actors, now=0)

        assert [e.name for e in schedule.entries] == ["Amy", "Zed"]
        assert schedule.ranks() == {"Amy": 1, "Zed": 2}

    def test_empty_input(self):
        """Test that an empty actor list is rejected."""
        with pytest.raises(EmptyInputError):
            calculate_sync_schedule([])

    def test_group_filter(self):
        """Test that only the requested group is scheduled."""
        actors = [
            Actor.travel("A", 10, attack_group=1),
            Actor.travel("B", 40, attack_group=2),
            Actor.travel("C", 25, attack_group=2),
        ]
        schedule = calculate_sync_schedule(actors, attack_group=2, now=0)

        assert schedule.offsets() == {"B": 0, "C": 15}
        assert schedule.attack_group == 2

    def test_group_not_found(self, abc_actors):
        """Test that a group with no members is reported precisely."""
        with pytest.raises(GroupNotFoundError) as exc_info:
            calculate_sync_schedule(abc_actors, attack_group=5)

        assert exc_info.value.attack_group == 5
        assert "attack group 5" in str(exc_info.value)

    def test_duplicate_names_rejected(self):
        """Test that a name may appear only once per schedule."""
        with pytest.raises(InvalidInputError):
            calculate_sync_schedule([Actor.travel("A", 10), Actor.travel("A", 20)])

    def test_fixed_actors_rejected(self):
        """Test that fixed send times need the deadline calculator."""
        with pytest.raises(InvalidInputError):
            calculate_sync_schedule([Actor.travel("A", 10), Actor.fixed("B", 60)])


class TestValidateAttackGroup:
    """Tests for boundary validation of attack group filters."""

    @pytest.mark.parametrize("value", [0, -1, -20])
    def test_non_positive_rejected(self, value):
        with pytest.raises(InvalidInputError):
            validate_attack_group(value)

    @pytest.mark.parametrize("value", [1.5, "2", True])
    def test_non_integer_rejected(self, value):
        with pytest.raises(InvalidInputError):
            validate_attack_group(value)

    def test_none_means_all_groups(self):
        assert validate_attack_group(None) is None
        assert validate_attack_group(3) == 3


class TestDeadlineSchedule:
    """Tests for calculate_deadline_schedule."""

    def test_rally_example(self):
        """Test the 2m10s rally with a 30s actor."""
        timer = AdversaryTimer("Alpha", 130)
        timer.start(now=1000.0)

        schedule = calculate_deadline_schedule(timer, [Actor.travel("D", 30)], now=1000.0)

        assert schedule.target_arrival == 1130.0
        assert schedule.our_fire_instant == 1130.0 - SAFETY_MARGIN_SECONDS
        assert schedule.offsets() == {"D": 98}
        assert schedule.rally_name == "Alpha"
        assert schedule.is_deadline_driven

    def test_offsets_measured_from_now(self):
        """Test that offsets shrink as time passes after the rally start."""
        timer = AdversaryTimer("Alpha", 130)
        timer.start(now=1000.0)

        schedule = calculate_deadline_schedule(timer, [Actor.travel("D", 30)], now=1040.0)

        assert schedule.offsets() == {"D": 58}
        assert schedule.total_duration == 90

    def test_partial_seconds_round_up(self):
        """Test ceil((T0 + 98) - now) for a fractional now."""
        timer = AdversaryTimer("Alpha", 130)
        timer.start(now=1000.0)

        schedule = calculate_deadline_schedule(timer, [Actor.travel("D", 30)], now=1000.4)

        assert schedule.offsets() == {"D": 98}

    def test_past_trigger_clamps_to_zero(self):
        """Test that an actor too slow to make it sends immediately."""
        timer = AdversaryTimer("Alpha", 60)
        timer.start(now=0.0)

        schedule = calculate_deadline_schedule(
            timer, [Actor.travel("Slow", 200), Actor.travel("Fast", 10)], now=0.0
        )

        assert schedule.offsets() == {"Slow": 0, "Fast": 48}
        assert all(entry.fire_offset >= 0 for entry in schedule)

    def test_fixed_send_offset(self):
        """Test that fixed actors send relative to the rally start."""
        timer = AdversaryTimer("Alpha", 130)
        timer.start(now=1000.0)

        schedule = calculate_deadline_schedule(
            timer, [Actor.fixed("E", 65), Actor.travel("D", 30)], now=1010.0
        )

        assert schedule.offsets() == {"E": 55, "D": 88}
        assert [e.name for e in schedule.entries] == ["E", "D"]

    def test_total_duration_reaches_arrival(self):
        """Test that the run lasts until the rally lands."""
        timer = AdversaryTimer("Alpha", 130)
        timer.start(now=1000.0)

        schedule = calculate_deadline_schedule(timer, [Actor.travel("D", 30)], now=1000.0)

        assert schedule.total_duration == 130

    def test_pending_timer_rejected(self):
        """Test that a rally must be started first."""
        timer = AdversaryTimer("Alpha", 130)

        with pytest.raises(TimerNotActiveError) as exc_info:
            calculate_deadline_schedule(timer, [Actor.travel("D", 30)], now=0.0)

        assert "not been started" in str(exc_info.value)

    def test_expired_timer_rejected(self):
        """Test that a rally that already landed cannot be countered."""
        timer = AdversaryTimer("Alpha", 130)
        timer.start(now=0.0)

        assert timer.state(now=130.0) == TimerState.EXPIRED
        with pytest.raises(TimerNotActiveError):
            calculate_deadline_schedule(timer, [Actor.travel("D", 30)], now=130.0)

    def test_empty_actors(self):
        """Test that a counter-attack needs players."""
        timer = AdversaryTimer("Alpha", 130)
        timer.start(now=0.0)

        with pytest.raises(EmptyInputError):
            calculate_deadline_schedule(timer, [], now=0.0)


class TestAdversaryTimer:
    """Tests for the AdversaryTimer state machine."""

    def test_lifecycle(self):
        timer = AdversaryTimer("Alpha", 90)

        assert timer.state(now=0.0) == TimerState.PENDING
        assert timer.arrival_instant is None

        timer.start(now=10.0)
        assert timer.state(now=50.0) == TimerState.ACTIVE
        assert timer.arrival_instant == 100.0
        assert timer.state(now=100.0) == TimerState.EXPIRED

    def test_cannot_start_twice(self):
        timer = AdversaryTimer("Alpha", 90)
        timer.start(now=0.0)

        with pytest.raises(Exception, match="already been started"):
            timer.start(now=5.0)

    def test_lead_time_is_read_only(self):
        timer = AdversaryTimer("Alpha", 90)

        with pytest.raises(AttributeError):
            timer.total_lead_time = 10

    @pytest.mark.parametrize("lead", [0, -5])
    def test_invalid_lead_time(self, lead):
        with pytest.raises(InvalidInputError):
            AdversaryTimer("Alpha", lead)
