"""Tests for the player roster, rally board and saved rally groups."""

import pytest

from rallysync.core.enums import TimerState
from rallysync.core.errors import (
    GroupNotFoundError,
    InvalidInputError,
    RallySyncError,
    TimerNotActiveError,
)
from rallysync.core.models import Actor
from rallysync.core.roster import PlayerRoster, RallyBoard
from rallysync.voice.clock import ManualClock


@pytest.fixture
def roster(clock):
    """Roster on simulated time."""
    return PlayerRoster(clock=clock.now)


@pytest.fixture
def board(clock):
    """Rally board on simulated time."""
    return RallyBoard(clock=clock.now)


class TestPlayerRoster:
    """Tests for PlayerRoster."""

    def test_register_and_lookup(self, roster):
        actor = roster.register("Ann", 30, attack_group=2)

        assert roster.get("Ann") is actor
        assert roster.has("Ann")
        assert "Ann" in roster
        assert len(roster) == 1
        assert actor.registered_at == 1000.0

    def test_register_replaces_existing(self, roster):
        """Test that registering a known name overwrites it."""
        roster.register("Ann", 30)
        roster.register("Ann", 45)

        assert roster.count() == 1
        assert roster.get("Ann").travel_duration == 45

    def test_register_with_send_offset(self, roster):
        actor = roster.register("Ann", send_offset=65)

        assert actor.is_fixed
        assert actor.fixed_send_offset == 65

    @pytest.mark.parametrize("travel", [None, 0, -10])
    def test_register_requires_travel_time(self, roster, travel):
        with pytest.raises(InvalidInputError):
            roster.register("Ann", travel)

    def test_register_rejects_bad_group(self, roster):
        with pytest.raises(InvalidInputError):
            roster.register("Ann", 30, attack_group=0)

    def test_update(self, roster):
        roster.register("Ann", 30, attack_group=1)
        updated = roster.update("Ann", 50, attack_group=3)

        assert updated.travel_duration == 50
        assert updated.attack_group == 3
        assert roster.get("Ann") is updated

    def test_update_unknown_player(self, roster):
        with pytest.raises(InvalidInputError, match="not found"):
            roster.update("Ghost", 20)

    def test_remove_and_clear(self, roster):
        roster.register("Ann", 30)
        roster.register("Bob", 20, attack_group=2)
        roster.register("Cat", 10, attack_group=2)

        roster.remove("Ann")
        assert not roster.has("Ann")
        with pytest.raises(InvalidInputError):
            roster.remove("Ann")

        assert roster.clear_group(2) == 2
        assert roster.count() == 0

        roster.register("Dan", 5)
        assert roster.clear() == 1

    def test_group_queries(self, roster):
        roster.register("Ann", 30, attack_group=2)
        roster.register("Bob", 20, attack_group=1)
        roster.register("Cat", 10, attack_group=2)

        assert roster.attack_groups() == [1, 2]
        assert [a.name for a in roster.by_group(2)] == ["Ann", "Cat"]
        assert roster.count_by_group(2) == 2

    def test_calculate(self, roster):
        """Test the synchronized schedule over registered players."""
        roster.register("A", 10)
        roster.register("B", 15)
        roster.register("C", 20)

        schedule = roster.calculate()

        assert schedule.offsets() == {"A": 10, "B": 5, "C": 0}
        assert schedule.reference_time == 1000.0

    def test_calculate_skips_fixed_players(self, roster):
        roster.register("A", 10)
        roster.register("F", send_offset=30)

        assert roster.calculate().offsets() == {"A": 0}

    def test_calculate_missing_group(self, roster):
        roster.register("A", 10)

        with pytest.raises(GroupNotFoundError):
            roster.calculate(attack_group=4)

    def test_calculate_rejects_bad_group(self, roster):
        roster.register("A", 10)

        with pytest.raises(InvalidInputError):
            roster.calculate(attack_group=-1)

    def test_rosters_are_independent(self):
        first, second = PlayerRoster(), PlayerRoster()
        first.register("Ann", 30)

        assert not second.has("Ann")


class TestRallyBoard:
    """Tests for RallyBoard."""

    def test_add_is_pending(self, board, clock):
        timer = board.add("Alpha", 2, 10)

        assert timer.total_lead_time == 130
        assert timer.state(clock.now()) == TimerState.PENDING
        assert not board.is_started("Alpha")
        assert board.seconds_until_arrival("Alpha") is None

    @pytest.mark.parametrize("minutes, travel", [(0, 10), (2, 0), (-1, 10)])
    def test_add_validates_times(self, board, minutes, travel):
        with pytest.raises(InvalidInputError):
            board.add("Alpha", minutes, travel)

    def test_start_and_countdown(self, board, clock):
        board.add("Alpha", 2, 10)
        board.start("Alpha")

        assert board.is_started("Alpha")
        assert board.seconds_until_arrival("Alpha") == 130

        clock.advance(29.5)
        assert board.seconds_until_arrival("Alpha") == 101

        clock.advance(500)
        assert board.seconds_until_arrival("Alpha") == 0

    def test_start_twice_fails(self, board):
        board.add("Alpha", 2, 10)
        board.start("Alpha")

        with pytest.raises(RallySyncError, match="already been started"):
            board.start("Alpha")

    def test_update_only_while_pending(self, board):
        board.add("Alpha", 2, 10)
        updated = board.update("Alpha", 3, 5)
        assert updated.total_lead_time == 185

        board.start("Alpha")
        with pytest.raises(RallySyncError):
            board.update("Alpha", 1, 5)
        assert board.get("Alpha").total_lead_time == 185

    def test_add_replaces_pending_rally(self, board):
        board.add("Alpha", 2, 10)

        replaced = board.add("Alpha", 1, 5, attack_group=2)

        assert board.get("Alpha") is replaced
        assert replaced.total_lead_time == 65

    def test_add_keeps_running_rally(self, board, clock):
        running = board.add("Alpha", 2, 10)
        board.start("Alpha")

        with pytest.raises(RallySyncError, match="already running"):
            board.add("Alpha", 1, 5)

        assert board.get("Alpha") is running
        assert running.started_at == clock.now()

    def test_unknown_rally(self, board):
        with pytest.raises(InvalidInputError, match="Rally Ghost not found"):
            board.start("Ghost")

    def test_remove_and_clear(self, board):
        board.add("Alpha", 2, 10)
        board.add("Bravo", 1, 10, attack_group=2)

        board.remove("Alpha")
        assert not board.has("Alpha")
        assert board.attack_groups() == [2]
        assert board.clear() == 1

    def test_start_announcement(self, board):
        board.add("Alpha", 2, 10)

        assert board.start_announcement("Alpha") == (
            "Alpha has started a rally. Enemy will arrive in 2 minutes and 10 seconds. "
            "Prepare for reinforcement!"
        )
        assert board.start_announcement("Ghost") is None

    def test_calculate_requires_start(self, board):
        board.add("Alpha", 2, 10)

        with pytest.raises(TimerNotActiveError):
            board.calculate("Alpha", [Actor.travel("D", 30)])

    def test_calculate(self, board, clock):
        board.add("Alpha", 2, 10)
        board.start("Alpha")

        schedule = board.calculate("Alpha", [Actor.travel("D", 30)])

        assert schedule.offsets() == {"D": 98}


class TestSavedRallyGroups:
    """Tests for saved rally groups."""

    def test_save_and_get(self, board):
        saved = board.save_group("g1", "Alpha", 2, 10, ["Ann:30", "Bob:1:05"])

        assert board.has_saved("g1")
        assert board.get_saved("g1") is saved
        assert saved.total_lead_time == 130
        assert [p.name for p in saved.players] == ["Ann", "Bob"]
        assert saved.players[1].fixed_send_offset == 65

    def test_save_accepts_dicts_and_actors(self, board):
        saved = board.save_group(
            "g1",
            "Alpha",
            2,
            10,
            [{"name": "Ann", "travel_duration": 30}, {"name": "Bob", "send_offset": 65}, Actor.travel("Cat", 12)],
        )

        assert [p.name for p in saved.players] == ["Ann", "Bob", "Cat"]
        assert saved.players[1].is_fixed

    def test_save_rejects_empty_players(self, board):
        with pytest.raises(InvalidInputError):
            board.save_group("g1", "Alpha", 2, 10, [])

    def test_update_and_delete(self, board):
        board.save_group("g1", "Alpha", 2, 10, ["Ann:30"])
        updated = board.update_saved("g1", rally_minutes=3, players=["Bob:40"])

        assert updated.total_lead_time == 190
        assert [p.name for p in updated.players] == ["Bob"]
        assert updated.updated_at is not None

        board.delete_saved("g1")
        assert board.all_saved() == []
        with pytest.raises(InvalidInputError):
            board.delete_saved("g1")

    def test_load_registers_players_and_rally(self, board, roster):
        board.save_group("g1", "Alpha", 2, 10, ["Ann:30", "Bob:1:05"], attack_group=3)

        timer = board.load_saved("g1", roster)

        assert timer.name == "Alpha"
        assert timer.state() == TimerState.PENDING
        assert roster.get("Ann").attack_group == 3
        assert roster.get("Ann").saved_group_id == "g1"
        assert roster.get("Bob").is_fixed

    def test_reload_replaces_previous_members(self, board, roster):
        board.save_group("g1", "Alpha", 2, 10, ["Ann:30", "Bob:40"])
        board.load_saved("g1", roster)
        roster.register("Zed", 15)

        board.update_saved("g1", players=["Cat:20"])
        board.load_saved("g1", roster)

        assert sorted(a.name for a in roster.all()) == ["Cat", "Zed"]

    def test_load_while_rally_running(self, board, roster):
        board.save_group("g1", "Alpha", 2, 10, ["Cat:20"])
        board.add("Alpha", 2, 10)
        board.start("Alpha")
        roster.register("Ann", 30, saved_group_id="g1")

        with pytest.raises(RallySyncError, match="already running"):
            board.load_saved("g1", roster)

        assert board.is_started("Alpha")
        assert [a.name for a in roster.all()] == ["Ann"]

    def test_load_unknown(self, board, roster):
        with pytest.raises(InvalidInputError):
            board.load_saved("missing", roster)


def test_independent_clock_per_board():
    """Test that each board reads its own clock."""
    early, late = ManualClock(0.0), ManualClock(50.0)
    first, second = RallyBoard(clock=early.now), RallyBoard(clock=late.now)
    first.add("Alpha", 1, 30)
    second.add("Alpha", 1, 30)
    first.start("Alpha")
    second.start("Alpha")

    early.advance(10)

    assert first.seconds_until_arrival("Alpha") == 80
    assert second.seconds_until_arrival("Alpha") == 90
