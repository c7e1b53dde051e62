"""Tests for schedule grouping."""

from rallysync.core.grouping import flatten_groups, group_schedule
from rallysync.core.models import Actor
from rallysync.core.timing import calculate_sync_schedule


def _schedule():
    actors = [
        Actor.travel("Dan", 10),
        Actor.travel("Bea", 30),
        Actor.travel("Cal", 10),
        Actor.travel("Ann", 30),
        Actor.travel("Eve", 20),
    ]
    return calculate_sync_schedule(actors, now=0)


class TestGroupSchedule:
    """Tests for group_schedule."""

    def test_groups_by_exact_offset(self):
        """Test that actors sharing a fire offset share a group."""
        groups = group_schedule(_schedule())

        assert [g.fire_offset for g in groups] == [0, 10, 20]
        assert [g.names for g in groups] == [["Ann", "Bea"], ["Eve"], ["Cal", "Dan"]]

    def test_members_keep_rank_order(self):
        """Test that members within a group are in rank order."""
        for group in group_schedule(_schedule()):
            ranks = [entry.rank for entry in group.entries]
            assert ranks == sorted(ranks)

    def test_grouping_is_idempotent(self):
        """Test that regrouping the flattened groups reproduces them."""
        groups = group_schedule(_schedule())
        regrouped = group_schedule(flatten_groups(groups))

        assert regrouped == groups

    def test_accepts_unordered_entries(self):
        """Test that input order of entries does not matter."""
        entries = list(reversed(_schedule().entries))

        assert group_schedule(entries) == group_schedule(_schedule())

    def test_single_actor(self):
        groups = group_schedule(calculate_sync_schedule([Actor.travel("Solo", 45)], now=0))

        assert len(groups) == 1
        assert groups[0].fire_offset == 0
        assert groups[0].names == ["Solo"]

    def test_flatten_preserves_narration_order(self):
        flattened = flatten_groups(group_schedule(_schedule()))

        assert [entry.name for entry in flattened] == ["Ann", "Bea", "Eve", "Cal", "Dan"]
