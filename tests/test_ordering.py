"""
Tests for the ordering engine.

Tests cover:
- Minimal update sets for reorder, gap closing and insertion
- Strict and trust-the-caller reorder modes
- Index clamping
"""

import pytest

from tasktree.services import ordering
from tasktree.services.errors import InvalidOrderingError, RejectReason
from tests.helpers.factories import make_list


def group(*titles):
    """Build a dense sibling group of lists with ids equal to their titles."""
    return [make_list(title, order=index, list_id=title) for index, title in enumerate(titles)]


class TestHelpers:
    """Tests for the small ordering helpers."""

    def test_sort_by_order(self):
        members = [make_list("b", 1, "b"), make_list("a", 0, "a")]
        assert [m.id for m in ordering.sort_by_order(members)] == ["a", "b"]

    def test_next_order_is_group_size(self):
        assert ordering.next_order([]) == 0
        assert ordering.next_order(group("a", "b")) == 2

    @pytest.mark.parametrize(
        "index,count,expected",
        [(None, 3, 3), (0, 3, 0), (2, 3, 2), (7, 3, 3), (-4, 3, 0)],
    )
    def test_clamp_index(self, index, count, expected):
        assert ordering.clamp_index(index, count) == expected

    def test_is_dense(self):
        assert ordering.is_dense(group("a", "b", "c"))
        assert ordering.is_dense([])
        assert not ordering.is_dense([make_list("a", 0, "a"), make_list("b", 2, "b")])


class TestReorder:
    """Tests for reorder()."""

    def test_swap_writes_only_changed_members(self):
        """Swapping the first two of three touches exactly those two."""
        updates = ordering.reorder(group("a", "b", "c"), ["b", "a", "c"])
        assert updates == {"b": 0, "a": 1}

    def test_same_arrangement_is_empty(self):
        assert ordering.reorder(group("a", "b"), ["a", "b"]) == {}

    def test_strict_rejects_unknown_id(self):
        with pytest.raises(InvalidOrderingError) as exc_info:
            ordering.reorder(group("a", "b"), ["a", "b", "z"])
        assert exc_info.value.reason is RejectReason.INVALID_ORDERING

    def test_strict_rejects_omission(self):
        with pytest.raises(InvalidOrderingError, match="missing"):
            ordering.reorder(group("a", "b", "c"), ["a", "b"])

    def test_strict_rejects_duplicates(self):
        with pytest.raises(InvalidOrderingError, match="duplicates"):
            ordering.reorder(group("a", "b"), ["a", "a", "b"])

    def test_lenient_ignores_unknown_ids(self):
        """Unknown ids still consume an index; members already in place are not written."""
        updates = ordering.reorder(group("a", "b"), ["z", "b", "a"], strict=False)
        assert updates == {"a": 2}


class TestCloseGap:
    """Tests for close_gap()."""

    def test_remove_middle(self):
        assert ordering.close_gap(group("a", "b", "c", "d"), ["b"]) == {"c": 1, "d": 2}

    def test_remove_last_needs_no_writes(self):
        assert ordering.close_gap(group("a", "b", "c"), ["c"]) == {}

    def test_remove_several(self):
        assert ordering.close_gap(group("a", "b", "c", "d"), ["a", "c"]) == {"b": 0, "d": 1}

    def test_repairs_existing_gap(self):
        members = [make_list("a", 0, "a"), make_list("b", 5, "b")]
        assert ordering.close_gap(members, []) == {"b": 1}


class TestInsertAt:
    """Tests for insert_at()."""

    def test_append_new_member(self):
        position, updates = ordering.insert_at(group("a", "b"), "n")
        assert position == 2
        assert updates == {"n": 2}

    def test_insert_at_front_shifts_everyone(self):
        position, updates = ordering.insert_at(group("a", "b"), "n", 0)
        assert position == 0
        assert updates == {"n": 0, "a": 1, "b": 2}

    def test_index_clamped(self):
        position, updates = ordering.insert_at(group("a", "b"), "n", 99)
        assert position == 2
        assert updates == {"n": 2}

    def test_move_within_group(self):
        """An existing member is positioned among the other members."""
        position, updates = ordering.insert_at(group("a", "b", "c"), "a", 2)
        assert position == 2
        assert updates == {"b": 0, "c": 1, "a": 2}

    def test_moving_member_always_included(self):
        position, updates = ordering.insert_at(group("a", "b"), "b", 1)
        assert position == 1
        assert updates == {"b": 1}
