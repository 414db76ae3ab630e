"""
Ordering engine for TaskTree.

Keeps the ``order`` field of a sibling group dense and zero-based. A sibling
group is every task sharing a ``(list_id, parent_id)`` container, or every
list owned by one user.

All functions are pure: they take the current members (anything with ``id``
and ``order``) and return the minimal ``{id: new_order}`` update set needed to
reach the requested arrangement. Members whose rank does not change are left
out of the result.
"""

from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from tasktree.services.errors import InvalidOrderingError


class Ranked(Protocol):
    """Anything that takes part in a sibling group."""

    id: str
    order: int


def sort_by_order(members: Iterable[Ranked]) -> List[Ranked]:
    """Return members sorted by their current rank (stable for ties)."""
    return sorted(members, key=lambda member: member.order)


def next_order(members: Sequence[Ranked]) -> int:
    """Rank for a member appended to the group: the current group size."""
    return len(members)


def clamp_index(index: Optional[int], count: int) -> int:
    """
    Clamp an insertion index into ``[0, count]``.

    Args:
        index: Requested 0-based position, or None to append
        count: Number of members the item is inserted among

    Returns:
        Effective insertion position
    """
    if index is None:
        return count
    return min(max(index, 0), count)


def is_dense(members: Iterable[Ranked]) -> bool:
    """Check that the group's ranks are exactly ``0..n-1``."""
    orders = sorted(member.order for member in members)
    return orders == list(range(len(orders)))


def _diff(arrangement: Sequence[str], current: Dict[str, int]) -> Dict[str, int]:
    """Updates turning ``current`` into ranks matching ``arrangement``."""
    return {
        member_id: index
        for index, member_id in enumerate(arrangement)
        if current.get(member_id) != index
    }


def validate_arrangement(members: Sequence[Ranked], ordered_ids: Sequence[str]) -> None:
    """
    Check that ``ordered_ids`` is a permutation of the group's member ids.

    Raises:
        InvalidOrderingError: On duplicates, unknown ids or omitted members
    """
    if len(set(ordered_ids)) != len(ordered_ids):
        raise InvalidOrderingError("Ordered ids contain duplicates")

    member_ids = {member.id for member in members}
    requested = set(ordered_ids)
    if requested != member_ids:
        unknown = sorted(requested - member_ids)
        missing = sorted(member_ids - requested)
        raise InvalidOrderingError(
            f"Ordered ids do not match the sibling group: unknown={unknown}, missing={missing}"
        )


def reorder(
    members: Sequence[Ranked],
    ordered_ids: Sequence[str],
    strict: bool = True,
) -> Dict[str, int]:
    """
    Rank members by their index in ``ordered_ids``.

    Args:
        members: Current members of the sibling group
        ordered_ids: Desired arrangement
        strict: Require ``ordered_ids`` to be exactly the current members.
            When False the caller is trusted: ids not in the group are
            ignored and omitted members keep their rank.

    Returns:
        Minimal update set

    Raises:
        InvalidOrderingError: In strict mode, if the arrangement does not
            match the group
    """
    if strict:
        validate_arrangement(members, ordered_ids)

    current = {member.id: member.order for member in members}
    return {
        member_id: index
        for index, member_id in enumerate(ordered_ids)
        if member_id in current and current[member_id] != index
    }


def close_gap(members: Sequence[Ranked], removed_ids: Iterable[str]) -> Dict[str, int]:
    """
    Re-rank the members left after removing ``removed_ids``.

    Remaining members keep their relative order and are reassigned
    ``0..n-1``.

    Returns:
        Minimal update set for the remaining members
    """
    removed = set(removed_ids)
    remaining = [member for member in sort_by_order(members) if member.id not in removed]
    current = {member.id: member.order for member in remaining}
    return _diff([member.id for member in remaining], current)


def insert_at(
    members: Sequence[Ranked],
    moving_id: str,
    index: Optional[int] = None,
) -> Tuple[int, Dict[str, int]]:
    """
    Splice ``moving_id`` into the group at ``index`` and re-rank.

    ``members`` may or may not already contain the moving item; it is
    positioned among the *other* members either way, so the index is
    clamped to ``[0, number of other members]``.

    Args:
        members: Current members of the target group
        moving_id: Id of the item being inserted or moved
        index: Requested position, or None to append

    Returns:
        Tuple of (effective position, update set). The moving item is
        always part of the update set.
    """
    others = [member for member in sort_by_order(members) if member.id != moving_id]
    position = clamp_index(index, len(others))

    arrangement = [member.id for member in others]
    arrangement.insert(position, moving_id)

    current = {member.id: member.order for member in others}
    updates = _diff(arrangement, current)
    updates[moving_id] = position
    return position, updates
