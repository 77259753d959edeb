"""
Turn service: who gives the next clue

Clues are given in strict seat order (join order). The turn starts
with the alive player in the lowest seat and then moves to the next
alive player after the current one, wrapping around, skipping anyone
who already gave a clue this round.
"""
from typing import Collection, Optional, Sequence, TypeVar

T = TypeVar("T")


def first_turn_player(alive_in_seat_order: Sequence[T]) -> Optional[T]:
    return alive_in_seat_order[0] if alive_in_seat_order else None


def next_turn_player(
    alive_in_seat_order: Sequence[T],
    submitted: Collection[T],
    current: Optional[T]
) -> Optional[T]:
    """
    Args:
        alive_in_seat_order: alive player ids sorted by seat
        submitted: ids that already gave a clue this round
        current: id holding the turn (None or not alive: start from seat 0)

    Returns:
        next eligible id, or None when everyone has gone

    Example:
        alive = [a, b, c, d], submitted = {a, b}, current = b  ->  c
        alive = [a, b, c, d], submitted = {c, d}, current = d  ->  a
    """
    if not alive_in_seat_order:
        return None

    start = 0
    if current in alive_in_seat_order:
        start = alive_in_seat_order.index(current) + 1

    count = len(alive_in_seat_order)
    for offset in range(count):
        candidate = alive_in_seat_order[(start + offset) % count]
        if candidate not in submitted:
            return candidate
    return None
