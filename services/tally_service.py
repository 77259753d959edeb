"""
Tally service: count votes and pick the plurality target

Pure computation, no state transitions

Tie-break rule:
    Votes are processed in insertion order (vote id). Among targets
    sharing the highest count, the one whose FIRST vote came earliest
    wins. Counter keeps first-seen order and max() returns the first
    maximal element, which is exactly this rule.

Example:
    votes (in order): A->C, B->D, C->D, D->C
    tally: C=2, D=2  ->  C is eliminated (first voted for)
"""
from collections import Counter
from typing import Iterable, Optional, TypeVar

T = TypeVar("T")


def tally_votes(targets: Iterable[T]) -> Counter:
    """Count votes per target, keeping first-seen order"""
    return Counter(targets)


def plurality_target(targets: Iterable[T]) -> Optional[T]:
    """
    Return the most voted target, or None when nobody voted

    Args:
        targets: voted_for ids ordered by insertion
    """
    tally = tally_votes(targets)
    if not tally:
        return None
    return max(tally, key=lambda target: tally[target])
