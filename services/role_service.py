"""
Role service: impostor selection and secret word choice

Pure computation. The random source is injected so tests can use a
seeded random.Random.
"""
import random
from typing import Dict, List, Optional, Sequence, TypeVar

from models import Role

T = TypeVar("T")


def assign_roles(player_ids: Sequence[T], impostor_count: int, rng=random) -> Dict[T, Role]:
    """
    Uniformly shuffle the players; the first impostor_count become impostors

    Args:
        player_ids: everyone in the room
        impostor_count: how many impostors (must leave at least one crew)
        rng: anything with shuffle()

    Returns:
        {player_id: Role}

    Raises:
        ValueError: impostor_count would leave no crew
    """
    if impostor_count < 1 or impostor_count >= len(player_ids):
        raise ValueError(
            f"Cannot pick {impostor_count} impostors among {len(player_ids)} players"
        )

    shuffled: List[T] = list(player_ids)
    rng.shuffle(shuffled)
    return {
        player_id: Role.IMPOSTOR if index < impostor_count else Role.CREW
        for index, player_id in enumerate(shuffled)
    }


def pick_secret_word(words: Sequence[str], rng=random, exclude: Optional[str] = None) -> str:
    """
    Pick a word uniformly from the word list

    exclude is used when rotating words between rounds, so the next
    round does not reuse the word just played (unless it is the only one).
    """
    if not words:
        raise ValueError("Word list is empty")
    candidates = [w for w in words if w != exclude] or list(words)
    return rng.choice(candidates)
