"""
Naming service: room codes and display names

Pure computation, no state transitions
"""
import random
import string

from core.exceptions import InvalidPlayerName

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_room_code(length: int = 6, rng=random) -> str:
    """
    Generate a random upper-case alphanumeric room code

    Examples: K3Q9ZD, 7PLM2A

    Notes:
    - uniqueness is not checked here (caller's job)
    - 36^6 = 2,176,782,336 possibilities, collisions are very unlikely
    """
    return ''.join(rng.choices(ROOM_CODE_ALPHABET, k=length))


def normalize_room_code(code: str) -> str:
    """Codes are typed by humans: ignore surrounding spaces and case"""
    return (code or "").strip().upper()


def normalize_display_name(name: str, max_length: int = 30) -> str:
    """
    Validate and clean a player's display name

    Raises:
        InvalidPlayerName: empty or longer than max_length
    """
    cleaned = (name or "").strip()
    if not cleaned or len(cleaned) > max_length:
        raise InvalidPlayerName(
            f"Name must be between 1 and {max_length} characters"
        )
    return cleaned
