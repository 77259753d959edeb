"""
Event service: append entries to a room's EventLog

The caller's transaction owns the commit.
"""
from enum import Enum
from uuid import UUID

from sqlalchemy.orm import Session

from models import EventLog


def _jsonable(value):
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


def record_event(db: Session, room_id: UUID, event_type: str, **data) -> EventLog:
    """
    Example:
        record_event(db, room.id, "PLAYER_JOINED", player_id=player.id, seat=0)
    """
    event = EventLog(
        room_id=room_id,
        event_type=event_type,
        data={key: _jsonable(value) for key, value in data.items()}
    )
    db.add(event)
    return event
