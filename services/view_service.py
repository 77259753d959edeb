"""
View service: derive the RoomView a client renders

Read-only projection, no business logic. The current round is always
re-derived as the round with the highest round_number, never taken
from a notification payload.
"""
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from models import Clue, Player, Room, RoomStatus, Round, Role, Vote
from schemas import ClueOut, PlayerOut, RoomOut, RoomView, RoundOut
from core.exceptions import RoomNotFound


def get_current_round(db: Session, room_id: UUID) -> Optional[Round]:
    return (
        db.query(Round)
        .filter(Round.room_id == room_id)
        .order_by(Round.round_number.desc())
        .first()
    )


def build_room_view(db: Session, room_id: UUID) -> RoomView:
    """
    Build the full snapshot for one room

    Contains:
    - room row
    - players in seat order
    - current round, its clues (in submission order) and vote count
    - room version (bumped by every room update)

    Raises:
        RoomNotFound: room does not exist
    """
    room = db.query(Room).filter(Room.id == room_id).first()
    if not room:
        raise RoomNotFound(room_id)

    players = (
        db.query(Player)
        .filter(Player.room_id == room_id)
        .order_by(Player.seat, Player.joined_at)
        .all()
    )
    current_round = get_current_round(db, room_id)

    clues = []
    votes_cast = 0
    if current_round is not None:
        clues = (
            db.query(Clue)
            .filter(Clue.round_id == current_round.id)
            .order_by(Clue.id)
            .all()
        )
        votes_cast = db.query(Vote).filter(Vote.round_id == current_round.id).count()

    return RoomView(
        room=RoomOut.model_validate(room),
        players=[PlayerOut.model_validate(p) for p in players],
        current_round=RoundOut.model_validate(current_round) if current_round else None,
        clues=[ClueOut.model_validate(c) for c in clues],
        votes_cast=votes_cast,
        alive_count=sum(1 for p in players if p.is_alive),
        version=room.version or 0
    )


def personalize_view(view: RoomView, player_id: Optional[UUID]) -> RoomView:
    """
    Hide what this player must not see while the game is running

    - other players' roles (revealed once the room is finished)
    - the secret word, if the player is an impostor
    - everything secret when player_id is unknown
    """
    if view.room.status == RoomStatus.FINISHED:
        return view

    me = next((p for p in view.players if p.id == player_id), None)
    players = [
        p if me is not None and p.id == me.id else p.model_copy(update={"role": None})
        for p in view.players
    ]

    room = view.room
    if me is None or me.role == Role.IMPOSTOR:
        room = room.model_copy(update={"secret_word": None})

    return view.model_copy(update={"players": players, "room": room})
