"""
Room API Endpoints

Responsibilities:
1. Create rooms
2. Room state snapshot (short polling)
3. Host actions: start, restart, back to lobby
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import RoomCreate, RoomOut, RoomView
from core.room_manager import RoomManager
from core.exceptions import ImpostorGameException
from services.view_service import build_room_view, personalize_view
from api.errors import to_http_exception

router = APIRouter(prefix="/api/rooms", tags=["rooms"])
logger = logging.getLogger(__name__)


@router.post("", response_model=RoomOut)
def create_room(room_data: RoomCreate, db: Session = Depends(get_db)):
    """
    Create a room (status WAITING)

    The creator joins afterwards through /{code}/join and, being the
    first player, becomes host.
    """
    try:
        room = RoomManager(db).create_room(
            room_data.max_players,
            room_data.impostor_count,
            room_data.max_rounds
        )
        return RoomOut.model_validate(room)

    except ImpostorGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to create room: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{code}/state", response_model=RoomView)
def get_room_state(
    code: str,
    player_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db)
):
    """
    Full room snapshot

    With player_id the view is personalized: other players' roles are
    hidden until the game ends and impostors do not see the word.
    Without it every secret is hidden.
    """
    try:
        room = RoomManager(db).get_room_by_code(code)
        view = build_room_view(db, room.id)
        return personalize_view(view, player_id)

    except ImpostorGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to get room state: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{room_id}/start", response_model=RoomOut)
def start_game(room_id: UUID, db: Session = Depends(get_db)):
    """Deal roles, pick the secret word and open round 1"""
    try:
        room = RoomManager(db).start_game(room_id)
        return RoomOut.model_validate(room)

    except ImpostorGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to start game: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{room_id}/restart", response_model=RoomOut)
def restart_game(room_id: UUID, db: Session = Depends(get_db)):
    """New game with the same players: everyone alive, new roles, new word"""
    try:
        room = RoomManager(db).restart_game(room_id)
        return RoomOut.model_validate(room)

    except ImpostorGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to restart game: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{room_id}/lobby", response_model=RoomOut)
def exit_to_lobby(room_id: UUID, db: Session = Depends(get_db)):
    """Back to WAITING so new players can join"""
    try:
        room = RoomManager(db).exit_to_lobby(room_id)
        return RoomOut.model_validate(room)

    except ImpostorGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to return to lobby: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")
