"""
Player API Endpoints

Responsibilities:
1. Join a room by code
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import PlayerJoin, PlayerResponse
from core.room_manager import RoomManager
from core.exceptions import ImpostorGameException
from api.errors import to_http_exception

router = APIRouter(prefix="/api/rooms", tags=["players"])
logger = logging.getLogger(__name__)


@router.post("/{code}/join", response_model=PlayerResponse)
def join_room(code: str, player_data: PlayerJoin, db: Session = Depends(get_db)):
    """
    Join a room (player endpoint)

    Preconditions:
    - the room exists
    - the room is WAITING (game not started)
    - the room is not full

    Flow:
    1. Find the room by code (case-insensitive)
    2. Create the Player (first one becomes host)
    3. Return the player's identity; the client keeps player_id in its
       identity store
    """
    try:
        manager = RoomManager(db)
        player = manager.join_room(code, player_data.name)
        room = manager.get_room_by_id(player.room_id)

        return PlayerResponse(
            player_id=player.id,
            room_id=room.id,
            room_code=room.code,
            name=player.name,
            is_host=player.is_host
        )

    except ImpostorGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to join room: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")
