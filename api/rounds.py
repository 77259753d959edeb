"""
Round API Endpoints

Key points:
1. submit_clue / cast_vote are idempotent; created=False reports a
   re-submission
2. All business logic lives in RoundManager
3. Every client may call /resolve; only the first one does anything
"""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import ClueSubmit, RoundOut, RoundResultResponse, SubmissionResponse, VoteSubmit
from core.round_manager import RoundManager
from core.exceptions import ImpostorGameException
from api.errors import to_http_exception

router = APIRouter(prefix="/api", tags=["rounds"])
logger = logging.getLogger(__name__)


@router.get("/rooms/{room_id}/rounds/current", response_model=RoundOut)
def get_current_round(room_id: UUID, db: Session = Depends(get_db)):
    """
    Current round (highest round number)

    Returns:
        - round_number
        - status (collecting_clues / voting / finished)
        - current_turn_player_id
    """
    try:
        current_round = RoundManager(db).get_current_round(room_id)
        if not current_round:
            raise HTTPException(status_code=404, detail="No round yet")
        return RoundOut.model_validate(current_round)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to get current round: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/rounds/{round_id}/clues", response_model=SubmissionResponse)
def submit_clue(round_id: UUID, clue_data: ClueSubmit, db: Session = Depends(get_db)):
    """
    Give a clue (only the player whose turn it is)

    The round switches to voting by itself once every alive player
    has given a clue.
    """
    try:
        manager = RoundManager(db)
        _, created = manager.submit_clue(round_id, clue_data.player_id, clue_data.text)
        round_obj = manager.get_round(round_id)

        logger.info(
            f"Clue {'created' if created else 'reused'} for player {clue_data.player_id} "
            f"in round {round_id}"
        )
        return SubmissionResponse(created=created, round_status=round_obj.status)

    except ImpostorGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to submit clue: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/rounds/{round_id}/votes", response_model=SubmissionResponse)
def cast_vote(round_id: UUID, vote_data: VoteSubmit, db: Session = Depends(get_db)):
    """
    Vote for a suspect

    The round resolves by itself once every alive player has voted.
    """
    try:
        manager = RoundManager(db)
        _, created = manager.cast_vote(round_id, vote_data.voter_id, vote_data.target_id)
        round_obj = manager.get_round(round_id)

        logger.info(
            f"Vote {'created' if created else 'reused'} for player {vote_data.voter_id} "
            f"in round {round_id}"
        )
        return SubmissionResponse(created=created, round_status=round_obj.status)

    except ImpostorGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to cast vote: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/rounds/{round_id}/resolve", response_model=RoundResultResponse)
def resolve_round(round_id: UUID, db: Session = Depends(get_db)):
    """
    Resolve the round now (host endpoint, e.g. someone stopped voting)

    resolved=False means the round was already resolved.
    """
    try:
        result = RoundManager(db).resolve_round(round_id)
        if result is None:
            return RoundResultResponse(resolved=False)

        return RoundResultResponse(
            resolved=True,
            eliminated_player_id=result.eliminated_player_id,
            eliminated_role=result.eliminated_role,
            game_over=result.outcome.is_game_over,
            winner=result.outcome.winner,
            next_round_number=result.next_round_number
        )

    except ImpostorGameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to resolve round: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")
