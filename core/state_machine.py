"""
State machines: every status change of a Room or Round goes through here

Room and Round are two separate machines. They only meet when a round
finishes and its outcome decides what the room does next
(RoundManager._apply_outcome).

Room:
    WAITING  -> PLAYING                 start_game
    PLAYING  -> FINISHED                win condition / max rounds
    PLAYING  -> PLAYING                 restart_game
    FINISHED -> PLAYING                 restart_game
    PLAYING  -> WAITING                 exit_to_lobby
    FINISHED -> WAITING                 exit_to_lobby

Round (linear, never backwards):
    COLLECTING_CLUES -> VOTING -> FINISHED

The machines only validate and stamp timestamps; the optimistic
version check happens when the caller flushes.
"""
import logging

from models import Room, Round, RoomStatus, RoundStatus, utcnow
from core.exceptions import InvalidStateTransition

logger = logging.getLogger(__name__)


class RoomStateMachine:
    TRANSITIONS = {
        RoomStatus.WAITING: {RoomStatus.PLAYING},
        RoomStatus.PLAYING: {RoomStatus.PLAYING, RoomStatus.FINISHED, RoomStatus.WAITING},
        RoomStatus.FINISHED: {RoomStatus.PLAYING, RoomStatus.WAITING},
    }

    @classmethod
    def can_transition(cls, current: RoomStatus, target: RoomStatus) -> bool:
        return target in cls.TRANSITIONS.get(current, set())

    @classmethod
    def transition(cls, room: Room, target: RoomStatus) -> Room:
        """
        Move a room to a new status

        Raises:
            InvalidStateTransition: the move is not in TRANSITIONS
        """
        current = room.status
        if not cls.can_transition(current, target):
            raise InvalidStateTransition(
                f"Room {room.code} cannot go from {current.value} to {target.value}"
            )

        now = utcnow()
        if target == RoomStatus.PLAYING:
            room.started_at = now
            room.finished_at = None
        elif target == RoomStatus.FINISHED:
            room.finished_at = now
        elif target == RoomStatus.WAITING:
            room.started_at = None
            room.finished_at = None

        room.status = target
        logger.info(f"Room {room.code}: {current.value} -> {target.value}")
        return room


class RoundStateMachine:
    TRANSITIONS = {
        RoundStatus.COLLECTING_CLUES: {RoundStatus.VOTING},
        RoundStatus.VOTING: {RoundStatus.FINISHED},
        RoundStatus.FINISHED: set(),
    }

    @classmethod
    def can_transition(cls, current: RoundStatus, target: RoundStatus) -> bool:
        return target in cls.TRANSITIONS.get(current, set())

    @classmethod
    def transition(cls, round_obj: Round, target: RoundStatus) -> Round:
        current = round_obj.status
        if not cls.can_transition(current, target):
            raise InvalidStateTransition(
                f"Round {round_obj.round_number} cannot go from {current.value} to {target.value}"
            )

        if target == RoundStatus.VOTING:
            round_obj.current_turn_player_id = None
        elif target == RoundStatus.FINISHED:
            round_obj.finished_at = utcnow()

        round_obj.status = target
        logger.info(
            f"Round {round_obj.round_number} of room {round_obj.room_id}: "
            f"{current.value} -> {target.value}"
        )
        return round_obj
