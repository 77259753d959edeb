"""
Room Manager: the full lifecycle of a Room

Responsibilities:
1. Create rooms (settings validation, unique join code)
2. Admit players (capacity, single host)
3. Start / restart a game (roles, secret word, round #1)
4. Send everyone back to the lobby
5. Room queries

Principles:
- Single responsibility: rooms only, rounds belong to RoundManager
- Every status change goes through RoomStateMachine
- Check the data first, then write; a start is one transaction so roles
  are never half-assigned
"""
import logging
import random
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from models import Clue, Player, Role, Room, RoomStatus, Round, RoundStatus, Vote
from core.concurrency import guarded
from core.exceptions import (
    InvalidRoomSettings,
    InvalidStateTransition,
    NotEnoughPlayers,
    PlayerNotFound,
    RoomFull,
    RoomNotAcceptingPlayers,
    RoomNotFound,
)
from core.state_machine import RoomStateMachine
from services.event_service import record_event
from services.naming_service import (
    generate_room_code,
    normalize_display_name,
    normalize_room_code,
)
from services.role_service import assign_roles, pick_secret_word
from services.turn_service import first_turn_player
from database import Settings, get_settings, transactional

logger = logging.getLogger(__name__)

# Joins and starts retry this many times when the room changed under them
JOIN_ATTEMPTS = 5
START_ATTEMPTS = 5


class RoomManager:
    """Room lifecycle manager"""

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        rng=None,
        words: Optional[Sequence[str]] = None
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.rng = rng or random
        self.words = list(words) if words is not None else list(self.settings.word_list)

    # ============ Creation ============

    @transactional
    def create_room(self, max_players: int, impostor_count: int, max_rounds: int) -> Room:
        """
        Create a new room in WAITING status

        Flow:
        1. Validate the settings (nothing is written on failure)
        2. Generate a join code, regenerating on collision
        3. Persist the Room (current_round=0)
        4. Record the event

        Raises:
            InvalidRoomSettings: a value is out of the configured bounds
        """
        # 1. Validate
        self._validate_room_settings(max_players, impostor_count, max_rounds)

        # 2. Unique join code
        code = generate_room_code(self.settings.room_code_length, self.rng)
        while self.db.query(Room).filter(Room.code == code).first():
            logger.warning(f"Room code collision detected, regenerating: {code}")
            code = generate_room_code(self.settings.room_code_length, self.rng)

        # 3. Room
        room = Room(
            code=code,
            status=RoomStatus.WAITING,
            max_players=max_players,
            impostor_count=impostor_count,
            max_rounds=max_rounds,
            current_round=0,
            player_count=0
        )
        self.db.add(room)
        self.db.flush()  # get room.id

        logger.info(
            f"Created room {room.id} with code {code} "
            f"(max_players={max_players}, impostors={impostor_count}, rounds={max_rounds})"
        )

        # 4. Event
        record_event(
            self.db, room.id, "ROOM_CREATED",
            code=code,
            max_players=max_players,
            impostor_count=impostor_count,
            max_rounds=max_rounds
        )
        return room

    def _validate_room_settings(self, max_players: int, impostor_count: int, max_rounds: int) -> None:
        s = self.settings
        if not s.min_players <= max_players <= s.max_players_limit:
            raise InvalidRoomSettings(
                f"max_players must be between {s.min_players} and {s.max_players_limit}, "
                f"got {max_players}"
            )
        if not 1 <= impostor_count <= s.max_impostors:
            raise InvalidRoomSettings(
                f"impostor_count must be between 1 and {s.max_impostors}, got {impostor_count}"
            )
        if impostor_count >= max_players:
            raise InvalidRoomSettings(
                f"impostor_count ({impostor_count}) must leave at least one crew member "
                f"(max_players={max_players})"
            )
        if not s.min_rounds <= max_rounds <= s.max_rounds_limit:
            raise InvalidRoomSettings(
                f"max_rounds must be between {s.min_rounds} and {s.max_rounds_limit}, "
                f"got {max_rounds}"
            )

    # ============ Joining ============

    def join_room(self, code: str, display_name: str) -> Player:
        """
        Join a room by its code

        Preconditions:
        - the room exists
        - status is WAITING
        - fewer than max_players players

        The first player becomes host. Two players joining an empty room
        at the same time would both claim the host seat; the store's
        one-host index rejects the second, who then joins as a regular
        player.

        Every join bumps the room's player_count, so a start or another
        join committed in between fails the version check. The join is
        then retried against the fresh room and re-checks status and
        capacity.

        Raises:
            InvalidPlayerName, RoomNotFound, RoomNotAcceptingPlayers, RoomFull
        """
        name = normalize_display_name(display_name, self.settings.max_name_length)
        code = normalize_room_code(code)

        claim_host = True
        for _ in range(JOIN_ATTEMPTS - 1):
            try:
                return self._admit_player(code, name, claim_host)
            except IntegrityError:
                if not claim_host:
                    raise
                logger.warning(f"Host seat in room {code} was taken concurrently, joining as player")
                claim_host = False
            except StaleDataError:
                logger.info(f"Room {code} changed while {name} was joining, retrying")
        return self._admit_player(code, name, claim_host)

    @transactional
    def _admit_player(self, code: str, name: str, claim_host: bool) -> Player:
        # 1. Room
        room = self.get_room_by_code(code)

        # 2. Status
        if room.status != RoomStatus.WAITING:
            raise RoomNotAcceptingPlayers(
                f"Room {code} is not accepting players (status: {room.status.value})"
            )

        # 3. Capacity
        count = self.get_player_count(room.id)
        if count >= room.max_players:
            raise RoomFull(code, room.max_players)

        # 4. Claim the seat on the room row first (version check)
        room.player_count = (room.player_count or 0) + 1
        self.db.flush()

        # 5. Player
        player = Player(
            room_id=room.id,
            name=name,
            role=Role.CREW,
            is_alive=True,
            is_host=claim_host and count == 0,
            seat=count
        )
        self.db.add(player)
        self.db.flush()

        record_event(
            self.db, room.id, "PLAYER_JOINED",
            player_id=player.id, name=name, seat=count, is_host=player.is_host
        )
        logger.info(
            f"Player {player.id} ({name}) joined room {code} at seat {count}"
            f"{' as host' if player.is_host else ''}"
        )
        return player

    # ============ Game start / restart / lobby ============

    def start_game(self, room_id: UUID) -> Room:
        """
        Start the game (WAITING -> PLAYING)

        Preconditions:
        1. the room exists and is WAITING
        2. at least min_players_to_start players, and more players than impostors

        Flow (one transaction, so a failure leaves nothing half-assigned):
        1. Room -> PLAYING, current_round=1, pick the secret word
        2. Shuffle the players, the first impostor_count become impostors
        3. Create Round #1 (turn: lowest alive seat)

        If another client started the same room concurrently, this call
        loses the version check and simply returns the started room. If a
        player joined in between instead, the start is retried so the
        newcomer gets a role.

        Raises:
            RoomNotFound, InvalidStateTransition, NotEnoughPlayers
        """
        for _ in range(START_ATTEMPTS):
            applied, room = guarded(self._start, room_id)
            if applied:
                return room
            room = self.get_room_by_id(room_id)
            if room.status != RoomStatus.WAITING:
                logger.info(f"Room {room_id} was started by another client")
                return room
            logger.info(f"Room {room_id} changed while starting, retrying")
        return room

    @transactional
    def _start(self, room_id: UUID) -> Room:
        room = self.get_room_by_id(room_id)
        if room.status != RoomStatus.WAITING:
            raise InvalidStateTransition(
                f"Room {room.code} cannot be started (status: {room.status.value})"
            )

        players = self.get_players(room_id)
        self._check_can_start(room, players)

        # 1. Room first: the version check settles concurrent starts
        RoomStateMachine.transition(room, RoomStatus.PLAYING)
        room.current_round = 1
        room.winner = None
        room.secret_word = pick_secret_word(self.words, self.rng)
        self.db.flush()

        # 2. Roles
        self._deal_roles(room, players)

        # 3. Round #1
        self._open_first_round(room, players)

        record_event(self.db, room.id, "GAME_STARTED", player_count=len(players))
        logger.info(f"Game started in room {room.code} with {len(players)} players")
        return room

    def restart_game(self, room_id: UUID) -> Room:
        """
        Play again with the same roster (PLAYING/FINISHED -> PLAYING)

        Flow (one transaction):
        1. Same player checks as start_game
        2. Delete every round / clue / vote of the room
        3. Everyone alive again, roles re-dealt, fresh secret word
        4. New Round #1, current_round=1

        Raises:
            RoomNotFound, InvalidStateTransition, NotEnoughPlayers
        """
        applied, room = guarded(self._restart, room_id)
        if not applied:
            logger.info(f"Room {room_id} was restarted by another client")
            return self.get_room_by_id(room_id)
        return room

    @transactional
    def _restart(self, room_id: UUID) -> Room:
        room = self.get_room_by_id(room_id)
        if room.status not in (RoomStatus.PLAYING, RoomStatus.FINISHED):
            raise InvalidStateTransition(
                f"Room {room.code} has no game to restart (status: {room.status.value})"
            )

        players = self.get_players(room_id)
        self._check_can_start(room, players)

        RoomStateMachine.transition(room, RoomStatus.PLAYING)
        room.current_round = 1
        room.winner = None
        room.secret_word = pick_secret_word(self.words, self.rng)
        self.db.flush()

        self._discard_rounds(room.id)
        self._deal_roles(room, players)
        self._open_first_round(room, players)

        record_event(self.db, room.id, "GAME_RESTARTED", player_count=len(players))
        logger.info(f"Game restarted in room {room.code} with {len(players)} players")
        return room

    def exit_to_lobby(self, room_id: UUID) -> Room:
        """
        Send everyone back to the lobby (PLAYING/FINISHED -> WAITING)

        Prior rounds, clues and votes are deleted, like restart does;
        otherwise the next start would collide with round #1.
        Already WAITING: no-op.

        Raises:
            RoomNotFound
        """
        applied, room = guarded(self._return_to_lobby, room_id)
        if not applied:
            logger.info(f"Room {room_id} was sent to the lobby by another client")
            return self.get_room_by_id(room_id)
        return room

    @transactional
    def _return_to_lobby(self, room_id: UUID) -> Room:
        room = self.get_room_by_id(room_id)
        if room.status == RoomStatus.WAITING:
            return room

        RoomStateMachine.transition(room, RoomStatus.WAITING)
        room.current_round = 0
        room.secret_word = None
        room.winner = None
        self.db.flush()

        self._discard_rounds(room.id)
        for player in self.get_players(room_id):
            player.role = Role.CREW
            player.is_alive = True

        record_event(self.db, room.id, "RETURNED_TO_LOBBY")
        logger.info(f"Room {room.code} returned to the lobby")
        return room

    def _check_can_start(self, room: Room, players: List[Player]) -> None:
        minimum = self.settings.min_players_to_start
        if len(players) < minimum:
            raise NotEnoughPlayers(
                f"Need at least {minimum} players to start the game, got {len(players)}"
            )
        if len(players) <= room.impostor_count:
            raise NotEnoughPlayers(
                f"{room.impostor_count} impostor(s) need at least "
                f"{room.impostor_count + 1} players, got {len(players)}"
            )

    def _deal_roles(self, room: Room, players: List[Player]) -> None:
        roles = assign_roles([p.id for p in players], room.impostor_count, self.rng)
        for player in players:
            player.role = roles[player.id]
            player.is_alive = True

    def _open_first_round(self, room: Room, players: List[Player]) -> Round:
        round_obj = Round(
            room_id=room.id,
            round_number=1,
            status=RoundStatus.COLLECTING_CLUES,
            current_turn_player_id=first_turn_player([p.id for p in players if p.is_alive])
        )
        self.db.add(round_obj)
        self.db.flush()
        return round_obj

    def _discard_rounds(self, room_id: UUID) -> None:
        # Children first, rounds last
        self.db.query(Vote).filter(Vote.room_id == room_id).delete(synchronize_session=False)
        self.db.query(Clue).filter(Clue.room_id == room_id).delete(synchronize_session=False)
        deleted = self.db.query(Round).filter(Round.room_id == room_id).delete(synchronize_session=False)
        logger.info(f"Discarded {deleted} round(s) of room {room_id}")

    # ============ Queries ============

    def get_room_by_code(self, code: str) -> Room:
        """
        Raises:
            RoomNotFound: no room has this code
        """
        code = normalize_room_code(code)
        room = self.db.query(Room).filter(Room.code == code).first()
        if not room:
            raise RoomNotFound(code)
        return room

    def get_room_by_id(self, room_id: UUID) -> Room:
        """
        Raises:
            RoomNotFound: room does not exist
        """
        room = self.db.query(Room).filter(Room.id == room_id).first()
        if not room:
            raise RoomNotFound(room_id)
        return room

    def get_players(self, room_id: UUID) -> List[Player]:
        """Players in seat (join) order"""
        return (
            self.db.query(Player)
            .filter(Player.room_id == room_id)
            .order_by(Player.seat, Player.joined_at)
            .all()
        )

    def get_player(self, room_id: UUID, player_id: UUID) -> Player:
        """
        Raises:
            PlayerNotFound: no such player in this room
        """
        player = self.db.query(Player).filter(
            Player.id == player_id,
            Player.room_id == room_id
        ).first()
        if not player:
            raise PlayerNotFound(player_id)
        return player

    def get_player_count(self, room_id: UUID) -> int:
        return self.db.query(Player).filter(Player.room_id == room_id).count()
