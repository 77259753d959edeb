"""
Round Manager: clue collection, voting and resolution of a round

Round state machine: COLLECTING_CLUES -> VOTING -> FINISHED

Every client runs this code against the shared store, so each step is:
read current state -> check status -> write, guarded by the round's
version. Two clients triggering the same transition is normal; the
second one becomes a no-op.

Idempotency:
- submit_clue / cast_vote: a second submission returns the existing row
- try_advance_clue_phase / try_resolve_round / resolve_round: safe to
  call any number of times from any client

There are no special cases for "the last player triggers the next
phase": everybody tries, the store decides.
"""
import logging
import random
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from models import Clue, Player, Role, Room, RoomStatus, Round, RoundStatus, Vote
from core.concurrency import guarded, insert_once
from core.exceptions import (
    DuplicateSubmission,
    InvalidClue,
    InvalidStateTransition,
    NotPlayersTurn,
    PlayerEliminated,
    RoundNotFound,
    SelfVote,
)
from core.room_manager import RoomManager
from core.state_machine import RoomStateMachine, RoundStateMachine
from services.event_service import record_event
from services.outcome_service import Outcome, evaluate_outcome
from services.role_service import pick_secret_word
from services.tally_service import plurality_target, tally_votes
from services.turn_service import first_turn_player, next_turn_player
from services import view_service
from database import Settings, get_settings, transactional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoundResult:
    round_id: UUID
    round_number: int
    eliminated_player_id: Optional[UUID]
    eliminated_role: Optional[Role]
    outcome: Outcome
    next_round_number: Optional[int] = None


class RoundManager:
    """Round lifecycle manager"""

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
        self.rooms = RoomManager(db, self.settings, self.rng, self.words)

    # ============ Clues ============

    def submit_clue(self, round_id: UUID, player_id: UUID, text: str) -> Tuple[Clue, bool]:
        """
        Submit a player's clue for the round

        Idempotent: if the player already gave a clue this round, the
        existing clue comes back with created=False.

        Flow:
        1. Record the clue (turn, alive and status checks)
        2. Try to advance the turn / move to VOTING (idempotent)

        Step 2 also runs on a re-submission, so retrying repairs a round
        whose submitter stopped between step 1 and step 2.

        Returns:
            (clue, created)

        Raises:
            RoundNotFound, PlayerNotFound, InvalidStateTransition,
            PlayerEliminated, NotPlayersTurn, InvalidClue
        """
        try:
            clue, created = self._record_clue(round_id, player_id, text)
        except DuplicateSubmission:
            logger.info(f"Clue from player {player_id} in round {round_id} already stored")
            clue, created = self._find_clue(round_id, player_id), False

        self.try_advance_clue_phase(round_id)
        return clue, created

    @transactional
    def _record_clue(self, round_id: UUID, player_id: UUID, text: str) -> Tuple[Clue, bool]:
        round_obj = self.get_round(round_id)

        # 1. Already submitted: nothing to do
        existing = self._find_clue(round_id, player_id)
        if existing:
            return existing, False

        # 2. Phase
        if round_obj.status != RoundStatus.COLLECTING_CLUES:
            raise InvalidStateTransition(
                f"Round {round_obj.round_number} is not collecting clues "
                f"(status: {round_obj.status.value})"
            )

        # 3. Player
        player = self.rooms.get_player(round_obj.room_id, player_id)
        if not player.is_alive:
            raise PlayerEliminated(player_id)
        if round_obj.current_turn_player_id != player.id:
            raise NotPlayersTurn(player_id, round_obj.current_turn_player_id)

        # 4. Content
        clue_text = self._clean_clue(text)

        clue = insert_once(
            self.db,
            Clue(
                room_id=round_obj.room_id,
                round_id=round_obj.id,
                player_id=player.id,
                clue_text=clue_text
            ),
            f"Clue from player {player_id} in round {round_id}"
        )
        record_event(
            self.db, round_obj.room_id, "CLUE_SUBMITTED",
            round_number=round_obj.round_number, player_id=player.id
        )
        logger.info(f"Player {player.id} gave a clue in round {round_obj.round_number}")
        return clue, True

    def _clean_clue(self, text: str) -> str:
        cleaned = (text or "").strip()
        limit = self.settings.max_clue_length
        if not cleaned or len(cleaned) > limit:
            raise InvalidClue(f"Clue must be between 1 and {limit} characters")
        return cleaned

    def try_advance_clue_phase(self, round_id: UUID) -> Round:
        """
        Move the turn on, or switch to VOTING once every alive player gave a clue

        Idempotent and safe to call from any client: a round that is not
        collecting clues, or that another client already advanced, is
        left untouched.
        """
        applied, _ = guarded(self._advance_clue_phase, round_id)
        if not applied:
            logger.info(f"Round {round_id} was advanced by another client")
        return self.get_round(round_id)

    @transactional
    def _advance_clue_phase(self, round_id: UUID) -> Round:
        round_obj = self.get_round(round_id)
        if round_obj.status != RoundStatus.COLLECTING_CLUES:
            return round_obj

        alive_ids = [p.id for p in self.get_alive_players(round_obj.room_id)]
        clues = self.get_clues(round_id)

        if len(clues) >= len(alive_ids):
            RoundStateMachine.transition(round_obj, RoundStatus.VOTING)
            self.db.flush()
            record_event(
                self.db, round_obj.room_id, "VOTING_STARTED",
                round_number=round_obj.round_number, clue_count=len(clues)
            )
            return round_obj

        submitted = {c.player_id for c in clues}
        next_player_id = next_turn_player(alive_ids, submitted, round_obj.current_turn_player_id)
        if next_player_id != round_obj.current_turn_player_id:
            round_obj.current_turn_player_id = next_player_id
            self.db.flush()
        return round_obj

    # ============ Votes ============

    def cast_vote(self, round_id: UUID, voter_id: UUID, target_id: UUID) -> Tuple[Vote, bool]:
        """
        Vote to eliminate a player

        Self-votes are rejected before anything else, whatever the round
        status. A second vote by the same voter returns the first one
        with created=False.

        Flow:
        1. Record the vote (status, alive checks)
        2. Resolve the round once every alive player voted (idempotent)

        Returns:
            (vote, created)

        Raises:
            SelfVote, RoundNotFound, PlayerNotFound,
            InvalidStateTransition, PlayerEliminated
        """
        if voter_id == target_id:
            raise SelfVote(voter_id)

        try:
            vote, created = self._record_vote(round_id, voter_id, target_id)
        except DuplicateSubmission:
            logger.info(f"Vote from player {voter_id} in round {round_id} already stored")
            vote, created = self._find_vote(round_id, voter_id), False

        self.try_resolve_round(round_id)
        return vote, created

    @transactional
    def _record_vote(self, round_id: UUID, voter_id: UUID, target_id: UUID) -> Tuple[Vote, bool]:
        round_obj = self.get_round(round_id)

        # 1. Already voted: nothing to do
        existing = self._find_vote(round_id, voter_id)
        if existing:
            return existing, False

        # 2. Phase
        if round_obj.status != RoundStatus.VOTING:
            raise InvalidStateTransition(
                f"Round {round_obj.round_number} is not voting "
                f"(status: {round_obj.status.value})"
            )

        # 3. Voter and target: same room, both alive
        voter = self.rooms.get_player(round_obj.room_id, voter_id)
        if not voter.is_alive:
            raise PlayerEliminated(voter_id)
        target = self.rooms.get_player(round_obj.room_id, target_id)
        if not target.is_alive:
            raise PlayerEliminated(target_id)

        vote = insert_once(
            self.db,
            Vote(
                room_id=round_obj.room_id,
                round_id=round_obj.id,
                voter_id=voter.id,
                voted_for_id=target.id
            ),
            f"Vote from player {voter_id} in round {round_id}"
        )
        record_event(
            self.db, round_obj.room_id, "VOTE_CAST",
            round_number=round_obj.round_number, voter_id=voter.id
        )
        logger.info(f"Player {voter.id} voted in round {round_obj.round_number}")
        return vote, True

    # ============ Resolution ============

    def try_resolve_round(self, round_id: UUID) -> Optional[RoundResult]:
        """Resolve only if the round is VOTING and every alive player has voted"""
        round_obj = self.get_round(round_id)
        if round_obj.status != RoundStatus.VOTING:
            return None

        alive_count = len(self.get_alive_players(round_obj.room_id))
        vote_count = self.db.query(Vote).filter(Vote.round_id == round_id).count()
        if vote_count < alive_count:
            return None
        return self.resolve_round(round_id)

    def resolve_round(self, round_id: UUID) -> Optional[RoundResult]:
        """
        Resolve a round: eliminate the plurality target and decide what's next

        Idempotent: an already finished round, or one another client is
        resolving at the same time, gives None and changes nothing.

        Flow (one transaction):
        1. Round -> FINISHED, flushed first (version check)
        2. Tally votes in insertion order, eliminate the plurality target
           (ties: earliest first vote wins; no votes: nobody)
        3. Count the alive players by role and evaluate the outcome
        4. Room -> FINISHED with a winner, or open the next round

        Raises:
            RoundNotFound
            InvalidStateTransition: the round is still collecting clues
        """
        applied, result = guarded(self._resolve, round_id)
        if not applied:
            logger.info(f"Round {round_id} was resolved by another client")
            return None
        return result

    @transactional
    def _resolve(self, round_id: UUID) -> Optional[RoundResult]:
        round_obj = self.get_round(round_id)
        if round_obj.status == RoundStatus.FINISHED:
            logger.info(f"Round {round_obj.round_number} already resolved, skipping")
            return None
        if round_obj.status != RoundStatus.VOTING:
            raise InvalidStateTransition(
                f"Round {round_obj.round_number} cannot be resolved while "
                f"{round_obj.status.value}"
            )

        # 1. Claim the round before touching anything else
        RoundStateMachine.transition(round_obj, RoundStatus.FINISHED)
        self.db.flush()

        # 2. Tally and eliminate
        targets = [v.voted_for_id for v in self.get_votes(round_id)]
        target_id = plurality_target(targets)
        eliminated = None
        if target_id is not None:
            eliminated = self.rooms.get_player(round_obj.room_id, target_id)
            eliminated.is_alive = False
            round_obj.eliminated_player_id = eliminated.id
            self.db.flush()  # alive counts below must see it
            record_event(
                self.db, round_obj.room_id, "PLAYER_ELIMINATED",
                round_number=round_obj.round_number,
                player_id=eliminated.id,
                role=eliminated.role,
                votes=tally_votes(targets)[target_id]
            )
            logger.info(
                f"Player {eliminated.id} ({eliminated.role.value}) eliminated "
                f"in round {round_obj.round_number}"
            )
        else:
            logger.warning(f"Round {round_obj.round_number} resolved without votes")

        record_event(
            self.db, round_obj.room_id, "ROUND_FINISHED",
            round_number=round_obj.round_number, vote_count=len(targets)
        )

        # 3. Outcome
        room = self.rooms.get_room_by_id(round_obj.room_id)
        alive = self.get_alive_players(room.id)
        alive_impostors = sum(1 for p in alive if p.role == Role.IMPOSTOR)
        alive_crew = len(alive) - alive_impostors
        outcome = evaluate_outcome(alive_crew, alive_impostors, room.current_round, room.max_rounds)

        # 4. Room-level decision
        next_round_number = self._apply_outcome(room, outcome, alive)

        return RoundResult(
            round_id=round_obj.id,
            round_number=round_obj.round_number,
            eliminated_player_id=eliminated.id if eliminated else None,
            eliminated_role=eliminated.role if eliminated else None,
            outcome=outcome,
            next_round_number=next_round_number
        )

    def _apply_outcome(self, room: Room, outcome: Outcome, alive: List[Player]) -> Optional[int]:
        """
        The only place where a finished Round drives the Room

        Returns:
            the new round number, or None when the game is over
        """
        if outcome.is_game_over:
            RoomStateMachine.transition(room, RoomStatus.FINISHED)
            room.winner = outcome.winner
            record_event(
                self.db, room.id, "GAME_FINISHED",
                winner=outcome.winner, rounds_played=room.current_round
            )
            logger.info(f"Game over in room {room.code}: winner={outcome.winner.value}")
            return None

        if room.status != RoomStatus.PLAYING:
            raise InvalidStateTransition(
                f"Room {room.code} is not playing (status: {room.status.value})"
            )

        room.current_round += 1
        if self.settings.rotate_word_each_round:
            room.secret_word = pick_secret_word(self.words, self.rng, exclude=room.secret_word)

        next_round = Round(
            room_id=room.id,
            round_number=room.current_round,
            status=RoundStatus.COLLECTING_CLUES,
            current_turn_player_id=first_turn_player([p.id for p in alive])
        )
        self.db.add(next_round)
        self.db.flush()

        record_event(self.db, room.id, "ROUND_STARTED", round_number=room.current_round)
        logger.info(f"Room {room.code} moved to round {room.current_round}")
        return room.current_round

    # ============ Queries ============

    def get_round(self, round_id: UUID) -> Round:
        """
        Raises:
            RoundNotFound: round does not exist
        """
        round_obj = self.db.query(Round).filter(Round.id == round_id).first()
        if not round_obj:
            raise RoundNotFound(round_id)
        return round_obj

    def get_current_round(self, room_id: UUID) -> Optional[Round]:
        """The round with the highest round_number (None before the first start)"""
        return view_service.get_current_round(self.db, room_id)

    def get_round_by_number(self, room_id: UUID, round_number: int) -> Optional[Round]:
        return self.db.query(Round).filter(
            Round.room_id == room_id,
            Round.round_number == round_number
        ).first()

    def get_alive_players(self, room_id: UUID) -> List[Player]:
        """Alive players in seat order"""
        return (
            self.db.query(Player)
            .filter(Player.room_id == room_id, Player.is_alive == True)
            .order_by(Player.seat, Player.joined_at)
            .all()
        )

    def get_clues(self, round_id: UUID) -> List[Clue]:
        return self.db.query(Clue).filter(Clue.round_id == round_id).order_by(Clue.id).all()

    def get_votes(self, round_id: UUID) -> List[Vote]:
        """Votes in insertion order (the tally relies on it)"""
        return self.db.query(Vote).filter(Vote.round_id == round_id).order_by(Vote.id).all()

    def _find_clue(self, round_id: UUID, player_id: UUID) -> Optional[Clue]:
        return self.db.query(Clue).filter(
            Clue.round_id == round_id,
            Clue.player_id == player_id
        ).first()

    def _find_vote(self, round_id: UUID, voter_id: UUID) -> Optional[Vote]:
        return self.db.query(Vote).filter(
            Vote.round_id == round_id,
            Vote.voter_id == voter_id
        ).first()
