"""
ORM models

Rows are independent and related only by foreign key: a Room owns its
Players and Rounds, a Round owns its Clues and Votes.

Concurrency contracts live in the schema:
- UNIQUE(round_id, player_id) on clues, UNIQUE(round_id, voter_id) on votes
- at most one host per room (partial unique index)
- UNIQUE(room_id, round_number) so only one resolver creates the next round
- version_id_col on rooms and rounds (optimistic compare-and-swap)
"""
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import relationship

from database import Base


def utcnow():
    return datetime.now(timezone.utc)


def _values(enum_cls):
    # Store enum values ("waiting"), not names ("WAITING")
    return [member.value for member in enum_cls]


class RoomStatus(str, enum.Enum):
    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


class RoundStatus(str, enum.Enum):
    COLLECTING_CLUES = "collecting_clues"
    VOTING = "voting"
    FINISHED = "finished"


class Role(str, enum.Enum):
    CREW = "crew"
    IMPOSTOR = "impostor"


class Winner(str, enum.Enum):
    CREW = "crew"
    IMPOSTORS = "impostors"
    NONE = "none"  # max_rounds reached without a decision


class Room(Base):
    __tablename__ = "rooms"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    code = Column(String(12), unique=True, nullable=False, index=True)
    status = Column(
        Enum(RoomStatus, values_callable=_values, name="room_status"),
        nullable=False,
        default=RoomStatus.WAITING
    )
    max_players = Column(Integer, nullable=False)
    impostor_count = Column(Integer, nullable=False)
    max_rounds = Column(Integer, nullable=False)
    current_round = Column(Integer, nullable=False, default=0)
    # Bumped by every join so joins race through the room version like starts do
    player_count = Column(Integer, nullable=False, default=0)
    secret_word = Column(String(100), nullable=True)
    winner = Column(Enum(Winner, values_callable=_values, name="winner"), nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    started_at = Column(DateTime(timezone=True), nullable=True)
    finished_at = Column(DateTime(timezone=True), nullable=True)

    players = relationship("Player", back_populates="room", order_by="Player.seat")
    rounds = relationship("Round", back_populates="room", order_by="Round.round_number")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Room {self.code} {self.status.value if self.status else None}>"


class Player(Base):
    __tablename__ = "players"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    room_id = Column(Uuid, ForeignKey("rooms.id"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    role = Column(
        Enum(Role, values_callable=_values, name="player_role"),
        nullable=False,
        default=Role.CREW
    )
    is_alive = Column(Boolean, nullable=False, default=True)
    is_host = Column(Boolean, nullable=False, default=False)
    seat = Column(Integer, nullable=False, default=0)
    joined_at = Column(DateTime(timezone=True), default=utcnow)

    room = relationship("Room", back_populates="players")

    __table_args__ = (
        Index(
            "uq_players_one_host_per_room",
            "room_id",
            unique=True,
            sqlite_where=text("is_host = 1"),
            postgresql_where=text("is_host"),
        ),
    )

    def __repr__(self):
        return f"<Player {self.name} seat={self.seat}>"


class Round(Base):
    __tablename__ = "rounds"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    room_id = Column(Uuid, ForeignKey("rooms.id"), nullable=False, index=True)
    round_number = Column(Integer, nullable=False)
    status = Column(
        Enum(RoundStatus, values_callable=_values, name="round_status"),
        nullable=False,
        default=RoundStatus.COLLECTING_CLUES
    )
    current_turn_player_id = Column(Uuid, ForeignKey("players.id"), nullable=True)
    eliminated_player_id = Column(Uuid, ForeignKey("players.id"), nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    finished_at = Column(DateTime(timezone=True), nullable=True)

    room = relationship("Room", back_populates="rounds")

    __table_args__ = (
        UniqueConstraint("room_id", "round_number", name="uq_rounds_room_number"),
    )
    __mapper_args__ = {"version_id_col": version}


class Clue(Base):
    __tablename__ = "clues"

    # Integer ids keep insertion order well defined
    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(Uuid, ForeignKey("rooms.id"), nullable=False, index=True)
    round_id = Column(Uuid, ForeignKey("rounds.id"), nullable=False, index=True)
    player_id = Column(Uuid, ForeignKey("players.id"), nullable=False)
    clue_text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("round_id", "player_id", name="uq_clues_round_player"),
    )


class Vote(Base):
    __tablename__ = "votes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(Uuid, ForeignKey("rooms.id"), nullable=False, index=True)
    round_id = Column(Uuid, ForeignKey("rounds.id"), nullable=False, index=True)
    voter_id = Column(Uuid, ForeignKey("players.id"), nullable=False)
    voted_for_id = Column(Uuid, ForeignKey("players.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("round_id", "voter_id", name="uq_votes_round_voter"),
    )


class EventLog(Base):
    """Append-only audit trail of everything that happened in a room"""
    __tablename__ = "event_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(Uuid, ForeignKey("rooms.id"), nullable=False, index=True)
    event_type = Column(String(50), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow)
