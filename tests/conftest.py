import random

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import models  # noqa: F401  (registers the tables on Base.metadata)
from database import Base, Settings
from core.change_feed import ChangeFeed
from core.room_manager import RoomManager
from core.round_manager import RoundManager
from tests.helpers import WORDS, add_players


@pytest.fixture
def engine(tmp_path):
    # A file database so that every session gets its own connection,
    # like separate clients talking to the same store.
    engine = create_engine(
        f"sqlite:///{tmp_path / 'impostor_test.db'}",
        connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def feed():
    return ChangeFeed()


@pytest.fixture
def session_factory(engine, feed):
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    feed.bind(factory)
    yield factory
    feed.unbind(factory)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def settings():
    return Settings(word_list=WORDS)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def rooms(db, settings, rng):
    return RoomManager(db, settings, rng)


@pytest.fixture
def rounds(db, settings, rng):
    return RoundManager(db, settings, rng)


@pytest.fixture
def started_room(rooms):
    """Factory: create a room, seat players and start the game"""
    def _make(player_count=3, impostor_count=1, max_players=6, max_rounds=5):
        room = rooms.create_room(max_players, impostor_count, max_rounds)
        add_players(rooms, room, player_count)
        rooms.start_game(room.id)
        return room, rooms.get_players(room.id)
    return _make
