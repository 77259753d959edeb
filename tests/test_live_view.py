import uuid

import pytest

from models import Room, RoomStatus, RoundStatus
from core.change_feed import ChangeEvent, ChangeKind
from core.exceptions import RoomNotFound
from core.live_view import WATCHED_TABLES, LiveViewProjector
from tests.helpers import add_players, crew_of, give_all_clues, play_round_eliminating


# ============ Change feed ============

def test_committed_insert_is_published(rooms, feed):
    received = []
    feed.subscribe("rooms", None, received.append)

    room = rooms.create_room(6, 1, 5)

    assert [(e.table, e.kind, e.row_id) for e in received] == [("rooms", ChangeKind.INSERT, room.id)]
    assert received[0].record["code"] == room.code


def test_update_is_published_with_the_new_state(rooms, feed):
    room = rooms.create_room(6, 1, 5)
    add_players(rooms, room, 3)
    room_id = room.id
    received = []
    feed.subscribe("rooms", lambda e: e.row_id == room_id, received.append)

    rooms.start_game(room.id)

    assert [e.kind for e in received] == [ChangeKind.UPDATE]
    assert received[0].record["status"] == RoomStatus.PLAYING


def test_rolled_back_changes_are_not_published(db, feed):
    received = []
    feed.subscribe("rooms", None, received.append)

    db.add(Room(code="ROLLBK", max_players=6, impostor_count=1, max_rounds=5))
    db.flush()
    db.rollback()

    assert received == []
    assert db.query(Room).count() == 0


def test_predicate_filters_rows(rooms, feed):
    first = rooms.create_room(6, 1, 5)
    second = rooms.create_room(6, 1, 5)
    second_id = second.id
    received = []
    feed.subscribe("players", lambda e: e.record["room_id"] == second_id, received.append)

    rooms.join_room(first.code, "Alice")
    rooms.join_room(second.code, "Bob")

    assert [e.record["name"] for e in received] == ["Bob"]


def test_unsubscribe_stops_delivery(rooms, feed):
    received = []
    subscription = feed.subscribe("rooms", None, received.append)
    rooms.create_room(6, 1, 5)

    feed.unsubscribe(subscription)
    rooms.create_room(6, 1, 5)

    assert len(received) == 1
    assert feed.subscription_count == 0


def test_broken_subscriber_does_not_break_the_writer(rooms, feed):
    received = []

    def explode(change: ChangeEvent):
        raise RuntimeError("consumer crashed")

    feed.subscribe("rooms", None, explode)
    feed.subscribe("rooms", None, received.append)

    room = rooms.create_room(6, 1, 5)

    assert rooms.get_room_by_id(room.id).status == RoomStatus.WAITING
    assert len(received) == 1


# ============ Live view projector ============

def test_projector_publishes_initial_view(rooms, session_factory, feed):
    room = rooms.create_room(6, 1, 5)
    add_players(rooms, room, 2)

    projector = LiveViewProjector(room.id, session_factory, feed)
    view = projector.start()

    assert view.room.code == room.code
    assert [p.name for p in view.players] == ["Player 0", "Player 1"]
    assert view.current_round is None
    assert feed.subscription_count == len(WATCHED_TABLES)
    projector.stop()


def test_projector_follows_the_game(rooms, rounds, session_factory, feed):
    room = rooms.create_room(6, 1, 5)
    views = []

    with LiveViewProjector(room.id, session_factory, feed) as projector:
        projector.add_consumer(views.append)

        add_players(rooms, room, 4)
        assert len(views[-1].players) == 4

        rooms.start_game(room.id)
        assert views[-1].room.status == RoomStatus.PLAYING
        assert views[-1].current_round.round_number == 1

        round_id = rounds.get_current_round(room.id).id
        give_all_clues(rounds, round_id)
        assert views[-1].current_round.status == RoundStatus.VOTING
        assert len(views[-1].clues) == 4

        players = rooms.get_players(room.id)
        play_round_eliminating(rounds, room.id, crew_of(players)[0].id)

        latest = projector.latest
        assert latest.current_round.round_number == 2
        assert latest.current_round.status == RoundStatus.COLLECTING_CLUES
        assert latest.alive_count == 3
        assert latest.votes_cast == 0
        assert latest.clues == []

    assert not projector.is_running
    assert feed.subscription_count == 0


def test_projector_ignores_other_rooms(rooms, session_factory, feed):
    watched = rooms.create_room(6, 1, 5)
    other = rooms.create_room(6, 1, 5)
    views = []

    with LiveViewProjector(watched.id, session_factory, feed) as projector:
        projector.add_consumer(views.append)
        add_players(rooms, other, 3)

    assert views == []


def test_stopped_projector_receives_nothing(rooms, session_factory, feed):
    room = rooms.create_room(6, 1, 5)
    views = []
    projector = LiveViewProjector(room.id, session_factory, feed)
    projector.add_consumer(views.append)
    projector.start()
    assert len(views) == 1

    projector.stop()
    projector.stop()
    add_players(rooms, room, 1)

    assert len(views) == 1
    assert feed.subscription_count == 0


def test_removed_consumer_receives_nothing(rooms, session_factory, feed):
    room = rooms.create_room(6, 1, 5)
    kept, removed = [], []

    with LiveViewProjector(room.id, session_factory, feed) as projector:
        projector.add_consumer(kept.append)
        projector.add_consumer(removed.append)
        projector.remove_consumer(removed.append)
        add_players(rooms, room, 1)

    assert kept and all(len(view.players) == 1 for view in kept)
    assert removed == []


def test_projector_for_unknown_room(session_factory, feed):
    projector = LiveViewProjector(uuid.uuid4(), session_factory, feed)
    with pytest.raises(RoomNotFound):
        projector.start()
    projector.stop()
