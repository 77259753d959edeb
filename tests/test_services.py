import random
import uuid

import pytest

from models import Role, RoomStatus, Winner
from core.exceptions import InvalidPlayerName
from schemas import PlayerOut, RoomOut, RoomView
from services.naming_service import generate_room_code, normalize_display_name, normalize_room_code
from services.outcome_service import OutcomeKind, evaluate_outcome
from services.role_service import assign_roles, pick_secret_word
from services.tally_service import plurality_target, tally_votes
from services.turn_service import first_turn_player, next_turn_player
from services.view_service import personalize_view


# ============ Tally ============

def test_plurality_target_picks_the_most_voted():
    assert plurality_target(["a", "b", "b", "c"]) == "b"


def test_tie_goes_to_the_first_voted_target():
    assert plurality_target(["c", "d", "d", "c"]) == "c"
    assert plurality_target(["d", "c", "c", "d"]) == "d"


def test_no_votes_no_target():
    assert plurality_target([]) is None
    assert tally_votes([]) == {}


# ============ Outcome ============

@pytest.mark.parametrize("crew, impostors, current_round, max_rounds, winner", [
    (2, 0, 1, 5, Winner.CREW),
    (0, 0, 1, 5, Winner.CREW),        # no impostor left wins over everything
    (3, 0, 5, 5, Winner.CREW),        # even on the last round
    (1, 1, 1, 5, Winner.IMPOSTORS),
    (2, 3, 1, 5, Winner.IMPOSTORS),
    (1, 1, 5, 5, Winner.IMPOSTORS),   # impostor parity beats the round limit
    (4, 1, 5, 5, Winner.NONE),
])
def test_game_over_rules(crew, impostors, current_round, max_rounds, winner):
    outcome = evaluate_outcome(crew, impostors, current_round, max_rounds)

    assert outcome.is_game_over
    assert outcome.winner == winner


def test_game_goes_on():
    outcome = evaluate_outcome(3, 1, 2, 5)

    assert outcome.kind == OutcomeKind.NEXT_ROUND
    assert outcome.winner is None
    assert not outcome.is_game_over


# ============ Turns ============

def test_first_turn_is_lowest_seat():
    assert first_turn_player(["a", "b", "c"]) == "a"
    assert first_turn_player([]) is None


def test_next_turn_moves_forward_and_wraps():
    alive = ["a", "b", "c", "d"]

    assert next_turn_player(alive, {"a"}, "a") == "b"
    assert next_turn_player(alive, {"c", "d"}, "d") == "a"
    assert next_turn_player(alive, {"a", "b", "c", "d"}, "d") is None


def test_next_turn_when_current_player_is_gone():
    # The player holding the turn was eliminated: start again from the lowest seat
    assert next_turn_player(["a", "c"], set(), "b") == "a"
    assert next_turn_player(["a", "c"], {"a"}, None) == "c"


# ============ Roles and words ============

def test_assign_roles_picks_exact_impostor_count():
    ids = [uuid.uuid4() for _ in range(7)]

    roles = assign_roles(ids, 2, random.Random(42))

    assert set(roles) == set(ids)
    assert list(roles.values()).count(Role.IMPOSTOR) == 2
    assert list(roles.values()).count(Role.CREW) == 5


@pytest.mark.parametrize("count", [0, 3])
def test_assign_roles_needs_crew_and_an_impostor(count):
    with pytest.raises(ValueError):
        assign_roles(["a", "b", "c"], count, random.Random(1))


def test_every_player_can_become_impostor():
    ids = ["a", "b", "c"]
    rng = random.Random(0)

    chosen = set()
    for _ in range(200):
        roles = assign_roles(ids, 1, rng)
        chosen.update(pid for pid, role in roles.items() if role == Role.IMPOSTOR)

    assert chosen == set(ids)


def test_pick_secret_word_avoids_the_excluded_word():
    rng = random.Random(5)

    for _ in range(20):
        assert pick_secret_word(["Moon", "Rain"], rng, exclude="Moon") == "Rain"
    assert pick_secret_word(["Moon"], rng, exclude="Moon") == "Moon"

    with pytest.raises(ValueError):
        pick_secret_word([], rng)


# ============ Names and codes ============

def test_room_codes_are_six_uppercase_alphanumerics():
    rng = random.Random(11)

    for _ in range(50):
        code = generate_room_code(6, rng)
        assert len(code) == 6
        assert all(ch.isdigit() or "A" <= ch <= "Z" for ch in code)


def test_room_code_normalization():
    assert normalize_room_code("  ab12cd ") == "AB12CD"


def test_display_name_is_trimmed_and_bounded():
    assert normalize_display_name("  Zoe ") == "Zoe"
    assert normalize_display_name("x" * 30) == "x" * 30

    with pytest.raises(InvalidPlayerName):
        normalize_display_name("x" * 31)
    with pytest.raises(InvalidPlayerName):
        normalize_display_name(" ")


# ============ Personalized view ============

def _view(status, impostor_id, crew_id):
    room_id = uuid.uuid4()
    room = RoomOut(
        id=room_id, code="ABC123", status=status, max_players=6, impostor_count=1,
        max_rounds=5, current_round=1, secret_word="Moon"
    )
    players = [
        PlayerOut(id=impostor_id, room_id=room_id, name="Imp", role=Role.IMPOSTOR,
                  is_alive=True, is_host=True, seat=0),
        PlayerOut(id=crew_id, room_id=room_id, name="Crew", role=Role.CREW,
                  is_alive=True, is_host=False, seat=1),
    ]
    return RoomView(room=room, players=players, alive_count=2, version=3)


def test_crew_sees_the_word_and_only_their_own_role():
    impostor_id, crew_id = uuid.uuid4(), uuid.uuid4()

    view = personalize_view(_view(RoomStatus.PLAYING, impostor_id, crew_id), crew_id)

    assert view.room.secret_word == "Moon"
    assert [p.role for p in view.players] == [None, Role.CREW]


def test_impostor_does_not_see_the_word():
    impostor_id, crew_id = uuid.uuid4(), uuid.uuid4()

    view = personalize_view(_view(RoomStatus.PLAYING, impostor_id, crew_id), impostor_id)

    assert view.room.secret_word is None
    assert [p.role for p in view.players] == [Role.IMPOSTOR, None]


def test_spectator_sees_no_secrets_until_the_end():
    impostor_id, crew_id = uuid.uuid4(), uuid.uuid4()

    hidden = personalize_view(_view(RoomStatus.PLAYING, impostor_id, crew_id), None)
    revealed = personalize_view(_view(RoomStatus.FINISHED, impostor_id, crew_id), None)

    assert hidden.room.secret_word is None
    assert all(p.role is None for p in hidden.players)
    assert revealed.room.secret_word == "Moon"
    assert [p.role for p in revealed.players] == [Role.IMPOSTOR, Role.CREW]
