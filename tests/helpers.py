from models import Role, RoundStatus

WORDS = ["Apple", "Banana", "Cherry"]


def add_players(rooms, room, count, prefix="Player"):
    return [rooms.join_room(room.code, f"{prefix} {i}") for i in range(count)]


def impostors_of(players):
    return [p for p in players if p.role == Role.IMPOSTOR]


def crew_of(players):
    return [p for p in players if p.role == Role.CREW]


def give_all_clues(rounds, round_id):
    """Every alive player gives a clue when their turn comes"""
    round_obj = rounds.get_round(round_id)
    while round_obj.status == RoundStatus.COLLECTING_CLUES:
        rounds.submit_clue(round_id, round_obj.current_turn_player_id, "hint")
        round_obj = rounds.get_round(round_id)
    return round_obj


def vote_out(rounds, round_id, target_id):
    """Every alive player votes for target_id; the target votes for someone else"""
    round_obj = rounds.get_round(round_id)
    alive_ids = [p.id for p in rounds.get_alive_players(round_obj.room_id)]
    decoy_id = next(pid for pid in alive_ids if pid != target_id)
    for voter_id in alive_ids:
        rounds.cast_vote(round_id, voter_id, decoy_id if voter_id == target_id else target_id)


def play_round_eliminating(rounds, room_id, target_id):
    """Clues, then votes against target_id; returns the round that was played"""
    round_obj = rounds.get_current_round(room_id)
    round_id = round_obj.id
    give_all_clues(rounds, round_id)
    vote_out(rounds, round_id, target_id)
    return rounds.get_round(round_id)
