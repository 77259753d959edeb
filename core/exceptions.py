"""
Custom exception classes

All business rule violations live here so the API layer can map them
to HTTP responses in one place. Every concrete error belongs to one of
the six categories below.
"""


class ImpostorGameException(Exception):
    """Base class for all game exceptions"""
    pass


# ============ Categories ============

class ValidationError(ImpostorGameException):
    """Bad input parameters (out-of-range settings, self-vote, empty clue)"""
    pass


class NotFoundError(ImpostorGameException):
    """A room code or identifier does not resolve"""
    pass


class InvalidStateError(ImpostorGameException):
    """Operation attempted in the wrong room or round status"""
    pass


class CapacityError(ImpostorGameException):
    """Room is full"""
    pass


class PreconditionError(ImpostorGameException):
    """Not enough players to start"""
    pass


class ConflictError(ImpostorGameException):
    """Duplicate clue or vote, absorbed as a no-op by the managers"""
    pass


# ============ Room errors ============

class RoomNotFound(NotFoundError):
    """Room does not exist"""
    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__(f"Room {room_id} not found")


class InvalidRoomSettings(ValidationError):
    """max_players / impostor_count / max_rounds out of bounds"""
    pass


class RoomNotAcceptingPlayers(InvalidStateError):
    """Room is not accepting new players (game already started)"""
    pass


class RoomFull(CapacityError):
    """Room already holds max_players players"""
    def __init__(self, code, max_players):
        self.code = code
        self.max_players = max_players
        super().__init__(f"Room {code} is full ({max_players} players)")


class NotEnoughPlayers(PreconditionError):
    """Too few players to start a game"""
    pass


# ============ Player errors ============

class PlayerNotFound(NotFoundError):
    """Player does not exist (or is not in this room)"""
    def __init__(self, player_id):
        self.player_id = player_id
        super().__init__(f"Player {player_id} not found")


class InvalidPlayerName(ValidationError):
    pass


class PlayerEliminated(InvalidStateError):
    """Eliminated players can neither give clues nor vote, nor be voted for"""
    def __init__(self, player_id):
        self.player_id = player_id
        super().__init__(f"Player {player_id} has been eliminated")


# ============ Round errors ============

class RoundNotFound(NotFoundError):
    """Round does not exist"""
    def __init__(self, round_id):
        self.round_id = round_id
        super().__init__(f"Round {round_id} not found")


class NotPlayersTurn(InvalidStateError):
    """Clues are given in seat order, one player at a time"""
    def __init__(self, player_id, current_turn_player_id):
        self.player_id = player_id
        self.current_turn_player_id = current_turn_player_id
        super().__init__(
            f"It is not player {player_id}'s turn (current turn: {current_turn_player_id})"
        )


class InvalidClue(ValidationError):
    pass


class SelfVote(ValidationError):
    """A player may not vote for themselves"""
    def __init__(self, player_id):
        self.player_id = player_id
        super().__init__(f"Player {player_id} cannot vote for themselves")


class DuplicateSubmission(ConflictError):
    """A clue or vote already exists for this (round, player) pair"""
    pass


# ============ State transition errors ============

class InvalidStateTransition(InvalidStateError):
    """Illegal state transition"""
    pass
