"""
Outcome service: win-condition evaluation after a round resolves

Kept independent of clues and votes so the rules can be tested with
plain numbers. Rules are checked in this order:

1. no impostor alive            -> crew wins
2. alive crew <= alive impostors -> impostors win
3. current round >= max rounds  -> game over, no winner
4. otherwise                    -> next round
"""
import enum
from dataclasses import dataclass
from typing import Optional

from models import Winner


class OutcomeKind(str, enum.Enum):
    GAME_OVER = "game_over"
    NEXT_ROUND = "next_round"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    winner: Optional[Winner] = None

    @property
    def is_game_over(self) -> bool:
        return self.kind == OutcomeKind.GAME_OVER


def evaluate_outcome(
    alive_crew: int,
    alive_impostors: int,
    current_round: int,
    max_rounds: int
) -> Outcome:
    if alive_impostors == 0:
        return Outcome(OutcomeKind.GAME_OVER, Winner.CREW)
    if alive_crew <= alive_impostors:
        return Outcome(OutcomeKind.GAME_OVER, Winner.IMPOSTORS)
    if current_round >= max_rounds:
        return Outcome(OutcomeKind.GAME_OVER, Winner.NONE)
    return Outcome(OutcomeKind.NEXT_ROUND)
