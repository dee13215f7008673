from enum import Enum
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from .board import Board
from .contestant import Player
from .finaljeopardy import FinalWagerSession
from .question import Clue

# The incorrect-answer branch closes a clue once this many players have missed it.
PLAYER_COUNT = 2


class RoundName(str, Enum):
    STANDARD = "standard"
    DOUBLE = "double"
    FINAL = "final"


ROUND_FLOORS = {RoundName.STANDARD: 1000, RoundName.DOUBLE: 2000}


class ClueState(str, Enum):
    IDLE = "idle"
    SELECTED = "selected"
    REVEALED = "revealed"
    AWAITING_WAGER = "awaiting_wager"
    BUZZERS_OPEN = "buzzers_open"
    ANSWER_PENDING = "answer_pending"
    JUDGED = "judged"
    CLOSED = "closed"


class ClueAttempt(BaseModel):
    """Transient state of the clue currently in play."""
    attempt_id: int
    clue: Clue
    state: ClueState = ClueState.SELECTED
    is_wager: bool = False
    wager: Optional[int] = None
    locked_player: Optional[int] = None
    answered: List[int] = []
    judging: bool = False
    capture_failures: int = 0
    capture_stalled: bool = False
    # Bumped whenever pending phases must be abandoned (skip, close).
    generation: int = 0

    @property
    def scoring_value(self) -> int:
        """Wager clues always score the committed wager, never the printed value."""
        if self.is_wager:
            return self.wager or 0
        return self.clue.value

    def everyone_answered(self) -> bool:
        return len(self.answered) >= PLAYER_COUNT


class GameSession(BaseModel):
    board: Board
    current_round: RoundName = RoundName.STANDARD
    used_clue_ids: List[str] = []
    players: Dict[int, Player] = Field(default_factory=lambda: {
        1: Player(number=1, name="Player 1"),
        2: Player(number=2, name="Player 2"),
    })
    player_in_control: int = 1
    attempt: Optional[ClueAttempt] = None
    final: Optional[FinalWagerSession] = None
    game_over: bool = False

    def is_used(self, clue_id: str) -> bool:
        return clue_id in self.used_clue_ids

    def mark_used(self, clue_id: str) -> bool:
        """Append a clue id to the used list. Returns False if it was already there."""
        if clue_id in self.used_clue_ids:
            return False
        self.used_clue_ids.append(clue_id)
        return True

    def score(self, player: int) -> int:
        return self.players[player].score

    def other_player(self, player: int) -> int:
        return 2 if player == 1 else 1

    def to_dict(self) -> dict:
        attempt = None
        if self.attempt:
            attempt = {
                "category": self.attempt.clue.category,
                "value": self.attempt.clue.value,
                "text": self.attempt.clue.text if self.attempt.state != ClueState.AWAITING_WAGER else None,
                "state": self.attempt.state.value,
                "daily_double": self.attempt.is_wager,
                "locked_player": self.attempt.locked_player,
            }
        return {
            "round": self.current_round.value,
            "scores": {str(n): p.score for n, p in self.players.items()},
            "player_in_control": self.player_in_control,
            "used_clue_ids": list(self.used_clue_ids),
            "current_clue": attempt,
            "game_over": self.game_over,
        }
