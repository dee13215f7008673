import logging
from enum import Enum
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


class BuzzerState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    LOCKED = "locked"


class BuzzerManager:
    """
    Decides who may answer right now.

    Only lock state lives here; the list of players who already missed the
    current clue belongs to the clue attempt and is passed in on press().
    """

    def __init__(self):
        self.state = BuzzerState.CLOSED
        self.locked_player: Optional[int] = None

    @property
    def active(self) -> bool:
        return self.state == BuzzerState.OPEN

    def open(self) -> bool:
        """Open the buzzers. Only valid while closed."""
        if self.state != BuzzerState.CLOSED:
            logger.warning(f"Cannot open buzzers from state {self.state.value}")
            return False
        logger.info("Buzzers open")
        self.state = BuzzerState.OPEN
        self.locked_player = None
        return True

    def press(self, player: int, already_answered: Iterable[int] = ()) -> bool:
        """Handle a buzz. Returns True if the player took the lock."""
        if self.state != BuzzerState.OPEN:
            logger.warning(f"Buzz from player {player} ignored - buzzer {self.state.value}")
            return False
        if player in already_answered:
            logger.warning(f"Player {player} already answered this clue")
            return False
        logger.info(f"Buzz accepted from player {player}")
        self.state = BuzzerState.LOCKED
        self.locked_player = player
        return True

    def lock(self, player: int) -> None:
        """Lock a player in without an open/press cycle (wager clues)."""
        logger.info(f"Locking in player {player}")
        self.state = BuzzerState.LOCKED
        self.locked_player = player

    def close(self) -> None:
        if self.state != BuzzerState.CLOSED:
            logger.info("Buzzers closed")
        self.state = BuzzerState.CLOSED
        self.locked_player = None
