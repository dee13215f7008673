import logging
from ...errors import InvalidWager
from ...models.game_state import ROUND_FLOORS, RoundName

logger = logging.getLogger(__name__)

# Enforced by the input layer only; the core accepts any non-negative wager.
MIN_DAILY_DOUBLE_WAGER = 5


def max_daily_double_wager(score: int, round_name: str) -> int:
    """A player may always bet up to the top value of the round, even when poor."""
    return max(score, ROUND_FLOORS[RoundName(round_name)])


def max_final_wager(score: int) -> int:
    return max(score, 0)


def validate_wager(amount, maximum: int) -> int:
    """Return the wager as an int or raise InvalidWager."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidWager(f"Wager must be an integer, got {amount!r}")
    if amount < 0 or amount > maximum:
        raise InvalidWager(f"Wager ${amount} must be between $0 and ${maximum}")
    return amount
