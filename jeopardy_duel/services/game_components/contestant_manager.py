import logging
from typing import Dict
from ...models.game_state import GameSession
from ..display import GameDisplay

logger = logging.getLogger(__name__)


class ContestantManager:
    """Score ledger. The only place player scores change."""

    def __init__(self, session: GameSession, display: GameDisplay):
        self.session = session
        self.display = display

    def score(self, player: int) -> int:
        return self.session.players[player].score

    def scores(self) -> Dict[int, int]:
        return {number: p.score for number, p in self.session.players.items()}

    async def reset(self) -> None:
        for contestant in self.session.players.values():
            contestant.score = 0
        await self.broadcast_scores()

    async def award(self, player: int, amount: int) -> None:
        await self._apply(player, amount)

    async def deduct(self, player: int, amount: int) -> None:
        await self._apply(player, -amount)

    async def _apply(self, player: int, delta: int) -> None:
        contestant = self.session.players[player]
        before = contestant.score
        contestant.add_score(delta)
        logger.info(f"Player {player}: {before} {'+' if delta >= 0 else '-'} {abs(delta)} = {contestant.score}")
        await self.broadcast_scores()

    async def broadcast_scores(self) -> None:
        """Send current scores to the display"""
        await self.display.update_scores(self.score(1), self.score(2))
