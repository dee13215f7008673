import logging
from typing import Any, Dict, List
from ...errors import PersistenceFailure
from ...models.board import VALUES_PER_CATEGORY
from ...models.game_state import GameSession, RoundName
from ..display import GameDisplay
from ..scheduler import Scheduler

logger = logging.getLogger(__name__)

ROUND_BANNERS = {
    RoundName.STANDARD: "JEOPARDY!",
    RoundName.DOUBLE: "DOUBLE JEOPARDY!",
    RoundName.FINAL: "FINAL JEOPARDY!",
}


class BoardManager:
    """Round progression: standard -> double -> final -> game over."""

    def __init__(self, session: GameSession, display: GameDisplay, scheduler: Scheduler,
                 provider=None, final_manager=None):
        self.session = session
        self.display = display
        self.scheduler = scheduler
        self.provider = provider
        self.final_manager = final_manager

    def round_complete(self) -> bool:
        """True once every clue of the current board round is in the used list"""
        round_board = self.session.board.round(self.session.current_round)
        if round_board is None:
            return False
        return all(self.session.is_used(clue_id) for clue_id in round_board.clue_ids())

    def board_payload(self) -> List[Dict[str, Any]]:
        round_board = self.session.board.round(self.session.current_round)
        if round_board is None:
            return []
        return [
            {
                "id": clue.id,
                "category_index": index // VALUES_PER_CATEGORY,
                "value_index": index % VALUES_PER_CATEGORY,
                "value": clue.value,
            }
            for index, clue in enumerate(round_board.clues)
        ]

    async def show_current_round(self) -> None:
        session = self.session
        round_board = session.board.round(session.current_round)
        await self.display.show_round_banner(ROUND_BANNERS[session.current_round])
        if round_board is not None:
            await self.display.show_board(
                session.current_round.value, round_board.categories,
                self.board_payload(), session.used_clue_ids
            )
        await self.display.update_control_indicator(session.player_in_control)

    async def check_round_complete(self) -> bool:
        """Advance if the clue that just closed was the last one of its round."""
        session = self.session
        if session.attempt is not None or session.game_over:
            return False
        if session.current_round == RoundName.FINAL or not self.round_complete():
            return False
        await self.advance_round()
        return True

    async def advance_round(self) -> None:
        session = self.session
        if session.current_round == RoundName.STANDARD:
            session.current_round = RoundName.DOUBLE
            score1, score2 = session.score(1), session.score(2)
            # Trailing player picks first; a tie leaves control where it was.
            if score1 < score2:
                session.player_in_control = 1
            elif score2 < score1:
                session.player_in_control = 2
            logger.info(f"Advanced to double round. Player {session.player_in_control} in control")
            await self.show_current_round()
        elif session.current_round == RoundName.DOUBLE:
            session.current_round = RoundName.FINAL
            logger.info("Advanced to final round")
            await self.start_final()

    async def start_final(self) -> None:
        if self.session.board.final is None or self.final_manager is None:
            logger.info("No final clue available, ending game")
            await self.end_game()
            return
        await self.final_manager.start()

    def winner_text(self) -> str:
        score1, score2 = self.session.score(1), self.session.score(2)
        if score1 > score2:
            return "Player 1 Wins!"
        if score2 > score1:
            return "Player 2 Wins!"
        return "It's a Tie!"

    async def end_game(self) -> None:
        session = self.session
        if session.game_over:
            return
        session.game_over = True
        winner = self.winner_text()
        logger.info(f"Game over: {winner} ({session.score(1)} - {session.score(2)})")
        await self.display.show_game_over(winner, session.score(1), session.score(2))
        self.scheduler.spawn(self.persist_used_clues(), name="persist-used-clues")

    def used_ids_for_persistence(self) -> List[str]:
        ids = list(self.session.used_clue_ids)
        final = self.session.board.final
        if final is not None and final.id and self.session.current_round == RoundName.FINAL:
            ids.append(final.id)
        return ids

    async def persist_used_clues(self) -> None:
        """Hand used ids to the question bank. Failures are logged, never raised."""
        if self.provider is None:
            return
        ids = self.used_ids_for_persistence()
        try:
            await self.provider.persist_used_clues(ids)
            logger.info(f"Marked {len(ids)} clues as used")
        except PersistenceFailure as e:
            logger.error(f"Error saving used clues: {e}")
        except Exception as e:
            logger.error(f"Unexpected error saving used clues: {e}", exc_info=True)
