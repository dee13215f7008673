import logging
import random
from typing import Any, Dict, List, Optional

from ..config import GameSettings
from ..errors import InvalidSelection, InvalidWager
from ..models.board import Board
from ..models.game_state import GameSession, RoundName
from .display import GameDisplay
from .game_components.board_manager import BoardManager
from .game_components.buzzer_manager import BuzzerManager
from .game_components.contestant_manager import ContestantManager
from .game_components.final_jeopardy_manager import FinalJeopardyManager
from .game_components.question_manager import QuestionManager
from .scheduler import Scheduler
from .speech import SpeechCapture

logger = logging.getLogger(__name__)


class GameService:
    """
    Owns the single GameSession and routes every input event to the
    component responsible for it. Nothing else mutates the session.
    """

    def __init__(self, display: GameDisplay, capture: SpeechCapture, judge, provider=None,
                 settings: Optional[GameSettings] = None, scheduler: Optional[Scheduler] = None,
                 rng: Optional[random.Random] = None):
        self.display = display
        self.capture = capture
        self.judge = judge
        self.provider = provider
        self.settings = settings or GameSettings()
        self.scheduler = scheduler or Scheduler()
        self.rng = rng or random.Random()

        self.session: Optional[GameSession] = None
        self.buzzer_manager = BuzzerManager()
        self.contestant_manager: Optional[ContestantManager] = None
        self.question_manager: Optional[QuestionManager] = None
        self.board_manager: Optional[BoardManager] = None
        self.final_jeopardy_manager: Optional[FinalJeopardyManager] = None

    @property
    def game_ready(self) -> bool:
        return self.session is not None and not self.session.game_over

    async def new_game(self, custom_categories: Optional[Dict[str, List[str]]] = None) -> GameSession:
        """Fetch a board from the question bank and start playing it"""
        if self.provider is None:
            raise RuntimeError("No board provider configured")
        board = await self.provider.get_board(custom_categories)
        return await self.start_game(board)

    async def start_game(self, board: Board) -> GameSession:
        if self.question_manager is not None:
            await self.question_manager.shutdown()
        if self.final_jeopardy_manager is not None:
            await self.final_jeopardy_manager.shutdown()

        session = GameSession(board=board, player_in_control=self.rng.choice([1, 2]))
        self.session = session
        self.buzzer_manager.close()
        self.contestant_manager = ContestantManager(session, self.display)
        self.final_jeopardy_manager = FinalJeopardyManager(
            session, self.contestant_manager, self.display, self.judge, self.scheduler,
            self.settings, on_finished=self._on_final_finished
        )
        self.board_manager = BoardManager(
            session, self.display, self.scheduler, provider=self.provider,
            final_manager=self.final_jeopardy_manager
        )
        self.question_manager = QuestionManager(
            session, self.contestant_manager, self.buzzer_manager, self.display, self.capture,
            self.judge, self.scheduler, self.settings, on_clue_closed=self._on_clue_closed
        )

        await self.contestant_manager.reset()
        await self.board_manager.show_current_round()
        logger.info(f"Game started. Player {session.player_in_control} in control.")
        return session

    async def _on_clue_closed(self):
        await self.board_manager.check_round_complete()

    async def _on_final_finished(self):
        await self.board_manager.end_game()

    def _require_game(self, action: str) -> bool:
        if self.session is None:
            logger.warning(f"{action} ignored - no game in progress")
            return False
        return True

    async def select_clue(self, category_index: int, value_index: int, round_name: str) -> bool:
        if not self._require_game("Clue selection"):
            return False
        try:
            await self.question_manager.select_clue(category_index, value_index, round_name)
            return True
        except InvalidSelection as e:
            logger.warning(f"Selection ignored: {e}")
            return False

    async def buzz(self, player: int) -> bool:
        if not self._require_game("Buzz"):
            return False
        return await self.question_manager.buzz(player)

    async def submit_wager(self, amount: int) -> bool:
        if not self._require_game("Wager"):
            return False
        try:
            await self.question_manager.submit_wager(amount)
            return True
        except InvalidWager as e:
            logger.warning(f"Wager rejected: {e}")
            await self.display.show_error(str(e))
            return False

    async def submit_final_wagers(self, wager1: int, wager2: int) -> bool:
        if not self._require_game("Final wagers"):
            return False
        try:
            await self.final_jeopardy_manager.submit_wagers(wager1, wager2)
            return True
        except InvalidWager as e:
            logger.warning(f"Final wagers rejected: {e}")
            await self.display.show_error(str(e))
            return False

    def update_final_draft(self, player: int, text: str) -> bool:
        if self.session is None:
            return False
        return self.final_jeopardy_manager.update_draft(player, text)

    async def submit_final_answers(self, answer1: str, answer2: str) -> bool:
        if not self._require_game("Final answers"):
            return False
        return await self.final_jeopardy_manager.submit_answers(answer1, answer2)

    async def skip_clue(self) -> bool:
        if not self._require_game("Skip"):
            return False
        return await self.question_manager.skip()

    async def toggle_control(self) -> Optional[int]:
        """Hand control to the other player"""
        if not self._require_game("Toggle control"):
            return None
        session = self.session
        if not self.game_ready or session.current_round == RoundName.FINAL:
            logger.warning("Toggle control ignored - no board round in play")
            return None
        session.player_in_control = session.other_player(session.player_in_control)
        logger.info(f"Control switched to Player {session.player_in_control}")
        await self.display.update_control_indicator(session.player_in_control)
        return session.player_in_control

    def set_response_duration(self, seconds: int) -> None:
        if seconds <= 0:
            raise ValueError("Response duration must be positive")
        logger.info(f"Response time set to {seconds}s")
        self.settings.response_seconds = seconds

    def get_game_state(self) -> Dict[str, Any]:
        """Snapshot for newly connected clients"""
        if self.session is None:
            return {"game_ready": False, "response_seconds": self.settings.response_seconds}
        state = self.session.to_dict()
        state["game_ready"] = self.game_ready
        state["response_seconds"] = self.settings.response_seconds
        state["buzzer"] = {
            "state": self.buzzer_manager.state.value,
            "player": self.buzzer_manager.locked_player,
        }
        if self.board_manager is not None:
            state["board"] = self.board_manager.board_payload()
            round_board = self.session.board.round(self.session.current_round)
            state["categories"] = round_board.categories if round_board else []
        if self.final_jeopardy_manager is not None and self.final_jeopardy_manager.last_results is not None:
            state["final_results"] = self.final_jeopardy_manager.last_results
        return state

    async def shutdown(self):
        if self.question_manager is not None:
            await self.question_manager.shutdown()
        if self.final_jeopardy_manager is not None:
            await self.final_jeopardy_manager.shutdown()
        await self.scheduler.shutdown()
