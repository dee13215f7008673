import asyncio
import logging
from typing import Awaitable, Callable, Optional
from ...config import GameSettings
from ...errors import InvalidWager
from ...models.finaljeopardy import FinalWagerSession, PLAYERS
from ...models.game_state import GameSession, RoundName
from ..display import GameDisplay
from ..scheduler import Scheduler
from .contestant_manager import ContestantManager
from .daily_double_manager import max_final_wager, validate_wager
from .question_manager import judge_safely
from .timer import Countdown

logger = logging.getLogger(__name__)


class FinalJeopardyManager:
    """
    Final round: both players bet, one shared countdown, both answer, both
    answers judged concurrently, then scores are settled together.
    """

    def __init__(self, session: GameSession, ledger: ContestantManager, display: GameDisplay,
                 judge, scheduler: Scheduler, settings: GameSettings,
                 on_finished: Optional[Callable[[], Awaitable[None]]] = None):
        self.session = session
        self.ledger = ledger
        self.display = display
        self.judge = judge
        self.scheduler = scheduler
        self.settings = settings
        self.on_finished = on_finished
        self.timer = Countdown(scheduler.clock, name="final timer")
        self.last_results = None

    @property
    def state(self) -> Optional[FinalWagerSession]:
        return self.session.final

    async def start(self) -> None:
        final = self.session.board.final
        self.session.final = FinalWagerSession()
        logger.info(f"Starting final round in category {final.category}")
        await self.display.show_round_banner("FINAL JEOPARDY!")
        await self.display.show_final_wager_prompt(final.category, self.session.score(1), self.session.score(2))

    async def submit_wagers(self, wager1: int, wager2: int) -> None:
        state = self.state
        if state is None or self.session.current_round != RoundName.FINAL:
            raise InvalidWager("Final round is not taking wagers")
        if state.wagers:
            raise InvalidWager("Final wagers have already been submitted")

        wagers = {
            1: validate_wager(wager1, max_final_wager(self.session.score(1))),
            2: validate_wager(wager2, max_final_wager(self.session.score(2))),
        }
        state.wagers = wagers
        logger.info(f"Final wagers: player 1 ${wagers[1]} (score {self.session.score(1)}), "
                    f"player 2 ${wagers[2]} (score {self.session.score(2)})")

        seconds = self.settings.final_seconds
        await self.display.show_final_question(self.session.board.final.text, seconds)
        self.timer.start(
            seconds,
            on_tick=lambda remaining: self.display.update_timer(remaining, seconds),
            on_expire=self._on_timer_expired,
        )

    def update_draft(self, player: int, text: str) -> bool:
        """Remember what a player has typed so far, for auto-submission."""
        state = self.state
        if state is None or state.submitted or player not in PLAYERS:
            return False
        state.set_draft(player, text or "")
        return True

    async def _on_timer_expired(self) -> None:
        state = self.state
        if state is None or state.submitted:
            return
        logger.info("Final timer expired, auto-submitting answers")
        await self.submit_answers(state.get_draft(1), state.get_draft(2))

    async def submit_answers(self, answer1: str, answer2: str) -> bool:
        state = self.state
        if state is None or not state.has_all_bets():
            logger.warning("Final answers ignored - wagers not in yet")
            return False
        if state.submitted:
            logger.warning("Final answers already submitted")
            return False

        state.submitted = True
        self.timer.stop()
        state.answers = {1: (answer1 or "").strip(), 2: (answer2 or "").strip()}

        final = self.session.board.final
        judgments = await asyncio.gather(*[
            judge_safely(self.judge, final.text, final.response, state.answers[player])
            for player in PLAYERS
        ])
        if self.session.final is not state:
            logger.info("Dropping final verdicts: session moved on")
            return False

        for player, judgment in zip(PLAYERS, judgments):
            state.verdicts[player] = judgment.correct
            state.explanations[player] = judgment.explanation

        await self._apply_scores(state)
        self.last_results = self.results_payload(state)
        await self.display.show_final_results(self.last_results)
        self.session.final = None

        if self.on_finished:
            await self.on_finished()
        return True

    async def _apply_scores(self, state: FinalWagerSession) -> None:
        for player in PLAYERS:
            wager = state.wagers[player]
            if state.verdicts[player]:
                await self.ledger.award(player, wager)
            else:
                await self.ledger.deduct(player, wager)

    def results_payload(self, state: FinalWagerSession) -> dict:
        return {
            "response": self.session.board.final.response,
            "players": {
                str(player): {
                    "answer": state.answers[player],
                    "correct": state.verdicts[player],
                    "explanation": state.explanations.get(player, ""),
                    "wager": state.wagers[player],
                    "score": self.session.score(player),
                }
                for player in PLAYERS
            },
        }

    async def shutdown(self):
        self.timer.stop()
        # Pending judgments check this before scoring.
        self.session.final = None
