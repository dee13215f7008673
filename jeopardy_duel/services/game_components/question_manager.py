import itertools
import logging
from typing import Awaitable, Callable, List, Optional

from ...ai.matching import approximate_match
from ...config import GameSettings
from ...errors import InvalidSelection, InvalidWager
from ...models.game_state import ClueAttempt, ClueState, GameSession, RoundName
from ...models.judgment import Judgment
from ..display import GameDisplay
from ..scheduler import Phase, Scheduler
from ..speech import SpeechCapture
from .buzzer_manager import BuzzerManager
from .contestant_manager import ContestantManager
from .daily_double_manager import max_daily_double_wager, validate_wager
from .timer import Countdown

logger = logging.getLogger(__name__)

FALLBACK_EXPLANATION = "Judge unavailable - using simple matching"


async def judge_safely(judge, clue_text: str, reference: str, candidate: str) -> Judgment:
    """Ask the oracle, falling back to local matching if it fails in any way."""
    try:
        result = await judge.judge(clue_text, reference, candidate)
        if not isinstance(result, Judgment):
            result = Judgment.model_validate(result)
        return result
    except Exception as e:
        logger.error(f"Answer judgment failed, falling back to simple matching: {e}")
        return Judgment(correct=approximate_match(reference, candidate), explanation=FALLBACK_EXPLANATION)


class QuestionManager:
    """
    Plays one clue at a time, from selection to closure.

    Every callback that can fire later (timer, transcript, capture error,
    paced display phases) carries the attempt id and generation it was
    created for and is dropped if the attempt has moved on.
    """

    def __init__(self, session: GameSession, ledger: ContestantManager, buzzer: BuzzerManager,
                 display: GameDisplay, capture: SpeechCapture, judge, scheduler: Scheduler,
                 settings: GameSettings, on_clue_closed: Optional[Callable[[], Awaitable[None]]] = None):
        self.session = session
        self.ledger = ledger
        self.buzzer = buzzer
        self.display = display
        self.capture = capture
        self.judge = judge
        self.scheduler = scheduler
        self.settings = settings
        self.on_clue_closed = on_clue_closed
        self.timer = Countdown(scheduler.clock, name="response timer")
        self._attempt_ids = itertools.count(1)

    def _current(self, attempt_id: int, generation: int) -> Optional[ClueAttempt]:
        attempt = self.session.attempt
        if attempt is None or attempt.attempt_id != attempt_id or attempt.generation != generation:
            return None
        return attempt

    async def _run_phases(self, attempt: ClueAttempt, phases: List[Phase]) -> bool:
        attempt_id, generation = attempt.attempt_id, attempt.generation
        return await self.scheduler.run_phases(
            phases, lambda: self._current(attempt_id, generation) is attempt
        )

    # ------------------------------------------------------------------
    # Selection and wagers
    # ------------------------------------------------------------------

    async def select_clue(self, category_index: int, value_index: int, round_name: str) -> ClueAttempt:
        session = self.session
        if session.attempt is not None:
            raise InvalidSelection("A clue is already in progress")
        if session.game_over or session.current_round == RoundName.FINAL:
            raise InvalidSelection("No board round is in play")
        try:
            requested_round = RoundName(round_name)
        except ValueError:
            raise InvalidSelection(f"Unknown round {round_name!r}")
        if requested_round != session.current_round:
            raise InvalidSelection(f"Round {requested_round.value} is not in play")

        clue = session.board.round(session.current_round).clue_at(category_index, value_index)
        if clue is None:
            raise InvalidSelection(f"No clue at ({category_index}, {value_index})")
        if session.is_used(clue.id):
            raise InvalidSelection(f"{clue} has already been played")

        # Committed as soon as it is picked, whatever happens next.
        session.mark_used(clue.id)
        attempt = ClueAttempt(attempt_id=next(self._attempt_ids), clue=clue, is_wager=clue.daily_double)
        session.attempt = attempt
        logger.info(f"Selected {clue} (daily double: {attempt.is_wager})")

        if attempt.is_wager:
            attempt.state = ClueState.AWAITING_WAGER
            player = session.player_in_control
            score = self.ledger.score(player)
            await self.display.show_wager_prompt(
                player, score, max_daily_double_wager(score, session.current_round)
            )
        else:
            await self._reveal(attempt)
            await self._open_buzzers(attempt, "Press your buzzer!")
        return attempt

    def max_wager(self) -> int:
        player = self.session.player_in_control
        return max_daily_double_wager(self.ledger.score(player), self.session.current_round)

    async def submit_wager(self, amount: int) -> None:
        attempt = self.session.attempt
        if attempt is None or attempt.state != ClueState.AWAITING_WAGER:
            raise InvalidWager("No daily double is waiting for a wager")
        player = self.session.player_in_control
        attempt.wager = validate_wager(amount, self.max_wager())
        logger.info(f"Player {player} wagers ${attempt.wager} on {attempt.clue}")

        await self.display.hide_wager_prompt()
        await self._reveal(attempt)

        # Only the controlling player may answer, so skip the open/press cycle.
        self.buzzer.lock(player)
        attempt.locked_player = player
        attempt.state = ClueState.BUZZERS_OPEN
        await self.display.show_buzzer_state("locked", player)
        await self.display.set_buzzer_status(f"Player {player}, speak your answer...")
        self._start_timer(attempt)
        await self._start_capture(attempt, player)

    # ------------------------------------------------------------------
    # Buzzers and timer
    # ------------------------------------------------------------------

    async def _reveal(self, attempt: ClueAttempt):
        attempt.state = ClueState.REVEALED
        clue = attempt.clue
        await self.display.show_clue(clue.category, clue.value, clue.text)

    async def _open_buzzers(self, attempt: ClueAttempt, status: str):
        attempt.generation += 1
        attempt.locked_player = None
        attempt.state = ClueState.BUZZERS_OPEN
        self.buzzer.close()
        self.buzzer.open()
        await self.display.show_buzzer_state("open")
        await self.display.set_buzzer_status(status)
        self._start_timer(attempt)

    def _start_timer(self, attempt: ClueAttempt):
        attempt_id, generation = attempt.attempt_id, attempt.generation
        total = self.settings.response_seconds
        self.timer.start(
            total,
            on_tick=lambda remaining: self.display.update_timer(remaining, total),
            on_expire=lambda: self._on_timer_expired(attempt_id, generation),
        )

    async def buzz(self, player: int) -> bool:
        attempt = self.session.attempt
        if attempt is None or attempt.state != ClueState.BUZZERS_OPEN:
            logger.warning(f"Buzz from player {player} ignored - no clue accepting buzzes")
            return False

        if attempt.capture_stalled and attempt.locked_player == player:
            logger.info(f"Player {player} re-buzzed after capture failure")
            attempt.capture_stalled = False
            attempt.capture_failures = 0
            await self.display.set_buzzer_status(f"Player {player}, speak your answer...")
            await self._start_capture(attempt, player)
            return True

        if not self.buzzer.press(player, attempt.answered):
            return False

        self.timer.stop()
        attempt.locked_player = player
        await self.display.show_buzzer_state("locked", player)
        await self.display.set_buzzer_status(f"Player {player}, speak your answer...")
        await self._start_capture(attempt, player)
        return True

    async def _on_timer_expired(self, attempt_id: int, generation: int):
        attempt = self._current(attempt_id, generation)
        if attempt is None or attempt.state != ClueState.BUZZERS_OPEN:
            logger.debug("Ignoring stale response timer")
            return

        attempt.state = ClueState.JUDGED
        if attempt.locked_player is None:
            logger.info(f"Time expired on {attempt.clue} with no buzz")
            self.buzzer.close()
            await self.display.show_buzzer_state("closed")
            await self.display.show_answer_result(False, f"Time's up! Answer: {attempt.clue.response}")
            await self._run_phases(attempt, [
                Phase("close", self.settings.reveal_delay, lambda: self._close(attempt)),
            ])
        else:
            # Holding the buzzer until time runs out counts as a wrong answer.
            player = attempt.locked_player
            logger.info(f"Time expired on {attempt.clue} while player {player} held the buzzer")
            await self.capture.stop()
            await self._record_miss(attempt, player, f"Time's up! -${attempt.scoring_value}")

    # ------------------------------------------------------------------
    # Speech capture
    # ------------------------------------------------------------------

    async def _start_capture(self, attempt: ClueAttempt, player: int):
        attempt_id, generation = attempt.attempt_id, attempt.generation
        await self.capture.start(
            player,
            on_transcript=lambda text: self.scheduler.spawn(
                self._on_transcript(attempt_id, generation, player, text), name="transcript"
            ),
            on_error=lambda error: self.scheduler.spawn(
                self._on_capture_error(attempt_id, generation, player, error), name="capture-error"
            ),
        )

    def _holding(self, attempt_id: int, generation: int, player: int) -> Optional[ClueAttempt]:
        attempt = self._current(attempt_id, generation)
        if attempt is None or attempt.state != ClueState.BUZZERS_OPEN or attempt.locked_player != player:
            return None
        return attempt

    async def _on_capture_error(self, attempt_id: int, generation: int, player: int, error: Exception):
        attempt = self._holding(attempt_id, generation, player)
        if attempt is None:
            return

        attempt.capture_failures += 1
        logger.warning(f"Speech capture error for player {player} "
                       f"({attempt.capture_failures}/{self.settings.max_capture_attempts}): {error}")
        if attempt.capture_failures >= self.settings.max_capture_attempts:
            attempt.capture_stalled = True
            logger.error(f"Giving up on speech capture for player {player}; waiting for a re-buzz or skip")
            await self.display.set_buzzer_status(
                f"Couldn't hear Player {player}. Buzz again to retry, or skip the clue."
            )
            return

        await self.display.set_buzzer_status("Speech error. Try again...")
        delay = self.settings.capture_retry_delay * (2 ** (attempt.capture_failures - 1))
        await self.scheduler.sleep(delay)
        if self._holding(attempt_id, generation, player) is not attempt:
            return
        await self._start_capture(attempt, player)

    async def _on_transcript(self, attempt_id: int, generation: int, player: int, text: str):
        attempt = self._holding(attempt_id, generation, player)
        if attempt is None:
            logger.info(f"Ignoring stale transcript from player {player}")
            return

        logger.info(f"Heard from player {player}: {text!r}")
        # An answer is in; the clock no longer matters for this attempt.
        self.timer.stop()
        attempt.state = ClueState.ANSWER_PENDING
        attempt.judging = True
        await self.display.set_buzzer_status(f'Validating: "{text}"...')

        clue = attempt.clue
        judgment = await judge_safely(self.judge, clue.text, clue.response, text)
        if self._current(attempt_id, generation) is not attempt or attempt.state != ClueState.ANSWER_PENDING:
            logger.info(f"Dropping verdict for player {player}: clue moved on")
            return
        attempt.judging = False
        logger.info(f"Verdict for player {player}: correct={judgment.correct} ({judgment.explanation})")
        await self._apply_judgment(attempt, player, judgment)

    # ------------------------------------------------------------------
    # Scoring and closure
    # ------------------------------------------------------------------

    async def _apply_judgment(self, attempt: ClueAttempt, player: int, judgment: Judgment):
        attempt.state = ClueState.JUDGED
        await self.capture.stop()
        amount = attempt.scoring_value

        if judgment.correct:
            await self.ledger.award(player, amount)
            self.session.player_in_control = player
            await self.display.show_answer_result(True, f"Correct! +${amount}")
            await self.display.update_control_indicator(player)
            await self._run_phases(attempt, [
                Phase("close", self.settings.result_delay, lambda: self._close(attempt)),
            ])
        else:
            await self._record_miss(attempt, player, f"Incorrect. -${amount}")

    async def _record_miss(self, attempt: ClueAttempt, player: int, message: str):
        await self.ledger.deduct(player, attempt.scoring_value)
        attempt.answered.append(player)
        await self.display.show_answer_result(False, message)

        if attempt.is_wager or attempt.everyone_answered():
            reference = attempt.clue.response
            phases = [
                Phase("show_reference", self.settings.result_delay,
                      lambda: self.display.show_answer_result(False, f"Correct answer: {reference}")),
                Phase("close", self.settings.reveal_delay, lambda: self._close(attempt)),
            ]
        else:
            phases = [
                Phase("reopen", self.settings.result_delay,
                      lambda: self._open_buzzers(attempt, "Other player can buzz in!")),
            ]
        await self._run_phases(attempt, phases)

    async def skip(self) -> bool:
        """Force the current clue closed, revealing the response, from any sub-state."""
        attempt = self.session.attempt
        if attempt is None or attempt.state == ClueState.CLOSED:
            logger.warning("Skip ignored - no clue in progress")
            return False

        logger.info(f"Skipping {attempt.clue} from state {attempt.state.value}")
        awaiting_wager = attempt.state == ClueState.AWAITING_WAGER
        attempt.generation += 1
        attempt.state = ClueState.JUDGED
        attempt.is_wager = False
        attempt.wager = None
        attempt.judging = False
        self.timer.stop()
        self.buzzer.close()
        await self.capture.stop()

        if awaiting_wager:
            await self.display.hide_wager_prompt()
        await self.display.show_buzzer_state("closed")
        await self.display.show_answer_result(False, f"Skipped. Correct answer: {attempt.clue.response}")
        self.scheduler.spawn(self._run_phases(attempt, [
            Phase("close", self.settings.skip_delay, lambda: self._close(attempt)),
        ]), name="skip")
        return True

    async def _close(self, attempt: ClueAttempt):
        if self.session.attempt is not attempt:
            return
        attempt.state = ClueState.CLOSED
        attempt.generation += 1
        attempt.is_wager = False
        attempt.wager = None
        self.timer.stop()
        self.buzzer.close()
        await self.capture.stop()
        await self.display.show_buzzer_state("closed")
        await self.display.hide_clue()
        self.session.attempt = None
        logger.info(f"Closed {attempt.clue}")
        if self.on_clue_closed:
            await self.on_clue_closed()

    async def shutdown(self):
        """Abandon whatever is in flight; late callbacks for this session become no-ops."""
        attempt = self.session.attempt
        if attempt is not None:
            attempt.generation += 1
            attempt.state = ClueState.CLOSED
        self.timer.stop()
        self.buzzer.close()
        await self.capture.stop()
