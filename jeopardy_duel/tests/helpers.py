"""
Fakes shared by the game tests: a recording display, a scriptable speech
capture, a judge and a board provider.
"""

import asyncio
import random
import unittest
from typing import Any, Dict, Iterable, List, Optional, Tuple

from jeopardy_duel.config import GameSettings
from jeopardy_duel.errors import CaptureError
from jeopardy_duel.models.board import (
    CATEGORY_COUNT, DOUBLE_VALUES, STANDARD_VALUES, VALUES_PER_CATEGORY, Board, RoundBoard
)
from jeopardy_duel.models.judgment import Judgment
from jeopardy_duel.models.question import Clue, FinalClue
from jeopardy_duel.services.display import GameDisplay
from jeopardy_duel.services.game_service import GameService
from jeopardy_duel.services.scheduler import Scheduler, VirtualClock
from jeopardy_duel.services.speech import SpeechCapture

FINAL_RESPONSE = "Mount Everest"


def standard_id(category_index: int, value_index: int) -> str:
    return f"s-{category_index}-{value_index}"


def double_id(category_index: int, value_index: int) -> str:
    return f"d-{category_index}-{value_index}"


def response_for(clue_id: str) -> str:
    return f"answer {clue_id}"


def _round(prefix: str, values: List[int], daily_doubles: Iterable[Tuple[int, int]]) -> RoundBoard:
    daily_doubles = set(daily_doubles)
    clues = []
    for ci in range(CATEGORY_COUNT):
        for vi in range(VALUES_PER_CATEGORY):
            clue_id = f"{prefix}-{ci}-{vi}"
            clues.append(Clue(
                id=clue_id,
                category=f"{prefix.upper()} category {ci}",
                value=values[vi],
                text=f"Clue text for {clue_id}",
                response=response_for(clue_id),
                daily_double=(ci, vi) in daily_doubles,
            ))
    return RoundBoard(categories=[f"{prefix.upper()} category {ci}" for ci in range(CATEGORY_COUNT)], clues=clues)


def make_board(standard_dd: Iterable[Tuple[int, int]] = (), double_dd: Iterable[Tuple[int, int]] = (),
               final: bool = True) -> Board:
    return Board(
        standard=_round("s", STANDARD_VALUES, standard_dd),
        double=_round("d", DOUBLE_VALUES, double_dd),
        final=FinalClue(id="fj-1", category="Mountains", text="The highest peak on Earth",
                        response=FINAL_RESPONSE) if final else None,
    )


class RecordingDisplay(GameDisplay):
    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    async def emit(self, event: str, payload: Dict[str, Any]) -> None:
        self.events.append((event, payload))

    def of(self, event: str) -> List[Dict[str, Any]]:
        return [payload for name, payload in self.events if name == event]

    def last(self, event: str) -> Optional[Dict[str, Any]]:
        found = self.of(event)
        return found[-1] if found else None

    def result_messages(self) -> List[str]:
        return [payload["message"] for payload in self.of("answer_result")]

    def status_messages(self) -> List[str]:
        return [payload["message"] for payload in self.of("buzzer_status")]


class FakeCapture(SpeechCapture):
    """Capture that only produces transcripts or errors when a test says so."""

    def __init__(self):
        self.starts: List[int] = []
        self.stops = 0
        self.player: Optional[int] = None
        self._on_transcript = None
        self._on_error = None

    @property
    def listening(self) -> bool:
        return self._on_transcript is not None

    async def start(self, player, on_transcript, on_error):
        self.starts.append(player)
        self.player = player
        self._on_transcript = on_transcript
        self._on_error = on_error

    async def stop(self):
        self.stops += 1
        self._clear()

    def say(self, text: str):
        callback = self._on_transcript
        assert callback is not None, "capture is not listening"
        self._clear()
        callback(text)

    def fail(self, message: str = "no speech detected"):
        callback = self._on_error
        assert callback is not None, "capture is not listening"
        self._clear()
        callback(CaptureError(message))

    def _clear(self):
        self.player = None
        self._on_transcript = None
        self._on_error = None


class FakeJudge:
    """Correct iff the answer equals the reference, unless told otherwise."""

    def __init__(self):
        self.calls: List[Tuple[str, str, str]] = []
        self.verdicts: Dict[str, bool] = {}
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    async def judge(self, clue_text: str, reference: str, candidate: str) -> Judgment:
        self.calls.append((clue_text, reference, candidate))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        correct = self.verdicts.get(candidate, candidate == reference)
        return Judgment(correct=correct, explanation="fake judge")


class FakeProvider:
    def __init__(self, board: Optional[Board] = None):
        self.board = board
        self.persisted: List[List[str]] = []
        self.error: Optional[Exception] = None

    async def get_board(self, custom_categories=None) -> Board:
        return self.board or make_board()

    async def persist_used_clues(self, ids):
        if self.error is not None:
            raise self.error
        self.persisted.append(list(ids))


class GameTestCase(unittest.IsolatedAsyncioTestCase):
    """Wires a GameService to fakes and a virtual clock."""

    async def asyncSetUp(self):
        self.clock = VirtualClock()
        self.scheduler = Scheduler(self.clock)
        self.display = RecordingDisplay()
        self.capture = FakeCapture()
        self.judge = FakeJudge()
        self.provider = FakeProvider()
        self.settings = GameSettings()
        self.service = GameService(
            self.display, self.capture, self.judge, provider=self.provider,
            settings=self.settings, scheduler=self.scheduler, rng=random.Random(7)
        )

    async def asyncTearDown(self):
        await self.service.shutdown()

    async def start(self, board: Optional[Board] = None, control: int = 1):
        session = await self.service.start_game(board or make_board())
        session.player_in_control = control
        self.session = session
        return session

    async def answer(self, text: str):
        """Deliver a transcript for the listening player and let the verdict land."""
        self.capture.say(text)
        await self.clock.settle()

    def score(self, player: int) -> int:
        return self.session.score(player)

    def use_all_but(self, round_board: RoundBoard, *keep: str):
        for clue_id in round_board.clue_ids():
            if clue_id not in keep:
                self.session.mark_used(clue_id)
