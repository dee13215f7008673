import asyncio
import unittest

from jeopardy_duel.errors import JudgmentUnavailable
from jeopardy_duel.models.game_state import ClueState
from jeopardy_duel.services.game_components.question_manager import FALLBACK_EXPLANATION
from jeopardy_duel.tests.helpers import GameTestCase, make_board, response_for, standard_id


class TestSelection(GameTestCase):

    async def test_select_reveals_clue_and_opens_buzzers(self):
        await self.start()
        self.assertTrue(await self.service.select_clue(0, 0, "standard"))

        attempt = self.session.attempt
        self.assertEqual(attempt.clue.id, standard_id(0, 0))
        self.assertEqual(attempt.state, ClueState.BUZZERS_OPEN)
        self.assertIn(standard_id(0, 0), self.session.used_clue_ids)
        self.assertEqual(self.display.last("show_clue")["text"], "Clue text for s-0-0")
        self.assertEqual(self.display.last("buzzer_state")["state"], "open")
        self.assertTrue(self.service.question_manager.timer.running)

    async def test_cannot_select_while_clue_in_progress(self):
        await self.start()
        await self.service.select_clue(0, 0, "standard")
        self.assertFalse(await self.service.select_clue(1, 0, "standard"))
        self.assertEqual(self.session.attempt.clue.id, standard_id(0, 0))
        self.assertNotIn(standard_id(1, 0), self.session.used_clue_ids)

    async def test_invalid_selections_are_ignored(self):
        await self.start()
        self.assertFalse(await self.service.select_clue(6, 0, "standard"))
        self.assertFalse(await self.service.select_clue(0, 5, "standard"))
        self.assertFalse(await self.service.select_clue(0, 0, "double"))
        self.assertFalse(await self.service.select_clue(0, 0, "bonus"))
        self.assertIsNone(self.session.attempt)
        self.assertEqual(self.session.used_clue_ids, [])

    async def test_used_clue_cannot_be_replayed(self):
        await self.start()
        await self.service.select_clue(0, 0, "standard")
        await self.service.skip_clue()
        await self.clock.advance(self.settings.skip_delay)
        self.assertIsNone(self.session.attempt)

        self.assertFalse(await self.service.select_clue(0, 0, "standard"))
        self.assertEqual(self.session.used_clue_ids, [standard_id(0, 0)])


class TestBuzzAndJudge(GameTestCase):

    async def test_correct_answer_awards_value_and_control(self):
        await self.start(control=2)
        await self.service.select_clue(0, 0, "standard")
        self.assertTrue(await self.service.buzz(1))
        self.assertEqual(self.capture.starts, [1])
        self.assertFalse(self.service.question_manager.timer.running)

        await self.answer(response_for(standard_id(0, 0)))
        self.assertEqual(self.score(1), 200)
        self.assertEqual(self.session.player_in_control, 1)
        self.assertIn("Correct! +$200", self.display.result_messages())

        await self.clock.advance(self.settings.result_delay)
        self.assertIsNone(self.session.attempt)
        self.assertIsNotNone(self.display.last("hide_clue"))

    async def test_second_buzz_is_ignored_while_locked(self):
        await self.start()
        await self.service.select_clue(0, 0, "standard")
        self.assertTrue(await self.service.buzz(2))
        self.assertFalse(await self.service.buzz(1))
        self.assertEqual(self.session.attempt.locked_player, 2)
        self.assertEqual(self.capture.starts, [2])

    async def test_wrong_answer_reopens_for_other_player_only(self):
        await self.start()
        await self.service.select_clue(1, 2, "standard")
        await self.service.buzz(1)
        await self.answer("something else")

        self.assertEqual(self.score(1), -600)
        self.assertIn("Incorrect. -$600", self.display.result_messages())
        self.assertEqual(self.session.attempt.answered, [1])

        await self.clock.advance(self.settings.result_delay)
        self.assertEqual(self.session.attempt.state, ClueState.BUZZERS_OPEN)
        self.assertIn("Other player can buzz in!", self.display.status_messages())
        self.assertFalse(await self.service.buzz(1))
        self.assertTrue(await self.service.buzz(2))

        await self.answer(response_for(standard_id(1, 2)))
        self.assertEqual(self.score(2), 600)
        self.assertEqual(self.session.player_in_control, 2)

    async def test_both_wrong_reveals_reference_then_closes(self):
        await self.start()
        await self.service.select_clue(0, 1, "standard")
        await self.service.buzz(1)
        await self.answer("wrong one")
        await self.clock.advance(self.settings.result_delay)
        await self.service.buzz(2)
        await self.answer("wrong two")

        self.assertEqual(self.score(1), -400)
        self.assertEqual(self.score(2), -400)
        await self.clock.advance(self.settings.result_delay)
        self.assertEqual(self.display.result_messages()[-1], f"Correct answer: {response_for(standard_id(0, 1))}")
        self.assertIsNotNone(self.session.attempt)

        await self.clock.advance(self.settings.reveal_delay)
        self.assertIsNone(self.session.attempt)
        self.assertEqual(self.session.player_in_control, 1)

    async def test_timeout_without_buzz_reveals_and_closes_without_scoring(self):
        await self.start()
        await self.service.select_clue(0, 0, "standard")
        await self.clock.advance(self.settings.response_seconds)

        ticks = [payload["remaining"] for payload in self.display.of("timer")]
        self.assertEqual(ticks, list(range(self.settings.response_seconds, -1, -1)))
        self.assertIn(f"Time's up! Answer: {response_for(standard_id(0, 0))}", self.display.result_messages())

        await self.clock.advance(self.settings.reveal_delay)
        self.assertIsNone(self.session.attempt)
        self.assertEqual((self.score(1), self.score(2)), (0, 0))

    async def test_lock_holder_keeps_clue_until_answer_or_skip(self):
        await self.start()
        await self.service.select_clue(0, 0, "standard")
        await self.service.buzz(1)
        await self.clock.advance(60)
        self.assertEqual(self.session.attempt.state, ClueState.BUZZERS_OPEN)
        self.assertEqual(self.session.attempt.locked_player, 1)
        self.assertEqual(self.score(1), 0)

    async def test_judge_failure_falls_back_to_matching(self):
        await self.start()
        self.judge.error = JudgmentUnavailable("oracle down")
        await self.service.select_clue(0, 0, "standard")
        await self.service.buzz(1)
        await self.answer(f"What is {response_for(standard_id(0, 0))}?")
        self.assertEqual(self.score(1), 200)

    async def test_fallback_judgment_carries_explanation(self):
        from jeopardy_duel.services.game_components.question_manager import judge_safely
        self.judge.error = RuntimeError("boom")
        judgment = await judge_safely(self.judge, "clue", "Paris", "paris")
        self.assertTrue(judgment.correct)
        self.assertEqual(judgment.explanation, FALLBACK_EXPLANATION)


class TestStaleCallbacks(GameTestCase):

    async def test_skip_cancels_pending_timer(self):
        await self.start()
        await self.service.select_clue(0, 0, "standard")
        self.assertTrue(await self.service.skip_clue())
        await self.clock.advance(self.settings.skip_delay)
        self.assertIsNone(self.session.attempt)

        await self.clock.advance(self.settings.response_seconds * 2)
        self.assertEqual(self.display.result_messages(),
                         [f"Skipped. Correct answer: {response_for(standard_id(0, 0))}"])

    async def test_skip_while_judging_drops_the_verdict(self):
        await self.start()
        self.judge.gate = asyncio.Event()
        await self.service.select_clue(0, 0, "standard")
        await self.service.buzz(1)
        await self.answer(response_for(standard_id(0, 0)))
        self.assertEqual(self.session.attempt.state, ClueState.ANSWER_PENDING)

        await self.service.skip_clue()
        self.judge.gate.set()
        await self.clock.settle()
        self.assertEqual(self.score(1), 0)
        self.assertNotIn("Correct! +$200", self.display.result_messages())

        await self.clock.advance(self.settings.skip_delay)
        self.assertIsNone(self.session.attempt)

    async def test_transcript_from_stale_capture_is_ignored(self):
        await self.start()
        await self.service.select_clue(0, 0, "standard")
        await self.service.buzz(1)
        on_transcript = self.capture._on_transcript
        await self.service.skip_clue()
        await self.clock.advance(self.settings.skip_delay)

        await self.service.select_clue(0, 1, "standard")
        on_transcript(response_for(standard_id(0, 0)))
        await self.clock.settle()
        self.assertEqual(self.score(1), 0)
        self.assertEqual(self.session.attempt.state, ClueState.BUZZERS_OPEN)

    async def test_skip_without_clue_is_ignored(self):
        await self.start()
        self.assertFalse(await self.service.skip_clue())


class TestCaptureRetry(GameTestCase):

    async def test_errors_retry_with_backoff_then_stall(self):
        await self.start()
        await self.service.select_clue(0, 0, "standard")
        await self.service.buzz(1)

        self.capture.fail()
        await self.clock.advance(self.settings.capture_retry_delay)
        self.assertEqual(self.capture.starts, [1, 1])

        self.capture.fail()
        await self.clock.advance(self.settings.capture_retry_delay)
        self.assertEqual(len(self.capture.starts), 2)
        await self.clock.advance(self.settings.capture_retry_delay)
        self.assertEqual(len(self.capture.starts), 3)

        self.capture.fail()
        await self.clock.advance(30)
        self.assertEqual(len(self.capture.starts), 3)
        self.assertTrue(self.session.attempt.capture_stalled)
        self.assertIn("Speech error. Try again...", self.display.status_messages())

    async def test_rebuzz_restarts_stalled_capture(self):
        await self.start()
        await self.service.select_clue(0, 0, "standard")
        await self.service.buzz(1)
        for _ in range(self.settings.max_capture_attempts):
            self.capture.fail()
            await self.clock.advance(10)
        self.assertTrue(self.session.attempt.capture_stalled)

        self.assertFalse(await self.service.buzz(2))
        self.assertTrue(await self.service.buzz(1))
        self.assertFalse(self.session.attempt.capture_stalled)
        self.assertEqual(self.capture.player, 1)

        await self.answer(response_for(standard_id(0, 0)))
        self.assertEqual(self.score(1), 200)


class TestDailyDouble(GameTestCase):

    async def asyncSetUp(self):
        await super().asyncSetUp()
        await self.start(make_board(standard_dd=[(2, 3)]), control=1)

    async def test_selection_prompts_controlling_player_for_wager(self):
        await self.service.select_clue(2, 3, "standard")
        self.assertEqual(self.session.attempt.state, ClueState.AWAITING_WAGER)
        self.assertEqual(self.display.last("show_wager_prompt"), {"player": 1, "score": 0, "max_wager": 1000})
        self.assertIsNone(self.display.last("show_clue"))
        self.assertFalse(await self.service.buzz(1))

    async def test_out_of_range_wager_is_rejected(self):
        await self.service.select_clue(2, 3, "standard")
        self.assertFalse(await self.service.submit_wager(1001))
        self.assertFalse(await self.service.submit_wager(-5))
        self.assertEqual(self.session.attempt.state, ClueState.AWAITING_WAGER)
        self.assertEqual(len(self.display.of("error")), 2)

    async def test_wager_can_reach_current_score(self):
        self.session.players[1].score = 3000
        await self.service.select_clue(2, 3, "standard")
        self.assertTrue(await self.service.submit_wager(3000))

    async def test_correct_answer_scores_wager_not_printed_value(self):
        await self.service.select_clue(2, 3, "standard")
        self.assertTrue(await self.service.submit_wager(500))
        self.assertEqual(self.session.attempt.locked_player, 1)
        self.assertEqual(self.capture.starts, [1])

        await self.answer(response_for("s-2-3"))
        self.assertEqual(self.score(1), 500)
        await self.clock.advance(self.settings.result_delay)
        self.assertIsNone(self.session.attempt)

    async def test_wrong_answer_deducts_wager_and_closes(self):
        await self.service.select_clue(2, 3, "standard")
        await self.service.submit_wager(300)
        await self.answer("no idea")

        self.assertEqual(self.score(1), -300)
        self.assertFalse(await self.service.buzz(2))
        await self.clock.advance(self.settings.result_delay + self.settings.reveal_delay)
        self.assertIsNone(self.session.attempt)
        self.assertEqual(self.score(2), 0)

    async def test_timeout_counts_as_wrong_answer(self):
        await self.service.select_clue(2, 3, "standard")
        await self.service.submit_wager(400)
        await self.clock.advance(self.settings.response_seconds)
        self.assertEqual(self.score(1), -400)
        self.assertIn("Time's up! -$400", self.display.result_messages())

    async def test_verdict_after_timer_would_expire_scores_once(self):
        self.judge.gate = asyncio.Event()
        await self.service.select_clue(2, 3, "standard")
        await self.service.submit_wager(500)
        await self.answer(response_for("s-2-3"))

        await self.clock.advance(self.settings.response_seconds * 2)
        self.judge.gate.set()
        await self.clock.settle()
        self.assertEqual(self.score(1), 500)
        self.assertEqual(self.display.result_messages(), ["Correct! +$500"])

    async def test_skip_during_wager_prompt(self):
        await self.service.select_clue(2, 3, "standard")
        await self.service.skip_clue()
        self.assertIsNotNone(self.display.last("hide_wager_prompt"))
        await self.clock.advance(self.settings.skip_delay)
        self.assertIsNone(self.session.attempt)
        self.assertIn("s-2-3", self.session.used_clue_ids)
        self.assertEqual(self.score(1), 0)


if __name__ == "__main__":
    unittest.main()
