"""
Answer evaluation for spoken Jeopardy responses
"""

import json
import logging
import re
from typing import Optional

from ..config import LLMConfig
from ..errors import JudgmentUnavailable
from ..models.judgment import Judgment
from .utils.llm import LLMClient

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def parse_judgment(response_text: str) -> Judgment:
    """Pull the JSON verdict out of the model's reply, tolerating code fences or chatter around it."""
    match = _JSON_OBJECT.search(response_text or "")
    if not match:
        raise JudgmentUnavailable(f"No JSON object in LLM response: {response_text!r}")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise JudgmentUnavailable(f"Failed to parse LLM response as JSON: {response_text!r}") from e
    if not isinstance(data, dict) or not isinstance(data.get("correct"), bool):
        raise JudgmentUnavailable(f"LLM response is missing a boolean 'correct': {data!r}")
    return Judgment(correct=data["correct"], explanation=str(data.get("explanation", "")))


class AnswerEvaluator:
    """Judges player answers for correctness using an LLM"""

    def __init__(self, llm_client: Optional[LLMClient] = None, config: Optional[LLMConfig] = None):
        self.config = config or LLMConfig.from_env()
        self._llm_client = llm_client

    @property
    def llm_client(self) -> LLMClient:
        # Built on first use so the server can start without an API key
        if self._llm_client is None:
            try:
                self._llm_client = LLMClient(self.config)
            except ValueError as e:
                raise JudgmentUnavailable(str(e)) from e
        return self._llm_client

    async def judge(self, clue_text: str, reference: str, candidate: str) -> Judgment:
        """
        Ask the LLM whether the candidate answer matches the reference.

        Raises:
            JudgmentUnavailable: the API could not be reached or its reply could not be parsed
        """
        if not (candidate or "").strip():
            return Judgment(correct=False, explanation="No answer given")

        logger.info(f"Evaluating answer: '{candidate}' against correct answer: '{reference}'")
        response_text = await self.llm_client.chat_with_template(
            user_template="answer_evaluation_prompt.j2",
            user_context={
                "clue": clue_text,
                "correct_answer": reference,
                "player_answer": candidate,
            },
            system_template="answer_evaluation.j2",
        )
        judgment = parse_judgment(response_text)
        logger.info(f"LLM evaluation: correct={judgment.correct}, reason: {judgment.explanation}")
        return judgment
