"""
Display commands sent from the game core to the presentation layer.
"""

import logging
from typing import Any, Dict, List, Optional

from ..websockets.connection_manager import ConnectionManager, topic

logger = logging.getLogger(__name__)


class GameDisplay:
    """
    Presentation port. Every command funnels through emit(); subclasses decide
    where events go. The base class only logs them.
    """

    async def emit(self, event: str, payload: Dict[str, Any]) -> None:
        logger.debug(f"Display event {event}: {payload}")

    async def show_board(self, round_name: str, categories: List[str], clues: List[Dict[str, Any]],
                         used_clue_ids: List[str]):
        await self.emit("show_board", {
            "round": round_name,
            "categories": categories,
            "clues": clues,
            "used": list(used_clue_ids),
        })

    async def show_clue(self, category: str, value: int, text: str):
        await self.emit("show_clue", {"category": category, "value": value, "text": text})

    async def hide_clue(self):
        await self.emit("hide_clue", {})

    async def show_wager_prompt(self, player: int, current_score: int, max_wager: int):
        await self.emit("show_wager_prompt", {
            "player": player,
            "score": current_score,
            "max_wager": max_wager,
        })

    async def hide_wager_prompt(self):
        await self.emit("hide_wager_prompt", {})

    async def show_buzzer_state(self, state: str, player: Optional[int] = None):
        await self.emit("buzzer_state", {"state": state, "player": player})

    async def set_buzzer_status(self, message: str):
        await self.emit("buzzer_status", {"message": message})

    async def show_answer_result(self, correct: bool, message: str):
        await self.emit("answer_result", {"correct": correct, "message": message})

    async def update_scores(self, score1: int, score2: int):
        await self.emit("scores", {"1": score1, "2": score2})

    async def show_round_banner(self, text: str):
        await self.emit("round_banner", {"text": text})

    async def update_control_indicator(self, player: int):
        await self.emit("control", {"player": player})

    async def update_timer(self, remaining: int, total: int):
        await self.emit("timer", {"remaining": remaining, "total": total})

    async def show_final_wager_prompt(self, category: str, score1: int, score2: int):
        await self.emit("final_wager_prompt", {"category": category, "scores": {"1": score1, "2": score2}})

    async def show_final_question(self, text: str, seconds: int):
        await self.emit("final_question", {"text": text, "seconds": seconds})

    async def show_final_results(self, results: Dict[str, Any]):
        await self.emit("final_results", results)

    async def show_game_over(self, winner: str, score1: int, score2: int):
        await self.emit("game_over", {"winner": winner, "scores": {"1": score1, "2": score2}})

    async def show_error(self, message: str):
        await self.emit("error", {"message": message})


class BroadcastDisplay(GameDisplay):
    """Sends every display command to all connected WebSocket clients."""

    def __init__(self, connection_manager: ConnectionManager):
        self.connection_manager = connection_manager

    async def emit(self, event: str, payload: Dict[str, Any]) -> None:
        await self.connection_manager.broadcast_message(topic(event), payload)
