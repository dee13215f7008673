from pydantic import BaseModel
from typing import Dict

PLAYERS = (1, 2)


class FinalWagerSession(BaseModel):
    """Bets, answers and verdicts for the final round. Each field is written once."""
    wagers: Dict[int, int] = {}
    drafts: Dict[int, str] = {}
    answers: Dict[int, str] = {}
    verdicts: Dict[int, bool] = {}
    explanations: Dict[int, str] = {}
    submitted: bool = False

    def has_all_bets(self) -> bool:
        return all(player in self.wagers for player in PLAYERS)

    def set_draft(self, player: int, text: str):
        self.drafts[player] = text

    def get_draft(self, player: int) -> str:
        return (self.drafts.get(player) or "").strip()
