from pydantic import BaseModel
from typing import Literal


class Player(BaseModel):
    number: Literal[1, 2]
    name: str = ""
    score: int = 0

    def add_score(self, value: int):
        self.score += value
