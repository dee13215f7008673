from pydantic import BaseModel, model_validator
from typing import List, Optional, Set
from .question import Clue, FinalClue

CATEGORY_COUNT = 6
VALUES_PER_CATEGORY = 5

STANDARD_VALUES = [200, 400, 600, 800, 1000]
DOUBLE_VALUES = [400, 800, 1200, 1600, 2000]


class RoundBoard(BaseModel):
    """Six categories of five clues, stored category-major."""
    categories: List[str]
    clues: List[Clue]

    @model_validator(mode="after")
    def check_shape(self) -> "RoundBoard":
        if len(self.categories) != CATEGORY_COUNT:
            raise ValueError(f"A round needs exactly {CATEGORY_COUNT} categories, got {len(self.categories)}")
        expected = CATEGORY_COUNT * VALUES_PER_CATEGORY
        if len(self.clues) != expected:
            raise ValueError(f"A round needs exactly {expected} clues, got {len(self.clues)}")
        if len(self.clue_ids()) != expected:
            raise ValueError("Clue ids must be unique within a round")
        return self

    def clue_at(self, category_index: int, value_index: int) -> Optional[Clue]:
        if not (0 <= category_index < CATEGORY_COUNT and 0 <= value_index < VALUES_PER_CATEGORY):
            return None
        return self.clues[category_index * VALUES_PER_CATEGORY + value_index]

    def clue_ids(self) -> Set[str]:
        return {clue.id for clue in self.clues}

    def daily_doubles(self) -> List[Clue]:
        return [clue for clue in self.clues if clue.daily_double]


class Board(BaseModel):
    """A full game as handed over by the question bank. Never mutated during play."""
    standard: RoundBoard
    double: RoundBoard
    final: Optional[FinalClue] = None

    def round(self, name: str) -> Optional[RoundBoard]:
        if name == "standard":
            return self.standard
        if name == "double":
            return self.double
        return None
