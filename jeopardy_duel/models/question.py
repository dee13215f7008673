from pydantic import BaseModel, Field
from typing import Optional


class Clue(BaseModel):
    """One board cell: the clue text shown to players and the expected response."""
    id: str
    category: str
    value: int = Field(gt=0)
    text: str
    response: str
    daily_double: bool = False

    def __str__(self) -> str:
        return f"{self.category} ${self.value}"


class FinalClue(BaseModel):
    category: str
    text: str
    response: str
    id: Optional[str] = None
