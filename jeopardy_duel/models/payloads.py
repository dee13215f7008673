from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal, Optional

from ..services.game_components.daily_double_manager import MIN_DAILY_DOUBLE_WAGER

PlayerNumber = Literal[1, 2]


class Payload(BaseModel):
    """Inbound WebSocket payloads use camelCase keys."""
    model_config = ConfigDict(populate_by_name=True)


class NewGamePayload(Payload):
    standard_categories: Optional[List[str]] = Field(default=None, alias="standardCategories")
    double_categories: Optional[List[str]] = Field(default=None, alias="doubleCategories")

    def custom_categories(self) -> Optional[dict]:
        if self.standard_categories and self.double_categories:
            return {"standard": self.standard_categories, "double": self.double_categories}
        return None


class SelectCluePayload(Payload):
    category_index: int = Field(alias="categoryIndex")
    value_index: int = Field(alias="valueIndex")
    round: str


class BuzzPayload(Payload):
    player: PlayerNumber


class WagerPayload(Payload):
    amount: int = Field(ge=MIN_DAILY_DOUBLE_WAGER)


class FinalWagersPayload(Payload):
    wager1: int = Field(ge=0)
    wager2: int = Field(ge=0)


class FinalDraftPayload(Payload):
    player: PlayerNumber
    text: str = ""


class FinalAnswersPayload(Payload):
    answer1: str = ""
    answer2: str = ""


class ResponseDurationPayload(Payload):
    seconds: int = Field(gt=0, le=120)


class TranscriptPayload(Payload):
    capture_id: str = Field(alias="captureId")
    text: str


class CaptureErrorPayload(Payload):
    capture_id: str = Field(alias="captureId")
    message: str = "Speech recognition failed"
