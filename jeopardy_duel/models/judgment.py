from pydantic import BaseModel


class Judgment(BaseModel):
    """Verdict returned by the answer oracle. Both fields are always present."""
    correct: bool
    explanation: str = ""
