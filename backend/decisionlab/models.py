from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, Field

MAX_BASE_SCORE = 10**12

NonNegativeScore = Annotated[Decimal, Field(ge=0, le=MAX_BASE_SCORE)]


class ScoreRequest(BaseModel):
    base_scores: list[NonNegativeScore] = Field(min_length=1, max_length=100)
    model_config = {"extra": "ignore"}
