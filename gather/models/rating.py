from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field

MIN_SCORE = 1
MAX_SCORE = 5


class Rating(BaseModel):
    """One rater's score for one ratee. Unique per (rater, ratee)."""

    model_config = ConfigDict(frozen=True)

    id: str
    rater_id: str
    ratee_id: str
    plan_id: str = Field(description="Plan the rating was given in the context of")
    score: int = Field(ge=MIN_SCORE, le=MAX_SCORE)
    created: datetime
    updated: datetime


class RateUserRequest(BaseModel):
    plan_id: str
    user_id: str = Field(description="Ratee")
    rating: int = Field(strict=True, description="Score, 1..5")
