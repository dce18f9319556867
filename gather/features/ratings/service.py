"""
gather/features/ratings/service.py
Rating aggregator: upsert (rater, ratee) scores and roll them into reputation.

Reputation is (sum + 5) / (count + 1). The extra neutral 5 keeps a user with
one bad rating from dropping straight to 1.0; it fades as ratings accumulate.
The recompute reads then writes the user row without a lock, so concurrent
ratings of one user can briefly store a stale value until the next rating.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional
from uuid import uuid4

from gather.core.errors import NotFoundError, ValidationError
from gather.core.logging import log_event
from gather.core.metrics import reputation_recomputes_total
from gather.features.ratings.persistence import RatingPersistence
from gather.features.users.persistence import UserPersistence
from gather.models.rating import MAX_SCORE, MIN_SCORE, Rating
from gather.models.user import NEUTRAL_RATING


def reputation(scores: Iterable[int]) -> float:
    """Neutral-biased mean: (sum + 5) / (count + 1)."""
    scores = list(scores)
    return (sum(scores) + NEUTRAL_RATING) / (len(scores) + 1)


def _check_score(score) -> int:
    # bool is an int subclass; True must not count as a 1
    if isinstance(score, bool) or not isinstance(score, int):
        raise ValidationError("Rating must be a whole number")
    if score < MIN_SCORE or score > MAX_SCORE:
        raise ValidationError(f"Rating must be between {MIN_SCORE} and {MAX_SCORE}")
    return score


class RatingService:
    def __init__(self, persistence: RatingPersistence, users: UserPersistence):
        self.persistence = persistence
        self.users = users

    def rate(
        self,
        score: int,
        plan_id: str,
        ratee_id: str,
        rater_id: str,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Record rater's score for ratee, then refresh ratee's reputation.

        Args:
            score: 1..5
            plan_id: Plan the rating is given for; follows the latest rating
            ratee_id: User being rated
            rater_id: Acting user

        Returns:
            True

        Raises:
            ValidationError: score out of range, or rating yourself
            NotFoundError: ratee does not exist
        """
        score = _check_score(score)
        if ratee_id == rater_id:
            raise ValidationError("You cannot rate yourself")
        if self.users.get(ratee_id) is None:
            raise NotFoundError("User not found")

        now = now or datetime.now(timezone.utc)
        existing = self.persistence.get(rater_id, ratee_id)

        if existing is None:
            self.persistence.create(
                Rating(
                    id=str(uuid4()),
                    rater_id=rater_id,
                    ratee_id=ratee_id,
                    plan_id=plan_id,
                    score=score,
                    created=now,
                    updated=now,
                )
            )
        elif existing.score == score:
            # Same score: the average cannot move
            if existing.plan_id != plan_id:
                self.persistence.update_score(existing.id, score=score, plan_id=plan_id, updated=now)
            log_event("info", "rating.unchanged", user_id=rater_id, plan_id=plan_id, extra={"ratee_id": ratee_id})
            return True
        else:
            self.persistence.update_score(existing.id, score=score, plan_id=plan_id, updated=now)

        value = reputation(self.persistence.scores_for(ratee_id))
        self.users.update_fields(ratee_id, rating=value, updated=now)
        reputation_recomputes_total.inc()
        log_event(
            "info",
            "rating.recorded",
            user_id=rater_id,
            plan_id=plan_id,
            extra={"ratee_id": ratee_id, "score": score, "reputation": round(value, 3)},
        )
        return True
