"""
gather/features/ratings/persistence.py

Rating rows, unique per (rater, ratee).
"""

from typing import List, Optional

from sqlalchemy import select, insert, update

from gather.core.database import Database, as_utc, ratings
from gather.models.rating import Rating


def _row_to_rating(row) -> Rating:
    return Rating(
        id=row.id,
        rater_id=row.rater_id,
        ratee_id=row.ratee_id,
        plan_id=row.plan_id,
        score=row.score,
        created=as_utc(row.created),
        updated=as_utc(row.updated),
    )


class RatingPersistence:
    def __init__(self, db: Database):
        self.db = db

    def get(self, rater_id: str, ratee_id: str) -> Optional[Rating]:
        with self.db.session() as session:
            row = session.execute(
                select(ratings).where(
                    ratings.c.rater_id == rater_id,
                    ratings.c.ratee_id == ratee_id,
                )
            ).first()
            return _row_to_rating(row) if row else None

    def create(self, rating: Rating) -> None:
        with self.db.session() as session:
            session.execute(insert(ratings).values(**rating.model_dump()))

    def update_score(self, rating_id: str, *, score: int, plan_id: str, updated) -> None:
        with self.db.session() as session:
            session.execute(
                update(ratings)
                .where(ratings.c.id == rating_id)
                .values(score=score, plan_id=plan_id, updated=updated)
            )

    def scores_for(self, ratee_id: str) -> List[int]:
        with self.db.session() as session:
            rows = session.execute(
                select(ratings.c.score).where(ratings.c.ratee_id == ratee_id)
            ).all()
            return [row.score for row in rows]
