"""
gather/features/users/persistence.py

User record storage.
"""

from typing import Dict, Iterable, Optional

from sqlalchemy import select, insert, update
from sqlalchemy.exc import IntegrityError

from gather.core.database import Database, as_utc, users
from gather.models.user import User


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        password_hash=row.password_hash,
        rating=row.rating,
        notifications=row.notifications,
        created=as_utc(row.created),
        updated=as_utc(row.updated),
    )


class UserPersistence:
    def __init__(self, db: Database):
        self.db = db

    def create(self, user: User) -> bool:
        """
        Insert a new user.

        Returns:
            True if created, False if the email is already taken
        """
        try:
            with self.db.session() as session:
                session.execute(
                    insert(users).values(
                        id=user.id,
                        email=user.email,
                        name=user.name,
                        password_hash=user.password_hash,
                        rating=user.rating,
                        notifications=user.notifications,
                        created=user.created,
                        updated=user.updated,
                    )
                )
            return True
        except IntegrityError:
            return False

    def get(self, user_id: str) -> Optional[User]:
        with self.db.session() as session:
            row = session.execute(select(users).where(users.c.id == user_id)).first()
            return _row_to_user(row) if row else None

    def get_by_email(self, email: str) -> Optional[User]:
        with self.db.session() as session:
            row = session.execute(select(users).where(users.c.email == email)).first()
            return _row_to_user(row) if row else None

    def get_many(self, user_ids: Iterable[str]) -> Dict[str, User]:
        ids = sorted(set(user_ids))
        if not ids:
            return {}
        with self.db.session() as session:
            rows = session.execute(select(users).where(users.c.id.in_(ids))).all()
            return {row.id: _row_to_user(row) for row in rows}

    def update_fields(self, user_id: str, **values) -> None:
        with self.db.session() as session:
            session.execute(update(users).where(users.c.id == user_id).values(**values))
