"""
gather/features/notifications/persistence.py

Append-only notification records plus action-scoped bulk deletion.
"""

from typing import List
from datetime import datetime

from sqlalchemy import select, insert, delete

from gather.core.database import Database, as_utc, notifications
from gather.models.notification import Notification, NotificationAction, Ref, RefType


def _row_to_notification(row) -> Notification:
    return Notification(
        id=str(row.id),
        action=NotificationAction(row.action),
        source=Ref(type=RefType(row.source_type), id=row.source_id),
        target=Ref(type=RefType(row.target_type), id=row.target_id),
        user_id=row.user_id,
        created=as_utc(row.created),
        updated=as_utc(row.updated),
    )


class NotificationPersistence:
    def __init__(self, db: Database):
        self.db = db

    def append_many(
        self,
        action: NotificationAction,
        source: Ref,
        target: Ref,
        recipient_ids: List[str],
        now: datetime,
    ) -> int:
        """Insert one row per recipient in a single round-trip."""
        if not recipient_ids:
            return 0
        rows = [
            {
                'action': action.value,
                'source_type': source.type.value,
                'source_id': source.id,
                'target_type': target.type.value,
                'target_id': target.id,
                'user_id': recipient_id,
                'created': now,
                'updated': now,
            }
            for recipient_id in recipient_ids
        ]
        with self.db.session() as session:
            session.execute(insert(notifications), rows)
        return len(rows)

    def list_for(self, user_id: str) -> List[Notification]:
        with self.db.session() as session:
            rows = session.execute(
                select(notifications)
                .where(notifications.c.user_id == user_id)
                .order_by(notifications.c.created, notifications.c.id)
            ).all()
        return [_row_to_notification(row) for row in rows]

    def delete_matching(self, action: NotificationAction, source_id: str, target_id: str) -> int:
        with self.db.session() as session:
            result = session.execute(
                delete(notifications).where(
                    notifications.c.action == action.value,
                    notifications.c.source_id == source_id,
                    notifications.c.target_id == target_id,
                )
            )
            return result.rowcount
