"""
gather/features/notifications/service.py
Notification dispatcher: record directed events, list them per recipient.

The list is a read model, not a ledger. Writers treat failures here as
best-effort (see PlanService._notify).
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from gather.core.logging import log_event
from gather.core.metrics import notifications_written_total
from gather.features.notifications.persistence import NotificationPersistence
from gather.models.notification import (
    Notification,
    NotificationAction,
    NotificationView,
    Ref,
    RefType,
)
from gather.models.user import PublicUser

# RefType -> loader returning the display shape for that id (or None if gone)
RefResolver = Callable[[str], Optional[Dict[str, Any]]]


class NotificationService:
    def __init__(
        self,
        persistence: NotificationPersistence,
        resolvers: Dict[RefType, RefResolver],
        user_loader: Callable[[Iterable[str]], Dict[str, PublicUser]],
    ):
        self.persistence = persistence
        self.resolvers = resolvers
        self.user_loader = user_loader

    def notify(
        self,
        action: NotificationAction,
        source: Ref,
        target: Ref,
        recipient_id: str,
        now: Optional[datetime] = None,
    ) -> None:
        """Append one notification for one recipient."""
        self.notify_many(action, source, target, [recipient_id], now=now)

    def notify_many(
        self,
        action: NotificationAction,
        source: Ref,
        target: Ref,
        recipient_ids: Iterable[str],
        now: Optional[datetime] = None,
    ) -> int:
        """Fan-out: one record per recipient, written in a single batch.

        Duplicate recipients are collapsed; order of first appearance is kept.
        """
        now = now or datetime.now(timezone.utc)
        recipients = list(dict.fromkeys(recipient_ids))
        written = self.persistence.append_many(action, source, target, recipients, now)
        if written:
            notifications_written_total.inc(labels={"action": action.value}, amount=written)
            log_event(
                "info",
                "notification.written",
                event_type=action.value,
                extra={"source": f"{source.type.value}:{source.id}", "target": f"{target.type.value}:{target.id}", "count": written},
            )
        return written

    def pull(self, action: NotificationAction, source_id: str, target_id: str) -> int:
        """Delete every notification matching (action, source, target)."""
        return self.persistence.delete_matching(action, source_id, target_id)

    def list_for(self, user_id: str) -> List[NotificationView]:
        """Recipient's notifications, oldest first, with refs resolved."""
        records = self.persistence.list_for(user_id)
        recipients = self.user_loader({record.user_id for record in records})
        return [self._render(record, recipients.get(record.user_id)) for record in records]

    def _resolve(self, ref: Ref) -> Optional[Dict[str, Any]]:
        resolver = self.resolvers.get(ref.type)
        if resolver is None:
            return None
        return resolver(ref.id)

    def _render(self, record: Notification, recipient: Optional[PublicUser]) -> NotificationView:
        return NotificationView(
            id=record.id,
            action=record.action,
            source=self._resolve(record.source),
            target=self._resolve(record.target),
            user=recipient,
            created=record.created,
            updated=record.updated,
        )
