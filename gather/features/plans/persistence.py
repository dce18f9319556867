"""
gather/features/plans/persistence.py

Plan document store: load/save whole aggregates by id, and geospatial
range queries for discovery.

Saves overwrite the whole document in one transaction, so concurrent
writers to the same plan are last-writer-wins.
"""

from typing import List, Optional
from datetime import datetime

from sqlalchemy import select, insert, update, delete, or_

from gather.core.database import Database, plans, plan_members
from gather.features.geo.engine import DiscoveryQuery
from gather.models.plan import Plan


def _row_values(plan: Plan) -> dict:
    return {
        'owner_id': plan.owner_id,
        'latitude': plan.location.latitude,
        'longitude': plan.location.longitude,
        'expires': plan.expires,
        'document': plan.model_dump(mode="json"),
        'created': plan.created,
        'updated': plan.updated,
    }


def _row_to_plan(row) -> Plan:
    return Plan.model_validate(row.document)


def _write_member_index(session, plan: Plan) -> None:
    session.execute(delete(plan_members).where(plan_members.c.plan_id == plan.id))
    if plan.members:
        session.execute(
            insert(plan_members),
            [{'plan_id': plan.id, 'user_id': member.user_id} for member in plan.members],
        )


class PlanPersistence:
    def __init__(self, db: Database):
        self.db = db

    def create(self, plan: Plan) -> None:
        with self.db.session() as session:
            session.execute(insert(plans).values(id=plan.id, **_row_values(plan)))
            _write_member_index(session, plan)

    def save(self, plan: Plan) -> None:
        with self.db.session() as session:
            session.execute(
                update(plans).where(plans.c.id == plan.id).values(**_row_values(plan))
            )
            _write_member_index(session, plan)

    def get(self, plan_id: str) -> Optional[Plan]:
        with self.db.session() as session:
            row = session.execute(select(plans).where(plans.c.id == plan_id)).first()
            return _row_to_plan(row) if row else None

    def find_within(self, query: DiscoveryQuery, *, not_expired_at: Optional[datetime] = None) -> List[Plan]:
        """
        Plans whose location falls inside the query's spherical cap.

        Args:
            query: Discovery shape
            not_expired_at: If set, only plans with expires >= this instant

        Returns:
            Plans ordered by expiry (soonest first)
        """
        min_lat, max_lat, lng_range = query.bounds()
        stmt = select(plans).where(plans.c.latitude.between(min_lat, max_lat))
        if lng_range is not None:
            stmt = stmt.where(plans.c.longitude.between(lng_range[0], lng_range[1]))
        if not_expired_at is not None:
            stmt = stmt.where(plans.c.expires >= not_expired_at)
        stmt = stmt.order_by(plans.c.expires, plans.c.id)

        with self.db.session() as session:
            rows = session.execute(stmt).all()

        candidates = [_row_to_plan(row) for row in rows]
        # The box is a superset of the cap; trim the corners
        return [plan for plan in candidates if query.contains(plan.location)]

    def list_for_user(self, user_id: str) -> List[Plan]:
        """Plans the user owns or has a member entry in, oldest first."""
        member_of = select(plan_members.c.plan_id).where(plan_members.c.user_id == user_id)
        stmt = (
            select(plans)
            .where(or_(plans.c.owner_id == user_id, plans.c.id.in_(member_of)))
            .order_by(plans.c.created, plans.c.id)
        )
        with self.db.session() as session:
            rows = session.execute(stmt).all()
        return [_row_to_plan(row) for row in rows]
