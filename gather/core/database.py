"""
Database configuration and connection management.

This module provides:
- The Database handle (engine + session factory) built once per process
- Connection pooling with sane defaults
- In-memory SQLite support for tests
- Table definitions for users, plan documents, notifications and ratings
"""
from typing import Optional
from contextlib import contextmanager
from datetime import datetime, timezone
from sqlalchemy import create_engine, MetaData, Table, Column, Integer, String, DateTime, Boolean, Float, JSON, Text, Index, UniqueConstraint, text
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker
import logging

logger = logging.getLogger(__name__)

# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour


def utc_now() -> datetime:
    """Timezone-aware UTC now for SQLAlchemy defaults."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or url.startswith("sqlite:///:memory:?")


class Database:
    """
    Owns the engine and session factory.

    Constructed once at process start and handed to every persistence
    class; there is no module-level engine.
    """

    def __init__(self, url: str, *, echo: bool = False):
        if not url:
            raise ValueError(
                "DATABASE_URL is not configured. "
                "Set DATABASE_URL in environment or .env file."
            )
        self.url = url

        if _is_memory_sqlite(url):
            # One shared connection so every session sees the same in-memory DB
            self.engine = create_engine(
                url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
                echo=echo,
            )
        elif url.startswith("sqlite"):
            self.engine = create_engine(url, connect_args={"check_same_thread": False}, echo=echo)
        else:
            self.engine = create_engine(
                url,
                poolclass=QueuePool,
                pool_size=POOL_SIZE,
                max_overflow=MAX_OVERFLOW,
                pool_timeout=POOL_TIMEOUT,
                pool_recycle=POOL_RECYCLE,
                echo=echo,
            )

        self._session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine,
        )

    @contextmanager
    def session(self):
        """
        Context manager for database sessions.

        Usage:
            with db.session() as session:
                session.execute(...)
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_all(self) -> None:
        """Create all tables; tables that already exist are left alone."""
        metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        """
        Drop all tables defined in metadata.

        WARNING: This is destructive! Only use in tests or development.
        """
        metadata.drop_all(bind=self.engine)

    def check_connection(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning(f"Database connection check failed: {e}")
            return False

    def dispose(self) -> None:
        self.engine.dispose()


# Users
users = Table(
    'app_users',
    metadata,
    Column('id', String(100), primary_key=True),
    Column('email', String(320), nullable=False, unique=True),
    Column('name', Text, nullable=False),
    Column('password_hash', Text, nullable=False),
    Column('rating', Float, nullable=False, default=5.0),
    Column('notifications', Boolean, nullable=False, default=True),
    Column('created', DateTime(timezone=True), default=utc_now, nullable=False),
    Column('updated', DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False),
)

# Plan aggregates: members, comments and block-list live in `document`.
# latitude/longitude/expires are copied out so range queries can use indexes.
plans = Table(
    'plans',
    metadata,
    Column('id', String(100), primary_key=True),
    Column('owner_id', String(100), nullable=False, index=True),
    Column('latitude', Float, nullable=False),
    Column('longitude', Float, nullable=False),
    Column('expires', DateTime(timezone=True), nullable=False, index=True),
    Column('document', JSON, nullable=False),
    Column('created', DateTime(timezone=True), default=utc_now, nullable=False),
    Column('updated', DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False),
    # Bounding-box prefilter for discovery
    Index('idx_plans_lat_lng', 'latitude', 'longitude'),
)

# Member index for "plans I'm in" lookups; rewritten on every plan save
plan_members = Table(
    'plan_members',
    metadata,
    Column('plan_id', String(100), primary_key=True),
    Column('user_id', String(100), primary_key=True),
    Index('idx_plan_members_user', 'user_id'),
)

# Notifications (append-only read model)
notifications = Table(
    'notifications',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('action', String(50), nullable=False),
    Column('source_type', String(20), nullable=False),
    Column('source_id', String(100), nullable=False),
    Column('target_type', String(20), nullable=False),
    Column('target_id', String(100), nullable=False),
    Column('user_id', String(100), nullable=False, index=True),
    Column('created', DateTime(timezone=True), default=utc_now, nullable=False),
    Column('updated', DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False),
    # listFor pattern: (user_id, created)
    Index('idx_notifications_user_created', 'user_id', 'created'),
    # pull pattern: (action, source_id, target_id)
    Index('idx_notifications_action_source_target', 'action', 'source_id', 'target_id'),
)

# Ratings: one row per (rater, ratee)
ratings = Table(
    'ratings',
    metadata,
    Column('id', String(100), primary_key=True),
    Column('rater_id', String(100), nullable=False),
    Column('ratee_id', String(100), nullable=False, index=True),
    Column('plan_id', String(100), nullable=False),
    Column('score', Integer, nullable=False),
    Column('created', DateTime(timezone=True), default=utc_now, nullable=False),
    Column('updated', DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False),
    UniqueConstraint('rater_id', 'ratee_id', name='uq_ratings_rater_ratee'),
)
