"""
tasks/notification_tasks.py
Celery maintenance tasks for the in-app notification inbox.

All tasks are idempotent and safe to run twice.

Triggered by beat (see tasks/celery_app.py), or manually:
    from tasks.notification_tasks import purge_read_notifications
    purge_read_notifications.delay(retention_days=7)
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from celery import Task
from sqlalchemy import delete
from sqlalchemy.orm import Session

from config.settings import settings
from tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


def sync_database_url(url: str) -> str:
    """Async driver URL -> sync driver URL (asyncpg -> psycopg2, aiosqlite -> pysqlite)."""
    return url.replace("+asyncpg", "+psycopg2").replace("+aiosqlite", "")


# ── Base Task with DB session ──────────────────────────────────────────────────

class DatabaseTask(Task):
    """Base class that provides a synchronous DB session for tasks."""
    abstract = True
    _engine = None

    def get_session(self) -> Session:
        """Get a synchronous SQLAlchemy session (Celery runs sync by default)."""
        from sqlalchemy import create_engine
        from sqlalchemy.orm import sessionmaker

        if DatabaseTask._engine is None:
            DatabaseTask._engine = create_engine(
                sync_database_url(settings.DATABASE_URL), pool_pre_ping=True
            )
        return sessionmaker(bind=DatabaseTask._engine)()


# ── Core ───────────────────────────────────────────────────────────────────────

def purge_read_notifications_in(session: Session, retention_days: int) -> int:
    """Delete read notifications created more than retention_days ago. Returns rows removed."""
    from shared.models.models import Notification

    cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)
    result = session.execute(
        delete(Notification).where(
            Notification.is_read == True,
            Notification.created_at < cutoff,
        ).execution_options(synchronize_session=False)
    )
    session.commit()
    return result.rowcount


# ── Tasks ──────────────────────────────────────────────────────────────────────

@celery_app.task(bind=True, base=DatabaseTask, max_retries=3, default_retry_delay=300)
def purge_read_notifications(self, retention_days: Optional[int] = None):
    """Nightly inbox cleanup. Unread notifications are never purged."""
    days = settings.NOTIFICATION_RETENTION_DAYS if retention_days is None else retention_days
    session = self.get_session()
    try:
        removed = purge_read_notifications_in(session, days)
        logger.info(f"purge_read_notifications: removed {removed} notifications older than {days}d")
        return removed
    except Exception as e:
        session.rollback()
        logger.exception(f"purge_read_notifications failed: {e}")
        raise self.retry(exc=e)
    finally:
        session.close()
