"""
services/notification/dispatcher.py
Best-effort in-app notification delivery.

Called after the triggering change has been committed. Delivery runs in its own
transaction: a failure is rolled back and logged, never raised to the caller.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from shared.domain.reconciler import NotificationDraft
from shared.models.models import Notification, NotificationType, RelatedType

logger = logging.getLogger(__name__)


async def emit_notification(
    db: AsyncSession,
    user_id: uuid.UUID,
    title: str,
    message: str,
    type_: NotificationType = NotificationType.INFO,
    related_id: Optional[uuid.UUID] = None,
    related_type: Optional[RelatedType] = None,
) -> Optional[Notification]:
    """Write an inbox entry for user_id. Returns None if delivery failed."""
    try:
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type_,
            related_id=related_id,
            related_type=related_type,
        )
        db.add(notification)
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception(f"Notification delivery failed for user {user_id}: {title!r}")
        return None
    return notification


async def emit_draft(db: AsyncSession, draft: NotificationDraft) -> Optional[Notification]:
    return await emit_notification(
        db,
        user_id=draft.user_id,
        title=draft.title,
        message=draft.message,
        type_=draft.type,
        related_id=draft.related_id,
        related_type=draft.related_type,
    )
