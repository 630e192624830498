"""Moderación de eventos (admin)"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.orm import selectinload
from typing import List, Optional
from uuid import UUID
import logging

from shared.cache.redis_client import cache_delete_pattern
from shared.database.models import Event, EventStatus, User, utcnow
from shared.errors import EventNotFound, InvalidModeration
from services.event_management.services.event_service import EVENTS_CACHE_PATTERN
from services.notifications.services.email_service import EmailService

logger = logging.getLogger(__name__)


class AdminEventsService:
    """Aprobación y rechazo de eventos pendientes"""

    def __init__(self, notifier: Optional[EmailService] = None):
        self._notifier = notifier

    @property
    def notifier(self) -> EmailService:
        if self._notifier is None:
            self._notifier = EmailService()
        return self._notifier

    async def get_pending_events(self, db: AsyncSession) -> List[Event]:
        stmt = (
            select(Event)
            .options(selectinload(Event.ticket_types))
            .where(Event.status == EventStatus.PENDING)
            .where(Event.deleted_at.is_(None))
            .order_by(Event.created_at.asc())
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def get_all_events(self, db: AsyncSession, status: Optional[str] = None) -> List[Event]:
        """Todos los eventos no borrados, en cualquier estado (o filtrados por uno)"""
        stmt = (
            select(Event)
            .options(selectinload(Event.ticket_types))
            .where(Event.deleted_at.is_(None))
        )
        if status:
            stmt = stmt.where(Event.status == status)
        result = await db.execute(stmt.order_by(Event.created_at.desc()))
        return list(result.scalars().all())

    async def approve_event(self, db: AsyncSession, event_id: UUID, admin_id: UUID) -> Event:
        return await self._moderate(db, event_id, admin_id, EventStatus.APPROVED)

    async def reject_event(self, db: AsyncSession, event_id: UUID, admin_id: UUID, reason: str) -> Event:
        return await self._moderate(db, event_id, admin_id, EventStatus.REJECTED, reason=reason.strip())

    async def _moderate(
        self,
        db: AsyncSession,
        event_id: UUID,
        admin_id: UUID,
        new_status: str,
        reason: Optional[str] = None,
    ) -> Event:
        """Solo un evento pendiente puede aprobarse o rechazarse"""
        now = utcnow()
        result = await db.execute(
            update(Event)
            .where(Event.id == event_id)
            .where(Event.status == EventStatus.PENDING)
            .where(Event.deleted_at.is_(None))
            .values(
                status=new_status,
                rejection_reason=reason,
                moderated_by=admin_id,
                moderated_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            event = await db.get(Event, event_id)
            await db.commit()
            if event is None or event.deleted_at is not None:
                raise EventNotFound()
            raise InvalidModeration()

        await db.commit()
        logger.info(f"Evento {event_id} {new_status} por {admin_id}")

        await cache_delete_pattern(EVENTS_CACHE_PATTERN)

        event = (await db.execute(
            select(Event)
            .options(selectinload(Event.ticket_types))
            .where(Event.id == event_id)
            .execution_options(populate_existing=True)
        )).scalar_one()
        organizer = await db.get(User, event.organizer_id)
        await db.commit()

        if organizer is not None:
            sent = await self.notifier.send_moderation_result(
                organizer.email,
                event.title,
                approved=new_status == EventStatus.APPROVED,
                reason=reason,
            )
            if not sent:
                logger.warning(f"No se pudo notificar al organizador del evento {event_id}")

        return event
