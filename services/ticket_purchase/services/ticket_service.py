"""Consultas de tickets y registros del usuario"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from typing import Dict, List, Optional
from uuid import UUID

from shared.auth.permissions import Permission
from shared.database.models import Registration, Ticket
from shared.errors import PermissionDenied, RegistrationNotFound


class TicketService:
    """Lecturas; las mutaciones de tickets viven en CheckoutService"""

    @staticmethod
    async def get_user_tickets(
        db: AsyncSession,
        user_id: UUID,
        status: Optional[str] = None
    ) -> List[Ticket]:
        stmt = select(Ticket).where(Ticket.user_id == user_id)
        if status:
            stmt = stmt.where(Ticket.status == status)
        stmt = stmt.order_by(Ticket.created_at.desc())
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_user_registrations(db: AsyncSession, user_id: UUID) -> List[Registration]:
        stmt = (
            select(Registration)
            .options(selectinload(Registration.tickets))
            .where(Registration.user_id == user_id)
            .order_by(Registration.created_at.desc())
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_registration(db: AsyncSession, registration_id: UUID, viewer: Dict) -> Registration:
        """Registro por ID (dueño o admin)"""
        stmt = (
            select(Registration)
            .options(selectinload(Registration.tickets))
            .where(Registration.id == registration_id)
        )
        registration = (await db.execute(stmt)).scalar_one_or_none()
        if registration is None:
            raise RegistrationNotFound()

        if registration.user_id != viewer["user_id"] and Permission.REGISTRATIONS_VIEW_ANY not in viewer["permissions"]:
            raise PermissionDenied("El registro no pertenece al usuario")
        return registration
