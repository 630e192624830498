"""
Servicio de inventario (ledger de capacidad por tipo de ticket)

Todas las mutaciones del contador `quantity_available` pasan por aquí y se
hacen con UPDATE condicionales, nunca leyendo y escribiendo el valor desde
Python. Los métodos solo hacen flush: el commit lo decide quien los llama
para que la reserva y los registros del checkout queden en la misma
transacción.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from typing import Dict, Optional
from datetime import datetime
import logging
import uuid

from shared.database.models import (
    CapacityLog,
    InventoryReservation,
    ReservationStatus,
    TicketType,
    utcnow,
)
from shared.errors import (
    InvalidRequest,
    InventoryIntegrityError,
    OutOfStock,
    ReservationNotFound,
    TicketTypeNotFound,
)

logger = logging.getLogger(__name__)


class InventoryService:
    """Ledger de inventario: reserve / release / commit"""

    @staticmethod
    async def reserve(
        db: AsyncSession,
        event_id: uuid.UUID,
        ticket_type_id: uuid.UUID,
        quantity: int,
        reason: str = "checkout",
        expires_at: Optional[datetime] = None,
    ) -> InventoryReservation:
        """
        Reservar `quantity` unidades de un tipo de ticket.

        El decremento es condicional (`available >= quantity`), así dos
        reservas concurrentes nunca pueden dejar el contador en negativo.

        Raises:
            InvalidRequest: cantidad no positiva
            OutOfStock: no hay unidades suficientes
        """
        if quantity <= 0:
            raise InvalidRequest("La cantidad debe ser un entero positivo")

        stmt = (
            update(TicketType)
            .where(TicketType.id == ticket_type_id)
            .where(TicketType.event_id == event_id)
            .where(TicketType.quantity_available >= quantity)
            .values(quantity_available=TicketType.quantity_available - quantity)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)

        if result.rowcount != 1:
            exists = await db.scalar(
                select(TicketType.id)
                .where(TicketType.id == ticket_type_id)
                .where(TicketType.event_id == event_id)
            )
            if exists is None:
                raise TicketTypeNotFound()
            logger.info(f"Sin stock para ticket_type {ticket_type_id}: solicitado {quantity}")
            raise OutOfStock()

        reservation = InventoryReservation(
            id=uuid.uuid4(),
            event_id=event_id,
            ticket_type_id=ticket_type_id,
            quantity=quantity,
            status=ReservationStatus.HELD,
            reason=reason,
            expires_at=expires_at,
        )
        db.add(reservation)
        db.add(CapacityLog(
            event_id=event_id,
            ticket_type_id=ticket_type_id,
            reservation_id=reservation.id,
            delta=-quantity,
            reason=reason,
        ))
        await db.flush()

        logger.info(f"Reserva {reservation.id}: {quantity} unidades de {ticket_type_id} ({reason})")
        return reservation

    @staticmethod
    async def release(
        db: AsyncSession,
        reservation_id: uuid.UUID,
        reason: str = "release",
    ) -> bool:
        """
        Liberar una reserva y devolver sus unidades al contador.

        Es idempotente: solo la llamada que cambia el estado a `released`
        devuelve las unidades.

        Returns:
            True si se devolvieron unidades, False si ya estaba liberada
        """
        now = utcnow()
        result = await db.execute(
            update(InventoryReservation)
            .where(InventoryReservation.id == reservation_id)
            .where(InventoryReservation.status.in_([ReservationStatus.HELD, ReservationStatus.COMMITTED]))
            .values(status=ReservationStatus.RELEASED, released_at=now)
            .execution_options(synchronize_session=False)
        )

        reservation = await InventoryService._load(db, reservation_id)

        if result.rowcount != 1:
            logger.info(f"Reserva {reservation_id} ya estaba liberada, no se devuelve stock")
            return False

        restored = await db.execute(
            update(TicketType)
            .where(TicketType.id == reservation.ticket_type_id)
            .where(TicketType.quantity_available + reservation.quantity <= TicketType.quantity_total)
            .values(quantity_available=TicketType.quantity_available + reservation.quantity)
            .execution_options(synchronize_session=False)
        )
        if restored.rowcount != 1:
            logger.error(
                f"Liberar reserva {reservation_id} excedería la capacidad de {reservation.ticket_type_id}"
            )
            raise InventoryIntegrityError(
                f"Release of reservation {reservation_id} would exceed capacity",
                reservation_id=str(reservation_id),
            )

        db.add(CapacityLog(
            event_id=reservation.event_id,
            ticket_type_id=reservation.ticket_type_id,
            reservation_id=reservation.id,
            delta=reservation.quantity,
            reason=reason,
        ))
        await db.flush()

        logger.info(f"Reserva {reservation_id} liberada: +{reservation.quantity} ({reason})")
        return True

    @staticmethod
    async def commit(db: AsyncSession, reservation_id: uuid.UUID) -> bool:
        """
        Marcar una reserva como definitiva (pago confirmado). No toca el contador.

        Returns:
            True si cambió de estado, False si ya estaba comprometida

        Raises:
            InventoryIntegrityError: la reserva ya fue liberada
        """
        result = await db.execute(
            update(InventoryReservation)
            .where(InventoryReservation.id == reservation_id)
            .where(InventoryReservation.status == ReservationStatus.HELD)
            .values(status=ReservationStatus.COMMITTED, committed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            await db.flush()
            return True

        reservation = await InventoryService._load(db, reservation_id)
        if reservation.status == ReservationStatus.COMMITTED:
            return False

        logger.error(f"Intento de comprometer la reserva liberada {reservation_id}")
        raise InventoryIntegrityError(
            f"Reservation {reservation_id} was already released",
            reservation_id=str(reservation_id),
        )

    @staticmethod
    async def resize(
        db: AsyncSession,
        ticket_type_id: uuid.UUID,
        new_total: int,
        reason: str = "capacity_edit",
    ) -> int:
        """
        Cambiar la capacidad total de un tipo de ticket.

        Las unidades reservadas o vendidas (`total - available`) se conservan,
        así la capacidad nueva no puede quedar por debajo de ellas y el
        disponible se ajusta en la misma diferencia que el total.

        Returns:
            Delta aplicado a `quantity_available`

        Raises:
            InvalidRequest: capacidad no positiva o menor a lo ya reservado
        """
        if new_total <= 0:
            raise InvalidRequest("La capacidad debe ser un entero positivo")

        ticket_type = await db.get(TicketType, ticket_type_id, populate_existing=True)
        if ticket_type is None:
            raise TicketTypeNotFound()

        old_total = ticket_type.quantity_total
        delta = new_total - old_total
        if delta == 0:
            return 0

        result = await db.execute(
            update(TicketType)
            .where(TicketType.id == ticket_type_id)
            .where(TicketType.quantity_total == old_total)
            .where(TicketType.quantity_total - TicketType.quantity_available <= new_total)
            .values(
                quantity_total=new_total,
                quantity_available=TicketType.quantity_available + delta,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidRequest(
                f"La capacidad de {ticket_type.name} no puede ser menor a las entradas ya reservadas o vendidas"
            )

        db.add(CapacityLog(
            event_id=ticket_type.event_id,
            ticket_type_id=ticket_type_id,
            delta=delta,
            reason=reason,
        ))
        await db.flush()

        logger.info(f"Capacidad de {ticket_type_id}: {old_total} → {new_total} ({reason})")
        return delta

    @staticmethod
    async def get_availability(db: AsyncSession, ticket_type_id: uuid.UUID) -> Dict[str, int]:
        """Unidades disponibles y capacidad total de un tipo de ticket"""
        row = (await db.execute(
            select(TicketType.quantity_available, TicketType.quantity_total)
            .where(TicketType.id == ticket_type_id)
        )).one_or_none()
        if row is None:
            raise TicketTypeNotFound()
        return {"available": row.quantity_available, "total": row.quantity_total}

    @staticmethod
    async def _load(db: AsyncSession, reservation_id: uuid.UUID) -> InventoryReservation:
        stmt = (
            select(InventoryReservation)
            .where(InventoryReservation.id == reservation_id)
            .execution_options(populate_existing=True)
        )
        reservation = (await db.execute(stmt)).scalar_one_or_none()
        if reservation is None:
            raise ReservationNotFound(
                f"Reservation {reservation_id} does not exist",
                reservation_id=str(reservation_id),
            )
        return reservation
