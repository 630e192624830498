"""Servicio de gestión de eventos"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import and_, select, or_, func, update
from sqlalchemy.orm import selectinload
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID
import logging

from shared.auth.permissions import Permission
from shared.cache.redis_client import cache_delete_pattern
from shared.database.models import Event, EventStatus, Registration, TicketType, utcnow
from shared.errors import EventNotEditable, EventNotFound, InvalidRequest, PermissionDenied
from services.event_management.models.event import EventCreate, EventUpdate, TicketTypeUpdate
from services.ticket_purchase.services.inventory_service import InventoryService

logger = logging.getLogger(__name__)

EVENTS_CACHE_PATTERN = "events:list:*"

SORT_OPTIONS = ("date_asc", "date_desc", "price_asc", "price_desc")


class EventService:
    """Servicio para gestionar eventos"""

    @staticmethod
    async def get_events(
        db: AsyncSession,
        category: Optional[str] = None,
        search: Optional[str] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        sort_by: str = "date_asc",
        limit: int = 50,
        offset: int = 0
    ) -> List[Event]:
        """
        Eventos aprobados (catálogo público) con filtros

        El filtro de precio incluye un evento si alguno de sus tipos de ticket
        está en el rango; el orden por precio usa el ticket más barato.
        """
        if sort_by not in SORT_OPTIONS:
            raise InvalidRequest(f"Orden inválido, usa uno de: {', '.join(SORT_OPTIONS)}")
        if min_price is not None and max_price is not None and min_price > max_price:
            raise InvalidRequest("El precio mínimo no puede ser mayor al máximo")

        stmt = (
            select(Event)
            .options(selectinload(Event.ticket_types))
            .where(Event.status == EventStatus.APPROVED)
            .where(Event.deleted_at.is_(None))
        )

        if category:
            stmt = stmt.where(Event.category == category)

        if search:
            pattern = f"%{search.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Event.title).like(pattern),
                    func.lower(Event.location).like(pattern)
                )
            )

        price_conditions = []
        if min_price is not None:
            price_conditions.append(TicketType.price >= min_price)
        if max_price is not None:
            price_conditions.append(TicketType.price <= max_price)
        if price_conditions:
            stmt = stmt.where(Event.ticket_types.any(and_(*price_conditions)))

        if sort_by.startswith("price"):
            cheapest = (
                select(func.min(TicketType.price))
                .where(TicketType.event_id == Event.id)
                .correlate(Event)
                .scalar_subquery()
            )
            order = cheapest.asc() if sort_by == "price_asc" else cheapest.desc()
        else:
            order = Event.starts_at.asc() if sort_by == "date_asc" else Event.starts_at.desc()

        stmt = stmt.order_by(order, Event.id).limit(limit).offset(offset)

        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_event_by_id(
        db: AsyncSession,
        event_id: UUID,
        viewer: Optional[Dict] = None
    ) -> Event:
        """
        Obtener evento por ID

        Los eventos no aprobados solo los ve su organizador o un admin.
        """
        stmt = (
            select(Event)
            .options(selectinload(Event.ticket_types))
            .where(Event.id == event_id)
            .where(Event.deleted_at.is_(None))
        )
        event = (await db.execute(stmt)).scalar_one_or_none()
        if event is None:
            raise EventNotFound()

        if event.status != EventStatus.APPROVED:
            is_owner = viewer is not None and viewer["user_id"] == event.organizer_id
            can_view_all = viewer is not None and Permission.EVENTS_VIEW_ALL in viewer["permissions"]
            if not (is_owner or can_view_all):
                raise EventNotFound()

        return event

    @staticmethod
    async def create_event(
        db: AsyncSession,
        organizer_id: UUID,
        data: EventCreate,
        auto_approve: bool = False,
    ) -> Event:
        """
        Registrar un evento nuevo

        Queda pendiente de aprobación, salvo que lo cree un admin
        (`auto_approve`), en cuyo caso sale directo al catálogo.
        """
        names = [tt.name.lower() for tt in data.ticket_types]
        if len(names) != len(set(names)):
            raise InvalidRequest("Los tipos de ticket de un evento deben tener nombres distintos")

        event = Event(
            organizer_id=organizer_id,
            title=data.title.strip(),
            description=data.description,
            location=data.location,
            category=data.category,
            starts_at=data.starts_at,
            status=EventStatus.PENDING,
        )
        if auto_approve:
            event.status = EventStatus.APPROVED
            event.moderated_by = organizer_id
            event.moderated_at = utcnow()

        event.ticket_types = [
            TicketType(
                name=tt.name,
                price=tt.price,
                quantity_total=tt.quantity,
                quantity_available=tt.quantity,
                position=position,
            )
            for position, tt in enumerate(data.ticket_types)
        ]
        db.add(event)
        await db.commit()

        logger.info(f"Evento {event.id} creado por {organizer_id} ({event.status})")
        if auto_approve:
            await cache_delete_pattern(EVENTS_CACHE_PATTERN)
        return await EventService._reload(db, event.id)

    @staticmethod
    async def update_event(
        db: AsyncSession,
        event_id: UUID,
        editor: Dict,
        data: EventUpdate,
    ) -> Event:
        """
        Editar un evento

        El organizador solo puede editar su evento mientras está pendiente y
        la edición lo deja pendiente. Un admin puede editar cualquier evento
        sin cambiar su estado. Los cambios de capacidad pasan por el ledger
        de inventario.
        """
        is_admin = Permission.EVENTS_MODERATE in editor["permissions"]

        event = await db.get(Event, event_id, populate_existing=True)
        if event is None or event.deleted_at is not None:
            raise EventNotFound()
        if not is_admin:
            if event.organizer_id != editor["user_id"]:
                raise PermissionDenied("Solo el organizador puede editar este evento")
            if event.status != EventStatus.PENDING:
                raise EventNotEditable()

        values = data.model_dump(exclude_unset=True, exclude_none=True, exclude={"ticket_types"})
        if "title" in values:
            values["title"] = values["title"].strip()
            if not values["title"]:
                raise InvalidRequest("El título no puede estar vacío")

        stmt = (
            update(Event)
            .where(Event.id == event_id)
            .where(Event.deleted_at.is_(None))
        )
        if not is_admin:
            stmt = (
                stmt.where(Event.organizer_id == editor["user_id"])
                .where(Event.status == EventStatus.PENDING)
            )
            values["status"] = EventStatus.PENDING

        result = await db.execute(
            stmt.values(**values, updated_at=utcnow()).execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            # Otro request lo aprobó, rechazó o borró entre la lectura y el UPDATE
            await db.rollback()
            raise EventNotEditable()

        was_public = event.status == EventStatus.APPROVED
        try:
            for change in data.ticket_types or []:
                await EventService._apply_ticket_type_change(db, event_id, change)
        except InvalidRequest:
            await db.rollback()
            raise
        await db.commit()

        logger.info(f"Evento {event_id} editado por {editor['user_id']}")
        if was_public:
            await cache_delete_pattern(EVENTS_CACHE_PATTERN)
        # Los UPDATE no sincronizan la sesión
        db.expire_all()
        return await EventService._reload(db, event_id)

    @staticmethod
    async def delete_event(db: AsyncSession, event_id: UUID, editor: Dict) -> None:
        """
        Borrado lógico de un evento (organizador dueño o admin)

        El evento sale del catálogo y de las vistas del organizador; los
        tickets y registros ya emitidos se conservan.
        """
        is_admin = Permission.EVENTS_MODERATE in editor["permissions"]

        stmt = (
            update(Event)
            .where(Event.id == event_id)
            .where(Event.deleted_at.is_(None))
        )
        if not is_admin:
            stmt = stmt.where(Event.organizer_id == editor["user_id"])

        now = utcnow()
        result = await db.execute(
            stmt.values(deleted_at=now, updated_at=now).execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            event = await db.get(Event, event_id)
            await db.commit()
            if event is None or event.deleted_at is not None:
                raise EventNotFound()
            raise PermissionDenied("Solo el organizador puede borrar este evento")

        await db.commit()
        logger.info(f"Evento {event_id} borrado por {editor['user_id']}")
        await cache_delete_pattern(EVENTS_CACHE_PATTERN)

    @staticmethod
    async def get_organizer_events(db: AsyncSession, organizer_id: UUID) -> List[Event]:
        """Eventos enviados por un organizador, en cualquier estado"""
        stmt = (
            select(Event)
            .options(selectinload(Event.ticket_types))
            .where(Event.organizer_id == organizer_id)
            .where(Event.deleted_at.is_(None))
            .order_by(Event.created_at.desc())
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_event_registrations(
        db: AsyncSession,
        event_id: UUID,
        viewer: Dict
    ) -> List[Registration]:
        """Registros de un evento (organizador dueño o admin)"""
        event = await db.get(Event, event_id)
        if event is None:
            raise EventNotFound()

        is_owner = viewer["user_id"] == event.organizer_id
        if not (is_owner or Permission.EVENTS_VIEW_ALL in viewer["permissions"]):
            raise PermissionDenied("Solo el organizador del evento puede ver sus registros")

        stmt = (
            select(Registration)
            .options(selectinload(Registration.tickets))
            .where(Registration.event_id == event_id)
            .order_by(Registration.created_at.asc())
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def _apply_ticket_type_change(db: AsyncSession, event_id: UUID, change: TicketTypeUpdate):
        ticket_type = (await db.execute(
            select(TicketType)
            .where(TicketType.event_id == event_id)
            .where(func.lower(TicketType.name) == change.name.lower())
        )).scalar_one_or_none()

        if ticket_type is None:
            if change.price is None or change.quantity is None:
                raise InvalidRequest(f"El tipo de ticket nuevo {change.name} requiere precio y capacidad")
            position = await db.scalar(
                select(func.count(TicketType.id)).where(TicketType.event_id == event_id)
            )
            db.add(TicketType(
                event_id=event_id,
                name=change.name,
                price=change.price,
                quantity_total=change.quantity,
                quantity_available=change.quantity,
                position=position,
            ))
            await db.flush()
            return

        if change.price is not None:
            await db.execute(
                update(TicketType)
                .where(TicketType.id == ticket_type.id)
                .values(price=change.price, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
        if change.quantity is not None:
            await InventoryService.resize(db, ticket_type.id, change.quantity)

    @staticmethod
    async def _reload(db: AsyncSession, event_id: UUID) -> Event:
        stmt = (
            select(Event)
            .options(selectinload(Event.ticket_types))
            .where(Event.id == event_id)
            .execution_options(populate_existing=True)
        )
        event = (await db.execute(stmt)).scalar_one()
        await db.commit()
        return event
