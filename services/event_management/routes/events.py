"""Rutas de gestión de eventos"""
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from decimal import Decimal
from typing import List, Literal, Optional, Dict
from uuid import UUID
import hashlib
import logging

from app.core.config import settings
from shared.database.session import get_db
from shared.auth.dependencies import get_optional_user, require_permission
from shared.auth.permissions import Permission
from shared.cache.redis_client import cache_get, cache_set
from shared.utils.rate_limiter import limiter, RATE_LIMITS
from services.event_management.models.event import EventCreate, EventResponse, EventUpdate
from services.event_management.services.event_service import EventService
from services.ticket_purchase.models.checkout import RegistrationResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def _build_cache_key(
    category: Optional[str] = None,
    search: Optional[str] = None,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
    sort_by: str = "date_asc",
    limit: int = 50,
    offset: int = 0
) -> str:
    """Construir clave de cache basada en los filtros"""
    params_str = (
        f"{category or ''}_{search or ''}_{min_price if min_price is not None else ''}_"
        f"{max_price if max_price is not None else ''}_{sort_by}_{limit}_{offset}"
    )
    params_hash = hashlib.sha256(params_str.encode()).hexdigest()[:16]
    return f"events:list:{params_hash}"


@router.get("", response_model=List[EventResponse])
@limiter.limit(RATE_LIMITS["public"])
async def get_events(
    request: Request,
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    sort_by: Literal["date_asc", "date_desc", "price_asc", "price_desc"] = Query("date_asc"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """
    Catálogo de eventos aprobados

    Endpoint público; la respuesta se cachea en Redis.
    """
    use_cache = settings.EVENTS_CACHE_TTL_SECONDS > 0
    cache_key = _build_cache_key(category, search, min_price, max_price, sort_by, limit, offset)

    if use_cache:
        cached = await cache_get(cache_key)
        if cached is not None:
            return cached

    events = await EventService.get_events(
        db,
        category=category,
        search=search,
        min_price=min_price,
        max_price=max_price,
        sort_by=sort_by,
        limit=limit,
        offset=offset,
    )
    events_response = [EventResponse.model_validate(event) for event in events]

    if use_cache:
        await cache_set(
            cache_key,
            [event.model_dump(mode="json") for event in events_response],
            expire=settings.EVENTS_CACHE_TTL_SECONDS,
        )

    return events_response


@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    event_data: EventCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_permission(Permission.EVENTS_SUBMIT)),
):
    """
    Crear un evento

    Los organizadores lo envían a aprobación; los eventos de un admin
    quedan aprobados.
    """
    return await EventService.create_event(
        db,
        current_user["user_id"],
        event_data,
        auto_approve=Permission.EVENTS_MODERATE in current_user["permissions"],
    )


@router.get("/mine", response_model=List[EventResponse])
async def get_my_events(
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_permission(Permission.EVENTS_SUBMIT)),
):
    """Eventos enviados por el organizador autenticado"""
    return await EventService.get_organizer_events(db, current_user["user_id"])


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(
    event_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[Dict] = Depends(get_optional_user),
):
    """
    Obtener evento por ID

    Endpoint público para eventos aprobados.
    """
    return await EventService.get_event_by_id(db, event_id, viewer=current_user)


@router.get("/{event_id}/registrations", response_model=List[RegistrationResponse])
async def get_event_registrations(
    event_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_permission(Permission.EVENTS_VIEW_OWN_REGISTRATIONS)),
):
    """Registros de un evento (organizador dueño o admin)"""
    return await EventService.get_event_registrations(db, event_id, current_user)


@router.patch("/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: UUID,
    event_data: EventUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_permission(Permission.EVENTS_SUBMIT)),
):
    """
    Editar un evento

    El organizador solo edita sus eventos pendientes; un admin edita
    cualquiera.
    """
    return await EventService.update_event(db, event_id, current_user, event_data)


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(
    event_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_permission(Permission.EVENTS_SUBMIT)),
):
    """Borrar un evento (organizador dueño o admin)"""
    await EventService.delete_event(db, event_id, current_user)
