"""Rutas de administración"""
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, List, Literal, Optional
from uuid import UUID

from shared.database.session import get_db
from shared.auth.dependencies import require_permission
from shared.auth.permissions import Permission
from shared.utils.rate_limiter import limiter, RATE_LIMITS
from services.admin.services.admin_events_service import AdminEventsService
from services.event_management.models.event import EventReject, EventResponse
from services.ticket_purchase.models.checkout import CheckoutResponse, ExpirySweepResponse
from services.ticket_purchase.services.checkout_service import CheckoutService, get_checkout_service


router = APIRouter()


def get_admin_events_service() -> AdminEventsService:
    return AdminEventsService()


@router.get("/events", response_model=List[EventResponse])
@limiter.limit(RATE_LIMITS["admin"])
async def get_all_events(
    request: Request,
    status: Optional[Literal["pending", "approved", "rejected"]] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_permission(Permission.EVENTS_VIEW_ALL)),
    service: AdminEventsService = Depends(get_admin_events_service),
):
    """Todos los eventos, en cualquier estado"""
    return await service.get_all_events(db, status=status)


@router.get("/events/pending", response_model=List[EventResponse])
@limiter.limit(RATE_LIMITS["admin"])
async def get_pending_events(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_permission(Permission.EVENTS_MODERATE)),
    service: AdminEventsService = Depends(get_admin_events_service),
):
    """Eventos pendientes de aprobación"""
    return await service.get_pending_events(db)


@router.post("/events/{event_id}/approve", response_model=EventResponse)
@limiter.limit(RATE_LIMITS["admin"])
async def approve_event(
    request: Request,
    event_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_permission(Permission.EVENTS_MODERATE)),
    service: AdminEventsService = Depends(get_admin_events_service),
):
    """Aprobar un evento pendiente (queda a la venta)"""
    return await service.approve_event(db, event_id, current_user["user_id"])


@router.post("/events/{event_id}/reject", response_model=EventResponse)
@limiter.limit(RATE_LIMITS["admin"])
async def reject_event(
    request: Request,
    event_id: UUID,
    reject_request: EventReject,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_permission(Permission.EVENTS_MODERATE)),
    service: AdminEventsService = Depends(get_admin_events_service),
):
    """Rechazar un evento pendiente indicando el motivo"""
    return await service.reject_event(db, event_id, current_user["user_id"], reject_request.reason)


@router.post("/checkouts/expire-stale", response_model=ExpirySweepResponse)
@limiter.limit(RATE_LIMITS["admin"])
async def expire_stale_checkouts(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_permission(Permission.CHECKOUTS_EXPIRE)),
    service: CheckoutService = Depends(get_checkout_service),
):
    """Ejecutar ahora el barrido de checkouts vencidos"""
    return await service.expire_stale_checkouts(db)


@router.post("/checkouts/{session_id}/expire", response_model=CheckoutResponse)
@limiter.limit(RATE_LIMITS["admin"])
async def expire_checkout(
    request: Request,
    session_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_permission(Permission.CHECKOUTS_EXPIRE)),
    service: CheckoutService = Depends(get_checkout_service),
):
    """Expirar un checkout abierto y liberar sus entradas"""
    return await service.expire_checkout(db, session_id)
