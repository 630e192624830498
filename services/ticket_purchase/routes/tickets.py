"""Rutas de tickets del usuario"""
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Dict, Optional
from uuid import UUID

from shared.database.session import get_db
from shared.auth.dependencies import require_permission
from shared.auth.permissions import Permission
from shared.utils.rate_limiter import limiter, RATE_LIMITS
from services.ticket_purchase.models.checkout import (
    TicketActionResponse,
    TicketResponse,
    TransferRequest,
)
from services.ticket_purchase.services.checkout_service import CheckoutService, get_checkout_service
from services.ticket_purchase.services.ticket_service import TicketService


router = APIRouter()


@router.get("/me", response_model=List[TicketResponse])
async def get_my_tickets(
    status: Optional[str] = Query(None, description="pending, booked o cancelled"),
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_permission(Permission.TICKETS_MANAGE_OWN)),
):
    '''Tickets del usuario autenticado'''
    return await TicketService.get_user_tickets(db, current_user["user_id"], status=status)


@router.post("/{ticket_id}/cancel", response_model=TicketActionResponse)
@limiter.limit(RATE_LIMITS["tickets"])
async def cancel_ticket(
    request: Request,
    ticket_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_permission(Permission.TICKETS_MANAGE_OWN)),
    service: CheckoutService = Depends(get_checkout_service),
):
    '''Cancelar un ticket reservado; las entradas vuelven a estar disponibles'''
    return await service.cancel_ticket(db, current_user["user_id"], ticket_id)


@router.post("/{ticket_id}/transfer", response_model=TicketActionResponse)
@limiter.limit(RATE_LIMITS["tickets"])
async def transfer_ticket(
    request: Request,
    ticket_id: UUID,
    transfer_request: TransferRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_permission(Permission.TICKETS_MANAGE_OWN)),
    service: CheckoutService = Depends(get_checkout_service),
):
    '''Transferir un ticket reservado a otro usuario registrado'''
    return await service.transfer_ticket(
        db,
        current_user["user_id"],
        ticket_id,
        str(transfer_request.recipient_email),
    )
