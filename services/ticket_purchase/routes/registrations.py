"""Rutas de registros (inscripciones a eventos)"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Dict
from uuid import UUID

from shared.database.session import get_db
from shared.auth.dependencies import get_current_user, require_permission
from shared.auth.permissions import Permission
from services.ticket_purchase.models.checkout import RegistrationResponse
from services.ticket_purchase.services.ticket_service import TicketService


router = APIRouter()


@router.get("/me", response_model=List[RegistrationResponse])
async def get_my_registrations(
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_permission(Permission.TICKETS_MANAGE_OWN)),
):
    '''Registros del usuario con sus tickets'''
    return await TicketService.get_user_registrations(db, current_user["user_id"])


@router.get("/{registration_id}", response_model=RegistrationResponse)
async def get_registration(
    registration_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(get_current_user),
):
    '''Registro por ID (dueño o admin)'''
    return await TicketService.get_registration(db, registration_id, current_user)
