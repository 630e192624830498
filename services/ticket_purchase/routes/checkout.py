"""Rutas de checkout y webhook del proveedor de pagos"""
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict
import json
import logging

from shared.database.session import get_db
from shared.auth.dependencies import get_current_user, require_permission
from shared.auth.permissions import Permission
from shared.errors import PermissionDenied, TransientError, WorkflowError
from shared.utils.rate_limiter import limiter, RATE_LIMITS
from services.ticket_purchase.models.checkout import (
    CheckoutRequest,
    CheckoutResponse,
    ConfirmCheckoutRequest,
    ConfirmationResponse,
)
from services.ticket_purchase.services.checkout_service import CheckoutService, get_checkout_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/sessions", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMITS["checkout"])
async def create_checkout_session(
    request: Request,  # Necesario para rate limiter
    checkout_request: CheckoutRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_permission(Permission.CHECKOUT_CREATE)),
    service: CheckoutService = Depends(get_checkout_service),
):
    """
    Reservar tickets y abrir una sesión de pago

    Devuelve la URL de redirección al checkout del proveedor.
    """
    return await service.request_checkout(
        db,
        user_id=current_user["user_id"],
        event_id=checkout_request.event_id,
        ticket_type_key=checkout_request.ticket_type,
        quantity=checkout_request.quantity,
    )


@router.post("/confirm", response_model=ConfirmationResponse)
@limiter.limit(RATE_LIMITS["checkout"])
async def confirm_checkout(
    request: Request,
    confirm_request: ConfirmCheckoutRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(get_current_user),
    service: CheckoutService = Depends(get_checkout_service),
):
    """
    Confirmar el pago de una sesión (redirect de éxito del proveedor)

    Idempotente: repetir la llamada devuelve el mismo resultado.
    """
    return await service.confirm_checkout(db, confirm_request.session_id)


@router.post("/sessions/{session_id}/cancel", response_model=CheckoutResponse)
@limiter.limit(RATE_LIMITS["checkout"])
async def cancel_checkout_session(
    request: Request,
    session_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_permission(Permission.CHECKOUT_CREATE)),
    service: CheckoutService = Depends(get_checkout_service),
):
    """Abandonar un checkout abierto y liberar las entradas reservadas"""
    return await service.cancel_checkout(db, current_user["user_id"], session_id)


@router.post("/webhook")
@limiter.limit(RATE_LIMITS["webhook"])
async def payment_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    service: CheckoutService = Depends(get_checkout_service),
):
    """
    Webhook del proveedor de pagos

    No requiere autenticación (se valida la firma). Los errores transitorios
    responden 503 para que el proveedor reintente; el resto responde 200
    para que no reintente una notificación que no se puede procesar.
    """
    signature = request.headers.get("x-signature")
    request_id = request.headers.get("x-request-id")
    query_params = dict(request.query_params)

    try:
        payload = await request.json()
    except json.JSONDecodeError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    logger.info(f"Webhook recibido - x-signature: {signature is not None}, x-request-id: {request_id}")

    try:
        result = await service.handle_notification(
            db,
            payload,
            query_params,
            signature=signature,
            request_id=request_id,
        )
    except PermissionDenied as e:
        logger.warning(f"Webhook rechazado: {e.message}")
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content=e.to_dict())
    except TransientError as e:
        logger.warning(f"Webhook con error transitorio, el proveedor reintentará: {e.message}")
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=e.to_dict())
    except WorkflowError as e:
        logger.error(f"Error procesando webhook: {e.code} {e.message}", exc_info=e.category == "integrity")
        return {"status": "error", "error": e.code}

    logger.info(f"Webhook procesado - resultado: {result['status']}")
    return result
