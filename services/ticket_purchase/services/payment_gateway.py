"""
Contrato del proveedor de pagos (checkout alojado)

El workflow de checkout solo conoce esta interfaz: abrir una sesión de pago
y consultar su resultado. Un resultado `UNKNOWN` significa que el proveedor no
respondió y nunca debe provocar la liberación de inventario.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


class OutcomeStatus(str, Enum):
    PAID = "paid"
    UNPAID = "unpaid"  # Terminal: rechazado o sesión expirada en el proveedor
    PENDING = "pending"  # El comprador aún no termina de pagar
    UNKNOWN = "unknown"  # Error o timeout consultando al proveedor


class CheckoutSessionHandle(BaseModel):
    session_id: str
    redirect_url: str
    expires_at: Optional[datetime] = None


class PaymentOutcome(BaseModel):
    status: OutcomeStatus
    payment_reference: Optional[str] = None
    amount: Optional[Decimal] = None
    expired: bool = False
    detail: Optional[str] = None


class PaymentGateway(ABC):
    """Proveedor de checkout alojado"""

    name: str = "gateway"

    @abstractmethod
    async def open_session(
        self,
        reference: str,
        amount: Decimal,
        currency: str,
        description: str,
        quantity: int,
        success_url: str,
        cancel_url: str,
        expires_at: Optional[datetime] = None,
        metadata: Optional[Dict[str, Any]] = None,
        payer_email: Optional[str] = None,
    ) -> CheckoutSessionHandle:
        """
        Abrir una sesión de pago por `amount`.

        Raises:
            PaymentProviderUnavailable: el proveedor no pudo crear la sesión
        """

    @abstractmethod
    async def retrieve_outcome(self, session_id: str) -> PaymentOutcome:
        """Consultar el resultado de una sesión. Nunca lanza: los errores son UNKNOWN."""

    async def resolve_notification(
        self,
        payload: Dict[str, Any],
        query_params: Dict[str, str],
    ) -> Optional[str]:
        """Referencia del checkout (external reference) asociada a una notificación"""
        return None

    def verify_notification(
        self,
        payload: Dict[str, Any],
        signature: Optional[str],
        request_id: Optional[str],
        query_params: Dict[str, str],
    ) -> bool:
        return True
