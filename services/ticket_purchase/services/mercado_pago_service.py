"""Servicio de integración con Mercado Pago (checkout por preferencias)"""
import asyncio
import hashlib
import hmac
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

import mercadopago
from mercadopago.config import RequestOptions

from app.core.config import settings
from services.ticket_purchase.services.payment_gateway import (
    CheckoutSessionHandle,
    OutcomeStatus,
    PaymentGateway,
    PaymentOutcome,
)
from shared.errors import PaymentOutcomeUnknown, PaymentProviderUnavailable
from shared.utils.circuit_breaker import CircuitBreaker, CircuitOpenError
from shared.utils.retry import retry_with_backoff

logger = logging.getLogger(__name__)

# Estados de pago de Mercado Pago que todavía pueden terminar aprobados
PENDING_PAYMENT_STATUSES = {"pending", "in_process", "authorized", "in_mediation"}


class MercadoPagoTransientError(Exception):
    """Respuesta 5xx/429 de Mercado Pago: se puede reintentar"""


class MercadoPagoRequestError(Exception):
    """Respuesta 4xx de Mercado Pago: reintentar no sirve"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


_breaker = CircuitBreaker(
    name="mercadopago",
    failure_threshold=5,
    recovery_timeout=30,
    expected_exception=(MercadoPagoTransientError, OSError),
)


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"[MercadoPago] Fecha con formato inesperado: {value}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class MercadoPagoService(PaymentGateway):
    """Adaptador de PaymentGateway sobre preferencias de Mercado Pago"""

    name = "mercadopago"

    def __init__(
        self,
        sdk: Any = None,
        breaker: Optional[CircuitBreaker] = None,
        max_retries: int = 2,
        retry_delay: float = 0.5,
    ):
        access_token = settings.MERCADOPAGO_ACCESS_TOKEN
        if sdk is None:
            if not access_token:
                raise ValueError(
                    "MERCADOPAGO_ACCESS_TOKEN no configurado. "
                    "Por favor, configura esta variable en tu archivo .env."
                )
            sdk = mercadopago.SDK(
                access_token,
                request_options=RequestOptions(connection_timeout=settings.MERCADOPAGO_TIMEOUT_SECONDS),
            )

        self.sdk = sdk
        self.breaker = breaker or _breaker
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.webhook_secret = settings.MERCADOPAGO_WEBHOOK_SECRET
        self.environment = settings.MERCADOPAGO_ENVIRONMENT

        # Validar consistencia entre token y entorno
        if access_token:
            token_is_test = access_token.startswith("TEST-")
            if token_is_test and self.environment != "sandbox":
                logger.warning(
                    f"[MercadoPago] Token de prueba (TEST-) detectado pero MERCADOPAGO_ENVIRONMENT={self.environment}"
                )
            elif not token_is_test and self.environment == "sandbox":
                logger.warning("[MercadoPago] Token de aplicación (APP_USR-) detectado con MERCADOPAGO_ENVIRONMENT=sandbox")

    async def _call(self, operation: str, func: Callable[[], Dict]) -> Dict:
        """
        Ejecutar una llamada del SDK (síncrono) en un thread, con retry y circuit breaker.

        Returns:
            El campo `response` de la respuesta del SDK
        """
        async def attempt():
            result = await asyncio.to_thread(func)
            status = result.get("status")
            if status is None or status >= 500 or status == 429:
                raise MercadoPagoTransientError(f"{operation}: status {status}")
            if status >= 400:
                response = result.get("response") or {}
                message = response.get("message") if isinstance(response, dict) else None
                raise MercadoPagoRequestError(f"{operation}: {message or 'error'} (status {status})", status=status)
            return result.get("response") or {}

        async def with_retry():
            return await retry_with_backoff(
                attempt,
                max_retries=self.max_retries,
                initial_delay=self.retry_delay,
                exceptions=(MercadoPagoTransientError, OSError),
            )

        return await self.breaker.call(with_retry)

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
        Crear preferencia de pago en Mercado Pago

        Se cobra un único item por el monto total (precio × cantidad ya
        calculado por el checkout) para que el monto cobrado coincida siempre
        con el snapshot guardado.
        """
        preference_data = {
            "items": [{
                "id": reference,
                "title": description,
                "description": f"{quantity} ticket(s)",
                "quantity": 1,
                "currency_id": currency,
                "unit_price": float(amount),
            }],
            "back_urls": {
                "success": success_url,
                "failure": cancel_url,
                "pending": success_url,
            },
            "external_reference": reference,
            "metadata": metadata or {},
            "statement_descriptor": "TICKETERA",
            "binary_mode": False,  # Permitir estados pendientes
        }
        if settings.API_BASE_URL:
            preference_data["notification_url"] = f"{settings.API_BASE_URL.rstrip('/')}/api/v1/checkout/webhook"
        if expires_at:
            preference_data["expires"] = True
            preference_data["expiration_date_from"] = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
            preference_data["expiration_date_to"] = expires_at.isoformat(timespec="milliseconds")
        if payer_email:
            preference_data["payer"] = {"email": payer_email}
        # auto_return solo funciona con URLs HTTPS
        if success_url.startswith("https://"):
            preference_data["auto_return"] = "approved"

        try:
            preference = await self._call("create_preference", lambda: self.sdk.preference().create(preference_data))
        except (MercadoPagoTransientError, MercadoPagoRequestError, CircuitOpenError, OSError) as e:
            logger.error(f"[MercadoPago] Error creando preferencia para {reference}: {e}")
            raise PaymentProviderUnavailable() from e

        # En sandbox, usar sandbox_init_point si está disponible
        if self.environment == "sandbox":
            payment_link = preference.get("sandbox_init_point") or preference.get("init_point")
        else:
            payment_link = preference.get("init_point")

        if not preference.get("id") or not payment_link:
            logger.error(f"[MercadoPago] Preferencia sin id o link de pago: {preference}")
            raise PaymentProviderUnavailable()

        logger.info(f"[MercadoPago] Preferencia {preference['id']} creada para {reference}")
        return CheckoutSessionHandle(
            session_id=str(preference["id"]),
            redirect_url=payment_link,
            expires_at=expires_at,
        )

    async def retrieve_outcome(self, session_id: str) -> PaymentOutcome:
        """
        Resultado de una preferencia:

        - algún pago `approved` → PAID
        - algún pago en curso → PENDING
        - preferencia expirada sin pago aprobado → UNPAID
        - en otro caso el comprador todavía puede pagar → PENDING
        - cualquier error del proveedor → UNKNOWN
        """
        try:
            preference = await self._call("get_preference", lambda: self.sdk.preference().get(session_id))
            reference = preference.get("external_reference")
            payments: List[Dict] = []
            if reference:
                search = await self._call(
                    "search_payments",
                    lambda: self.sdk.payment().search(filters={"external_reference": reference}),
                )
                payments = search.get("results") or []
        except (MercadoPagoTransientError, MercadoPagoRequestError, CircuitOpenError, OSError) as e:
            logger.warning(f"[MercadoPago] No se pudo consultar la preferencia {session_id}: {e}")
            return PaymentOutcome(status=OutcomeStatus.UNKNOWN, detail=str(e))

        approved = [p for p in payments if p.get("status") == "approved"]
        if approved:
            payment = approved[0]
            amount = payment.get("transaction_amount")
            return PaymentOutcome(
                status=OutcomeStatus.PAID,
                payment_reference=str(payment.get("id")),
                amount=Decimal(str(amount)) if amount is not None else None,
            )

        if any(p.get("status") in PENDING_PAYMENT_STATUSES for p in payments):
            return PaymentOutcome(status=OutcomeStatus.PENDING, detail="payment_in_process")

        expiration = _parse_datetime(preference.get("expiration_date_to"))
        if expiration is not None and expiration <= datetime.now(timezone.utc):
            rejected = [p for p in payments if p.get("status") in ("rejected", "cancelled")]
            return PaymentOutcome(
                status=OutcomeStatus.UNPAID,
                expired=True,
                detail="rejected" if rejected else "expired",
            )

        return PaymentOutcome(status=OutcomeStatus.PENDING)

    async def resolve_notification(
        self,
        payload: Dict[str, Any],
        query_params: Dict[str, str],
    ) -> Optional[str]:
        """
        Obtener el external_reference (id del checkout) de un webhook de pago.

        Mercado Pago notifica el id del pago, no el de la preferencia, así que
        se consulta el pago para obtener la referencia.
        """
        topic = payload.get("type") or payload.get("topic") or query_params.get("type") or query_params.get("topic")
        if topic != "payment":
            logger.info(f"[MercadoPago] Webhook de tipo {topic} ignorado")
            return None

        payment_id = (payload.get("data") or {}).get("id") or query_params.get("data.id") or query_params.get("id")
        if not payment_id:
            return None

        try:
            payment = await self._call("get_payment", lambda: self.sdk.payment().get(str(payment_id)))
        except MercadoPagoRequestError as e:
            logger.warning(f"[MercadoPago] Pago {payment_id} de webhook no encontrado: {e}")
            return None
        except (MercadoPagoTransientError, CircuitOpenError, OSError) as e:
            raise PaymentOutcomeUnknown() from e

        return payment.get("external_reference")

    def verify_notification(
        self,
        payload: Dict[str, Any],
        signature: Optional[str],
        request_id: Optional[str],
        query_params: Dict[str, str],
    ) -> bool:
        """
        Verificar webhook de Mercado Pago usando HMAC SHA256

        Formato del header x-signature: ts=1742505638683,v1=<hex>
        """
        if not self.webhook_secret:
            logger.warning("[MercadoPago] Webhook secret no configurado, saltando verificación (solo desarrollo)")
            return True

        if not signature:
            logger.warning("[MercadoPago] Webhook sin x-signature rechazado")
            return False

        ts = None
        v1 = None
        for part in signature.split(","):
            key_value = part.split("=", 1)
            if len(key_value) == 2:
                key, value = key_value[0].strip(), key_value[1].strip()
                if key == "ts":
                    ts = value
                elif key == "v1":
                    v1 = value

        if not ts or not v1:
            logger.warning("[MercadoPago] No se pudo extraer ts o v1 del signature")
            return False

        data_id = query_params.get("data.id") or (payload.get("data") or {}).get("id")
        manifest = ""
        if data_id:
            manifest += f"id:{str(data_id).lower()};"
        if request_id:
            manifest += f"request-id:{request_id};"
        manifest += f"ts:{ts};"

        calculated = hmac.new(
            key=self.webhook_secret.encode(),
            msg=manifest.encode(),
            digestmod=hashlib.sha256,
        ).hexdigest()
        return hmac.compare_digest(calculated, v1)
