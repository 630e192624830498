"""
Workflow de reserva y confirmación de checkout

Estados del checkout:

    requested → reserved → awaiting_payment → confirmed
                                            → expired | failed | cancelled

Todas las transiciones se hacen con UPDATE condicionales sobre el estado
actual, así dos entregas simultáneas de la misma confirmación (redirect del
comprador + webhook) producen un único ticket, registro y pago.
"""
from datetime import timedelta
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional
import logging
import uuid

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from services.notifications.services.email_service import EmailService
from services.ticket_purchase.services.inventory_service import InventoryService
from services.ticket_purchase.services.payment_gateway import (
    OutcomeStatus,
    PaymentGateway,
    PaymentOutcome,
)
from shared.database.models import (
    CheckoutSession,
    CheckoutStatus,
    Event,
    EventStatus,
    Payment,
    PaymentStatus,
    Registration,
    Ticket,
    TicketStatus,
    TicketTransfer,
    TicketType,
    User,
    utcnow,
)
from shared.errors import (
    CheckoutNotCancellable,
    EventNotApproved,
    EventNotFound,
    InvalidRequest,
    NotCancellable,
    NotOwner,
    NotTransferable,
    OutOfStock,
    PaymentNotCompleted,
    PaymentOutcomeUnknown,
    PaymentProviderUnavailable,
    PermissionDenied,
    SessionNotFound,
    TicketNotFound,
    TicketTypeNotFound,
    UserNotFound,
    WorkflowError,
)

logger = logging.getLogger(__name__)

REFUND_REQUIRED = "paid_without_stock"


class CheckoutService:
    """Servicio de checkout, confirmación de pago y ciclo de vida de tickets"""

    def __init__(
        self,
        gateway: Optional[PaymentGateway] = None,
        notifier: Optional[EmailService] = None,
    ):
        self._gateway = gateway
        self._notifier = notifier

    @property
    def gateway(self) -> PaymentGateway:
        """Lazy initialization del proveedor de pagos"""
        if self._gateway is None:
            from services.ticket_purchase.services.mercado_pago_service import MercadoPagoService
            self._gateway = MercadoPagoService()
        return self._gateway

    @property
    def notifier(self) -> EmailService:
        """Lazy initialization del notificador"""
        if self._notifier is None:
            self._notifier = EmailService()
        return self._notifier

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    async def request_checkout(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        event_id: uuid.UUID,
        ticket_type_key: str,
        quantity: Any,
    ) -> Dict:
        """
        Reservar inventario y abrir una sesión de pago.

        La reserva, el ticket pendiente y el checkout se confirman en la base
        antes de llamar al proveedor; si el proveedor falla, la reserva se
        libera y el checkout queda `failed`.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidRequest("La cantidad debe ser un entero positivo")

        event = await db.get(Event, event_id)
        if event is None or event.deleted_at is not None:
            raise EventNotFound()
        if event.status != EventStatus.APPROVED:
            raise EventNotApproved()

        ticket_type = await self._find_ticket_type(db, event.id, ticket_type_key)

        user = await db.get(User, user_id)
        if user is None:
            raise UserNotFound()

        expires_at = utcnow() + timedelta(minutes=settings.CHECKOUT_EXPIRY_MINUTES)
        reservation = await InventoryService.reserve(
            db,
            event.id,
            ticket_type.id,
            quantity,
            reason="checkout",
            expires_at=expires_at,
        )

        unit_price = Decimal(ticket_type.price)
        amount = unit_price * quantity

        ticket = Ticket(
            id=uuid.uuid4(),
            event_id=event.id,
            ticket_type_id=ticket_type.id,
            user_id=user.id,
            reservation_id=reservation.id,
            ticket_type_name=ticket_type.name,
            quantity=quantity,
            unit_price=unit_price,
            total_price=amount,
            status=TicketStatus.PENDING,
        )
        checkout = CheckoutSession(
            id=uuid.uuid4(),
            user_id=user.id,
            event_id=event.id,
            ticket_type_id=ticket_type.id,
            ticket_id=ticket.id,
            reservation_id=reservation.id,
            quantity=quantity,
            unit_price=unit_price,
            amount=amount,
            currency=settings.PAYMENT_CURRENCY,
            provider=self.gateway.name,
            status=CheckoutStatus.RESERVED,
            expires_at=expires_at,
        )
        db.add(ticket)
        db.add(checkout)
        await db.commit()

        logger.info(
            f"Checkout {checkout.id} reservado: {quantity} x {ticket_type.name} "
            f"para evento {event.id} (usuario {user.id})"
        )

        base_url = settings.APP_BASE_URL.rstrip("/")
        try:
            handle = await self.gateway.open_session(
                reference=str(checkout.id),
                amount=amount,
                currency=checkout.currency,
                description=f"{event.title} - {ticket_type.name}",
                quantity=quantity,
                success_url=f"{base_url}/checkout/success?checkout_id={checkout.id}",
                cancel_url=f"{base_url}/checkout/cancel?checkout_id={checkout.id}",
                expires_at=expires_at,
                metadata={
                    "checkout_id": str(checkout.id),
                    "user_id": str(user.id),
                    "event_id": str(event.id),
                    "ticket_type": ticket_type.name,
                    "quantity": quantity,
                },
                payer_email=user.email,
            )
        except PaymentProviderUnavailable:
            logger.error(f"Proveedor de pagos no disponible para checkout {checkout.id}, liberando reserva")
            await self._close_checkout(db, checkout.id, CheckoutStatus.FAILED, reason="provider_unavailable")
            raise

        opened = await self._transition(
            db,
            checkout.id,
            [CheckoutStatus.RESERVED],
            status=CheckoutStatus.AWAITING_PAYMENT,
            provider_session_id=handle.session_id,
            redirect_url=handle.redirect_url,
        )
        await db.commit()
        checkout = await self._load_checkout(db, checkout.id)
        await db.commit()
        if not opened:
            logger.warning(f"Checkout {checkout.id} cerrado antes de guardar la sesión {handle.session_id}")

        return self._checkout_result(checkout)

    async def confirm_checkout(self, db: AsyncSession, session_id: str) -> Dict:
        """
        Confirmar un checkout según el resultado del proveedor.

        Idempotente: un checkout ya confirmado devuelve el mismo resultado sin
        consultar al proveedor ni crear registros nuevos.
        """
        checkout = await self._find_by_session(db, session_id)
        # Cerrar la transacción de lectura antes de llamar al proveedor
        await db.commit()

        if checkout.status == CheckoutStatus.CONFIRMED:
            return self._confirmation_result(checkout)
        if checkout.payment_id is not None and checkout.failure_reason == REFUND_REQUIRED:
            raise OutOfStock("El pago fue recibido pero ya no había stock; se gestionará el reembolso")

        outcome = await self.gateway.retrieve_outcome(session_id)
        logger.info(f"Checkout {checkout.id}: resultado del proveedor {outcome.status.value}")

        if outcome.status == OutcomeStatus.UNKNOWN:
            raise PaymentOutcomeUnknown()

        if outcome.status == OutcomeStatus.PENDING:
            raise PaymentNotCompleted("El pago aún no se ha completado")

        if outcome.status == OutcomeStatus.UNPAID:
            final_status = CheckoutStatus.EXPIRED if outcome.expired else CheckoutStatus.FAILED
            await self._close_checkout(db, checkout.id, final_status, reason=outcome.detail or "unpaid")
            raise PaymentNotCompleted()

        return await self._with_integrity_retry(
            db,
            lambda: self._fulfill(db, checkout.id, outcome),
            f"confirmación de checkout {checkout.id}",
        )

    async def confirm_by_reference(self, db: AsyncSession, reference: str) -> Optional[Dict]:
        """Confirmar el checkout cuyo id es `reference` (notificaciones del proveedor)"""
        try:
            checkout_id = uuid.UUID(str(reference))
        except ValueError:
            logger.warning(f"Referencia de checkout inválida en notificación: {reference}")
            return None

        checkout = await db.get(CheckoutSession, checkout_id)
        await db.commit()
        if checkout is None or not checkout.provider_session_id:
            logger.warning(f"Notificación para checkout desconocido {reference}")
            return None

        return await self.confirm_checkout(db, checkout.provider_session_id)

    async def handle_notification(
        self,
        db: AsyncSession,
        payload: Dict[str, Any],
        query_params: Dict[str, str],
        signature: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Dict:
        """
        Procesar un webhook del proveedor de pagos.

        Raises:
            PermissionDenied: firma inválida
            PaymentOutcomeUnknown: el proveedor no respondió (el webhook debe reintentarse)
        """
        if not self.gateway.verify_notification(payload, signature, request_id, query_params):
            raise PermissionDenied("Firma de webhook inválida")

        reference = await self.gateway.resolve_notification(payload, query_params)
        if not reference:
            return {"status": "ignored"}

        try:
            result = await self.confirm_by_reference(db, reference)
        except PaymentNotCompleted:
            return {"status": "not_paid", "checkout_id": reference}

        if result is None:
            return {"status": "ignored"}
        return {"status": "confirmed", "checkout_id": result["checkout_id"]}

    async def cancel_checkout(self, db: AsyncSession, user_id: uuid.UUID, session_id: str) -> Dict:
        """El comprador abandona el checkout: se libera la reserva"""
        checkout = await self._find_by_session(db, session_id)
        if checkout.user_id != user_id:
            raise NotOwner("El checkout no pertenece al usuario")
        if checkout.status not in CheckoutStatus.OPEN:
            raise CheckoutNotCancellable()

        if not await self._close_checkout(db, checkout.id, CheckoutStatus.CANCELLED, reason="buyer_cancelled"):
            raise CheckoutNotCancellable()

        checkout = await self._load_checkout(db, checkout.id)
        await db.commit()
        return self._checkout_result(checkout)

    async def expire_checkout(self, db: AsyncSession, session_id: str) -> Dict:
        """Expirar manualmente un checkout abierto"""
        checkout = await self._find_by_session(db, session_id)
        if checkout.status not in CheckoutStatus.OPEN:
            raise CheckoutNotCancellable()

        if not await self._close_checkout(db, checkout.id, CheckoutStatus.EXPIRED, reason="expired_by_operator"):
            raise CheckoutNotCancellable()

        checkout = await self._load_checkout(db, checkout.id)
        await db.commit()
        return self._checkout_result(checkout)

    async def expire_stale_checkouts(
        self,
        db: AsyncSession,
        now=None,
        limit: Optional[int] = None,
    ) -> Dict[str, int]:
        """
        Barrido de checkouts abiertos cuyo plazo venció.

        Antes de expirar se consulta al proveedor: un pago aprobado se
        confirma y un resultado desconocido deja el checkout para el
        próximo barrido.
        """
        now = now or utcnow()
        limit = limit or settings.CHECKOUT_SWEEP_BATCH_SIZE

        rows = (await db.execute(
            select(CheckoutSession.id, CheckoutSession.provider_session_id)
            .where(CheckoutSession.status.in_(CheckoutStatus.OPEN))
            .where(CheckoutSession.expires_at <= now)
            .order_by(CheckoutSession.expires_at)
            .limit(limit)
        )).all()
        await db.commit()

        summary = {"examined": len(rows), "expired": 0, "confirmed": 0, "skipped": 0}
        for checkout_id, provider_session_id in rows:
            if provider_session_id:
                outcome = await self.gateway.retrieve_outcome(provider_session_id)
                if outcome.status == OutcomeStatus.UNKNOWN:
                    summary["skipped"] += 1
                    continue
                if outcome.status == OutcomeStatus.PAID:
                    try:
                        await self._with_integrity_retry(
                            db,
                            lambda: self._fulfill(db, checkout_id, outcome),
                            f"confirmación de checkout {checkout_id}",
                        )
                        summary["confirmed"] += 1
                    except WorkflowError as e:
                        # Descartar un claim a medio aplicar antes del siguiente commit
                        await db.rollback()
                        logger.warning(f"Barrido: no se pudo confirmar checkout {checkout_id}: {e.message}")
                        summary["skipped"] += 1
                    continue

            if await self._close_checkout(db, checkout_id, CheckoutStatus.EXPIRED, reason="timeout"):
                summary["expired"] += 1
            else:
                summary["skipped"] += 1

        if rows:
            logger.info(f"Barrido de checkouts: {summary}")
        return summary

    # ------------------------------------------------------------------
    # Tickets
    # ------------------------------------------------------------------

    async def cancel_ticket(self, db: AsyncSession, user_id: uuid.UUID, ticket_id: uuid.UUID) -> Dict:
        """Cancelar un ticket reservado y devolver sus unidades al inventario"""
        ticket = await self._load_ticket(db, ticket_id)
        if ticket.user_id != user_id:
            raise NotOwner()
        if ticket.status != TicketStatus.BOOKED:
            raise NotCancellable()

        result = await db.execute(
            update(Ticket)
            .where(Ticket.id == ticket.id)
            .where(Ticket.user_id == user_id)
            .where(Ticket.status == TicketStatus.BOOKED)
            .values(status=TicketStatus.CANCELLED, cancelled_at=utcnow(), registration_id=None, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            raise NotCancellable()

        released = await InventoryService.release(db, ticket.reservation_id, reason="ticket_cancelled")
        await db.commit()

        logger.info(f"Ticket {ticket.id} cancelado por {user_id} (stock devuelto: {released})")

        event = await db.get(Event, ticket.event_id)
        user = await db.get(User, user_id)
        await db.commit()
        if user is not None and event is not None:
            await self._notify(self.notifier.send_cancellation(user.email, event.title, str(ticket.id)))

        return {
            "ticket_id": str(ticket.id),
            "status": TicketStatus.CANCELLED,
            "released_quantity": ticket.quantity if released else 0,
        }

    async def transfer_ticket(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        ticket_id: uuid.UUID,
        recipient_email: str,
    ) -> Dict:
        """
        Transferir un ticket reservado a otro usuario.

        El ticket sigue `booked` con el nuevo dueño y pasa al registro del
        destinatario; el historial queda en `ticket_transfers`. El inventario
        no cambia.
        """
        email = (recipient_email or "").strip().lower()
        if not email:
            raise InvalidRequest("Debes indicar el email del destinatario")

        return await self._with_integrity_retry(
            db,
            lambda: self._transfer(db, user_id, ticket_id, email),
            f"transferencia de ticket {ticket_id}",
        )

    async def _transfer(self, db: AsyncSession, user_id: uuid.UUID, ticket_id: uuid.UUID, email: str) -> Dict:
        ticket = await self._load_ticket(db, ticket_id)
        if ticket.user_id != user_id:
            raise NotOwner()
        if ticket.status != TicketStatus.BOOKED:
            raise NotTransferable()

        recipient = (await db.execute(
            select(User).where(func.lower(User.email) == email)
        )).scalar_one_or_none()
        if recipient is None:
            raise UserNotFound("Destinatario no encontrado")
        if recipient.id == user_id:
            raise InvalidRequest("No puedes transferirte un ticket a ti mismo")

        registration = await self._get_or_create_registration(db, recipient.id, ticket.event_id)

        result = await db.execute(
            update(Ticket)
            .where(Ticket.id == ticket.id)
            .where(Ticket.user_id == user_id)
            .where(Ticket.status == TicketStatus.BOOKED)
            .values(user_id=recipient.id, registration_id=registration.id, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            raise NotTransferable()

        db.add(TicketTransfer(ticket_id=ticket.id, from_user_id=user_id, to_user_id=recipient.id))
        await db.commit()

        logger.info(f"Ticket {ticket.id} transferido de {user_id} a {recipient.id}")

        sender = await db.get(User, user_id)
        event = await db.get(Event, ticket.event_id)
        await db.commit()
        if event is not None:
            await self._notify(self.notifier.send_transfer_notice(
                recipient.email, event.title, str(ticket.id), received=True,
                other_party=sender.email if sender else "otro usuario",
            ))
            if sender is not None:
                await self._notify(self.notifier.send_transfer_notice(
                    sender.email, event.title, str(ticket.id), received=False, other_party=recipient.email,
                ))

        return {
            "ticket_id": str(ticket.id),
            "status": TicketStatus.BOOKED,
            "owner_id": str(recipient.id),
            "registration_id": str(registration.id),
        }

    # ------------------------------------------------------------------
    # Internos
    # ------------------------------------------------------------------

    async def _fulfill(self, db: AsyncSession, checkout_id: uuid.UUID, outcome: PaymentOutcome) -> Dict:
        """Efectos durables de un pago aprobado, en una sola transacción"""
        checkout = await self._load_checkout(db, checkout_id)
        if checkout.status == CheckoutStatus.CONFIRMED:
            await db.commit()
            return self._confirmation_result(checkout)
        if checkout.payment_id is not None and checkout.failure_reason == REFUND_REQUIRED:
            await db.commit()
            raise OutOfStock("El pago fue recibido pero ya no había stock; se gestionará el reembolso")

        previous_status = checkout.status
        now = utcnow()
        claimed = await self._transition(
            db,
            checkout.id,
            [previous_status],
            status=CheckoutStatus.CONFIRMED,
            confirmed_at=now,
            failure_reason=None,
        )
        if not claimed:
            # Otro proceso cambió el estado entre la lectura y el claim
            await db.rollback()
            return await self._fulfill(db, checkout_id, outcome)

        reservation_id = checkout.reservation_id
        if previous_status in CheckoutStatus.OPEN:
            await InventoryService.commit(db, reservation_id)
        else:
            # Pago tardío: la reserva ya se liberó por expiración o cancelación
            logger.warning(f"Pago tardío para checkout {checkout.id} en estado {previous_status}, re-reservando")
            try:
                reservation = await InventoryService.reserve(
                    db, checkout.event_id, checkout.ticket_type_id, checkout.quantity, reason="late_payment",
                )
            except OutOfStock:
                await db.rollback()
                await self._record_unfulfillable_payment(db, checkout_id, previous_status, outcome)
                raise OutOfStock("El pago fue recibido pero ya no había stock; se gestionará el reembolso")
            await InventoryService.commit(db, reservation.id)
            reservation_id = reservation.id

        registration = await self._get_or_create_registration(db, checkout.user_id, checkout.event_id)

        ticket = await self._load_ticket(db, checkout.ticket_id)
        ticket.status = TicketStatus.BOOKED
        ticket.booked_at = now
        ticket.cancelled_at = None
        ticket.registration_id = registration.id
        ticket.reservation_id = reservation_id

        if outcome.amount is not None and outcome.amount != checkout.amount:
            logger.warning(
                f"Checkout {checkout.id}: monto cobrado {outcome.amount} distinto al esperado {checkout.amount}"
            )

        payment = Payment(
            id=uuid.uuid4(),
            checkout_id=checkout.id,
            ticket_id=ticket.id,
            user_id=checkout.user_id,
            provider=checkout.provider,
            provider_payment_id=outcome.payment_reference,
            amount=checkout.amount,
            currency=checkout.currency,
            status=PaymentStatus.SUCCEEDED,
            paid_at=now,
        )
        db.add(payment)
        await db.flush()

        registration.payment_id = payment.id
        checkout = await self._load_checkout(db, checkout.id)
        checkout.registration_id = registration.id
        checkout.payment_id = payment.id
        checkout.reservation_id = reservation_id
        await db.commit()

        logger.info(
            f"Checkout {checkout.id} confirmado: ticket {ticket.id}, registro {registration.id}, pago {payment.id}"
        )

        user = await db.get(User, checkout.user_id)
        event = await db.get(Event, checkout.event_id)
        await db.commit()
        if user is not None and event is not None:
            await self._notify(self.notifier.send_booking_confirmation(
                user.email,
                event.title,
                ticket.ticket_type_name,
                ticket.quantity,
                checkout.amount,
                checkout.currency,
                str(ticket.id),
            ))

        return self._confirmation_result(checkout)

    async def _record_unfulfillable_payment(
        self,
        db: AsyncSession,
        checkout_id: uuid.UUID,
        previous_status: str,
        outcome: PaymentOutcome,
    ):
        """Registrar un pago aprobado que no se pudo cumplir (requiere reembolso manual)"""
        checkout = await self._load_checkout(db, checkout_id)
        payment = Payment(
            id=uuid.uuid4(),
            checkout_id=checkout.id,
            ticket_id=checkout.ticket_id,
            user_id=checkout.user_id,
            provider=checkout.provider,
            provider_payment_id=outcome.payment_reference,
            amount=checkout.amount,
            currency=checkout.currency,
            status=PaymentStatus.REFUND_PENDING,
            paid_at=utcnow(),
        )
        db.add(payment)
        await db.flush()
        await self._transition(
            db,
            checkout.id,
            [previous_status],
            status=CheckoutStatus.FAILED,
            failure_reason=REFUND_REQUIRED,
            payment_id=payment.id,
        )
        await db.commit()
        logger.error(
            f"Checkout {checkout.id}: pago {outcome.payment_reference} aprobado sin stock disponible, "
            f"requiere reembolso manual"
        )

    async def _close_checkout(
        self,
        db: AsyncSession,
        checkout_id: uuid.UUID,
        final_status: str,
        reason: Optional[str] = None,
    ) -> bool:
        """
        Cerrar un checkout abierto: liberar la reserva y cancelar el ticket pendiente.

        Returns:
            True si este llamado cerró el checkout
        """
        checkout = await self._load_checkout(db, checkout_id)
        if checkout.status not in CheckoutStatus.OPEN:
            await db.commit()
            return False

        closed = await self._transition(
            db, checkout.id, list(CheckoutStatus.OPEN), status=final_status, failure_reason=reason,
        )
        if not closed:
            await db.rollback()
            return False

        if checkout.reservation_id:
            await InventoryService.release(db, checkout.reservation_id, reason=f"checkout_{final_status}")
        if checkout.ticket_id:
            await db.execute(
                update(Ticket)
                .where(Ticket.id == checkout.ticket_id)
                .where(Ticket.status == TicketStatus.PENDING)
                .values(status=TicketStatus.CANCELLED, cancelled_at=utcnow(), updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
        await db.commit()

        logger.info(f"Checkout {checkout.id} cerrado como {final_status} ({reason})")
        return True

    async def _transition(
        self,
        db: AsyncSession,
        checkout_id: uuid.UUID,
        from_statuses: Iterable[str],
        **values: Any,
    ) -> bool:
        """UPDATE condicional del checkout; True si esta llamada hizo el cambio"""
        values.setdefault("updated_at", utcnow())
        result = await db.execute(
            update(CheckoutSession)
            .where(CheckoutSession.id == checkout_id)
            .where(CheckoutSession.status.in_(list(from_statuses)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _with_integrity_retry(
        self,
        db: AsyncSession,
        operation: Callable[[], Awaitable[Dict]],
        description: str,
    ) -> Dict:
        """Reintentar una vez si otra transacción creó el mismo registro único"""
        try:
            return await operation()
        except IntegrityError as e:
            await db.rollback()
            logger.warning(f"Conflicto de integridad en {description}, reintentando: {e.orig}")
        return await operation()

    async def _notify(self, notification: Awaitable[bool]):
        """Las notificaciones nunca deshacen una operación ya confirmada"""
        try:
            sent = await notification
        except Exception as e:
            logger.warning(f"Fallo enviando notificación: {e}", exc_info=True)
            return
        if not sent:
            logger.warning("Notificación no enviada")

    async def _find_ticket_type(self, db: AsyncSession, event_id: uuid.UUID, key: str) -> TicketType:
        """Buscar tipo de ticket por nombre (sin distinguir mayúsculas) o por id"""
        key = (key or "").strip()
        if not key:
            raise InvalidRequest("Debes indicar el tipo de ticket")

        stmt = select(TicketType).where(TicketType.event_id == event_id)
        try:
            stmt = stmt.where(TicketType.id == uuid.UUID(key))
        except ValueError:
            stmt = stmt.where(func.lower(TicketType.name) == key.lower())

        ticket_type = (await db.execute(stmt)).scalar_one_or_none()
        if ticket_type is None:
            raise TicketTypeNotFound()
        return ticket_type

    async def _get_or_create_registration(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        event_id: uuid.UUID,
    ) -> Registration:
        registration = (await db.execute(
            select(Registration)
            .where(Registration.user_id == user_id)
            .where(Registration.event_id == event_id)
        )).scalar_one_or_none()
        if registration is None:
            registration = Registration(id=uuid.uuid4(), user_id=user_id, event_id=event_id)
            db.add(registration)
            await db.flush()
        return registration

    async def _find_by_session(self, db: AsyncSession, session_id: str) -> CheckoutSession:
        checkout = (await db.execute(
            select(CheckoutSession)
            .where(CheckoutSession.provider_session_id == session_id)
            .execution_options(populate_existing=True)
        )).scalar_one_or_none()
        if checkout is None:
            raise SessionNotFound()
        return checkout

    async def _load_checkout(self, db: AsyncSession, checkout_id: uuid.UUID) -> CheckoutSession:
        checkout = (await db.execute(
            select(CheckoutSession)
            .where(CheckoutSession.id == checkout_id)
            .execution_options(populate_existing=True)
        )).scalar_one_or_none()
        if checkout is None:
            raise SessionNotFound()
        return checkout

    async def _load_ticket(self, db: AsyncSession, ticket_id: uuid.UUID) -> Ticket:
        ticket = (await db.execute(
            select(Ticket)
            .where(Ticket.id == ticket_id)
            .execution_options(populate_existing=True)
        )).scalar_one_or_none()
        if ticket is None:
            raise TicketNotFound()
        return ticket

    @staticmethod
    def _checkout_result(checkout: CheckoutSession) -> Dict:
        return {
            "checkout_id": str(checkout.id),
            "session_id": checkout.provider_session_id,
            "redirect_url": checkout.redirect_url,
            "status": checkout.status,
            "ticket_id": str(checkout.ticket_id) if checkout.ticket_id else None,
            "quantity": checkout.quantity,
            "amount": checkout.amount,
            "currency": checkout.currency,
            "expires_at": checkout.expires_at,
        }

    @staticmethod
    def _confirmation_result(checkout: CheckoutSession) -> Dict:
        return {
            "checkout_id": str(checkout.id),
            "session_id": checkout.provider_session_id,
            "status": checkout.status,
            "event_id": str(checkout.event_id),
            "ticket_id": str(checkout.ticket_id),
            "registration_id": str(checkout.registration_id) if checkout.registration_id else None,
            "payment_id": str(checkout.payment_id) if checkout.payment_id else None,
            "quantity": checkout.quantity,
            "amount": checkout.amount,
            "currency": checkout.currency,
            "confirmed_at": checkout.confirmed_at,
        }


def get_checkout_service() -> CheckoutService:
    """Dependency de FastAPI (los tests la reemplazan con proveedores falsos)"""
    return CheckoutService()
