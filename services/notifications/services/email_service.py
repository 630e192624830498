"""Servicio de envío de emails usando Resend"""
import asyncio
import logging
from decimal import Decimal
from html import escape
from typing import Optional

import resend

from app.core.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """
    Notificador de la ticketera (Resend).

    El envío es best-effort: `send` devuelve False ante cualquier falla y
    nunca lanza, porque una reserva ya confirmada no depende del email.
    """

    def __init__(self, api_key: Optional[str] = None, from_email: Optional[str] = None):
        self.resend_api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self.from_email = from_email or settings.RESEND_FROM_EMAIL

        if not self.resend_api_key:
            logger.warning("RESEND_API_KEY no configurado. Los emails no se enviarán.")
            self.resend_configured = False
        else:
            resend.api_key = self.resend_api_key
            self.resend_configured = True
            logger.info(f"EmailService (Resend) inicializado con from: {self.from_email}")

    async def send(self, to: str, subject: str, body: str) -> bool:
        """
        Enviar un email de texto plano (se envía también como HTML simple)

        Returns:
            True si se envió correctamente
        """
        if not to:
            logger.warning(f"Usuario sin email, no se envía: {subject}")
            return False

        if not self.resend_configured:
            logger.warning(f"Resend no configurado, email a {to} no enviado: {subject}")
            return False

        params = {
            "from": self.from_email,
            "to": [to],
            "subject": subject,
            "text": body,
            "html": "<br>".join(escape(line) for line in body.splitlines()),
        }

        # Resend SDK es síncrono, se ejecuta en un thread
        def send_email_sync():
            return resend.Emails.send(params)

        try:
            result = await asyncio.to_thread(send_email_sync)
        except Exception as e:
            logger.error(f"Error enviando email a {to}: {e}", exc_info=True)
            return False

        if not result or result.get("error"):
            logger.error(f"Error enviando email a {to}: {result.get('error') if result else 'sin respuesta'}")
            return False

        logger.info(f"Email enviado exitosamente a {to}: {subject} (ID: {result.get('id', 'N/A')})")
        return True

    async def send_booking_confirmation(
        self,
        to: str,
        event_title: str,
        ticket_type: str,
        quantity: int,
        amount: Decimal,
        currency: str,
        ticket_id: str,
    ) -> bool:
        body = (
            f"Tu compra para {event_title} está confirmada.\n"
            f"Tipo de ticket: {ticket_type}\n"
            f"Cantidad: {quantity}\n"
            f"Total pagado: {amount} {currency}\n"
            f"ID del ticket: {ticket_id}"
        )
        return await self.send(to, f"Tickets confirmados: {event_title}", body)

    async def send_cancellation(self, to: str, event_title: str, ticket_id: str) -> bool:
        body = (
            f"Tu ticket {ticket_id} para {event_title} fue cancelado.\n"
            f"Las entradas quedaron nuevamente disponibles para la venta."
        )
        return await self.send(to, f"Ticket cancelado: {event_title}", body)

    async def send_transfer_notice(
        self,
        to: str,
        event_title: str,
        ticket_id: str,
        received: bool,
        other_party: str,
    ) -> bool:
        if received:
            subject = f"Recibiste un ticket para {event_title}"
            body = f"{other_party} te transfirió el ticket {ticket_id} para {event_title}."
        else:
            subject = f"Transferiste tu ticket para {event_title}"
            body = f"Tu ticket {ticket_id} para {event_title} ahora pertenece a {other_party}."
        return await self.send(to, subject, body)

    async def send_moderation_result(
        self,
        to: str,
        event_title: str,
        approved: bool,
        reason: Optional[str] = None,
    ) -> bool:
        if approved:
            subject = f"Tu evento {event_title} fue aprobado"
            body = f"{event_title} ya está publicado y a la venta."
        else:
            subject = f"Tu evento {event_title} fue rechazado"
            body = f"{event_title} fue rechazado.\nMotivo: {reason or 'sin especificar'}"
        return await self.send(to, subject, body)
