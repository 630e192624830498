"""
Errores de dominio de la ticketera

Cada error tiene un código estable, un status HTTP y un mensaje seguro para
el cliente. Las categorías permiten a las rutas y al webhook decidir si
corresponde reintentar (transitorios) u ocultar el detalle (integridad).
"""
from typing import Any, Dict, Optional


class WorkflowError(Exception):
    """Error base de la ticketera"""

    code = "error"
    status_code = 400
    category = "client"
    default_message = "Solicitud inválida"

    def __init__(self, message: Optional[str] = None, **context: Any):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "detail": self.message}


# ---------------------------------------------------------------------------
# Entrada del cliente
# ---------------------------------------------------------------------------

class InvalidRequest(WorkflowError):
    code = "invalid_request"
    status_code = 400


class NotFoundError(WorkflowError):
    code = "not_found"
    status_code = 404
    default_message = "Recurso no encontrado"


class EventNotFound(NotFoundError):
    code = "event_not_found"
    default_message = "Evento no encontrado"


class TicketTypeNotFound(NotFoundError):
    code = "ticket_type_not_found"
    default_message = "Tipo de ticket no encontrado para este evento"


class TicketNotFound(NotFoundError):
    code = "ticket_not_found"
    default_message = "Ticket no encontrado"


class SessionNotFound(NotFoundError):
    code = "session_not_found"
    default_message = "Sesión de pago no encontrada"


class UserNotFound(NotFoundError):
    code = "user_not_found"
    default_message = "Usuario no encontrado"


class RegistrationNotFound(NotFoundError):
    code = "registration_not_found"
    default_message = "Registro no encontrado"


# ---------------------------------------------------------------------------
# Permisos
# ---------------------------------------------------------------------------

class PermissionDenied(WorkflowError):
    code = "forbidden"
    status_code = 403
    category = "permission"
    default_message = "No tienes permisos para esta operación"


class NotOwner(PermissionDenied):
    code = "not_owner"
    default_message = "El ticket no pertenece al usuario"


# ---------------------------------------------------------------------------
# Conflictos de estado
# ---------------------------------------------------------------------------

class StateConflict(WorkflowError):
    code = "conflict"
    status_code = 409
    category = "conflict"


class OutOfStock(StateConflict):
    code = "out_of_stock"
    default_message = "No hay suficientes tickets disponibles"


class EventNotApproved(StateConflict):
    code = "event_not_approved"
    default_message = "El evento no está aprobado para la venta"


class NotCancellable(StateConflict):
    code = "not_cancellable"
    default_message = "Solo se pueden cancelar tickets reservados"


class NotTransferable(StateConflict):
    code = "not_transferable"
    default_message = "Solo se pueden transferir tickets reservados"


class CheckoutNotCancellable(StateConflict):
    code = "checkout_not_cancellable"
    default_message = "El checkout ya fue cerrado"


class InvalidModeration(StateConflict):
    code = "invalid_moderation"
    default_message = "Solo se pueden moderar eventos pendientes"


class EventNotEditable(StateConflict):
    code = "event_not_editable"
    default_message = "Solo se pueden editar eventos pendientes"


class PaymentNotCompleted(StateConflict):
    code = "payment_not_completed"
    status_code = 402
    default_message = "El pago no fue completado"


# ---------------------------------------------------------------------------
# Colaboradores externos (transitorios: reintentar)
# ---------------------------------------------------------------------------

class TransientError(WorkflowError):
    code = "temporarily_unavailable"
    status_code = 503
    category = "transient"
    default_message = "Servicio temporalmente no disponible, intenta nuevamente"


class PaymentOutcomeUnknown(TransientError):
    code = "payment_outcome_unknown"
    default_message = "No se pudo verificar el estado del pago, intenta nuevamente"


class PaymentProviderUnavailable(TransientError):
    code = "payment_provider_unavailable"
    default_message = "El proveedor de pagos no está disponible, intenta nuevamente"


# ---------------------------------------------------------------------------
# Integridad (nunca se expone el detalle al cliente)
# ---------------------------------------------------------------------------

class IntegrityFault(WorkflowError):
    code = "internal_error"
    status_code = 500
    category = "integrity"
    default_message = "Error interno de inventario"

    def to_dict(self) -> Dict[str, Any]:
        return {"error": "internal_error", "detail": "Error interno"}


class InventoryIntegrityError(IntegrityFault):
    pass


class ReservationNotFound(IntegrityFault):
    default_message = "Reserva de inventario inexistente"
