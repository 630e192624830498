"""Modelos SQLAlchemy de la ticketera"""
from datetime import datetime, timezone
import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from shared.database.connection import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role:
    USER = "user"
    ORGANIZER = "organizer"
    ADMIN = "admin"


class EventStatus:
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReservationStatus:
    HELD = "held"
    COMMITTED = "committed"
    RELEASED = "released"


class TicketStatus:
    PENDING = "pending"
    BOOKED = "booked"
    CANCELLED = "cancelled"


class PaymentStatus:
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"
    REFUND_PENDING = "refund_pending"  # Pago aprobado sin stock, requiere reembolso manual


class CheckoutStatus:
    REQUESTED = "requested"
    RESERVED = "reserved"
    AWAITING_PAYMENT = "awaiting_payment"
    CONFIRMED = "confirmed"
    EXPIRED = "expired"
    FAILED = "failed"
    CANCELLED = "cancelled"

    OPEN = (RESERVED, AWAITING_PAYMENT)
    TERMINAL = (CONFIRMED, EXPIRED, FAILED, CANCELLED)


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, nullable=True, index=True)  # Viene del token, puede faltar
    name = Column(String, nullable=True)
    role = Column(String, nullable=False, default=Role.USER)  # user, organizer, admin
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Event(Base):
    __tablename__ = "events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organizer_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String, nullable=True)
    category = Column(String, nullable=False, default="otro")
    starts_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(String, nullable=False, default=EventStatus.PENDING, index=True)  # pending, approved, rejected
    rejection_reason = Column(String, nullable=True)
    moderated_by = Column(Uuid, ForeignKey("users.id"), nullable=True)
    moderated_at = Column(DateTime(timezone=True), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)  # Borrado lógico
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relaciones
    ticket_types = relationship(
        "TicketType",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="TicketType.position",
    )


class TicketType(Base):
    __tablename__ = "ticket_types"
    __table_args__ = (
        UniqueConstraint("event_id", "name", name="uq_ticket_types_event_name"),
        CheckConstraint("price >= 0", name="ck_ticket_types_price_positive"),
        CheckConstraint("quantity_available >= 0", name="ck_ticket_types_available_non_negative"),
        CheckConstraint("quantity_available <= quantity_total", name="ck_ticket_types_available_le_total"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id = Column(Uuid, ForeignKey("events.id"), nullable=False, index=True)
    name = Column(String, nullable=False)  # General, VIP, ...
    price = Column(Numeric(12, 2), nullable=False)
    quantity_total = Column(Integer, nullable=False)
    quantity_available = Column(Integer, nullable=False)  # Solo lo modifica InventoryService
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relaciones
    event = relationship("Event", back_populates="ticket_types")


class InventoryReservation(Base):
    __tablename__ = "inventory_reservations"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_inventory_reservations_quantity_positive"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id = Column(Uuid, ForeignKey("events.id"), nullable=False)
    ticket_type_id = Column(Uuid, ForeignKey("ticket_types.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default=ReservationStatus.HELD)  # held, committed, released
    reason = Column(String, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    committed_at = Column(DateTime(timezone=True), nullable=True)
    released_at = Column(DateTime(timezone=True), nullable=True)


class CapacityLog(Base):
    __tablename__ = "capacity_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id = Column(Uuid, ForeignKey("events.id"), nullable=False)
    ticket_type_id = Column(Uuid, ForeignKey("ticket_types.id"), nullable=False)
    reservation_id = Column(Uuid, ForeignKey("inventory_reservations.id"), nullable=True)
    delta = Column(Integer, nullable=False)
    reason = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Registration(Base):
    __tablename__ = "registrations"
    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_registrations_user_event"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Uuid, ForeignKey("events.id"), nullable=False, index=True)
    payment_id = Column(Uuid, ForeignKey("payments.id", use_alter=True), nullable=True)  # Último pago que la extendió
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relaciones
    tickets = relationship("Ticket", back_populates="registration", order_by="Ticket.created_at")


class Ticket(Base):
    __tablename__ = "tickets"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_tickets_quantity_positive"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id = Column(Uuid, ForeignKey("events.id"), nullable=False, index=True)
    ticket_type_id = Column(Uuid, ForeignKey("ticket_types.id"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)  # Dueño actual
    registration_id = Column(Uuid, ForeignKey("registrations.id"), nullable=True, index=True)
    reservation_id = Column(Uuid, ForeignKey("inventory_reservations.id"), nullable=False)
    ticket_type_name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)  # Precio al momento del checkout
    total_price = Column(Numeric(12, 2), nullable=False)
    status = Column(String, nullable=False, default=TicketStatus.PENDING)  # pending, booked, cancelled
    booked_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relaciones
    registration = relationship("Registration", back_populates="tickets")


class TicketTransfer(Base):
    __tablename__ = "ticket_transfers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    ticket_id = Column(Uuid, ForeignKey("tickets.id"), nullable=False, index=True)
    from_user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    to_user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    checkout_id = Column(Uuid, ForeignKey("checkout_sessions.id"), nullable=False, unique=True)
    ticket_id = Column(Uuid, ForeignKey("tickets.id"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    provider = Column(String, nullable=False)
    provider_payment_id = Column(String, nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String, nullable=False)
    status = Column(String, nullable=False, default=PaymentStatus.PENDING)  # pending, succeeded, failed, refunded, refund_pending
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class CheckoutSession(Base):
    __tablename__ = "checkout_sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Uuid, ForeignKey("events.id"), nullable=False)
    ticket_type_id = Column(Uuid, ForeignKey("ticket_types.id"), nullable=False)
    ticket_id = Column(Uuid, ForeignKey("tickets.id"), nullable=True)
    reservation_id = Column(Uuid, ForeignKey("inventory_reservations.id"), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String, nullable=False)
    provider = Column(String, nullable=False)
    provider_session_id = Column(String, unique=True, nullable=True, index=True)  # Handle de la sesión del proveedor
    redirect_url = Column(String, nullable=True)
    status = Column(String, nullable=False, default=CheckoutStatus.REQUESTED, index=True)
    failure_reason = Column(String, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    registration_id = Column(Uuid, ForeignKey("registrations.id"), nullable=True)
    payment_id = Column(Uuid, ForeignKey("payments.id", use_alter=True), nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
