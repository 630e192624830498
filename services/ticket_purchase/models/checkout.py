"""Modelos Pydantic para checkout, tickets y registros"""
from pydantic import BaseModel, EmailStr, Field, StrictInt
from typing import Optional, List
from uuid import UUID
from datetime import datetime
from decimal import Decimal


class CheckoutRequest(BaseModel):
    event_id: UUID
    ticket_type: str = Field(..., min_length=1)  # Nombre (General, VIP) o ID del tipo de ticket
    quantity: StrictInt


class ConfirmCheckoutRequest(BaseModel):
    session_id: str = Field(..., min_length=1)


class CheckoutResponse(BaseModel):
    checkout_id: str
    session_id: Optional[str] = None
    redirect_url: Optional[str] = None
    status: str
    ticket_id: Optional[str] = None
    quantity: int
    amount: Decimal
    currency: str
    expires_at: Optional[datetime] = None


class ConfirmationResponse(BaseModel):
    checkout_id: str
    session_id: Optional[str] = None
    status: str
    event_id: str
    ticket_id: str
    registration_id: Optional[str] = None
    payment_id: Optional[str] = None
    quantity: int
    amount: Decimal
    currency: str
    confirmed_at: Optional[datetime] = None


class TransferRequest(BaseModel):
    recipient_email: EmailStr


class TicketActionResponse(BaseModel):
    ticket_id: str
    status: str
    released_quantity: Optional[int] = None
    owner_id: Optional[str] = None
    registration_id: Optional[str] = None


class TicketResponse(BaseModel):
    id: UUID
    event_id: UUID
    ticket_type_id: UUID
    ticket_type_name: str
    user_id: UUID
    registration_id: Optional[UUID] = None
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    status: str
    booked_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class RegistrationResponse(BaseModel):
    id: UUID
    user_id: UUID
    event_id: UUID
    payment_id: Optional[UUID] = None
    tickets: List[TicketResponse] = []
    created_at: datetime

    class Config:
        from_attributes = True


class ExpirySweepResponse(BaseModel):
    examined: int
    expired: int
    confirmed: int
    skipped: int
