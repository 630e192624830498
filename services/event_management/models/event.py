"""Modelos Pydantic para eventos"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from uuid import UUID


class TicketTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=80)
    price: Decimal = Field(..., ge=0)
    quantity: int = Field(..., gt=0)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("El nombre del tipo de ticket no puede estar vacío")
        return value


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    location: Optional[str] = None
    category: str = "otro"
    starts_at: datetime
    ticket_types: List[TicketTypeCreate] = Field(..., min_length=1)


class TicketTypeUpdate(BaseModel):
    """Cambio de un tipo de ticket; un nombre nuevo agrega el tipo"""
    name: str = Field(..., min_length=1, max_length=80)
    price: Optional[Decimal] = Field(None, ge=0)
    quantity: Optional[int] = Field(None, gt=0)  # Nueva capacidad total

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("El nombre del tipo de ticket no puede estar vacío")
        return value


class EventUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    location: Optional[str] = None
    category: Optional[str] = None
    starts_at: Optional[datetime] = None
    ticket_types: Optional[List[TicketTypeUpdate]] = None


class EventReject(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class TicketTypeResponse(BaseModel):
    """Modelo de respuesta para tipos de ticket"""
    id: UUID
    name: str
    price: Decimal
    quantity_total: int
    quantity_available: int

    class Config:
        from_attributes = True


class EventResponse(BaseModel):
    id: UUID
    organizer_id: UUID
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    category: str
    starts_at: datetime
    status: str
    rejection_reason: Optional[str] = None
    ticket_types: List[TicketTypeResponse] = []
    created_at: datetime

    class Config:
        from_attributes = True
