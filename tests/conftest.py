"""
Fixtures compartidos de los tests

Cada test usa una base SQLite en archivo propio (aiosqlite) con
`BEGIN IMMEDIATE`, así las transacciones concurrentes se serializan igual
que las filas bloqueadas por los UPDATE condicionales en PostgreSQL.
"""
import os

# Configuración antes de importar la app (Settings se lee al importar)
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test-unused.db")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["RATE_LIMIT_STORAGE_URI"] = "memory://"
os.environ["EVENTS_CACHE_TTL_SECONDS"] = "0"
os.environ["RESEND_API_KEY"] = ""
os.environ["MERCADOPAGO_ACCESS_TOKEN"] = ""
os.environ["MERCADOPAGO_WEBHOOK_SECRET"] = ""
os.environ["API_BASE_URL"] = ""
os.environ["JWT_SECRET"] = "test-secret"

from datetime import timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
import uuid

import httpx
import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from shared.database.connection import Base, get_db
from shared.database.models import Event, EventStatus, Role, TicketType, User, utcnow
from shared.auth.jwt_handler import create_access_token
from shared.errors import PaymentProviderUnavailable
from services.notifications.services.email_service import EmailService
from services.ticket_purchase.services.checkout_service import CheckoutService, get_checkout_service
from services.ticket_purchase.services.payment_gateway import (
    CheckoutSessionHandle,
    OutcomeStatus,
    PaymentGateway,
    PaymentOutcome,
)


class FakeGateway(PaymentGateway):
    """Proveedor de pagos en memoria; los tests deciden el resultado de cada sesión"""

    name = "fake"

    def __init__(self):
        self.sessions: Dict[str, Dict] = {}
        self.outcomes: Dict[str, PaymentOutcome] = {}
        self.open_calls = 0
        self.outcome_calls = 0
        self.fail_open = False
        self.signature_valid = True

    async def open_session(
        self,
        reference,
        amount,
        currency,
        description,
        quantity,
        success_url,
        cancel_url,
        expires_at=None,
        metadata=None,
        payer_email=None,
    ) -> CheckoutSessionHandle:
        self.open_calls += 1
        if self.fail_open:
            raise PaymentProviderUnavailable()

        session_id = f"sess_{len(self.sessions) + 1}"
        self.sessions[session_id] = {
            "reference": reference,
            "amount": amount,
            "currency": currency,
            "quantity": quantity,
        }
        self.outcomes[session_id] = PaymentOutcome(status=OutcomeStatus.PENDING)
        return CheckoutSessionHandle(
            session_id=session_id,
            redirect_url=f"https://pay.example.com/{session_id}",
            expires_at=expires_at,
        )

    async def retrieve_outcome(self, session_id: str) -> PaymentOutcome:
        self.outcome_calls += 1
        return self.outcomes.get(session_id, PaymentOutcome(status=OutcomeStatus.UNKNOWN))

    async def resolve_notification(self, payload, query_params) -> Optional[str]:
        return payload.get("reference")

    def verify_notification(self, payload, signature, request_id, query_params) -> bool:
        return self.signature_valid

    def pay(self, session_id: str):
        self.outcomes[session_id] = PaymentOutcome(
            status=OutcomeStatus.PAID,
            payment_reference=f"pay_{session_id}",
            amount=self.sessions[session_id]["amount"],
        )

    def set_outcome(self, session_id: str, status: OutcomeStatus, expired: bool = False):
        self.outcomes[session_id] = PaymentOutcome(status=status, expired=expired)


class FakeNotifier(EmailService):
    """Notificador que guarda los emails en memoria"""

    def __init__(self, fail: bool = False):
        self.sent: List[Tuple[str, str, str]] = []
        self.fail = fail

    async def send(self, to: str, subject: str, body: str) -> bool:
        if self.fail:
            raise RuntimeError("smtp caído")
        self.sent.append((to, subject, body))
        return True


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ticketera.db'}",
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    import shared.database.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture(autouse=True)
def invalidated_cache_patterns(monkeypatch):
    """Los tests no dependen de Redis: se registran las invalidaciones del catálogo"""
    patterns = []

    async def record(pattern: str) -> int:
        patterns.append(pattern)
        return 0

    monkeypatch.setattr("services.admin.services.admin_events_service.cache_delete_pattern", record)
    monkeypatch.setattr("services.event_management.services.event_service.cache_delete_pattern", record)
    return patterns


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def service(gateway, notifier):
    return CheckoutService(gateway=gateway, notifier=notifier)


async def create_user(session_maker, email: str, role: str = Role.USER) -> User:
    async with session_maker() as db:
        user = User(id=uuid.uuid4(), email=email, name=email.split("@")[0], role=role)
        db.add(user)
        await db.commit()
        return user


async def create_event(
    session_maker,
    organizer_id: uuid.UUID,
    title: str = "Conf2025",
    status: str = EventStatus.APPROVED,
    ticket_types: Optional[List[Tuple[str, str, int]]] = None,
) -> Tuple[Event, Dict[str, TicketType]]:
    """Crear un evento con sus tipos de ticket (nombre, precio, capacidad)"""
    ticket_types = ticket_types or [("General", "10000", 10), ("VIP", "25000", 2)]
    async with session_maker() as db:
        event = Event(
            id=uuid.uuid4(),
            organizer_id=organizer_id,
            title=title,
            category="tecnologia",
            starts_at=utcnow() + timedelta(days=30),
            status=status,
        )
        db.add(event)
        types = {}
        for position, (name, price, capacity) in enumerate(ticket_types):
            ticket_type = TicketType(
                id=uuid.uuid4(),
                event_id=event.id,
                name=name,
                price=Decimal(price),
                quantity_total=capacity,
                quantity_available=capacity,
                position=position,
            )
            db.add(ticket_type)
            types[name] = ticket_type
        await db.commit()
        return event, types


def auth_token(user: User) -> Dict[str, str]:
    token = create_access_token({"sub": str(user.id), "email": user.email, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(session_maker):
    async def factory(email: str, role: str = Role.USER) -> User:
        return await create_user(session_maker, email, role)
    return factory


@pytest.fixture
def make_event(session_maker):
    async def factory(organizer_id: uuid.UUID, **kwargs) -> Tuple[Event, Dict[str, TicketType]]:
        return await create_event(session_maker, organizer_id, **kwargs)
    return factory


@pytest.fixture
def auth_headers():
    return auth_token


@pytest.fixture
async def organizer(session_maker):
    return await create_user(session_maker, "organizadora@example.com", Role.ORGANIZER)


@pytest.fixture
async def buyer(session_maker):
    return await create_user(session_maker, "compradora@example.com")


@pytest.fixture
async def other_buyer(session_maker):
    return await create_user(session_maker, "otra@example.com")


@pytest.fixture
async def admin(session_maker):
    return await create_user(session_maker, "admin@example.com", Role.ADMIN)


@pytest.fixture
async def conference(session_maker, organizer):
    """Evento aprobado Conf2025 con General (10) y VIP (2)"""
    return await create_event(session_maker, organizer.id)


@pytest.fixture
async def client(session_maker, service, notifier):
    from main import app
    from services.admin.routes.admin import get_admin_events_service
    from services.admin.services.admin_events_service import AdminEventsService

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_checkout_service] = lambda: service
    app.dependency_overrides[get_admin_events_service] = lambda: AdminEventsService(notifier=notifier)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client

    app.dependency_overrides.clear()
