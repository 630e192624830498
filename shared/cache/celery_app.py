"""
Configuración de Celery para tareas asíncronas
"""
from celery import Celery
from kombu import Queue, Exchange
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)

BROKER_URL = settings.CELERY_BROKER_URL or settings.REDIS_URL
RESULT_BACKEND = settings.CELERY_RESULT_BACKEND or settings.REDIS_URL

celery_app = Celery(
    "ticketera",
    broker=BROKER_URL,
    backend=RESULT_BACKEND,
    include=[
        "services.ticket_purchase.tasks.checkout_tasks",
    ]
)

default_exchange = Exchange("default", type="direct")
priority_exchange = Exchange("priority", type="direct")

celery_app.conf.task_queues = (
    # Alta prioridad: liberar inventario retenido
    Queue("high_priority", priority_exchange, routing_key="high"),
    Queue("default", default_exchange, routing_key="default"),
)

celery_app.conf.task_routes = {
    "expire_stale_checkouts": {"queue": "high_priority"},
}

celery_app.conf.beat_schedule = {
    "expire-stale-checkouts": {
        "task": "expire_stale_checkouts",
        "schedule": float(settings.CHECKOUT_SWEEP_INTERVAL_SECONDS),
    },
}

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    timezone="UTC",
    enable_utc=True,

    task_track_started=True,

    task_time_limit=5 * 60,
    task_soft_time_limit=4 * 60,

    # Solo 1 tarea por worker a la vez para repartir mejor la carga
    worker_prefetch_multiplier=1,

    broker_connection_retry_on_startup=True,

    # ACK late: confirmar tarea solo cuando termina
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    result_expires=3600,

    task_default_queue="default",
    task_default_exchange="default",
    task_default_routing_key="default",
)

logger.info(
    "Celery configurado - Broker: %s, barrido de checkouts cada %ss",
    BROKER_URL.split("@")[-1],
    settings.CHECKOUT_SWEEP_INTERVAL_SECONDS,
)
