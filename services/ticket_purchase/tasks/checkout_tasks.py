"""Tareas periódicas del checkout"""
from typing import Dict
import logging
import asyncio

from shared.cache.celery_app import celery_app
from shared.cache.redis_client import DistributedLock, LockNotAcquired, close_redis
from shared.database import connection
from shared.database.session import session_scope

logger = logging.getLogger(__name__)

SWEEP_LOCK_KEY = "checkout:expiry-sweep"


def run_async(coro):
    """Helper para ejecutar coroutines en contexto síncrono de Celery"""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def sweep_expired_checkouts(service=None) -> Dict:
    """
    Expirar checkouts vencidos, con un lock distribuido para que dos
    workers no barran al mismo tiempo.
    """
    from services.ticket_purchase.services.checkout_service import CheckoutService

    service = service or CheckoutService()
    try:
        async with DistributedLock(SWEEP_LOCK_KEY, timeout=0, expire=300):
            async with session_scope() as db:
                return await service.expire_stale_checkouts(db)
    except LockNotAcquired:
        logger.info("[CELERY] Otro worker está barriendo checkouts, se omite esta ejecución")
        return {"status": "locked"}


@celery_app.task(
    name="expire_stale_checkouts",
    bind=True,
    autoretry_for=(OSError,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def expire_stale_checkouts_task(self):
    """
    Tarea Celery (beat) que libera el inventario de checkouts vencidos
    """
    async def run():
        try:
            return await sweep_expired_checkouts()
        finally:
            # Cada ejecución usa un event loop nuevo: no reutilizar conexiones
            await connection.close_db()
            await close_redis()

    summary = run_async(run())
    logger.info(f"[CELERY] Barrido de checkouts: {summary}")
    return summary
