"""API principal - Punto de entrada de la aplicación"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
import logging
from contextlib import asynccontextmanager

from app.core.config import settings
from shared.database import connection
from shared.cache.redis_client import init_redis, close_redis, get_redis
from shared.errors import WorkflowError
from shared.utils.rate_limiter import limiter, rate_limit_exceeded_handler

# Configurar logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle events de la aplicación"""
    logger.info("Iniciando aplicación...")
    await connection.init_db()
    if settings.DB_CREATE_SCHEMA:
        await connection.create_schema()
    await init_redis()
    logger.info("Aplicación iniciada")
    yield
    logger.info("Cerrando aplicación...")
    await connection.close_db()
    await close_redis()
    logger.info("Aplicación cerrada")


app = FastAPI(
    title=settings.APP_NAME,
    description="Backend API para venta de tickets con checkout y confirmación de pago",
    version="1.0.0",
    lifespan=lifespan
)

# CORS primero (antes de rate limiting)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    max_age=3600,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    """Errores de dominio → respuesta JSON con código estable"""
    if exc.category == "integrity":
        logger.error(f"Error de integridad en {request.url.path}: {exc.message} {exc.context}", exc_info=exc)
    elif exc.category == "transient":
        logger.warning(f"Error transitorio en {request.url.path}: {exc.code}")
    headers = {"Retry-After": "5"} if exc.category == "transient" else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


from services.ticket_purchase.routes.checkout import router as checkout_router
from services.ticket_purchase.routes.tickets import router as tickets_router
from services.ticket_purchase.routes.registrations import router as registrations_router
from services.event_management.routes.events import router as events_router
from services.admin.routes.admin import router as admin_router

app.include_router(checkout_router, prefix="/api/v1/checkout", tags=["checkout"])
app.include_router(tickets_router, prefix="/api/v1/tickets", tags=["tickets"])
app.include_router(registrations_router, prefix="/api/v1/registrations", tags=["registrations"])
app.include_router(events_router, prefix="/api/v1/events", tags=["events"])
app.include_router(admin_router, prefix="/api/v1/admin", tags=["admin"])


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "ok", "service": "ticketera-api"}


@app.get("/ready")
async def ready():
    """Ready check endpoint - verifica conexiones"""
    if connection.async_session_maker is None:
        return JSONResponse(status_code=503, content={"status": "not ready", "error": "database not initialized"})

    try:
        async with connection.async_session_maker() as session:
            await session.execute(text("SELECT 1"))

        redis = await get_redis()
        await redis.ping()
    except (SQLAlchemyError, RedisError, OSError) as e:
        logger.error(f"Ready check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "not ready", "error": str(e)})

    return {"status": "ready", "database": "connected", "redis": "connected"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.APP_DEBUG
    )
