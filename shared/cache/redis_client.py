"""Cliente Redis para cache y locks distribuidos"""
import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError
import json
from typing import Optional, Any
import asyncio
import logging
import uuid

from app.core.config import settings

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None
redis_pool: Optional[ConnectionPool] = None


class LockNotAcquired(Exception):
    """No se pudo adquirir el lock distribuido dentro del timeout"""


async def init_redis():
    """Inicializar conexión a Redis con pool de conexiones"""
    global redis_client, redis_pool

    redis_pool = ConnectionPool.from_url(
        settings.REDIS_URL,
        max_connections=20,
        decode_responses=True,
        socket_connect_timeout=5,
        socket_keepalive=True,
        retry_on_timeout=True,
        health_check_interval=30,
    )

    redis_client = redis.Redis(connection_pool=redis_pool)

    try:
        await redis_client.ping()
        logger.info("Redis conectado exitosamente")
    except (RedisError, OSError) as e:
        logger.error(f"Error conectando a Redis: {e}")


async def get_redis() -> redis.Redis:
    """Obtener cliente Redis"""
    if redis_client is None:
        await init_redis()
    return redis_client


async def close_redis():
    """Cerrar conexión a Redis y pool"""
    global redis_client, redis_pool
    if redis_client:
        await redis_client.aclose()
        redis_client = None
    if redis_pool:
        await redis_pool.disconnect()
        redis_pool = None
    logger.info("Redis desconectado")


class DistributedLock:
    """Lock distribuido usando Redis"""

    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    def __init__(self, key: str, timeout: float = 10, expire: int = 30):
        self.key = f"lock:{key}"
        self.timeout = timeout
        self.expire = expire
        self.identifier = None

    async def acquire(self) -> bool:
        """Adquirir lock (espera hasta `timeout` segundos)"""
        redis_conn = await get_redis()
        self.identifier = str(uuid.uuid4())

        loop = asyncio.get_running_loop()
        end_time = loop.time() + self.timeout
        while True:
            if await redis_conn.set(self.key, self.identifier, nx=True, ex=self.expire):
                return True
            if loop.time() >= end_time:
                return False
            await asyncio.sleep(0.1)

    async def release(self):
        """Liberar lock (solo el dueño puede liberarlo)"""
        if not self.identifier:
            return

        redis_conn = await get_redis()
        await redis_conn.eval(self.RELEASE_SCRIPT, 1, self.key, self.identifier)
        self.identifier = None

    async def __aenter__(self):
        if not await self.acquire():
            raise LockNotAcquired(f"No se pudo adquirir lock: {self.key}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.release()


async def cache_get(key: str) -> Optional[Any]:
    """Obtener valor del cache (None si no existe o Redis no responde)"""
    try:
        redis_conn = await get_redis()
        value = await redis_conn.get(key)
    except (RedisError, OSError) as e:
        logger.warning(f"Cache no disponible leyendo {key}: {e}")
        return None
    if value:
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return None


async def cache_set(key: str, value: Any, expire: int = 3600):
    """Guardar valor en cache"""
    if isinstance(value, (dict, list)):
        value = json.dumps(value, default=str)
    try:
        redis_conn = await get_redis()
        await redis_conn.setex(key, expire, value)
    except (RedisError, OSError) as e:
        logger.warning(f"Cache no disponible escribiendo {key}: {e}")


async def cache_delete_pattern(pattern: str) -> int:
    """Eliminar del cache todas las claves que coinciden con `pattern`"""
    deleted = 0
    try:
        redis_conn = await get_redis()
        async for key in redis_conn.scan_iter(match=pattern, count=100):
            deleted += await redis_conn.delete(key)
    except (RedisError, OSError) as e:
        logger.warning(f"Cache no disponible invalidando {pattern}: {e}")
    return deleted
