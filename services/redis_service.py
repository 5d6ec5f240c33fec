# services/redis_service.py
"""
Camada de cache/armazenamento efêmero sobre Redis (redis.asyncio).

Valores são serializados em JSON. Falhas de Redis são logadas e tratadas
como cache miss (get -> None, escrita -> False): nenhuma rota que possa ser
atendida pelo banco falha por indisponibilidade do Redis.

Chaves usadas no NPJ:
- processes:{user_id}:{filtros}       lista de processos (5 min)
- user:{user_id}                      dados do usuário (30 min)
- dashboard_stats:{user_id}:{filtros} estatísticas do dashboard (10 min)
- user_permissions:{user_id}          permissões efetivas (1 h)
- notifications:{user_id}             lista de notificações (24 h)
- user_notification_settings:{id}     preferências de notificação
- chat_room:{id}, chat_message:{id}, chat_room_messages:{room}, chat_rooms_index
"""

import json
import logging
from typing import Any, List, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from config import (
    REDIS_URL, REDIS_MAX_CONNECTIONS, CACHE_DEFAULT_TTL,
    CACHE_PROCESSES_TTL, CACHE_USER_TTL
)

logger = logging.getLogger(__name__)


class RedisService:
    """
    Cliente Redis compartilhado pela aplicação.

    Uso:
        from services.redis_service import redis_service

        await redis_service.set("chave", {"a": 1}, expire_seconds=60)
        valor = await redis_service.get("chave")
    """

    def __init__(self):
        self.client: Optional[redis.Redis] = None
        self.hits = 0
        self.misses = 0

    # ==========================================
    # Conexão
    # ==========================================

    async def connect(self, url: str = REDIS_URL) -> bool:
        """Abre o pool de conexões. Retorna False se o Redis estiver indisponível."""
        if self.client is not None:
            return True
        try:
            pool = redis.ConnectionPool.from_url(
                url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_keepalive=True,
                max_connections=REDIS_MAX_CONNECTIONS,
            )
            self.client = redis.Redis(connection_pool=pool)
            await self.client.ping()
            logger.info(f"Conectado ao Redis em {url}")
            return True
        except (RedisError, OSError) as e:
            logger.error(f"Não foi possível conectar ao Redis: {e}")
            self.client = None
            return False

    async def disconnect(self):
        """Fecha o pool de conexões."""
        if self.client is None:
            return
        try:
            await self.client.aclose()
        except RedisError as e:
            logger.error(f"Erro ao fechar conexão Redis: {e}")
        finally:
            self.client = None

    def use_client(self, client: redis.Redis):
        """Injeta um cliente já criado (testes, workers)."""
        self.client = client
        self.hits = 0
        self.misses = 0

    async def ping(self) -> bool:
        if self.client is None:
            return False
        try:
            return bool(await self.client.ping())
        except RedisError:
            return False

    # ==========================================
    # Operações básicas (JSON)
    # ==========================================

    async def get(self, key: str) -> Optional[Any]:
        if self.client is None:
            self.misses += 1
            return None
        try:
            raw = await self.client.get(key)
        except RedisError as e:
            logger.error(f"Erro ao ler chave {key} no Redis: {e}")
            self.misses += 1
            return None

        if raw is None:
            self.misses += 1
            return None

        self.hits += 1
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            return raw

    async def set(self, key: str, value: Any, expire_seconds: int = CACHE_DEFAULT_TTL) -> bool:
        if self.client is None:
            return False
        try:
            payload = json.dumps(value, ensure_ascii=False, default=str)
            await self.client.setex(key, max(1, int(expire_seconds)), payload)
            return True
        except RedisError as e:
            logger.error(f"Erro ao gravar chave {key} no Redis: {e}")
            return False

    async def delete(self, *keys: str) -> int:
        if self.client is None or not keys:
            return 0
        try:
            return await self.client.delete(*keys)
        except RedisError as e:
            logger.error(f"Erro ao remover chaves {keys} do Redis: {e}")
            return 0

    async def exists(self, key: str) -> bool:
        if self.client is None:
            return False
        try:
            return bool(await self.client.exists(key))
        except RedisError as e:
            logger.error(f"Erro ao verificar chave {key} no Redis: {e}")
            return False

    async def ttl(self, key: str) -> int:
        """TTL restante em segundos (-2 se a chave não existe)."""
        if self.client is None:
            return -2
        try:
            return await self.client.ttl(key)
        except RedisError:
            return -2

    async def keys(self, pattern: str) -> List[str]:
        """Lista chaves por padrão usando SCAN (não bloqueia o servidor)."""
        if self.client is None:
            return []
        try:
            return [key async for key in self.client.scan_iter(match=pattern, count=500)]
        except RedisError as e:
            logger.error(f"Erro ao listar chaves {pattern} no Redis: {e}")
            return []

    async def delete_pattern(self, pattern: str) -> int:
        """Remove todas as chaves que casam com o padrão. Retorna quantas foram removidas."""
        keys = await self.keys(pattern)
        if not keys:
            return 0
        return await self.delete(*keys)

    async def flush_all(self) -> bool:
        if self.client is None:
            return False
        try:
            await self.client.flushdb()
            return True
        except RedisError as e:
            logger.error(f"Erro ao limpar Redis: {e}")
            return False

    def cache_hit_rate(self) -> float:
        """Taxa de acerto do cache (%) desde o início do processo."""
        total = self.hits + self.misses
        return round(self.hits / total * 100, 1) if total else 0.0

    # ==========================================
    # Helpers de domínio
    # ==========================================

    @staticmethod
    def _filters_key(filters: dict) -> str:
        return json.dumps(filters or {}, sort_keys=True, ensure_ascii=False, default=str)

    async def get_cached_processes(self, user_id: int, filters: dict) -> Optional[Any]:
        return await self.get(f"processes:{user_id}:{self._filters_key(filters)}")

    async def set_cached_processes(self, user_id: int, filters: dict, data: Any) -> bool:
        return await self.set(f"processes:{user_id}:{self._filters_key(filters)}", data, CACHE_PROCESSES_TTL)

    async def invalidate_processes_cache(self) -> int:
        return await self.delete_pattern("processes:*")

    async def get_cached_user(self, user_id: int) -> Optional[Any]:
        return await self.get(f"user:{user_id}")

    async def set_cached_user(self, user_id: int, data: Any) -> bool:
        return await self.set(f"user:{user_id}", data, CACHE_USER_TTL)

    async def invalidate_user_cache(self, user_id: int) -> int:
        """Remove as chaves de cache derivadas do usuário (dados, listas, dashboard, permissões)."""
        removidas = await self.delete(f"user:{user_id}", f"user_permissions:{user_id}")
        removidas += await self.delete_pattern(f"processes:{user_id}:*")
        removidas += await self.delete_pattern(f"dashboard_stats:{user_id}:*")
        return removidas


redis_service = RedisService()


def get_redis_service() -> RedisService:
    """Dependency FastAPI para o serviço Redis."""
    return redis_service
