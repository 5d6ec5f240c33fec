# services/__init__.py
"""
Serviços compartilhados do Portal NPJ (Redis, WebSocket, e-mail, agendador).
"""

from services.redis_service import RedisService, redis_service, get_redis_service
from services.realtime import ConnectionManager, manager
from services.scheduler import Scheduler, scheduler
from services.email_service import send_email

__all__ = [
    "RedisService",
    "redis_service",
    "get_redis_service",
    "ConnectionManager",
    "manager",
    "Scheduler",
    "scheduler",
    "send_email",
]
