# utils/rate_limit.py
# -*- coding: utf-8 -*-
"""
Rate Limiting para o Portal NPJ

SECURITY: Protege contra ataques de DoS e brute-force.

Limites padrão:
- Geral: 100 requests/minuto por IP
- Login: 5 tentativas/minuto por IP
- Exportação de relatórios: 3 requests/minuto por usuário

Uso:
    from utils.rate_limit import limiter, rate_limit_exceeded_handler

    # No main.py
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # Nos routers
    @router.post("/endpoint")
    @limiter.limit(LIMITS["login"])
    async def endpoint(request: Request):
        ...
"""

import os
import logging
from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ==================================================
# IDENTIFICAÇÃO DO CLIENTE
# ==================================================

def get_real_ip(request: Request) -> str:
    """
    Obtém IP real do cliente, considerando headers de proxy.

    Prioridade:
    1. X-Forwarded-For (primeiro IP da lista)
    2. X-Real-IP
    3. IP direto da conexão
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return get_remote_address(request)


def get_user_identifier(request: Request) -> str:
    """
    Obtém identificador do usuário para rate limiting.

    Se autenticado, usa user_id. Caso contrário, usa IP.
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        from auth.security import decode_token

        payload = decode_token(auth_header[7:])
        if payload and "user_id" in payload:
            return f"user:{payload['user_id']}"

    return f"ip:{get_real_ip(request)}"


# ==================================================
# LIMITER INSTANCE
# ==================================================

RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
RATE_LIMIT_DEFAULT = os.getenv("RATE_LIMIT_DEFAULT", "100/minute")
RATE_LIMIT_LOGIN = os.getenv("RATE_LIMIT_LOGIN", "5/minute")
RATE_LIMIT_EXPORT = os.getenv("RATE_LIMIT_EXPORT", "3/minute")

# Storage: memória por padrão, Redis em produção (ex: redis://localhost:6379/1)
RATE_LIMIT_STORAGE = os.getenv("RATE_LIMIT_STORAGE", "memory://")

limiter = Limiter(
    key_func=get_real_ip,
    default_limits=[RATE_LIMIT_DEFAULT],
    enabled=RATE_LIMIT_ENABLED,
    storage_uri=RATE_LIMIT_STORAGE,
)


# ==================================================
# HANDLERS
# ==================================================

async def rate_limit_exceeded_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handler customizado para rate limit excedido.

    Retorna resposta JSON amigável em português.
    """
    exc_detail = getattr(exc, 'detail', str(exc))

    logger.warning(
        f"Rate limit excedido: {get_real_ip(request)} - {request.url.path} - {exc_detail}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "detail": "Limite de requisições excedido. Tente novamente em alguns minutos.",
            "error": "rate_limit_exceeded",
            "retry_after": "60"
        },
        headers={
            "Retry-After": "60",
            "X-RateLimit-Limit": RATE_LIMIT_DEFAULT,
        }
    )


# ==================================================
# CONSTANTES PARA USO DIRETO
# ==================================================

LIMITS = {
    "login": RATE_LIMIT_LOGIN,            # 5/minute
    "default": RATE_LIMIT_DEFAULT,        # 100/minute
    "export": RATE_LIMIT_EXPORT,          # Exportação de relatórios
}
