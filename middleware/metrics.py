"""
Middleware de métricas e log de requests HTTP.

Para cada request:
- Registra contagem/latência em utils.metrics
- Emite uma linha de log com método, caminho, status, duração, IP e usuário
  (warning para status >= 400)
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from utils.audit import get_client_ip
from utils.logging_config import get_logger
from utils.metrics import get_metrics

logger = get_logger("http.requests")

# Rotas a ignorar na coleta de métricas
IGNORED_ROUTES = (
    "/favicon.ico",
    "/metrics",
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
)


def _user_id_from_request(request: Request):
    """Extrai o user_id do token (header ou cookie), sem validar o usuário no banco."""
    from auth.security import decode_token

    token = None
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:]
    else:
        cookie = request.cookies.get("access_token")
        if cookie:
            token = cookie[7:] if cookie.startswith("Bearer ") else cookie

    if not token:
        return None
    payload = decode_token(token)
    return payload.get("user_id") if payload else None


class MetricsMiddleware(BaseHTTPMiddleware):
    """Coleta métricas e registra o log de cada request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = str(request.url.path)

        if path.startswith(IGNORED_ROUTES):
            return await call_next(request)

        metrics = get_metrics()
        metrics.start_request()
        start_time = time.perf_counter()
        status_code = 500  # Default para erros não tratados

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration = time.perf_counter() - start_time
            metrics.end_request()
            metrics.record_request(
                method=request.method,
                path=path,
                status_code=status_code,
                duration_seconds=duration,
            )

            log = logger.warning if status_code >= 400 else logger.info
            log(
                "HTTP request",
                method=request.method,
                url=path,
                status=status_code,
                duration_ms=round(duration * 1000, 2),
                ip=get_client_ip(request),
                user_agent=request.headers.get("User-Agent"),
                user_id=_user_id_from_request(request),
            )
