"""
Middleware para adicionar Request ID único a cada requisição.

- Gera UUID único para cada requisição (ou reaproveita o X-Request-ID recebido)
- Armazena em request.state e em um ContextVar
- Devolve o header X-Request-ID na response

Uso em outros módulos:
    from middleware.request_id import get_request_id

    request_id = get_request_id()  # ID da requisição atual ou None
"""

import uuid
import logging
from contextvars import ContextVar
from typing import Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from utils.logging_config import clear_log_context

REQUEST_ID_HEADER = "X-Request-ID"

_request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

logger = logging.getLogger(__name__)


def get_request_id() -> Optional[str]:
    """
    Retorna o Request ID da requisição atual.

    Retorna None se chamado fora do contexto de uma requisição.
    """
    return _request_id_ctx.get()


def set_request_id(request_id: Optional[str]) -> None:
    """Define o Request ID da requisição atual (uso interno do middleware)."""
    _request_id_ctx.set(request_id)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware FastAPI para gerenciamento de Request ID.

    Uso:
        app.add_middleware(RequestIDMiddleware)
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        existing_request_id = request.headers.get(REQUEST_ID_HEADER)
        # Limita tamanho de IDs externos
        request_id = existing_request_id[:64] if existing_request_id else str(uuid.uuid4())

        request.state.request_id = request_id
        set_request_id(request_id)
        clear_log_context()

        try:
            response: Response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        except Exception as e:
            logger.error(f"[{request_id}] Erro durante requisição: {e}")
            raise
        finally:
            set_request_id(None)
