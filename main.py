# main.py
"""
Portal NPJ - Aplicação FastAPI Principal

Unifica os módulos do Núcleo de Prática Jurídica:
- Processos e Agendamentos
- Tabelas Auxiliares
- Permissões e Auditoria
- Notificações e Chat (WebSocket)
- Analytics

Com autenticação centralizada via JWT.
"""

import json
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text

from config import CORS_ORIGINS, SCHEDULER_ENABLED, ENV
from database.connection import SessionLocal
from database.init_db import init_database
from middleware import RequestIDMiddleware, MetricsMiddleware
from services.realtime import manager
from services.redis_service import redis_service
from services.scheduler import scheduler
from utils.logging_config import setup_logging, get_logger
from utils.metrics import get_metrics
from utils.rate_limit import limiter, rate_limit_exceeded_handler

from auth.dependencies import authenticate_ws_token
from auth.router import router as auth_router
from users.router import router as users_router

# Import dos sistemas
from sistemas.permissoes import router as permissoes_router
from sistemas.tabelas_auxiliares import router as tabelas_router
from sistemas.processos import router as processos_router
from sistemas.agendamentos import router as agendamentos_router
from sistemas.notificacoes import router as notificacoes_router
from sistemas.chat import router as chat_router
from sistemas.analytics import router as analytics_router
from sistemas.agendamentos.services_lembretes import processar_lembretes
from sistemas.analytics.services import refresh_dashboard_cache
from sistemas.chat import eventos
from sistemas.notificacoes.services import cleanup_old_notifications, get_unread_notifications

logger = get_logger(__name__)


def registrar_tarefas():
    """Tarefas periódicas: lembretes, limpeza de notificações e cache do painel."""
    scheduler.add_job("lembretes", 60, processar_lembretes)
    scheduler.add_job("notificacoes_cleanup", 24 * 3600, cleanup_old_notifications)
    scheduler.add_job("dashboard_refresh", 300, refresh_dashboard_cache)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifecycle events da aplicação.
    Executa na inicialização e no shutdown.
    """
    # Startup
    setup_logging()
    print("🚀 Iniciando Portal NPJ...")
    init_database()

    if not await redis_service.connect():
        logger.warning("Redis indisponível; cache, notificações e chat operam degradados")

    if SCHEDULER_ENABLED:
        registrar_tarefas()
        scheduler.start()

    yield

    # Shutdown
    print("👋 Encerrando Portal NPJ...")
    if scheduler.running:
        await scheduler.stop()
    await redis_service.disconnect()


# Cria a aplicação FastAPI
app = FastAPI(
    title="Portal NPJ",
    description="Gestão de processos, agendamentos e comunicação do Núcleo de Prática Jurídica",
    version="1.0.0",
    lifespan=lifespan
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# Métricas e correlação de requests
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestIDMiddleware)

# Configuração de CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Erro não tratado",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Erro interno do servidor"}
    )


# ==================================================
# ROTAS DO PORTAL
# ==================================================

@app.get("/health")
async def health_check():
    """Health check para monitoramento (banco de dados e Redis)"""
    db_ok = True
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Health check do banco falhou", error=str(e))
        db_ok = False
    finally:
        db.close()

    redis_ok = await redis_service.ping()

    return JSONResponse(
        status_code=200 if db_ok else 503,
        content={
            "status": "ok" if db_ok and redis_ok else ("degraded" if db_ok else "unhealthy"),
            "service": "portal-npj",
            "environment": ENV,
            "database": "ok" if db_ok else "error",
            "redis": "ok" if redis_ok else "unavailable",
            "websocket_connections": len(manager.active_connections),
            "scheduler": scheduler.status() if scheduler.running else None,
        }
    )


@app.get("/metrics")
async def metrics(format: str = "json"):
    """Métricas de requests (JSON ou formato Prometheus)"""
    registry = get_metrics()
    if format == "prometheus":
        return PlainTextResponse(registry.get_prometheus_text())
    return registry.get_summary()


# ==================================================
# WEBSOCKET (notificações e chat)
# ==================================================

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = None):
    """
    Conexão em tempo real. Requer `?token=<jwt>`.

    Mensagens do cliente: {"event": "...", "data": {...}}
    """
    user = authenticate_ws_token(token)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    connection_id = await manager.connect(websocket, user)
    try:
        await manager.send(connection_id, "unread_notifications", await get_unread_notifications(user["id"]))
        while True:
            raw = await websocket.receive_text()
            try:
                payload = json.loads(raw)
            except ValueError:
                # dispatch responde "Evento desconhecido" e a conexão segue aberta
                payload = None
            await eventos.dispatch(connection_id, payload)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error("Erro na conexão WebSocket", user_id=user["id"], error=str(e))
    finally:
        await eventos.handle_disconnect(connection_id)


# ==================================================
# ROUTERS DE AUTENTICAÇÃO E USUÁRIOS
# ==================================================

app.include_router(auth_router)
app.include_router(users_router)


# ==================================================
# ROUTERS DOS SISTEMAS
# ==================================================

app.include_router(permissoes_router)
app.include_router(tabelas_router)
app.include_router(processos_router)
app.include_router(agendamentos_router)
app.include_router(notificacoes_router)
app.include_router(chat_router)
app.include_router(analytics_router)


# ==================================================
# EXECUÇÃO DIRETA
# ==================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
