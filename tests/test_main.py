# tests/test_main.py
"""
Testes da aplicação principal: health check, métricas, handler de erros
e endpoint WebSocket.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from starlette.websockets import WebSocketDisconnect

import main
from main import app
from services.redis_service import redis_service
from auth.security import create_access_token


class TestHealth:

    @pytest.mark.asyncio
    async def test_health_ok(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["database"] == "ok"
        assert body["redis"] == "ok"
        assert body["service"] == "portal-npj"

    @pytest.mark.asyncio
    async def test_health_degradado_sem_redis(self, client):
        redis_service.client = None

        body = (await client.get("/health")).json()

        assert body["status"] == "degraded"
        assert body["redis"] == "unavailable"


class TestMetricas:

    @pytest.mark.asyncio
    async def test_metricas_prometheus(self, client):
        await client.get("/health")

        response = await client.get("/metrics", params={"format": "prometheus"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")

    @pytest.mark.asyncio
    async def test_erro_nao_tratado_vira_500(self):
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        with patch.object(main, "get_metrics", side_effect=RuntimeError("falha inesperada")):
            async with AsyncClient(transport=transport, base_url="http://test") as ac:
                response = await ac.get("/metrics")

        assert response.status_code == 500
        assert response.json() == {"detail": "Erro interno do servidor"}


def token_para(user) -> str:
    return create_access_token({"sub": user.email, "user_id": user.id, "role": user.role})


class TestWebSocket:

    def test_token_invalido_fecha_conexao(self):
        with pytest.raises(WebSocketDisconnect) as exc:
            with TestClient(app).websocket_connect("/ws?token=invalido"):
                pass

        assert exc.value.code == 1008

    def test_sem_token_fecha_conexao(self):
        with pytest.raises(WebSocketDisconnect) as exc:
            with TestClient(app).websocket_connect("/ws"):
                pass

        assert exc.value.code == 1008

    def test_usuario_inativo_fecha_conexao(self, criar_usuario):
        inativo = criar_usuario(ativo=False)

        with pytest.raises(WebSocketDisconnect):
            with TestClient(app).websocket_connect(f"/ws?token={token_para(inativo)}"):
                pass

    def test_conexao_valida_recebe_pendentes_e_responde_ping(self, aluno):
        # O TestClient roda a aplicação em outro event loop; o fakeredis fica de fora
        redis_service.client = None

        with TestClient(app).websocket_connect(f"/ws?token={token_para(aluno)}") as ws:
            primeira = ws.receive_json()
            assert primeira == {"event": "unread_notifications", "data": []}

            ws.send_json({"event": "ping"})
            resposta = ws.receive_json()
            assert resposta["event"] == "pong"
            assert "timestamp" in resposta["data"]

    def test_frame_que_nao_e_json_nao_derruba_a_conexao(self, aluno):
        redis_service.client = None

        with TestClient(app).websocket_connect(f"/ws?token={token_para(aluno)}") as ws:
            ws.receive_json()

            ws.send_text("isto nao e json")
            erro = ws.receive_json()
            assert erro == {"event": "error", "data": {"message": "Evento desconhecido"}}

            ws.send_json({"event": "ping"})
            assert ws.receive_json()["event"] == "pong"
