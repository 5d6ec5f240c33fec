# tests/test_rate_limit.py
# -*- coding: utf-8 -*-
"""
Testes para o módulo de Rate Limiting (utils/rate_limit.py)

Testa:
- Detecção de IP real atrás de proxies
- Identificação de usuário
- Handler de rate limit excedido
- Configuração do limiter
"""

import json

import pytest
from unittest.mock import Mock
from fastapi import Request

from auth.security import create_access_token
from utils.rate_limit import (
    get_real_ip,
    get_user_identifier,
    rate_limit_exceeded_handler,
    limiter,
    RATE_LIMIT_LOGIN,
    LIMITS,
)


# ==================================================
# FIXTURES
# ==================================================


def fazer_request(headers: dict = None, host: str = "127.0.0.1"):
    request = Mock(spec=Request)
    request.headers = headers or {}
    request.url.path = "/test"
    request.client.host = host
    return request


@pytest.fixture
def mock_request():
    """Cria um mock de Request básico."""
    return fazer_request()


# ==================================================
# TESTES: get_real_ip
# ==================================================


class TestGetRealIP:

    def test_get_real_ip_from_x_forwarded_for(self):
        request = fazer_request({"X-Forwarded-For": "192.168.1.100, 10.0.0.1"})
        assert get_real_ip(request) == "192.168.1.100"

    def test_get_real_ip_from_x_real_ip(self):
        request = fazer_request({"X-Real-IP": "192.168.1.200"})
        assert get_real_ip(request) == "192.168.1.200"

    def test_forwarded_for_tem_prioridade(self):
        request = fazer_request({"X-Forwarded-For": "1.1.1.1", "X-Real-IP": "2.2.2.2"})
        assert get_real_ip(request) == "1.1.1.1"

    def test_get_real_ip_fallback_direct(self, mock_request):
        assert get_real_ip(mock_request) == "127.0.0.1"

    def test_get_real_ip_strips_whitespace(self):
        request = fazer_request({"X-Forwarded-For": "  192.168.1.100  , 10.0.0.1"})
        assert get_real_ip(request) == "192.168.1.100"

    def test_get_real_ip_with_empty_forwarded_for(self):
        request = fazer_request({"X-Forwarded-For": ""}, host="10.1.1.1")
        assert get_real_ip(request) == "10.1.1.1"


# ==================================================
# TESTES: get_user_identifier
# ==================================================


class TestGetUserIdentifier:

    def test_fallback_para_ip(self, mock_request):
        assert get_user_identifier(mock_request) == "ip:127.0.0.1"

    def test_token_invalido_usa_ip(self):
        request = fazer_request({"Authorization": "Bearer token-invalido"})
        assert get_user_identifier(request) == "ip:127.0.0.1"

    def test_token_valido_usa_user_id(self):
        token = create_access_token({"sub": "professor@npj.ufmt.br", "user_id": 42, "role": "Professor"})
        request = fazer_request({"Authorization": f"Bearer {token}"})

        assert get_user_identifier(request) == "user:42"

    def test_token_sem_user_id_usa_ip(self):
        token = create_access_token({"sub": "professor@npj.ufmt.br"})
        request = fazer_request({"Authorization": f"Bearer {token}"})

        assert get_user_identifier(request) == "ip:127.0.0.1"

    def test_esquema_diferente_de_bearer(self):
        request = fazer_request({"Authorization": "Basic dXNlcjpwYXNz"})
        assert get_user_identifier(request) == "ip:127.0.0.1"


# ==================================================
# TESTES: handler
# ==================================================


class TestRateLimitExceededHandler:

    @pytest.mark.asyncio
    async def test_status_e_headers(self, mock_request):
        response = await rate_limit_exceeded_handler(mock_request, ValueError("5 per 1 minute"))

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "60"
        assert response.headers["X-RateLimit-Limit"] == LIMITS["default"]

    @pytest.mark.asyncio
    async def test_corpo_json(self, mock_request):
        response = await rate_limit_exceeded_handler(mock_request, ValueError("5 per 1 minute"))

        body = json.loads(response.body)
        assert body == {
            "detail": "Limite de requisições excedido. Tente novamente em alguns minutos.",
            "error": "rate_limit_exceeded",
            "retry_after": "60",
        }


# ==================================================
# TESTES: configuração
# ==================================================


class TestConfiguracao:

    def test_limits_dict_has_all_keys(self):
        assert set(LIMITS) == {"login", "default", "export"}
        assert LIMITS["login"] == RATE_LIMIT_LOGIN

    def test_limites_no_formato_do_slowapi(self):
        for valor in LIMITS.values():
            quantidade, periodo = valor.split("/")
            assert int(quantidade) > 0
            assert periodo in ("second", "minute", "hour", "day")

    def test_desabilitado_nos_testes(self):
        # conftest define RATE_LIMIT_ENABLED=false
        assert limiter.enabled is False

    def test_limiter_decora_endpoint(self):
        @limiter.limit(LIMITS["export"])
        async def endpoint(request: Request):
            return {"ok": True}

        assert callable(endpoint)
