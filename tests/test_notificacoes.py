# tests/test_notificacoes.py
"""
Testes do serviço e das rotas de notificações (Redis via fakeredis).
"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from services.redis_service import redis_service
from sistemas.notificacoes import services
from sistemas.notificacoes.services import (
    render_message, generate_id, create_notification_from_template, notify_users,
    get_all_notifications, get_unread_notifications, mark_notification_as_read,
    mark_all_notifications_as_read, cleanup_old_notifications,
    get_user_notification_settings, save_user_notification_settings,
)
from utils.timezone import now_utc


# ==================================================
# TESTES: utilitários
# ==================================================


class TestRenderMessage:

    def test_substitui_variaveis(self):
        assert render_message("Processo {processNumber} ok", {"processNumber": "123"}) == "Processo 123 ok"

    def test_placeholder_sem_valor_permanece(self):
        assert render_message("{senderName} em {roomName}", {"senderName": "Ana"}) == "Ana em {roomName}"

    def test_generate_id(self):
        partes = generate_id("notif").split("_")
        assert partes[0] == "notif"
        assert partes[1].isdigit()
        assert len(partes[2]) == 9


# ==================================================
# TESTES: envio e leitura
# ==================================================


class TestEnvio:

    @pytest.mark.asyncio
    async def test_template_desconhecido(self):
        assert await create_notification_from_template("NAO_EXISTE", 1) is False
        assert await get_all_notifications(1) == []

    @pytest.mark.asyncio
    async def test_notificacao_gravada_no_topo(self):
        await create_notification_from_template("NEW_PROCESS", 1, {"processNumber": "1/2025"})
        await create_notification_from_template("PROCESS_UPDATE", 1, {"processNumber": "2/2025"})

        notifications = await get_all_notifications(1)

        assert [n["type"] for n in notifications] == ["PROCESS_UPDATE", "NEW_PROCESS"]
        assert notifications[0]["message"] == "O processo 2/2025 foi atualizado"
        assert notifications[0]["read"] is False
        assert "timestamp" in notifications[0]

    @pytest.mark.asyncio
    async def test_limite_de_50_por_usuario(self):
        for i in range(55):
            await create_notification_from_template("NEW_PROCESS", 1, {"processNumber": str(i)})

        notifications = await get_all_notifications(1)

        assert len(notifications) == 50
        assert notifications[0]["message"].endswith("54")

    @pytest.mark.asyncio
    async def test_notify_users_ignora_repetidos_e_excluido(self):
        enviados = await notify_users([1, 2, 2, None, 3], "PROCESS_UPDATE", {"processNumber": "9"}, exclude=3)

        assert enviados == 2
        assert await get_all_notifications(3) == []
        assert len(await get_all_notifications(2)) == 1

    @pytest.mark.asyncio
    async def test_email_conforme_preferencias(self, aluno):
        with patch.object(services, "send_email", new=AsyncMock(return_value=True)) as send_email:
            await create_notification_from_template("PROCESS_UPDATE", aluno.id, {"processNumber": "1"}, email=True)
            await create_notification_from_template("NEW_PROCESS", aluno.id, {"processNumber": "1"}, email=True)

        # NEW_PROCESS não está em emailTypes por padrão
        send_email.assert_awaited_once()
        assert send_email.await_args.args[0] == aluno.email

    @pytest.mark.asyncio
    async def test_email_desabilitado(self, aluno):
        await save_user_notification_settings(aluno.id, {"emailEnabled": False})

        with patch.object(services, "send_email", new=AsyncMock(return_value=True)) as send_email:
            await create_notification_from_template("PROCESS_UPDATE", aluno.id, {"processNumber": "1"}, email=True)

        send_email.assert_not_awaited()


class TestLeitura:

    @pytest.mark.asyncio
    async def test_marcar_como_lida(self):
        await create_notification_from_template("NEW_PROCESS", 1, {"processNumber": "1"})
        notification_id = (await get_all_notifications(1))[0]["id"]

        assert await mark_notification_as_read(1, notification_id) is True
        assert await get_unread_notifications(1) == []

    @pytest.mark.asyncio
    async def test_marcar_inexistente(self):
        assert await mark_notification_as_read(1, "notif_0_inexistente") is False

    @pytest.mark.asyncio
    async def test_marcar_todas(self):
        for _ in range(3):
            await create_notification_from_template("NEW_PROCESS", 1, {"processNumber": "1"})

        assert await mark_all_notifications_as_read(1) is True
        assert await get_unread_notifications(1) == []

    @pytest.mark.asyncio
    async def test_marcar_todas_sem_notificacoes(self):
        assert await mark_all_notifications_as_read(1) is True


class TestPreferencias:

    @pytest.mark.asyncio
    async def test_padrao(self):
        settings = await get_user_notification_settings(1)
        assert settings["emailEnabled"] is True
        assert "APPOINTMENT_REMINDER" in settings["emailTypes"]

    @pytest.mark.asyncio
    async def test_salvar_mescla_com_atual(self):
        await save_user_notification_settings(1, {"realTimeEnabled": False})

        settings = await get_user_notification_settings(1)
        assert settings["realTimeEnabled"] is False
        assert settings["emailEnabled"] is True


class TestLimpeza:

    @pytest.mark.asyncio
    async def test_remove_notificacoes_antigas(self):
        antiga = (now_utc() - timedelta(days=31)).isoformat()
        recente = (now_utc() - timedelta(days=1)).isoformat()
        await redis_service.set("notifications:1", [
            {"id": "a", "timestamp": recente, "read": False},
            {"id": "b", "timestamp": antiga, "read": True},
        ])
        await redis_service.set("notifications:2", [{"id": "c", "timestamp": antiga, "read": False}])

        assert await cleanup_old_notifications() == 2
        assert [n["id"] for n in await get_all_notifications(1)] == ["a"]
        assert await get_all_notifications(2) == []


# ==================================================
# TESTES: endpoints
# ==================================================


class TestRouterNotificacoes:

    @pytest.mark.asyncio
    async def test_listar(self, client, aluno, headers_de):
        await create_notification_from_template("NEW_PROCESS", aluno.id, {"processNumber": "1"})

        response = await client.get("/api/notifications", headers=headers_de(aluno))

        assert response.status_code == 200
        assert response.json()["count"] == 1
        assert response.json()["unread"] == 1

    @pytest.mark.asyncio
    async def test_marcar_lida_e_nao_lidas(self, client, aluno, headers_de):
        await create_notification_from_template("NEW_PROCESS", aluno.id, {"processNumber": "1"})
        notification_id = (await get_all_notifications(aluno.id))[0]["id"]

        response = await client.patch(f"/api/notifications/{notification_id}/read", headers=headers_de(aluno))
        assert response.status_code == 200

        response = await client.get("/api/notifications/unread", headers=headers_de(aluno))
        assert response.json()["count"] == 0

    @pytest.mark.asyncio
    async def test_marcar_lida_inexistente(self, client, aluno, headers_de):
        response = await client.patch("/api/notifications/xyz/read", headers=headers_de(aluno))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_marcar_todas(self, client, aluno, headers_de):
        await create_notification_from_template("NEW_PROCESS", aluno.id, {"processNumber": "1"})

        response = await client.patch("/api/notifications/read-all", headers=headers_de(aluno))

        assert response.status_code == 200
        assert await get_unread_notifications(aluno.id) == []

    @pytest.mark.asyncio
    async def test_envio_por_admin(self, client, admin, aluno, headers_de):
        response = await client.post(
            "/api/notifications/send",
            json={"userId": aluno.id, "templateKey": "SYSTEM_MAINTENANCE", "variables": {"time": "22:00"}},
            headers=headers_de(admin),
        )

        assert response.status_code == 200
        notifications = await get_all_notifications(aluno.id)
        assert notifications[0]["message"] == "O sistema entrará em manutenção em 22:00"

    @pytest.mark.asyncio
    async def test_envio_campos_obrigatorios(self, client, admin, headers_de):
        response = await client.post("/api/notifications/send", json={"templateKey": "NEW_PROCESS"}, headers=headers_de(admin))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_envio_template_desconhecido(self, client, admin, aluno, headers_de):
        response = await client.post(
            "/api/notifications/send",
            json={"userId": aluno.id, "templateKey": "NAO_EXISTE"},
            headers=headers_de(admin),
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_envio_exige_admin(self, client, professor, aluno, headers_de):
        response = await client.post(
            "/api/notifications/send",
            json={"userId": aluno.id, "templateKey": "NEW_PROCESS"},
            headers=headers_de(professor),
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_templates(self, client, admin, headers_de):
        response = await client.get("/api/notifications/templates", headers=headers_de(admin))

        assert response.status_code == 200
        assert "CHAT_MESSAGE" in response.json()["templates"]

    @pytest.mark.asyncio
    async def test_configuracoes(self, client, aluno, headers_de):
        response = await client.put(
            "/api/notifications/settings",
            json={"emailEnabled": False, "realTimeEnabled": True, "campoExtra": 1},
            headers=headers_de(aluno),
        )
        assert response.status_code == 200

        response = await client.get("/api/notifications/settings", headers=headers_de(aluno))
        assert response.json()["emailEnabled"] is False
        assert "campoExtra" not in response.json()

    @pytest.mark.asyncio
    async def test_configuracoes_tipos_invalidos(self, client, aluno, headers_de):
        response = await client.put(
            "/api/notifications/settings",
            json={"emailEnabled": "sim", "realTimeEnabled": True},
            headers=headers_de(aluno),
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    @pytest.mark.parametrize("campo, valor", [
        ("emailTypes", "APPOINTMENT_REMINDER"),
        ("realTimeTypes", {"NEW_PROCESS": True}),
        ("emailTypes", ["NEW_PROCESS", 1]),
    ])
    async def test_listas_de_tipos_invalidas(self, client, aluno, headers_de, campo, valor):
        response = await client.put(
            "/api/notifications/settings",
            json={"emailEnabled": True, "realTimeEnabled": True, campo: valor},
            headers=headers_de(aluno),
        )

        assert response.status_code == 400
        assert campo in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_lista_de_tipos_salva(self, client, aluno, headers_de):
        response = await client.put(
            "/api/notifications/settings",
            json={"emailEnabled": True, "realTimeEnabled": True, "emailTypes": ["NEW_PROCESS"]},
            headers=headers_de(aluno),
        )
        assert response.status_code == 200

        response = await client.get("/api/notifications/settings", headers=headers_de(aluno))
        assert response.json()["emailTypes"] == ["NEW_PROCESS"]

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_notificacao_de_teste(self, client, admin, aluno, headers_de):
        response = await client.post(
            "/api/notifications/test",
            json={"userId": aluno.id, "message": "Olá"},
            headers=headers_de(admin),
        )

        assert response.status_code == 200
        assert (await get_all_notifications(aluno.id))[0]["type"] == "TEST"

    @pytest.mark.asyncio
    async def test_notificacao_de_teste_sem_mensagem(self, client, admin, aluno, headers_de):
        response = await client.post("/api/notifications/test", json={"userId": aluno.id}, headers=headers_de(admin))
        assert response.status_code == 400
