# tests/test_permissoes.py
"""
Testes do controle de acesso por papel, grupos de usuários e do
dependency authorize().
"""

import pytest

from auth.models import Role
from sistemas.permissoes.dependencies import sanitize_log_data
from sistemas.permissoes.services import (
    has_permission,
    get_user_permissions,
    validate_permissions,
    merge_permissions,
    create_user_group,
    add_user_to_group,
    remove_user_from_group,
    get_effective_user_permissions,
)


# ==================================================
# TESTES: has_permission
# ==================================================


class TestHasPermission:

    def test_acao_direta(self):
        assert has_permission(Role.PROFESSOR, "processes", "create")
        assert not has_permission(Role.ALUNO, "processes", "create")

    def test_admin_herda_acoes_subordinadas(self):
        """Admin herda view_own (Professor) e view_basic (Aluno) em analytics."""
        assert has_permission(Role.ADMIN, "analytics", "view_own")
        assert has_permission(Role.ADMIN, "analytics", "view_basic")

    def test_professor_nao_herda_do_admin(self):
        assert not has_permission(Role.PROFESSOR, "system", "configure")
        assert not has_permission(Role.PROFESSOR, "processes", "delete")

    def test_modulo_desconhecido(self):
        assert not has_permission(Role.ADMIN, "financeiro", "read")

    def test_acao_own_sobre_recurso_proprio(self):
        """read_own vale pela ação base quando dono e usuário coincidem (ids comparados como texto)."""
        assert has_permission(Role.ALUNO, "processes", "read_own", "7", 7)

    def test_acao_own_sobre_recurso_alheio(self):
        assert not has_permission(Role.ALUNO, "processes", "read_own", 8, 7)
        assert not has_permission(Role.ALUNO, "processes", "read_own", None, 7)

    def test_acao_own_sem_acao_base(self):
        assert not has_permission(Role.ALUNO, "processes", "update_own", 7, 7)

    def test_acao_own_listada_diretamente(self):
        """Aluno tem appointments.update_own na tabela: vale independente do dono."""
        assert has_permission(Role.ALUNO, "appointments", "update_own")

    def test_acao_own_aceita_acao_base(self):
        """Professor tem appointments.update, que cobre update_own."""
        assert has_permission(Role.PROFESSOR, "appointments", "update_own", 5, 5)

    def test_aluno_sem_dashboard_completo(self):
        assert has_permission(Role.ALUNO, "analytics", "view_basic")
        assert not has_permission(Role.ALUNO, "analytics", "view_own")


class TestGetUserPermissions:

    def test_admin_inclui_acoes_herdadas(self):
        permissoes = get_user_permissions(Role.ADMIN)
        assert "view_basic" in permissoes["analytics"]
        assert "read_own" in permissoes["users"]
        assert "maintenance" in permissoes["system"]

    def test_aluno(self):
        permissoes = get_user_permissions(Role.ALUNO)
        assert permissoes["processes"] == ["read"]
        assert permissoes["system"] == []

    def test_papel_desconhecido_sem_acoes(self):
        assert all(acoes == [] for acoes in get_user_permissions("Visitante").values())


class TestValidateMerge:

    def test_estrutura_valida(self):
        assert validate_permissions({"processes": ["read", "archive"]}) == {"valid": True, "errors": []}

    def test_modulo_e_acao_invalidos(self):
        resultado = validate_permissions({"financeiro": ["read"], "processes": ["voar"]})
        assert resultado["valid"] is False
        assert len(resultado["errors"]) == 2

    def test_merge_sem_duplicatas(self):
        merged = merge_permissions({"processes": ["read"]}, {"processes": ["read", "archive"], "files": ["upload"]})
        assert merged == {"processes": ["read", "archive"], "files": ["upload"]}


class TestSanitizeLogData:

    def test_campos_sensiveis_redigidos(self):
        data = sanitize_log_data({"email": "a@npj.ufmt.br", "password": "x", "token": "y"})
        assert data == {"email": "a@npj.ufmt.br", "password": "[REDACTED]", "token": "[REDACTED]"}


# ==================================================
# TESTES: grupos (serviço)
# ==================================================


class TestGrupos:

    @pytest.mark.asyncio
    async def test_grupo_concede_permissao_extra(self, db, admin, aluno):
        grupo = create_user_group(db, "Monitores", admin.id, permissions={"processes": ["create"]})

        await add_user_to_group(db, grupo.id, aluno.id, admin.id)
        efetivas = await get_effective_user_permissions(db, aluno.id)

        assert "create" in efetivas["processes"]
        assert "read" in efetivas["processes"]

    @pytest.mark.asyncio
    async def test_adicionar_duas_vezes_e_idempotente(self, db, admin, aluno):
        grupo = create_user_group(db, "Monitores", admin.id)

        await add_user_to_group(db, grupo.id, aluno.id, admin.id)
        grupo = await add_user_to_group(db, grupo.id, aluno.id, admin.id)

        assert len(grupo.members) == 1

    @pytest.mark.asyncio
    async def test_remover_recalcula_cache(self, db, admin, aluno):
        grupo = create_user_group(db, "Monitores", admin.id, permissions={"processes": ["create"]})
        await add_user_to_group(db, grupo.id, aluno.id, admin.id)

        await remove_user_from_group(db, grupo.id, aluno.id)
        efetivas = await get_effective_user_permissions(db, aluno.id)

        assert "create" not in efetivas["processes"]


# ==================================================
# TESTES: endpoints
# ==================================================


class TestRouterPermissoes:

    @pytest.mark.asyncio
    async def test_minhas_permissoes(self, client, aluno, headers_de):
        response = await client.get("/api/permissoes/me", headers=headers_de(aluno))

        assert response.status_code == 200
        assert response.json()["role"] == Role.ALUNO
        assert response.json()["permissions"]["analytics"] == ["view_basic"]

    @pytest.mark.asyncio
    async def test_papel_inexistente(self, client, aluno, headers_de):
        response = await client.get("/api/permissoes/roles/Visitante", headers=headers_de(aluno))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_criar_grupo_permissoes_invalidas(self, client, admin, headers_de):
        response = await client.post(
            "/api/permissoes/grupos",
            json={"name": "Grupo X", "permissions": {"financeiro": ["read"]}},
            headers=headers_de(admin),
        )

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "Permissões inválidas"

    @pytest.mark.asyncio
    async def test_criar_grupo_exige_admin(self, client, professor, headers_de):
        response = await client.post(
            "/api/permissoes/grupos",
            json={"name": "Grupo X"},
            headers=headers_de(professor),
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_grupo_libera_rota_protegida(self, client, admin, aluno, headers_de):
        """Aluno sem processes.create passa a criar processos depois de entrar no grupo."""
        response = await client.post(
            "/api/processos/novo",
            json={"numero_processo": "0001/2025"},
            headers=headers_de(aluno),
        )
        assert response.status_code == 403

        grupo = await client.post(
            "/api/permissoes/grupos",
            json={"name": "Monitores", "permissions": {"processes": ["create"]}},
            headers=headers_de(admin),
        )
        assert grupo.status_code == 201

        membro = await client.post(
            f"/api/permissoes/grupos/{grupo.json()['id']}/membros",
            json={"user_id": aluno.id},
            headers=headers_de(admin),
        )
        assert membro.status_code == 200
        assert aluno.id in membro.json()["members"]

        response = await client.post(
            "/api/processos/novo",
            json={"numero_processo": "0001/2025"},
            headers=headers_de(aluno),
        )
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_membro_em_grupo_inexistente(self, client, admin, aluno, headers_de):
        response = await client.post(
            "/api/permissoes/grupos/999/membros",
            json={"user_id": aluno.id},
            headers=headers_de(admin),
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_grupos_de_outro_usuario(self, client, aluno, professor, headers_de):
        response = await client.get(f"/api/permissoes/usuarios/{professor.id}/grupos", headers=headers_de(aluno))
        assert response.status_code == 403
