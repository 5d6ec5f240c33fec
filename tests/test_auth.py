# tests/test_auth.py
"""
Testes de autenticação: login, /auth/me, troca de senha e logout.

Uso:
    pytest tests/test_auth.py -v
"""

import pytest

from auth.models import Role
from auth.security import create_access_token, decode_token, get_password_hash, verify_password

SENHA = "Senha@Forte1"


# ==================================================
# TESTES: auth.security
# ==================================================


class TestSecurity:
    """Hash de senha e JWT"""

    def test_hash_e_verificacao(self):
        hashed = get_password_hash("Outra#Senha9")
        assert hashed != "Outra#Senha9"
        assert verify_password("Outra#Senha9", hashed)
        assert not verify_password("errada", hashed)

    def test_token_tem_jti_e_iat(self):
        """Todo token carrega jti e iat (usados na revogação)."""
        payload = decode_token(create_access_token({"sub": "a@npj.ufmt.br", "user_id": 1}))
        assert payload["sub"] == "a@npj.ufmt.br"
        assert payload["jti"]
        assert payload["iat"] <= payload["exp"]

    def test_token_invalido_retorna_none(self):
        assert decode_token("nao.e.um.jwt") is None


# ==================================================
# TESTES: /auth/login
# ==================================================


class TestLogin:

    @pytest.mark.asyncio
    async def test_login_sucesso(self, client, aluno):
        response = await client.post("/auth/login", data={"username": aluno.email, "password": SENHA})

        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert decode_token(body["access_token"])["user_id"] == aluno.id
        assert "access_token" in response.cookies

    @pytest.mark.asyncio
    async def test_login_email_sem_diferenciar_maiusculas(self, client, aluno):
        response = await client.post("/auth/login", data={"username": aluno.email.upper(), "password": SENHA})
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_login_senha_errada(self, client, aluno):
        response = await client.post("/auth/login", data={"username": aluno.email, "password": "errada"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_login_usuario_inexistente(self, client):
        response = await client.post("/auth/login", data={"username": "ninguem@npj.ufmt.br", "password": SENHA})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_login_usuario_inativo(self, client, criar_usuario):
        inativo = criar_usuario(Role.ALUNO, ativo=False)
        response = await client.post("/auth/login", data={"username": inativo.email, "password": SENHA})
        assert response.status_code == 403


# ==================================================
# TESTES: rotas autenticadas
# ==================================================


class TestRotasAutenticadas:

    @pytest.mark.asyncio
    async def test_me_sem_token(self, client):
        response = await client.get("/auth/me")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_me_com_token(self, client, professor, headers_de):
        response = await client.get("/auth/me", headers=headers_de(professor))

        assert response.status_code == 200
        assert response.json()["email"] == professor.email
        assert response.json()["role"] == Role.PROFESSOR

    @pytest.mark.asyncio
    async def test_me_pelo_cookie(self, client, aluno):
        """O cookie HttpOnly gravado no login autentica sem header."""
        login = await client.post("/auth/login", data={"username": aluno.email, "password": SENHA})
        assert login.status_code == 200

        response = await client.get("/auth/me")

        assert response.status_code == 200
        assert response.json()["id"] == aluno.id

    @pytest.mark.asyncio
    async def test_logout_revoga_token(self, client, aluno, headers_de):
        headers = headers_de(aluno)

        response = await client.post("/auth/logout", headers=headers)
        assert response.status_code == 200

        response = await client.get("/auth/me", headers=headers)
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_requisitos_de_senha_publicos(self, client):
        response = await client.get("/auth/password-requirements")
        assert response.status_code == 200


# ==================================================
# TESTES: troca de senha
# ==================================================


class TestTrocaSenha:

    @pytest.mark.asyncio
    async def test_troca_senha_exige_senha_atual(self, client, aluno, headers_de):
        response = await client.post(
            "/auth/change-password",
            json={"current_password": "errada", "new_password": "Nova#Senha22"},
            headers=headers_de(aluno),
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_troca_senha_politica(self, client, aluno, headers_de):
        """Senha fraca é rejeitada na validação do corpo."""
        response = await client.post(
            "/auth/change-password",
            json={"current_password": SENHA, "new_password": "fraca123"},
            headers=headers_de(aluno),
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_troca_senha_sucesso(self, client, aluno, headers_de, db):
        response = await client.post(
            "/auth/change-password",
            json={"current_password": SENHA, "new_password": "Nova#Senha22"},
            headers=headers_de(aluno),
        )
        assert response.status_code == 200

        db.refresh(aluno)
        assert verify_password("Nova#Senha22", aluno.hashed_password)
        assert aluno.must_change_password is False
