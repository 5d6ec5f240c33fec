# tests/conftest.py
"""
Configuração global do pytest para o Portal NPJ.

Este arquivo é executado automaticamente pelo pytest antes dos testes.

- Banco SQLite em memória (StaticPool), recriado a cada teste
- Redis substituído por fakeredis, um servidor novo por teste
- Cliente HTTP assíncrono (httpx) sobre a aplicação ASGI, sem lifespan
"""

import sys
import os

# Adiciona o diretório raiz do projeto ao PYTHONPATH
# para que os imports funcionem corretamente nos testes
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

# Configura variáveis de ambiente para testes (antes de importar config)
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ADMIN_PASSWORD", "Admin@123")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import fakeredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

import database.init_db  # noqa: F401  (registra todos os models)
from auth.models import User, Role
from auth.security import create_access_token, get_password_hash
from database.connection import Base, SessionLocal
from services.realtime import manager
from services.redis_service import redis_service
from utils.token_blacklist import get_token_blacklist

SENHA_PADRAO_TESTE = "Senha@Forte1"

test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
SessionLocal.configure(bind=test_engine)


# ==================================================
# INFRAESTRUTURA
# ==================================================

@pytest.fixture(autouse=True)
def banco():
    """Recria o schema a cada teste."""
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(autouse=True)
def redis_fake():
    """Cliente fakeredis isolado (servidor próprio por teste)."""
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    redis_service.use_client(client)
    yield client
    redis_service.client = None


@pytest.fixture(autouse=True)
def estado_limpo():
    """Zera blacklist de tokens e conexões WebSocket entre testes."""
    get_token_blacklist().clear()
    manager.active_connections.clear()
    manager.connection_users.clear()
    manager.rooms.clear()
    yield
    get_token_blacklist().clear()


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


@pytest_asyncio.fixture
async def client():
    from main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ==================================================
# USUÁRIOS E TOKENS
# ==================================================

@pytest.fixture
def criar_usuario(db):
    """Factory de usuários gravados no banco."""
    contador = {"n": 0}

    def _criar(role: str = Role.ALUNO, nome: str = None, email: str = None, ativo: bool = True) -> User:
        contador["n"] += 1
        n = contador["n"]
        user = User(
            nome=nome or f"{role} {n}",
            email=email or f"{role.lower()}{n}@npj.ufmt.br",
            hashed_password=get_password_hash(SENHA_PADRAO_TESTE),
            role=role,
            must_change_password=False,
            is_active=ativo,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _criar


def token_para(user: User) -> str:
    return create_access_token({"sub": user.email, "user_id": user.id, "role": user.role})


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {token_para(user)}"}


@pytest.fixture
def admin(criar_usuario):
    return criar_usuario(Role.ADMIN, nome="Admin Teste")


@pytest.fixture
def professor(criar_usuario):
    return criar_usuario(Role.PROFESSOR, nome="Professor Teste")


@pytest.fixture
def aluno(criar_usuario):
    return criar_usuario(Role.ALUNO, nome="Aluno Teste")


@pytest.fixture
def headers_de():
    """headers_de(user) -> {"Authorization": "Bearer <jwt>"}"""
    return auth_headers
