# database/init_db.py
"""
Inicialização do banco de dados, seed do usuário admin e das tabelas auxiliares
"""

import time
from sqlalchemy.exc import OperationalError
from sqlalchemy import text
from database.connection import engine, Base, SessionLocal
from auth.models import User, Role
from auth.security import get_password_hash
from config import ADMIN_EMAIL, ADMIN_PASSWORD

# Importa modelos para criar tabelas
from sistemas.tabelas_auxiliares.models import MateriaAssunto, Fase, Diligencia, LocalTramitacao  # noqa: F401
from sistemas.processos.models import Processo, UsuarioProcesso, AtualizacaoProcesso  # noqa: F401
from sistemas.agendamentos.models import Agendamento, LembreteAgendamento  # noqa: F401
from sistemas.permissoes.models import UserGroup, UserGroupMember, AuditLog  # noqa: F401
from sistemas.tabelas_auxiliares.services import seed_tabelas_auxiliares


def wait_for_db(max_retries=10, delay=3):
    """Aguarda o banco de dados ficar disponível"""
    for attempt in range(max_retries):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            print("✅ Conexão com banco de dados estabelecida!")
            return True
        except OperationalError as e:
            if attempt < max_retries - 1:
                print(f"⏳ Aguardando banco de dados... tentativa {attempt + 1}/{max_retries}")
                time.sleep(delay)
            else:
                print(f"❌ Não foi possível conectar ao banco após {max_retries} tentativas")
                raise e
    return False


def create_tables():
    """Cria todas as tabelas no banco de dados"""
    Base.metadata.create_all(bind=engine)
    print("✅ Tabelas criadas com sucesso!")


def seed_admin():
    """Cria o usuário administrador inicial se não existir"""
    db = SessionLocal()
    try:
        existing_admin = db.query(User).filter(User.email == ADMIN_EMAIL).first()

        if not existing_admin:
            admin = User(
                nome="Administrador",
                email=ADMIN_EMAIL,
                hashed_password=get_password_hash(ADMIN_PASSWORD),
                role=Role.ADMIN,
                must_change_password=True,
                is_active=True
            )
            db.add(admin)
            db.commit()
            print(f"✅ Usuário admin '{ADMIN_EMAIL}' criado com sucesso!")
            print(f"   ⚠️  Altere a senha no primeiro acesso!")
        else:
            print(f"ℹ️  Usuário admin '{ADMIN_EMAIL}' já existe.")
    finally:
        db.close()


def seed_tabelas():
    """Popula fases, diligências, matérias e locais padrão"""
    db = SessionLocal()
    try:
        criados = seed_tabelas_auxiliares(db)
        if criados:
            print(f"✅ {criados} itens de tabelas auxiliares criados")
    finally:
        db.close()


def init_database():
    """Inicializa o banco de dados completo"""
    print("🔧 Inicializando banco de dados...")
    wait_for_db()
    create_tables()
    seed_admin()
    seed_tabelas()
    print("✅ Banco de dados inicializado!")


if __name__ == "__main__":
    init_database()
