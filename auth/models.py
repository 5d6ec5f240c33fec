"""
Modelo de usuário para autenticação
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from database.connection import Base
from utils.timezone import get_utc_now


class Role:
    """Papéis do NPJ"""
    ADMIN = "Admin"
    PROFESSOR = "Professor"
    ALUNO = "Aluno"

    TODOS = (ADMIN, PROFESSOR, ALUNO)


class User(Base):
    """Usuário do sistema (login pelo e-mail)"""

    __tablename__ = "usuarios"

    id = Column(Integer, primary_key=True, index=True)
    nome = Column(String(200), nullable=False)
    email = Column(String(150), unique=True, index=True, nullable=False)
    telefone = Column(String(30), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=Role.ALUNO, index=True)
    must_change_password = Column(Boolean, default=True)
    is_active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime(timezone=True), default=get_utc_now, index=True)
    updated_at = Column(DateTime(timezone=True), default=get_utc_now, onupdate=get_utc_now)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
