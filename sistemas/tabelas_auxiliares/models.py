# sistemas/tabelas_auxiliares/models.py
"""
Tabelas auxiliares usadas no cadastro de processos
"""

from sqlalchemy import Column, Integer, String
from database.connection import Base


class MateriaAssunto(Base):
    __tablename__ = "materia_assunto"

    id = Column(Integer, primary_key=True, index=True)
    nome = Column(String(150), unique=True, nullable=False)


class Fase(Base):
    __tablename__ = "fase"

    id = Column(Integer, primary_key=True, index=True)
    nome = Column(String(150), unique=True, nullable=False)


class Diligencia(Base):
    __tablename__ = "diligencia"

    id = Column(Integer, primary_key=True, index=True)
    nome = Column(String(150), unique=True, nullable=False)


class LocalTramitacao(Base):
    __tablename__ = "local_tramitacao"

    id = Column(Integer, primary_key=True, index=True)
    nome = Column(String(150), unique=True, nullable=False)
