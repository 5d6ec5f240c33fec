# sistemas/processos/models.py
"""
Modelos de dados do módulo de Processos:
- Processo: processo acompanhado pelo NPJ
- UsuarioProcesso: alunos/professores associados ao processo
- AtualizacaoProcesso: histórico de alterações e anotações
"""

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
from database.connection import Base
from utils.timezone import get_utc_now


class Processo(Base):
    __tablename__ = "processos"

    id = Column(Integer, primary_key=True, index=True)
    numero_processo = Column(String(50), unique=True, nullable=False, index=True)
    descricao = Column(Text, nullable=True)
    status = Column(String(30), nullable=False, default="Aberto", index=True)
    tipo_processo = Column(String(100), nullable=True)
    sistema = Column(String(20), nullable=False, default="Físico")
    num_processo_sei = Column(String(50), nullable=True)
    assistido = Column(String(200), nullable=True)
    contato_assistido = Column(String(200), nullable=True)
    observacoes = Column(Text, nullable=True)
    data_encerramento = Column(DateTime(timezone=True), nullable=True)

    idusuario_responsavel = Column(Integer, ForeignKey("usuarios.id"), nullable=True, index=True)
    materia_assunto_id = Column(Integer, ForeignKey("materia_assunto.id"), nullable=True)
    fase_id = Column(Integer, ForeignKey("fase.id"), nullable=True)
    diligencia_id = Column(Integer, ForeignKey("diligencia.id"), nullable=True)
    local_tramitacao_id = Column(Integer, ForeignKey("local_tramitacao.id"), nullable=True)

    created_by = Column(Integer, ForeignKey("usuarios.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=get_utc_now, index=True)
    updated_at = Column(DateTime(timezone=True), default=get_utc_now, onupdate=get_utc_now)

    responsavel = relationship("User", foreign_keys=[idusuario_responsavel])
    criador = relationship("User", foreign_keys=[created_by])
    materia_assunto = relationship("MateriaAssunto")
    fase = relationship("Fase")
    diligencia = relationship("Diligencia")
    local_tramitacao = relationship("LocalTramitacao")

    usuarios = relationship("UsuarioProcesso", back_populates="processo", cascade="all, delete-orphan")
    atualizacoes = relationship(
        "AtualizacaoProcesso", back_populates="processo",
        cascade="all, delete-orphan", order_by="AtualizacaoProcesso.created_at.desc()"
    )

    def __repr__(self):
        return f"<Processo(id={self.id}, numero='{self.numero_processo}', status='{self.status}')>"


class UsuarioProcesso(Base):
    __tablename__ = "usuarios_processo"

    id = Column(Integer, primary_key=True, index=True)
    usuario_id = Column(Integer, ForeignKey("usuarios.id", ondelete="CASCADE"), nullable=False, index=True)
    processo_id = Column(Integer, ForeignKey("processos.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=get_utc_now)

    processo = relationship("Processo", back_populates="usuarios")
    usuario = relationship("User")

    __table_args__ = (
        UniqueConstraint("usuario_id", "processo_id", name="uq_usuario_processo"),
    )


class AtualizacaoProcesso(Base):
    __tablename__ = "atualizacoes_processo"

    id = Column(Integer, primary_key=True, index=True)
    processo_id = Column(Integer, ForeignKey("processos.id", ondelete="CASCADE"), nullable=False)
    usuario_id = Column(Integer, ForeignKey("usuarios.id"), nullable=True)
    tipo = Column(String(30), nullable=False, default="anotacao")
    descricao = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=get_utc_now, index=True)

    processo = relationship("Processo", back_populates="atualizacoes")
    usuario = relationship("User")

    __table_args__ = (
        Index("ix_atualizacoes_processo_created", "processo_id", "created_at"),
    )
