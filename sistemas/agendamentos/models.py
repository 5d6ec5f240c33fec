# sistemas/agendamentos/models.py
"""
Modelos de dados do módulo de Agendamentos:
- Agendamento: evento (audiência, reunião, prazo) de um usuário
- LembreteAgendamento: lembrete programado para um agendamento
"""

from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Index
)
from sqlalchemy.orm import relationship
from database.connection import Base
from utils.timezone import get_utc_now


class Agendamento(Base):
    __tablename__ = "agendamentos"

    id = Column(Integer, primary_key=True, index=True)
    processo_id = Column(Integer, ForeignKey("processos.id", ondelete="SET NULL"), nullable=True, index=True)
    criado_por = Column(Integer, ForeignKey("usuarios.id"), nullable=False)
    usuario_id = Column(Integer, ForeignKey("usuarios.id"), nullable=False, index=True)

    tipo_evento = Column(String(20), nullable=False, default="reuniao")
    titulo = Column(String(200), nullable=False)
    descricao = Column(Text, nullable=True)
    data_evento = Column(DateTime(timezone=True), nullable=False, index=True)
    duracao_minutos = Column(Integer, nullable=False, default=60)
    local = Column(String(200), nullable=True)
    status = Column(String(20), nullable=False, default="Agendado", index=True)

    # Recorrência (ocorrências são materializadas como filhos)
    recorrente = Column(Boolean, default=False)
    frequencia = Column(String(10), nullable=True)
    fim_recorrencia = Column(DateTime(timezone=True), nullable=True)
    agendamento_pai_id = Column(Integer, ForeignKey("agendamentos.id", ondelete="SET NULL"), nullable=True, index=True)

    reminder_sent = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), default=get_utc_now)
    updated_at = Column(DateTime(timezone=True), default=get_utc_now, onupdate=get_utc_now)

    processo = relationship("Processo")
    usuario = relationship("User", foreign_keys=[usuario_id])
    criador = relationship("User", foreign_keys=[criado_por])
    lembretes = relationship("LembreteAgendamento", back_populates="agendamento", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_agendamentos_usuario_data", "usuario_id", "data_evento"),
    )

    def __repr__(self):
        return f"<Agendamento(id={self.id}, titulo='{self.titulo}', data={self.data_evento})>"


class LembreteAgendamento(Base):
    __tablename__ = "lembretes_agendamento"

    id = Column(Integer, primary_key=True, index=True)
    agendamento_id = Column(Integer, ForeignKey("agendamentos.id", ondelete="CASCADE"), nullable=False, index=True)
    reminder_type = Column(String(20), nullable=False)
    minutes_before = Column(Integer, nullable=False)
    mensagem = Column(String(255), nullable=True)
    scheduled_for = Column(DateTime(timezone=True), nullable=False, index=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(10), nullable=False, default="pending", index=True)
    created_at = Column(DateTime(timezone=True), default=get_utc_now)

    agendamento = relationship("Agendamento", back_populates="lembretes")
