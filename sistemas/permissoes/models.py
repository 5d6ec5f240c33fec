# sistemas/permissoes/models.py
"""
Modelos do módulo de permissões:
- UserGroup: grupo com permissões extras (além do papel)
- UserGroupMember: associação usuário <-> grupo
- AuditLog: trilha de auditoria persistida
"""

from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime,
    JSON, ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
from database.connection import Base
from utils.timezone import get_utc_now


class UserGroup(Base):
    __tablename__ = "user_groups"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)

    # {"modulo": ["acao", ...]}
    permissions = Column(JSON, nullable=False, default=dict)

    is_active = Column(Boolean, default=True)
    created_by = Column(Integer, ForeignKey("usuarios.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=get_utc_now)
    updated_at = Column(DateTime(timezone=True), default=get_utc_now, onupdate=get_utc_now)

    members = relationship("UserGroupMember", back_populates="group", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<UserGroup(id={self.id}, name='{self.name}')>"


class UserGroupMember(Base):
    __tablename__ = "user_group_members"

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, ForeignKey("user_groups.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("usuarios.id", ondelete="CASCADE"), nullable=False, index=True)
    added_by = Column(Integer, ForeignKey("usuarios.id"), nullable=False)
    added_at = Column(DateTime(timezone=True), default=get_utc_now)

    group = relationship("UserGroup", back_populates="members")

    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="unique_group_user"),
    )


class AuditLog(Base):
    """Evento de auditoria gravado em banco (ver utils.audit.log_audit_event)"""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("usuarios.id"), nullable=True, index=True)
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(String(50), nullable=True)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=get_utc_now, index=True)

    __table_args__ = (
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
    )

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', user_id={self.user_id})>"
