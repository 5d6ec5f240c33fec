"""
SECURITY: Audit logging de eventos de segurança e de negócio do NPJ.

Cada evento gera uma linha estruturada no logger "security.audit" e,
quando uma sessão de banco é informada, um registro na tabela audit_logs.

Eventos registrados:
- AUTH_*: login, logout, troca de senha
- USER_*: gestão de usuários
- PROCESS_*, APPOINTMENT_*: operações sobre processos e agendamentos
- ACTION_AUTHORIZED / ACCESS_DENIED: decisões do controle de permissões
- GROUP_*: grupos de usuários
- NOTIFICATION_SENT, CHAT_*: camada de tempo real
- ANALYTICS_CACHE_CLEARED, DATA_EXPORT: analytics
"""

import json
import logging
import os
from enum import Enum
from typing import Optional, Dict, Any

from fastapi import Request
from sqlalchemy.orm import Session

from config import LOG_DIR
from utils.logging_config import get_logger
from utils.timezone import get_utc_now

audit_logger = get_logger("security.audit")

# Handler para arquivo de auditoria
os.makedirs(LOG_DIR, exist_ok=True)

_stdlib_audit_logger = logging.getLogger("security.audit")
_stdlib_audit_logger.setLevel(logging.INFO)

audit_handler = logging.FileHandler(os.path.join(LOG_DIR, "audit.log"), encoding="utf-8")
audit_handler.setLevel(logging.INFO)
audit_handler.setFormatter(logging.Formatter(
    '%(asctime)s | %(levelname)s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
))
_stdlib_audit_logger.addHandler(audit_handler)

db_logger = logging.getLogger(__name__)


class AuditEvent(str, Enum):
    """Tipos de eventos de auditoria"""
    # Autenticação
    AUTH_LOGIN_SUCCESS = "AUTH_LOGIN_SUCCESS"
    AUTH_LOGIN_FAILURE = "AUTH_LOGIN_FAILURE"
    AUTH_LOGOUT = "AUTH_LOGOUT"
    AUTH_PASSWORD_CHANGE = "AUTH_PASSWORD_CHANGE"

    # Gestão de usuários
    USER_CREATED = "USER_CREATED"
    USER_UPDATED = "USER_UPDATED"
    USER_DELETED = "USER_DELETED"
    USER_ACTIVATED = "USER_ACTIVATED"
    USER_DEACTIVATED = "USER_DEACTIVATED"
    USER_PASSWORD_RESET = "USER_PASSWORD_RESET"

    # Processos
    PROCESS_CREATED = "PROCESS_CREATED"
    PROCESS_UPDATED = "PROCESS_UPDATED"
    PROCESS_DELETED = "PROCESS_DELETED"
    PROCESS_ARCHIVED = "PROCESS_ARCHIVED"
    PROCESS_USER_ASSIGNED = "PROCESS_USER_ASSIGNED"
    PROCESS_USER_REMOVED = "PROCESS_USER_REMOVED"

    # Agendamentos
    APPOINTMENT_CREATED = "APPOINTMENT_CREATED"
    APPOINTMENT_UPDATED = "APPOINTMENT_UPDATED"
    APPOINTMENT_DELETED = "APPOINTMENT_DELETED"

    # Tabelas auxiliares
    LOOKUP_CHANGED = "LOOKUP_CHANGED"

    # Controle de acesso
    ACTION_AUTHORIZED = "ACTION_AUTHORIZED"
    ACCESS_DENIED = "ACCESS_DENIED"
    GROUP_CREATED = "GROUP_CREATED"
    GROUP_MEMBER_ADDED = "GROUP_MEMBER_ADDED"
    GROUP_MEMBER_REMOVED = "GROUP_MEMBER_REMOVED"

    # Tempo real
    NOTIFICATION_SENT = "NOTIFICATION_SENT"
    CHAT_MESSAGE_SENT = "CHAT_MESSAGE_SENT"
    CHAT_ROOM_CREATED = "CHAT_ROOM_CREATED"
    CHAT_MEMBER_ADDED = "CHAT_MEMBER_ADDED"
    CHAT_MEMBER_REMOVED = "CHAT_MEMBER_REMOVED"

    # Analytics
    ANALYTICS_CACHE_CLEARED = "ANALYTICS_CACHE_CLEARED"
    DATA_EXPORT = "DATA_EXPORT"


def get_client_ip(request: Optional[Request]) -> str:
    """
    SECURITY: Extrai IP real do cliente considerando proxies.
    """
    if not request:
        return "unknown"

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # X-Forwarded-For pode ter múltiplos IPs, pega o primeiro (cliente original)
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host

    return "unknown"


def mask_sensitive_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    SECURITY: Remove ou mascara dados sensíveis antes de logar.
    """
    sensitive_keys = {
        "password", "senha", "secret", "token", "api_key", "apikey",
        "authorization", "auth", "credential", "hashed_password"
    }

    masked = {}
    for key, value in data.items():
        key_lower = str(key).lower()

        if any(s in key_lower for s in sensitive_keys):
            masked[key] = "[REDACTED]"
        elif isinstance(value, dict):
            masked[key] = mask_sensitive_data(value)
        elif isinstance(value, str) and len(value) > 100:
            masked[key] = value[:100] + "...[truncated]"
        else:
            masked[key] = value

    return masked


def _persist_audit_log(
    db: Session,
    event: AuditEvent,
    user_id: Optional[int],
    request: Optional[Request],
    details: Optional[Dict[str, Any]],
    entity_type: Optional[str],
    entity_id: Optional[str],
    old_values: Optional[Dict[str, Any]],
    new_values: Optional[Dict[str, Any]],
):
    """Grava o evento na tabela audit_logs. Falhas de gravação não interrompem a operação auditada."""
    from sistemas.permissoes.models import AuditLog

    def _json_safe(values: Optional[Dict[str, Any]]):
        if not values:
            return None
        return json.loads(json.dumps(mask_sensitive_data(values), ensure_ascii=False, default=str))

    registro = AuditLog(
        user_id=user_id,
        action=event.value,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        old_values=_json_safe(old_values),
        new_values=_json_safe(new_values or details),
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("User-Agent", "unknown")[:255] if request else None,
    )
    try:
        db.add(registro)
        db.commit()
    except Exception as e:
        db.rollback()
        db_logger.error(f"Erro ao gravar audit log {event.value}: {e}")


def log_audit_event(
    event: AuditEvent,
    user_id: Optional[int] = None,
    username: Optional[str] = None,
    request: Optional[Request] = None,
    details: Optional[Dict[str, Any]] = None,
    success: bool = True,
    severity: str = "INFO",
    db: Optional[Session] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[Any] = None,
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
):
    """
    SECURITY: Registra evento de auditoria.

    Args:
        event: Tipo do evento (AuditEvent enum)
        user_id: ID do usuário (se aplicável)
        username: E-mail do usuário (se aplicável)
        request: Objeto Request do FastAPI (para extrair IP, user-agent, etc.)
        details: Detalhes adicionais do evento
        success: Se a ação foi bem sucedida
        severity: Nível de severidade (INFO, WARNING, ERROR, CRITICAL)
        db: Sessão do banco; quando informada, o evento também vai para audit_logs
        entity_type / entity_id: Recurso afetado
        old_values / new_values: Estado antes/depois da alteração

    Example:
        log_audit_event(
            AuditEvent.PROCESS_CREATED,
            user_id=user.id,
            request=request,
            db=db,
            entity_type="processo",
            entity_id=processo.id,
            new_values={"numero_processo": processo.numero_processo}
        )
    """
    from middleware.request_id import get_request_id

    request_id = get_request_id()
    if not request_id and request is not None:
        request_id = getattr(request.state, 'request_id', None)

    audit_record = {
        "event": event.value,
        "timestamp": get_utc_now().isoformat(),
        "success": success,
        "user_id": user_id,
        "username": username,
        "ip_address": get_client_ip(request),
        "user_agent": request.headers.get("User-Agent", "unknown") if request else "unknown",
        "path": str(request.url.path) if request else "unknown",
        "method": request.method if request else "unknown",
        "request_id": request_id,
    }

    if entity_type:
        audit_record["entity_type"] = entity_type
        audit_record["entity_id"] = str(entity_id) if entity_id is not None else None

    if details:
        audit_record["details"] = mask_sensitive_data(details)

    log_message = json.dumps(audit_record, ensure_ascii=False, default=str)

    if severity == "CRITICAL":
        audit_logger.critical(log_message)
    elif severity == "ERROR":
        audit_logger.error(log_message)
    elif severity == "WARNING":
        audit_logger.warning(log_message)
    else:
        audit_logger.info(log_message)

    if db is not None:
        _persist_audit_log(
            db, event, user_id, request, details,
            entity_type, entity_id, old_values, new_values
        )


# ============================================
# Funções de conveniência para eventos comuns
# ============================================

def log_login_success(user_id: int, username: str, request: Request):
    """Registra login bem sucedido"""
    log_audit_event(
        AuditEvent.AUTH_LOGIN_SUCCESS,
        user_id=user_id,
        username=username,
        request=request
    )


def log_login_failure(username: str, request: Request, reason: str = "invalid_credentials"):
    """Registra falha de login"""
    log_audit_event(
        AuditEvent.AUTH_LOGIN_FAILURE,
        username=username,
        request=request,
        details={"reason": reason},
        success=False,
        severity="WARNING"
    )


def log_logout(user_id: int, username: str, request: Request):
    """Registra logout"""
    log_audit_event(
        AuditEvent.AUTH_LOGOUT,
        user_id=user_id,
        username=username,
        request=request
    )


def log_password_change(user_id: int, username: str, request: Request, changed_by: Optional[str] = None):
    """Registra alteração de senha"""
    log_audit_event(
        AuditEvent.AUTH_PASSWORD_CHANGE,
        user_id=user_id,
        username=username,
        request=request,
        details={"changed_by": changed_by or username}
    )


def log_access_denied(user_id: Optional[int], username: Optional[str], request: Optional[Request], reason: str):
    """Registra tentativa de acesso negado"""
    log_audit_event(
        AuditEvent.ACCESS_DENIED,
        user_id=user_id,
        username=username,
        request=request,
        details={"reason": reason},
        success=False,
        severity="WARNING"
    )


def log_data_export(
    user_id: int,
    username: str,
    request: Request,
    export_type: str,
    record_count: int,
    format: str = "unknown"
):
    """Registra exportação de dados para compliance."""
    log_audit_event(
        AuditEvent.DATA_EXPORT,
        user_id=user_id,
        username=username,
        request=request,
        details={
            "export_type": export_type,
            "record_count": record_count,
            "format": format
        }
    )


def log_performance(operation: str, duration_ms: float, **context):
    """Registra a duração de uma operação lenta ou relevante."""
    perf_logger = get_logger("performance")
    if duration_ms > 1000:
        perf_logger.warning("Operação lenta", operation=operation, duration_ms=round(duration_ms, 2), **context)
    else:
        perf_logger.info("Operação concluída", operation=operation, duration_ms=round(duration_ms, 2), **context)
