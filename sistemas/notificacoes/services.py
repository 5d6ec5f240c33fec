# sistemas/notificacoes/services.py
"""
Serviço de notificações.

Cada usuário tem uma lista em notifications:{user_id} (mais recente primeiro,
no máximo 50 itens, TTL de 24h). O envio empurra o evento `notification`
para a sala user_{id} do WebSocket e grava a notificação na lista.
E-mail é opcional e depende das preferências do usuário.
"""

import copy
import html
import logging
import random
import string
import time
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from auth.models import User
from config import (
    MAX_NOTIFICATIONS_PER_USER, NOTIFICATIONS_TTL, NOTIFICATION_SETTINGS_TTL,
    NOTIFICATIONS_RETENTION_DAYS
)
from database.connection import SessionLocal
from services.email_service import send_email
from services.realtime import manager
from services.redis_service import redis_service
from sistemas.notificacoes.constants import NOTIFICATION_TEMPLATES, DEFAULT_NOTIFICATION_SETTINGS
from utils.audit import AuditEvent, log_audit_event
from utils.timezone import now_utc, parse_iso, format_local, as_utc

logger = logging.getLogger(__name__)


def generate_id(prefix: str) -> str:
    """Id no formato <prefixo>_<epoch ms>_<9 caracteres aleatórios>."""
    sufixo = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{prefix}_{int(time.time() * 1000)}_{sufixo}"


def _notifications_key(user_id: int) -> str:
    return f"notifications:{user_id}"


def get_notification_templates() -> Dict[str, Dict[str, str]]:
    return copy.deepcopy(NOTIFICATION_TEMPLATES)


def render_message(template_message: str, variables: Dict[str, Any]) -> str:
    """Substitui {variavel} pelos valores informados. Placeholders sem valor ficam como estão."""
    message = template_message
    for key, value in (variables or {}).items():
        message = message.replace(f"{{{key}}}", str(value))
    return message


# ==========================================
# Envio
# ==========================================

async def send_realtime_notification(user_id: int, notification: Dict[str, Any]) -> bool:
    """Empurra a notificação pelo WebSocket e grava no topo da lista do usuário."""
    try:
        await manager.emit_to_user(user_id, "notification", notification)

        key = _notifications_key(user_id)
        notifications = await redis_service.get(key) or []
        notifications.insert(0, {
            **notification,
            "timestamp": now_utc().isoformat(),
            "read": False,
        })
        del notifications[MAX_NOTIFICATIONS_PER_USER:]

        return await redis_service.set(key, notifications, NOTIFICATIONS_TTL)
    except Exception as e:
        logger.error(f"Erro ao enviar notificação em tempo real para usuário {user_id}: {e}")
        return False


async def get_user_email(user_id: int, db: Optional[Session] = None) -> Optional[str]:
    cached = await redis_service.get_cached_user(user_id)
    if cached and cached.get("email"):
        return cached["email"]

    own_session = db is None
    db = db or SessionLocal()
    try:
        user = db.query(User).filter(User.id == user_id).first()
        return user.email if user else None
    finally:
        if own_session:
            db.close()


def generate_email_html(notification: Dict[str, Any]) -> str:
    title = html.escape(notification["title"])
    message = html.escape(notification["message"])
    enviado_em = format_local(now_utc(), "%d/%m/%Y %H:%M")
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{title}</title>
    <style>
        body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
        .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
        .header {{ background: #007bff; color: white; padding: 20px; text-align: center; }}
        .content {{ padding: 20px; background: #f9f9f9; }}
        .footer {{ padding: 10px; text-align: center; font-size: 12px; color: #666; }}
        .priority-high {{ border-left: 4px solid #dc3545; }}
        .priority-medium {{ border-left: 4px solid #ffc107; }}
        .priority-low {{ border-left: 4px solid #28a745; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header"><h1>NPJ UFMT</h1></div>
        <div class="content priority-{notification.get('priority', 'medium')}">
            <h2>{title}</h2>
            <p>{message}</p>
            <p><small>Enviado em: {enviado_em}</small></p>
        </div>
        <div class="footer">
            <p>Este é um email automático do Sistema NPJ UFMT. Não responda este email.</p>
        </div>
    </div>
</body>
</html>"""


async def create_notification_from_template(
    template_key: str,
    user_id: int,
    variables: Optional[Dict[str, Any]] = None,
    email: bool = False,
    db: Optional[Session] = None
) -> bool:
    """
    Monta a notificação a partir do template e envia ao usuário.

    Returns:
        False se o template não existir; True caso contrário
    """
    template = NOTIFICATION_TEMPLATES.get(template_key)
    if template is None:
        logger.error(f"Template de notificação não encontrado: {template_key}")
        return False

    variables = variables or {}
    notification = {
        "id": generate_id("notif"),
        "title": template["title"],
        "message": render_message(template["message"], variables),
        "icon": template["icon"],
        "priority": template["priority"],
        "type": template_key,
        "variables": variables,
    }

    await send_realtime_notification(user_id, notification)

    if email:
        settings = await get_user_notification_settings(user_id)
        if settings.get("emailEnabled") and template_key in settings.get("emailTypes", []):
            user_email = await get_user_email(user_id, db)
            if user_email:
                await send_email(user_email, notification["title"], generate_email_html(notification))

    log_audit_event(
        AuditEvent.NOTIFICATION_SENT,
        user_id=user_id,
        details={"template_key": template_key, "notification_id": notification["id"]},
    )
    return True


async def notify_users(
    user_ids: Iterable[Optional[int]],
    template_key: str,
    variables: Optional[Dict[str, Any]] = None,
    email: bool = False,
    exclude: Optional[int] = None
) -> int:
    """Envia o mesmo template a vários usuários (ids repetidos ou None ignorados)."""
    enviados = 0
    for user_id in {uid for uid in user_ids if uid is not None and uid != exclude}:
        if await create_notification_from_template(template_key, user_id, variables, email):
            enviados += 1
    return enviados


# ==========================================
# Preferências
# ==========================================

async def get_user_notification_settings(user_id: int) -> Dict[str, Any]:
    key = f"user_notification_settings:{user_id}"
    settings = await redis_service.get(key)
    if not settings:
        settings = copy.deepcopy(DEFAULT_NOTIFICATION_SETTINGS)
        await redis_service.set(key, settings, NOTIFICATION_SETTINGS_TTL)
    return settings


async def save_user_notification_settings(user_id: int, settings: Dict[str, Any]) -> bool:
    atual = await get_user_notification_settings(user_id)
    atual.update(settings)
    return await redis_service.set(f"user_notification_settings:{user_id}", atual, NOTIFICATION_SETTINGS_TTL)


# ==========================================
# Leitura
# ==========================================

async def get_all_notifications(user_id: int) -> List[Dict[str, Any]]:
    return await redis_service.get(_notifications_key(user_id)) or []


async def get_unread_notifications(user_id: int) -> List[Dict[str, Any]]:
    return [n for n in await get_all_notifications(user_id) if not n.get("read")]


async def mark_notification_as_read(user_id: int, notification_id: str) -> bool:
    """Retorna False se a notificação não existir na lista do usuário."""
    notifications = await get_all_notifications(user_id)
    for notification in notifications:
        if notification.get("id") == notification_id:
            notification["read"] = True
            await redis_service.set(_notifications_key(user_id), notifications, NOTIFICATIONS_TTL)
            return True
    return False


async def mark_all_notifications_as_read(user_id: int) -> bool:
    notifications = await get_all_notifications(user_id)
    if not notifications:
        return True
    for notification in notifications:
        notification["read"] = True
    return await redis_service.set(_notifications_key(user_id), notifications, NOTIFICATIONS_TTL)


async def cleanup_old_notifications() -> int:
    """
    Remove notificações com mais de NOTIFICATIONS_RETENTION_DAYS dias.

    Returns:
        Total de notificações removidas
    """
    logger.info("Limpeza de notificações antigas iniciada")
    cutoff = now_utc() - timedelta(days=NOTIFICATIONS_RETENTION_DAYS)
    removidas = 0

    for key in await redis_service.keys("notifications:*"):
        notifications = await redis_service.get(key) or []
        mantidas = []
        for n in notifications:
            ts = parse_iso(n.get("timestamp", ""))
            if ts is not None and as_utc(ts) > cutoff:
                mantidas.append(n)

        if len(mantidas) != len(notifications):
            removidas += len(notifications) - len(mantidas)
            await redis_service.set(key, mantidas, NOTIFICATIONS_TTL)

    logger.info(f"Limpeza de notificações antigas concluída ({removidas} removidas)")
    return removidas
