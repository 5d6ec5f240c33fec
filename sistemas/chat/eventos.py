# sistemas/chat/eventos.py
"""
Eventos recebidos pelo WebSocket /ws.

O cliente envia {"event": <nome>, "data": <payload>}; cada evento tem um
handler async (connection_id, user, data). Erros de chat voltam como
`chat_error`, eventos desconhecidos ou inválidos como `error`.
"""

import logging
from typing import Any, Awaitable, Callable, Dict

from database.connection import SessionLocal
from auth.models import User
from services.realtime import manager
from sistemas.chat import services as chat
from sistemas.chat.constants import PREFIXO_CONEXAO, LIMITE_MENSAGENS_PADRAO, sala_conexao
from sistemas.chat.exceptions import ChatError
from sistemas.notificacoes.services import mark_notification_as_read, mark_all_notifications_as_read
from sistemas.processos.models import Processo
from sistemas.processos.services import pode_acessar
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

Handler = Callable[[str, Dict[str, Any], Any], Awaitable[None]]


def _pode_acompanhar_processo(user_id: int, processo_id: Any) -> bool:
    try:
        processo_id = int(processo_id)
    except (TypeError, ValueError):
        return False

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.id == user_id).first()
        processo = db.query(Processo).filter(Processo.id == processo_id).first()
        return user is not None and processo is not None and pode_acessar(user, processo)
    finally:
        db.close()


def _pode_entrar(user: Dict[str, Any], room: str) -> bool:
    """Salas de notificação: user_{id} só a própria, processo_{id} com acesso ao processo."""
    if not room or room.startswith(PREFIXO_CONEXAO):
        return False
    if room.startswith("user_"):
        return room == f"user_{user['id']}"
    if room.startswith("processo_"):
        return _pode_acompanhar_processo(user["id"], room[len("processo_"):])
    return True


async def _erro(connection_id: str, mensagem: str):
    await manager.send(connection_id, "error", {"message": mensagem})


# ==========================================
# Notificações e salas de acompanhamento
# ==========================================

async def on_inscrever(connection_id: str, user: Dict[str, Any], data: Any):
    processo_id = (data or {}).get("processoId") if isinstance(data, dict) else None
    if processo_id is None:
        return
    if not _pode_acompanhar_processo(user["id"], processo_id):
        await _erro(connection_id, "Acesso negado ao processo")
        return
    manager.join(connection_id, f"processo_{processo_id}")


async def on_join_room(connection_id: str, user: Dict[str, Any], data: Any):
    room = data if isinstance(data, str) else None
    if not _pode_entrar(user, room):
        await _erro(connection_id, "Acesso negado à sala")
        return
    manager.join(connection_id, room)
    logger.info(f"Usuário {user['id']} entrou na sala {room}")


async def on_leave_room(connection_id: str, user: Dict[str, Any], data: Any):
    if isinstance(data, str) and not data.startswith(PREFIXO_CONEXAO) and data != f"user_{user['id']}":
        manager.leave(connection_id, data)


async def on_mark_notification_read(connection_id: str, user: Dict[str, Any], data: Any):
    await mark_notification_as_read(user["id"], str(data))
    await manager.send(connection_id, "notification_marked_read", data)


async def on_mark_all_notifications_read(connection_id: str, user: Dict[str, Any], data: Any):
    await mark_all_notifications_as_read(user["id"])
    await manager.send(connection_id, "all_notifications_marked_read", None)


# ==========================================
# Chat
# ==========================================

async def on_join_chat_room(connection_id: str, user: Dict[str, Any], data: Any):
    room_id = data if isinstance(data, str) else None
    if not await chat.check_room_access(user["id"], room_id):
        await manager.send(connection_id, "chat_error", {"message": "Acesso negado à sala de chat"})
        return

    manager.join(connection_id, sala_conexao(room_id))
    mensagens = await chat.get_room_messages(room_id, LIMITE_MENSAGENS_PADRAO)
    await manager.send(connection_id, "room_messages", {"roomId": room_id, "messages": mensagens})
    await manager.emit_to_room(
        sala_conexao(room_id),
        "user_joined_room",
        {"userId": user["id"], "roomId": room_id, "timestamp": now_utc().isoformat()},
        exclude=connection_id,
    )
    logger.info(f"Usuário {user['id']} entrou na sala de chat {room_id}")


async def _saiu_da_sala(connection_id: str, user_id: int, room_id: str):
    await manager.emit_to_room(
        sala_conexao(room_id),
        "user_left_room",
        {"userId": user_id, "roomId": room_id, "timestamp": now_utc().isoformat()},
        exclude=connection_id,
    )


async def on_leave_chat_room(connection_id: str, user: Dict[str, Any], data: Any):
    if not isinstance(data, str):
        return
    manager.leave(connection_id, sala_conexao(data))
    if user["id"] not in chat.get_live_members(data):
        await _saiu_da_sala(connection_id, user["id"], data)


async def on_send_message(connection_id: str, user: Dict[str, Any], data: Any):
    data = data if isinstance(data, dict) else {}
    try:
        await chat.send_message(
            user["id"],
            data.get("roomId"),
            data.get("message"),
            data.get("type") or "text",
            data.get("attachments"),
        )
    except ChatError as e:
        await manager.send(connection_id, "chat_error", {"message": str(e)})


async def on_mark_message_read(connection_id: str, user: Dict[str, Any], data: Any):
    try:
        await chat.mark_message_read(user["id"], str(data))
    except ChatError as e:
        await manager.send(connection_id, "chat_error", {"message": str(e)})


async def _digitando(connection_id: str, user: Dict[str, Any], room_id: Any, digitando: bool):
    if not isinstance(room_id, str) or connection_id not in manager.rooms.get(sala_conexao(room_id), set()):
        return
    await manager.emit_to_room(
        sala_conexao(room_id),
        "user_typing",
        {"userId": user["id"], "roomId": room_id, "isTyping": digitando},
        exclude=connection_id,
    )


async def on_typing_start(connection_id: str, user: Dict[str, Any], data: Any):
    await _digitando(connection_id, user, data, True)


async def on_typing_stop(connection_id: str, user: Dict[str, Any], data: Any):
    await _digitando(connection_id, user, data, False)


async def on_ping(connection_id: str, user: Dict[str, Any], data: Any):
    await manager.send(connection_id, "pong", {"timestamp": now_utc().isoformat()})


EVENT_HANDLERS: Dict[str, Handler] = {
    "inscrever": on_inscrever,
    "join_room": on_join_room,
    "leave_room": on_leave_room,
    "mark_notification_read": on_mark_notification_read,
    "mark_all_notifications_read": on_mark_all_notifications_read,
    "join_chat_room": on_join_chat_room,
    "leave_chat_room": on_leave_chat_room,
    "send_message": on_send_message,
    "mark_message_read": on_mark_message_read,
    "typing_start": on_typing_start,
    "typing_stop": on_typing_stop,
    "ping": on_ping,
}


async def dispatch(connection_id: str, payload: Any):
    """Encaminha a mensagem recebida ao handler do evento."""
    user = manager.user_for(connection_id)
    if user is None:
        return
    if not isinstance(payload, dict) or payload.get("event") not in EVENT_HANDLERS:
        await _erro(connection_id, "Evento desconhecido")
        return

    handler = EVENT_HANDLERS[payload["event"]]
    try:
        await handler(connection_id, user, payload.get("data"))
    except Exception as e:
        logger.error(f"Erro no evento '{payload['event']}' do usuário {user['id']}: {e}")
        await _erro(connection_id, "Erro ao processar evento")


async def handle_disconnect(connection_id: str):
    """Remove a conexão e avisa as salas de chat que o usuário deixou."""
    user = manager.user_for(connection_id)
    salas = manager.disconnect(connection_id)
    if user is None:
        return

    for sala in salas:
        if not sala.startswith(PREFIXO_CONEXAO):
            continue
        room_id = sala[len(PREFIXO_CONEXAO):]
        if user["id"] not in chat.get_live_members(room_id):
            await _saiu_da_sala(connection_id, user["id"], room_id)
