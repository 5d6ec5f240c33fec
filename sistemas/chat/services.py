# sistemas/chat/services.py
"""
Serviço de chat.

Salas:
- general: qualquer usuário autenticado
- process_{id}: Admin, criador, responsável ou associados do processo
- user_{id}: chat privado; o usuário alvo precisa existir e estar ativo
- room_<ms>_<rand9>: sala personalizada em chat_room:{id} (membros e admins)

Mensagens ficam em chat_message:{id} por 30 dias e o índice da sala
(chat_room_messages:{sala}) guarda os ids mais recentes primeiro, até 1000.
"""

import logging
import re
import uuid
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy.orm import Session

from auth.models import User, Role
from config import CHAT_TTL
from database.connection import SessionLocal
from services.realtime import manager
from services.redis_service import redis_service
from sistemas.chat.constants import (
    SALA_GERAL, PREFIXO_PROCESSO, PREFIXO_PRIVADA, CHAVE_INDICE_SALAS,
    MAX_MENSAGENS_SALA, LIMITE_MENSAGENS_PADRAO, LIMITE_BUSCA_PADRAO,
    TAMANHO_MINIMO_BUSCA, TAMANHO_PREVIA, MAX_MEMBROS_PADRAO,
    TipoMensagem, TipoSala, chave_sala, chave_mensagem, chave_mensagens_sala, sala_conexao
)
from sistemas.chat.exceptions import (
    SalaNaoEncontradaError, AcessoSalaNegadoError, MensagemNaoEncontradaError,
    MensagemInvalidaError, NaoMembroError, MembroJaExisteError,
    MembroNaoEncontradoError, SalaCheiaError
)
from sistemas.notificacoes.services import create_notification_from_template, generate_id
from sistemas.processos.models import Processo
from sistemas.processos.services import pode_acessar, query_visiveis
from utils.audit import AuditEvent, log_audit_event
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]*>")


def sanitize_message(message: str) -> str:
    """Remove blocos <script> e demais tags HTML."""
    return _TAG_RE.sub("", _SCRIPT_RE.sub("", message or "")).strip()


def sanitize_attachment(attachment: Dict[str, Any]) -> Dict[str, Any]:
    return {campo: attachment.get(campo) for campo in ("name", "type", "size", "url")}


def _abrir_sessao(db: Optional[Session]):
    return (db, False) if db is not None else (SessionLocal(), True)


# ==========================================
# Acesso às salas
# ==========================================

async def get_room(room_id: str) -> Optional[Dict[str, Any]]:
    return await redis_service.get(chave_sala(room_id))


def _participa(room: Dict[str, Any], user_id: int) -> bool:
    return user_id in room.get("members", []) or user_id in room.get("admins", [])


def _id_numerico(room_id: str, prefixo: str) -> Optional[int]:
    sufixo = room_id[len(prefixo):]
    return int(sufixo) if sufixo.isdigit() else None


async def check_room_access(user_id: int, room_id: str, db: Optional[Session] = None) -> bool:
    """Verifica se o usuário pode ler e escrever na sala."""
    if not room_id:
        return False
    if room_id == SALA_GERAL:
        return True

    if room_id.startswith(PREFIXO_PROCESSO) or room_id.startswith(PREFIXO_PRIVADA):
        db, propria = _abrir_sessao(db)
        try:
            user = db.query(User).filter(User.id == user_id).first()
            if user is None or not user.is_active:
                return False

            if room_id.startswith(PREFIXO_PROCESSO):
                processo_id = _id_numerico(room_id, PREFIXO_PROCESSO)
                if processo_id is None:
                    return False
                processo = db.query(Processo).filter(Processo.id == processo_id).first()
                return processo is not None and pode_acessar(user, processo)

            alvo_id = _id_numerico(room_id, PREFIXO_PRIVADA)
            if alvo_id is None:
                return False
            alvo = db.query(User).filter(User.id == alvo_id).first()
            return alvo is not None and bool(alvo.is_active)
        finally:
            if propria:
                db.close()

    room = await get_room(room_id)
    return room is not None and _participa(room, user_id)


def get_live_members(room_id: str) -> Set[int]:
    """Usuários conectados que entraram na sala."""
    return manager.room_user_ids(sala_conexao(room_id))


async def get_room_name(room_id: str) -> str:
    if room_id == SALA_GERAL:
        return "Sala Geral"
    if room_id.startswith(PREFIXO_PROCESSO):
        return f"Processo {room_id[len(PREFIXO_PROCESSO):]}"
    if room_id.startswith(PREFIXO_PRIVADA):
        return "Chat Privado"
    room = await get_room(room_id)
    return (room or {}).get("name") or "Sala de Chat"


def get_user_name(user_id: int, db: Optional[Session] = None) -> str:
    db, propria = _abrir_sessao(db)
    try:
        user = db.query(User).filter(User.id == user_id).first()
        return user.nome if user else "Usuário Desconhecido"
    finally:
        if propria:
            db.close()


# ==========================================
# Mensagens
# ==========================================

async def save_message(message: Dict[str, Any]) -> None:
    """Grava a mensagem e a coloca no topo do índice da sala."""
    await redis_service.set(chave_mensagem(message["id"]), message, CHAT_TTL)

    indice_key = chave_mensagens_sala(message["roomId"])
    ids = await redis_service.get(indice_key) or []
    ids.insert(0, message["id"])

    if len(ids) > MAX_MENSAGENS_SALA:
        removidos = ids[MAX_MENSAGENS_SALA:]
        ids = ids[:MAX_MENSAGENS_SALA]
        await redis_service.delete(*[chave_mensagem(mid) for mid in removidos])

    await redis_service.set(indice_key, ids, CHAT_TTL)

    log_audit_event(
        AuditEvent.CHAT_MESSAGE_SENT,
        user_id=message["senderId"],
        details={
            "message_id": message["id"],
            "room_id": message["roomId"],
            "type": message["type"],
            "has_attachments": bool(message["attachments"]),
        },
    )


async def get_message(message_id: str) -> Optional[Dict[str, Any]]:
    return await redis_service.get(chave_mensagem(message_id))


async def _carregar_mensagens(ids: Iterable[str]) -> List[Dict[str, Any]]:
    mensagens = []
    for message_id in ids:
        mensagem = await redis_service.get(chave_mensagem(message_id))
        if mensagem:
            mensagens.append(mensagem)
    return mensagens


async def get_room_messages(room_id: str, limit: int = LIMITE_MENSAGENS_PADRAO) -> List[Dict[str, Any]]:
    """As `limit` mensagens mais recentes da sala, em ordem cronológica."""
    ids = await redis_service.get(chave_mensagens_sala(room_id)) or []
    mensagens = await _carregar_mensagens(ids[:limit])
    return sorted(mensagens, key=lambda m: m["timestamp"])


async def send_message(
    sender_id: int,
    room_id: Optional[str],
    message: Optional[str],
    type: str = TipoMensagem.TEXT,
    attachments: Optional[List[Dict[str, Any]]] = None
) -> Dict[str, Any]:
    """
    Grava a mensagem, transmite `new_message` para a sala e notifica
    membros offline.

    Raises:
        MensagemInvalidaError: sala ou texto ausente (ou vazio após sanitizar)
        NaoMembroError: remetente não entrou na sala
    """
    if not room_id or not message:
        raise MensagemInvalidaError("Dados inválidos")
    if sender_id not in get_live_members(room_id):
        raise NaoMembroError("Você não está nesta sala")

    texto = sanitize_message(message)
    if not texto:
        raise MensagemInvalidaError("Mensagem vazia")

    mensagem = {
        "id": str(uuid.uuid4()),
        "roomId": room_id,
        "senderId": sender_id,
        "message": texto,
        "type": type if type in TipoMensagem.TODOS else TipoMensagem.TEXT,
        "attachments": [sanitize_attachment(a) for a in (attachments or []) if isinstance(a, dict)],
        "timestamp": now_utc().isoformat(),
        "edited": False,
        "readBy": [sender_id],
    }

    await save_message(mensagem)
    await manager.emit_to_room(sala_conexao(room_id), "new_message", mensagem)
    await send_offline_notifications(room_id, mensagem)

    logger.info(f"Mensagem enviada na sala {room_id} por usuário {sender_id}")
    return mensagem


async def get_offline_members(room_id: str, sender_id: int) -> Set[int]:
    """(membros gravados ∪ membros ao vivo) − usuários online − remetente"""
    membros = set(get_live_members(room_id))
    room = await get_room(room_id)
    if room:
        membros.update(room.get("members", []))
        membros.update(room.get("admins", []))
    return membros - manager.online_user_ids() - {sender_id}


async def send_offline_notifications(room_id: str, mensagem: Dict[str, Any]) -> int:
    offline = await get_offline_members(room_id, mensagem["senderId"])
    if not offline:
        return 0

    variaveis = {
        "senderName": get_user_name(mensagem["senderId"]),
        "roomName": await get_room_name(room_id),
        "messagePreview": mensagem["message"][:TAMANHO_PREVIA],
    }
    enviados = 0
    for user_id in offline:
        if await create_notification_from_template("CHAT_MESSAGE", user_id, variaveis, email=True):
            enviados += 1
    return enviados


async def mark_message_read(user_id: int, message_id: str) -> Dict[str, Any]:
    """
    Inclui o usuário em readBy e avisa a sala com `message_read`.

    Raises:
        MensagemNaoEncontradaError
    """
    key = chave_mensagem(message_id)
    mensagem = await redis_service.get(key)
    if not mensagem:
        raise MensagemNaoEncontradaError(f"Mensagem {message_id} não encontrada")

    if user_id not in mensagem["readBy"]:
        mensagem["readBy"].append(user_id)
        await redis_service.set(key, mensagem, CHAT_TTL)
        await manager.emit_to_room(sala_conexao(mensagem["roomId"]), "message_read", {
            "messageId": message_id,
            "readBy": user_id,
            "timestamp": now_utc().isoformat(),
        })
    return mensagem


# ==========================================
# Salas personalizadas
# ==========================================

async def create_room(dados: Dict[str, Any], creator_id: int) -> Dict[str, Any]:
    room_id = generate_id("room")
    membros = list(dict.fromkeys(dados.get("members") or [creator_id]))

    room = {
        "id": room_id,
        "name": dados["name"],
        "description": dados.get("description") or "",
        "type": TipoSala.CUSTOM,
        "admins": [creator_id],
        "members": membros,
        "settings": {
            "allowFileUpload": dados.get("allowFileUpload", True),
            "maxMembers": dados.get("maxMembers") or MAX_MEMBROS_PADRAO,
            "isPrivate": dados.get("isPrivate", False),
        },
        "createdAt": now_utc().isoformat(),
        "createdBy": creator_id,
    }
    await redis_service.set(chave_sala(room_id), room, CHAT_TTL)

    indice = await redis_service.get(CHAVE_INDICE_SALAS) or []
    indice.append(room_id)
    await redis_service.set(CHAVE_INDICE_SALAS, indice, CHAT_TTL)

    log_audit_event(
        AuditEvent.CHAT_ROOM_CREATED,
        user_id=creator_id,
        details={"room_id": room_id, "name": room["name"], "members": membros},
    )
    return room


async def get_unread_count(user_id: int, room_id: str) -> int:
    ids = await redis_service.get(chave_mensagens_sala(room_id)) or []
    mensagens = await _carregar_mensagens(ids)
    return sum(1 for m in mensagens if user_id not in m.get("readBy", []))


async def get_last_activity(room_id: str, padrao: Optional[str] = None) -> str:
    ids = await redis_service.get(chave_mensagens_sala(room_id)) or []
    if ids:
        ultima = await redis_service.get(chave_mensagem(ids[0]))
        if ultima:
            return ultima["timestamp"]
    return padrao or now_utc().isoformat()


async def get_user_rooms(user_id: int) -> List[Dict[str, Any]]:
    """Salas personalizadas do usuário, atividade mais recente primeiro."""
    salas = []
    for room_id in await redis_service.get(CHAVE_INDICE_SALAS) or []:
        room = await get_room(room_id)
        if not room or not _participa(room, user_id):
            continue
        salas.append({
            **room,
            "unreadCount": await get_unread_count(user_id, room_id),
            "lastActivity": await get_last_activity(room_id, room.get("createdAt")),
        })
    return sorted(salas, key=lambda s: s["lastActivity"], reverse=True)


async def _salvar_room(room: Dict[str, Any], alterado_por: int):
    room["updatedAt"] = now_utc().isoformat()
    room["updatedBy"] = alterado_por
    await redis_service.set(chave_sala(room["id"]), room, CHAT_TTL)


async def add_member(room_id: str, new_member_id: int, user: User) -> Dict[str, Any]:
    """
    Raises:
        SalaNaoEncontradaError, AcessoSalaNegadoError, MembroJaExisteError, SalaCheiaError
    """
    room = await get_room(room_id)
    if not room:
        raise SalaNaoEncontradaError(f"Sala {room_id} não encontrada")
    if user.id not in room["admins"] and user.role != Role.ADMIN:
        raise AcessoSalaNegadoError("Apenas admins podem adicionar membros")
    if new_member_id in room["members"]:
        raise MembroJaExisteError("Usuário já é membro da sala")
    if len(room["members"]) >= room.get("settings", {}).get("maxMembers", MAX_MEMBROS_PADRAO):
        raise SalaCheiaError("Sala atingiu o número máximo de membros")

    room["members"].append(new_member_id)
    await _salvar_room(room, user.id)

    log_audit_event(
        AuditEvent.CHAT_MEMBER_ADDED,
        user_id=user.id,
        details={"room_id": room_id, "new_member_id": new_member_id},
    )
    return room


async def remove_member(room_id: str, member_id: int, user: User) -> Dict[str, Any]:
    """
    Admin da sala, Admin do sistema ou o próprio membro podem remover.

    Raises:
        SalaNaoEncontradaError, AcessoSalaNegadoError, MembroNaoEncontradoError
    """
    room = await get_room(room_id)
    if not room:
        raise SalaNaoEncontradaError(f"Sala {room_id} não encontrada")
    if user.id not in room["admins"] and user.role != Role.ADMIN and user.id != member_id:
        raise AcessoSalaNegadoError("Sem permissão para remover este membro")
    if member_id not in room["members"]:
        raise MembroNaoEncontradoError("Usuário não é membro da sala")

    room["members"] = [m for m in room["members"] if m != member_id]
    await _salvar_room(room, user.id)

    log_audit_event(
        AuditEvent.CHAT_MEMBER_REMOVED,
        user_id=user.id,
        details={"room_id": room_id, "removed_member_id": member_id},
    )
    return room


def members_with_status(db: Session, member_ids: Iterable[int]) -> List[Dict[str, Any]]:
    ids = list(member_ids)
    if not ids:
        return []
    online = manager.online_user_ids()
    membros = db.query(User).filter(User.id.in_(ids)).order_by(User.nome).all()
    return [
        {"id": m.id, "nome": m.nome, "email": m.email, "role": m.role, "online": m.id in online}
        for m in membros
    ]


# ==========================================
# Busca
# ==========================================

async def accessible_rooms(db: Session, user: User) -> List[str]:
    """Sala geral, salas dos processos visíveis e salas personalizadas do usuário."""
    salas = [SALA_GERAL]
    salas += [f"{PREFIXO_PROCESSO}{p.id}" for p in query_visiveis(db, user).all()]
    salas += [r["id"] for r in await get_user_rooms(user.id)]
    return salas


async def search_messages(
    db: Session,
    user: User,
    query: str,
    room_id: Optional[str] = None,
    limit: int = LIMITE_BUSCA_PADRAO
) -> List[Dict[str, Any]]:
    """
    Busca (sem diferenciar maiúsculas) nas mensagens das salas acessíveis,
    mais recentes primeiro.

    Raises:
        MensagemInvalidaError: termo com menos de 2 caracteres
        AcessoSalaNegadoError: sem acesso à sala informada
    """
    termo = (query or "").strip().lower()
    if len(termo) < TAMANHO_MINIMO_BUSCA:
        raise MensagemInvalidaError("Query deve ter pelo menos 2 caracteres")

    if room_id:
        if not await check_room_access(user.id, room_id, db):
            raise AcessoSalaNegadoError("Acesso negado à sala de chat")
        salas = [room_id]
    else:
        salas = await accessible_rooms(db, user)

    resultados = []
    for sala in salas:
        ids = await redis_service.get(chave_mensagens_sala(sala)) or []
        for mensagem in await _carregar_mensagens(ids):
            if termo in mensagem.get("message", "").lower():
                resultados.append(mensagem)

    resultados.sort(key=lambda m: m["timestamp"], reverse=True)
    return resultados[:limit]
