# sistemas/chat/router.py
"""
Router do módulo de Chat.

Endpoints para salas personalizadas, histórico, leitura, membros,
usuários online e busca de mensagens. O envio de mensagens é feito pelo
WebSocket (evento send_message).
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from auth.dependencies import get_current_active_user
from auth.models import User
from database.connection import get_db
from services.realtime import manager
from sistemas.chat import services
from sistemas.chat.constants import LIMITE_MENSAGENS_PADRAO, LIMITE_BUSCA_PADRAO, MAX_MENSAGENS_SALA
from sistemas.chat.exceptions import (
    SalaNaoEncontradaError, AcessoSalaNegadoError, MensagemNaoEncontradaError,
    MensagemInvalidaError, MembroJaExisteError, MembroNaoEncontradoError, SalaCheiaError
)
from sistemas.chat.schemas import SalaCreate, MembroAdd

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["Chat"])

ERROS_CHAT = (
    SalaNaoEncontradaError, AcessoSalaNegadoError, MensagemNaoEncontradaError,
    MensagemInvalidaError, MembroJaExisteError, MembroNaoEncontradoError, SalaCheiaError,
)


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, (SalaNaoEncontradaError, MensagemNaoEncontradaError, MembroNaoEncontradoError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, AcessoSalaNegadoError):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, (MensagemInvalidaError, MembroJaExisteError, SalaCheiaError)):
        return HTTPException(status_code=400, detail=str(e))
    return HTTPException(status_code=500, detail="Erro interno do servidor")


async def _exigir_acesso(user: User, room_id: str, db: Session):
    if not await services.check_room_access(user.id, room_id, db):
        raise HTTPException(status_code=403, detail="Acesso negado à sala de chat")


@router.get("/rooms")
async def listar_salas(current_user: User = Depends(get_current_active_user)):
    """Salas personalizadas do usuário com contagem de não lidas"""
    return {"rooms": await services.get_user_rooms(current_user.id)}


@router.post("/rooms", status_code=201)
async def criar_sala(
    dados: SalaCreate,
    current_user: User = Depends(get_current_active_user)
):
    if not dados.name or not dados.name.strip():
        raise HTTPException(status_code=400, detail="Nome da sala é obrigatório")

    room = await services.create_room(
        {**dados.model_dump(), "name": dados.name.strip()}, current_user.id
    )
    return {"room": room}


@router.get("/rooms/{room_id}/messages")
async def listar_mensagens(
    room_id: str,
    limit: int = Query(LIMITE_MENSAGENS_PADRAO, ge=1, le=MAX_MENSAGENS_SALA),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    await _exigir_acesso(current_user, room_id, db)
    return {"messages": await services.get_room_messages(room_id, limit)}


@router.patch("/messages/{message_id}/read")
async def marcar_mensagem_lida(
    message_id: str,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    mensagem = await services.get_message(message_id)
    if mensagem:
        await _exigir_acesso(current_user, mensagem["roomId"], db)
    try:
        await services.mark_message_read(current_user.id, message_id)
    except ERROS_CHAT as e:
        raise _http_error(e)
    return {"message": "Mensagem marcada como lida"}


@router.get("/rooms/{room_id}/members")
async def listar_membros(
    room_id: str,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Membros da sala com indicação de quem está online"""
    await _exigir_acesso(current_user, room_id, db)

    room = await services.get_room(room_id)
    if room:
        ids, admins = room["members"], room["admins"]
    else:
        # Salas fixas (geral, processo, privada) não têm membros gravados
        ids, admins = services.get_live_members(room_id), []

    return {"members": services.members_with_status(db, ids), "admins": admins}


@router.post("/rooms/{room_id}/members")
async def adicionar_membro(
    room_id: str,
    dados: MembroAdd,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    if not dados.userId:
        raise HTTPException(status_code=400, detail="userId é obrigatório")
    if not db.query(User).filter(User.id == dados.userId, User.is_active == True).first():
        raise HTTPException(status_code=400, detail="Usuário não encontrado ou inativo")

    try:
        await services.add_member(room_id, dados.userId, current_user)
    except ERROS_CHAT as e:
        raise _http_error(e)
    return {"message": "Membro adicionado com sucesso"}


@router.delete("/rooms/{room_id}/members/{member_id}")
async def remover_membro(
    room_id: str,
    member_id: int,
    current_user: User = Depends(get_current_active_user)
):
    try:
        await services.remove_member(room_id, member_id, current_user)
    except ERROS_CHAT as e:
        raise _http_error(e)
    return {"message": "Membro removido com sucesso"}


@router.get("/online-users")
async def usuarios_online(current_user: User = Depends(get_current_active_user)):
    online = manager.online_users()
    return {"onlineUsers": online, "count": len(online)}


@router.get("/search")
async def buscar_mensagens(
    query: Optional[str] = Query(None),
    roomId: Optional[str] = Query(None),
    limit: int = Query(LIMITE_BUSCA_PADRAO, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        resultados = await services.search_messages(db, current_user, query, roomId, limit)
    except ERROS_CHAT as e:
        raise _http_error(e)
    return {"results": resultados, "count": len(resultados), "query": query.strip()}
