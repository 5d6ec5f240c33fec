# sistemas/tabelas_auxiliares/router.py
"""
Router das tabelas auxiliares.

Leitura para qualquer usuário autenticado; escrita restrita a administradores.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from auth.dependencies import get_current_active_user, require_admin
from auth.models import User
from database.connection import get_db
from sistemas.tabelas_auxiliares.exceptions import (
    TabelaNaoEncontradaError, ItemNaoEncontradoError, NomeDuplicadoError, ItemEmUsoError
)
from sistemas.tabelas_auxiliares.schemas import ItemAuxiliarCreate, ItemAuxiliarResponse
from sistemas.tabelas_auxiliares.services import (
    listar_itens, criar_item, atualizar_item, remover_item
)
from utils.audit import AuditEvent, log_audit_event

router = APIRouter(prefix="/api/aux", tags=["Tabelas Auxiliares"])


def _traduzir_erro(e: Exception) -> HTTPException:
    if isinstance(e, TabelaNaoEncontradaError):
        return HTTPException(status_code=404, detail="Tabela não encontrada")
    if isinstance(e, ItemNaoEncontradoError):
        return HTTPException(status_code=404, detail="Item não encontrado")
    if isinstance(e, NomeDuplicadoError):
        return HTTPException(status_code=400, detail="Já existe um item com este nome")
    if isinstance(e, ItemEmUsoError):
        return HTTPException(status_code=409, detail="Item está em uso por processos e não pode ser removido")
    return HTTPException(status_code=500, detail="Erro interno do servidor")


@router.get("/{tabela}", response_model=List[ItemAuxiliarResponse])
async def listar(
    tabela: str,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        return listar_itens(db, tabela)
    except TabelaNaoEncontradaError as e:
        raise _traduzir_erro(e)


@router.post("/{tabela}", response_model=ItemAuxiliarResponse, status_code=201)
async def criar(
    tabela: str,
    dados: ItemAuxiliarCreate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    try:
        item = criar_item(db, tabela, dados.nome)
    except (TabelaNaoEncontradaError, NomeDuplicadoError) as e:
        raise _traduzir_erro(e)

    log_audit_event(
        AuditEvent.LOOKUP_CHANGED, user_id=current_user.id, username=current_user.email,
        request=request, details={"tabela": tabela, "operacao": "create", "nome": item.nome}
    )
    return item


@router.put("/{tabela}/{item_id}", response_model=ItemAuxiliarResponse)
async def atualizar(
    tabela: str,
    item_id: int,
    dados: ItemAuxiliarCreate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    try:
        item = atualizar_item(db, tabela, item_id, dados.nome)
    except (TabelaNaoEncontradaError, ItemNaoEncontradoError, NomeDuplicadoError) as e:
        raise _traduzir_erro(e)

    log_audit_event(
        AuditEvent.LOOKUP_CHANGED, user_id=current_user.id, username=current_user.email,
        request=request, details={"tabela": tabela, "operacao": "update", "id": item_id, "nome": item.nome}
    )
    return item


@router.delete("/{tabela}/{item_id}")
async def remover(
    tabela: str,
    item_id: int,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    try:
        remover_item(db, tabela, item_id)
    except (TabelaNaoEncontradaError, ItemNaoEncontradoError, ItemEmUsoError) as e:
        raise _traduzir_erro(e)

    log_audit_event(
        AuditEvent.LOOKUP_CHANGED, user_id=current_user.id, username=current_user.email,
        request=request, details={"tabela": tabela, "operacao": "delete", "id": item_id}
    )
    return {"message": "Item removido com sucesso"}
