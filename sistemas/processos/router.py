# sistemas/processos/router.py
"""
Router do módulo de Processos.

Endpoints para:
- Listagem (com cache) e consulta
- Cadastro, edição, arquivamento e remoção
- Usuários associados
- Histórico de atualizações
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from auth.dependencies import get_current_active_user
from auth.models import User
from database.connection import get_db
from sistemas.notificacoes.services import create_notification_from_template, notify_users
from sistemas.permissoes.dependencies import authorize
from sistemas.processos.exceptions import (
    ProcessoNaoEncontradoError, AcessoNegadoError, NumeroDuplicadoError,
    ReferenciaInvalidaError, UsuarioJaAssociadoError, AssociacaoNaoEncontradaError
)
from sistemas.processos.schemas import (
    ProcessoCreate, ProcessoUpdate, ProcessoResponse, ProcessoListaResponse,
    AtualizacaoCreate, AtualizacaoResponse, UsuarioProcessoAdd, UsuarioProcessoResponse
)
from sistemas.processos import services
from utils.audit import AuditEvent, log_audit_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/processos", tags=["Processos"])


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, ProcessoNaoEncontradoError):
        return HTTPException(status_code=404, detail="Processo não encontrado")
    if isinstance(e, AcessoNegadoError):
        return HTTPException(status_code=403, detail="Acesso negado a este processo")
    if isinstance(e, NumeroDuplicadoError):
        return HTTPException(status_code=400, detail="Já existe um processo com este número")
    if isinstance(e, ReferenciaInvalidaError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, UsuarioJaAssociadoError):
        return HTTPException(status_code=400, detail="Usuário já associado a este processo")
    if isinstance(e, AssociacaoNaoEncontradaError):
        return HTTPException(status_code=404, detail="Usuário não está associado a este processo")
    return HTTPException(status_code=500, detail="Erro interno do servidor")


ERROS_PROCESSO = (
    ProcessoNaoEncontradoError, AcessoNegadoError, NumeroDuplicadoError,
    ReferenciaInvalidaError, UsuarioJaAssociadoError, AssociacaoNaoEncontradaError,
)


# ==========================================
# Consulta
# ==========================================

@router.get("", response_model=ProcessoListaResponse)
async def listar_processos(
    status: Optional[str] = Query(None),
    sistema: Optional[str] = Query(None),
    busca: Optional[str] = Query(None),
    responsavel_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(authorize("processes", "read")),
    db: Session = Depends(get_db)
):
    """Processos visíveis para o usuário (cache de 5 minutos por filtro)"""
    return await services.listar_processos(
        db, current_user,
        status=status, sistema=sistema, busca=busca,
        responsavel_id=responsavel_id, page=page, page_size=page_size,
    )


@router.get("/{processo_id}", response_model=ProcessoResponse)
async def obter_processo(
    processo_id: int,
    current_user: User = Depends(authorize("processes", "read")),
    db: Session = Depends(get_db)
):
    try:
        return services.processo_to_dict(services.obter_processo(db, current_user, processo_id))
    except ERROS_PROCESSO as e:
        raise _http_error(e)


# ==========================================
# Escrita
# ==========================================

@router.post("/novo", response_model=ProcessoResponse, status_code=201)
async def criar_processo(
    dados: ProcessoCreate,
    request: Request,
    current_user: User = Depends(authorize("processes", "create")),
    db: Session = Depends(get_db)
):
    try:
        processo = services.criar_processo(db, current_user, dados.model_dump())
    except ERROS_PROCESSO as e:
        raise _http_error(e)

    await services.invalidar_caches()

    if processo.idusuario_responsavel:
        await create_notification_from_template(
            "NEW_PROCESS",
            processo.idusuario_responsavel,
            {"processNumber": processo.numero_processo, "processId": processo.id},
            email=True,
        )

    log_audit_event(
        AuditEvent.PROCESS_CREATED,
        user_id=current_user.id,
        username=current_user.email,
        request=request,
        db=db,
        entity_type="processo",
        entity_id=processo.id,
        new_values=dados.model_dump(mode="json"),
    )
    return services.processo_to_dict(processo)


@router.put("/{processo_id}", response_model=ProcessoResponse)
async def atualizar_processo(
    processo_id: int,
    dados: ProcessoUpdate,
    request: Request,
    current_user: User = Depends(authorize("processes", "update")),
    db: Session = Depends(get_db)
):
    try:
        processo, alteracoes = services.atualizar_processo(
            db, current_user, processo_id, dados.model_dump(exclude_unset=True)
        )
    except ERROS_PROCESSO as e:
        raise _http_error(e)

    if alteracoes:
        await services.invalidar_caches()
        await notify_users(
            services.usuarios_envolvidos(processo),
            "PROCESS_UPDATE",
            {"processNumber": processo.numero_processo, "processId": processo.id},
            email=True,
            exclude=current_user.id,
        )
        await services.publicar_atualizacao(processo, "processo_atualizado", {"campos": sorted(alteracoes)})

        log_audit_event(
            AuditEvent.PROCESS_UPDATED,
            user_id=current_user.id,
            username=current_user.email,
            request=request,
            db=db,
            entity_type="processo",
            entity_id=processo.id,
            old_values={campo: antes for campo, (antes, _) in alteracoes.items()},
            new_values={campo: depois for campo, (_, depois) in alteracoes.items()},
        )
    return services.processo_to_dict(processo)


@router.delete("/{processo_id}")
async def remover_processo(
    processo_id: int,
    request: Request,
    current_user: User = Depends(authorize("processes", "delete")),
    db: Session = Depends(get_db)
):
    try:
        processo = services.remover_processo(db, current_user, processo_id)
    except ERROS_PROCESSO as e:
        raise _http_error(e)

    await services.invalidar_caches()
    log_audit_event(
        AuditEvent.PROCESS_DELETED,
        user_id=current_user.id,
        username=current_user.email,
        request=request,
        db=db,
        entity_type="processo",
        entity_id=processo_id,
        old_values={"numero_processo": processo.numero_processo},
    )
    return {"message": "Processo removido com sucesso"}


@router.patch("/{processo_id}/arquivar", response_model=ProcessoResponse)
async def arquivar_processo(
    processo_id: int,
    request: Request,
    current_user: User = Depends(authorize("processes", "archive")),
    db: Session = Depends(get_db)
):
    try:
        processo = services.arquivar_processo(db, current_user, processo_id)
    except ERROS_PROCESSO as e:
        raise _http_error(e)

    await services.invalidar_caches()
    await services.publicar_atualizacao(processo, "processo_atualizado", {"campos": ["status"]})
    log_audit_event(
        AuditEvent.PROCESS_ARCHIVED,
        user_id=current_user.id,
        username=current_user.email,
        request=request,
        db=db,
        entity_type="processo",
        entity_id=processo.id,
    )
    return services.processo_to_dict(processo)


# ==========================================
# Usuários associados
# ==========================================

@router.get("/{processo_id}/usuarios", response_model=List[UsuarioProcessoResponse])
async def listar_usuarios_processo(
    processo_id: int,
    current_user: User = Depends(authorize("processes", "read")),
    db: Session = Depends(get_db)
):
    try:
        return services.listar_usuarios(db, current_user, processo_id)
    except ERROS_PROCESSO as e:
        raise _http_error(e)


@router.post("/{processo_id}/usuarios", response_model=List[UsuarioProcessoResponse], status_code=201)
async def associar_usuario(
    processo_id: int,
    dados: UsuarioProcessoAdd,
    request: Request,
    current_user: User = Depends(authorize("processes", "assign")),
    db: Session = Depends(get_db)
):
    try:
        processo = services.associar_usuario(db, current_user, processo_id, dados.usuario_id)
    except ERROS_PROCESSO as e:
        raise _http_error(e)

    await services.invalidar_caches()
    await create_notification_from_template(
        "PROCESS_UPDATE", dados.usuario_id,
        {"processNumber": processo.numero_processo, "processId": processo.id},
    )
    log_audit_event(
        AuditEvent.PROCESS_USER_ASSIGNED,
        user_id=current_user.id,
        username=current_user.email,
        request=request,
        db=db,
        entity_type="processo",
        entity_id=processo.id,
        new_values={"usuario_id": dados.usuario_id},
    )
    return services.listar_usuarios(db, current_user, processo_id)


@router.delete("/{processo_id}/usuarios/{usuario_id}")
async def desassociar_usuario(
    processo_id: int,
    usuario_id: int,
    request: Request,
    current_user: User = Depends(authorize("processes", "assign")),
    db: Session = Depends(get_db)
):
    try:
        processo = services.desassociar_usuario(db, current_user, processo_id, usuario_id)
    except ERROS_PROCESSO as e:
        raise _http_error(e)

    await services.invalidar_caches()
    log_audit_event(
        AuditEvent.PROCESS_USER_REMOVED,
        user_id=current_user.id,
        username=current_user.email,
        request=request,
        db=db,
        entity_type="processo",
        entity_id=processo.id,
        old_values={"usuario_id": usuario_id},
    )
    return {"message": "Usuário removido do processo"}


# ==========================================
# Histórico
# ==========================================

@router.get("/{processo_id}/atualizacoes", response_model=List[AtualizacaoResponse])
async def listar_atualizacoes(
    processo_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        return services.listar_atualizacoes(db, current_user, processo_id)
    except ERROS_PROCESSO as e:
        raise _http_error(e)


@router.post("/{processo_id}/atualizacoes", response_model=AtualizacaoResponse, status_code=201)
async def criar_atualizacao(
    processo_id: int,
    dados: AtualizacaoCreate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Anotação no histórico do processo (qualquer usuário com acesso)"""
    try:
        processo = services.obter_processo(db, current_user, processo_id)
    except ERROS_PROCESSO as e:
        raise _http_error(e)

    atualizacao = services.registrar_atualizacao(db, processo, current_user.id, dados.descricao)

    await notify_users(
        services.usuarios_envolvidos(processo),
        "PROCESS_UPDATE",
        {"processNumber": processo.numero_processo, "processId": processo.id},
        exclude=current_user.id,
    )
    await services.publicar_atualizacao(processo, "processo_anotacao", {"descricao": dados.descricao})
    return services.atualizacao_to_dict(atualizacao)
