# sistemas/agendamentos/router.py
"""
Router do módulo de Agendamentos.

Endpoints para:
- CRUD de agendamentos (com verificação de conflitos e recorrência)
- Verificação de conflitos e sugestão de horários
- Exportação .ics e consulta de lembretes
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import Response
from sqlalchemy.orm import Session

from auth.dependencies import get_current_active_user
from auth.models import User
from database.connection import get_db
from services.redis_service import redis_service
from sistemas.agendamentos.exceptions import (
    AgendamentoNaoEncontradoError, AcessoNegadoError, ReferenciaInvalidaError, ConflitoHorarioError
)
from sistemas.agendamentos.schemas import (
    AgendamentoCreate, AgendamentoUpdate, AgendamentoResponse, AgendamentoCriadoResponse,
    StatusUpdate, ConflitoRequest, ConflitoResponse, SugestaoRequest, SugestaoResponse,
    LembreteResponse
)
from sistemas.agendamentos import services
from sistemas.agendamentos.services_calendario import verificar_conflitos, sugerir_horarios, gerar_ics
from sistemas.notificacoes.services import create_notification_from_template
from sistemas.permissoes.dependencies import authorize
from utils.audit import AuditEvent, log_audit_event
from utils.timezone import format_local, to_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/agendamentos", tags=["Agendamentos"])

ERROS_AGENDAMENTO = (
    AgendamentoNaoEncontradoError, AcessoNegadoError, ReferenciaInvalidaError, ConflitoHorarioError,
)


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, AgendamentoNaoEncontradoError):
        return HTTPException(status_code=404, detail="Agendamento não encontrado")
    if isinstance(e, AcessoNegadoError):
        return HTTPException(status_code=403, detail="Acesso negado a este agendamento")
    if isinstance(e, ReferenciaInvalidaError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, ConflitoHorarioError):
        return HTTPException(
            status_code=409,
            detail=jsonable_encoder({"message": "Conflito de horário com outro agendamento", "conflicts": e.conflitos}),
        )
    return HTTPException(status_code=500, detail="Erro interno do servidor")


async def _invalidar_dashboard():
    await redis_service.delete_pattern("dashboard_stats:*")


# ==========================================
# Consulta
# ==========================================

@router.get("", response_model=List[AgendamentoResponse])
async def listar_agendamentos(
    tipo_evento: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    processo_id: Optional[int] = Query(None),
    usuario_id: Optional[int] = Query(None),
    inicio: Optional[datetime] = Query(None),
    fim: Optional[datetime] = Query(None),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Agendamentos visíveis (alunos veem apenas os próprios)"""
    agendamentos = services.listar_agendamentos(
        db, current_user,
        tipo_evento=tipo_evento, status=status, processo_id=processo_id,
        usuario_id=usuario_id, inicio=inicio, fim=fim,
    )
    return [services.agendamento_to_dict(a) for a in agendamentos]


@router.post("/conflitos", response_model=ConflitoResponse)
async def checar_conflitos(
    dados: ConflitoRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        usuario_id = services.resolver_usuario_alvo(db, current_user, dados.usuario_id)
    except ERROS_AGENDAMENTO as e:
        raise _http_error(e)
    return verificar_conflitos(db, usuario_id, to_utc(dados.data_evento), dados.duracao_minutos, dados.excluir_id)


@router.post("/sugestoes", response_model=SugestaoResponse)
async def sugerir(
    dados: SugestaoRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Horários livres próximos ao pedido, melhor pontuação primeiro"""
    if dados.horario_fim <= dados.horario_inicio:
        raise HTTPException(status_code=400, detail="horario_fim deve ser maior que horario_inicio")
    try:
        usuario_id = services.resolver_usuario_alvo(db, current_user, dados.usuario_id)
    except ERROS_AGENDAMENTO as e:
        raise _http_error(e)

    sugestoes = sugerir_horarios(
        db,
        usuario_id,
        to_utc(dados.data_evento),
        duracao_minutos=dados.duracao_minutos,
        horario_inicio=dados.horario_inicio,
        horario_fim=dados.horario_fim,
        dias_verificacao=dados.dias_verificacao,
        pular_fins_de_semana=dados.pular_fins_de_semana,
        preferir_manha=dados.preferir_manha,
        max_sugestoes=dados.max_sugestoes,
    )
    return {"suggestions": sugestoes}


@router.get("/{agendamento_id}", response_model=AgendamentoResponse)
async def obter_agendamento(
    agendamento_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        return services.agendamento_to_dict(services.obter_agendamento(db, current_user, agendamento_id))
    except ERROS_AGENDAMENTO as e:
        raise _http_error(e)


@router.get("/{agendamento_id}/ics")
async def exportar_ics(
    agendamento_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Exporta o agendamento em iCalendar para importação em agendas externas"""
    try:
        agendamento = services.obter_agendamento(db, current_user, agendamento_id)
    except ERROS_AGENDAMENTO as e:
        raise _http_error(e)

    return Response(
        content=gerar_ics(agendamento),
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="agendamento-{agendamento.id}.ics"'},
    )


@router.get("/{agendamento_id}/lembretes", response_model=List[LembreteResponse])
async def listar_lembretes(
    agendamento_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        agendamento = services.obter_agendamento(db, current_user, agendamento_id)
    except ERROS_AGENDAMENTO as e:
        raise _http_error(e)
    return sorted(agendamento.lembretes, key=lambda l: l.minutes_before, reverse=True)


# ==========================================
# Escrita
# ==========================================

@router.post("", response_model=AgendamentoCriadoResponse, status_code=201)
async def criar_agendamento(
    dados: AgendamentoCreate,
    request: Request,
    current_user: User = Depends(authorize("appointments", "create")),
    db: Session = Depends(get_db)
):
    """
    Cria um agendamento.

    Retorna 409 com a lista de conflitos, a menos que ignorar_conflitos seja verdadeiro.
    """
    try:
        agendamento, ocorrencias = services.criar_agendamento(db, current_user, dados.model_dump())
    except ERROS_AGENDAMENTO as e:
        raise _http_error(e)

    await _invalidar_dashboard()
    await create_notification_from_template(
        "APPOINTMENT_CREATED",
        agendamento.usuario_id,
        {
            "date": format_local(agendamento.data_evento, "%d/%m/%Y %H:%M"),
            "title": agendamento.titulo,
            "appointmentId": agendamento.id,
        },
    )
    log_audit_event(
        AuditEvent.APPOINTMENT_CREATED,
        user_id=current_user.id,
        username=current_user.email,
        request=request,
        db=db,
        entity_type="agendamento",
        entity_id=agendamento.id,
        new_values=dados.model_dump(mode="json"),
    )
    return {**services.agendamento_to_dict(agendamento), "ocorrencias_criadas": ocorrencias}


@router.put("/{agendamento_id}", response_model=AgendamentoResponse)
async def atualizar_agendamento(
    agendamento_id: int,
    dados: AgendamentoUpdate,
    request: Request,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        agendamento, alteracoes = services.atualizar_agendamento(
            db, current_user, agendamento_id, dados.model_dump(exclude_unset=True)
        )
    except ERROS_AGENDAMENTO as e:
        raise _http_error(e)

    if alteracoes:
        await _invalidar_dashboard()
        log_audit_event(
            AuditEvent.APPOINTMENT_UPDATED,
            user_id=current_user.id,
            username=current_user.email,
            request=request,
            db=db,
            entity_type="agendamento",
            entity_id=agendamento.id,
            old_values={c: antes for c, (antes, _) in alteracoes.items()},
            new_values={c: depois for c, (_, depois) in alteracoes.items()},
        )
    return services.agendamento_to_dict(agendamento)


@router.patch("/{agendamento_id}/status", response_model=AgendamentoResponse)
async def alterar_status(
    agendamento_id: int,
    dados: StatusUpdate,
    request: Request,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        agendamento = services.alterar_status(db, current_user, agendamento_id, dados.status)
    except ERROS_AGENDAMENTO as e:
        raise _http_error(e)

    await _invalidar_dashboard()
    log_audit_event(
        AuditEvent.APPOINTMENT_UPDATED,
        user_id=current_user.id,
        username=current_user.email,
        request=request,
        details={"agendamento_id": agendamento_id, "status": dados.status},
    )
    return services.agendamento_to_dict(agendamento)


@router.delete("/{agendamento_id}")
async def remover_agendamento(
    agendamento_id: int,
    request: Request,
    serie: bool = Query(False, description="Remove também as ocorrências da recorrência"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        removidos = services.remover_agendamento(db, current_user, agendamento_id, serie)
    except ERROS_AGENDAMENTO as e:
        raise _http_error(e)

    await _invalidar_dashboard()
    log_audit_event(
        AuditEvent.APPOINTMENT_DELETED,
        user_id=current_user.id,
        username=current_user.email,
        request=request,
        db=db,
        entity_type="agendamento",
        entity_id=agendamento_id,
        old_values={"removidos": removidos},
    )
    return {"message": "Agendamento removido com sucesso", "removidos": removidos}
