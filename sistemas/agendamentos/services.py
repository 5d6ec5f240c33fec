# sistemas/agendamentos/services.py
"""
Regras de negócio do módulo de Agendamentos.

Acesso:
- Admin e Professor veem e alteram todos os agendamentos
- Aluno vê e altera apenas os seus (responsável ou criador) e só agenda para si
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from auth.models import User
from sistemas.agendamentos.constants import StatusAgendamento
from sistemas.agendamentos.exceptions import (
    AgendamentoNaoEncontradoError, AcessoNegadoError, ReferenciaInvalidaError, ConflitoHorarioError
)
from sistemas.agendamentos.models import Agendamento
from sistemas.agendamentos.services_calendario import (
    verificar_conflitos, calcular_ocorrencias, fim_evento
)
from sistemas.agendamentos.services_lembretes import (
    agendar_lembretes, reprogramar_lembretes, cancelar_lembretes_pendentes
)
from sistemas.permissoes.services import has_permission
from sistemas.processos.models import Processo
from sistemas.processos.services import pode_acessar as pode_acessar_processo
from utils.timezone import as_utc, to_utc

logger = logging.getLogger(__name__)

MODULO = "appointments"

CAMPOS_EDITAVEIS = (
    "processo_id", "usuario_id", "tipo_evento", "titulo", "descricao",
    "data_evento", "duracao_minutos", "local", "status",
)


def agendamento_to_dict(agendamento: Agendamento) -> Dict[str, Any]:
    return {
        "id": agendamento.id,
        "processo_id": agendamento.processo_id,
        "criado_por": agendamento.criado_por,
        "usuario_id": agendamento.usuario_id,
        "usuario_nome": agendamento.usuario.nome if agendamento.usuario else None,
        "tipo_evento": agendamento.tipo_evento,
        "titulo": agendamento.titulo,
        "descricao": agendamento.descricao,
        "data_evento": as_utc(agendamento.data_evento),
        "data_fim": fim_evento(agendamento.data_evento, agendamento.duracao_minutos),
        "duracao_minutos": agendamento.duracao_minutos,
        "local": agendamento.local,
        "status": agendamento.status,
        "recorrente": bool(agendamento.recorrente),
        "frequencia": agendamento.frequencia,
        "fim_recorrencia": as_utc(agendamento.fim_recorrencia),
        "agendamento_pai_id": agendamento.agendamento_pai_id,
        "reminder_sent": bool(agendamento.reminder_sent),
        "created_at": as_utc(agendamento.created_at),
    }


# ==========================================
# Acesso
# ==========================================

def eh_dono(user: User, agendamento: Agendamento) -> bool:
    return user.id in (agendamento.usuario_id, agendamento.criado_por)


def pode(user: User, acao: str, agendamento: Optional[Agendamento] = None) -> bool:
    """Ação geral do papel, ou a variante `_own` quando o agendamento é do usuário."""
    if has_permission(user.role, MODULO, acao):
        return True
    if agendamento is None or not eh_dono(user, agendamento):
        return False
    return has_permission(user.role, MODULO, f"{acao}_own", user.id, user.id)


def obter_agendamento(db: Session, user: User, agendamento_id: int, acao: str = "read") -> Agendamento:
    agendamento = db.query(Agendamento).filter(Agendamento.id == agendamento_id).first()
    if not agendamento:
        raise AgendamentoNaoEncontradoError(f"Agendamento {agendamento_id} não encontrado")
    if not pode(user, acao, agendamento):
        raise AcessoNegadoError(f"Usuário {user.id} não pode {acao} o agendamento {agendamento_id}")
    return agendamento


def listar_agendamentos(
    db: Session,
    user: User,
    tipo_evento: Optional[str] = None,
    status: Optional[str] = None,
    processo_id: Optional[int] = None,
    usuario_id: Optional[int] = None,
    inicio: Optional[datetime] = None,
    fim: Optional[datetime] = None
) -> List[Agendamento]:
    query = db.query(Agendamento)

    if not pode(user, "read"):
        query = query.filter(
            (Agendamento.usuario_id == user.id) | (Agendamento.criado_por == user.id)
        )
    elif usuario_id:
        query = query.filter(Agendamento.usuario_id == usuario_id)

    if tipo_evento:
        query = query.filter(Agendamento.tipo_evento == tipo_evento)
    if status:
        query = query.filter(Agendamento.status == status)
    if processo_id:
        query = query.filter(Agendamento.processo_id == processo_id)
    if inicio:
        query = query.filter(Agendamento.data_evento >= to_utc(inicio))
    if fim:
        query = query.filter(Agendamento.data_evento <= to_utc(fim))

    return query.order_by(Agendamento.data_evento).all()


# ==========================================
# Validações
# ==========================================

def resolver_usuario_alvo(db: Session, user: User, usuario_id: Optional[int]) -> int:
    """Usuário do agendamento: o informado (se permitido) ou o próprio."""
    alvo_id = usuario_id or user.id
    if alvo_id != user.id and not pode(user, "read"):
        raise AcessoNegadoError("Alunos só podem criar agendamentos para si")

    if not db.query(User).filter(User.id == alvo_id, User.is_active == True).first():
        raise ReferenciaInvalidaError("Usuário do agendamento não encontrado ou inativo")
    return alvo_id


def _validar_processo(db: Session, user: User, processo_id: Optional[int]):
    if processo_id is None:
        return
    processo = db.query(Processo).filter(Processo.id == processo_id).first()
    if not processo:
        raise ReferenciaInvalidaError("Processo não encontrado")
    if not pode_acessar_processo(user, processo):
        raise AcessoNegadoError("Sem acesso ao processo informado")


# ==========================================
# Escrita
# ==========================================

def criar_agendamento(db: Session, user: User, dados: Dict[str, Any]) -> Tuple[Agendamento, int]:
    """
    Cria o agendamento, suas ocorrências (se recorrente) e os lembretes.

    Raises:
        ConflitoHorarioError: conflito com outro agendamento e ignorar_conflitos falso

    Returns:
        (agendamento, quantidade de ocorrências filhas criadas)
    """
    ignorar_conflitos = dados.pop("ignorar_conflitos", False)
    usuario_id = resolver_usuario_alvo(db, user, dados.pop("usuario_id", None))
    _validar_processo(db, user, dados.get("processo_id"))

    data_evento = to_utc(dados.pop("data_evento"))
    fim_recorrencia = to_utc(dados.pop("fim_recorrencia", None))

    if not ignorar_conflitos:
        resultado = verificar_conflitos(db, usuario_id, data_evento, dados.get("duracao_minutos") or 60)
        if resultado["hasConflicts"]:
            raise ConflitoHorarioError(resultado["conflicts"])

    recorrente = bool(dados.get("recorrente") and dados.get("frequencia"))
    agendamento = Agendamento(
        **dados,
        usuario_id=usuario_id,
        criado_por=user.id,
        data_evento=data_evento,
        fim_recorrencia=fim_recorrencia if recorrente else None,
        status=StatusAgendamento.AGENDADO,
    )
    agendamento.recorrente = recorrente
    if not recorrente:
        agendamento.frequencia = None

    db.add(agendamento)
    db.flush()
    agendar_lembretes(db, agendamento)

    ocorrencias = 0
    if recorrente:
        for data in calcular_ocorrencias(data_evento, agendamento.frequencia, fim_recorrencia):
            filho = Agendamento(
                processo_id=agendamento.processo_id,
                criado_por=user.id,
                usuario_id=usuario_id,
                tipo_evento=agendamento.tipo_evento,
                titulo=agendamento.titulo,
                descricao=agendamento.descricao,
                data_evento=data,
                duracao_minutos=agendamento.duracao_minutos,
                local=agendamento.local,
                status=StatusAgendamento.AGENDADO,
                recorrente=False,
                agendamento_pai_id=agendamento.id,
            )
            db.add(filho)
            db.flush()
            agendar_lembretes(db, filho)
            ocorrencias += 1

    db.commit()
    db.refresh(agendamento)
    logger.info(f"Agendamento {agendamento.id} criado por usuário {user.id} ({ocorrencias} ocorrências)")
    return agendamento, ocorrencias


def atualizar_agendamento(
    db: Session,
    user: User,
    agendamento_id: int,
    dados: Dict[str, Any]
) -> Tuple[Agendamento, Dict[str, Tuple[Any, Any]]]:
    agendamento = obter_agendamento(db, user, agendamento_id, "update")
    ignorar_conflitos = dados.pop("ignorar_conflitos", False)

    if "usuario_id" in dados and dados["usuario_id"] is not None:
        dados["usuario_id"] = resolver_usuario_alvo(db, user, dados["usuario_id"])
    if dados.get("processo_id") is not None:
        _validar_processo(db, user, dados["processo_id"])
    if dados.get("data_evento") is not None:
        dados["data_evento"] = to_utc(dados["data_evento"])

    alteracoes: Dict[str, Tuple[Any, Any]] = {}
    for campo in CAMPOS_EDITAVEIS:
        if campo not in dados or dados[campo] is None:
            continue
        atual = getattr(agendamento, campo)
        novo = dados[campo]
        if campo == "data_evento":
            mudou = as_utc(atual) != novo
        else:
            mudou = atual != novo
        if mudou:
            alteracoes[campo] = (atual, novo)

    mudou_horario = any(c in alteracoes for c in ("data_evento", "duracao_minutos", "usuario_id"))
    if mudou_horario and not ignorar_conflitos:
        resultado = verificar_conflitos(
            db,
            dados.get("usuario_id") or agendamento.usuario_id,
            dados.get("data_evento") or agendamento.data_evento,
            dados.get("duracao_minutos") or agendamento.duracao_minutos,
            excluir_id=agendamento.id,
        )
        if resultado["hasConflicts"]:
            raise ConflitoHorarioError(resultado["conflicts"])

    for campo, (_, novo) in alteracoes.items():
        setattr(agendamento, campo, novo)

    if "data_evento" in alteracoes:
        if "status" not in alteracoes and agendamento.status in (StatusAgendamento.AGENDADO, StatusAgendamento.CONFIRMADO):
            alteracoes["status"] = (agendamento.status, StatusAgendamento.REMARCADO)
            agendamento.status = StatusAgendamento.REMARCADO
        reprogramar_lembretes(db, agendamento)

    if alteracoes.get("status", (None, None))[1] == StatusAgendamento.CANCELADO:
        cancelar_lembretes_pendentes(db, agendamento.id)

    if alteracoes:
        db.commit()
        db.refresh(agendamento)
    return agendamento, alteracoes


def alterar_status(db: Session, user: User, agendamento_id: int, status: str) -> Agendamento:
    agendamento, _ = atualizar_agendamento(db, user, agendamento_id, {"status": status})
    return agendamento


def remover_agendamento(db: Session, user: User, agendamento_id: int, serie: bool = False) -> int:
    """
    Remove o agendamento. Com `serie`, remove também as ocorrências filhas.

    Returns:
        Quantidade de agendamentos removidos
    """
    agendamento = obter_agendamento(db, user, agendamento_id, "delete")

    filhos = db.query(Agendamento).filter(Agendamento.agendamento_pai_id == agendamento.id)
    removidos = 0
    if serie:
        for filho in filhos.all():
            db.delete(filho)
            removidos += 1
    else:
        filhos.update({Agendamento.agendamento_pai_id: None}, synchronize_session=False)

    db.delete(agendamento)
    db.commit()
    return removidos + 1
