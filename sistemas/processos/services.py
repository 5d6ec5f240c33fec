# sistemas/processos/services.py
"""
Regras de negócio do módulo de Processos.

Visibilidade:
- Admin vê todos os processos
- Demais usuários veem os processos que criaram, pelos quais são
  responsáveis ou aos quais estão associados
"""

import logging
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from auth.models import User, Role
from services.realtime import manager
from services.redis_service import redis_service
from sistemas.processos.constants import (
    StatusProcesso, TipoAtualizacao, CAMPOS_RASTREADOS, PAGE_SIZE_PADRAO, PAGE_SIZE_MAXIMO
)
from sistemas.processos.exceptions import (
    ProcessoNaoEncontradoError, AcessoNegadoError, NumeroDuplicadoError,
    ReferenciaInvalidaError, UsuarioJaAssociadoError, AssociacaoNaoEncontradaError
)
from sistemas.processos.models import Processo, UsuarioProcesso, AtualizacaoProcesso
from sistemas.tabelas_auxiliares.models import MateriaAssunto, Fase, Diligencia, LocalTramitacao
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_REFERENCIAS = {
    "materia_assunto_id": MateriaAssunto,
    "fase_id": Fase,
    "diligencia_id": Diligencia,
    "local_tramitacao_id": LocalTramitacao,
}


# ==========================================
# Serialização
# ==========================================

def _nome(obj) -> Optional[str]:
    return obj.nome if obj is not None else None


def processo_to_dict(processo: Processo) -> Dict[str, Any]:
    return {
        "id": processo.id,
        "numero_processo": processo.numero_processo,
        "descricao": processo.descricao,
        "status": processo.status,
        "tipo_processo": processo.tipo_processo,
        "sistema": processo.sistema,
        "num_processo_sei": processo.num_processo_sei,
        "assistido": processo.assistido,
        "contato_assistido": processo.contato_assistido,
        "observacoes": processo.observacoes,
        "data_encerramento": processo.data_encerramento.isoformat() if processo.data_encerramento else None,
        "idusuario_responsavel": processo.idusuario_responsavel,
        "responsavel_nome": _nome(processo.responsavel),
        "materia_assunto_id": processo.materia_assunto_id,
        "materia_assunto": _nome(processo.materia_assunto),
        "fase_id": processo.fase_id,
        "fase": _nome(processo.fase),
        "diligencia_id": processo.diligencia_id,
        "diligencia": _nome(processo.diligencia),
        "local_tramitacao_id": processo.local_tramitacao_id,
        "local_tramitacao": _nome(processo.local_tramitacao),
        "created_by": processo.created_by,
        "created_at": processo.created_at.isoformat() if processo.created_at else None,
        "updated_at": processo.updated_at.isoformat() if processo.updated_at else None,
    }


def atualizacao_to_dict(atualizacao: AtualizacaoProcesso) -> Dict[str, Any]:
    return {
        "id": atualizacao.id,
        "processo_id": atualizacao.processo_id,
        "usuario_id": atualizacao.usuario_id,
        "usuario_nome": _nome(atualizacao.usuario),
        "tipo": atualizacao.tipo,
        "descricao": atualizacao.descricao,
        "created_at": atualizacao.created_at,
    }


# ==========================================
# Visibilidade
# ==========================================

def query_visiveis(db: Session, user: User):
    """Query de processos visíveis para o usuário."""
    query = db.query(Processo)
    if user.role == Role.ADMIN:
        return query

    associados = db.query(UsuarioProcesso.processo_id).filter(UsuarioProcesso.usuario_id == user.id)
    return query.filter(or_(
        Processo.created_by == user.id,
        Processo.idusuario_responsavel == user.id,
        Processo.id.in_(associados),
    ))


def usuarios_envolvidos(processo: Processo) -> Set[int]:
    """Criador, responsável e associados do processo."""
    ids = {up.usuario_id for up in processo.usuarios}
    ids.update(uid for uid in (processo.created_by, processo.idusuario_responsavel) if uid)
    return ids


def pode_acessar(user: User, processo: Processo) -> bool:
    return user.role == Role.ADMIN or user.id in usuarios_envolvidos(processo)


def obter_processo(db: Session, user: User, processo_id: int) -> Processo:
    processo = db.query(Processo).filter(Processo.id == processo_id).first()
    if not processo:
        raise ProcessoNaoEncontradoError(f"Processo {processo_id} não encontrado")
    if not pode_acessar(user, processo):
        raise AcessoNegadoError(f"Usuário {user.id} sem acesso ao processo {processo_id}")
    return processo


# ==========================================
# Listagem (com cache)
# ==========================================

def _filtros_normalizados(
    status: Optional[str] = None,
    sistema: Optional[str] = None,
    busca: Optional[str] = None,
    responsavel_id: Optional[int] = None,
    page: int = 1,
    page_size: int = PAGE_SIZE_PADRAO
) -> Dict[str, Any]:
    return {
        "status": status,
        "sistema": sistema,
        "busca": busca.strip() if busca else None,
        "responsavel_id": responsavel_id,
        "page": max(1, page),
        "page_size": min(max(1, page_size), PAGE_SIZE_MAXIMO),
    }


def listar_processos_db(db: Session, user: User, filtros: Dict[str, Any]) -> Dict[str, Any]:
    query = query_visiveis(db, user)

    if filtros.get("status"):
        query = query.filter(Processo.status == filtros["status"])
    if filtros.get("sistema"):
        query = query.filter(Processo.sistema == filtros["sistema"])
    if filtros.get("responsavel_id"):
        query = query.filter(Processo.idusuario_responsavel == filtros["responsavel_id"])
    if filtros.get("busca"):
        termo = f"%{filtros['busca']}%"
        query = query.filter(or_(
            Processo.numero_processo.ilike(termo),
            Processo.descricao.ilike(termo),
            Processo.assistido.ilike(termo),
        ))

    total = query.count()
    page, page_size = filtros["page"], filtros["page_size"]
    processos = (
        query.order_by(Processo.created_at.desc(), Processo.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return {
        "items": [processo_to_dict(p) for p in processos],
        "total": total,
        "page": page,
        "page_size": page_size,
    }


async def listar_processos(db: Session, user: User, **filtros) -> Dict[str, Any]:
    """Lista paginada dos processos visíveis, em cache por 5 minutos por usuário + filtros."""
    normalizados = _filtros_normalizados(**filtros)

    cached = await redis_service.get_cached_processes(user.id, normalizados)
    if cached is not None:
        return cached

    resultado = listar_processos_db(db, user, normalizados)
    await redis_service.set_cached_processes(user.id, normalizados, resultado)
    return resultado


async def invalidar_caches():
    """Listas de processos e estatísticas do dashboard dependem dos processos."""
    await redis_service.invalidate_processes_cache()
    await redis_service.delete_pattern("dashboard_stats:*")


# ==========================================
# Escrita
# ==========================================

def _validar_referencias(db: Session, dados: Dict[str, Any]):
    responsavel_id = dados.get("idusuario_responsavel")
    if responsavel_id is not None:
        if not db.query(User).filter(User.id == responsavel_id, User.is_active == True).first():
            raise ReferenciaInvalidaError("Usuário responsável não encontrado ou inativo")

    for campo, model in _REFERENCIAS.items():
        valor = dados.get(campo)
        if valor is not None and not db.query(model).filter(model.id == valor).first():
            raise ReferenciaInvalidaError(f"Valor inválido para {campo}: {valor}")


def _numero_em_uso(db: Session, numero: str, ignorar_id: Optional[int] = None) -> bool:
    query = db.query(Processo).filter(Processo.numero_processo == numero)
    if ignorar_id is not None:
        query = query.filter(Processo.id != ignorar_id)
    return query.first() is not None


def registrar_atualizacao(
    db: Session,
    processo: Processo,
    usuario_id: Optional[int],
    descricao: str,
    tipo: str = TipoAtualizacao.ANOTACAO,
    commit: bool = True
) -> AtualizacaoProcesso:
    atualizacao = AtualizacaoProcesso(
        processo_id=processo.id,
        usuario_id=usuario_id,
        tipo=tipo,
        descricao=descricao,
    )
    db.add(atualizacao)
    if commit:
        db.commit()
        db.refresh(atualizacao)
    return atualizacao


def criar_processo(db: Session, user: User, dados: Dict[str, Any]) -> Processo:
    numero = dados["numero_processo"].strip()
    if _numero_em_uso(db, numero):
        raise NumeroDuplicadoError(f"Já existe um processo com o número {numero}")
    _validar_referencias(db, dados)

    processo = Processo(**{**dados, "numero_processo": numero}, created_by=user.id)
    if processo.status in StatusProcesso.ENCERRAMENTO and processo.data_encerramento is None:
        processo.data_encerramento = now_utc()

    db.add(processo)
    db.flush()
    registrar_atualizacao(db, processo, user.id, "Processo criado", TipoAtualizacao.CRIACAO, commit=False)
    db.commit()
    db.refresh(processo)
    logger.info(f"Processo {processo.numero_processo} criado por usuário {user.id}")
    return processo


def atualizar_processo(
    db: Session,
    user: User,
    processo_id: int,
    dados: Dict[str, Any]
) -> Tuple[Processo, Dict[str, Tuple[Any, Any]]]:
    """
    Aplica os campos enviados e registra o histórico.

    Returns:
        (processo, alterações {campo: (antes, depois)})
    """
    processo = obter_processo(db, user, processo_id)

    if dados.get("numero_processo"):
        dados["numero_processo"] = dados["numero_processo"].strip()
        if _numero_em_uso(db, dados["numero_processo"], ignorar_id=processo.id):
            raise NumeroDuplicadoError(f"Já existe um processo com o número {dados['numero_processo']}")
    _validar_referencias(db, dados)

    alteracoes: Dict[str, Tuple[Any, Any]] = {}
    for campo, valor in dados.items():
        if campo not in CAMPOS_RASTREADOS:
            continue
        atual = getattr(processo, campo)
        if atual != valor:
            alteracoes[campo] = (atual, valor)
            setattr(processo, campo, valor)

    if "status" in alteracoes and processo.status in StatusProcesso.ENCERRAMENTO and processo.data_encerramento is None:
        processo.data_encerramento = now_utc()
        alteracoes["data_encerramento"] = (None, processo.data_encerramento)

    if alteracoes:
        if "status" in alteracoes:
            antes, depois = alteracoes["status"]
            registrar_atualizacao(db, processo, user.id, f"Status alterado de {antes} para {depois}", TipoAtualizacao.STATUS, commit=False)
        outros = sorted(c for c in alteracoes if c != "status")
        if outros:
            registrar_atualizacao(db, processo, user.id, f"Campos alterados: {', '.join(outros)}", TipoAtualizacao.ALTERACAO, commit=False)
        db.commit()
        db.refresh(processo)

    return processo, alteracoes


def arquivar_processo(db: Session, user: User, processo_id: int) -> Processo:
    processo, _ = atualizar_processo(db, user, processo_id, {"status": StatusProcesso.ARQUIVADO})
    return processo


def remover_processo(db: Session, user: User, processo_id: int) -> Processo:
    from sistemas.agendamentos.models import Agendamento

    processo = obter_processo(db, user, processo_id)
    db.query(Agendamento).filter(Agendamento.processo_id == processo.id).update(
        {Agendamento.processo_id: None}, synchronize_session=False
    )
    db.delete(processo)
    db.commit()
    logger.info(f"Processo {processo.numero_processo} removido por usuário {user.id}")
    return processo


# ==========================================
# Usuários associados
# ==========================================

def listar_usuarios(db: Session, user: User, processo_id: int) -> List[Dict[str, Any]]:
    processo = obter_processo(db, user, processo_id)
    return [
        {
            "id": up.usuario.id,
            "nome": up.usuario.nome,
            "email": up.usuario.email,
            "role": up.usuario.role,
            "associado_em": up.created_at,
        }
        for up in processo.usuarios
    ]


def associar_usuario(db: Session, user: User, processo_id: int, usuario_id: int) -> Processo:
    processo = obter_processo(db, user, processo_id)

    alvo = db.query(User).filter(User.id == usuario_id, User.is_active == True).first()
    if not alvo:
        raise ReferenciaInvalidaError("Usuário não encontrado ou inativo")

    if any(up.usuario_id == usuario_id for up in processo.usuarios):
        raise UsuarioJaAssociadoError(f"Usuário {usuario_id} já associado ao processo")

    db.add(UsuarioProcesso(usuario_id=usuario_id, processo_id=processo.id))
    registrar_atualizacao(db, processo, user.id, f"Usuário {alvo.nome} associado ao processo", TipoAtualizacao.USUARIO, commit=False)
    db.commit()
    db.refresh(processo)
    return processo


def desassociar_usuario(db: Session, user: User, processo_id: int, usuario_id: int) -> Processo:
    processo = obter_processo(db, user, processo_id)

    associacao = db.query(UsuarioProcesso).filter(
        UsuarioProcesso.processo_id == processo.id,
        UsuarioProcesso.usuario_id == usuario_id
    ).first()
    if not associacao:
        raise AssociacaoNaoEncontradaError(f"Usuário {usuario_id} não está associado ao processo")

    db.delete(associacao)
    registrar_atualizacao(db, processo, user.id, f"Usuário {usuario_id} removido do processo", TipoAtualizacao.USUARIO, commit=False)
    db.commit()
    db.refresh(processo)
    return processo


def listar_atualizacoes(db: Session, user: User, processo_id: int) -> List[Dict[str, Any]]:
    processo = obter_processo(db, user, processo_id)
    return [atualizacao_to_dict(a) for a in processo.atualizacoes]


async def publicar_atualizacao(processo: Processo, evento: str, dados: Optional[Dict[str, Any]] = None):
    """Avisa os inscritos na sala processo_{id} do WebSocket."""
    await manager.emit_to_room(
        f"processo_{processo.id}",
        evento,
        {"processo_id": processo.id, "numero_processo": processo.numero_processo, **(dados or {})},
    )
