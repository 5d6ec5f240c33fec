# sistemas/analytics/services.py
"""
Serviço de analytics.

As estatísticas do painel são calculadas com consultas de contagem e
agrupamento e ficam em cache no Redis em dashboard_stats:{usuario}:{filtros}
por 10 minutos. Usuários que não são Admin veem apenas os próprios
processos e agendamentos; a seção de usuários é exclusiva do Admin.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta, time
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from dateutil.relativedelta import relativedelta
from sqlalchemy import func
from sqlalchemy.orm import Session

from auth.models import User, Role
from config import CACHE_DASHBOARD_TTL
from database.connection import get_pool_status
from services.redis_service import redis_service
from sistemas.agendamentos.constants import StatusAgendamento
from sistemas.agendamentos.models import Agendamento
from sistemas.analytics.constants import (
    PERIODO_PADRAO, PERIODOS, METRICAS_TENDENCIA, GRANULARIDADES, METRICAS_COMPARACAO,
    JANELA_ATIVIDADE_DIAS, DIAS_SEMANA, LIMIARES_SAUDE, SaudeSistema
)
from sistemas.analytics.exceptions import PeriodoInvalidoError, MetricaInvalidaError
from sistemas.permissoes.models import AuditLog
from sistemas.processos.constants import StatusProcesso
from sistemas.processos.models import Processo
from sistemas.processos.services import query_visiveis
from utils.metrics import get_metrics
from utils.timezone import as_utc, now_utc, to_local, to_utc

logger = logging.getLogger(__name__)


# ==========================================
# Períodos
# ==========================================

def get_date_range(period: Optional[str], agora: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """(início, fim) do período: 7d, 30d, 90d ou 1y. Códigos desconhecidos valem 30d."""
    fim = as_utc(agora) if agora else now_utc()
    dias, anos = PERIODOS.get(period or PERIODO_PADRAO, PERIODOS[PERIODO_PADRAO])
    inicio = fim - relativedelta(years=anos) if anos else fim - timedelta(days=dias)
    return inicio, fim


def parse_period(period: str, agora: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """
    Aceita os códigos de get_date_range, um mês (YYYY-MM) ou um intervalo
    de datas locais (YYYY-MM-DD:YYYY-MM-DD, fim inclusivo).

    Raises:
        PeriodoInvalidoError
    """
    period = (period or "").strip()
    if period in PERIODOS:
        return get_date_range(period, agora)

    try:
        if ":" in period:
            inicio_txt, fim_txt = period.split(":", 1)
            inicio = datetime.strptime(inicio_txt, "%Y-%m-%d")
            fim = datetime.strptime(fim_txt, "%Y-%m-%d") + timedelta(days=1)
        else:
            inicio = datetime.strptime(period, "%Y-%m")
            fim = inicio + relativedelta(months=1)
    except ValueError:
        raise PeriodoInvalidoError(f"Período inválido: {period}")

    if fim <= inicio:
        raise PeriodoInvalidoError(f"Período inválido: {period}")
    return to_utc(inicio), to_utc(fim)


def _percentual(parte: float, total: float) -> float:
    return round(parte / total * 100, 1) if total else 0.0


def _variacao(atual: float, anterior: float) -> float:
    """Variação percentual; sem base anterior vale 100 quando há valor atual."""
    if anterior:
        return round((atual - anterior) / anterior * 100, 1)
    return 100.0 if atual else 0.0


# ==========================================
# Consultas por escopo
# ==========================================

def _processos(db: Session, user: User):
    return db.query(Processo) if user.role == Role.ADMIN else query_visiveis(db, user)


def _agendamentos(db: Session, user: User):
    query = db.query(Agendamento)
    if user.role != Role.ADMIN:
        query = query.filter(Agendamento.usuario_id == user.id)
    return query


def _no_periodo(query, coluna, inicio: datetime, fim: datetime):
    """Intervalo semiaberto [inicio, fim): meses e intervalos consecutivos não se sobrepõem."""
    return query.filter(coluna >= inicio, coluna < fim)


# ==========================================
# Seções do painel
# ==========================================

def get_process_stats(db: Session, user: User, inicio: datetime, fim: datetime) -> Dict[str, Any]:
    query = _no_periodo(_processos(db, user), Processo.created_at, inicio, fim)
    total = query.count()

    por_status = dict(
        query.with_entities(Processo.status, func.count(Processo.id)).group_by(Processo.status).all()
    )
    distribuicao = [
        {"status": status, "count": count, "percentage": _percentual(count, total)}
        for status, count in sorted(por_status.items(), key=lambda item: item[1], reverse=True)
    ]

    meses = Counter(
        to_local(criado).strftime("%Y-%m")
        for (criado,) in query.with_entities(Processo.created_at).all()
        if criado
    )
    tendencia = [{"month": mes, "count": meses[mes]} for mes in sorted(meses)]

    return {
        "total": total,
        "active": sum(c for s, c in por_status.items() if s not in StatusProcesso.INATIVOS),
        "archived": por_status.get(StatusProcesso.ARQUIVADO, 0),
        "suspended": por_status.get(StatusProcesso.SUSPENSO, 0),
        "statusDistribution": distribuicao,
        "monthlyTrend": tendencia,
        "averagePerMonth": round(sum(meses.values()) / len(meses), 1) if meses else 0,
    }


def get_appointment_stats(
    db: Session,
    user: User,
    inicio: datetime,
    fim: datetime,
    agora: Optional[datetime] = None
) -> Dict[str, Any]:
    agora = as_utc(agora) if agora else now_utc()
    query = _no_periodo(_agendamentos(db, user), Agendamento.created_at, inicio, fim)

    total = query.count()
    completed = query.filter(Agendamento.status == StatusAgendamento.CONCLUIDO).count()
    cancelled = query.filter(Agendamento.status == StatusAgendamento.CANCELADO).count()
    upcoming = query.filter(
        Agendamento.data_evento >= agora,
        Agendamento.status != StatusAgendamento.CANCELADO,
    ).count()

    dias = Counter(
        to_local(data).weekday()
        for (data,) in query.with_entities(Agendamento.data_evento).all()
        if data
    )

    return {
        "total": total,
        "upcoming": upcoming,
        "completed": completed,
        "cancelled": cancelled,
        "weeklyDistribution": [
            {"day": nome, "weekday": indice, "count": dias.get(indice, 0)}
            for indice, nome in enumerate(DIAS_SEMANA)
        ],
        "completionRate": _percentual(completed, total),
    }


def _estatisticas_usuarios_vazias() -> Dict[str, Any]:
    return {"total": 0, "active": 0, "inactive": 0, "byRole": [], "recentRegistrations": [], "growth": 0.0}


def get_user_stats(db: Session, user: User, inicio: datetime, fim: datetime) -> Dict[str, Any]:
    """Apenas para Admin; os demais recebem a estrutura zerada."""
    if user.role != Role.ADMIN:
        return _estatisticas_usuarios_vazias()

    total = db.query(User).count()
    ativos = db.query(User).filter(User.is_active == True).count()
    por_papel = db.query(User.role, func.count(User.id)).group_by(User.role).all()

    registros = _no_periodo(db.query(User.created_at), User.created_at, inicio, fim).all()
    por_dia = Counter(to_local(criado).strftime("%Y-%m-%d") for (criado,) in registros if criado)

    janela = fim - inicio
    anteriores = db.query(User).filter(User.created_at >= inicio - janela, User.created_at < inicio).count()

    return {
        "total": total,
        "active": ativos,
        "inactive": total - ativos,
        "byRole": [{"role": role, "count": count} for role, count in sorted(por_papel)],
        "recentRegistrations": [{"date": dia, "count": por_dia[dia]} for dia in sorted(por_dia)],
        "growth": _variacao(len(registros), anteriores),
    }


def calculate_system_health(response_time: float, error_rate: float, cache_hit_rate: float) -> str:
    for max_resposta, max_erro, min_cache, nivel in LIMIARES_SAUDE:
        if response_time < max_resposta and error_rate < max_erro and cache_hit_rate > min_cache:
            return nivel
    return SaudeSistema.POOR


def get_performance_stats() -> Dict[str, Any]:
    snapshot = get_metrics().get_performance_snapshot()
    response_time = snapshot["response_time_ms"]
    error_rate = snapshot["error_rate"]
    cache_hit_rate = redis_service.cache_hit_rate()

    return {
        "responseTime": response_time,
        "errorRate": error_rate,
        "cacheHitRate": cache_hit_rate,
        "dbConnections": get_pool_status()["checked_out"],
        "systemHealth": calculate_system_health(response_time, error_rate, cache_hit_rate),
    }


def get_default_stats(period: str = PERIODO_PADRAO) -> Dict[str, Any]:
    return {
        "processes": {
            "total": 0, "active": 0, "archived": 0, "suspended": 0,
            "statusDistribution": [], "monthlyTrend": [], "averagePerMonth": 0,
        },
        "appointments": {
            "total": 0, "upcoming": 0, "completed": 0, "cancelled": 0,
            "weeklyDistribution": [], "completionRate": 0,
        },
        "users": _estatisticas_usuarios_vazias(),
        "performance": {
            "responseTime": 0, "errorRate": 0, "cacheHitRate": 0, "dbConnections": 0,
            "systemHealth": SaudeSistema.UNKNOWN,
        },
        "period": period,
        "lastUpdated": now_utc().isoformat(),
    }


def calculate_dashboard_stats(db: Session, user: User, filters: Dict[str, Any]) -> Dict[str, Any]:
    period = filters.get("period") or PERIODO_PADRAO
    inicio, fim = get_date_range(period)
    return {
        "processes": get_process_stats(db, user, inicio, fim),
        "appointments": get_appointment_stats(db, user, inicio, fim),
        "users": get_user_stats(db, user, inicio, fim),
        "performance": get_performance_stats(),
        "period": period,
        "lastUpdated": now_utc().isoformat(),
    }


async def get_dashboard_stats(db: Session, user: User, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Estatísticas do painel com cache; em caso de erro devolve a estrutura zerada."""
    filters = filters or {}
    cache_key = f"dashboard_stats:{user.id}:{redis_service._filters_key(filters)}"
    try:
        stats = await redis_service.get(cache_key)
        if stats is None:
            stats = calculate_dashboard_stats(db, user, filters)
            await redis_service.set(cache_key, stats, CACHE_DASHBOARD_TTL)
        return stats
    except Exception as e:
        logger.error(f"Erro ao obter estatísticas do dashboard do usuário {user.id}: {e}")
        return get_default_stats(filters.get("period") or PERIODO_PADRAO)


async def refresh_dashboard_cache() -> int:
    """Tarefa agendada: descarta as estatísticas em cache."""
    removidas = await redis_service.delete_pattern("dashboard_stats:*")
    logger.info(f"[ANALYTICS] Cache do dashboard renovado ({removidas} chaves)")
    return removidas


# ==========================================
# KPIs
# ==========================================

def get_process_resolution_time(db: Session, user: User) -> float:
    """Média de dias entre abertura e encerramento dos processos encerrados."""
    encerrados = _processos(db, user).filter(Processo.data_encerramento.isnot(None)).with_entities(
        Processo.created_at, Processo.data_encerramento
    ).all()
    duracoes = [
        (as_utc(fim) - as_utc(inicio)).total_seconds() / 86400
        for inicio, fim in encerrados
        if inicio and fim
    ]
    return round(sum(duracoes) / len(duracoes), 1) if duracoes else 0.0


def get_appointment_attendance_rate(db: Session, user: User, agora: Optional[datetime] = None) -> float:
    """Percentual de agendamentos passados (não cancelados) que foram concluídos."""
    agora = as_utc(agora) if agora else now_utc()
    passados = _agendamentos(db, user).filter(
        Agendamento.data_evento < agora,
        Agendamento.status != StatusAgendamento.CANCELADO,
    )
    total = passados.count()
    concluidos = passados.filter(Agendamento.status == StatusAgendamento.CONCLUIDO).count()
    return _percentual(concluidos, total)


def get_user_activity_score(db: Session, user: User, agora: Optional[datetime] = None) -> int:
    """Ações auditadas do usuário nos últimos 30 dias."""
    agora = as_utc(agora) if agora else now_utc()
    return db.query(AuditLog).filter(
        AuditLog.user_id == user.id,
        AuditLog.created_at >= agora - timedelta(days=JANELA_ATIVIDADE_DIAS),
    ).count()


def get_system_utilization(db: Session) -> float:
    """Percentual de usuários ativos."""
    return _percentual(db.query(User).filter(User.is_active == True).count(), db.query(User).count())


def get_custom_kpis(db: Session, user: User, kpi_types: Iterable[str]) -> Dict[str, Any]:
    calculos = {
        "process_resolution_time": lambda: get_process_resolution_time(db, user),
        "appointment_attendance_rate": lambda: get_appointment_attendance_rate(db, user),
        "user_activity_score": lambda: get_user_activity_score(db, user),
        "system_utilization": lambda: get_system_utilization(db),
    }

    kpis = {}
    for tipo in kpi_types:
        calculo = calculos.get(tipo)
        if calculo is None:
            logger.warning(f"Tipo de KPI não reconhecido: {tipo}")
            continue
        kpis[tipo] = calculo()
    return kpis


# ==========================================
# Tendências
# ==========================================

def _chave_bucket(dt: datetime, granularity: str) -> str:
    local = to_local(dt)
    if granularity == "month":
        return local.strftime("%Y-%m")
    if granularity == "week":
        return (local.date() - timedelta(days=local.weekday())).isoformat()
    return local.strftime("%Y-%m-%d")


def _buckets(inicio: datetime, fim: datetime, granularity: str) -> List[str]:
    """Chaves de todos os buckets entre início e fim, em ordem."""
    chaves = []
    dia = to_local(inicio).date()
    ultimo = to_local(fim).date()
    while dia <= ultimo:
        chave = _chave_bucket(to_utc(datetime.combine(dia, time(12))), granularity)
        if not chaves or chaves[-1] != chave:
            chaves.append(chave)
        dia += timedelta(days=1)
    return chaves


def _serie_contagem(datas: Sequence[datetime], chaves: List[str], granularity: str) -> List[Dict[str, Any]]:
    contagem = Counter(_chave_bucket(d, granularity) for d in datas if d)
    return [{"period": chave, "value": contagem.get(chave, 0)} for chave in chaves]


def get_trends(
    db: Session,
    user: User,
    metric: Optional[str],
    period: str = PERIODO_PADRAO,
    granularity: str = "day"
) -> Dict[str, Any]:
    """
    Série temporal da métrica no período.

    Raises:
        MetricaInvalidaError: métrica ausente, desconhecida ou granularidade inválida
    """
    if not metric:
        raise MetricaInvalidaError("Parâmetro metric é obrigatório")
    if metric not in METRICAS_TENDENCIA:
        raise MetricaInvalidaError("Métrica inválida")
    if granularity not in GRANULARIDADES:
        raise MetricaInvalidaError("Granularidade inválida")

    inicio, fim = get_date_range(period)
    chaves = _buckets(inicio, fim, granularity)

    if metric == "processes":
        datas = [c for (c,) in _no_periodo(_processos(db, user), Processo.created_at, inicio, fim)
                 .with_entities(Processo.created_at).all()]
        dados = _serie_contagem(datas, chaves, granularity)
    elif metric == "appointments":
        datas = [c for (c,) in _no_periodo(_agendamentos(db, user), Agendamento.created_at, inicio, fim)
                 .with_entities(Agendamento.created_at).all()]
        dados = _serie_contagem(datas, chaves, granularity)
    elif metric == "users":
        datas = [c for (c,) in _no_periodo(db.query(User.created_at), User.created_at, inicio, fim).all()]
        dados = _serie_contagem(datas, chaves, granularity)
    else:
        # Tempo médio de resposta (ms) ponderado pelo número de requisições
        soma: Dict[str, float] = {}
        total: Dict[str, int] = {}
        for ponto in get_metrics().get_timeline(since=inicio):
            chave = _chave_bucket(ponto["minute"], granularity)
            soma[chave] = soma.get(chave, 0.0) + ponto["avg_ms"] * ponto["count"]
            total[chave] = total.get(chave, 0) + ponto["count"]
        dados = [
            {"period": chave, "value": round(soma[chave] / total[chave], 2) if total.get(chave) else 0}
            for chave in chaves
        ]

    return {"metric": metric, "period": period, "granularity": granularity, "data": dados}


# ==========================================
# Comparação de períodos
# ==========================================

def _totais_periodo(db: Session, user: User, metric: str, inicio: datetime, fim: datetime) -> Dict[str, int]:
    if metric == "processes":
        query = _no_periodo(_processos(db, user), Processo.created_at, inicio, fim)
        return {
            "total": query.count(),
            "active": query.filter(Processo.status.notin_(StatusProcesso.INATIVOS)).count(),
        }
    if metric == "appointments":
        query = _no_periodo(_agendamentos(db, user), Agendamento.created_at, inicio, fim)
        return {
            "total": query.count(),
            "completed": query.filter(Agendamento.status == StatusAgendamento.CONCLUIDO).count(),
        }
    if user.role != Role.ADMIN:
        return {"total": 0, "active": 0}
    query = _no_periodo(db.query(User), User.created_at, inicio, fim)
    return {"total": query.count(), "active": query.filter(User.is_active == True).count()}


def compare_periods(
    db: Session,
    user: User,
    current_period: str,
    previous_period: str,
    metrics: Iterable[str] = ("processes", "appointments")
) -> Dict[str, Any]:
    """
    Raises:
        PeriodoInvalidoError, MetricaInvalidaError
    """
    metricas = [m.strip() for m in metrics if m.strip()]
    invalidas = [m for m in metricas if m not in METRICAS_COMPARACAO]
    if invalidas:
        raise MetricaInvalidaError(f"Métricas inválidas: {', '.join(invalidas)}")

    atual_inicio, atual_fim = parse_period(current_period)
    anterior_inicio, anterior_fim = parse_period(previous_period)

    resultado = {
        "current": {"period": current_period},
        "previous": {"period": previous_period},
        "comparison": {},
    }
    for metric in metricas:
        atual = _totais_periodo(db, user, metric, atual_inicio, atual_fim)
        anterior = _totais_periodo(db, user, metric, anterior_inicio, anterior_fim)
        resultado["current"][metric] = atual
        resultado["previous"][metric] = anterior
        resultado["comparison"][metric] = {
            campo: {"change": atual[campo] - anterior[campo], "percentage": _variacao(atual[campo], anterior[campo])}
            for campo in atual
        }
    return resultado
