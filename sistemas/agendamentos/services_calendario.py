# sistemas/agendamentos/services_calendario.py
"""
Regras de calendário: conflitos de horário, sugestão de horários livres,
recorrência e exportação iCalendar (.ics).

Horários são gravados em UTC. Horário comercial, manhã/tarde e fim de
semana são avaliados no horário local (America/Cuiaba).
"""

import logging
from datetime import datetime, timedelta, time
from typing import Any, Dict, List, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from sistemas.agendamentos.constants import (
    StatusAgendamento, Frequencia, RRULE_FREQ, DURACAO_PADRAO_MINUTOS,
    DURACAO_MAXIMA_MINUTOS, MAX_OCORRENCIAS_RECORRENCIA, HORARIO_INICIO, HORARIO_FIM,
    DIAS_VERIFICACAO, MAX_SUGESTOES
)
from sistemas.agendamentos.models import Agendamento
from utils.timezone import TIMEZONE_LOCAL, UTC, as_utc, to_local, to_utc, now_utc

logger = logging.getLogger(__name__)


def fim_evento(inicio: datetime, duracao_minutos: Optional[int]) -> datetime:
    return as_utc(inicio) + timedelta(minutes=duracao_minutos or DURACAO_PADRAO_MINUTOS)


def intervalos_sobrepoem(inicio_a: datetime, fim_a: datetime, inicio_b: datetime, fim_b: datetime) -> bool:
    """Intervalos semiabertos [inicio, fim): encostar não é conflito."""
    return inicio_a < fim_b and inicio_b < fim_a


def _agendamentos_no_periodo(
    db: Session,
    usuario_id: int,
    inicio: datetime,
    fim: datetime,
    excluir_id: Optional[int] = None
) -> List[Agendamento]:
    """Agendamentos não cancelados do usuário que podem tocar [inicio, fim)."""
    query = db.query(Agendamento).filter(
        Agendamento.usuario_id == usuario_id,
        Agendamento.status != StatusAgendamento.CANCELADO,
        Agendamento.data_evento < fim,
        Agendamento.data_evento >= inicio - timedelta(minutes=DURACAO_MAXIMA_MINUTOS),
    )
    if excluir_id is not None:
        query = query.filter(Agendamento.id != excluir_id)
    return query.order_by(Agendamento.data_evento).all()


def _conflitos_em(agendamentos: List[Agendamento], inicio: datetime, fim: datetime) -> List[Agendamento]:
    return [
        a for a in agendamentos
        if intervalos_sobrepoem(inicio, fim, as_utc(a.data_evento), fim_evento(a.data_evento, a.duracao_minutos))
    ]


def verificar_conflitos(
    db: Session,
    usuario_id: int,
    data_evento: datetime,
    duracao_minutos: int = DURACAO_PADRAO_MINUTOS,
    excluir_id: Optional[int] = None
) -> Dict[str, Any]:
    """
    Verifica se o intervalo [data_evento, data_evento + duração) colide com
    outro agendamento não cancelado do mesmo usuário.

    Returns:
        {"hasConflicts": bool, "conflicts": [{id, titulo, data_evento, duracao_minutos, source}]}
    """
    inicio = as_utc(data_evento)
    fim = fim_evento(inicio, duracao_minutos)
    conflitos = _conflitos_em(_agendamentos_no_periodo(db, usuario_id, inicio, fim, excluir_id), inicio, fim)
    return {
        "hasConflicts": bool(conflitos),
        "conflicts": [
            {
                "id": c.id,
                "titulo": c.titulo,
                "data_evento": as_utc(c.data_evento),
                "duracao_minutos": c.duracao_minutos,
                "source": "local",
            }
            for c in conflitos
        ],
    }


# ==========================================
# Sugestão de horários
# ==========================================

def calcular_score(sugerido: datetime, original: datetime, preferir_manha: bool = False) -> int:
    """
    Pontuação de um horário sugerido (0 a 100).

    -2 por hora inteira de distância do horário pedido,
    -20 à tarde quando se prefere manhã, -30 em fim de semana.
    """
    score = 100
    horas = int(abs((as_utc(sugerido) - as_utc(original)).total_seconds()) // 3600)
    score -= horas * 2

    local = to_local(sugerido)
    if preferir_manha and local.hour > 12:
        score -= 20
    if local.weekday() >= 5:
        score -= 30

    return max(0, score)


def sugerir_horarios(
    db: Session,
    usuario_id: int,
    data_evento: datetime,
    duracao_minutos: int = DURACAO_PADRAO_MINUTOS,
    horario_inicio: int = HORARIO_INICIO,
    horario_fim: int = HORARIO_FIM,
    dias_verificacao: int = DIAS_VERIFICACAO,
    pular_fins_de_semana: bool = False,
    preferir_manha: bool = False,
    max_sugestoes: int = MAX_SUGESTOES,
    agora: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """
    Varre horas cheias do horário comercial a partir do dia pedido e devolve
    os horários livres, melhor pontuação primeiro. Horários no passado são ignorados.
    """
    original = as_utc(data_evento)
    agora = as_utc(agora) if agora else now_utc()
    primeiro_dia = to_local(original).date()

    periodo_inicio = to_utc(datetime.combine(primeiro_dia, time(0)))
    periodo_fim = to_utc(datetime.combine(primeiro_dia + timedelta(days=dias_verificacao), time(0))) + timedelta(minutes=duracao_minutos)
    ocupados = _agendamentos_no_periodo(db, usuario_id, periodo_inicio, periodo_fim)

    sugestoes: List[Dict[str, Any]] = []
    for dia_offset in range(dias_verificacao):
        dia = primeiro_dia + timedelta(days=dia_offset)
        if pular_fins_de_semana and dia.weekday() >= 5:
            continue

        for hora in range(horario_inicio, horario_fim):
            slot = TIMEZONE_LOCAL.localize(datetime.combine(dia, time(hora))).astimezone(UTC)
            if slot <= agora:
                continue

            if not _conflitos_em(ocupados, slot, slot + timedelta(minutes=duracao_minutos)):
                sugestoes.append({
                    "data_evento": slot,
                    "score": calcular_score(slot, original, preferir_manha),
                })
                if len(sugestoes) >= max_sugestoes:
                    break

        if len(sugestoes) >= max_sugestoes:
            break

    sugestoes.sort(key=lambda s: s["score"], reverse=True)
    return sugestoes


# ==========================================
# Recorrência
# ==========================================

def gerar_regra_recorrencia(frequencia: Optional[str], fim_recorrencia: Optional[datetime] = None) -> Optional[str]:
    """RRULE:FREQ=DAILY|WEEKLY|MONTHLY[;UNTIL=YYYYMMDDTHHMMSSZ]"""
    freq = RRULE_FREQ.get(frequencia)
    if freq is None:
        return None
    regra = f"RRULE:FREQ={freq}"
    if fim_recorrencia:
        regra += f";UNTIL={as_utc(fim_recorrencia).strftime('%Y%m%dT%H%M%SZ')}"
    return regra


def calcular_ocorrencias(
    inicio: datetime,
    frequencia: str,
    fim_recorrencia: Optional[datetime] = None,
    maximo: int = MAX_OCORRENCIAS_RECORRENCIA
) -> List[datetime]:
    """
    Datas (UTC) das ocorrências seguintes à primeira, até fim_recorrencia
    inclusive e no máximo `maximo`. O horário local de parede é mantido.
    """
    base = to_local(inicio).replace(tzinfo=None)
    limite = as_utc(fim_recorrencia) if fim_recorrencia else None

    ocorrencias = []
    for i in range(1, maximo + 1):
        if frequencia == Frequencia.DIARIA:
            proxima = base + timedelta(days=i)
        elif frequencia == Frequencia.SEMANAL:
            proxima = base + timedelta(weeks=i)
        elif frequencia == Frequencia.MENSAL:
            proxima = base + relativedelta(months=i)
        else:
            break

        proxima_utc = to_utc(proxima)
        if limite is not None and proxima_utc > limite:
            break
        ocorrencias.append(proxima_utc)

    return ocorrencias


# ==========================================
# iCalendar
# ==========================================

_ICS_STATUS = {
    StatusAgendamento.AGENDADO: "TENTATIVE",
    StatusAgendamento.REMARCADO: "TENTATIVE",
    StatusAgendamento.CONFIRMADO: "CONFIRMED",
    StatusAgendamento.CONCLUIDO: "CONFIRMED",
    StatusAgendamento.CANCELADO: "CANCELLED",
}


def _ics_escape(texto: Optional[str]) -> str:
    if not texto:
        return ""
    return (
        texto.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def _ics_data(dt: datetime) -> str:
    return as_utc(dt).strftime("%Y%m%dT%H%M%SZ")


def gerar_ics(agendamento: Agendamento) -> str:
    """Arquivo .ics (VCALENDAR com um VEVENT) do agendamento."""
    linhas = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//NPJ UFMT//Portal NPJ//PT-BR",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        "BEGIN:VEVENT",
        f"UID:agendamento-{agendamento.id}@portal-npj",
        f"DTSTAMP:{_ics_data(now_utc())}",
        f"DTSTART:{_ics_data(agendamento.data_evento)}",
        f"DTEND:{_ics_data(fim_evento(agendamento.data_evento, agendamento.duracao_minutos))}",
        f"SUMMARY:{_ics_escape(agendamento.titulo)}",
    ]
    if agendamento.descricao:
        linhas.append(f"DESCRIPTION:{_ics_escape(agendamento.descricao)}")
    if agendamento.local:
        linhas.append(f"LOCATION:{_ics_escape(agendamento.local)}")
    linhas.append(f"STATUS:{_ICS_STATUS.get(agendamento.status, 'TENTATIVE')}")

    if agendamento.recorrente:
        regra = gerar_regra_recorrencia(agendamento.frequencia, agendamento.fim_recorrencia)
        if regra:
            linhas.append(regra)

    linhas += ["END:VEVENT", "END:VCALENDAR"]
    return "\r\n".join(linhas) + "\r\n"
