# sistemas/agendamentos/services_lembretes.py
"""
Lembretes de agendamentos.

Ao criar (ou remarcar) um agendamento são programados lembretes 24h antes
(e-mail), 1h e 15min antes (notificação), apenas os que ainda estão no futuro.
O agendador chama processar_lembretes() a cada minuto.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from database.connection import SessionLocal
from sistemas.agendamentos.constants import (
    LEMBRETES_AUTOMATICOS, StatusLembrete, StatusAgendamento, TipoLembrete
)
from sistemas.agendamentos.models import Agendamento, LembreteAgendamento
from sistemas.notificacoes.services import create_notification_from_template
from utils.timezone import as_utc, now_utc, format_local

logger = logging.getLogger(__name__)


def agendar_lembretes(
    db: Session,
    agendamento: Agendamento,
    agora: Optional[datetime] = None
) -> List[LembreteAgendamento]:
    """Cria os lembretes automáticos (sem commit)."""
    agora = as_utc(agora) if agora else now_utc()
    inicio = as_utc(agendamento.data_evento)

    lembretes = []
    for minutos, tipo, mensagem in LEMBRETES_AUTOMATICOS:
        horario = inicio - timedelta(minutes=minutos)
        if horario <= agora:
            continue
        lembrete = LembreteAgendamento(
            agendamento_id=agendamento.id,
            reminder_type=tipo,
            minutes_before=minutos,
            mensagem=mensagem,
            scheduled_for=horario,
            status=StatusLembrete.PENDING,
        )
        db.add(lembrete)
        lembretes.append(lembrete)

    if lembretes:
        logger.info(f"{len(lembretes)} lembretes programados para agendamento {agendamento.id}")
    return lembretes


def cancelar_lembretes_pendentes(db: Session, agendamento_id: int) -> int:
    """Remove lembretes ainda não enviados (sem commit)."""
    return db.query(LembreteAgendamento).filter(
        LembreteAgendamento.agendamento_id == agendamento_id,
        LembreteAgendamento.status == StatusLembrete.PENDING
    ).delete(synchronize_session=False)


def reprogramar_lembretes(db: Session, agendamento: Agendamento) -> List[LembreteAgendamento]:
    cancelar_lembretes_pendentes(db, agendamento.id)
    agendamento.reminder_sent = False
    return agendar_lembretes(db, agendamento)


async def _enviar_lembrete(lembrete: LembreteAgendamento, db: Session) -> bool:
    agendamento = lembrete.agendamento
    if agendamento is None or agendamento.status == StatusAgendamento.CANCELADO:
        return False

    return await create_notification_from_template(
        "APPOINTMENT_REMINDER",
        agendamento.usuario_id,
        {
            "time": format_local(agendamento.data_evento, "%d/%m/%Y %H:%M"),
            "title": agendamento.titulo,
            "appointmentId": agendamento.id,
        },
        email=lembrete.reminder_type == TipoLembrete.EMAIL,
        db=db,
    )


async def processar_lembretes(db: Optional[Session] = None, agora: Optional[datetime] = None) -> Dict[str, int]:
    """
    Envia os lembretes pendentes cujo horário já chegou.

    Cada lembrete termina como `sent` ou `failed`; o agendamento fica com reminder_sent.
    """
    own_session = db is None
    db = db or SessionLocal()
    agora = as_utc(agora) if agora else now_utc()
    resultado = {"processados": 0, "enviados": 0, "falhas": 0}

    try:
        pendentes = (
            db.query(LembreteAgendamento)
            .filter(
                LembreteAgendamento.status == StatusLembrete.PENDING,
                LembreteAgendamento.scheduled_for <= agora,
            )
            .order_by(LembreteAgendamento.scheduled_for)
            .all()
        )

        for lembrete in pendentes:
            resultado["processados"] += 1
            try:
                enviado = await _enviar_lembrete(lembrete, db)
            except Exception as e:
                logger.error(f"Erro ao enviar lembrete {lembrete.id}: {e}")
                enviado = False

            if enviado:
                lembrete.status = StatusLembrete.SENT
                lembrete.sent_at = now_utc()
                lembrete.agendamento.reminder_sent = True
                resultado["enviados"] += 1
            else:
                lembrete.status = StatusLembrete.FAILED
                resultado["falhas"] += 1

        if pendentes:
            db.commit()
            logger.info(
                f"[LEMBRETES] {resultado['enviados']} enviados, {resultado['falhas']} falhas"
            )
        return resultado
    finally:
        if own_session:
            db.close()
