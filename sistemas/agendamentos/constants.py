# sistemas/agendamentos/constants.py
"""
Constantes do módulo de Agendamentos
"""


class TipoEvento:
    AUDIENCIA = "audiencia"
    REUNIAO = "reuniao"
    PRAZO = "prazo"
    OUTRO = "outro"

    TODOS = (AUDIENCIA, REUNIAO, PRAZO, OUTRO)


class StatusAgendamento:
    AGENDADO = "Agendado"
    CONFIRMADO = "Confirmado"
    CONCLUIDO = "Concluído"
    CANCELADO = "Cancelado"
    REMARCADO = "Remarcado"

    TODOS = (AGENDADO, CONFIRMADO, CONCLUIDO, CANCELADO, REMARCADO)


class Frequencia:
    DIARIA = "diaria"
    SEMANAL = "semanal"
    MENSAL = "mensal"

    TODAS = (DIARIA, SEMANAL, MENSAL)


RRULE_FREQ = {
    Frequencia.DIARIA: "DAILY",
    Frequencia.SEMANAL: "WEEKLY",
    Frequencia.MENSAL: "MONTHLY",
}


class TipoLembrete:
    EMAIL = "email"
    NOTIFICATION = "notification"


class StatusLembrete:
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


# (minutos antes, tipo, mensagem)
LEMBRETES_AUTOMATICOS = (
    (24 * 60, TipoLembrete.EMAIL, "Lembrete: Você tem um agendamento amanhã"),
    (60, TipoLembrete.NOTIFICATION, "Lembrete: Seu agendamento é em 1 hora"),
    (15, TipoLembrete.NOTIFICATION, "Lembrete: Seu agendamento é em 15 minutos"),
)

DURACAO_PADRAO_MINUTOS = 60
DURACAO_MAXIMA_MINUTOS = 24 * 60
MAX_OCORRENCIAS_RECORRENCIA = 52

# Sugestão de horários
HORARIO_INICIO = 8
HORARIO_FIM = 18
DIAS_VERIFICACAO = 7
MAX_SUGESTOES = 5
