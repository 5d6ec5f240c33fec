# sistemas/analytics/constants.py
"""
Constantes do módulo de Analytics
"""

PERIODO_PADRAO = "30d"

# Código do período -> (dias, anos)
PERIODOS = {
    "7d": (7, 0),
    "30d": (30, 0),
    "90d": (90, 0),
    "1y": (0, 1),
}

METRICAS_TENDENCIA = ("processes", "appointments", "users", "performance")
GRANULARIDADES = ("day", "week", "month")
METRICAS_COMPARACAO = ("processes", "appointments", "users")

FORMATOS_EXPORTACAO = ("json", "csv", "excel")
EXCEL_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

KPIS_PADRAO = ("process_resolution_time", "appointment_attendance_rate", "user_activity_score")
JANELA_ATIVIDADE_DIAS = 30

DIAS_SEMANA = ("Segunda", "Terça", "Quarta", "Quinta", "Sexta", "Sábado", "Domingo")


class SaudeSistema:
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    UNKNOWN = "unknown"


# (tempo de resposta ms <, taxa de erro % <, cache hit % >) -> nível
LIMIARES_SAUDE = (
    (200, 1, 80, SaudeSistema.EXCELLENT),
    (500, 5, 60, SaudeSistema.GOOD),
    (1000, 10, 40, SaudeSistema.FAIR),
)
