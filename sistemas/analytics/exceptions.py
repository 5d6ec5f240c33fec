# sistemas/analytics/exceptions.py
"""
Exceções específicas do módulo de Analytics
"""


class AnalyticsError(Exception):
    """Erro base do módulo"""
    pass


class PeriodoInvalidoError(AnalyticsError):
    pass


class MetricaInvalidaError(AnalyticsError):
    pass


class FormatoInvalidoError(AnalyticsError):
    pass
