# sistemas/analytics/__init__.py
"""
Módulo de Analytics

Estatísticas do painel, KPIs, tendências, comparação de períodos e
exportação de relatórios (JSON, CSV e Excel).
"""

from sistemas.analytics.router import router

__all__ = ["router"]
