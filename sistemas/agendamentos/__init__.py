# sistemas/agendamentos/__init__.py
"""
Módulo de Agendamentos

Audiências, reuniões e prazos com verificação de conflitos, sugestão de
horários, recorrência, lembretes automáticos e exportação iCalendar.
"""

from sistemas.agendamentos.router import router

__all__ = ["router"]
