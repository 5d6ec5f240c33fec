# sistemas/tabelas_auxiliares/__init__.py
"""
Módulo de Tabelas Auxiliares (matéria/assunto, fase, diligência, local de tramitação)
"""

from sistemas.tabelas_auxiliares.router import router

__all__ = ["router"]
