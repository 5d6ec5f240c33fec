# sistemas/processos/__init__.py
"""
Módulo de Processos

Cadastro e acompanhamento dos processos do NPJ, com usuários associados
e histórico de atualizações.
"""

from sistemas.processos.router import router

__all__ = ["router"]
