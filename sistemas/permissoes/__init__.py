# sistemas/permissoes/__init__.py
"""
Módulo de Permissões

Tabela estática de ações por papel (Admin > Professor > Aluno),
grupos de usuários com permissões extras e trilha de auditoria.
"""

from sistemas.permissoes.router import router
from sistemas.permissoes.dependencies import authorize, check_resource_ownership

__all__ = ["router", "authorize", "check_resource_ownership"]
