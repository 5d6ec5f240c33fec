# sistemas/notificacoes/__init__.py
"""
Módulo de Notificações

Notificações por template entregues via WebSocket, guardadas no Redis
e, conforme as preferências do usuário, enviadas por e-mail.
"""

from sistemas.notificacoes.router import router

__all__ = ["router"]
