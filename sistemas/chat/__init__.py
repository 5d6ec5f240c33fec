# sistemas/chat/__init__.py
"""
Módulo de Chat

Salas geral, por processo, privadas e personalizadas. Mensagens e salas
personalizadas ficam no Redis; a presença nas salas fica em memória.
"""

from sistemas.chat.router import router

__all__ = ["router"]
