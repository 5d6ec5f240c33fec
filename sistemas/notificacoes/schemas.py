# sistemas/notificacoes/schemas.py
"""
Schemas Pydantic do módulo de notificações
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class EnviarNotificacaoRequest(BaseModel):
    """Campos obrigatórios validados no router (400 em vez de 422)"""
    userId: Optional[int] = None
    templateKey: Optional[str] = None
    variables: Dict[str, Any] = Field(default_factory=dict)
    email: bool = False


class NotificacaoTesteRequest(BaseModel):
    userId: Optional[int] = None
    message: Optional[str] = None


class NotificationSettings(BaseModel):
    emailEnabled: bool
    realTimeEnabled: bool
    emailTypes: List[str] = []
    realTimeTypes: List[str] = []
