# sistemas/permissoes/schemas.py
"""
Schemas Pydantic do módulo de permissões
"""

from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class GrupoCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = None
    permissions: Dict[str, List[str]] = Field(default_factory=dict)


class MembroAdd(BaseModel):
    user_id: int


class GrupoResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    permissions: Dict[str, List[str]]
    is_active: bool
    created_by: int
    created_at: datetime
    members: List[int] = []

    model_config = {"from_attributes": True}


class PermissoesResponse(BaseModel):
    """Permissões efetivas de um usuário ou papel"""
    role: str
    permissions: Dict[str, List[str]]
