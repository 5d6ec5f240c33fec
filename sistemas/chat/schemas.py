# sistemas/chat/schemas.py
"""
Schemas Pydantic do módulo de Chat
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class SalaCreate(BaseModel):
    """Nome validado no router (400 em vez de 422)"""
    name: Optional[str] = None
    description: str = ""
    members: List[int] = Field(default_factory=list)
    isPrivate: bool = False
    allowFileUpload: bool = True
    maxMembers: int = Field(100, ge=2, le=1000)


class MembroAdd(BaseModel):
    userId: Optional[int] = None
