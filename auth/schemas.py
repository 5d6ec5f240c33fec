"""
Schemas Pydantic para autenticação e usuários
"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime

from utils.password_policy import validate_password

ROLE_PATTERN = "^(Admin|Professor|Aluno)$"


# ==========================================
# Schemas de Token
# ==========================================

class Token(BaseModel):
    """Token JWT retornado no login"""
    access_token: str
    token_type: str = "bearer"


class ChangePasswordRequest(BaseModel):
    """Request de troca de senha"""
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def senha_forte(cls, v: str) -> str:
        return validate_password(v)


# ==========================================
# Schemas de Usuário
# ==========================================

class UserBase(BaseModel):
    """Base para schemas de usuário"""
    nome: str = Field(..., min_length=2, max_length=200)
    email: EmailStr
    telefone: Optional[str] = Field(None, max_length=30)
    role: str = Field(default="Aluno", pattern=ROLE_PATTERN)


class UserCreate(UserBase):
    """Schema para criação de usuário"""
    password: Optional[str] = None  # Se None, usa senha padrão

    @field_validator("password")
    @classmethod
    def senha_forte(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return validate_password(v)


class UserUpdate(BaseModel):
    """Schema para atualização de usuário"""
    nome: Optional[str] = Field(None, min_length=2, max_length=200)
    email: Optional[EmailStr] = None
    telefone: Optional[str] = Field(None, max_length=30)
    role: Optional[str] = Field(None, pattern=ROLE_PATTERN)
    is_active: Optional[bool] = None


class UserResponse(UserBase):
    """Schema de resposta com dados do usuário"""
    id: int
    is_active: bool
    must_change_password: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UserResumo(BaseModel):
    """Dados mínimos de um usuário (listas de alunos, membros)"""
    id: int
    nome: str
    email: str
    role: str

    model_config = {"from_attributes": True}


class UserMe(BaseModel):
    """Schema para /auth/me - dados do usuário logado"""
    id: int
    nome: str
    email: str
    telefone: Optional[str] = None
    role: str
    must_change_password: bool

    model_config = {"from_attributes": True}
