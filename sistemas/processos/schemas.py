# sistemas/processos/schemas.py
"""
Schemas Pydantic para validação de requisições e respostas do módulo de Processos
"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

from auth.schemas import UserResumo

STATUS_PATTERN = "^(Aberto|Em andamento|Aguardando audiência|Aguardando sentença|Suspenso|Arquivado|Finalizado)$"
SISTEMA_PATTERN = "^(Físico|PEA|PJE)$"


# ==========================================
# Requests
# ==========================================

class ProcessoCreate(BaseModel):
    numero_processo: str = Field(..., min_length=1, max_length=50)
    descricao: Optional[str] = None
    status: str = Field(default="Aberto", pattern=STATUS_PATTERN)
    tipo_processo: Optional[str] = Field(None, max_length=100)
    sistema: str = Field(default="Físico", pattern=SISTEMA_PATTERN)
    num_processo_sei: Optional[str] = Field(None, max_length=50)
    assistido: Optional[str] = Field(None, max_length=200)
    contato_assistido: Optional[str] = Field(None, max_length=200)
    observacoes: Optional[str] = None
    data_encerramento: Optional[datetime] = None
    idusuario_responsavel: Optional[int] = None
    materia_assunto_id: Optional[int] = None
    fase_id: Optional[int] = None
    diligencia_id: Optional[int] = None
    local_tramitacao_id: Optional[int] = None


class ProcessoUpdate(BaseModel):
    """Todos os campos opcionais; só os enviados são alterados"""
    numero_processo: Optional[str] = Field(None, min_length=1, max_length=50)
    descricao: Optional[str] = None
    status: Optional[str] = Field(None, pattern=STATUS_PATTERN)
    tipo_processo: Optional[str] = Field(None, max_length=100)
    sistema: Optional[str] = Field(None, pattern=SISTEMA_PATTERN)
    num_processo_sei: Optional[str] = Field(None, max_length=50)
    assistido: Optional[str] = Field(None, max_length=200)
    contato_assistido: Optional[str] = Field(None, max_length=200)
    observacoes: Optional[str] = None
    data_encerramento: Optional[datetime] = None
    idusuario_responsavel: Optional[int] = None
    materia_assunto_id: Optional[int] = None
    fase_id: Optional[int] = None
    diligencia_id: Optional[int] = None
    local_tramitacao_id: Optional[int] = None


class AtualizacaoCreate(BaseModel):
    descricao: str = Field(..., min_length=1, max_length=5000)


class UsuarioProcessoAdd(BaseModel):
    usuario_id: int


# ==========================================
# Responses
# ==========================================

class ProcessoResponse(BaseModel):
    id: int
    numero_processo: str
    descricao: Optional[str] = None
    status: str
    tipo_processo: Optional[str] = None
    sistema: str
    num_processo_sei: Optional[str] = None
    assistido: Optional[str] = None
    contato_assistido: Optional[str] = None
    observacoes: Optional[str] = None
    data_encerramento: Optional[datetime] = None
    idusuario_responsavel: Optional[int] = None
    responsavel_nome: Optional[str] = None
    materia_assunto_id: Optional[int] = None
    materia_assunto: Optional[str] = None
    fase_id: Optional[int] = None
    fase: Optional[str] = None
    diligencia_id: Optional[int] = None
    diligencia: Optional[str] = None
    local_tramitacao_id: Optional[int] = None
    local_tramitacao: Optional[str] = None
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class ProcessoListaResponse(BaseModel):
    items: List[ProcessoResponse]
    total: int
    page: int
    page_size: int


class AtualizacaoResponse(BaseModel):
    id: int
    processo_id: int
    usuario_id: Optional[int] = None
    usuario_nome: Optional[str] = None
    tipo: str
    descricao: str
    created_at: datetime


class UsuarioProcessoResponse(UserResumo):
    associado_em: Optional[datetime] = None
