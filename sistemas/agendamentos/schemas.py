# sistemas/agendamentos/schemas.py
"""
Schemas Pydantic do módulo de Agendamentos.

Datas sem fuso são interpretadas no horário local (America/Cuiaba).
"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, model_validator

from utils.timezone import to_utc

TIPO_PATTERN = "^(audiencia|reuniao|prazo|outro)$"
STATUS_PATTERN = "^(Agendado|Confirmado|Concluído|Cancelado|Remarcado)$"
FREQUENCIA_PATTERN = "^(diaria|semanal|mensal)$"


# ==========================================
# Requests
# ==========================================

class AgendamentoCreate(BaseModel):
    processo_id: Optional[int] = None
    usuario_id: Optional[int] = None  # Se None, o próprio usuário
    tipo_evento: str = Field(default="reuniao", pattern=TIPO_PATTERN)
    titulo: str = Field(..., min_length=1, max_length=200)
    descricao: Optional[str] = None
    data_evento: datetime
    duracao_minutos: int = Field(default=60, ge=1, le=1440)
    local: Optional[str] = Field(None, max_length=200)
    recorrente: bool = False
    frequencia: Optional[str] = Field(None, pattern=FREQUENCIA_PATTERN)
    fim_recorrencia: Optional[datetime] = None
    ignorar_conflitos: bool = False

    @model_validator(mode="after")
    def validar_recorrencia(self):
        if self.recorrente and not self.frequencia:
            raise ValueError("frequencia é obrigatória para agendamentos recorrentes")
        if self.fim_recorrencia and to_utc(self.fim_recorrencia) < to_utc(self.data_evento):
            raise ValueError("fim_recorrencia deve ser posterior a data_evento")
        return self


class AgendamentoUpdate(BaseModel):
    processo_id: Optional[int] = None
    usuario_id: Optional[int] = None
    tipo_evento: Optional[str] = Field(None, pattern=TIPO_PATTERN)
    titulo: Optional[str] = Field(None, min_length=1, max_length=200)
    descricao: Optional[str] = None
    data_evento: Optional[datetime] = None
    duracao_minutos: Optional[int] = Field(None, ge=1, le=1440)
    local: Optional[str] = Field(None, max_length=200)
    status: Optional[str] = Field(None, pattern=STATUS_PATTERN)
    ignorar_conflitos: bool = False


class StatusUpdate(BaseModel):
    status: str = Field(..., pattern=STATUS_PATTERN)


class ConflitoRequest(BaseModel):
    usuario_id: Optional[int] = None
    data_evento: datetime
    duracao_minutos: int = Field(default=60, ge=1, le=1440)
    excluir_id: Optional[int] = None


class SugestaoRequest(BaseModel):
    usuario_id: Optional[int] = None
    data_evento: datetime
    duracao_minutos: int = Field(default=60, ge=1, le=1440)
    horario_inicio: int = Field(default=8, ge=0, le=23)
    horario_fim: int = Field(default=18, ge=1, le=24)
    dias_verificacao: int = Field(default=7, ge=1, le=31)
    pular_fins_de_semana: bool = False
    preferir_manha: bool = False
    max_sugestoes: int = Field(default=5, ge=1, le=20)


# ==========================================
# Responses
# ==========================================

class AgendamentoResponse(BaseModel):
    id: int
    processo_id: Optional[int] = None
    criado_por: int
    usuario_id: int
    usuario_nome: Optional[str] = None
    tipo_evento: str
    titulo: str
    descricao: Optional[str] = None
    data_evento: datetime
    data_fim: datetime
    duracao_minutos: int
    local: Optional[str] = None
    status: str
    recorrente: bool
    frequencia: Optional[str] = None
    fim_recorrencia: Optional[datetime] = None
    agendamento_pai_id: Optional[int] = None
    reminder_sent: bool
    created_at: Optional[datetime] = None


class AgendamentoCriadoResponse(AgendamentoResponse):
    ocorrencias_criadas: int = 0


class ConflitoItem(BaseModel):
    id: int
    titulo: str
    data_evento: datetime
    duracao_minutos: int
    source: str = "local"


class ConflitoResponse(BaseModel):
    hasConflicts: bool
    conflicts: List[ConflitoItem]


class SugestaoItem(BaseModel):
    data_evento: datetime
    score: int


class SugestaoResponse(BaseModel):
    suggestions: List[SugestaoItem]


class LembreteResponse(BaseModel):
    id: int
    reminder_type: str
    minutes_before: int
    mensagem: Optional[str] = None
    scheduled_for: datetime
    sent_at: Optional[datetime] = None
    status: str

    model_config = {"from_attributes": True}
