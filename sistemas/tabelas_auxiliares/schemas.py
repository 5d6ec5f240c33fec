# sistemas/tabelas_auxiliares/schemas.py
from pydantic import BaseModel, Field


class ItemAuxiliarCreate(BaseModel):
    nome: str = Field(..., min_length=1, max_length=150)


class ItemAuxiliarResponse(BaseModel):
    id: int
    nome: str

    model_config = {"from_attributes": True}
