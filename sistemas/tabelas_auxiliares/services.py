# sistemas/tabelas_auxiliares/services.py
"""
CRUD genérico das tabelas auxiliares (matéria/assunto, fase, diligência, local de tramitação)
"""

import logging
from typing import List, Tuple, Type

from sqlalchemy import func
from sqlalchemy.orm import Session

from database.connection import Base
from sistemas.tabelas_auxiliares.constants import TABELAS, VALORES_INICIAIS
from sistemas.tabelas_auxiliares.exceptions import (
    TabelaNaoEncontradaError, ItemNaoEncontradoError, NomeDuplicadoError, ItemEmUsoError
)

logger = logging.getLogger(__name__)


def resolver_tabela(tabela: str) -> Tuple[Type[Base], str]:
    if tabela not in TABELAS:
        raise TabelaNaoEncontradaError(f"Tabela auxiliar '{tabela}' não existe")
    return TABELAS[tabela]


def listar_itens(db: Session, tabela: str) -> List[Base]:
    model, _ = resolver_tabela(tabela)
    return db.query(model).order_by(model.nome).all()


def _nome_em_uso(db: Session, model, nome: str, ignorar_id: int = None) -> bool:
    query = db.query(model).filter(func.lower(model.nome) == nome.lower())
    if ignorar_id is not None:
        query = query.filter(model.id != ignorar_id)
    return db.query(query.exists()).scalar()


def criar_item(db: Session, tabela: str, nome: str):
    model, _ = resolver_tabela(tabela)
    nome = nome.strip()
    if _nome_em_uso(db, model, nome):
        raise NomeDuplicadoError(f"Já existe um item '{nome}' em {tabela}")

    item = model(nome=nome)
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def atualizar_item(db: Session, tabela: str, item_id: int, nome: str):
    model, _ = resolver_tabela(tabela)
    item = db.query(model).filter(model.id == item_id).first()
    if not item:
        raise ItemNaoEncontradoError(f"Item {item_id} não encontrado em {tabela}")

    nome = nome.strip()
    if _nome_em_uso(db, model, nome, ignorar_id=item_id):
        raise NomeDuplicadoError(f"Já existe um item '{nome}' em {tabela}")

    item.nome = nome
    db.commit()
    db.refresh(item)
    return item


def remover_item(db: Session, tabela: str, item_id: int):
    from sistemas.processos.models import Processo

    model, coluna_processo = resolver_tabela(tabela)
    item = db.query(model).filter(model.id == item_id).first()
    if not item:
        raise ItemNaoEncontradoError(f"Item {item_id} não encontrado em {tabela}")

    em_uso = db.query(Processo).filter(getattr(Processo, coluna_processo) == item_id).count()
    if em_uso:
        raise ItemEmUsoError(f"Item usado por {em_uso} processo(s)")

    db.delete(item)
    db.commit()


def seed_tabelas_auxiliares(db: Session) -> int:
    """Cria os valores iniciais que ainda não existem. Retorna quantos foram criados."""
    criados = 0
    for tabela, nomes in VALORES_INICIAIS.items():
        model, _ = TABELAS[tabela]
        for nome in nomes:
            if not db.query(model).filter(model.nome == nome).first():
                db.add(model(nome=nome))
                criados += 1
    if criados:
        db.commit()
        logger.info(f"{criados} itens de tabelas auxiliares criados")
    return criados
