# sistemas/permissoes/router.py
"""
Router de permissões e grupos de usuários
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from auth.dependencies import get_current_active_user, require_admin
from auth.models import User, Role
from database.connection import get_db
from sistemas.permissoes.exceptions import (
    GrupoNaoEncontradoError, UsuarioNaoEncontradoError, PermissoesInvalidasError
)
from sistemas.permissoes.schemas import GrupoCreate, GrupoResponse, MembroAdd, PermissoesResponse
from sistemas.permissoes.services import (
    get_user_permissions, get_effective_user_permissions, grupo_to_dict,
    create_user_group, list_groups, add_user_to_group, remove_user_from_group,
    get_user_groups
)
from utils.audit import AuditEvent, log_audit_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/permissoes", tags=["Permissões"])


@router.get("/me", response_model=PermissoesResponse)
async def minhas_permissoes(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Permissões efetivas do usuário logado (papel + grupos)"""
    permissions = await get_effective_user_permissions(db, current_user.id)
    return {"role": current_user.role, "permissions": permissions}


@router.get("/roles/{role}", response_model=PermissoesResponse)
async def permissoes_do_papel(
    role: str,
    current_user: User = Depends(get_current_active_user)
):
    if role not in Role.TODOS:
        raise HTTPException(status_code=404, detail="Papel não encontrado")
    return {"role": role, "permissions": get_user_permissions(role)}


# ==========================================
# Grupos
# ==========================================

@router.get("/grupos", response_model=List[GrupoResponse])
async def listar_grupos(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return [grupo_to_dict(g) for g in list_groups(db)]


@router.post("/grupos", response_model=GrupoResponse, status_code=201)
async def criar_grupo(
    dados: GrupoCreate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    try:
        grupo = create_user_group(
            db,
            name=dados.name,
            description=dados.description,
            permissions=dados.permissions,
            created_by=current_user.id,
        )
    except PermissoesInvalidasError as e:
        raise HTTPException(status_code=400, detail={"error": "Permissões inválidas", "details": e.errors})

    log_audit_event(
        AuditEvent.GROUP_CREATED,
        user_id=current_user.id,
        username=current_user.email,
        request=request,
        db=db,
        entity_type="user_group",
        entity_id=grupo.id,
        new_values={"name": grupo.name, "permissions": grupo.permissions},
    )
    return grupo_to_dict(grupo)


@router.post("/grupos/{group_id}/membros", response_model=GrupoResponse)
async def adicionar_membro(
    group_id: int,
    dados: MembroAdd,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    try:
        grupo = await add_user_to_group(db, group_id, dados.user_id, current_user.id)
    except GrupoNaoEncontradoError:
        raise HTTPException(status_code=404, detail="Grupo não encontrado")
    except UsuarioNaoEncontradoError:
        raise HTTPException(status_code=404, detail="Usuário não encontrado")

    log_audit_event(
        AuditEvent.GROUP_MEMBER_ADDED,
        user_id=current_user.id,
        username=current_user.email,
        request=request,
        details={"group_id": group_id, "member_id": dados.user_id},
    )
    return grupo_to_dict(grupo)


@router.delete("/grupos/{group_id}/membros/{user_id}", response_model=GrupoResponse)
async def remover_membro(
    group_id: int,
    user_id: int,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    try:
        grupo = await remove_user_from_group(db, group_id, user_id)
    except GrupoNaoEncontradoError:
        raise HTTPException(status_code=404, detail="Grupo não encontrado")

    log_audit_event(
        AuditEvent.GROUP_MEMBER_REMOVED,
        user_id=current_user.id,
        username=current_user.email,
        request=request,
        details={"group_id": group_id, "member_id": user_id},
    )
    return grupo_to_dict(grupo)


@router.get("/usuarios/{user_id}/grupos", response_model=List[GrupoResponse])
async def grupos_do_usuario(
    user_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Grupos de um usuário (o próprio usuário ou Admin)"""
    if current_user.role != Role.ADMIN and current_user.id != user_id:
        raise HTTPException(status_code=403, detail="Acesso negado")
    return [grupo_to_dict(g) for g in get_user_groups(db, user_id)]
