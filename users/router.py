# users/router.py
"""
Endpoints de gestão de usuários
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from auth.dependencies import get_current_active_user, require_admin, require_professor_or_admin
from auth.models import User, Role
from auth.schemas import UserCreate, UserUpdate, UserResponse, UserResumo
from auth.security import get_password_hash
from config import DEFAULT_USER_PASSWORD
from database.connection import get_db
from services.redis_service import redis_service
from sistemas.notificacoes.services import notify_users
from sistemas.permissoes.dependencies import authorize
from sistemas.permissoes.services import has_permission
from utils.audit import AuditEvent, log_audit_event
from utils.token_blacklist import revoke_user_tokens

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/usuarios", tags=["Usuários"])


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Usuário não encontrado"
        )
    return user


def _cache_payload(user: User) -> dict:
    return UserResponse.model_validate(user).model_dump(mode="json")


@router.get("", response_model=List[UserResponse])
async def list_users(
    role: Optional[str] = Query(None),
    ativo: Optional[bool] = Query(None),
    busca: Optional[str] = Query(None, description="Nome ou e-mail"),
    skip: int = 0,
    limit: int = Query(100, le=500),
    current_user: User = Depends(authorize("users", "read")),
    db: Session = Depends(get_db)
):
    """
    Lista os usuários do sistema.

    **Acesso:** Admin e Professor
    """
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if ativo is not None:
        query = query.filter(User.is_active == ativo)
    if busca:
        termo = f"%{busca.strip()}%"
        query = query.filter(or_(User.nome.ilike(termo), User.email.ilike(termo)))
    return query.order_by(User.nome).offset(skip).limit(limit).all()


@router.get("/alunos", response_model=List[UserResumo])
async def list_students(
    current_user: User = Depends(require_professor_or_admin),
    db: Session = Depends(get_db)
):
    """Alunos ativos (para associação a processos e agendamentos)"""
    return (
        db.query(User)
        .filter(User.role == Role.ALUNO, User.is_active == True)
        .order_by(User.nome)
        .all()
    )


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    request: Request,
    current_user: User = Depends(authorize("users", "create")),
    db: Session = Depends(get_db)
):
    """
    Cria um novo usuário.

    **Acesso:** Apenas administradores

    - Se **password** não for informada, usa a senha padrão
    - O usuário será forçado a trocar a senha no primeiro acesso
    """
    if db.query(User).filter(User.email == user_data.email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Email '{user_data.email}' já cadastrado"
        )

    password = user_data.password if user_data.password else DEFAULT_USER_PASSWORD

    new_user = User(
        nome=user_data.nome,
        email=user_data.email,
        telefone=user_data.telefone,
        hashed_password=get_password_hash(password),
        role=user_data.role,
        must_change_password=True,
        is_active=True
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    log_audit_event(
        AuditEvent.USER_CREATED,
        user_id=current_user.id,
        username=current_user.email,
        request=request,
        db=db,
        entity_type="usuario",
        entity_id=new_user.id,
        new_values={"nome": new_user.nome, "email": new_user.email, "role": new_user.role},
    )

    admins = [uid for (uid,) in db.query(User.id).filter(User.role == Role.ADMIN, User.is_active == True).all()]
    await notify_users(admins, "USER_CREATED", {"userName": new_user.nome}, exclude=current_user.id)
    await redis_service.delete_pattern("dashboard_stats:*")

    return new_user


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """
    Retorna detalhes de um usuário específico.

    **Acesso:** Admin e Professor, ou o próprio usuário
    """
    if user_id != current_user.id and not has_permission(current_user.role, "users", "read"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "Acesso negado", "details": "Permissão necessária: users.read"}
        )

    cached = await redis_service.get_cached_user(user_id)
    if cached:
        return cached

    user = _get_user_or_404(db, user_id)
    payload = _cache_payload(user)
    await redis_service.set_cached_user(user_id, payload)
    return payload


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    user_data: UserUpdate,
    request: Request,
    current_user: User = Depends(authorize("users", "update")),
    db: Session = Depends(get_db)
):
    """
    Atualiza dados de um usuário.

    **Acesso:** Apenas administradores

    Campos que podem ser atualizados:
    - nome, email, telefone
    - role
    - is_active
    """
    user = _get_user_or_404(db, user_id)

    if user.id == current_user.id and user_data.is_active is False:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Você não pode desativar sua própria conta"
        )

    if user.id == current_user.id and user_data.role and user_data.role != Role.ADMIN and user.role == Role.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Você não pode remover seu próprio acesso de administrador"
        )

    if user_data.email and user_data.email != user.email:
        if db.query(User).filter(User.email == user_data.email).first():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Email '{user_data.email}' já cadastrado"
            )

    update_data = user_data.model_dump(exclude_unset=True)
    old_values = {field: getattr(user, field) for field in update_data}
    for field, value in update_data.items():
        setattr(user, field, value)

    db.commit()
    db.refresh(user)

    if update_data.get("is_active") is False:
        revoke_user_tokens(user.id)
    await redis_service.invalidate_user_cache(user.id)

    log_audit_event(
        AuditEvent.USER_UPDATED,
        user_id=current_user.id,
        username=current_user.email,
        request=request,
        db=db,
        entity_type="usuario",
        entity_id=user.id,
        old_values=old_values,
        new_values=update_data,
    )
    return user


async def _set_active(
    db: Session,
    user_id: int,
    current_user: User,
    request: Request,
    active: bool,
    event: AuditEvent
) -> User:
    user = _get_user_or_404(db, user_id)

    if user.id == current_user.id and not active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Você não pode desativar sua própria conta"
        )

    user.is_active = active
    db.commit()
    db.refresh(user)

    if not active:
        revoke_user_tokens(user.id)
    await redis_service.invalidate_user_cache(user.id)
    await redis_service.delete_pattern("dashboard_stats:*")

    log_audit_event(
        event,
        user_id=current_user.id,
        username=current_user.email,
        request=request,
        db=db,
        entity_type="usuario",
        entity_id=user.id,
        new_values={"is_active": active},
    )
    return user


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    request: Request,
    current_user: User = Depends(authorize("users", "delete")),
    db: Session = Depends(get_db)
):
    """
    Desativa um usuário (soft delete).

    **Acesso:** Apenas administradores

    Nota: O usuário não é removido do banco, apenas desativado.
    """
    user = await _set_active(db, user_id, current_user, request, False, AuditEvent.USER_DELETED)
    return {"message": f"Usuário '{user.nome}' desativado com sucesso"}


@router.patch("/{user_id}/ativar", response_model=UserResponse)
async def activate_user(
    user_id: int,
    request: Request,
    current_user: User = Depends(authorize("users", "activate")),
    db: Session = Depends(get_db)
):
    return await _set_active(db, user_id, current_user, request, True, AuditEvent.USER_ACTIVATED)


@router.patch("/{user_id}/desativar", response_model=UserResponse)
async def deactivate_user(
    user_id: int,
    request: Request,
    current_user: User = Depends(authorize("users", "deactivate")),
    db: Session = Depends(get_db)
):
    return await _set_active(db, user_id, current_user, request, False, AuditEvent.USER_DEACTIVATED)


@router.post("/{user_id}/reset-password")
async def reset_password(
    user_id: int,
    request: Request,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Reseta a senha de um usuário para a senha padrão.

    **Acesso:** Apenas administradores

    - O usuário será forçado a trocar no próximo acesso
    - Sessões abertas do usuário são encerradas
    """
    user = _get_user_or_404(db, user_id)

    user.hashed_password = get_password_hash(DEFAULT_USER_PASSWORD)
    user.must_change_password = True
    db.commit()

    revoke_user_tokens(user.id)
    await redis_service.invalidate_user_cache(user.id)

    log_audit_event(
        AuditEvent.USER_PASSWORD_RESET,
        user_id=admin.id,
        username=admin.email,
        request=request,
        db=db,
        entity_type="usuario",
        entity_id=user.id,
    )

    return {
        "message": f"Senha do usuário '{user.nome}' resetada com sucesso",
        "new_password": DEFAULT_USER_PASSWORD
    }
