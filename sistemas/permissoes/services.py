# sistemas/permissoes/services.py
"""
Serviço de permissões do NPJ.

Combina a tabela estática módulo -> papel -> ações (com hierarquia
Admin > Professor > Aluno) e os grupos de usuários, que concedem
ações extras. As permissões efetivas (papel + grupos) ficam em cache
no Redis por 1 hora em user_permissions:{user_id}.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from auth.models import User
from config import CACHE_PERMISSIONS_TTL
from services.redis_service import redis_service
from sistemas.permissoes.constants import PERMISSIONS, ROLE_HIERARCHY, OWN_SUFFIX
from sistemas.permissoes.exceptions import (
    GrupoNaoEncontradoError, UsuarioNaoEncontradoError, PermissoesInvalidasError
)
from sistemas.permissoes.models import UserGroup, UserGroupMember

logger = logging.getLogger(__name__)


# ==========================================
# Tabela estática
# ==========================================

def _mesmo_id(a: Any, b: Any) -> bool:
    if a is None or b is None:
        return False
    return str(a) == str(b)


def has_permission_by_hierarchy(role: str, module: str, action: str) -> bool:
    """Verdadeiro se algum papel subordinado a `role` tem a ação."""
    module_permissions = PERMISSIONS[module]
    for subordinate in ROLE_HIERARCHY.get(role, []):
        if action in module_permissions.get(subordinate, []):
            return True
    return False


def has_permission(
    role: str,
    module: str,
    action: str,
    resource_owner_id: Optional[Any] = None,
    user_id: Optional[Any] = None
) -> bool:
    """
    Verifica se o papel tem a ação no módulo.

    Ordem de verificação:
    1. módulo desconhecido -> False
    2. ação concedida diretamente ao papel
    3. ação `*_own` sobre recurso do próprio usuário: vale a ação base ou a `_own`
    4. ação concedida a algum papel subordinado
    """
    if module not in PERMISSIONS:
        logger.warning(f"Módulo de permissão não encontrado: {module}")
        return False

    role_actions = PERMISSIONS[module].get(role, [])
    if action in role_actions:
        return True

    if action.endswith(OWN_SUFFIX) and _mesmo_id(resource_owner_id, user_id):
        base_action = action[: -len(OWN_SUFFIX)]
        return base_action in role_actions or action in role_actions

    return has_permission_by_hierarchy(role, module, action)


def get_user_permissions(role: str) -> Dict[str, List[str]]:
    """Ações do papel mais as herdadas dos papéis subordinados, por módulo."""
    result: Dict[str, List[str]] = {}
    for module, by_role in PERMISSIONS.items():
        actions = list(by_role.get(role, []))
        for subordinate in ROLE_HIERARCHY.get(role, []):
            for action in by_role.get(subordinate, []):
                if action not in actions:
                    actions.append(action)
        result[module] = actions
    return result


def validate_permissions(permissions: Dict[str, List[str]]) -> Dict[str, Any]:
    """
    Valida uma estrutura {"modulo": ["acao"]}.

    Ações válidas de um módulo são as concedidas a qualquer papel naquele módulo.

    Returns:
        {"valid": bool, "errors": [str]}
    """
    errors = []
    for module, actions in (permissions or {}).items():
        if module not in PERMISSIONS:
            errors.append(f"Módulo inválido: {module}")
            continue

        valid_actions = {a for role_actions in PERMISSIONS[module].values() for a in role_actions}
        for action in actions:
            if action not in valid_actions:
                errors.append(f"Ação inválida '{action}' para módulo '{module}'")

    return {"valid": not errors, "errors": errors}


def merge_permissions(*mappings: Dict[str, List[str]]) -> Dict[str, List[str]]:
    merged: Dict[str, List[str]] = {}
    for mapping in mappings:
        for module, actions in (mapping or {}).items():
            atual = merged.setdefault(module, [])
            for action in actions:
                if action not in atual:
                    atual.append(action)
    return merged


# ==========================================
# Grupos
# ==========================================

def grupo_to_dict(grupo: UserGroup) -> Dict[str, Any]:
    return {
        "id": grupo.id,
        "name": grupo.name,
        "description": grupo.description,
        "permissions": grupo.permissions or {},
        "is_active": grupo.is_active,
        "created_by": grupo.created_by,
        "created_at": grupo.created_at,
        "members": [m.user_id for m in grupo.members],
    }


def create_user_group(
    db: Session,
    name: str,
    created_by: int,
    description: Optional[str] = None,
    permissions: Optional[Dict[str, List[str]]] = None
) -> UserGroup:
    """Cria um grupo. Levanta PermissoesInvalidasError se a estrutura de permissões for inválida."""
    permissions = permissions or {}
    validation = validate_permissions(permissions)
    if not validation["valid"]:
        raise PermissoesInvalidasError(validation["errors"])

    grupo = UserGroup(
        name=name,
        description=description or "",
        permissions=permissions,
        created_by=created_by,
    )
    db.add(grupo)
    db.commit()
    db.refresh(grupo)
    logger.info(f"Grupo de usuários criado: {grupo.id} ({grupo.name})")
    return grupo


def list_groups(db: Session) -> List[UserGroup]:
    return db.query(UserGroup).filter(UserGroup.is_active == True).order_by(UserGroup.name).all()


def get_group(db: Session, group_id: int) -> UserGroup:
    grupo = db.query(UserGroup).filter(UserGroup.id == group_id).first()
    if not grupo:
        raise GrupoNaoEncontradoError(f"Grupo {group_id} não encontrado")
    return grupo


def get_user_groups(db: Session, user_id: int) -> List[UserGroup]:
    return (
        db.query(UserGroup)
        .join(UserGroupMember, UserGroupMember.group_id == UserGroup.id)
        .filter(UserGroupMember.user_id == user_id, UserGroup.is_active == True)
        .all()
    )


async def add_user_to_group(db: Session, group_id: int, user_id: int, added_by: int) -> UserGroup:
    """Adiciona o usuário ao grupo (idempotente) e recalcula o cache de permissões dele."""
    grupo = get_group(db, group_id)
    if not db.query(User).filter(User.id == user_id).first():
        raise UsuarioNaoEncontradoError(f"Usuário {user_id} não encontrado")

    existente = db.query(UserGroupMember).filter(
        UserGroupMember.group_id == group_id,
        UserGroupMember.user_id == user_id
    ).first()
    if existente is None:
        db.add(UserGroupMember(group_id=group_id, user_id=user_id, added_by=added_by))
        db.commit()
        db.refresh(grupo)
        await update_user_permissions_cache(db, user_id)

    return grupo


async def remove_user_from_group(db: Session, group_id: int, user_id: int) -> UserGroup:
    grupo = get_group(db, group_id)
    db.query(UserGroupMember).filter(
        UserGroupMember.group_id == group_id,
        UserGroupMember.user_id == user_id
    ).delete()
    db.commit()
    db.refresh(grupo)
    await update_user_permissions_cache(db, user_id)
    return grupo


# ==========================================
# Permissões efetivas (papel + grupos)
# ==========================================

def compute_effective_permissions(db: Session, user: User) -> Dict[str, List[str]]:
    base = get_user_permissions(user.role)
    grupos = [g.permissions or {} for g in get_user_groups(db, user.id)]
    return merge_permissions(base, *grupos)


async def update_user_permissions_cache(db: Session, user_id: int) -> Optional[Dict[str, List[str]]]:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        return None

    permissions = compute_effective_permissions(db, user)
    await redis_service.set(f"user_permissions:{user_id}", permissions, CACHE_PERMISSIONS_TTL)
    return permissions


async def get_effective_user_permissions(db: Session, user_id: int) -> Dict[str, List[str]]:
    cached = await redis_service.get(f"user_permissions:{user_id}")
    if cached:
        return cached
    return await update_user_permissions_cache(db, user_id) or {}
