# sistemas/permissoes/dependencies.py
"""
Dependencies de autorização por módulo/ação.

Uso:
    @router.post("/novo")
    async def criar(user: User = Depends(authorize("processes", "create"))):
        ...
"""

import logging
from typing import Any, Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from auth.dependencies import get_current_active_user
from auth.models import User, Role
from database.connection import get_db
from sistemas.permissoes.constants import SENSITIVE_FIELDS
from sistemas.permissoes.services import has_permission, get_effective_user_permissions
from utils.audit import AuditEvent, log_audit_event, log_access_denied
from utils.logging_config import get_logger

logger = logging.getLogger(__name__)
security_logger = get_logger("security")


def sanitize_log_data(data: Optional[dict]) -> Optional[dict]:
    """Remove senhas e tokens antes de registrar a requisição."""
    if not data:
        return data
    sanitized = dict(data)
    for field in SENSITIVE_FIELDS:
        if sanitized.get(field):
            sanitized[field] = "[REDACTED]"
    return sanitized


def _resource_owner_id(request: Request) -> Optional[Any]:
    return (
        request.path_params.get("user_id")
        or request.query_params.get("userId")
        or request.query_params.get("user_id")
    )


def authorize(module: str, action: str):
    """
    Cria uma dependency que exige a permissão `module.action`.

    Permissões concedidas por grupos também valem. Em caso de sucesso
    retorna o usuário autenticado.
    """

    async def dependency(
        request: Request,
        current_user: User = Depends(get_current_active_user),
        db: Session = Depends(get_db)
    ) -> User:
        owner_id = _resource_owner_id(request)

        allowed = has_permission(current_user.role, module, action, owner_id, current_user.id)
        if not allowed:
            effective = await get_effective_user_permissions(db, current_user.id)
            allowed = action in effective.get(module, [])

        if not allowed:
            security_logger.warning(
                "Acesso negado",
                user_id=current_user.id,
                user_role=current_user.role,
                module=module,
                action=action,
                resource_owner_id=owner_id,
                path=request.url.path,
            )
            log_access_denied(current_user.id, current_user.email, request, f"{module}.{action}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"error": "Acesso negado", "details": f"Permissão necessária: {module}.{action}"}
            )

        log_audit_event(
            AuditEvent.ACTION_AUTHORIZED,
            user_id=current_user.id,
            username=current_user.email,
            request=request,
            details={
                "user_role": current_user.role,
                "module": module,
                "action": action,
                "method": request.method,
                "url": request.url.path,
                "params": sanitize_log_data(dict(request.path_params)),
                "query": sanitize_log_data(dict(request.query_params)),
            },
        )
        return current_user

    return dependency


def check_resource_ownership(resource: Any, user: User, owner_field: str = "created_by") -> Any:
    """
    Verifica se o usuário é dono do recurso (Admin sempre passa).

    Raises:
        HTTPException 404: recurso inexistente
        HTTPException 403: usuário não é o dono
    """
    if resource is None:
        raise HTTPException(status_code=404, detail="Recurso não encontrado")

    if user.role == Role.ADMIN:
        return resource

    owner_id = getattr(resource, owner_field, None)
    if owner_id != user.id:
        security_logger.warning(
            "Tentativa de acesso a recurso não autorizado",
            user_id=user.id,
            user_role=user.role,
            resource=type(resource).__name__,
            resource_id=getattr(resource, "id", None),
            owner_id=owner_id,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Acesso negado: você não é o proprietário deste recurso"
        )
    return resource
