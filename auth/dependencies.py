"""
Dependencies de autenticação para injeção nas rotas
"""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from typing import Optional

from database.connection import get_db, SessionLocal
from auth.models import User, Role
from auth.security import decode_token
from utils.logging_config import bind_user_context
from utils.token_blacklist import is_token_revoked

# OAuth2 scheme - define o endpoint de login. auto_error=False para aceitar também o cookie.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

AUTH_COOKIE_NAME = "access_token"


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Credenciais inválidas",
        headers={"WWW-Authenticate": "Bearer"},
    )


def extract_token(request: Request, header_token: Optional[str]) -> Optional[str]:
    """Token do header Authorization ou, na falta dele, do cookie HttpOnly."""
    if header_token:
        return header_token
    cookie_token = request.cookies.get(AUTH_COOKIE_NAME)
    if cookie_token:
        return cookie_token[7:] if cookie_token.startswith("Bearer ") else cookie_token
    return None


def user_from_token(token: Optional[str], db: Session) -> Optional[User]:
    """
    Resolve o usuário de um token JWT.

    Retorna None se o token for inválido, revogado ou se o usuário não existir.
    """
    if not token:
        return None

    payload = decode_token(token)
    if payload is None or payload.get("sub") is None:
        return None

    if is_token_revoked(token):
        return None

    return db.query(User).filter(User.email == payload["sub"]).first()


async def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> User:
    """
    Dependency que retorna o usuário atual baseado no token JWT.
    Lança HTTPException 401 se token inválido.

    Uso:
        @router.get("/rota-protegida")
        def rota(user: User = Depends(get_current_user)):
            ...
    """
    user = user_from_token(extract_token(request, token), db)
    if user is None:
        raise _credentials_exception()
    bind_user_context(user.id, user.role)
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Dependency que retorna o usuário atual apenas se estiver ativo.
    Lança HTTPException 403 se usuário desativado.
    """
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Usuário desativado"
        )
    return current_user


async def require_admin(
    current_user: User = Depends(get_current_active_user)
) -> User:
    """
    Dependency que exige que o usuário seja administrador.
    Lança HTTPException 403 se não for admin.
    """
    if current_user.role != Role.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Acesso restrito a administradores"
        )
    return current_user


async def require_professor_or_admin(
    current_user: User = Depends(get_current_active_user)
) -> User:
    """Dependency que exige papel Professor ou Admin."""
    if current_user.role not in (Role.ADMIN, Role.PROFESSOR):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Acesso restrito a professores e administradores"
        )
    return current_user


def authenticate_ws_token(token: Optional[str]) -> Optional[dict]:
    """
    Autentica a conexão WebSocket pelo token passado na query string.

    Returns:
        {"id", "nome", "email", "role"} do usuário ativo, ou None
    """
    db = SessionLocal()
    try:
        user = user_from_token(token, db)
        if user is None or not user.is_active:
            return None
        return {"id": user.id, "nome": user.nome, "email": user.email, "role": user.role}
    finally:
        db.close()
