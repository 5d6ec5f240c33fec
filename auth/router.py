"""
Endpoints de autenticação: login, logout, troca de senha

SECURITY: O token é devolvido no body e também como cookie HttpOnly.
"""

from datetime import timedelta
from fastapi import APIRouter, Depends, HTTPException, status, Request, Response
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from database.connection import get_db
from auth.models import User
from auth.schemas import Token, ChangePasswordRequest, UserMe
from auth.security import verify_password, get_password_hash, create_access_token
from auth.dependencies import get_current_active_user, oauth2_scheme, extract_token, AUTH_COOKIE_NAME
from config import ACCESS_TOKEN_EXPIRE_MINUTES, IS_PRODUCTION

# SECURITY: Rate Limiting
from utils.rate_limit import limiter, LIMITS

# SECURITY: Audit Logging
from utils.audit import (
    log_login_success, log_login_failure, log_logout, log_password_change
)

from utils.password_policy import get_password_requirements
from utils.token_blacklist import revoke_token

router = APIRouter(prefix="/auth", tags=["Autenticação"])


@router.post("/login", response_model=Token)
@limiter.limit(LIMITS["login"])  # SECURITY: 5 tentativas/minuto por IP
async def login(
    request: Request,  # Necessário para rate limiting
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """
    Autentica o usuário e retorna um token JWT.

    - **username**: E-mail do usuário
    - **password**: Senha
    """
    email = form_data.username.strip().lower()
    user = db.query(User).filter(User.email == email).first()

    if not user:
        log_login_failure(email, request, "user_not_found")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="E-mail ou senha incorretos",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not verify_password(form_data.password, user.hashed_password):
        log_login_failure(email, request, "invalid_password")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="E-mail ou senha incorretos",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        log_login_failure(email, request, "user_inactive")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Usuário desativado. Contate o administrador."
        )

    access_token = create_access_token(
        data={
            "sub": user.email,
            "user_id": user.id,
            "role": user.role,
            "must_change_password": user.must_change_password
        },
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )

    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=f"Bearer {access_token}",
        httponly=True,
        secure=IS_PRODUCTION,
        samesite="lax",
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        path="/"
    )

    log_login_success(user.id, user.email, request)

    return Token(access_token=access_token, token_type="bearer")


@router.get("/me", response_model=UserMe)
async def get_me(current_user: User = Depends(get_current_active_user)):
    """Retorna os dados do usuário autenticado."""
    return current_user


@router.post("/change-password")
@limiter.limit(LIMITS["login"])
async def change_password(
    request: Request,
    password_request: ChangePasswordRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """
    Altera a senha do usuário autenticado.

    - **current_password**: Senha atual
    - **new_password**: Nova senha (segue a política de senhas)
    """
    if not verify_password(password_request.current_password, current_user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Senha atual incorreta"
        )

    if password_request.current_password == password_request.new_password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Nova senha deve ser diferente da atual"
        )

    current_user.hashed_password = get_password_hash(password_request.new_password)
    current_user.must_change_password = False
    db.commit()

    log_password_change(current_user.id, current_user.email, request)

    return {"message": "Senha alterada com sucesso"}


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    token: str = Depends(oauth2_scheme),
    current_user: User = Depends(get_current_active_user)
):
    """
    Logout do usuário.

    SECURITY: Revoga o token JWT e remove o cookie HttpOnly de autenticação.
    """
    raw_token = extract_token(request, token)
    if raw_token:
        revoke_token(raw_token)

    log_logout(current_user.id, current_user.email, request)

    response.delete_cookie(
        key=AUTH_COOKIE_NAME,
        httponly=True,
        secure=IS_PRODUCTION,
        samesite="lax",
        path="/"
    )

    return {"message": "Logout realizado com sucesso"}


@router.get("/password-requirements")
async def password_requirements():
    """Requisitos de senha do sistema (não requer autenticação)."""
    return get_password_requirements()
