"""
SECURITY: Blacklist para revogação de tokens JWT.

Casos de uso:
- Logout do usuário
- Desativação de usuário (tokens emitidos antes deixam de valer)

Os tokens do NPJ sempre carregam "jti"; tokens antigos sem jti usam
o hash do próprio token como identificador.
"""

import hashlib
import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
import logging
from jose import jwt, JWTError

from utils.timezone import get_utc_now

from config import SECRET_KEY, ALGORITHM

logger = logging.getLogger("security.token_blacklist")


class TokenBlacklist:
    """
    SECURITY: Gerencia tokens revogados.

    Thread-safe usando locks para acesso concorrente.
    """

    def __init__(self):
        # jti -> expiração do token
        self._blacklist: Dict[str, datetime] = {}
        # user_id -> instante a partir do qual tokens anteriores são inválidos
        self._revoked_before: Dict[int, datetime] = {}
        self._lock = threading.Lock()

        self._last_cleanup = get_utc_now()
        self._cleanup_interval = timedelta(minutes=30)

    def _decode(self, token: str) -> Optional[dict]:
        try:
            # Decodifica sem verificar expiração (token pode já estar expirado)
            return jwt.decode(
                token,
                SECRET_KEY,
                algorithms=[ALGORITHM],
                options={"verify_exp": False}
            )
        except JWTError as e:
            logger.warning(f"Erro ao decodificar token para blacklist: {e}")
            return None

    def _extract_jti_and_exp(self, payload: dict, token: str) -> tuple:
        jti = payload.get("jti") or hashlib.sha256(token.encode()).hexdigest()[:32]

        exp = payload.get("exp")
        if exp:
            exp_time = datetime.fromtimestamp(exp, tz=timezone.utc)
        else:
            exp_time = get_utc_now() + timedelta(hours=24)

        return jti, exp_time

    def revoke(self, token: str) -> bool:
        """
        SECURITY: Revoga um token, adicionando-o à blacklist.

        Returns:
            True se revogado com sucesso, False caso contrário
        """
        payload = self._decode(token)
        if payload is None:
            return False

        jti, exp_time = self._extract_jti_and_exp(payload, token)

        # Não adiciona tokens já expirados
        if exp_time < get_utc_now():
            return True

        with self._lock:
            self._blacklist[jti] = exp_time
            logger.info(f"Token revogado: {jti[:8]}...")
            self._maybe_cleanup()

        return True

    def is_revoked(self, token: str) -> bool:
        """
        SECURITY: Verifica se um token foi revogado.

        Token inválido é considerado revogado.
        """
        payload = self._decode(token)
        if payload is None:
            return True

        jti, _ = self._extract_jti_and_exp(payload, token)

        with self._lock:
            if jti in self._blacklist:
                return True

            user_id = payload.get("user_id")
            issued_at = payload.get("iat")
            cutoff = self._revoked_before.get(user_id)
            if cutoff and issued_at is not None:
                return datetime.fromtimestamp(issued_at, tz=timezone.utc) <= cutoff

        return False

    def revoke_all_for_user(self, user_id: int) -> None:
        """SECURITY: Invalida todos os tokens emitidos até agora para o usuário."""
        with self._lock:
            self._revoked_before[user_id] = get_utc_now()
        logger.info(f"Tokens do usuário {user_id} revogados")

    def _maybe_cleanup(self):
        """Remove tokens expirados. Chamado dentro do lock."""
        now = get_utc_now()
        if now - self._last_cleanup < self._cleanup_interval:
            return

        expirados = [jti for jti, exp in self._blacklist.items() if exp < now]
        for jti in expirados:
            del self._blacklist[jti]

        self._last_cleanup = now
        logger.debug(f"Cleanup da blacklist: {len(expirados)} removidos, {len(self._blacklist)} restantes")

    def clear(self):
        """Limpa toda a blacklist (apenas para testes ou emergências)."""
        with self._lock:
            count = len(self._blacklist)
            self._blacklist.clear()
            self._revoked_before.clear()
            logger.warning(f"Blacklist limpa: {count} tokens removidos")


# Instância global singleton
_blacklist_instance: Optional[TokenBlacklist] = None
_instance_lock = threading.Lock()


def get_token_blacklist() -> TokenBlacklist:
    """SECURITY: Retorna a instância singleton da blacklist."""
    global _blacklist_instance

    if _blacklist_instance is None:
        with _instance_lock:
            if _blacklist_instance is None:
                _blacklist_instance = TokenBlacklist()

    return _blacklist_instance


def revoke_token(token: str) -> bool:
    """SECURITY: Função de conveniência para revogar um token."""
    return get_token_blacklist().revoke(token)


def is_token_revoked(token: str) -> bool:
    """SECURITY: Função de conveniência para verificar se token foi revogado."""
    return get_token_blacklist().is_revoked(token)


def revoke_user_tokens(user_id: int) -> None:
    """SECURITY: Função de conveniência para revogar todos os tokens de um usuário."""
    get_token_blacklist().revoke_all_for_user(user_id)
