"""
SECURITY: Política de senhas do NPJ.

Aplicada na troca de senha e na criação de usuários com senha explícita:
- Comprimento entre 8 e 128 caracteres
- Ao menos uma maiúscula, uma minúscula, um número e um caractere especial
- Senhas comuns e padrões de teclado/sequência são bloqueados
"""

import re
from typing import Tuple, List

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128

SPECIAL_CHARACTERS = r"!@#$%^&*(),.?\":{}|<>_\-+=\[\]\\\/~`';"

COMMON_PASSWORDS = {
    "123456", "password", "123456789", "12345678", "12345", "1234567",
    "qwerty", "abc123", "111111", "123123", "admin", "letmein", "welcome",
    "senha", "senha123", "mudar123", "trocar123", "admin123", "password1",
    "qwerty123", "password123", "passw0rd", "p@ssw0rd", "brasil", "npj",
    "npj123", "ufmt", "ufmt123", "direito", "direito123", "advogado",
    "1q2w3e4r", "q1w2e3r4", "qazwsx",
}

WEAK_PATTERNS = [
    r'^(.)\1+$',  # Caractere repetido
    r'^(012|123|234|345|456|567|678|789|890)+$',  # Sequência numérica
    r'^(qwe|wer|ert|rty|asd|sdf|dfg|zxc|xcv|cvb)+$',  # Padrão de teclado
]


def check_password_strength(password: str) -> Tuple[bool, List[str]]:
    """
    SECURITY: Verifica a força de uma senha.

    Returns:
        Tuple (is_valid, list_of_errors)
    """
    errors = []

    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres")
    if len(password) > MAX_PASSWORD_LENGTH:
        errors.append(f"Senha deve ter no máximo {MAX_PASSWORD_LENGTH} caracteres")
    if not re.search(r'[A-Z]', password):
        errors.append("Senha deve conter pelo menos uma letra maiúscula")
    if not re.search(r'[a-z]', password):
        errors.append("Senha deve conter pelo menos uma letra minúscula")
    if not re.search(r'\d', password):
        errors.append("Senha deve conter pelo menos um número")
    if not re.search(f'[{re.escape(SPECIAL_CHARACTERS)}]', password):
        errors.append("Senha deve conter pelo menos um caractere especial (!@#$%^&*)")

    password_lower = password.lower()
    if password_lower in COMMON_PASSWORDS:
        errors.append("Esta senha é muito comum e não pode ser usada")

    for pattern in WEAK_PATTERNS:
        if re.match(pattern, password_lower):
            errors.append("Senha contém padrão fraco (sequência ou repetição)")
            break

    return len(errors) == 0, errors


def validate_password(password: str) -> str:
    """
    SECURITY: Valida senha e a retorna, ou levanta ValueError.

    Útil como Pydantic validator.
    """
    is_valid, errors = check_password_strength(password)
    if not is_valid:
        raise ValueError("; ".join(errors))
    return password


def get_password_requirements() -> dict:
    """Requisitos de senha em formato legível (exibidos pelo frontend)."""
    return {
        "min_length": MIN_PASSWORD_LENGTH,
        "max_length": MAX_PASSWORD_LENGTH,
        "require_uppercase": True,
        "require_lowercase": True,
        "require_digit": True,
        "require_special": True,
        "special_characters": SPECIAL_CHARACTERS,
        "description": (
            f"A senha deve ter entre {MIN_PASSWORD_LENGTH} e {MAX_PASSWORD_LENGTH} caracteres, "
            "incluindo pelo menos: uma letra maiúscula, uma letra minúscula, "
            "um número e um caractere especial (!@#$%^&*)"
        )
    }
