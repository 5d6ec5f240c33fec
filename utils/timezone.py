"""
POLÍTICA GLOBAL DE TIMEZONE DO NPJ

REGRAS:
1. GRAVAÇÃO NO BANCO: Sempre UTC (timezone-aware)
2. HORÁRIO DE EXPEDIENTE E EXIBIÇÃO: America/Cuiaba (UTC-4)
3. SERIALIZAÇÃO JSON: ISO 8601 com timezone explícito

USO:
    from utils.timezone import now_utc, to_local, as_utc, get_utc_now

    # Para gravar no banco (UTC)
    created_at = now_utc()

    # Para comparar um valor lido do banco (SQLite devolve datetimes naive)
    if as_utc(agendamento.data_evento) < now_utc():
        ...

IMPORTANTE:
- Nunca use datetime.utcnow() ou datetime.now() diretamente
- Sempre use as funções deste módulo
"""

from datetime import datetime, timezone
from typing import Optional
import pytz

# =============================================================================
# CONFIGURAÇÃO DE TIMEZONE
# =============================================================================

# Timezone local do NPJ (Mato Grosso)
TIMEZONE_LOCAL_NAME = "America/Cuiaba"
TIMEZONE_LOCAL = pytz.timezone(TIMEZONE_LOCAL_NAME)

# Offset fixo para referência (UTC-4)
TIMEZONE_OFFSET_HOURS = -4

# UTC timezone
UTC = timezone.utc


# =============================================================================
# FUNÇÕES PRINCIPAIS
# =============================================================================

def now_utc() -> datetime:
    """
    Retorna o datetime atual em UTC com timezone-aware.

    USE ESTA FUNÇÃO para gravar timestamps no banco de dados.
    """
    return datetime.now(UTC)


def now_local() -> datetime:
    """Retorna o datetime atual no timezone local (America/Cuiaba)."""
    return datetime.now(TIMEZONE_LOCAL)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normaliza um datetime lido do banco para UTC aware.

    Datetimes naive são tratados como UTC (é como o SQLite os devolve).
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_local(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Converte um datetime para o timezone local (America/Cuiaba).

    Aceita tanto naive quanto aware datetimes:
    - Se naive: assume que está em UTC
    - Se aware: converte para o timezone local
    """
    if dt is None:
        return None

    return as_utc(dt).astimezone(TIMEZONE_LOCAL)


def to_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Converte um datetime para UTC.

    Aceita tanto naive quanto aware datetimes:
    - Se naive: assume que está no timezone local
    - Se aware: converte para UTC
    """
    if dt is None:
        return None

    # Se naive, assume timezone local
    if dt.tzinfo is None:
        dt = TIMEZONE_LOCAL.localize(dt)

    return dt.astimezone(UTC)


def format_local(dt: Optional[datetime], format: str = "%d/%m/%Y %H:%M:%S") -> str:
    """
    Formata um datetime no timezone local para exibição.

    Returns:
        str: Data formatada no timezone local (ou "-" se None)
    """
    if dt is None:
        return "-"

    return to_local(dt).strftime(format)


def parse_iso(iso_string: str) -> Optional[datetime]:
    """
    Parseia uma string ISO 8601 para datetime.

    Returns:
        datetime ou None se inválido
    """
    if not iso_string:
        return None

    try:
        return datetime.fromisoformat(iso_string.replace('Z', '+00:00'))
    except (ValueError, AttributeError):
        return None


# =============================================================================
# FUNÇÕES PARA SQLALCHEMY
# =============================================================================

def get_utc_now():
    """
    Função callable para uso em Column(default=...).

    USE EM MODELS:
        from utils.timezone import get_utc_now
        created_at = Column(DateTime(timezone=True), default=get_utc_now)
    """
    return now_utc()
