#!/usr/bin/env python
"""
Testes para validar a política de timezone do sistema.

Política:
- Backend grava em UTC (timezone-aware)
- Expediente e exibição em America/Cuiaba (UTC-4)

Uso:
    pytest tests/test_timezone.py -v
"""

import pytest
from datetime import datetime, timezone


class TestTimezoneModule:
    """Testes do módulo utils/timezone.py"""

    def test_now_utc_returns_timezone_aware(self):
        """now_utc() deve retornar datetime com timezone UTC."""
        from utils.timezone import now_utc

        result = now_utc()

        assert result.tzinfo is not None, "Deve ser timezone-aware"
        assert result.tzinfo == timezone.utc, "Deve ser UTC"

    def test_now_local_returns_timezone_aware(self):
        """now_local() deve retornar datetime com timezone local."""
        from utils.timezone import now_local, TIMEZONE_LOCAL_NAME

        result = now_local()

        assert result.tzinfo is not None, "Deve ser timezone-aware"
        # pytz timezones têm representações diferentes, comparamos pelo nome
        assert TIMEZONE_LOCAL_NAME in str(result.tzinfo), "Deve ser timezone local"

    def test_to_local_converts_utc_to_local(self):
        """to_local() deve converter UTC para timezone local."""
        from utils.timezone import to_local, now_utc

        local_time = to_local(now_utc())

        # Cuiabá não tem horário de verão desde 2019
        diff_hours = local_time.utcoffset().total_seconds() / 3600
        assert diff_hours == -4, f"Offset deve ser -4h, mas é {diff_hours}h"

    def test_to_local_handles_naive_datetime(self):
        """to_local() deve tratar datetime naive como UTC."""
        from utils.timezone import to_local

        naive = datetime(2026, 1, 20, 18, 30, 0)
        local = to_local(naive)

        assert local.tzinfo is not None, "Resultado deve ser timezone-aware"
        assert local.hour == 14, f"Hora deve ser 14, mas é {local.hour}"

    def test_to_local_handles_none(self):
        from utils.timezone import to_local

        assert to_local(None) is None

    def test_to_utc_assume_horario_local_para_naive(self):
        """Entrada naive do usuário é horário de Cuiabá."""
        from utils.timezone import to_utc, UTC

        assert to_utc(datetime(2030, 3, 4, 10, 0)) == datetime(2030, 3, 4, 14, 0, tzinfo=UTC)

    def test_to_utc_converte_aware(self):
        from utils.timezone import to_utc, UTC, TIMEZONE_LOCAL

        local = TIMEZONE_LOCAL.localize(datetime(2030, 3, 4, 23, 30))
        assert to_utc(local) == datetime(2030, 3, 5, 3, 30, tzinfo=UTC)
        assert to_utc(None) is None

    def test_as_utc(self):
        """Valores lidos do SQLite vêm naive e são tratados como UTC."""
        from utils.timezone import as_utc, UTC

        assert as_utc(datetime(2030, 1, 1, 12)) == datetime(2030, 1, 1, 12, tzinfo=UTC)
        assert as_utc(None) is None

    def test_format_local_formats_correctly(self):
        """format_local() deve formatar no timezone local."""
        from utils.timezone import format_local

        utc_time = datetime(2026, 1, 20, 18, 30, 0, tzinfo=timezone.utc)
        formatted = format_local(utc_time)

        assert formatted == "20/01/2026 14:30:00"
        assert format_local(None) == "-"

    def test_format_local_formato_customizado(self):
        from utils.timezone import format_local

        utc_time = datetime(2030, 3, 4, 14, 0, tzinfo=timezone.utc)
        assert format_local(utc_time, "%d/%m/%Y %H:%M") == "04/03/2030 10:00"

    def test_get_utc_now_for_sqlalchemy(self):
        """get_utc_now() deve funcionar como default para SQLAlchemy."""
        from utils.timezone import get_utc_now

        assert callable(get_utc_now)
        assert get_utc_now().tzinfo == timezone.utc


class TestParseIso:

    @pytest.mark.parametrize("valor, esperado", [
        ("2030-03-04T14:00:00Z", datetime(2030, 3, 4, 14, tzinfo=timezone.utc)),
        ("2030-03-04T14:00:00+00:00", datetime(2030, 3, 4, 14, tzinfo=timezone.utc)),
        ("2030-03-04T10:00:00", datetime(2030, 3, 4, 10)),
    ])
    def test_validos(self, valor, esperado):
        from utils.timezone import parse_iso

        assert parse_iso(valor) == esperado

    @pytest.mark.parametrize("valor", ["", None, "ontem", "2030-13-01"])
    def test_invalidos(self, valor):
        from utils.timezone import parse_iso

        assert parse_iso(valor) is None


class TestModelsUsamUTC:
    """Timestamps gerados pelos models devem ser UTC."""

    def test_processo_created_at(self, db, professor):
        from sistemas.processos.models import Processo
        from utils.timezone import as_utc, now_utc

        antes = now_utc()
        processo = Processo(numero_processo="1/2030", created_by=professor.id)
        db.add(processo)
        db.commit()
        db.refresh(processo)

        criado = as_utc(processo.created_at)
        assert abs((criado - antes).total_seconds()) < 5
