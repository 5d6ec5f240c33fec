# tests/test_analytics.py
"""
Testes de analytics: períodos, saúde do sistema, painel, exportação,
tendências e comparação.
"""

import io
from datetime import datetime

import pytest
from openpyxl import load_workbook

from services.redis_service import redis_service
from sistemas.analytics.constants import EXCEL_MEDIA_TYPE
from sistemas.analytics.exceptions import PeriodoInvalidoError
from sistemas.analytics.services import get_date_range, parse_period, calculate_system_health, compare_periods
from sistemas.processos.models import Processo
from utils.timezone import UTC

AGORA = datetime(2030, 3, 4, 12, tzinfo=UTC)


async def _criar_processo(client, headers, numero="1/2030", **dados):
    response = await client.post("/api/processos/novo", json={"numero_processo": numero, **dados}, headers=headers)
    assert response.status_code == 201
    return response.json()


# ==================================================
# TESTES: períodos
# ==================================================


class TestPeriodos:

    def test_codigos(self):
        assert get_date_range("7d", AGORA) == (datetime(2030, 2, 25, 12, tzinfo=UTC), AGORA)
        assert get_date_range("90d", AGORA)[0] == datetime(2029, 12, 4, 12, tzinfo=UTC)
        assert get_date_range("1y", AGORA)[0] == datetime(2029, 3, 4, 12, tzinfo=UTC)

    def test_codigo_desconhecido_vale_30d(self):
        assert get_date_range("2w", AGORA) == get_date_range("30d", AGORA)
        assert get_date_range(None, AGORA) == get_date_range("30d", AGORA)

    def test_mes(self):
        # meia-noite em Cuiabá = 04h UTC
        assert parse_period("2030-02") == (
            datetime(2030, 2, 1, 4, tzinfo=UTC), datetime(2030, 3, 1, 4, tzinfo=UTC)
        )

    def test_intervalo_com_fim_inclusivo(self):
        assert parse_period("2030-03-01:2030-03-03") == (
            datetime(2030, 3, 1, 4, tzinfo=UTC), datetime(2030, 3, 4, 4, tzinfo=UTC)
        )

    def test_codigo_aceito(self):
        assert parse_period("7d", AGORA) == get_date_range("7d", AGORA)

    @pytest.mark.parametrize("period", ["", "ontem", "2030-13", "2030-03-05:2030-03-01", "2030-03-01:"])
    def test_invalidos(self, period):
        with pytest.raises(PeriodoInvalidoError):
            parse_period(period)


class TestSaudeSistema:

    @pytest.mark.parametrize("rt, err, cache, esperado", [
        (150, 0.5, 90, "excellent"),
        (400, 3, 70, "good"),
        (900, 8, 50, "fair"),
        (1500, 0, 100, "poor"),
        (150, 0.5, 80, "good"),
        (100, 0, 0, "poor"),
    ])
    def test_limiares(self, rt, err, cache, esperado):
        assert calculate_system_health(rt, err, cache) == esperado


# ==================================================
# TESTES: painel
# ==================================================


class TestDashboard:

    @pytest.mark.asyncio
    async def test_professor_ve_apenas_os_seus(self, client, admin, professor, headers_de):
        await _criar_processo(client, headers_de(professor), "1/2030")
        await _criar_processo(client, headers_de(admin), "2/2030", status="Arquivado")

        response = await client.get("/api/analytics/dashboard", headers=headers_de(professor))

        assert response.status_code == 200
        stats = response.json()
        assert stats["processes"]["total"] == 1
        assert stats["processes"]["active"] == 1
        assert stats["users"]["total"] == 0
        assert stats["period"] == "30d"

    @pytest.mark.asyncio
    async def test_admin_ve_tudo(self, client, admin, professor, aluno, headers_de):
        await _criar_processo(client, headers_de(professor), "1/2030")
        await _criar_processo(client, headers_de(admin), "2/2030", status="Arquivado")

        stats = (await client.get("/api/analytics/dashboard", headers=headers_de(admin))).json()

        assert stats["processes"]["total"] == 2
        assert stats["processes"]["archived"] == 1
        assert stats["users"]["total"] == 3
        assert {r["role"] for r in stats["users"]["byRole"]} == {"Admin", "Professor", "Aluno"}
        assert len(stats["appointments"]["weeklyDistribution"]) == 7

    @pytest.mark.asyncio
    async def test_aluno_sem_acesso(self, client, aluno, headers_de):
        response = await client.get("/api/analytics/dashboard", headers=headers_de(aluno))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_cache_invalidado_por_novo_processo(self, client, professor, headers_de):
        await client.get("/api/analytics/dashboard", headers=headers_de(professor))
        await _criar_processo(client, headers_de(professor))

        stats = (await client.get("/api/analytics/dashboard", headers=headers_de(professor))).json()
        assert stats["processes"]["total"] == 1

    @pytest.mark.asyncio
    async def test_limpar_cache(self, client, admin, headers_de):
        await client.get("/api/analytics/dashboard", headers=headers_de(admin))
        assert await redis_service.keys("dashboard_stats:*")

        response = await client.delete("/api/analytics/cache/clear", headers=headers_de(admin))

        assert response.status_code == 200
        assert response.json()["keysCleared"] == 1
        assert await redis_service.keys("dashboard_stats:*") == []

    @pytest.mark.asyncio
    async def test_limpar_cache_exige_admin(self, client, professor, headers_de):
        response = await client.delete("/api/analytics/cache/clear", headers=headers_de(professor))
        assert response.status_code == 403


# ==================================================
# TESTES: exportação
# ==================================================


class TestExportacao:

    @pytest.mark.asyncio
    async def test_json(self, client, professor, headers_de):
        await _criar_processo(client, headers_de(professor))

        response = await client.get("/api/analytics/export", headers=headers_de(professor))

        report = response.json()
        assert report["metadata"]["generatedBy"] == professor.id
        assert report["metadata"]["format"] == "json"
        assert report["summary"]["totalProcesses"] == 1

    @pytest.mark.asyncio
    async def test_csv(self, client, professor, headers_de):
        response = await client.get("/api/analytics/export", params={"format": "csv"}, headers=headers_de(professor))

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment" in response.headers["content-disposition"]
        linhas = response.text.splitlines()
        assert linhas[0] == "secao;campo;valor"
        assert "summary;totalProcesses;0" in linhas

    @pytest.mark.asyncio
    async def test_excel(self, client, professor, headers_de):
        response = await client.get("/api/analytics/export", params={"format": "excel"}, headers=headers_de(professor))

        assert response.status_code == 200
        assert response.headers["content-type"] == EXCEL_MEDIA_TYPE
        wb = load_workbook(io.BytesIO(response.content))
        assert wb.sheetnames[0] == "Resumo"
        assert "Desempenho" in wb.sheetnames

    @pytest.mark.asyncio
    async def test_formato_invalido(self, client, professor, headers_de):
        response = await client.get("/api/analytics/export", params={"format": "pdf"}, headers=headers_de(professor))
        assert response.status_code == 400


# ==================================================
# TESTES: KPIs, tendências, comparação e sistema
# ==================================================


class TestIndicadores:

    @pytest.mark.asyncio
    async def test_kpis_padrao(self, client, professor, headers_de):
        response = await client.get("/api/analytics/kpis", headers=headers_de(professor))

        assert response.status_code == 200
        assert set(response.json()) == {
            "process_resolution_time", "appointment_attendance_rate", "user_activity_score"
        }

    @pytest.mark.asyncio
    async def test_kpi_desconhecido_ignorado(self, client, professor, headers_de):
        response = await client.get(
            "/api/analytics/kpis", params={"types": "system_utilization,inventado"}, headers=headers_de(professor)
        )
        assert set(response.json()) == {"system_utilization"}

    @pytest.mark.asyncio
    async def test_tendencia(self, client, professor, headers_de):
        await _criar_processo(client, headers_de(professor))

        response = await client.get(
            "/api/analytics/trends", params={"metric": "processes", "period": "7d"}, headers=headers_de(professor)
        )

        assert response.status_code == 200
        dados = response.json()["data"]
        assert len(dados) >= 7
        assert sum(p["value"] for p in dados) == 1

    @pytest.mark.asyncio
    async def test_tendencia_metrica_invalida(self, client, professor, headers_de):
        response = await client.get("/api/analytics/trends", headers=headers_de(professor))
        assert response.status_code == 400

        response = await client.get("/api/analytics/trends", params={"metric": "lucro"}, headers=headers_de(professor))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_comparacao(self, client, professor, headers_de):
        await _criar_processo(client, headers_de(professor))

        response = await client.get(
            "/api/analytics/compare",
            params={"currentPeriod": "30d", "previousPeriod": "2020-01", "metrics": "processes"},
            headers=headers_de(professor),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["current"]["processes"]["total"] == 1
        assert body["previous"]["processes"]["total"] == 0
        assert body["comparison"]["processes"]["total"] == {"change": 1, "percentage": 100.0}

    @pytest.mark.asyncio
    async def test_comparacao_sem_periodo(self, client, professor, headers_de):
        response = await client.get("/api/analytics/compare", params={"currentPeriod": "30d"}, headers=headers_de(professor))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_comparacao_periodo_invalido(self, client, professor, headers_de):
        response = await client.get(
            "/api/analytics/compare",
            params={"currentPeriod": "30d", "previousPeriod": "ontem"},
            headers=headers_de(professor),
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_sistema(self, client, admin, headers_de):
        response = await client.get("/api/analytics/system", headers=headers_de(admin))

        assert response.status_code == 200
        body = response.json()
        assert body["systemHealth"] in ("excellent", "good", "fair", "poor")
        assert "diskUsage" in body["resources"]

    @pytest.mark.asyncio
    async def test_sistema_exige_admin(self, client, professor, headers_de):
        response = await client.get("/api/analytics/system", headers=headers_de(professor))
        assert response.status_code == 403


class TestLimitesDePeriodo:

    def test_meia_noite_conta_so_no_mes_seguinte(self, db, admin):
        # 01/02/2025 00:00 em Cuiabá
        db.add(Processo(numero_processo="1/2025", created_by=admin.id, created_at=datetime(2025, 2, 1, 4, tzinfo=UTC)))
        db.commit()

        resultado = compare_periods(db, admin, "2025-02", "2025-01", ["processes"])

        assert resultado["current"]["processes"]["total"] == 1
        assert resultado["previous"]["processes"]["total"] == 0

    def test_intervalos_consecutivos_nao_se_sobrepoem(self, db, admin):
        db.add(Processo(numero_processo="2/2025", created_by=admin.id, created_at=datetime(2025, 3, 11, 4, tzinfo=UTC)))
        db.commit()

        resultado = compare_periods(db, admin, "2025-03-11:2025-03-20", "2025-03-01:2025-03-10", ["processes"])

        assert resultado["current"]["processes"]["total"] == 1
        assert resultado["previous"]["processes"]["total"] == 0
