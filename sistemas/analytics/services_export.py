# sistemas/analytics/services_export.py
"""
Exportação do relatório de analytics em JSON, CSV e Excel.
"""

import csv
import io
import logging
from typing import Any, Dict, List, Optional, Tuple

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from auth.models import User
from utils.timezone import now_utc, now_local

logger = logging.getLogger(__name__)


def build_report(stats: Dict[str, Any], user: User, period: str, format: str) -> Dict[str, Any]:
    """Relatório com metadados, resumo e as estatísticas completas do painel."""
    return {
        "metadata": {
            "generatedAt": now_utc().isoformat(),
            "generatedBy": user.id,
            "userRole": user.role,
            "period": period,
            "format": format,
        },
        "summary": {
            "totalProcesses": stats["processes"]["total"],
            "activeProcesses": stats["processes"]["active"],
            "totalAppointments": stats["appointments"]["total"],
            "upcomingAppointments": stats["appointments"]["upcoming"],
        },
        "details": stats,
    }


def report_filename(extensao: str) -> str:
    return f"analytics-report-{now_local().strftime('%Y-%m-%d')}.{extensao}"


def _linhas_secao(dados: Dict[str, Any], prefixo: str = "") -> List[Tuple[str, Any]]:
    """Achata um dicionário em (caminho, valor); listas de dicts viram uma linha por item."""
    linhas = []
    for chave, valor in dados.items():
        caminho = f"{prefixo}{chave}"
        if isinstance(valor, dict):
            linhas.extend(_linhas_secao(valor, f"{caminho}."))
        elif isinstance(valor, list):
            for indice, item in enumerate(valor):
                if isinstance(item, dict):
                    linhas.extend(_linhas_secao(item, f"{caminho}[{indice}]."))
                else:
                    linhas.append((f"{caminho}[{indice}]", item))
        else:
            linhas.append((caminho, valor))
    return linhas


class AnalyticsExportService:
    """Converte o relatório para os formatos de download."""

    def exportar_csv(self, report: Dict[str, Any], separador: str = ";") -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, delimiter=separador, quoting=csv.QUOTE_MINIMAL)

        writer.writerow(["secao", "campo", "valor"])
        for secao in ("metadata", "summary", "details"):
            for campo, valor in _linhas_secao(report[secao]):
                writer.writerow([secao, campo, "" if valor is None else valor])

        return buffer.getvalue()

    def _aba_tabela(self, wb: Workbook, titulo: str, headers: List[str], linhas: List[List[Any]]):
        ws = wb.create_sheet(titulo)
        for col, header in enumerate(headers, 1):
            ws.cell(row=1, column=col, value=header).font = Font(bold=True)
        for row_idx, linha in enumerate(linhas, 2):
            for col, valor in enumerate(linha, 1):
                ws.cell(row=row_idx, column=col, value=valor)
        self._ajustar_larguras(ws, len(headers))
        return ws

    @staticmethod
    def _ajustar_larguras(ws, colunas: int):
        for col in range(1, colunas + 1):
            letra = get_column_letter(col)
            maior = max(
                (len(str(c.value)) for c in ws[letra][:100] if c.value is not None),
                default=0,
            )
            ws.column_dimensions[letra].width = min(maior + 2, 50)

    def exportar_excel(self, report: Dict[str, Any]) -> bytes:
        """
        Planilha com abas Resumo, Processos, Agendamentos, Usuários e Desempenho.

        Returns:
            Conteúdo do arquivo .xlsx
        """
        detalhes = report["details"]
        wb = Workbook()

        ws = wb.active
        ws.title = "Resumo"
        ws.cell(row=1, column=1, value="Propriedade").font = Font(bold=True)
        ws.cell(row=1, column=2, value="Valor").font = Font(bold=True)
        linhas = list(report["metadata"].items()) + list(report["summary"].items())
        for row_idx, (prop, valor) in enumerate(linhas, 2):
            ws.cell(row=row_idx, column=1, value=prop)
            ws.cell(row=row_idx, column=2, value=valor)
        self._ajustar_larguras(ws, 2)

        processos = detalhes["processes"]
        self._aba_tabela(
            wb, "Processos", ["Status", "Quantidade", "Percentual"],
            [[d["status"], d["count"], d["percentage"]] for d in processos["statusDistribution"]],
        )
        self._aba_tabela(
            wb, "Processos por mês", ["Mês", "Quantidade"],
            [[t["month"], t["count"]] for t in processos["monthlyTrend"]],
        )

        agendamentos = detalhes["appointments"]
        self._aba_tabela(
            wb, "Agendamentos", ["Indicador", "Valor"],
            [[campo, agendamentos[campo]] for campo in ("total", "upcoming", "completed", "cancelled", "completionRate")]
            + [[f"Dia: {d['day']}", d["count"]] for d in agendamentos["weeklyDistribution"]],
        )

        usuarios = detalhes["users"]
        self._aba_tabela(
            wb, "Usuários", ["Indicador", "Valor"],
            [[campo, usuarios.get(campo, 0)] for campo in ("total", "active", "inactive", "growth")]
            + [[f"Papel: {r['role']}", r["count"]] for r in usuarios.get("byRole", [])],
        )

        self._aba_tabela(
            wb, "Desempenho", ["Indicador", "Valor"],
            [[campo, valor] for campo, valor in detalhes["performance"].items()],
        )

        buffer = io.BytesIO()
        wb.save(buffer)
        return buffer.getvalue()


# Instância global
_export_service: Optional[AnalyticsExportService] = None


def get_export_service() -> AnalyticsExportService:
    """Retorna instância singleton do serviço de exportação"""
    global _export_service
    if _export_service is None:
        _export_service = AnalyticsExportService()
    return _export_service
