# sistemas/analytics/router.py
"""
Router do módulo de Analytics.

Endpoints para:
- Estatísticas do painel e KPIs
- Tendências e comparação entre períodos
- Exportação do relatório (json, csv, excel)
- Estado do sistema e limpeza do cache (Admin)
"""

import logging
import os
import shutil
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from auth.models import User
from database.connection import get_db
from services.redis_service import redis_service
from sistemas.analytics import services
from sistemas.analytics.constants import (
    PERIODO_PADRAO, FORMATOS_EXPORTACAO, EXCEL_MEDIA_TYPE, KPIS_PADRAO
)
from sistemas.analytics.exceptions import PeriodoInvalidoError, MetricaInvalidaError
from sistemas.analytics.services_export import build_report, report_filename, get_export_service
from sistemas.permissoes.dependencies import authorize
from utils.audit import AuditEvent, log_audit_event, log_data_export
from utils.rate_limit import limiter, LIMITS, get_user_identifier
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])


@router.get("/dashboard")
async def dashboard(
    period: str = Query(PERIODO_PADRAO, description="7d, 30d, 90d ou 1y"),
    current_user: User = Depends(authorize("analytics", "view_own")),
    db: Session = Depends(get_db)
):
    """Estatísticas do painel (cache de 10 minutos)"""
    return await services.get_dashboard_stats(db, current_user, {"period": period})


@router.get("/export")
@limiter.limit(LIMITS["export"], key_func=get_user_identifier)
async def exportar(
    request: Request,
    format: str = Query("json"),
    period: str = Query(PERIODO_PADRAO),
    current_user: User = Depends(authorize("analytics", "export_own")),
    db: Session = Depends(get_db)
):
    if format not in FORMATOS_EXPORTACAO:
        raise HTTPException(status_code=400, detail=f"Formato inválido. Use: {', '.join(FORMATOS_EXPORTACAO)}")

    stats = await services.get_dashboard_stats(db, current_user, {"period": period})
    report = build_report(stats, current_user, period, format)
    log_data_export(current_user.id, current_user.email, request, "analytics", 1, format)

    exportador = get_export_service()
    if format == "csv":
        return Response(
            content=exportador.exportar_csv(report),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{report_filename("csv")}"'},
        )
    if format == "excel":
        return Response(
            content=exportador.exportar_excel(report),
            media_type=EXCEL_MEDIA_TYPE,
            headers={"Content-Disposition": f'attachment; filename="{report_filename("xlsx")}"'},
        )
    return report


@router.get("/kpis")
async def kpis(
    types: Optional[str] = Query(None, description="Tipos separados por vírgula"),
    current_user: User = Depends(authorize("analytics", "view_own")),
    db: Session = Depends(get_db)
):
    tipos = [t.strip() for t in types.split(",") if t.strip()] if types else list(KPIS_PADRAO)
    return services.get_custom_kpis(db, current_user, tipos)


@router.get("/system")
async def estado_sistema(current_user: User = Depends(authorize("system", "logs"))):
    """Desempenho e recursos do servidor"""
    performance = services.get_performance_stats()

    disco = shutil.disk_usage(os.getcwd())
    recursos = {"diskUsage": round(disco.used / disco.total * 100, 1) if disco.total else 0.0}
    if hasattr(os, "getloadavg"):
        recursos["loadAverage"] = [round(carga, 2) for carga in os.getloadavg()]

    return {
        "systemHealth": performance.pop("systemHealth"),
        "performance": performance,
        "resources": recursos,
        "timestamp": now_utc().isoformat(),
    }


@router.get("/trends")
async def tendencias(
    metric: Optional[str] = Query(None),
    period: str = Query(PERIODO_PADRAO),
    granularity: str = Query("day"),
    current_user: User = Depends(authorize("analytics", "view_own")),
    db: Session = Depends(get_db)
):
    try:
        return services.get_trends(db, current_user, metric, period, granularity)
    except MetricaInvalidaError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/compare")
async def comparar(
    currentPeriod: Optional[str] = Query(None),
    previousPeriod: Optional[str] = Query(None),
    metrics: str = Query("processes,appointments"),
    current_user: User = Depends(authorize("analytics", "view_own")),
    db: Session = Depends(get_db)
):
    if not currentPeriod or not previousPeriod:
        raise HTTPException(status_code=400, detail="currentPeriod e previousPeriod são obrigatórios")
    try:
        return services.compare_periods(db, current_user, currentPeriod, previousPeriod, metrics.split(","))
    except (PeriodoInvalidoError, MetricaInvalidaError) as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/cache/clear")
async def limpar_cache(
    request: Request,
    current_user: User = Depends(authorize("system", "configure"))
):
    removidas = await redis_service.delete_pattern("dashboard_stats:*")
    log_audit_event(
        AuditEvent.ANALYTICS_CACHE_CLEARED,
        user_id=current_user.id,
        username=current_user.email,
        request=request,
        details={"keys_cleared": removidas},
    )
    return {"message": "Cache de analytics limpo com sucesso", "keysCleared": removidas}
