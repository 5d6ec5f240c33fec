"""
Métricas de requests HTTP em memória.

Alimenta:
- A seção "performance" do dashboard de analytics (tempo médio, taxa de erro)
- A tendência de desempenho (série por minuto, últimas 24h)
- O endpoint /metrics em formato Prometheus

USO:
    from utils.metrics import get_metrics

    get_metrics().record_request("GET", "/api/processos", 200, 0.05)
    snapshot = get_metrics().get_performance_snapshot()
"""

import time
import threading
from collections import defaultdict, OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional
from utils.timezone import get_utc_now


# Minutos mantidos na série temporal (24h)
TIMELINE_MAX_MINUTES = 24 * 60


@dataclass
class RequestMetrics:
    """Métricas agregadas por endpoint."""
    total_count: int = 0
    success_count: int = 0  # 2xx
    client_error_count: int = 0  # 4xx
    server_error_count: int = 0  # 5xx
    total_duration_seconds: float = 0.0
    max_duration_seconds: float = 0.0
    last_request_time: Optional[datetime] = None


@dataclass
class MinuteBucket:
    """Agregado de um minuto da série temporal."""
    count: int = 0
    errors: int = 0
    duration_seconds: float = 0.0


class MetricsRegistry:
    """
    Registro central de métricas da aplicação.

    Thread-safe para uso com múltiplos workers.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._start_time = time.time()
        self._endpoints: Dict[str, RequestMetrics] = defaultdict(RequestMetrics)
        self._timeline: "OrderedDict[datetime, MinuteBucket]" = OrderedDict()
        self._total_requests = 0
        self._total_errors = 0
        self._total_duration = 0.0
        self._active_requests = 0

    def record_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_seconds: float,
    ):
        """Registra métricas de uma request."""
        key = f"{method}:{self._normalize_path(path)}"
        agora = get_utc_now()
        minuto = agora.replace(second=0, microsecond=0)
        is_error = status_code >= 500

        with self._lock:
            metrics = self._endpoints[key]
            metrics.total_count += 1
            self._total_requests += 1
            self._total_duration += duration_seconds

            if 200 <= status_code < 300:
                metrics.success_count += 1
            elif 400 <= status_code < 500:
                metrics.client_error_count += 1
            elif is_error:
                metrics.server_error_count += 1
                self._total_errors += 1

            metrics.total_duration_seconds += duration_seconds
            metrics.max_duration_seconds = max(metrics.max_duration_seconds, duration_seconds)
            metrics.last_request_time = agora

            bucket = self._timeline.get(minuto)
            if bucket is None:
                bucket = MinuteBucket()
                self._timeline[minuto] = bucket
                while len(self._timeline) > TIMELINE_MAX_MINUTES:
                    self._timeline.popitem(last=False)
            bucket.count += 1
            bucket.duration_seconds += duration_seconds
            if is_error:
                bucket.errors += 1

    def start_request(self):
        with self._lock:
            self._active_requests += 1

    def end_request(self):
        with self._lock:
            self._active_requests = max(0, self._active_requests - 1)

    def get_performance_snapshot(self) -> Dict:
        """
        Retorna tempo médio de resposta (ms) e taxa de erro (%) desde o início.
        """
        with self._lock:
            if self._total_requests == 0:
                return {"response_time_ms": 0.0, "error_rate": 0.0, "total_requests": 0,
                        "active_requests": self._active_requests}
            return {
                "response_time_ms": round(self._total_duration / self._total_requests * 1000, 2),
                "error_rate": round(self._total_errors / self._total_requests * 100, 2),
                "total_requests": self._total_requests,
                "active_requests": self._active_requests,
            }

    def get_timeline(self, since: Optional[datetime] = None) -> List[Dict]:
        """Série por minuto (mais antigo primeiro), opcionalmente a partir de `since`."""
        with self._lock:
            pontos = []
            for minuto, bucket in self._timeline.items():
                if since is not None and minuto < since:
                    continue
                pontos.append({
                    "minute": minuto,
                    "count": bucket.count,
                    "errors": bucket.errors,
                    "avg_ms": round(bucket.duration_seconds / bucket.count * 1000, 2) if bucket.count else 0.0,
                })
            return pontos

    def get_summary(self) -> Dict:
        """Resumo das métricas em formato JSON."""
        with self._lock:
            uptime_seconds = time.time() - self._start_time
            snapshot = self.get_performance_snapshot()

            slowest = []
            for key, metrics in self._endpoints.items():
                if metrics.total_count > 0:
                    avg = metrics.total_duration_seconds / metrics.total_count
                    slowest.append((key, avg, metrics.total_count))
            slowest.sort(key=lambda x: x[1], reverse=True)

            return {
                "uptime_seconds": round(uptime_seconds, 1),
                "total_requests": self._total_requests,
                "total_errors": self._total_errors,
                "active_requests": self._active_requests,
                "error_rate": snapshot["error_rate"],
                "avg_duration_ms": snapshot["response_time_ms"],
                "slowest_endpoints": [
                    {"endpoint": e[0], "avg_ms": round(e[1] * 1000, 2), "count": e[2]}
                    for e in slowest[:10]
                ],
                "endpoints_count": len(self._endpoints),
            }

    def get_prometheus_text(self) -> str:
        """Métricas em formato Prometheus text-based."""
        with self._lock:
            lines = [
                "# HELP portal_npj_uptime_seconds Tempo de execução do serviço",
                "# TYPE portal_npj_uptime_seconds gauge",
                f"portal_npj_uptime_seconds {time.time() - self._start_time:.2f}",
                "# HELP portal_npj_requests_total Total de requests processados",
                "# TYPE portal_npj_requests_total counter",
                f"portal_npj_requests_total {self._total_requests}",
                "# HELP portal_npj_errors_total Total de erros (5xx)",
                "# TYPE portal_npj_errors_total counter",
                f"portal_npj_errors_total {self._total_errors}",
                "# HELP portal_npj_http_request_duration_seconds_sum Soma das durações por endpoint",
                "# TYPE portal_npj_http_request_duration_seconds_sum counter",
            ]
            for key, metrics in self._endpoints.items():
                method, path = key.split(":", 1)
                lines.append(
                    f'portal_npj_http_request_duration_seconds_sum{{method="{method}",path="{path}"}} '
                    f'{metrics.total_duration_seconds:.4f}'
                )
            return "\n".join(lines) + "\n"

    def reset(self):
        """Reseta todas as métricas (para testes)."""
        with self._lock:
            self._endpoints.clear()
            self._timeline.clear()
            self._total_requests = 0
            self._total_errors = 0
            self._total_duration = 0.0
            self._active_requests = 0
            self._start_time = time.time()

    def _normalize_path(self, path: str) -> str:
        """Remove query string e troca IDs numéricos por {id}."""
        path = path.split("?")[0]
        return "/".join("{id}" if part.isdigit() else part for part in path.split("/"))


_metrics_registry: Optional[MetricsRegistry] = None


def get_metrics() -> MetricsRegistry:
    """Retorna a instância singleton do registro de métricas."""
    global _metrics_registry
    if _metrics_registry is None:
        _metrics_registry = MetricsRegistry()
    return _metrics_registry
