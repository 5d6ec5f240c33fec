"""
Middlewares customizados do Portal NPJ.
"""

from middleware.request_id import RequestIDMiddleware, get_request_id, REQUEST_ID_HEADER
from middleware.metrics import MetricsMiddleware

__all__ = [
    "RequestIDMiddleware",
    "MetricsMiddleware",
    "get_request_id",
    "REQUEST_ID_HEADER",
]
