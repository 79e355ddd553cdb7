from voxrelay.gateway.middleware.correlation import (
    REQUEST_ID_HEADER,
    CorrelationIdMiddleware,
)
from voxrelay.gateway.middleware.error_handler import setup_exception_handlers

__all__ = [
    "REQUEST_ID_HEADER",
    "CorrelationIdMiddleware",
    "setup_exception_handlers",
]
