"""Observability utilities."""

from .audit import AuditLogRecord, AuditMiddleware, redact
from .metrics import (
    FHE_OPERATION_COUNTER,
    GOVERNANCE_REJECTION_COUNTER,
    PROPOSALS_CREATED_COUNTER,
    PROPOSALS_FINALIZED_COUNTER,
    REQUEST_COUNTER,
    REQUEST_ERROR_COUNTER,
    REQUEST_LATENCY_SECONDS,
    TALLY_UPDATE_SECONDS,
    VOTES_CAST_COUNTER,
    PrometheusMiddleware,
    metrics_router,
)
from .tracing import (
    initialise_tracing,
    instrument_fastapi_app,
    instrument_sqlalchemy_engine,
    operation_span,
)

__all__ = [
    "AuditLogRecord",
    "AuditMiddleware",
    "FHE_OPERATION_COUNTER",
    "GOVERNANCE_REJECTION_COUNTER",
    "PROPOSALS_CREATED_COUNTER",
    "PROPOSALS_FINALIZED_COUNTER",
    "PrometheusMiddleware",
    "REQUEST_COUNTER",
    "REQUEST_ERROR_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "TALLY_UPDATE_SECONDS",
    "VOTES_CAST_COUNTER",
    "initialise_tracing",
    "instrument_fastapi_app",
    "instrument_sqlalchemy_engine",
    "metrics_router",
    "operation_span",
    "redact",
]
