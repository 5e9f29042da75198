"""Audit logging middleware for governance requests."""
from __future__ import annotations

import json
import logging
import random
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable
from uuid import uuid4

import boto3
from botocore.exceptions import ClientError  # type: ignore[import-untyped]
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from governance.core.config import Settings

# Encrypted material and key material never reach the audit trail verbatim.
_OPAQUE_KEYS = {
    "encrypted_choice",
    "ciphertext",
    "proof",
    "input_proof",
    "public_key",
    "verify_key",
    "signature",
    "sealed_vote",
    "access_token",
}


def redact(value: Any) -> Any:
    """Replace opaque payload fields by a size marker, recursively."""

    if isinstance(value, dict):
        redacted: dict[str, Any] = {}
        for key, item in value.items():
            if key.lower() in _OPAQUE_KEYS:
                size = len(item) if isinstance(item, (str, bytes)) else 0
                redacted[key] = f"<redacted {size} chars>"
            else:
                redacted[key] = redact(item)
        return redacted
    if isinstance(value, list):
        return [redact(item) for item in value]
    return value


@dataclass(slots=True)
class AuditLogRecord:
    """Structured log entry emitted by the middleware."""

    timestamp: str
    request_id: str
    method: str
    path: str
    status: int
    duration_ms: float
    caller: str | None
    ip_address: str | None
    body: Any

    def to_json(self) -> str:
        payload = asdict(self)
        payload["duration_ms"] = round(self.duration_ms, 2)
        return json.dumps(payload, default=str)


class AuditMiddleware(BaseHTTPMiddleware):
    """Starlette middleware writing one audit record per request."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        settings: Settings,
        logger: logging.Logger | None = None,
        s3_client_factory: Callable[[], Any] | None = None,
    ) -> None:
        super().__init__(app)
        self._settings = settings
        self._logger = logger or logging.getLogger("audit")
        self._s3_client_factory = s3_client_factory or self._default_client_factory
        self._s3_client: Any | None = None

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        request.state.request_id = request_id
        start = time.perf_counter()

        body_bytes = await request.body()
        self._set_body(request, body_bytes)

        body = None
        if body_bytes:
            try:
                body = redact(json.loads(body_bytes))
            except json.JSONDecodeError:
                body = "<binary>"

        response = await call_next(request)

        record = AuditLogRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=(time.perf_counter() - start) * 1000,
            caller=getattr(request.state, "caller_address", None),
            ip_address=request.client.host if request.client else None,
            body=body,
        )

        self._logger.info(record.to_json())
        self._persist_to_s3(record)

        response.headers["X-Request-ID"] = request_id
        return response

    def _default_client_factory(self) -> Any:
        return boto3.client(
            "s3",
            region_name=self._settings.aws_region,
            endpoint_url=self._settings.s3_endpoint_url,
        )

    def _persist_to_s3(self, record: AuditLogRecord) -> None:
        bucket = self._settings.audit_log_bucket
        if not bucket or self._settings.audit_log_sample_rate <= 0:
            return
        if self._settings.audit_log_sample_rate < 1 and random.random() > self._settings.audit_log_sample_rate:
            return

        if self._s3_client is None:
            self._s3_client = self._s3_client_factory()
        prefix = self._settings.audit_log_prefix.rstrip("/")
        now = datetime.now(timezone.utc)
        key = f"{prefix}/{now:%Y/%m/%d}/{record.request_id}.json"
        try:
            self._s3_client.put_object(
                Bucket=bucket,
                Key=key,
                Body=record.to_json().encode("utf-8"),
                ContentType="application/json",
            )
        except ClientError as exc:  # pragma: no cover - S3 connectivity issues
            self._logger.error("failed to persist audit record", extra={"error": str(exc)})

    @staticmethod
    def _set_body(request: Request, body: bytes) -> None:
        async def receive() -> dict[str, Any]:
            nonlocal consumed
            if consumed:
                return {"type": "http.request", "body": b"", "more_body": False}
            consumed = True
            return {"type": "http.request", "body": body, "more_body": False}

        consumed = False
        request._receive = receive  # type: ignore[attr-defined]


__all__ = ["AuditLogRecord", "AuditMiddleware", "redact"]
