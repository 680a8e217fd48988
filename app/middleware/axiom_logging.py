"""Axiom API 로깅 미들웨어.

Axiom API logging middleware.
Captures request/response data and sends structured logs to Axiom.
Logs: endpoint, method, masked body, status code, error reason, and the
session outcome (resolved user id, whether the session was rotated).
Cookie values and sensitive fields (password, token, secret) never leave
the process.
"""

import json
import logging
import re
import time
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from axiom_py import Client as AxiomClient

from app.config import Settings

logger = logging.getLogger(__name__)

# 마스킹 대상 필드 패턴 — Fields to mask in request/response bodies
_SENSITIVE_KEYS = re.compile(
    r"(password|passwd|secret|token|authorization|cookie|refresh|access|credential)",
    re.IGNORECASE,
)

# 로깅 제외 경로 — Paths excluded from logging
_SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}


def _mask_dict(data: Any, depth: int = 0) -> Any:
    """민감 필드 자동 마스킹 — Recursively mask sensitive fields in dicts/lists."""
    if depth > 5:
        return "..."
    if isinstance(data, dict):
        return {
            k: "***" if _SENSITIVE_KEYS.search(k) else _mask_dict(v, depth + 1)
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [_mask_dict(item, depth + 1) for item in data[:20]]
    return data


def _session_fields(request: Request) -> dict[str, Any]:
    """세션 미들웨어 결과를 로그 필드로 변환 — Session outcome as log fields."""
    context = getattr(request.state, "session", None)
    if context is None:
        return {}
    user = getattr(context.result, "user", None)
    return {
        "user_id": user.id if user is not None else None,
        "session_rotated": bool(getattr(context.result, "rotated", False)),
    }


async def _read_masked_body(request: Request) -> Any:
    """요청 본문을 JSON으로 읽어 마스킹 — JSON request body with secrets masked."""
    raw: bytes = await request.body()
    if not raw:
        return None
    try:
        return _mask_dict(json.loads(raw))
    except (json.JSONDecodeError, UnicodeDecodeError):
        return "(non-json body)"


class AxiomLoggingMiddleware(BaseHTTPMiddleware):
    """모든 API 요청/응답을 Axiom에 로깅하는 미들웨어.

    Middleware shipping one event per API request to Axiom.
    Passes through untouched when no Axiom token/dataset is configured.
    """

    def __init__(self, app: Any, settings: Settings) -> None:
        super().__init__(app)
        self._dataset: str = settings.AXIOM_DATASET
        self._client: AxiomClient | None = None
        if settings.AXIOM_API_TOKEN and settings.AXIOM_DATASET:
            self._client = AxiomClient(token=settings.AXIOM_API_TOKEN)

    def _ship(self, event: dict[str, Any]) -> None:
        try:
            self._client.ingest_events(self._dataset, [event])
        except Exception:
            # 로깅 실패가 요청 처리에 영향주지 않도록 — log shipping never fails the request
            logger.warning("Axiom ingest failed for %s %s", event["method"], event["path"], exc_info=True)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if self._client is None or request.url.path in _SKIP_PATHS:
            return await call_next(request)

        started: float = time.time()
        event: dict[str, Any] = {"method": request.method, "path": request.url.path, "status_code": 500}
        if request.query_params:
            event["query_params"] = _mask_dict(dict(request.query_params))
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            body = await _read_masked_body(request)
            if body is not None:
                event["request_body"] = body

        try:
            response: Response = await call_next(request)
            event["status_code"] = response.status_code
            return response
        except Exception as exc:
            event["error"] = f"{type(exc).__name__}: {str(exc)[:300]}"
            raise
        finally:
            event["duration_ms"] = round((time.time() - started) * 1000, 2)
            event.update(_session_fields(request))
            self._ship(event)
