"""공통 Pydantic 응답 스키마 정의.

Common Pydantic response schema definitions shared across API domains.
"""

from pydantic import BaseModel


class StatusResponse(BaseModel):
    """상태 코드 응답 스키마.

    Fixed-shape acknowledgement body, e.g. ``{"status": 200}``.
    The value always equals the HTTP status code of the response.
    """

    status: int  # HTTP 상태 코드와 동일 (Mirrors the HTTP status code)


class HealthResponse(BaseModel):
    status: str = "ok"
