from __future__ import annotations

from typing import Any

from erp_auth.utils.time_utils import now_ms


def success(data: Any, message: str = "request processed successfully") -> dict[str, Any]:
    return {"status": "success", "message": message, "data": data, "timestamp": now_ms()}


def failure(message: str, code: str | None = None, details: dict[str, Any] | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"status": "failure", "message": message}
    if code is not None:
        body["code"] = code
    if details:
        body["details"] = details
    body["timestamp"] = now_ms()
    return body
