"""HTTP adapters between the Streamlit session and the saju API."""

from __future__ import annotations

import os
from typing import Any, Optional

import httpx
import requests

API = os.getenv("API_URL", "http://127.0.0.1:3001")
SAJU_PATH = "/api/get-saju"
SERVER_ERROR_MESSAGE = "서버 오류"


def _env_float(name: str, default: float) -> float:
    try:
        return max(1.0, float(os.getenv(name, str(default)).strip()))
    except ValueError:
        return default


API_TIMEOUT_SEC = _env_float("SAJU_API_TIMEOUT_SEC", 120.0)


class SajuApiError(Exception):
    """Non-2xx answer or transport failure talking to the saju API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


async def post_saju(
    payload: dict[str, Any],
    *,
    base_url: str = API,
    timeout: float = API_TIMEOUT_SEC,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict[str, Any]:
    async with httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport) as client:
        try:
            r = await client.post(SAJU_PATH, json=payload)
        except httpx.HTTPError as e:
            raise SajuApiError(f"{SERVER_ERROR_MESSAGE}: {e}") from e

    try:
        data = r.json()
    except ValueError:
        data = None
    if not isinstance(data, dict):
        data = {}

    if r.is_error:
        raise SajuApiError(str(data.get("error") or SERVER_ERROR_MESSAGE), status_code=r.status_code)
    if not isinstance(data.get("sajuResult"), str):
        raise SajuApiError(f"{SERVER_ERROR_MESSAGE}: sajuResult missing", status_code=r.status_code)
    return data


def api_get(path, params=None, timeout=10):
    url = f"{API}{path}"
    r = requests.get(url, params=params or {}, timeout=timeout)
    r.raise_for_status()
    return r
