"""Uvicorn launcher for the saju API."""

import os
from typing import Any

import uvicorn

from backend.llm_service import _env_int

APP_IMPORT_PATH = "backend.main:app"
DEFAULT_PORT = 3001


def _env_optional_int(name: str) -> int | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def uvicorn_options() -> dict[str, Any]:
    return {
        "host": os.getenv("HOST", "0.0.0.0"),
        "port": _env_int("PORT", DEFAULT_PORT, minimum=1),
        "workers": _env_int("WEB_CONCURRENCY", 1, minimum=1),
        "timeout_keep_alive": _env_int("UVICORN_TIMEOUT_KEEP_ALIVE", 5, minimum=1),
        "limit_concurrency": _env_optional_int("UVICORN_LIMIT_CONCURRENCY"),
        "log_level": os.getenv("UVICORN_LOG_LEVEL", "info").strip() or "info",
    }


def main() -> None:
    uvicorn.run(APP_IMPORT_PATH, **uvicorn_options())


if __name__ == "__main__":
    main()
