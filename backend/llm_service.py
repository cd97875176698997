import hashlib
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

import httpx
from openai import AsyncOpenAI

from backend.errors import InferenceError
from backend.prompts import SYSTEM_PROMPT

logger = logging.getLogger("saju_ai")
llm_audit_logger = logging.getLogger("llm_audit")


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        return max(minimum, int(raw))
    except ValueError:
        return default


OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
LLM_MAX_TOKENS = _env_int("SAJU_LLM_MAX_TOKENS", 4000)
LLM_TIMEOUT_SEC = _env_int("SAJU_LLM_TIMEOUT_SEC", 120)


class InferenceGateway(Protocol):
    """Prompt in, text out. Implementations raise InferenceError on any failure."""

    async def generate(self, prompt: str, *, request_id: str = "-", stage: str = "-") -> str:
        ...


def _utc_iso_now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _canonical_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def _sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _emit_llm_audit_event(
    *,
    request_id: str,
    stage: str,
    prompt_hash: str,
    model_used: str,
    outcome: str,
) -> dict[str, str]:
    event = {
        "request_id": request_id,
        "stage": stage,
        "prompt_hash": prompt_hash,
        "timestamp_utc": _utc_iso_now(),
        "model_used": model_used,
        "outcome": outcome,
    }
    llm_audit_logger.info(_canonical_json(event))
    return event


def _build_openai_payload(
    *,
    model: str,
    system_message: str,
    user_message: str,
    max_completion_tokens: int,
) -> dict[str, Any]:
    return {
        "model": model,
        "messages": [
            {"role": "system", "content": system_message},
            {"role": "user", "content": user_message},
        ],
        "max_completion_tokens": int(max_completion_tokens),
    }


def _first_nonempty_env(*keys: str) -> Optional[str]:
    for key in keys:
        value = os.getenv(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def build_openai_client() -> tuple[Optional[AsyncOpenAI], Optional[httpx.AsyncClient]]:
    api_key = _first_nonempty_env("OPENAI_API_KEY")
    if not api_key:
        return None, None

    base_url = _first_nonempty_env("OPENAI_BASE_URL", "OPENAI_API_BASE")
    proxy_url = _first_nonempty_env("OPENAI_PROXY_URL", "HTTPS_PROXY", "https_proxy")
    timeout = httpx.Timeout(connect=10.0, read=float(LLM_TIMEOUT_SEC), write=float(LLM_TIMEOUT_SEC), pool=float(LLM_TIMEOUT_SEC))

    try:
        if proxy_url:
            http_client = httpx.AsyncClient(timeout=timeout, trust_env=True, proxy=proxy_url)
        else:
            http_client = httpx.AsyncClient(timeout=timeout, trust_env=True)
        client_kwargs: dict[str, Any] = {"api_key": api_key, "http_client": http_client}
        if base_url:
            client_kwargs["base_url"] = base_url
        client = AsyncOpenAI(**client_kwargs)
        logger.info(
            "OpenAI client initialized base_url=%s proxy_configured=%s",
            str(getattr(client, "base_url", "default")),
            "True" if bool(proxy_url) else "False",
        )
        return client, http_client
    except Exception as e:
        logger.warning("OpenAI client initialization failed: %s", e)
        return None, None


class OpenAIInferenceGateway:
    """Chat-completions backed gateway.

    One call per `generate`; no retries and no model fallback. Every failure,
    including an empty completion, surfaces as InferenceError.
    """

    def __init__(
        self,
        async_client: Any,
        *,
        model: str = OPENAI_MODEL,
        max_tokens: int = LLM_MAX_TOKENS,
        system_message: str = SYSTEM_PROMPT,
    ):
        self.async_client = async_client
        self.model = str(model or OPENAI_MODEL).strip() or OPENAI_MODEL
        self.max_tokens = max_tokens
        self.system_message = system_message

    @property
    def configured(self) -> bool:
        return self.async_client is not None

    async def generate(self, prompt: str, *, request_id: str = "-", stage: str = "-") -> str:
        if self.async_client is None:
            raise InferenceError("LLM client not initialized. Check OPENAI_API_KEY.")

        prompt_hash = _sha256_hex(prompt)
        payload = _build_openai_payload(
            model=self.model,
            system_message=self.system_message,
            user_message=prompt,
            max_completion_tokens=self.max_tokens,
        )
        logger.info(
            "LLM API call started request_id=%s stage=%s model=%s prompt_hash=%s",
            request_id,
            stage,
            self.model,
            prompt_hash,
        )
        try:
            response = await self.async_client.chat.completions.create(**payload)
        except Exception as e:
            logger.warning(
                "LLM API call failed request_id=%s stage=%s model=%s error_type=%s error=%s",
                request_id,
                stage,
                self.model,
                type(e).__name__,
                str(e),
            )
            _emit_llm_audit_event(
                request_id=request_id,
                stage=stage,
                prompt_hash=prompt_hash,
                model_used=self.model,
                outcome=f"error:{type(e).__name__}",
            )
            raise InferenceError(f"LLM call failed: {e}") from e

        choices = getattr(response, "choices", None) or []
        text = choices[0].message.content if choices else ""
        response_text = text if isinstance(text, str) else ""
        logger.debug(
            "LLM API response received request_id=%s stage=%s response_length=%s",
            request_id,
            stage,
            len(response_text),
        )
        if not response_text.strip():
            _emit_llm_audit_event(
                request_id=request_id,
                stage=stage,
                prompt_hash=prompt_hash,
                model_used=self.model,
                outcome="error:empty",
            )
            raise InferenceError(
                "LLM returned empty response. Model: "
                f"{self.model}, finish_reason: {getattr(choices[0], 'finish_reason', 'N/A') if choices else 'N/A'}"
            )

        _emit_llm_audit_event(
            request_id=request_id,
            stage=stage,
            prompt_hash=prompt_hash,
            model_used=self.model,
            outcome="ok",
        )
        return response_text
