"""Stage 1: birth profile -> four pillars via the inference gateway."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError as SchemaValidationError

from backend.errors import PillarParseError
from backend.llm_service import InferenceGateway
from backend.models import BirthProfile, FourPillars
from backend.prompts import CALENDAR_LABELS, LEAP_MONTH_SUFFIX, PILLAR_PROMPT_TEMPLATE, UNKNOWN_HOUR_TEXT

logger = logging.getLogger("saju_ai")

PILLAR_FAILURE_MESSAGE = "AI로부터 사주팔자를 계산하는 데 실패했습니다."

_FENCE_OPEN_RE = re.compile(r"^```[a-zA-Z]*\s*")
_FENCE_CLOSE_RE = re.compile(r"\s*```$")


def build_pillar_prompt(profile: BirthProfile) -> str:
    hour_text = f"{profile.hour}시" if profile.hour_known else UNKNOWN_HOUR_TEXT
    return PILLAR_PROMPT_TEMPLATE.format(
        calendar_label=CALENDAR_LABELS[profile.calendar_type.value],
        year=profile.year,
        month=profile.month,
        day=profile.day,
        leap_suffix=LEAP_MONTH_SUFFIX if profile.is_leap_month else "",
        hour_text=hour_text,
    )


def strip_code_fences(text: str) -> str:
    """Remove a markdown code fence the model may wrap around its JSON."""
    cleaned = (text or "").strip()
    cleaned = _FENCE_OPEN_RE.sub("", cleaned)
    cleaned = _FENCE_CLOSE_RE.sub("", cleaned)
    return cleaned.strip()


def parse_pillars(raw_text: str) -> FourPillars:
    cleaned = strip_code_fences(raw_text)
    try:
        data: Any = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise PillarParseError(f"{PILLAR_FAILURE_MESSAGE} (invalid JSON: {e.msg})") from e
    if not isinstance(data, dict):
        raise PillarParseError(f"{PILLAR_FAILURE_MESSAGE} (expected an object, got {type(data).__name__})")
    try:
        return FourPillars.model_validate(data)
    except SchemaValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) or "<root>" for err in e.errors()})
        raise PillarParseError(f"{PILLAR_FAILURE_MESSAGE} (invalid fields: {', '.join(fields)})") from e


async def normalize(profile: BirthProfile, gateway: InferenceGateway, *, request_id: str = "-") -> FourPillars:
    """Compute the four pillars for `profile`.

    Raises PillarParseError on malformed output and lets InferenceError from the
    gateway propagate. Never retries.
    """
    prompt = build_pillar_prompt(profile)
    raw_text = await gateway.generate(prompt, request_id=request_id, stage="pillars")
    try:
        pillars = parse_pillars(raw_text)
    except PillarParseError as e:
        logger.warning("Pillar parse failed request_id=%s error=%s", request_id, e.message)
        raise

    if not profile.hour_known and pillars.hour is not None:
        logger.debug("Dropping hour pillar for unknown birth hour request_id=%s", request_id)
        pillars = pillars.model_copy(update={"hour": None})
    logger.info("Pillars computed request_id=%s hour_known=%s", request_id, pillars.hour_known)
    return pillars
