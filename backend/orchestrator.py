"""Server-side entry point: validate, compute pillars, analyse one section.

The orchestrator holds no per-session state. Pillars are recomputed for every
request unless the caller threads back the pillars returned by an earlier
response.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date
from typing import Any, Callable, Optional

from pydantic import ValidationError as SchemaValidationError

from backend import pillar_normalizer, section_analyst
from backend.errors import ValidationError
from backend.llm_service import InferenceGateway
from backend.models import BirthProfile, FourPillars, SajuResponse, SectionKey

logger = logging.getLogger("saju_ai")

PROFILE_REQUIRED_FIELDS = ("name", "gender", "calendarType", "year", "month", "day")
SECTION_FIELD = "section"
PILLARS_FIELD = "pillars"

MISSING_FIELDS_MESSAGE = "필수 정보가 누락되었습니다."
INVALID_FIELDS_MESSAGE = "입력 정보가 올바르지 않습니다."


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def _invalid_fields(error: SchemaValidationError, prefix: str = "") -> str:
    fields = sorted({prefix + ".".join(str(p) for p in err["loc"]) for err in error.errors()})
    return ", ".join(f for f in fields if f) or prefix.rstrip(".") or "<root>"


def require_fields(payload: Any, fields: tuple[str, ...]) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise ValidationError(MISSING_FIELDS_MESSAGE)
    missing = [name for name in fields if _is_missing(payload.get(name))]
    if missing:
        raise ValidationError(f"{MISSING_FIELDS_MESSAGE} (missing: {', '.join(missing)})")
    return payload


def parse_profile(payload: Mapping[str, Any]) -> BirthProfile:
    try:
        return BirthProfile.model_validate(dict(payload))
    except SchemaValidationError as e:
        raise ValidationError(f"{INVALID_FIELDS_MESSAGE} (invalid: {_invalid_fields(e)})") from e


def parse_section(payload: Mapping[str, Any]) -> SectionKey:
    raw = payload.get(SECTION_FIELD)
    try:
        return SectionKey(str(raw).strip())
    except ValueError as e:
        raise ValidationError(f"{INVALID_FIELDS_MESSAGE} (invalid: {SECTION_FIELD})") from e


def parse_threaded_pillars(payload: Mapping[str, Any]) -> Optional[FourPillars]:
    raw = payload.get(PILLARS_FIELD)
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise ValidationError(f"{INVALID_FIELDS_MESSAGE} (invalid: {PILLARS_FIELD})")
    try:
        return FourPillars.model_validate(dict(raw))
    except SchemaValidationError as e:
        raise ValidationError(
            f"{INVALID_FIELDS_MESSAGE} (invalid: {_invalid_fields(e, prefix=PILLARS_FIELD + '.')})"
        ) from e


class SajuOrchestrator:
    def __init__(self, gateway: InferenceGateway, *, clock: Callable[[], date] = date.today):
        self.gateway = gateway
        self.clock = clock

    async def compute_pillars(self, payload: Any, *, request_id: str = "-") -> FourPillars:
        """Stage 1 on its own."""
        profile = parse_profile(require_fields(payload, PROFILE_REQUIRED_FIELDS))
        return await pillar_normalizer.normalize(profile, self.gateway, request_id=request_id)

    async def handle(self, payload: Any, *, request_id: str = "-") -> SajuResponse:
        """Validate `payload`, then run stage 1 and stage 2 for one section.

        All validation happens before the first gateway call. Stage failures
        propagate unchanged (PillarParseError / InferenceError); no partial
        result and no placeholder text is produced here.
        """
        payload = require_fields(payload, PROFILE_REQUIRED_FIELDS + (SECTION_FIELD,))
        profile = parse_profile(payload)
        section = parse_section(payload)
        pillars = parse_threaded_pillars(payload)

        if pillars is None:
            pillars = await pillar_normalizer.normalize(profile, self.gateway, request_id=request_id)
        else:
            logger.info("Using threaded pillars request_id=%s section=%s", request_id, section.value)
            if not profile.hour_known and pillars.hour is not None:
                pillars = pillars.model_copy(update={"hour": None})

        text = await section_analyst.analyze(
            pillars,
            section,
            profile.name,
            profile.gender,
            self.gateway,
            request_id=request_id,
            clock=self.clock,
        )
        return SajuResponse(saju_result=text, pillars=pillars)
