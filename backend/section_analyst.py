"""Stage 2: one topic-scoped narrative per section."""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Optional

from backend.errors import InferenceError
from backend.llm_service import InferenceGateway
from backend.models import SECTION_TITLES, FourPillars, Gender, SectionKey
from backend.prompts import (
    GENDER_LABELS,
    PILLARS_WITH_HOUR_TEMPLATE,
    PILLARS_WITHOUT_HOUR_TEMPLATE,
    SECTION_PROMPT_TEMPLATE,
    SECTION_TOPIC_PROMPTS,
)

logger = logging.getLogger("saju_ai")


def describe_pillars(pillars: FourPillars) -> str:
    if pillars.hour_known:
        return PILLARS_WITH_HOUR_TEMPLATE.format(
            year=pillars.year, month=pillars.month, day=pillars.day, hour=pillars.hour
        )
    return PILLARS_WITHOUT_HOUR_TEMPLATE.format(year=pillars.year, month=pillars.month, day=pillars.day)


def build_section_prompt(
    pillars: FourPillars,
    section: SectionKey,
    name: str,
    gender: Gender,
    *,
    today: Optional[date] = None,
) -> str:
    current_year = (today or date.today()).year
    topic = SECTION_TOPIC_PROMPTS[section.value].format(current_year=current_year)
    return SECTION_PROMPT_TEMPLATE.format(
        name=name,
        gender_label=GENDER_LABELS[gender.value],
        pillar_line=describe_pillars(pillars),
        topic=topic,
    )


async def analyze(
    pillars: FourPillars,
    section: SectionKey,
    name: str,
    gender: Gender,
    gateway: InferenceGateway,
    *,
    request_id: str = "-",
    clock: Callable[[], date] = date.today,
) -> str:
    prompt = build_section_prompt(pillars, section, name, gender, today=clock())
    text = await gateway.generate(prompt, request_id=request_id, stage=f"section:{section.value}")
    if not isinstance(text, str) or not text.strip():
        raise InferenceError(f"{SECTION_TITLES[section]} 분석 결과가 비어 있습니다.")
    logger.info(
        "Section analysed request_id=%s section=%s response_length=%s",
        request_id,
        section.value,
        len(text),
    )
    return text
