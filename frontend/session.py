"""Client-side session: birth profile, threaded pillars and the per-section cache.

Each section moves idle -> loading -> done | errored and is fetched at most once
per session. `errored` is terminal until the next submit. A failure of the
first (`basic`) fetch fails the whole session instead of a single section.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from enum import Enum
from typing import Any, Optional

from pydantic import ValidationError as SchemaValidationError

from backend.models import SECTION_TITLES, BirthProfile, FourPillars, SectionKey
from frontend.api_client import SERVER_ERROR_MESSAGE, SajuApiError

logger = logging.getLogger("saju_ai.frontend")

Fetcher = Callable[[dict[str, Any]], Awaitable[Mapping[str, Any]]]

INVALID_PROFILE_MESSAGE = "입력 정보가 올바르지 않습니다."


class SectionStatus(str, Enum):
    idle = "idle"
    loading = "loading"
    done = "done"
    errored = "errored"


def placeholder_text(section: SectionKey) -> str:
    return f"오류: {SECTION_TITLES[section]} 정보를 받아오지 못했습니다."


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def is_profile_submittable(form: Mapping[str, Any]) -> bool:
    """Name, year, month and day must be filled in; everything else has a default."""
    return all(_present(form.get(key)) for key in ("name", "year", "month", "day"))


class SajuSession:
    def __init__(self, fetch: Fetcher):
        self.fetch = fetch
        self.profile: Optional[BirthProfile] = None
        self.pillars: Optional[FourPillars] = None
        self.results: dict[SectionKey, str] = {}
        self.status: dict[SectionKey, SectionStatus] = {key: SectionStatus.idle for key in SectionKey}
        self.active_section = SectionKey.basic
        self.failure: Optional[str] = None
        self.submitting = False
        self._generation = 0

    @property
    def has_results(self) -> bool:
        """True when the section area should be shown."""
        return self.profile is not None and self.pillars is not None and self.failure is None

    def can_submit(self, form: Mapping[str, Any]) -> bool:
        return not self.submitting and is_profile_submittable(form)

    def _reset(self, profile: BirthProfile) -> None:
        self.profile = profile
        self.pillars = None
        self.results = {}
        self.status = {key: SectionStatus.idle for key in SectionKey}
        self.active_section = SectionKey.basic
        self.failure = None

    async def submit(self, form: Mapping[str, Any]) -> bool:
        """Start a new session from `form` and fetch the basic section.

        Returns False without any network call when the form is incomplete or
        invalid.
        """
        if not is_profile_submittable(form):
            return False
        try:
            profile = BirthProfile.model_validate(dict(form))
        except SchemaValidationError as e:
            logger.info("Profile rejected before submit errors=%s", len(e.errors()))
            self.failure = INVALID_PROFILE_MESSAGE
            return False

        self._generation += 1
        generation = self._generation
        self._reset(profile)
        self.status[SectionKey.basic] = SectionStatus.loading
        self.submitting = True
        try:
            await self._fetch_section(SectionKey.basic, generation)
        finally:
            if generation == self._generation:
                self.submitting = False
        return True

    async def select(self, section: SectionKey | str) -> bool:
        """Switch the active section; fetch it only if it has never been requested.

        Ignored while a submit is in flight. Returns True when a network call
        was issued.
        """
        section = SectionKey(section)
        if self.submitting:
            return False
        self.active_section = section
        if not self.has_results or self.status[section] is not SectionStatus.idle:
            return False
        self.status[section] = SectionStatus.loading
        await self._fetch_section(section, self._generation)
        return True

    def _build_payload(self, section: SectionKey) -> dict[str, Any]:
        payload = self.profile.to_payload()
        payload["section"] = section.value
        if self.pillars is not None:
            payload["pillars"] = self.pillars.model_dump()
        return payload

    async def _fetch_section(self, section: SectionKey, generation: int) -> None:
        payload = self._build_payload(section)
        try:
            data = await self.fetch(payload)
            text = data["sajuResult"]
            pillars = FourPillars.model_validate(data["pillars"]) if data.get("pillars") else None
            if pillars is None and self.pillars is None:
                raise SajuApiError("서버 오류: pillars missing")
        except (SajuApiError, SchemaValidationError, KeyError, TypeError) as e:
            if generation != self._generation:
                logger.info("Discarding stale failure section=%s", section.value)
                return
            self._apply_failure(section, e)
            return
        except Exception as e:
            logger.exception("Unexpected fetch failure section=%s", section.value)
            if generation != self._generation:
                return
            self._apply_failure(section, e)
            return

        if generation != self._generation:
            logger.info("Discarding stale result section=%s", section.value)
            return
        if self.pillars is None:
            self.pillars = pillars
        self.results[section] = text
        self.status[section] = SectionStatus.done

    def _apply_failure(self, section: SectionKey, error: Exception) -> None:
        message = getattr(error, "message", None) or str(error) or SERVER_ERROR_MESSAGE
        logger.warning("Section fetch failed section=%s error_type=%s error=%s", section.value, type(error).__name__, message)
        self.status[section] = SectionStatus.errored
        if section is SectionKey.basic:
            self.failure = message
            return
        self.results[section] = placeholder_text(section)
