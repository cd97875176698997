"""Domain types shared by the API, the stages and the Streamlit session."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr, StringConstraints, field_validator, model_validator


class Gender(str, Enum):
    male = "male"
    female = "female"


class CalendarType(str, Enum):
    solar = "solar"
    lunar = "lunar"


class SectionKey(str, Enum):
    basic = "basic"
    wealth = "wealth"
    health = "health"
    future = "future"


SECTION_TITLES: dict[SectionKey, str] = {
    SectionKey.basic: "기본 성향",
    SectionKey.wealth: "재물운",
    SectionKey.health: "건강운",
    SectionKey.future: "올해의 운세",
}

UNKNOWN_HOUR_TOKENS = {"", "unknown", "모름"}


class BirthProfile(BaseModel):
    """Birth data as submitted from the form. Frozen once built."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str = Field(..., min_length=1, description="Display name")
    gender: Gender = Field(Gender.male, description="male | female")
    calendar_type: CalendarType = Field(CalendarType.solar, alias="calendarType", description="solar | lunar")
    year: int = Field(..., ge=1, description="Birth year")
    month: int = Field(..., ge=1, le=12, description="Birth month")
    day: int = Field(..., ge=1, le=31, description="Birth day")
    hour: Optional[int] = Field(None, ge=0, le=23, description="Birth hour, None when unknown")
    is_leap_month: bool = Field(False, alias="isLeapMonth", description="Lunar leap month flag")

    @model_validator(mode="before")
    @classmethod
    def _leap_month_only_for_lunar(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        calendar = data.get("calendarType", data.get("calendar_type", CalendarType.solar))
        if getattr(calendar, "value", calendar) != CalendarType.lunar.value:
            data = {k: v for k, v in data.items() if k != "is_leap_month"}
            data["isLeapMonth"] = False
        return data

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("hour", mode="before")
    @classmethod
    def _normalize_unknown_hour(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, str) and value.strip().lower() in UNKNOWN_HOUR_TOKENS:
            return None
        return value

    @property
    def hour_known(self) -> bool:
        return self.hour is not None

    def to_payload(self) -> dict[str, Any]:
        """Wire representation used by the HTTP surface (camelCase keys)."""
        payload = self.model_dump(by_alias=True, mode="json")
        if payload["hour"] is None:
            payload["hour"] = "unknown"
        return payload


PillarCode = Annotated[StrictStr, StringConstraints(strip_whitespace=True, min_length=1)]


class FourPillars(BaseModel):
    """Year/month/day/hour stem-branch codes. `hour` is None when the birth hour is unknown."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    year: PillarCode
    month: PillarCode
    day: PillarCode
    hour: Optional[PillarCode]

    @field_validator("hour", mode="before")
    @classmethod
    def _blank_hour_is_null(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def hour_known(self) -> bool:
        return self.hour is not None


class SajuResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    saju_result: str = Field(..., alias="sajuResult")
    pillars: FourPillars
