"""Error taxonomy shared by the pillar and section stages."""

from __future__ import annotations


class SajuError(Exception):
    """Base class for failures surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SajuError):
    """A required request field is missing or malformed. No external call was made."""

    status_code = 400


class PillarParseError(SajuError):
    """Stage-1 output could not be read as a four-pillar payload."""


class InferenceError(SajuError):
    """Any failure coming back from the inference service, at either stage."""
