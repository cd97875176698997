"""Tests for request validation and stage sequencing in the orchestrator."""

from __future__ import annotations

import asyncio
import json
import unittest
from datetime import date

from backend.errors import InferenceError, PillarParseError, ValidationError
from backend.orchestrator import SajuOrchestrator

PILLAR_REPLY = json.dumps({"year": "庚午", "month": "辛巳", "day": "甲子", "hour": None})


class ScriptedGateway:
    def __init__(self, pillar_reply=PILLAR_REPLY, failing_sections=()):
        self.pillar_reply = pillar_reply
        self.failing_sections = set(failing_sections)
        self.calls: list[tuple[str, str]] = []

    async def generate(self, prompt: str, *, request_id: str = "-", stage: str = "-") -> str:
        self.calls.append((stage, prompt))
        if stage == "pillars":
            if isinstance(self.pillar_reply, Exception):
                raise self.pillar_reply
            return self.pillar_reply
        section = stage.split(":", 1)[1]
        if section in self.failing_sections:
            raise InferenceError(f"upstream failure for {section}")
        return f"## {section}\n**핵심** 해석입니다."

    @property
    def stages(self) -> list[str]:
        return [stage for stage, _ in self.calls]


def _payload(**overrides) -> dict:
    data = {
        "name": "Kim",
        "gender": "male",
        "calendarType": "solar",
        "year": 1990,
        "month": 5,
        "day": 12,
        "hour": "unknown",
        "isLeapMonth": False,
        "section": "basic",
    }
    data.update(overrides)
    return data


def _run(orchestrator: SajuOrchestrator, payload):
    return asyncio.run(orchestrator.handle(payload, request_id="test"))


class TestValidation(unittest.TestCase):
    def test_missing_required_fields_never_reach_gateway(self) -> None:
        for field in ("name", "gender", "calendarType", "year", "month", "day", "section"):
            for empty in (None, "", "   "):
                with self.subTest(field=field, empty=empty):
                    gateway = ScriptedGateway()
                    with self.assertRaises(ValidationError) as ctx:
                        _run(SajuOrchestrator(gateway), _payload(**{field: empty}))
                    self.assertIn(field, ctx.exception.message)
                    self.assertEqual(gateway.calls, [])

    def test_absent_key_is_missing(self) -> None:
        payload = _payload()
        del payload["day"]
        gateway = ScriptedGateway()
        with self.assertRaises(ValidationError):
            _run(SajuOrchestrator(gateway), payload)
        self.assertEqual(gateway.calls, [])

    def test_hour_is_optional(self) -> None:
        payload = _payload()
        del payload["hour"]
        result = _run(SajuOrchestrator(ScriptedGateway()), payload)
        self.assertTrue(result.saju_result)

    def test_invalid_values_are_validation_errors(self) -> None:
        cases = {
            "year": "nineteen",
            "month": 13,
            "gender": "other",
            "section": "love",
            "calendarType": "julian",
            "hour": 24,
        }
        for field, value in cases.items():
            with self.subTest(field=field):
                gateway = ScriptedGateway()
                with self.assertRaises(ValidationError):
                    _run(SajuOrchestrator(gateway), _payload(**{field: value}))
                self.assertEqual(gateway.calls, [])

    def test_non_object_payload(self) -> None:
        for payload in (None, [], "basic"):
            with self.subTest(payload=payload):
                with self.assertRaises(ValidationError):
                    _run(SajuOrchestrator(ScriptedGateway()), payload)

    def test_string_numbers_are_accepted(self) -> None:
        result = _run(SajuOrchestrator(ScriptedGateway()), _payload(year="1990", month="5", day="12", hour="7"))
        self.assertEqual(result.pillars.day, "甲子")


class TestSequencing(unittest.TestCase):
    def test_pillars_then_one_section(self) -> None:
        gateway = ScriptedGateway()
        result = _run(SajuOrchestrator(gateway), _payload(section="wealth"))
        self.assertEqual(gateway.stages, ["pillars", "section:wealth"])
        self.assertIn("wealth", result.saju_result)
        self.assertIn("甲子", gateway.calls[1][1])
        self.assertEqual(result.model_dump(by_alias=True)["pillars"]["day"], "甲子")

    def test_pillars_recomputed_per_request(self) -> None:
        gateway = ScriptedGateway()
        orchestrator = SajuOrchestrator(gateway)
        _run(orchestrator, _payload(section="basic"))
        _run(orchestrator, _payload(section="health"))
        self.assertEqual(gateway.stages.count("pillars"), 2)

    def test_threaded_pillars_skip_stage_one(self) -> None:
        gateway = ScriptedGateway()
        threaded = {"year": "壬申", "month": "癸卯", "day": "乙丑", "hour": None}
        result = _run(SajuOrchestrator(gateway), _payload(section="future", pillars=threaded))
        self.assertEqual(gateway.stages, ["section:future"])
        self.assertIn("乙丑", gateway.calls[0][1])
        self.assertEqual(result.pillars.day, "乙丑")

    def test_threaded_hour_dropped_for_unknown_birth_hour(self) -> None:
        threaded = {"year": "壬申", "month": "癸卯", "day": "乙丑", "hour": "丙子"}
        result = _run(SajuOrchestrator(ScriptedGateway()), _payload(pillars=threaded))
        self.assertIsNone(result.pillars.hour)

    def test_malformed_threaded_pillars_rejected_before_any_call(self) -> None:
        gateway = ScriptedGateway()
        for bad in ({"year": "壬申", "month": "癸卯", "hour": None}, "壬申癸卯", {"year": 1, "month": "癸卯", "day": "乙丑", "hour": None}):
            with self.subTest(bad=bad):
                with self.assertRaises(ValidationError):
                    _run(SajuOrchestrator(gateway), _payload(pillars=bad))
        self.assertEqual(gateway.calls, [])

    def test_future_section_uses_orchestrator_clock(self) -> None:
        gateway = ScriptedGateway()
        _run(SajuOrchestrator(gateway, clock=lambda: date(2027, 6, 1)), _payload(section="future"))
        self.assertIn("2027년 운세", gateway.calls[1][1])


class TestFailures(unittest.TestCase):
    def test_pillar_parse_failure_is_fatal(self) -> None:
        gateway = ScriptedGateway(pillar_reply=json.dumps({"year": "庚午", "month": "辛巳", "hour": None}))
        with self.assertRaises(PillarParseError):
            _run(SajuOrchestrator(gateway), _payload())
        self.assertEqual(gateway.stages, ["pillars"])

    def test_pillar_inference_failure_is_fatal(self) -> None:
        gateway = ScriptedGateway(pillar_reply=InferenceError("rate limited"))
        with self.assertRaises(InferenceError):
            _run(SajuOrchestrator(gateway), _payload())
        self.assertEqual(gateway.stages, ["pillars"])

    def test_section_failure_surfaces_as_inference_error(self) -> None:
        gateway = ScriptedGateway(failing_sections={"wealth"})
        with self.assertRaises(InferenceError) as ctx:
            _run(SajuOrchestrator(gateway), _payload(section="wealth"))
        self.assertIn("wealth", ctx.exception.message)


class TestComputePillars(unittest.TestCase):
    def test_stage_one_alone(self) -> None:
        gateway = ScriptedGateway()
        pillars = asyncio.run(SajuOrchestrator(gateway).compute_pillars(_payload(section=None)))
        self.assertEqual(pillars.month, "辛巳")
        self.assertEqual(gateway.stages, ["pillars"])

    def test_stage_one_validates_profile(self) -> None:
        gateway = ScriptedGateway()
        with self.assertRaises(ValidationError):
            asyncio.run(SajuOrchestrator(gateway).compute_pillars(_payload(name="")))
        self.assertEqual(gateway.calls, [])


if __name__ == "__main__":
    unittest.main()
