"""
Contract tests for resolution result serialization.

Every result the resolver can produce must match resolution_result.schema.json,
the shape written by `prebrief resolve-batch`.
"""

import json
from pathlib import Path

import pytest
import jsonschema

from core.models import EntityResolutionResult, ResolutionMethod
from resolution import AttendeeResolver


# Load schemas
SCHEMAS_DIR = Path(__file__).parent.parent.parent / "schemas"
RESULT_SCHEMA = json.loads((SCHEMAS_DIR / "resolution_result.schema.json").read_text())


def _assert_valid(payload: dict) -> None:
    try:
        jsonschema.validate(payload, RESULT_SCHEMA)
    except jsonschema.ValidationError as e:
        pytest.fail(f"Result schema validation failed: {e.message}")


@pytest.mark.contract
class TestResultSchema:
    """Result serialization must conform to resolution_result.schema.json."""

    def test_schema_is_well_formed(self):
        jsonschema.Draft7Validator.check_schema(RESULT_SCHEMA)

    def test_unresolved_result(self):
        result = EntityResolutionResult(confidence=0.0, method=ResolutionMethod.UNRESOLVED)
        _assert_valid(result.to_dict())

    @pytest.mark.parametrize(
        ("email", "name", "method"),
        [
            ("sarah@insightpartners.com", None, "domain_match"),
            ("kim.lee@gmail.com", "Kim Lee", "unresolved"),
            ("dana@tribe.vc", "Dana Wu", "internal_inference"),
            ("athompson@scale.com", "Alex Thompson", "alias_match"),
            ("alex@scalevp.com", None, "exact_email"),
        ],
    )
    def test_resolver_results(self, seeded_memory_store, email, name, method):
        store, _ = seeded_memory_store
        resolver = AttendeeResolver(store, run_id="run-contract")

        payload = resolver.resolve_attendee(email, name).to_dict()

        assert payload["method"] == method
        _assert_valid(payload)

    def test_payload_is_json_serializable(self, resolver):
        payload = resolver.resolve_attendee("sarah@insightpartners.com").to_dict()
        assert json.loads(json.dumps(payload)) == payload

    def test_unknown_method_is_rejected(self):
        payload = EntityResolutionResult(confidence=0.0, method=ResolutionMethod.UNRESOLVED).to_dict()
        payload["method"] = "guess"
        with pytest.raises(jsonschema.ValidationError):
            jsonschema.validate(payload, RESULT_SCHEMA)

    def test_confidence_out_of_range_is_rejected(self):
        payload = EntityResolutionResult(confidence=0.0, method=ResolutionMethod.UNRESOLVED).to_dict()
        payload["confidence"] = 1.5
        with pytest.raises(jsonschema.ValidationError):
            jsonschema.validate(payload, RESULT_SCHEMA)

    def test_extra_fields_are_rejected(self):
        payload = EntityResolutionResult(confidence=0.0, method=ResolutionMethod.UNRESOLVED).to_dict()
        payload["debug"] = True
        with pytest.raises(jsonschema.ValidationError):
            jsonschema.validate(payload, RESULT_SCHEMA)
