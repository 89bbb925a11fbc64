"""JSON schema definition for reporter output."""
from __future__ import annotations

SCHEMA_VERSION = "1.0.0"

_ENTRY = {
    "type": "object",
    "required": ["question_id", "question", "label"],
    "properties": {
        "question_id": {"type": "integer"},
        "question": {"type": "string"},
        "context": {"type": ["string", "null"]},
        "seed": {"type": ["integer", "null"]},
        "message": {"type": "string"},
        "label": {"type": "string"},
    },
}

JSON_SCHEMA_V1 = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "qbulktest report",
    "type": "object",
    "required": ["schema_version", "generated_at", "summary", "variants", "report"],
    "properties": {
        "schema_version": {"type": "string"},
        "generated_at": {"type": "string", "format": "date-time"},
        "summary": {
            "type": "object",
            "required": ["all_passed", "variants", "passed", "failed", "duration_s"],
            "properties": {
                "all_passed": {"type": "boolean"},
                "variants": {"type": "integer"},
                "passed": {"type": "integer"},
                "failed": {"type": "integer"},
                "duration_s": {"type": "number"},
            },
        },
        "variants": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["question_id", "question", "seed", "passed", "passes", "fails", "errors", "message"],
                "properties": {
                    "question_id": {"type": "integer"},
                    "question": {"type": "string"},
                    "context": {"type": ["string", "null"]},
                    "seed": {"type": ["integer", "null"]},
                    "passed": {"type": "boolean"},
                    "passes": {"type": "integer", "minimum": 0},
                    "fails": {"type": "integer", "minimum": 0},
                    "errors": {"type": "array", "items": {"type": "string"}},
                    "message": {"type": "string"},
                    "duration_ms": {"type": "number"},
                    "tests": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "required": ["testcase", "passed", "prts"],
                            "properties": {
                                "testcase": {"type": ["integer", "null"]},
                                "passed": {"type": "boolean"},
                                "prts": {
                                    "type": "array",
                                    "items": {
                                        "type": "object",
                                        "required": ["prt", "passed"],
                                        "properties": {
                                            "prt": {"type": "string"},
                                            "passed": {"type": "boolean"},
                                            "reason": {"type": ["string", "null"]},
                                        },
                                    },
                                },
                            },
                        },
                    },
                },
            },
        },
        "report": {
            "type": "object",
            "required": ["failingtests", "notests", "nogeneralfeedback", "failingupgrades"],
            "additionalProperties": {"type": "array", "items": _ENTRY},
        },
    },
}
