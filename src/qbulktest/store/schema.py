"""JSON schema for YAML question bank files."""
from __future__ import annotations

from jsonschema import Draft7Validator

_NUMBER_OR_NULL = {"type": ["number", "null"]}

BANK_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "qbulktest question bank",
    "type": "object",
    "required": ["contexts"],
    "properties": {
        "contexts": {"type": "array", "items": {"$ref": "#/definitions/context"}},
    },
    "definitions": {
        "context": {
            "type": "object",
            "required": ["id", "name"],
            "properties": {
                "id": {"type": "integer"},
                "name": {"type": "string", "minLength": 1},
                "path": {"type": "string"},
                "categories": {"type": "array", "items": {"$ref": "#/definitions/category"}},
            },
        },
        "category": {
            "type": "object",
            "required": ["id", "name"],
            "properties": {
                "id": {"type": "integer"},
                "name": {"type": "string", "minLength": 1},
                "path": {"type": "string"},
                "questions": {"type": "array", "items": {"$ref": "#/definitions/question"}},
            },
        },
        "question": {
            "type": "object",
            "required": ["id", "name"],
            "properties": {
                "id": {"type": "integer"},
                "name": {"type": "string", "minLength": 1},
                "qtype": {"type": "string"},
                "seed": {"type": ["integer", "null"]},
                "deployedseeds": {"type": "array", "items": {"type": "integer"}},
                "stackversion": {"type": ["string", "integer", "null"]},
                "questiontext": {"type": "string"},
                "generalfeedback": {"type": "string"},
                "questionnote": {"type": "string"},
                "variables": {
                    "type": "object",
                    "additionalProperties": {"type": ["string", "number"]},
                },
                "defaultmark": {"type": "number"},
                "penalty": {"type": "number"},
                "inputs": {
                    "type": "object",
                    "additionalProperties": {"type": ["object", "string", "number", "null"]},
                },
                "prts": {
                    "type": "object",
                    "additionalProperties": {"$ref": "#/definitions/prt"},
                },
                "tests": {"type": "array", "items": {"$ref": "#/definitions/test"}},
            },
        },
        "prt": {
            "type": "object",
            "required": ["nodes"],
            "properties": {
                "inputs": {"type": "array", "items": {"type": "string"}},
                "feedback": {"type": "string"},
                "nodes": {"type": "array", "minItems": 1, "items": {"$ref": "#/definitions/node"}},
            },
        },
        "node": {
            "type": "object",
            "required": ["sans", "tans"],
            "properties": {
                "sans": {"type": ["string", "number"]},
                "tans": {"type": ["string", "number"]},
                "test": {
                    "type": "string",
                    "enum": ["AlgEquiv", "NumAbsolute", "NumRelative", "String", "GT", "GTE"],
                },
                "options": _NUMBER_OR_NULL,
                "true_branch": {"$ref": "#/definitions/branch"},
                "false_branch": {"$ref": "#/definitions/branch"},
            },
        },
        "branch": {
            "type": "object",
            "properties": {
                "score": _NUMBER_OR_NULL,
                "penalty": _NUMBER_OR_NULL,
                "note": {"type": "string"},
                "mode": {"type": "string", "enum": ["=", "+", "-"]},
                "next": {"type": ["integer", "null"]},
            },
        },
        "test": {
            "type": "object",
            "required": ["testcase", "inputs", "expected"],
            "properties": {
                "testcase": {"type": "integer", "minimum": 1},
                "inputs": {
                    "type": "object",
                    "additionalProperties": {"type": ["string", "number", "null"]},
                },
                "expected": {
                    "type": "object",
                    "additionalProperties": {
                        "type": "object",
                        "required": ["answernote"],
                        "properties": {
                            "score": _NUMBER_OR_NULL,
                            "penalty": _NUMBER_OR_NULL,
                            "answernote": {"type": "string"},
                        },
                    },
                },
            },
        },
    },
}

bank_validator = Draft7Validator(BANK_SCHEMA)
