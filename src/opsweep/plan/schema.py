"""JSON schema for YAML sweep plans."""
from __future__ import annotations

_INT_LIST = {"type": "array", "items": {"type": "integer", "minimum": 1}, "minItems": 1}

PLAN_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "opsweep plan",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "seed": {"type": "integer", "minimum": 0},
        "workers": {"type": "integer", "minimum": 1},
        "fail_fast": {"type": "boolean"},
        "backends": {"type": "array", "items": {"type": "string"}, "minItems": 1},
        "filters": {"type": "array", "items": {"type": "string"}},
        "report": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "format": {"enum": ["terminal", "json"]},
                "path": {"type": "string"},
                "color": {"type": "boolean"},
            },
        },
        "sweeps": {
            "type": "object",
            "additionalProperties": {
                "type": ["object", "null"],
                "additionalProperties": False,
                "properties": {
                    "values": {"type": "object", "additionalProperties": _INT_LIST},
                    "tests": {"type": "array", "items": {"type": "string"}, "minItems": 1},
                },
            },
        },
    },
}
