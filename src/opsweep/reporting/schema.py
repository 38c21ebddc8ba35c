"""JSON schema definition for reporter output."""
from __future__ import annotations

SCHEMA_VERSION = "1.0.0"

JSON_SCHEMA_V1 = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "opsweep report",
    "type": "object",
    "required": ["schema_version", "generated_at", "summary", "cases"],
    "properties": {
        "schema_version": {"type": "string"},
        "generated_at": {"type": "string", "format": "date-time"},
        "summary": {
            "type": "object",
            "required": ["total", "passed", "failed", "skipped", "errors", "backends", "seed", "duration_s"],
            "properties": {
                "total": {"type": "integer"},
                "passed": {"type": "integer"},
                "failed": {"type": "integer"},
                "skipped": {"type": "integer"},
                "errors": {"type": "integer"},
                "backends": {"type": "array", "items": {"type": "string"}},
                "seed": {"type": "integer"},
                "duration_s": {"type": "number"},
            },
        },
        "cases": {
            "type": "array",
            "items": {
                "type": "object",
                "required": [
                    "id",
                    "sweep",
                    "test",
                    "status",
                    "duration_ms",
                    "backend",
                    "dims",
                    "reference_mode",
                    "candidate_mode",
                    "tolerance",
                    "seed",
                ],
                "properties": {
                    "id": {"type": "string"},
                    "sweep": {"type": "string"},
                    "test": {"type": "string"},
                    "status": {"enum": ["passed", "failed", "skipped", "error"]},
                    "duration_ms": {"type": "number"},
                    "backend": {"type": "string"},
                    "dims": {"type": "object", "additionalProperties": {"type": "integer"}},
                    "reference_mode": {"type": "string"},
                    "candidate_mode": {"type": "string"},
                    "tolerance": {"type": "number"},
                    "seed": {"type": ["integer", "null"]},
                    "error": {"type": "string"},
                    "comparison": {
                        "type": "object",
                        "required": ["passed", "max_abs_error", "mismatched", "total"],
                        "properties": {
                            "passed": {"type": "boolean"},
                            "max_abs_error": {"type": "number"},
                            "mismatched": {"type": "integer"},
                            "total": {"type": "integer"},
                            "max_error_index": {"type": ["array", "null"], "items": {"type": "integer"}},
                        },
                    },
                },
            },
        },
    },
}
