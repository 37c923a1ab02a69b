from __future__ import annotations

from typing import Any

_DRAFT = "https://json-schema.org/draft/2020-12/schema"

_NULLABLE_STRING = ["string", "null"]


def _string_list(max_items: int, max_length: int) -> dict[str, Any]:
    return {"type": "array", "maxItems": max_items, "items": {"type": "string", "maxLength": max_length}}


_CONTACT = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "email": {"type": _NULLABLE_STRING, "maxLength": 120},
        "phone": {"type": _NULLABLE_STRING, "maxLength": 64},
        "location": {"type": _NULLABLE_STRING, "maxLength": 120},
        "links": _string_list(10, 200),
    },
    "required": ["email", "phone", "location", "links"],
}

_EDUCATION = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "degree": {"type": "string", "maxLength": 120},
        "field": {"type": _NULLABLE_STRING, "maxLength": 160},
        "institution": {"type": "string", "maxLength": 200},
        "year": {"type": _NULLABLE_STRING, "maxLength": 10},
    },
    "required": ["degree", "institution"],
}

_EXPERIENCE = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "title": {"type": "string", "maxLength": 120},
        "org": {"type": "string", "maxLength": 160},
        "location": {"type": _NULLABLE_STRING, "maxLength": 120},
        "start": {"type": _NULLABLE_STRING, "maxLength": 40},
        "end": {"type": _NULLABLE_STRING, "maxLength": 40},
        "bullets": _string_list(4, 220),
        "skills": _string_list(20, 40),
    },
    "required": ["title", "org", "bullets", "skills"],
}

NORMALIZED_RESUME_SCHEMA: dict[str, Any] = {
    "name": "normalized_resume",
    "schema": {
        "$schema": _DRAFT,
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "name": {"type": _NULLABLE_STRING, "maxLength": 120},
            "contact": _CONTACT,
            "summary": {"type": _NULLABLE_STRING, "maxLength": 500},
            "education": {"type": "array", "maxItems": 10, "items": _EDUCATION},
            "skills": _string_list(100, 40),
            "certifications": _string_list(20, 120),
            "experience": {"type": "array", "maxItems": 8, "items": _EXPERIENCE},
        },
        "required": ["name", "contact", "education", "skills", "experience"],
    },
}

_ROLE = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "id": {"type": "string", "maxLength": 64},
        "title": {"type": "string", "maxLength": 80},
        "company": {"type": _NULLABLE_STRING, "maxLength": 120},
        "level": {"type": _NULLABLE_STRING, "maxLength": 40},
        "description": {"type": "string", "maxLength": 500},
        "requirements": _string_list(20, 100),
        "score": {"type": ["number", "null"], "minimum": 0, "maximum": 100},
        "confidence": {"type": ["number", "null"], "minimum": 0, "maximum": 1},
    },
    "required": ["id", "title", "description"],
}

ROLE_CANDIDATES_SCHEMA: dict[str, Any] = {
    "name": "role_candidates",
    "schema": {
        "$schema": _DRAFT,
        "type": "object",
        "additionalProperties": False,
        "properties": {"candidates": {"type": "array", "maxItems": 10, "items": _ROLE}},
        "required": ["candidates"],
    },
}

REQUIREMENTS_SCHEMA: dict[str, Any] = {
    "name": "requirements",
    "schema": {
        "$schema": _DRAFT,
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "must_have": _string_list(40, 60),
            "nice_to_have": _string_list(40, 60),
        },
        "required": ["must_have", "nice_to_have"],
    },
}

TRANSFERABLE_MAPPING_SCHEMA: dict[str, Any] = {
    "name": "transferable_mapping",
    "schema": {
        "$schema": _DRAFT,
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "mapping": {
                "type": "array",
                "maxItems": 60,
                "items": {
                    "type": "object",
                    "additionalProperties": False,
                    "properties": {
                        "requirement": {"type": "string", "maxLength": 80},
                        "matched_skills": _string_list(10, 40),
                        "evidence": _string_list(6, 220),
                    },
                    "required": ["requirement", "matched_skills", "evidence"],
                },
            }
        },
        "required": ["mapping"],
    },
}

BULLET_BATCH_SCHEMA: dict[str, Any] = {
    "name": "bullet_batch",
    "schema": {
        "$schema": _DRAFT,
        "type": "object",
        "additionalProperties": False,
        "properties": {"bullets": _string_list(20, 300)},
        "required": ["bullets"],
    },
}

EXPERIENCE_REWRITE_SCHEMA: dict[str, Any] = {
    "name": "experience_rewrite",
    "schema": {
        "$schema": _DRAFT,
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "experience": {
                "type": "array",
                "maxItems": 8,
                "items": {
                    "type": "object",
                    "additionalProperties": False,
                    "properties": {"bullets": _string_list(8, 300)},
                    "required": ["bullets"],
                },
            }
        },
        "required": ["experience"],
    },
}

BULLET_EDIT_INTENT_SCHEMA: dict[str, Any] = {
    "name": "bullet_edit_intent",
    "schema": {
        "$schema": _DRAFT,
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "style": {"type": ["string", "null"], "enum": ["short", "quant", "lead", "ats", "dejargon", None]},
            "targets": {
                "type": "array",
                "maxItems": 8,
                "items": {
                    "type": "object",
                    "additionalProperties": False,
                    "properties": {
                        "jobIndex": {"type": "integer", "minimum": 0},
                        "bulletIndices": {"type": "array", "maxItems": 20, "items": {"type": "integer"}},
                    },
                    "required": ["jobIndex", "bulletIndices"],
                },
            },
            "confidence": {"type": "number", "minimum": 0, "maximum": 1},
        },
        "required": ["style", "targets", "confidence"],
    },
}
