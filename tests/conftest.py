from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./data/test_gov2private.db")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("OPENAI_API_KEY", "")

import json
from collections.abc import Callable
from typing import Any

import pytest

from gov2private.core.errors import ConfigurationError
from gov2private.db.base import Base
from gov2private.db.session import engine
from gov2private.db import models  # noqa: F401
from gov2private.llm.prompts import (
    ASSEMBLE_DRAFT_SYSTEM_PROMPT,
    REWRITE_BULLETS_SYSTEM_PROMPT,
    SHORT_JD_SYSTEM_PROMPT,
    TRANSFORM_LINES_SYSTEM_PROMPT,
)

# Text (schema-less) calls are told apart by their system prompt.
_TEXT_TASKS = (
    (SHORT_JD_SYSTEM_PROMPT[:40], "short_jd"),
    (REWRITE_BULLETS_SYSTEM_PROMPT[:40], "rewrite_bullets"),
    (ASSEMBLE_DRAFT_SYSTEM_PROMPT[:40], "assemble_draft"),
    (TRANSFORM_LINES_SYSTEM_PROMPT[:40], "transform_lines"),
)

# str, dict (sent as JSON), an exception to raise, or a callable taking the messages
Reply = Any


class ScriptedGateway:
    """Stand-in for ``ModelGateway`` that answers by task name.

    Schema calls are keyed by the schema's ``name``; text calls by the
    table above. A list of replies is consumed in order, the last one
    repeating. Unscripted tasks get ``default``.
    """

    def __init__(self, replies: dict[str, Reply | list[Reply]] | None = None, default: Reply = "", available: bool = True):
        self.replies = dict(replies or {})
        self.default = default
        self.available = available
        self.calls: list[str] = []
        self.messages: list[list[dict[str, str]]] = []

    def ensure_available(self) -> None:
        if not self.available:
            raise ConfigurationError("no model provider configured")

    def generate(
        self,
        messages: list[dict[str, str]],
        *,
        schema: dict[str, Any] | None = None,
        max_tokens: int | None = None,
    ) -> str:
        key = schema["name"] if schema else self._text_task(messages)
        self.calls.append(key)
        self.messages.append(messages)

        reply = self.replies.get(key, self.default)
        if isinstance(reply, list):
            reply = reply.pop(0) if len(reply) > 1 else reply[0]
        if callable(reply) and not isinstance(reply, Exception):
            reply = reply(messages)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, (dict, list)):
            return json.dumps(reply)
        return reply

    def count(self, key: str) -> int:
        return self.calls.count(key)

    @staticmethod
    def _text_task(messages: list[dict[str, str]]) -> str:
        system = messages[0]["content"] if messages else ""
        for prefix, name in _TEXT_TASKS:
            if system.startswith(prefix):
                return name
        return "text"


def echo_batch(prefix: str = "New: ") -> Callable[[list[dict[str, str]]], dict[str, Any]]:
    """Reply to a bullet_batch call with one rewritten bullet per input line."""

    def reply(messages: list[dict[str, str]]) -> dict[str, Any]:
        listing = messages[-1]["content"]
        lines = [line for line in listing.splitlines() if line[:1].isdigit() and ". " in line]
        return {"bullets": [prefix + line.split(". ", 1)[1] for line in lines]}

    return reply


NORMALIZED = {
    "name": "Dana Reyes",
    "contact": {"email": "dana@example.com", "phone": None, "location": "Denver, CO", "links": []},
    "summary": "Program analyst with a decade of federal experience.",
    "skills": ["SQL", "Data Analysis", "Budgeting"],
    "certifications": [],
    "education": [{"degree": "M.P.A.", "field": "Public Policy", "institution": "State University", "year": "2012"}],
    "experience": [
        {
            "title": "Senior Program Analyst",
            "org": "Department of Transportation",
            "start": "2018",
            "end": None,
            "bullets": [
                "Managed FY budget execution for a $40M grant portfolio",
                "Built SQL dashboards tracking grantee performance",
                "Coordinated with OMB on quarterly reporting",
            ],
            "skills": ["budgeting", "sql"],
        },
        {
            "title": "Policy Analyst",
            "org": "Regional Housing Authority",
            "start": "2013",
            "end": "2018",
            "bullets": [
                "Drafted policy memos for agency leadership",
                "Analyzed housing voucher utilization data",
                "Led a cross-agency working group of 12 members",
            ],
            "skills": ["policy analysis"],
        },
    ],
}

CANDIDATES = {
    "candidates": [
        {"id": "ops-analyst", "title": "Operations Analyst", "description": "Analyze operations.", "score": 82},
        {"id": "bi-analyst", "title": "BI Analyst", "description": "Build dashboards.", "score": 74, "confidence": 0.7},
    ]
}

REQUIREMENTS = {"must_have": ["SQL", "Stakeholder management"], "nice_to_have": ["Tableau"]}

MAPPING = {
    "mapping": [
        {
            "requirement": "SQL",
            "matched_skills": ["sql"],
            "evidence": ["Built SQL dashboards tracking grantee performance"],
        },
        {
            "requirement": "Stakeholder management",
            "matched_skills": ["stakeholder management", "reporting"],
            "evidence": ["Coordinated with OMB on quarterly reporting", "Led a cross-agency working group"],
        },
    ]
}


def pipeline_replies(**overrides: Reply | list[Reply]) -> dict[str, Reply | list[Reply]]:
    replies: dict[str, Reply | list[Reply]] = {
        "normalized_resume": NORMALIZED,
        "role_candidates": CANDIDATES,
        "short_jd": "Own operational reporting and analysis for a growing team.",
        "requirements": REQUIREMENTS,
        "transferable_mapping": MAPPING,
        "rewrite_bullets": "- Built SQL dashboards\n- Managed a $40M portfolio\n- Led a 12-person working group",
        "experience_rewrite": {
            "experience": [
                {"bullets": ["Managed budget for a $40M portfolio", "Built SQL dashboards", "Ran quarterly reporting"]},
                {"bullets": ["Wrote policy memos", "Analyzed voucher data", "Led a 12-member working group"]},
            ]
        },
        "assemble_draft": "SUMMARY\nOperations analyst.\n\nEXPERIENCE\n- Built SQL dashboards",
        "bullet_batch": echo_batch(),
        # the intent model declines so the rule tables decide
        "bullet_edit_intent": {"style": "short", "targets": [], "confidence": 0.1},
    }
    replies.update(overrides)
    return replies


@pytest.fixture(autouse=True)
def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def gateway_factory() -> Callable[..., ScriptedGateway]:
    return ScriptedGateway


@pytest.fixture
def pipeline_gateway() -> ScriptedGateway:
    return ScriptedGateway(pipeline_replies())


@pytest.fixture
def make_pipeline_gateway() -> Callable[..., ScriptedGateway]:
    def make(**overrides: Reply | list[Reply]) -> ScriptedGateway:
        return ScriptedGateway(pipeline_replies(**overrides))

    return make


@pytest.fixture
def normalized_payload() -> dict[str, Any]:
    return json.loads(json.dumps(NORMALIZED))
