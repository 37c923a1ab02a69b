from __future__ import annotations

from gov2private.core.discovery import (
    RoleDiscovery,
    fallback_roles,
    parse_role_candidates,
    shape_normalized,
)
from gov2private.llm.executor import AITaskExecutor
from gov2private.types import NormalizedData


def _discovery(gateway) -> RoleDiscovery:
    return RoleDiscovery(AITaskExecutor(gateway))


def test_blank_input_normalizes_without_a_model_call(gateway_factory) -> None:
    gateway = gateway_factory()
    normalized = _discovery(gateway).normalize("", "")

    assert normalized.skills == []
    assert normalized.experience == []
    assert gateway.calls == []


def test_resume_without_skills_section_yields_empty_skills(gateway_factory) -> None:
    gateway = gateway_factory(
        {"normalized_resume": {"name": "Sam", "contact": {}, "education": [], "experience": [], "skills": None}}
    )
    normalized = _discovery(gateway).normalize("Sam\nProgram Manager, 2015-2020", "")

    assert normalized.name == "Sam"
    assert normalized.skills == []


def test_normalize_falls_back_to_empty_structure(gateway_factory) -> None:
    normalized = _discovery(gateway_factory(default=RuntimeError("down"))).normalize("some resume", None)
    assert normalized == NormalizedData()


def test_propose_roles_uses_fixed_fallback_on_model_failure(gateway_factory) -> None:
    gateway = gateway_factory(default=RuntimeError("model unavailable"))
    roles = _discovery(gateway).propose_roles("SQL, data analysis", NormalizedData(skills=["sql"]))

    assert [role.id for role in roles] == ["fallback-1", "fallback-2", "fallback-3"]
    assert all(role.title for role in roles)


def test_propose_roles_uses_fallback_when_model_returns_nothing(gateway_factory) -> None:
    gateway = gateway_factory({"role_candidates": {"candidates": []}})
    roles = _discovery(gateway).propose_roles("", NormalizedData())

    assert len(roles) == 3


def test_parse_role_candidates_clamps_and_dedupes() -> None:
    roles = parse_role_candidates(
        {
            "candidates": [
                {"id": "a", "title": "Data Analyst", "score": 140},
                {"id": "a", "title": "Ops Analyst", "score": 60, "confidence": 3},
                {"title": "  "},
                {"title": "Program Manager", "rationale": "Runs programs"},
            ]
        }
    )

    assert [r.id for r in roles] == ["a", "a-2", "role-4"]
    assert roles[0].score == 100
    assert roles[0].confidence == 1.0
    assert roles[1].confidence == 1.0
    assert roles[2].description == "Runs programs"
    assert roles[2].score is None


def test_shape_normalized_lowercases_and_caps() -> None:
    shaped = shape_normalized(
        {
            "skills": ["SQL", "sql ", "Python"],
            "experience": [{"title": "", "org": "DOT", "bullets": ["a", "b", "c", "d", "e"]}],
        }
    )

    assert shaped.skills == ["sql", "python"]
    assert shaped.experience[0].title == "Role"
    assert len(shaped.experience[0].bullets) == 4


def test_attach_job_descriptions(gateway_factory) -> None:
    gateway = gateway_factory({"short_jd": "Analyze data for product teams."})
    roles = _discovery(gateway).attach_job_descriptions(fallback_roles()[:2])

    assert all(role.ai_job_description == "Analyze data for product teams." for role in roles)
    assert gateway.count("short_jd") == 2


def test_attach_job_descriptions_tolerates_failures(gateway_factory) -> None:
    roles = _discovery(gateway_factory(default="")).attach_job_descriptions(fallback_roles())

    assert all(role.ai_job_description is None for role in roles)
