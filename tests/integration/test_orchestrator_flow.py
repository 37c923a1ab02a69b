from __future__ import annotations

import pytest

from gov2private.config import Settings
from gov2private.core.errors import (
    ConfigurationError,
    InvalidReferenceError,
    InvalidTransitionError,
    RunNotFoundError,
)
from gov2private.core.orchestrator import TAILORING_PHASES, RunOrchestrator
from gov2private.db.session import SessionLocal

RESUME = "Dana Reyes\nSenior Program Analyst, Department of Transportation, 2018-present"


def _discovered(db, gateway, **kwargs) -> tuple[RunOrchestrator, str]:
    orchestrator = RunOrchestrator(db, user_id="dana", gateway=gateway, **kwargs)
    run = orchestrator.create_and_discover(background="Federal analyst", resume_text=RESUME)
    return orchestrator, run.id


def test_discovery_persists_normalize_and_candidates(pipeline_gateway) -> None:
    with SessionLocal() as db:
        orchestrator, run_id = _discovered(db, pipeline_gateway)
        run = orchestrator.get_run(run_id)

        assert run.status == "role_selection"
        assert run.background == "Federal analyst"
        assert run.phases["normalize"]["name"] == "Dana Reyes"
        candidates = run.phases["roleDiscovery"]["candidates"]
        assert [c["id"] for c in candidates] == ["ops-analyst", "bi-analyst"]
        assert candidates[0]["ai_job_description"].startswith("Own operational reporting")
        assert candidates[0]["confidence"] == pytest.approx(0.82)


def test_missing_provider_fails_before_any_step(gateway_factory) -> None:
    gateway = gateway_factory(available=False)
    with SessionLocal() as db:
        orchestrator = RunOrchestrator(db, user_id="dana", gateway=gateway)
        with pytest.raises(ConfigurationError):
            orchestrator.create_and_discover(background="x", resume_text="y", run_id="r1")

        assert gateway.calls == []
        assert orchestrator.store.find_run("r1") is None


def test_select_role_runs_full_tailoring(pipeline_gateway) -> None:
    with SessionLocal() as db:
        orchestrator, run_id = _discovered(db, pipeline_gateway)
        run = orchestrator.select_role(run_id, role_id="ops-analyst")

        assert run.status == "done"
        assert run.target_role == "Operations Analyst"
        assert run.selected_role_id == "ops-analyst"
        assert run.job_description_source == "llm_generated"
        assert run.job_description.startswith("Own operational reporting")
        assert run.phases["requirements"]["must_have"] == ["SQL", "Stakeholder management"]
        assert len(run.phases["bullets"]) == 3
        assert [len(job["bullets"]) for job in run.phases["experience"]] == [3, 3]
        assert run.phases["scoring"][0]["skill"] in {"stakeholder management", "reporting"}
        assert run.phases["draft"].startswith("SUMMARY")
        assert run.phases["selectedRole"]["id"] == "ops-analyst"


def test_pasted_job_description_is_kept(pipeline_gateway) -> None:
    with SessionLocal() as db:
        orchestrator, run_id = _discovered(db, pipeline_gateway)
        run = orchestrator.select_role(run_id, role_id="bi-analyst", job_description="  Build Tableau dashboards.  ")

        assert run.job_description == "Build Tableau dashboards."
        assert run.job_description_source == "user_pasted"


def test_unknown_role_is_rejected(pipeline_gateway) -> None:
    with SessionLocal() as db:
        orchestrator, run_id = _discovered(db, pipeline_gateway)
        with pytest.raises(InvalidReferenceError):
            orchestrator.select_role(run_id, role_id="astronaut")

        assert orchestrator.get_run(run_id).status == "role_selection"


def test_custom_role_is_added_to_candidates(pipeline_gateway) -> None:
    with SessionLocal() as db:
        orchestrator, run_id = _discovered(db, pipeline_gateway)
        run = orchestrator.select_role(run_id, custom_role={"id": "mine", "title": "Grants Manager"})

        assert run.target_role == "Grants Manager"
        candidates = run.phases["roleDiscovery"]["candidates"]
        assert candidates[-1]["id"] == "mine"
        assert candidates[-1]["source"] == "user"


def test_change_role_restarts_tailoring(pipeline_gateway) -> None:
    with SessionLocal() as db:
        orchestrator, run_id = _discovered(db, pipeline_gateway)
        orchestrator.select_role(run_id, role_id="ops-analyst", job_description="pasted")
        run = orchestrator.change_role(run_id, role_id="bi-analyst")

        assert run.status == "done"
        assert run.target_role == "BI Analyst"
        assert run.job_description_source == "llm_generated"
        assert run.phases["bulletsHistory"] == []


def test_step_failure_marks_run_as_error(make_pipeline_gateway, monkeypatch) -> None:
    gateway = make_pipeline_gateway()
    with SessionLocal() as db:
        orchestrator, run_id = _discovered(db, gateway)

        def explode(mapping):
            raise RuntimeError("scoring exploded")

        monkeypatch.setattr(orchestrator.tailoring, "score_skills", explode)
        run = orchestrator.select_role(run_id, role_id="ops-analyst")

        assert run.status == "error"
        assert run.phases["error"] == {"step": "scoring", "message": "scoring exploded"}
        assert run.phases["experience"] is not None
        assert run.phases["draft"] is None


def test_resume_runs_only_missing_phases(make_pipeline_gateway, monkeypatch) -> None:
    gateway = make_pipeline_gateway()
    with SessionLocal() as db:
        orchestrator, run_id = _discovered(db, gateway)
        monkeypatch.setattr(orchestrator.tailoring, "score_skills", lambda mapping: 1 / 0)
        orchestrator.select_role(run_id, role_id="ops-analyst")
        monkeypatch.undo()

        requirement_calls = gateway.count("requirements")
        run = orchestrator.resume(run_id)

        assert run.status == "done"
        assert run.phases["scoring"]
        assert run.phases["draft"]
        assert gateway.count("requirements") == requirement_calls


def test_transform_flat_bullets_and_undo(pipeline_gateway) -> None:
    with SessionLocal() as db:
        orchestrator, run_id = _discovered(db, pipeline_gateway)
        before = orchestrator.select_role(run_id, role_id="ops-analyst").phases["bullets"]

        after = orchestrator.transform_bullets(run_id, style="short", bullet_indices=[0])

        assert len(after) == len(before)
        assert after[0] == f"New: {before[0]}"
        assert after[1:] == before[1:]

        restored = orchestrator.undo_last_edit(run_id)
        assert restored.phases["bullets"] == before
        with pytest.raises(InvalidReferenceError):
            orchestrator.undo_last_edit(run_id)


def test_transform_job_bullets_with_prompt(pipeline_gateway) -> None:
    with SessionLocal() as db:
        orchestrator, run_id = _discovered(db, pipeline_gateway)
        orchestrator.select_role(run_id, role_id="ops-analyst")

        bullets = orchestrator.transform_bullets(run_id, style=None, job_index=1, prompt="Use past tense")

        assert all(b.startswith("New: ") for b in bullets)
        assert orchestrator.get_run(run_id).phases["experience"][1]["bullets"] == bullets
        with pytest.raises(InvalidReferenceError):
            orchestrator.transform_bullets(run_id, style="short", job_index=5)


def test_bullet_history_is_bounded(pipeline_gateway) -> None:
    with SessionLocal() as db:
        orchestrator, run_id = _discovered(db, pipeline_gateway, settings=Settings(bullets_history_max=2))
        orchestrator.select_role(run_id, role_id="ops-analyst")
        for _ in range(4):
            orchestrator.transform_bullets(run_id, style="lead", job_index=0, bullet_indices=[0])

        assert len(orchestrator.get_run(run_id).phases["bulletsHistory"]) == 2


def test_chat_transcript_is_windowed(pipeline_gateway) -> None:
    with SessionLocal() as db:
        orchestrator, run_id = _discovered(db, pipeline_gateway, settings=Settings(chat_window=4))
        orchestrator.select_role(run_id, role_id="ops-analyst")
        for i in range(3):
            orchestrator.apply_chat_edit(run_id, f"hello {i}")

        chat = orchestrator.get_run(run_id).phases["chat"]
        assert len(chat) == 4
        assert chat[-2] == {"role": "user", "content": "hello 2", "timestamp": chat[-2]["timestamp"]}
        assert chat[-1]["role"] == "assistant"


def test_chat_without_intent_changes_no_bullets(pipeline_gateway) -> None:
    with SessionLocal() as db:
        orchestrator, run_id = _discovered(db, pipeline_gateway)
        experience = orchestrator.select_role(run_id, role_id="ops-analyst").phases["experience"]

        result = orchestrator.apply_chat_edit(run_id, "thanks!")

        assert result.intent is None
        assert "couldn't find a bullet edit" in result.reply
        assert result.run.phases["experience"] == experience


def test_regenerate_requires_a_selected_role(pipeline_gateway) -> None:
    with SessionLocal() as db:
        orchestrator, run_id = _discovered(db, pipeline_gateway)
        with pytest.raises(InvalidReferenceError):
            orchestrator.regenerate(run_id)


def test_queued_run_cannot_jump_to_generating(pipeline_gateway) -> None:
    with SessionLocal() as db:
        orchestrator = RunOrchestrator(db, user_id="dana", gateway=pipeline_gateway)
        orchestrator.store.create_run("bare")
        with pytest.raises(InvalidTransitionError):
            orchestrator.select_role("bare", custom_role={"id": "c", "title": "Analyst"})


def test_operations_on_unknown_run_raise(pipeline_gateway) -> None:
    with SessionLocal() as db:
        orchestrator = RunOrchestrator(db, user_id="dana", gateway=pipeline_gateway)
        with pytest.raises(RunNotFoundError):
            orchestrator.apply_chat_edit("nope", "shorten bullet 1")
        with pytest.raises(RunNotFoundError):
            orchestrator.export_text("nope")


def test_history_lists_users_runs(pipeline_gateway) -> None:
    with SessionLocal() as db:
        orchestrator, run_id = _discovered(db, pipeline_gateway)
        other = RunOrchestrator(db, user_id="someone-else", gateway=pipeline_gateway)

        assert [s.id for s in orchestrator.list_history()] == [run_id]
        assert other.list_history() == []


def test_links_and_export(pipeline_gateway) -> None:
    with SessionLocal() as db:
        orchestrator, run_id = _discovered(db, pipeline_gateway)
        with pytest.raises(InvalidReferenceError):
            orchestrator.search_links(run_id)
        orchestrator.select_role(run_id, role_id="ops-analyst")

        links = orchestrator.search_links(run_id)
        assert "location=Denver%2C+CO" in links[0]["url"]
        assert orchestrator.export_text(run_id).startswith("SUMMARY")


def test_tailoring_phase_order() -> None:
    assert TAILORING_PHASES == ("requirements", "mapping", "bullets", "experience", "scoring", "draft")


def test_regenerate_drops_edit_history(pipeline_gateway) -> None:
    with SessionLocal() as db:
        orchestrator, run_id = _discovered(db, pipeline_gateway)
        orchestrator.select_role(run_id, role_id="ops-analyst")
        orchestrator.transform_bullets(run_id, style="short", job_index=0, bullet_indices=[0])
        assert len(orchestrator.get_run(run_id).phases["bulletsHistory"]) == 1

        run = orchestrator.regenerate(run_id)

        assert run.phases["bulletsHistory"] == []
        with pytest.raises(InvalidReferenceError):
            orchestrator.undo_last_edit(run_id)


def test_small_talk_with_an_ordinal_keeps_the_chat_reply(pipeline_gateway) -> None:
    with SessionLocal() as db:
        orchestrator, run_id = _discovered(db, pipeline_gateway)
        orchestrator.select_role(run_id, role_id="ops-analyst")

        result = orchestrator.apply_chat_edit(run_id, "thanks! I was there for my 9th year")

        assert result.intent is None
        assert result.run.phases["chat"][-1]["content"] == result.reply
