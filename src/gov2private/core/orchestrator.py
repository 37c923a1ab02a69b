from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.orm import Session

from gov2private.config import Settings, get_settings
from gov2private.core.discovery import RoleDiscovery
from gov2private.core.errors import InvalidReferenceError
from gov2private.core.export import render_plain_text
from gov2private.core.intent import EditIntentResolver
from gov2private.core.links import linkedin_search_links
from gov2private.core.runtime import UserLocks, get_user_locks
from gov2private.core.status import StatusPolicy
from gov2private.core.tailoring import TailoringSteps
from gov2private.core.transform import STYLE_INSTRUCTIONS, BulletTransformEngine, instruction_for
from gov2private.db.repositories import RunStore, RunStoreRegistry
from gov2private.llm.executor import AITaskExecutor
from gov2private.llm.gateway import ModelGateway
from gov2private.types import (
    BulletEditIntent,
    ChatEditResult,
    ChatTurn,
    ExperienceEntry,
    NormalizedData,
    Requirements,
    RoleCandidate,
    Run,
    RunSummary,
    TransferableMapping,
)

logger = logging.getLogger(__name__)

# Phases written by the tailoring pipeline, in order.
TAILORING_PHASES = ("requirements", "mapping", "bullets", "experience", "scoring", "draft")

STYLE_LABELS = {
    "short": "a shorter phrasing",
    "quant": "quantified impact",
    "lead": "a leadership emphasis",
    "ats": "ATS keyword optimization",
    "dejargon": "plain private-sector language",
}

NO_INTENT_REPLY = (
    "I couldn't find a bullet edit in that message. Try something like "
    "\"shorten bullet 2\", \"make all bullets ATS-friendly\" or \"quantify the first two bullets of job 1\"."
)


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


class RunOrchestrator:
    """Entry point for every run operation of one user.

    All public operations hold the user's lock, so a user's pipeline steps
    never interleave. Chat edits on the same run are last-write-wins.
    """

    def __init__(
        self,
        session: Session,
        *,
        user_id: str | None = None,
        settings: Settings | None = None,
        gateway: Any | None = None,
        locks: UserLocks | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.user_id = user_id or self.settings.default_user_id
        self.store: RunStore = RunStoreRegistry(session, self.settings).for_user(self.user_id)
        self.gateway = gateway or ModelGateway(self.settings)
        self.executor = AITaskExecutor(self.gateway)
        self.discovery = RoleDiscovery(self.executor)
        self.tailoring = TailoringSteps(self.executor)
        self.resolver = EditIntentResolver(self.executor, self.settings)
        self.transformer = BulletTransformEngine(self.executor)
        self.lock = (locks or get_user_locks()).for_user(self.user_id)

    # -- discovery -------------------------------------------------------

    def create_and_discover(
        self,
        *,
        background: str | None,
        resume_text: str | None,
        run_id: str | None = None,
    ) -> Run:
        with self.lock:
            self.gateway.ensure_available()
            run_id = run_id or uuid.uuid4().hex
            existing = self.store.find_run(run_id)
            policy = StatusPolicy(restart=existing is not None)
            if existing is not None:
                policy.ensure(existing.status, "role_selection")

            self.store.create_run(run_id, {"background": background})
            try:
                normalized = self.discovery.normalize(resume_text, background)
                self.store.patch_run(run_id, {"phases": {"normalize": normalized.model_dump()}})

                candidates = self.discovery.propose_roles(background, normalized)
                candidates = self.discovery.attach_job_descriptions(candidates)
                return self.store.patch_run(
                    run_id,
                    {
                        "status": "role_selection",
                        "phases": {"roleDiscovery": {"candidates": [c.model_dump() for c in candidates]}},
                    },
                )
            except Exception as exc:
                return self._fail(run_id, "discovery", exc)

    # -- role selection and tailoring --------------------------------------

    def select_role(
        self,
        run_id: str,
        *,
        role_id: str | None = None,
        custom_role: RoleCandidate | dict[str, Any] | None = None,
        job_description: str | None = None,
    ) -> Run:
        with self.lock:
            self.gateway.ensure_available()
            run = self.store.get_run(run_id)
            StatusPolicy(restart=True).ensure(run.status, "generating")
            role = self._resolve_role(run, role_id, custom_role)

            if job_description and job_description.strip():
                jd, jd_source = job_description.strip(), "user_pasted"
            else:
                jd = role.ai_job_description or self.discovery.generate_short_jd(role.title) or role.description
                jd_source = "llm_generated"

            candidates = self._candidates(run)
            if all(c.id != role.id for c in candidates):
                candidates.append(role)

            phases: dict[str, Any] = {key: None for key in TAILORING_PHASES}
            phases["bulletsHistory"] = []
            phases["error"] = None
            phases["selectedRole"] = role.model_dump()
            phases["roleDiscovery"] = {"candidates": [c.model_dump() for c in candidates]}
            self.store.patch_run(
                run_id,
                {
                    "status": "generating",
                    "target_role": role.title,
                    "selected_role_id": role.id,
                    "job_description": jd,
                    "job_description_source": jd_source,
                    "phases": phases,
                },
            )
            return self._run_tailoring(run_id)

    def change_role(
        self,
        run_id: str,
        *,
        role_id: str | None = None,
        custom_role: RoleCandidate | dict[str, Any] | None = None,
    ) -> Run:
        return self.select_role(run_id, role_id=role_id, custom_role=custom_role)

    def regenerate(self, run_id: str) -> Run:
        with self.lock:
            self.gateway.ensure_available()
            run = self.store.get_run(run_id)
            if not run.target_role:
                raise InvalidReferenceError(f"run {run_id} has no selected role to regenerate")
            # done/error -> generating is a deliberate restart, not a forward move
            StatusPolicy(restart=True).ensure(run.status, "generating")
            # snapshots predate the new draft
            self.store.patch_run(
                run_id, {"status": "generating", "phases": {"error": None, "bulletsHistory": []}}
            )
            return self._run_tailoring(run_id)

    def resume(self, run_id: str) -> Run:
        """Re-run only the tailoring steps whose phase is missing."""
        with self.lock:
            self.gateway.ensure_available()
            run = self.store.get_run(run_id)
            if run.status != "generating":
                StatusPolicy(restart=True).ensure(run.status, "generating")
                self.store.patch_run(run_id, {"status": "generating", "phases": {"error": None}})
            return self._run_tailoring(run_id, only_missing=True)

    def _run_tailoring(self, run_id: str, *, only_missing: bool = False) -> Run:
        steps: list[tuple[str, Callable[[Run], Any]]] = [
            ("requirements", self._step_requirements),
            ("mapping", self._step_mapping),
            ("bullets", self._step_bullets),
            ("experience", self._step_experience),
            ("scoring", self._step_scoring),
            ("draft", self._step_draft),
        ]
        for phase, step in steps:
            run = self.store.get_run(run_id)
            if only_missing and run.phases.get(phase) is not None:
                continue
            try:
                value = step(run)
            except Exception as exc:
                return self._fail(run_id, phase, exc)
            self.store.patch_run(run_id, {"phases": {phase: value}})
            logger.info("Run %s wrote phase %s", run_id, phase)

        return self.store.patch_run(run_id, {"status": "done"})

    def _step_requirements(self, run: Run) -> dict[str, Any]:
        return self.tailoring.extract_requirements(run.target_role or "", run.job_description).model_dump()

    def _step_mapping(self, run: Run) -> dict[str, Any]:
        normalized = NormalizedData.model_validate(run.phases.get("normalize") or {})
        requirements = Requirements.model_validate(run.phases.get("requirements") or {})
        return self.tailoring.map_transferable(normalized, requirements).model_dump()

    def _step_bullets(self, run: Run) -> list[str]:
        mapping = TransferableMapping.model_validate(run.phases.get("mapping") or {})
        return self.tailoring.rewrite_bullets(mapping, run.target_role or "")

    def _step_experience(self, run: Run) -> list[dict[str, Any]]:
        normalized = NormalizedData.model_validate(run.phases.get("normalize") or {})
        mapping = TransferableMapping.model_validate(run.phases.get("mapping") or {})
        rewritten = self.tailoring.rewrite_experience_bullets(normalized.experience, mapping, run.target_role or "")
        return [job.model_dump() for job in rewritten]

    def _step_scoring(self, run: Run) -> list[dict[str, Any]]:
        mapping = TransferableMapping.model_validate(run.phases.get("mapping") or {})
        return [score.model_dump() for score in self.tailoring.score_skills(mapping)]

    def _step_draft(self, run: Run) -> str:
        return self.tailoring.assemble_draft(
            bullets=list(run.phases.get("bullets") or []),
            requirements=Requirements.model_validate(run.phases.get("requirements") or {}),
            mapping=TransferableMapping.model_validate(run.phases.get("mapping") or {}),
            background=run.background,
            title=run.target_role or "",
        )

    # -- bullet editing ----------------------------------------------------

    def apply_chat_edit(self, run_id: str, message: str) -> ChatEditResult:
        with self.lock:
            self.gateway.ensure_available()
            run = self.store.get_run(run_id)
            jobs = run.experience()
            intent = self.resolver.resolve(message, jobs)

            user_turn = ChatTurn(role="user", content=message, timestamp=_timestamp())
            if intent is None or not intent.targets:
                reply = NO_INTENT_REPLY
                turns = [user_turn, ChatTurn(role="assistant", content=reply, timestamp=_timestamp())]
                updated = self.store.patch_run(run_id, {"phases": {"chat": self._chat_window(run, turns)}})
                return ChatEditResult(reply=reply, run=updated, intent=None)

            new_jobs = self._apply_intent(jobs, intent)
            edited = sum(len(t.bullet_indices) for t in intent.targets)
            reply = (
                f"Rewrote {edited} bullet{'s' if edited != 1 else ''} across "
                f"{len(intent.targets)} job{'s' if len(intent.targets) != 1 else ''} "
                f"with {STYLE_LABELS[intent.style]}."
            )
            turns = [user_turn, ChatTurn(role="assistant", content=reply, timestamp=_timestamp())]
            updated = self.store.patch_run(
                run_id,
                {
                    "phases": {
                        "experience": [job.model_dump() for job in new_jobs],
                        "bulletsHistory": self._pushed_history(run),
                        "chat": self._chat_window(run, turns),
                    }
                },
            )
            return ChatEditResult(reply=reply, run=updated, intent=intent)

    def _apply_intent(self, jobs: list[ExperienceEntry], intent: BulletEditIntent) -> list[ExperienceEntry]:
        instruction = STYLE_INSTRUCTIONS[intent.style]
        updated = [job.model_copy(deep=True) for job in jobs]
        for target in intent.targets:
            job = updated[target.job_index]
            rewritten = self.transformer.transform_batch(job.bullets, instruction, target.bullet_indices)
            bullets = list(job.bullets)
            for index, text in zip(target.bullet_indices, rewritten):
                bullets[index] = text
            updated[target.job_index] = job.model_copy(update={"bullets": bullets})
        return updated

    def transform_bullets(
        self,
        run_id: str,
        *,
        style: str | None,
        job_index: int | None = None,
        bullet_indices: list[int] | None = None,
        prompt: str | None = None,
    ) -> list[str]:
        """Rewrite bullets with a style (or free-form prompt).

        Without ``job_index`` the flat tailored ``bullets`` phase is edited;
        with it, that job's experience bullets. Returns the full updated list.
        """
        with self.lock:
            self.gateway.ensure_available()
            instruction = instruction_for(style, prompt)
            run = self.store.get_run(run_id)

            if job_index is None:
                bullets = list(run.phases.get("bullets") or [])
            else:
                jobs = run.experience()
                if not 0 <= job_index < len(jobs):
                    raise InvalidReferenceError(f"job {job_index} does not exist (resume has {len(jobs)} jobs)")
                bullets = list(jobs[job_index].bullets)

            indices = list(range(len(bullets))) if bullet_indices is None else list(bullet_indices)
            rewritten = self.transformer.transform_batch(bullets, instruction, indices)
            for index, text in zip(indices, rewritten):
                bullets[index] = text

            phases: dict[str, Any] = {"bulletsHistory": self._pushed_history(run)}
            if job_index is None:
                phases["bullets"] = bullets
            else:
                jobs[job_index] = jobs[job_index].model_copy(update={"bullets": bullets})
                phases["experience"] = [job.model_dump() for job in jobs]
            self.store.patch_run(run_id, {"phases": phases})
            return bullets

    def undo_last_edit(self, run_id: str) -> Run:
        with self.lock:
            run = self.store.get_run(run_id)
            history = list(run.phases.get("bulletsHistory") or [])
            if not history:
                raise InvalidReferenceError(f"run {run_id} has no bullet edit to undo")
            snapshot = history.pop()
            return self.store.patch_run(
                run_id,
                {
                    "phases": {
                        "bullets": snapshot.get("bullets"),
                        "experience": snapshot.get("experience"),
                        "bulletsHistory": history,
                    }
                },
            )

    # -- reads ---------------------------------------------------------------

    def get_run(self, run_id: str) -> Run:
        return self.store.get_run(run_id)

    def list_history(self, limit: int | None = None) -> list[RunSummary]:
        return self.store.list_recent(limit)

    def export_text(self, run_id: str) -> str:
        return render_plain_text(self.store.get_run(run_id))

    def search_links(self, run_id: str, location: str | None = None) -> list[dict[str, str]]:
        run = self.store.get_run(run_id)
        if not run.target_role:
            raise InvalidReferenceError(f"run {run_id} has no selected role")
        if location is None:
            normalized = NormalizedData.model_validate(run.phases.get("normalize") or {})
            location = normalized.contact.location
        return linkedin_search_links(run.target_role, location)

    # -- helpers -------------------------------------------------------------

    def _resolve_role(
        self,
        run: Run,
        role_id: str | None,
        custom_role: RoleCandidate | dict[str, Any] | None,
    ) -> RoleCandidate:
        if custom_role is not None:
            role = RoleCandidate.model_validate(custom_role)
            if not role.title.strip():
                raise InvalidReferenceError("custom role needs a title")
            return role.model_copy(update={"source": "user"})

        if not role_id:
            raise InvalidReferenceError("either role_id or custom_role is required")
        for candidate in self._candidates(run):
            if candidate.id == role_id:
                return candidate
        raise InvalidReferenceError(f"role {role_id} is not a candidate of run {run.id}")

    @staticmethod
    def _candidates(run: Run) -> list[RoleCandidate]:
        discovery = run.phases.get("roleDiscovery") or {}
        raw = discovery.get("candidates", []) if isinstance(discovery, dict) else discovery
        return [RoleCandidate.model_validate(item) for item in raw or []]

    def _pushed_history(self, run: Run) -> list[dict[str, Any]]:
        snapshot = {
            "bullets": run.phases.get("bullets"),
            "experience": [job.model_dump() for job in run.experience()],
            "at": _timestamp(),
        }
        history = list(run.phases.get("bulletsHistory") or []) + [snapshot]
        return history[-self.settings.bullets_history_max :]

    def _chat_window(self, run: Run, turns: list[ChatTurn]) -> list[dict[str, Any]]:
        thread = list(run.phases.get("chat") or []) + [turn.model_dump() for turn in turns]
        return thread[-self.settings.chat_window :]

    def _fail(self, run_id: str, step: str, exc: Exception) -> Run:
        logger.exception("Run failed run_id=%s step=%s", run_id, step)
        return self.store.patch_run(
            run_id,
            {"status": "error", "phases": {"error": {"step": step, "message": str(exc)}}},
        )
