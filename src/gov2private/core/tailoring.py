from __future__ import annotations

import json
import logging
import re
from typing import Any

from gov2private.llm.executor import AITaskExecutor, OutputShapeError
from gov2private.llm.prompts import (
    ASSEMBLE_DRAFT_SYSTEM_PROMPT,
    ASSEMBLE_DRAFT_USER_PROMPT,
    EXPERIENCE_REWRITE_SYSTEM_PROMPT,
    EXPERIENCE_REWRITE_USER_PROMPT,
    MAPPING_SYSTEM_PROMPT,
    MAPPING_USER_PROMPT,
    REQUIREMENTS_SYSTEM_PROMPT,
    REQUIREMENTS_USER_PROMPT,
    REWRITE_BULLETS_SYSTEM_PROMPT,
    REWRITE_BULLETS_USER_PROMPT,
)
from gov2private.llm.schemas import (
    EXPERIENCE_REWRITE_SCHEMA,
    REQUIREMENTS_SCHEMA,
    TRANSFERABLE_MAPPING_SCHEMA,
)
from gov2private.types import (
    ExperienceEntry,
    MappingItem,
    NormalizedData,
    Requirements,
    SkillScore,
    TransferableMapping,
)

logger = logging.getLogger(__name__)

MIN_BULLETS = 3
MAX_BULLETS = 8
MAX_BULLET_CHARS = 300
MAX_SCORED_SKILLS = 10

_BULLET_PREFIX = re.compile(r"^\s*(?:[-–•*]|\d+[.)])\s*")


def clean_bullet(text: str) -> str:
    return _BULLET_PREFIX.sub("", str(text)).strip()[:MAX_BULLET_CHARS]


def parse_requirements(payload: Any) -> Requirements:
    if not isinstance(payload, dict):
        raise OutputShapeError("requirements must be an object")
    must = payload.get("must_have")
    nice = payload.get("nice_to_have")
    if not isinstance(must, list) or not isinstance(nice, list):
        raise OutputShapeError("must_have and nice_to_have must be arrays")
    return Requirements(
        must_have=[str(item).strip()[:60] for item in must[:40] if str(item).strip()],
        nice_to_have=[str(item).strip()[:60] for item in nice[:40] if str(item).strip()],
    )


def parse_mapping(payload: Any) -> TransferableMapping:
    if not isinstance(payload, dict) or not isinstance(payload.get("mapping"), list):
        raise OutputShapeError("expected an object with a mapping array")

    items: list[MappingItem] = []
    for raw in payload["mapping"][:60]:
        if not isinstance(raw, dict) or not raw.get("requirement"):
            continue
        skills = raw.get("matched_skills") if isinstance(raw.get("matched_skills"), list) else []
        evidence = raw.get("evidence") if isinstance(raw.get("evidence"), list) else []
        items.append(
            MappingItem(
                requirement=str(raw["requirement"])[:80],
                matched_skills=[str(s).strip()[:40] for s in skills[:10] if str(s).strip()],
                evidence=[str(e).strip()[:220] for e in evidence[:6] if str(e).strip()],
            )
        )
    return TransferableMapping(mapping=items)


def experience_parser(originals: list[ExperienceEntry]):
    """Build a parser accepting one bullet list per original job.

    A job whose rewritten list has the wrong length keeps its original
    bullets for the missing slots and drops extras.
    """

    def parse(payload: Any) -> list[ExperienceEntry]:
        if not isinstance(payload, dict) or not isinstance(payload.get("experience"), list):
            raise OutputShapeError("expected an object with an experience array")
        jobs = payload["experience"]
        if len(jobs) != len(originals):
            raise OutputShapeError(f"expected {len(originals)} jobs, got {len(jobs)}")

        updated: list[ExperienceEntry] = []
        for original, job in zip(originals, jobs):
            rewritten = job.get("bullets") if isinstance(job, dict) else None
            rewritten = [clean_bullet(b) for b in rewritten or []]
            bullets = [
                rewritten[i] if i < len(rewritten) and rewritten[i] else bullet
                for i, bullet in enumerate(original.bullets)
            ]
            updated.append(original.model_copy(update={"bullets": bullets}))
        return updated

    return parse


def score_skills(mapping: TransferableMapping) -> list[SkillScore]:
    """Score matched skills by evidence count, keeping each skill's best score."""
    best: dict[str, SkillScore] = {}
    for item in mapping.mapping:
        evidence_count = len(item.evidence)
        score = min(100, 50 + evidence_count * 15)
        for skill in item.matched_skills:
            existing = best.get(skill)
            if existing is None or score > existing.score:
                best[skill] = SkillScore(skill=skill, score=score, depth=evidence_count)

    ranked = sorted(best.values(), key=lambda s: s.score, reverse=True)
    return ranked[:MAX_SCORED_SKILLS]


def fallback_draft(
    *,
    title: str,
    background: str | None,
    bullets: list[str],
    requirements: Requirements,
    mapping: TransferableMapping,
) -> str:
    skills: list[str] = []
    for item in mapping.mapping:
        for skill in item.matched_skills:
            if skill not in skills:
                skills.append(skill)
    if not skills:
        skills = list(requirements.must_have[:8])

    lines = [
        f"TARGET ROLE: {title}",
        "",
        "SUMMARY",
        (background or f"Candidate transitioning into a {title} role.").strip()[:600],
        "",
        "SKILLS",
        ", ".join(skills[:15]) or "(none listed)",
        "",
        "EXPERIENCE",
        *[f"- {bullet}" for bullet in bullets],
        "",
        "EDUCATION",
        "(add education details)",
    ]
    return "\n".join(lines)


class TailoringSteps:
    def __init__(self, executor: AITaskExecutor):
        self.executor = executor

    def extract_requirements(self, title: str, job_description: str | None) -> Requirements:
        messages = [
            {"role": "system", "content": REQUIREMENTS_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": REQUIREMENTS_USER_PROMPT.format(
                    title=title,
                    job_description=str(job_description or "")[:8000],
                ),
            },
        ]
        return self.executor.run(
            messages,
            schema=REQUIREMENTS_SCHEMA,
            parse=parse_requirements,
            fallback=Requirements(),
            task="extract_requirements",
        )

    def map_transferable(self, normalized: NormalizedData, requirements: Requirements) -> TransferableMapping:
        messages = [
            {"role": "system", "content": MAPPING_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": MAPPING_USER_PROMPT.format(
                    resume_json=normalized.model_dump_json()[:4000],
                    requirements_json=requirements.model_dump_json()[:2000],
                ),
            },
        ]
        fallback = TransferableMapping(
            mapping=[MappingItem(requirement=item[:80]) for item in requirements.must_have]
        )
        return self.executor.run(
            messages,
            schema=TRANSFERABLE_MAPPING_SCHEMA,
            parse=parse_mapping,
            fallback=fallback,
            task="map_transferable",
            max_tokens=1800,
        )

    def rewrite_bullets(self, mapping: TransferableMapping, title: str) -> list[str]:
        messages = [
            {"role": "system", "content": REWRITE_BULLETS_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": REWRITE_BULLETS_USER_PROMPT.format(
                    title=title,
                    mapping_json=mapping.model_dump_json()[:4000],
                ),
            },
        ]
        text = self.executor.complete_text(messages, fallback="", task="rewrite_bullets", max_tokens=600) or ""
        bullets = [clean_bullet(line) for line in text.splitlines()]
        bullets = [b for b in bullets if b][:MAX_BULLETS]

        if len(bullets) < MIN_BULLETS:
            for item in mapping.mapping:
                for snippet in item.evidence:
                    candidate = clean_bullet(snippet)
                    if candidate and candidate not in bullets:
                        bullets.append(candidate)
                    if len(bullets) >= MIN_BULLETS:
                        return bullets
        return bullets

    def rewrite_experience_bullets(
        self,
        experience: list[ExperienceEntry],
        mapping: TransferableMapping,
        title: str,
    ) -> list[ExperienceEntry]:
        if not experience:
            return []

        listing = "\n\n".join(
            f"Job {idx + 1}: {job.title} at {job.org}\nCurrent bullets:\n"
            + "\n".join(f"  {i + 1}. {bullet}" for i, bullet in enumerate(job.bullets))
            for idx, job in enumerate(experience)
        )
        messages = [
            {"role": "system", "content": EXPERIENCE_REWRITE_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": EXPERIENCE_REWRITE_USER_PROMPT.format(
                    title=title,
                    experience_listing=listing,
                    mapping_json=mapping.model_dump_json()[:3000],
                ),
            },
        ]
        return self.executor.run(
            messages,
            schema=EXPERIENCE_REWRITE_SCHEMA,
            parse=experience_parser(experience),
            fallback=[job.model_copy() for job in experience],
            task="rewrite_experience_bullets",
            max_tokens=2000,
        )

    def score_skills(self, mapping: TransferableMapping) -> list[SkillScore]:
        return score_skills(mapping)

    def assemble_draft(
        self,
        *,
        bullets: list[str],
        requirements: Requirements,
        mapping: TransferableMapping,
        background: str | None,
        title: str,
    ) -> str:
        messages = [
            {"role": "system", "content": ASSEMBLE_DRAFT_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": ASSEMBLE_DRAFT_USER_PROMPT.format(
                    title=title,
                    background=background or "",
                    bullets_json=json.dumps(bullets),
                    requirements_json=requirements.model_dump_json(),
                    mapping_json=mapping.model_dump_json()[:2000],
                ),
            },
        ]
        draft = self.executor.complete_text(messages, fallback=None, task="assemble_draft")
        if draft:
            return draft
        return fallback_draft(
            title=title,
            background=background,
            bullets=bullets,
            requirements=requirements,
            mapping=mapping,
        )
