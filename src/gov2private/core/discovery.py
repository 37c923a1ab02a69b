from __future__ import annotations

import json
import logging
from typing import Any

from gov2private.llm.executor import AITaskExecutor, OutputShapeError
from gov2private.llm.prompts import (
    NORMALIZE_FEW_SHOT_ASSISTANT,
    NORMALIZE_FEW_SHOT_USER,
    NORMALIZE_SYSTEM_PROMPT,
    NORMALIZE_USER_PROMPT,
    PROPOSE_ROLES_SYSTEM_PROMPT,
    PROPOSE_ROLES_USER_PROMPT,
    SHORT_JD_SYSTEM_PROMPT,
    SHORT_JD_USER_PROMPT,
)
from gov2private.llm.schemas import NORMALIZED_RESUME_SCHEMA, ROLE_CANDIDATES_SCHEMA
from gov2private.types import Contact, Education, ExperienceEntry, NormalizedData, RoleCandidate

logger = logging.getLogger(__name__)

MAX_RESUME_CHARS = 12000
MAX_BACKGROUND_CHARS = 4000
MAX_CANDIDATES = 10

FALLBACK_ROLES: tuple[dict[str, str], ...] = (
    {
        "id": "fallback-1",
        "title": "Data Analyst",
        "description": (
            "Analyze data to help organizations make informed decisions. "
            "Use SQL, Python, and visualization tools."
        ),
    },
    {
        "id": "fallback-2",
        "title": "Business Intelligence Analyst",
        "description": "Create dashboards and reports to support business decision-making.",
    },
    {
        "id": "fallback-3",
        "title": "Software Developer",
        "description": "Build and maintain software applications using modern development practices.",
    },
)


def fallback_roles() -> list[RoleCandidate]:
    return [RoleCandidate(source="ai", **role) for role in FALLBACK_ROLES]


def uniq_lower_trim(values: Any, cap: int) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for value in values if isinstance(values, list) else []:
        item = str(value).lower().strip()
        if item and item not in seen:
            seen.add(item)
            out.append(item)
            if len(out) >= cap:
                break
    return out


def _clip(value: Any, limit: int) -> str | None:
    if value is None or value == "":
        return None
    return str(value)[:limit]


def shape_normalized(payload: Any) -> NormalizedData:
    """Clamp a model payload into ``NormalizedData``; raises on a non-object."""
    if not isinstance(payload, dict):
        raise OutputShapeError("normalized resume must be an object")

    contact = payload.get("contact") if isinstance(payload.get("contact"), dict) else {}
    links = contact.get("links") if isinstance(contact.get("links"), list) else []

    education = []
    for item in (payload.get("education") or [])[:10]:
        if not isinstance(item, dict):
            continue
        education.append(
            Education(
                degree=str(item.get("degree") or "")[:120] or "Degree",
                field=_clip(item.get("field"), 160),
                institution=str(item.get("institution") or "")[:200] or "Institution",
                year=_clip(item.get("year"), 10),
            )
        )

    experience = []
    for item in (payload.get("experience") or [])[:8]:
        if not isinstance(item, dict):
            continue
        bullets = item.get("bullets") if isinstance(item.get("bullets"), list) else []
        experience.append(
            ExperienceEntry(
                title=str(item.get("title") or "")[:120] or "Role",
                org=str(item.get("org") or "")[:160] or "Organization",
                location=_clip(item.get("location"), 120),
                start=_clip(item.get("start"), 40),
                end=_clip(item.get("end"), 40),
                bullets=[str(b)[:220] for b in bullets[:4] if str(b).strip()],
                skills=uniq_lower_trim(item.get("skills"), 20),
            )
        )

    return NormalizedData(
        name=_clip(payload.get("name"), 120),
        contact=Contact(
            email=_clip(contact.get("email"), 120),
            phone=_clip(contact.get("phone"), 64),
            location=_clip(contact.get("location"), 120),
            links=[str(link)[:200] for link in links[:10]],
        ),
        summary=_clip(payload.get("summary"), 500),
        skills=uniq_lower_trim(payload.get("skills"), 100),
        certifications=uniq_lower_trim(payload.get("certifications"), 20),
        education=education,
        experience=experience,
    )


def _clamp(value: Any, low: float, high: float) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return max(low, min(high, number))


def parse_role_candidates(payload: Any) -> list[RoleCandidate]:
    if not isinstance(payload, dict) or not isinstance(payload.get("candidates"), list):
        raise OutputShapeError("expected an object with a candidates array")

    candidates: list[RoleCandidate] = []
    seen_ids: set[str] = set()
    for index, raw in enumerate(payload["candidates"][:MAX_CANDIDATES]):
        if not isinstance(raw, dict):
            continue
        title = str(raw.get("title") or "").strip()[:80]
        if not title:
            continue

        role_id = str(raw.get("id") or f"role-{index + 1}")[:64]
        if role_id in seen_ids:
            role_id = f"{role_id[:58]}-{index + 1}"
        seen_ids.add(role_id)

        score = _clamp(raw.get("score"), 0, 100)
        confidence = _clamp(raw.get("confidence"), 0, 1)
        if confidence is None and score is not None:
            confidence = round(score / 100, 4)

        requirements = raw.get("requirements") if isinstance(raw.get("requirements"), list) else []
        candidates.append(
            RoleCandidate(
                id=role_id,
                title=title,
                company=_clip(raw.get("company"), 120),
                level=_clip(raw.get("level"), 40),
                description=str(raw.get("description") or raw.get("rationale") or "")[:500],
                requirements=[str(r)[:100] for r in requirements[:20]],
                score=score,
                confidence=confidence,
                source="ai",
            )
        )
    return candidates


class RoleDiscovery:
    def __init__(self, executor: AITaskExecutor):
        self.executor = executor

    def normalize(self, resume_text: str | None, background: str | None = None) -> NormalizedData:
        text = str(resume_text or "").strip()[:MAX_RESUME_CHARS]
        bg = str(background or "").strip()[:MAX_BACKGROUND_CHARS]
        if not text and not bg:
            return NormalizedData()

        messages = [
            {"role": "system", "content": NORMALIZE_SYSTEM_PROMPT},
            {"role": "user", "content": NORMALIZE_FEW_SHOT_USER},
            {"role": "assistant", "content": json.dumps(NORMALIZE_FEW_SHOT_ASSISTANT)},
            {
                "role": "user",
                "content": NORMALIZE_USER_PROMPT.format(background=bg or "(none)", resume_text=text),
            },
        ]
        return self.executor.run(
            messages,
            schema=NORMALIZED_RESUME_SCHEMA,
            parse=shape_normalized,
            fallback=NormalizedData(),
            task="normalize",
            max_tokens=4096,
        )

    def propose_roles(self, background: str | None, normalized: NormalizedData) -> list[RoleCandidate]:
        resume_json = normalized.model_dump_json()[:4000]
        messages = [
            {"role": "system", "content": PROPOSE_ROLES_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": PROPOSE_ROLES_USER_PROMPT.format(
                    background=str(background or "")[:MAX_BACKGROUND_CHARS],
                    resume_json=resume_json,
                ),
            },
        ]
        candidates = self.executor.run(
            messages,
            schema=ROLE_CANDIDATES_SCHEMA,
            parse=parse_role_candidates,
            fallback=[],
            task="propose_roles",
        )
        if not candidates:
            logger.warning("Role proposal returned no candidates; using fallback roles")
            return fallback_roles()
        return candidates

    def generate_short_jd(self, title: str) -> str | None:
        messages = [
            {"role": "system", "content": SHORT_JD_SYSTEM_PROMPT},
            {"role": "user", "content": SHORT_JD_USER_PROMPT.format(title=title)},
        ]
        return self.executor.complete_text(messages, fallback=None, task="short_jd", max_tokens=400)

    def attach_job_descriptions(self, candidates: list[RoleCandidate]) -> list[RoleCandidate]:
        enriched: list[RoleCandidate] = []
        for candidate in candidates:
            description = self.generate_short_jd(candidate.title)
            if description:
                candidate = candidate.model_copy(update={"ai_job_description": description[:1200]})
            enriched.append(candidate)
        return enriched
