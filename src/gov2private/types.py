from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

RunStatus = Literal["queued", "role_selection", "generating", "done", "error"]
JobDescSource = Literal["user_pasted", "llm_generated"]
RoleSource = Literal["ai", "user"]
BulletStyle = Literal["short", "quant", "lead", "ats", "dejargon"]
IntentSource = Literal["model", "heuristic", "fuzzy", "default"]

# Older revisions of the run store wrote these names.
STATUS_ALIASES: dict[str, str] = {
    "awaiting_role": "role_selection",
    "running": "generating",
    "pending": "generating",
}


def canonical_status(value: str) -> str:
    return STATUS_ALIASES.get(value, value)


class Contact(BaseModel):
    email: str | None = None
    phone: str | None = None
    location: str | None = None
    links: list[str] = Field(default_factory=list)


class Education(BaseModel):
    degree: str = ""
    field: str | None = None
    institution: str = ""
    year: str | None = None


class ExperienceEntry(BaseModel):
    title: str = ""
    org: str = ""
    location: str | None = None
    start: str | None = None
    end: str | None = None
    bullets: list[str] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)


class NormalizedData(BaseModel):
    name: str | None = None
    contact: Contact = Field(default_factory=Contact)
    summary: str | None = None
    skills: list[str] = Field(default_factory=list)
    certifications: list[str] = Field(default_factory=list)
    education: list[Education] = Field(default_factory=list)
    experience: list[ExperienceEntry] = Field(default_factory=list)


class RoleCandidate(BaseModel):
    id: str
    title: str
    company: str | None = None
    level: str | None = None
    description: str = ""
    requirements: list[str] = Field(default_factory=list)
    score: float | None = None
    confidence: float | None = None
    ai_job_description: str | None = None
    source: RoleSource = "ai"

    @field_validator("score")
    @classmethod
    def validate_score(cls, value: float | None) -> float | None:
        if value is None:
            return value
        if value < 0 or value > 100:
            raise ValueError("score must be between 0 and 100")
        return value

    @field_validator("confidence")
    @classmethod
    def validate_confidence(cls, value: float | None) -> float | None:
        if value is None:
            return value
        if value < 0 or value > 1:
            raise ValueError("confidence must be between 0 and 1")
        return value


class Requirements(BaseModel):
    must_have: list[str] = Field(default_factory=list)
    nice_to_have: list[str] = Field(default_factory=list)


class MappingItem(BaseModel):
    requirement: str
    matched_skills: list[str] = Field(default_factory=list)
    evidence: list[str] = Field(default_factory=list)


class TransferableMapping(BaseModel):
    mapping: list[MappingItem] = Field(default_factory=list)


class SkillScore(BaseModel):
    skill: str
    score: int
    depth: int = 0


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: str | None = None


class BulletTarget(BaseModel):
    job_index: int
    bullet_indices: list[int] = Field(default_factory=list)


class BulletEditIntent(BaseModel):
    style: BulletStyle
    targets: list[BulletTarget] = Field(default_factory=list)
    confidence: float = 0.0
    source: IntentSource = "heuristic"


class Run(BaseModel):
    id: str
    created_at: datetime
    updated_at: datetime
    status: RunStatus = "queued"
    background: str | None = None
    target_role: str | None = None
    selected_role_id: str | None = None
    job_description: str | None = None
    job_description_source: JobDescSource | None = None
    phases: dict[str, Any] = Field(default_factory=dict)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            return canonical_status(value)
        return value

    def experience(self) -> list[ExperienceEntry]:
        raw = self.phases.get("experience")
        if raw is None:
            raw = (self.phases.get("normalize") or {}).get("experience", [])
        return [ExperienceEntry.model_validate(item) for item in raw or []]


class RunSummary(BaseModel):
    id: str
    created_at: datetime
    updated_at: datetime
    status: RunStatus
    target_role: str | None = None


class ModelResponse(BaseModel):
    content: str
    raw: dict[str, Any] = Field(default_factory=dict)


class ChatEditResult(BaseModel):
    reply: str
    run: Run
    intent: BulletEditIntent | None = None
