from __future__ import annotations

from pydantic import BaseModel, Field

from gov2private.types import BulletEditIntent, BulletStyle, RoleCandidate, Run, RunSummary


class DiscoverRequest(BaseModel):
    background: str = ""
    resume_text: str = ""
    run_id: str | None = Field(default=None, max_length=64)


class SelectRoleRequest(BaseModel):
    role_id: str | None = None
    custom_role: RoleCandidate | None = None
    job_description: str | None = None


class ChangeRoleRequest(BaseModel):
    role_id: str | None = None
    custom_role: RoleCandidate | None = None


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=2000)


class TransformRequest(BaseModel):
    style: BulletStyle | None = None
    prompt: str | None = None
    job_index: int | None = None
    bullet_indices: list[int] | None = None


class RunResponse(BaseModel):
    ok: bool = True
    run: Run


class ChatResponse(BaseModel):
    ok: bool = True
    reply: str
    intent: BulletEditIntent | None = None
    run: Run


class TransformResponse(BaseModel):
    ok: bool = True
    bullets: list[str]


class HistoryResponse(BaseModel):
    ok: bool = True
    runs: list[RunSummary]


class LinksResponse(BaseModel):
    ok: bool = True
    links: list[dict[str, str]]


class ErrorResponse(BaseModel):
    ok: bool = False
    code: str
    error: str
