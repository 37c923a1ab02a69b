from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse

from gov2private.api.deps import get_orchestrator
from gov2private.api.schemas import (
    ChangeRoleRequest,
    ChatRequest,
    ChatResponse,
    DiscoverRequest,
    HistoryResponse,
    LinksResponse,
    RunResponse,
    SelectRoleRequest,
    TransformRequest,
    TransformResponse,
)
from gov2private.core.orchestrator import RunOrchestrator

router = APIRouter(prefix="/api", tags=["api"])


@router.post("/runs/discover", response_model=RunResponse)
def discover(payload: DiscoverRequest, orchestrator: RunOrchestrator = Depends(get_orchestrator)) -> RunResponse:
    run = orchestrator.create_and_discover(
        background=payload.background,
        resume_text=payload.resume_text,
        run_id=payload.run_id,
    )
    return RunResponse(run=run)


@router.get("/runs", response_model=HistoryResponse)
def list_runs(
    limit: int | None = Query(default=None, ge=0),
    orchestrator: RunOrchestrator = Depends(get_orchestrator),
) -> HistoryResponse:
    return HistoryResponse(runs=orchestrator.list_history(limit))


@router.get("/runs/{run_id}", response_model=RunResponse)
def get_run(run_id: str, orchestrator: RunOrchestrator = Depends(get_orchestrator)) -> RunResponse:
    return RunResponse(run=orchestrator.get_run(run_id))


@router.post("/runs/{run_id}/select-role", response_model=RunResponse)
def select_role(
    run_id: str,
    payload: SelectRoleRequest,
    orchestrator: RunOrchestrator = Depends(get_orchestrator),
) -> RunResponse:
    run = orchestrator.select_role(
        run_id,
        role_id=payload.role_id,
        custom_role=payload.custom_role,
        job_description=payload.job_description,
    )
    return RunResponse(run=run)


@router.post("/runs/{run_id}/change-role", response_model=RunResponse)
def change_role(
    run_id: str,
    payload: ChangeRoleRequest,
    orchestrator: RunOrchestrator = Depends(get_orchestrator),
) -> RunResponse:
    run = orchestrator.change_role(run_id, role_id=payload.role_id, custom_role=payload.custom_role)
    return RunResponse(run=run)


@router.post("/runs/{run_id}/regenerate", response_model=RunResponse)
def regenerate(run_id: str, orchestrator: RunOrchestrator = Depends(get_orchestrator)) -> RunResponse:
    return RunResponse(run=orchestrator.regenerate(run_id))


@router.post("/runs/{run_id}/resume", response_model=RunResponse)
def resume(run_id: str, orchestrator: RunOrchestrator = Depends(get_orchestrator)) -> RunResponse:
    return RunResponse(run=orchestrator.resume(run_id))


@router.post("/runs/{run_id}/chat", response_model=ChatResponse)
def chat(
    run_id: str,
    payload: ChatRequest,
    orchestrator: RunOrchestrator = Depends(get_orchestrator),
) -> ChatResponse:
    result = orchestrator.apply_chat_edit(run_id, payload.message)
    return ChatResponse(reply=result.reply, intent=result.intent, run=result.run)


@router.post("/runs/{run_id}/transform", response_model=TransformResponse)
def transform(
    run_id: str,
    payload: TransformRequest,
    orchestrator: RunOrchestrator = Depends(get_orchestrator),
) -> TransformResponse:
    bullets = orchestrator.transform_bullets(
        run_id,
        style=payload.style,
        job_index=payload.job_index,
        bullet_indices=payload.bullet_indices,
        prompt=payload.prompt,
    )
    return TransformResponse(bullets=bullets)


@router.post("/runs/{run_id}/undo", response_model=RunResponse)
def undo(run_id: str, orchestrator: RunOrchestrator = Depends(get_orchestrator)) -> RunResponse:
    return RunResponse(run=orchestrator.undo_last_edit(run_id))


@router.get("/runs/{run_id}/export", response_class=PlainTextResponse)
def export(run_id: str, orchestrator: RunOrchestrator = Depends(get_orchestrator)) -> PlainTextResponse:
    return PlainTextResponse(orchestrator.export_text(run_id))


@router.get("/runs/{run_id}/links", response_model=LinksResponse)
def links(
    run_id: str,
    location: str | None = Query(default=None),
    orchestrator: RunOrchestrator = Depends(get_orchestrator),
) -> LinksResponse:
    return LinksResponse(links=orchestrator.search_links(run_id, location))
