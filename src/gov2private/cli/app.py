from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import typer
import uvicorn

from gov2private.api.app import create_app
from gov2private.config import get_settings
from gov2private.core.errors import Gov2PrivateError
from gov2private.core.orchestrator import RunOrchestrator
from gov2private.db.init import init_database
from gov2private.db.session import SessionLocal
from gov2private.logging_config import configure_logging

app = typer.Typer(help="gov2private CLI: turn a public-sector resume into a private-sector one")

_INITIALIZED = False

UserOption = typer.Option(None, "--user", help="User id owning the runs (defaults to DEFAULT_USER_ID)")


def ensure_initialized() -> None:
    global _INITIALIZED
    if _INITIALIZED:
        return
    init_database()
    _INITIALIZED = True


def _echo(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


@contextmanager
def _orchestrator(user: str | None) -> Iterator[RunOrchestrator]:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            yield RunOrchestrator(db, user_id=user)
        except Gov2PrivateError as exc:
            _echo({"ok": False, "code": exc.code, "error": exc.detail})
            raise typer.Exit(code=1) from exc


def _parse_indices(raw: str | None) -> list[int] | None:
    if raw is None or not raw.strip():
        return None
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError as exc:
        raise typer.BadParameter("bullet indices must be comma-separated integers, e.g. 0,2,3") from exc


def _read(path: Path | None) -> str:
    return path.read_text(encoding="utf-8") if path else ""


@app.command("init")
def init_cmd() -> None:
    """Initialize database and data directories."""
    configure_logging()
    result = init_database()
    _echo({"ok": True, **result})


@app.command("discover")
def discover(
    resume: Path | None = typer.Option(None, "--resume", exists=True, readable=True, help="Plain-text resume"),
    background: str = typer.Option("", "--background"),
    run_id: str | None = typer.Option(None, "--run-id"),
    user: str | None = UserOption,
) -> None:
    """Normalize a resume and propose private-sector roles."""
    with _orchestrator(user) as orchestrator:
        run = orchestrator.create_and_discover(background=background, resume_text=_read(resume), run_id=run_id)
        candidates = (run.phases.get("roleDiscovery") or {}).get("candidates", [])
        _echo(
            {
                "run_id": run.id,
                "status": run.status,
                "candidates": [
                    {"id": c["id"], "title": c["title"], "score": c.get("score")} for c in candidates
                ],
            }
        )


@app.command("select-role")
def select_role(
    run_id: str = typer.Option(..., "--run-id"),
    role_id: str | None = typer.Option(None, "--role-id"),
    custom_title: str | None = typer.Option(None, "--custom-title", help="Target a role that was not proposed"),
    job_description: Path | None = typer.Option(None, "--job-description", exists=True, readable=True),
    user: str | None = UserOption,
) -> None:
    """Pick a role and run the tailoring pipeline."""
    custom = {"id": "custom", "title": custom_title, "source": "user"} if custom_title else None
    with _orchestrator(user) as orchestrator:
        run = orchestrator.select_role(
            run_id,
            role_id=role_id,
            custom_role=custom,
            job_description=_read(job_description) or None,
        )
        _echo({"run_id": run.id, "status": run.status, "target_role": run.target_role})


@app.command("change-role")
def change_role(
    run_id: str = typer.Option(..., "--run-id"),
    role_id: str | None = typer.Option(None, "--role-id"),
    custom_title: str | None = typer.Option(None, "--custom-title"),
    user: str | None = UserOption,
) -> None:
    custom = {"id": "custom", "title": custom_title, "source": "user"} if custom_title else None
    with _orchestrator(user) as orchestrator:
        run = orchestrator.change_role(run_id, role_id=role_id, custom_role=custom)
        _echo({"run_id": run.id, "status": run.status, "target_role": run.target_role})


@app.command("regenerate")
def regenerate(run_id: str = typer.Option(..., "--run-id"), user: str | None = UserOption) -> None:
    with _orchestrator(user) as orchestrator:
        run = orchestrator.regenerate(run_id)
        _echo({"run_id": run.id, "status": run.status, "target_role": run.target_role})


@app.command("chat")
def chat(
    run_id: str = typer.Option(..., "--run-id"),
    message: str = typer.Option(..., "--message", "-m"),
    user: str | None = UserOption,
) -> None:
    """Edit experience bullets with a natural-language request."""
    with _orchestrator(user) as orchestrator:
        result = orchestrator.apply_chat_edit(run_id, message)
        _echo(
            {
                "reply": result.reply,
                "intent": result.intent.model_dump() if result.intent else None,
                "experience": [job.model_dump() for job in result.run.experience()],
            }
        )


@app.command("transform")
def transform(
    run_id: str = typer.Option(..., "--run-id"),
    style: str | None = typer.Option(None, "--style", help="short, quant, lead, ats or dejargon"),
    prompt: str | None = typer.Option(None, "--prompt", help="Free-form instruction instead of a style"),
    job_index: int | None = typer.Option(None, "--job"),
    bullets: str | None = typer.Option(None, "--bullets", help="Comma-separated bullet indices"),
    user: str | None = UserOption,
) -> None:
    indices = _parse_indices(bullets)
    with _orchestrator(user) as orchestrator:
        updated = orchestrator.transform_bullets(
            run_id,
            style=style,
            job_index=job_index,
            bullet_indices=indices,
            prompt=prompt,
        )
        _echo({"bullets": updated})


@app.command("undo")
def undo(run_id: str = typer.Option(..., "--run-id"), user: str | None = UserOption) -> None:
    with _orchestrator(user) as orchestrator:
        run = orchestrator.undo_last_edit(run_id)
        _echo({"experience": [job.model_dump() for job in run.experience()], "bullets": run.phases.get("bullets")})


@app.command("show")
def show(run_id: str = typer.Option(..., "--run-id"), user: str | None = UserOption) -> None:
    with _orchestrator(user) as orchestrator:
        _echo(orchestrator.get_run(run_id).model_dump(mode="json"))


@app.command("history")
def history(limit: int | None = typer.Option(None, "--limit"), user: str | None = UserOption) -> None:
    with _orchestrator(user) as orchestrator:
        _echo([summary.model_dump(mode="json") for summary in orchestrator.list_history(limit)])


@app.command("export")
def export(
    run_id: str = typer.Option(..., "--run-id"),
    out: Path | None = typer.Option(None, "--out", help="Write to a file instead of stdout"),
    user: str | None = UserOption,
) -> None:
    with _orchestrator(user) as orchestrator:
        text = orchestrator.export_text(run_id)
    if out is None:
        typer.echo(text, nl=False)
        return
    out.write_text(text, encoding="utf-8")
    _echo({"ok": True, "path": str(out)})


@app.command("links")
def links(
    run_id: str = typer.Option(..., "--run-id"),
    location: str | None = typer.Option(None, "--location"),
    user: str | None = UserOption,
) -> None:
    """Print LinkedIn job searches for the run's target role."""
    with _orchestrator(user) as orchestrator:
        _echo(orchestrator.search_links(run_id, location))


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
) -> None:
    configure_logging()
    ensure_initialized()
    settings = get_settings()
    app_instance = create_app()
    uvicorn.run(app_instance, host=host or settings.app_host, port=port or settings.app_port)


if __name__ == "__main__":
    app()
