from __future__ import annotations

from gov2private.types import NormalizedData, Run


def _dates(start: str | None, end: str | None) -> str:
    if start and end:
        return f"{start} - {end}"
    return start or end or ""


def render_plain_text(run: Run) -> str:
    """Render a run as a plain-text resume.

    Uses the assembled draft when present, otherwise builds one from the
    normalized resume and the (possibly edited) experience bullets.
    """
    draft = run.phases.get("draft")
    if isinstance(draft, str) and draft.strip():
        return draft.strip() + "\n"

    normalized = NormalizedData.model_validate(run.phases.get("normalize") or {})
    lines: list[str] = []
    if normalized.name:
        lines.append(normalized.name)
    contact = [v for v in (normalized.contact.email, normalized.contact.phone, normalized.contact.location) if v]
    if contact:
        lines.append(" | ".join(contact))
    if run.target_role:
        lines.append(f"Target role: {run.target_role}")

    summary = normalized.summary or run.background
    if summary:
        lines += ["", "SUMMARY", summary.strip()]

    skills = [s["skill"] for s in run.phases.get("scoring") or [] if isinstance(s, dict) and s.get("skill")]
    skills = skills or normalized.skills
    if skills:
        lines += ["", "SKILLS", ", ".join(skills[:20])]

    jobs = run.experience()
    if jobs:
        lines += ["", "EXPERIENCE"]
        for job in jobs:
            header = f"{job.title}, {job.org}"
            when = _dates(job.start, job.end)
            lines.append(f"{header} ({when})" if when else header)
            lines += [f"- {bullet}" for bullet in job.bullets]
    elif run.phases.get("bullets"):
        lines += ["", "EXPERIENCE", *[f"- {b}" for b in run.phases["bullets"]]]

    if normalized.education:
        lines += ["", "EDUCATION"]
        for edu in normalized.education:
            parts = [edu.degree, edu.field, edu.institution, edu.year]
            lines.append(", ".join(p for p in parts if p))

    if normalized.certifications:
        lines += ["", "CERTIFICATIONS", ", ".join(normalized.certifications)]

    return "\n".join(lines).strip() + "\n"
