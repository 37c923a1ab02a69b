from __future__ import annotations

from urllib.parse import urlencode

LINKEDIN_JOBS_URL = "https://www.linkedin.com/jobs/search/"


def _search_url(keywords: str, location: str | None) -> str:
    params = {"keywords": keywords}
    if location:
        params["location"] = location
    return f"{LINKEDIN_JOBS_URL}?{urlencode(params)}"


def linkedin_search_links(title: str, location: str | None = None) -> list[dict[str, str]]:
    """Job search URLs for a target title: exact, remote and entry level."""
    title = " ".join(str(title or "").split())
    if not title:
        return []
    location = " ".join(str(location or "").split()) or None
    return [
        {"label": title, "url": _search_url(title, location)},
        {"label": f"{title} (remote)", "url": _search_url(f"{title} remote", location)},
        {"label": f"{title} (entry level)", "url": _search_url(f"{title} entry level", location)},
    ]
