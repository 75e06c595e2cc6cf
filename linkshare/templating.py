"""Jinja2 view rendering and template filters."""
from __future__ import annotations

import os
from datetime import datetime, timezone

from fastapi import Request
from fastapi.templating import Jinja2Templates

TEMPLATES_DIR = os.path.join(os.path.dirname(__file__), "templates")

_UNITS = (
    ("year", 365 * 24 * 3600),
    ("month", 30 * 24 * 3600),
    ("day", 24 * 3600),
    ("hour", 3600),
    ("minute", 60),
)


def _as_utc(value: datetime | str) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    # Naive timestamps come back from SQLite; they are stored in UTC.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def time_ago(value: datetime | str | None, now: datetime | None = None) -> str:
    """Render a timestamp as a coarse relative time ("3 hours ago")."""
    if not value:
        return ""
    now = now or datetime.now(timezone.utc)
    seconds = int((now - _as_utc(value)).total_seconds())
    if seconds < 60:
        return "just now"
    for name, size in _UNITS:
        count = seconds // size
        if count >= 1:
            return f"{count} {name}{'s' if count != 1 else ''} ago"
    return "just now"  # pragma: no cover


templates = Jinja2Templates(directory=TEMPLATES_DIR)
templates.env.filters["time_ago"] = time_ago


def render(request: Request, name: str, context: dict, status_code: int = 200):
    return templates.TemplateResponse(request, name, context, status_code=status_code)
