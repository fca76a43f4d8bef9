"""Formatting helpers shared by the legacy response translator and routes."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

NA = "N/A"


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""

    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def text_or_na(value: Any) -> Any:
    """Return ``value`` unless it is falsy, in which case ``"N/A"``."""

    return value if value else NA


def year_from_date(value: str | None) -> str:
    """Return the leading four-digit year of a date string."""

    if not value or not isinstance(value, str):
        return NA
    year = value[:4]
    if len(year) != 4 or not year.isdigit():
        return NA
    return year


def format_runtime(minutes: Any) -> str:
    if isinstance(minutes, bool) or not isinstance(minutes, (int, float)) or minutes <= 0:
        return NA
    return f"{int(minutes)} min"


def format_rating(value: Any) -> str:
    """Render a rating with exactly one decimal place."""

    if isinstance(value, bool) or not isinstance(value, (int, float)) or not value:
        return NA
    return f"{value:.1f}"


def format_count(value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, int) or not value:
        return NA
    return str(value)


def poster_url(image_base_url: str, path: str | None, size: str = "w500") -> str:
    """Expand a TMDB image path into a full URL."""

    if not path:
        return NA
    return f"{image_base_url.rstrip('/')}/{size}{path}"


def join_names(entries: list[dict[str, Any]], limit: int | None = None) -> str:
    """Join the ``name`` field of ``entries`` with commas."""

    names = [str(entry.get("name")) for entry in entries if entry.get("name")]
    if limit is not None:
        names = names[:limit]
    return ", ".join(names) if names else NA


def ok(data: Any, source: str | None = None) -> dict[str, Any]:
    """Wrap ``data`` in the success envelope."""

    payload: dict[str, Any] = {"success": True, "data": data}
    if source:
        payload["meta"] = {"source": source}
    return payload
