"""Telegram message formatting.

Outputs Markdown (V1).  Arrivals are laid out as a fixed-width table, one
monospace row per bus, with every column capped so a long destination never
wraps on a phone screen:

    *2441* AV.ABRANTES-PZA.LAS MENINAS
    `47  CARABANCHEL A… 11`
    `35  PLAZA MAYOR    >>`
    [Ver en el mapa](https://maps.google.com/?q=40.3776,-3.7324)
"""

from __future__ import annotations

import uuid
from typing import Callable

from emtbus.models import Arrival, RenderedStop, Stop

NO_ESTIMATES = "Sin estimaciones"
TRUNCATION_MARK = "…"
MAP_URL = "https://maps.google.com/?q={lat},{lon}"

COLUMNS: tuple[Callable[[Arrival], str], ...] = (
    lambda a: a.line_id,
    lambda a: a.destination,
    lambda a: a.time,
)


def _esc(t: str) -> str:
    """Escape Markdown V1 special characters in API-provided text."""
    return t.replace("_", "\\_").replace("*", "\\*").replace("[", "\\[").replace("`", "\\`")


def _cell(value: str) -> str:
    # Backticks cannot be escaped inside a code span.
    return value.replace("`", "'")


def truncate(value: str, width: int) -> str:
    if len(value) <= width:
        return value
    return value[: width - 1] + TRUNCATION_MARK


def column_widths(arrivals: list[Arrival], max_width: int) -> list[int]:
    return [
        max((min(len(_cell(get(a))), max_width) for a in arrivals), default=0)
        for get in COLUMNS
    ]


def format_table(arrivals: list[Arrival], max_width: int) -> str:
    if not arrivals:
        return NO_ESTIMATES
    widths = column_widths(arrivals, max_width)
    rows = []
    for a in arrivals:
        cells = [
            truncate(_cell(get(a)), max_width).ljust(width)
            for get, width in zip(COLUMNS, widths)
        ]
        rows.append(f"`{' '.join(cells)}`")
    return "\r\n".join(rows)


def map_link(stop: Stop) -> str | None:
    if stop.position is None:
        return None
    url = MAP_URL.format(lat=stop.position.latitude, lon=stop.position.longitude)
    return f"[Ver en el mapa]({url})"


def format_body(stop: Stop, max_width: int) -> str:
    parts = [
        f"*{_esc(stop.id)}* {_esc(stop.name)}",
        format_table(stop.arrivals, max_width),
    ]
    link = map_link(stop)
    if link:
        parts.append(link)
    return "\n".join(parts)


def render_stop(stop: Stop, max_width: int, thumbnail_url: str) -> RenderedStop:
    return RenderedStop(
        id=uuid.uuid4().hex,
        title=f"{stop.id} - {stop.name}",
        body=format_body(stop, max_width),
        description="Líneas: " + ", ".join(stop.lines),
        thumbnail_url=thumbnail_url,
        refresh_stop_id=stop.id,
    )
