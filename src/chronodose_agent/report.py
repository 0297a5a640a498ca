"""Plain-text rendering of ranked centers."""

from __future__ import annotations

from typing import Iterable, List

from .models import CenterInfo

HEADERS = ("Km", "Slots", "Next RDV", "Address", "URL")


def format_row(info: CenterInfo) -> List[str]:
    return [f"{info.distance:.2f}", str(info.n_slot), info.date, info.address, info.url]


def format_table(infos: Iterable[CenterInfo]) -> str:
    """Build an aligned table, one center per line."""
    rows = [format_row(info) for info in infos]
    if not rows:
        return "No center with short-notice availability found."

    widths = [len(header) for header in HEADERS]
    for row in rows:
        widths = [max(width, len(cell)) for width, cell in zip(widths, row)]

    def line(cells: Iterable[str]) -> str:
        return " | ".join(cell.ljust(width) for cell, width in zip(cells, widths)).rstrip()

    separator = "-+-".join("-" * width for width in widths)
    lines = [line(HEADERS), separator]
    lines.extend(line(row) for row in rows)
    return "\n".join(lines)
