"""
CSV export of dashboard tables.

Rows are mappings; the header is taken from the keys of the first row.
Cells containing a comma or a double quote are wrapped in quotes with inner
quotes doubled. Other cells are written verbatim.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)


def format_cell(value: Any) -> str:
    """Render one value as CSV cell text, quoting when needed."""
    if value is None:
        text = ""
    elif isinstance(value, bool):
        text = "true" if value else "false"
    elif isinstance(value, float) and value.is_integer():
        text = str(int(value))
    elif isinstance(value, datetime):
        text = value.isoformat()
    elif isinstance(value, (dict, list)):
        text = json.dumps(value, separators=(",", ":"))
    else:
        text = str(value)

    if "," in text or '"' in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def to_csv(rows: Sequence[Mapping[str, Any]]) -> str:
    """Render rows as CSV text. Empty input yields an empty string."""
    if not rows:
        return ""

    headers = list(rows[0].keys())
    lines = [",".join(format_cell(h) for h in headers)]
    for row in rows:
        lines.append(",".join(format_cell(row.get(h)) for h in headers))
    return "\n".join(lines)


def export_filename(name: str, day: date | None = None) -> str:
    """Return ``{name}-YYYY-MM-DD.csv`` for the given (default: current) day."""
    day = day or date.today()
    return f"{name}-{day:%Y-%m-%d}.csv"


async def export_to_csv(
    rows: Sequence[Mapping[str, Any]],
    name: str,
    directory: str | Path,
    day: date | None = None,
) -> Path | None:
    """Write rows to a dated CSV file.

    Args:
        rows: Table rows
        name: File name prefix
        directory: Target directory, created if missing
        day: Date used in the file name (default: today)

    Returns:
        Path of the written file, or None when there are no rows
    """
    if not rows:
        logger.info(f"Nothing to export for {name}")
        return None

    target_dir = Path(directory)
    await aiofiles.os.makedirs(target_dir, exist_ok=True)
    path = target_dir / export_filename(name, day)

    async with aiofiles.open(path, "w", encoding="utf-8", newline="") as f:
        await f.write(to_csv(rows))

    logger.info(f"Exported {len(rows)} rows to {path}")
    return path
