"""
Export of journal entries.

Two formats:
- JSON: a pretty-printed array with sorted keys and ISO-8601 dates
- Markdown: one file per calendar day with YAML frontmatter, suitable for
  dropping into a notes folder

Exports are read-only views of the entries; nothing here feeds back into
sync state.
"""

from __future__ import annotations

import json
from collections import defaultdict
from datetime import date, timezone, tzinfo
from pathlib import Path
from typing import Iterable

import frontmatter
from loguru import logger

from gokigen.models.entry import Entry
from gokigen.utils.helpers import ensure_dir


def export_json(entries: Iterable[Entry]) -> str | None:
    """
    Serialize entries as a JSON array.

    Returns:
        JSON text, or None when there is nothing to export.
    """
    items = [e.to_dict() for e in entries]
    if not items:
        return None
    return json.dumps(items, ensure_ascii=False, indent=2, sort_keys=True)


def _render_entry(entry: Entry, tz: tzinfo) -> str:
    """Render one entry as a markdown section."""
    local = entry.date.astimezone(tz)
    lines = [f"## {local.strftime('%H:%M')} {entry.mood.emoji} {entry.mood.label}", "", entry.original_text.strip()]
    if entry.reformulated_text:
        lines += ["", f"言い換え: {entry.reformulated_text.strip()}"]
    if entry.empathy_text:
        lines += ["", f"> {entry.empathy_text.strip()}"]
    if entry.next_step:
        lines += ["", f"次の一歩: {entry.next_step.strip()}"]
    return "\n".join(lines)


def _day_post(day: date, entries: list[Entry], tz: tzinfo) -> frontmatter.Post:
    """Build the frontmatter post for one calendar day (entries oldest first)."""
    body = "\n\n".join(_render_entry(e, tz) for e in entries)
    post = frontmatter.Post(body)
    post.metadata.update(
        {
            "date": day.isoformat(),
            "moods": [int(e.mood) for e in entries],
            "entry_ids": [str(e.id) for e in entries],
        }
    )
    return post


def export_markdown(
    entries: Iterable[Entry],
    directory: Path,
    tz: tzinfo = timezone.utc,
) -> list[Path]:
    """
    Write one markdown file per calendar day into directory.

    Existing files for the same day are overwritten, so re-running an
    export is idempotent.

    Args:
        entries: Entries to export, in any order.
        directory: Target directory (created if needed).
        tz: Timezone whose calendar days group the entries.

    Returns:
        Paths written, newest day first.
    """
    by_day: dict[date, list[Entry]] = defaultdict(list)
    for entry in entries:
        by_day[entry.date.astimezone(tz).date()].append(entry)
    if not by_day:
        return []

    ensure_dir(directory)
    written: list[Path] = []
    for day in sorted(by_day, reverse=True):
        day_entries = sorted(by_day[day], key=lambda e: e.date)
        file_path = directory / f"{day.isoformat()}.md"
        file_path.write_text(frontmatter.dumps(_day_post(day, day_entries, tz)) + "\n", encoding="utf-8")
        written.append(file_path)

    logger.info("Exported {} day(s) of entries to {}", len(written), directory)
    return written
