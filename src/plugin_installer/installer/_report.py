"""Formatting of run summaries and confirmation prompts."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ._run import CheckedPlugin, UpdateOutcome

# Conventional commits: "feat!: ...", "fix(api)!: ...", or a BREAKING CHANGE footer
_BREAKING_RE = re.compile(r"\b[\w-]+(?:\([^)\n]*\))?!:|BREAKING[ -]CHANGE:")
_GITHUB_URL_RE = re.compile(r"^https?://github\.com/")

_MAX_PROMPT_LINES = 10


def is_breaking(log_message: str) -> bool:
    return bool(_BREAKING_RE.search(log_message))


def compare_link(url: str, old_rev: str, new_rev: str) -> str:
    """GitHub compare URL between two revisions, or "" when none can be built."""
    if not old_rev or not new_rev or not _GITHUB_URL_RE.match(url):
        return ""
    base = re.sub(r"^\w+:", "https:", re.sub(r"\.git$", "", url))
    return f"{base}/compare/{old_rev}...{new_rev}"


def plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def format_updated(outcome: UpdateOutcome) -> str:
    changes = f"({plural(outcome.changes_count, 'change')})" if outcome.changes_count else ""
    line = f"  {outcome.plugin.name}{changes}"
    link = compare_link(outcome.url, outcome.old_rev, outcome.new_rev)
    if link:
        line += f"\n    {link}"
    return line


def updated_summary(outcomes: list[UpdateOutcome]) -> str:
    return "Updated plugins:\n" + "\n".join(format_updated(o) for o in outcomes)


def breaking_summary(outcomes: list[UpdateOutcome]) -> str | None:
    breaking = [o for o in outcomes if o.breaking]
    if not breaking:
        return None
    return "Breaking updated plugins:\n" + "\n".join(f"    {o.plugin.name}" for o in breaking)


def time_ago(d: datetime, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    seconds = int((now - d).total_seconds())
    if seconds < 0:
        return "just now"
    if seconds < 60:
        return f"{plural(seconds, 'second')} ago"
    minutes = seconds // 60
    if minutes < 60:
        return f"{plural(minutes, 'minute')} ago"
    hours = minutes // 60
    if hours < 24:
        return f"{plural(hours, 'hour')} ago"
    days = hours // 24
    if days < 30:
        return f"{plural(days, 'day')} ago"
    if days // 30 < 12:
        return f"{plural(days // 30, 'month')} ago"
    return f"{plural(days // 365, 'year')} ago"


def format_check_prompt(checked: list[CheckedPlugin], now: datetime | None = None) -> str:
    """The confirmation text listing flagged plugins, at most ten of them."""
    ordered = sorted(checked, key=lambda c: c.plugin.name)
    width = max((len(c.plugin.name) for c in ordered), default=0)

    lines = []
    for c in ordered:
        name = c.plugin.name.ljust(width)
        if c.updated is not None:
            stamp = c.updated.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
            lines.append(f"{name}: {stamp} ({time_ago(c.updated, now)})")
        elif c.count:
            lines.append(f"{name}: ({plural(c.count, 'change')})")
        else:
            lines.append(name.rstrip())

    if len(lines) > _MAX_PROMPT_LINES:
        lines = [*lines[:_MAX_PROMPT_LINES], "..."]
    return "\n".join(lines) + "\n\nUpdate now?"
