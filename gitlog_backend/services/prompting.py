"""Prompt context building for report generation."""
from __future__ import annotations

import re
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any

from gitlog_backend import config
from gitlog_backend.models import Commit, CommitGroup, ReportType


_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def format_timestamp(timestamp: int) -> str:
    try:
        return datetime.fromtimestamp(int(timestamp), timezone.utc).strftime("%Y-%m-%d")
    except (OverflowError, OSError, ValueError):
        return "Unknown date"


def group_commits_by_week(commits: list[Commit]) -> list[list[Commit]]:
    """Bucket commits by ISO (year, week), ordered by each bucket's first commit."""
    weeks: dict[tuple[int, int], list[Commit]] = defaultdict(list)
    for commit in commits:
        iso = datetime.fromtimestamp(commit.timestamp, timezone.utc).isocalendar()
        weeks[(iso[0], iso[1])].append(commit)
    return sorted(weeks.values(), key=lambda bucket: bucket[0].timestamp)


def _commit_line(commit: Commit) -> str:
    lines = (commit.message or "").strip().splitlines()
    first_line = lines[0] if lines else ""
    return f"- [{commit.hash[:7]}] {format_timestamp(commit.timestamp)} {commit.author}: {first_line}"


def build_prompt_context(kind: ReportType, commit_groups: list[CommitGroup]) -> dict[str, Any]:
    groups: list[CommitGroup] = []
    remaining = max(1, config.MAX_REPORT_COMMITS)
    for group in commit_groups:
        if remaining <= 0:
            break
        # Newest first, truncated to keep the prompt bounded.
        kept = sorted(group.commits, key=lambda c: c.timestamp, reverse=True)[:remaining]
        remaining -= len(kept)
        groups.append(group.model_copy(update={"commits": kept}))

    all_commits = [c for g in groups for c in g.commits]
    if all_commits:
        timestamps = [c.timestamp for c in all_commits]
        date_range = f"{format_timestamp(min(timestamps))} - {format_timestamp(max(timestamps))}"
    else:
        date_range = ""

    sections = []
    for group in groups:
        header = f"### {group.repoName or group.repoPath or group.repoId}"
        lines = [_commit_line(c) for c in group.commits]
        sections.append("\n".join([header, *lines]))

    return {
        "report_type": kind,
        "date_range": date_range,
        "total_commits": len(all_commits),
        "unique_authors": len({c.author for c in all_commits}),
        "repositories": ", ".join(g.repoName or g.repoId for g in groups),
        "weeks_count": len(group_commits_by_week(all_commits)),
        "commits": "\n\n".join(sections),
    }


def render_prompt(template_content: str, context: dict[str, Any]) -> str:
    """Substitute ``{name}`` placeholders; anything else, unknown names included, stays verbatim."""

    def substitute(match: re.Match) -> str:
        name = match.group(1)
        return str(context[name]) if name in context else match.group(0)

    return _PLACEHOLDER.sub(substitute, template_content)
