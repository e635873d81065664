"""Report prompt templates: two immutable built-ins plus persisted custom ones."""
from __future__ import annotations

import logging
import time
import uuid
from typing import Callable, Optional

from pydantic import BaseModel, Field

from gitlog_backend.models import ReportTemplate
from gitlog_backend.stores.base import PersistedStore, StateStorage

logger = logging.getLogger("gitlog.templates")

BUILTIN_PREFIX = "builtin-"

WEEKLY_TEMPLATE = """You are an engineering lead writing a weekly progress report.

Period: {date_range}
Repositories: {repositories}
Commits: {total_commits} by {unique_authors} author(s)

Commits grouped by repository:

{commits}

Write a concise weekly report in Markdown with these sections:
## Summary
## Completed Work
## In Progress
## Risks and Blockers
## Next Week
Group related commits into themes instead of listing every commit."""

MONTHLY_TEMPLATE = """You are an engineering lead writing a monthly progress report.

Period: {date_range} ({weeks_count} week(s) of activity)
Repositories: {repositories}
Commits: {total_commits} by {unique_authors} author(s)

Commits grouped by repository:

{commits}

Write a monthly report in Markdown with these sections:
## Overview
## Key Achievements
## Weekly Breakdown
## Quality and Maintenance
## Plans for Next Month
Focus on outcomes and trends rather than individual commits."""


def _builtin(template_id: str, name: str, kind: str, content: str) -> ReportTemplate:
    return ReportTemplate(
        id=template_id,
        name=name,
        type=kind,
        content=content,
        isBuiltin=True,
        createdAt=0.0,
        updatedAt=0.0,
    )


BUILTIN_TEMPLATES = {
    "builtin-weekly": _builtin("builtin-weekly", "Weekly Report", "weekly", WEEKLY_TEMPLATE),
    "builtin-monthly": _builtin("builtin-monthly", "Monthly Report", "monthly", MONTHLY_TEMPLATE),
}


class TemplateState(BaseModel):
    templates: list[ReportTemplate] = Field(default_factory=list)


class TemplateStore(PersistedStore[TemplateState]):
    store_name = "report-templates"
    durable_model = TemplateState

    def __init__(self, storage: Optional[StateStorage] = None, clock: Callable[[], float] = time.time):
        self._clock = clock
        super().__init__(storage)

    def _after_load(self) -> None:
        # Built-ins are never persisted; drop any that slipped into storage.
        self.durable.templates = [t for t in self.durable.templates if not t.id.startswith(BUILTIN_PREFIX)]

    def list_templates(self) -> list[ReportTemplate]:
        templates = [*BUILTIN_TEMPLATES.values(), *self.durable.templates]
        return sorted(templates, key=lambda t: t.createdAt, reverse=True)

    def get_template(self, template_id: str) -> ReportTemplate:
        if template_id in BUILTIN_TEMPLATES:
            return BUILTIN_TEMPLATES[template_id]
        for template in self.durable.templates:
            if template.id == template_id:
                return template
        raise KeyError(template_id)

    async def create_template(self, name: str, content: str) -> ReportTemplate:
        if not (name or "").strip():
            raise ValueError("Template name must not be empty")
        now = self._clock()
        template = ReportTemplate(
            id=str(uuid.uuid4()),
            name=name.strip(),
            type="custom",
            content=content,
            isBuiltin=False,
            createdAt=now,
            updatedAt=now,
        )
        self.durable.templates.append(template)
        await self.save()
        logger.info(f"Created template {template.name} ({template.id})")
        return template

    async def update_template(
        self,
        template_id: str,
        name: Optional[str] = None,
        content: Optional[str] = None,
    ) -> ReportTemplate:
        if template_id.startswith(BUILTIN_PREFIX):
            raise ValueError("Cannot update built-in templates")
        template = self.get_template(template_id)
        if name is not None:
            if not name.strip():
                raise ValueError("Template name must not be empty")
            template.name = name.strip()
        if content is not None:
            template.content = content
        template.updatedAt = self._clock()
        await self.save()
        return template

    async def delete_template(self, template_id: str) -> None:
        if template_id.startswith(BUILTIN_PREFIX):
            raise ValueError("Cannot delete built-in templates")
        self.get_template(template_id)
        self.durable.templates = [t for t in self.durable.templates if t.id != template_id]
        await self.save()
        logger.info(f"Deleted template {template_id}")
