"""Pydantic models matching the frontend TypeScript types."""
from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

ReportType = Literal["weekly", "monthly", "custom"]
ExportFormat = Literal["markdown", "html", "pdf"]

# ── Repository models ──────────────────────────────────────────────

class RepoInfo(BaseModel):
    path: str
    name: str
    branch: str = ""
    totalCommits: int = 0


class Commit(BaseModel):
    hash: str
    author: str = ""
    email: str = ""
    timestamp: int = 0  # epoch seconds
    message: str = ""
    repoId: Optional[str] = None  # set when aggregated across active repos


class CommitRef(BaseModel):
    """Cross-repository commit identity; hashes are only unique per repo."""

    model_config = ConfigDict(frozen=True)

    hash: str
    repoId: str


class RepoHistoryItem(BaseModel):
    id: str
    path: str
    name: str
    branch: str = ""
    totalCommits: int = 0
    addedAt: float = 0.0
    lastAccessed: float = 0.0


class ActiveRepoEntry(BaseModel):
    repoId: str
    repoInfo: RepoInfo
    commits: list[Commit] = Field(default_factory=list)


class CommitGroup(BaseModel):
    repoId: str
    repoName: str = ""
    repoPath: str = ""
    commits: list[Commit] = Field(default_factory=list)


# ── Report models ──────────────────────────────────────────────────

class Report(BaseModel):
    """Report as returned by the report backend."""

    id: Optional[str] = None
    type: ReportType = "weekly"
    content: str = ""
    commits: list[Commit] = Field(default_factory=list)
    generatedAt: float = 0.0


class ReportSession(BaseModel):
    id: str
    name: str
    type: ReportType = "weekly"
    content: str = ""
    commits: list[Commit] = Field(default_factory=list)
    generatedAt: float = 0.0
    lastModified: float = 0.0
    repoIds: list[str] = Field(default_factory=list)


class ReportTemplate(BaseModel):
    id: str
    name: str
    type: ReportType = "custom"
    content: str = ""  # prompt template body
    isBuiltin: bool = False
    createdAt: float = 0.0
    updatedAt: float = 0.0


# ── Configuration models ───────────────────────────────────────────

class OpenAIProvider(BaseModel):
    type: Literal["openai"] = "openai"
    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-4o"


class ClaudeProvider(BaseModel):
    type: Literal["claude"] = "claude"
    base_url: str = "https://api.anthropic.com"
    api_key: str = ""
    model: str = "claude-3-5-sonnet-20241022"


class GeminiProvider(BaseModel):
    type: Literal["gemini"] = "gemini"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    api_key: str = ""
    model: str = "gemini-2.0-flash-exp"


LLMProvider = Annotated[
    Union[OpenAIProvider, ClaudeProvider, GeminiProvider],
    Field(discriminator="type"),
]

class ProxyConfig(BaseModel):
    enabled: bool = False
    url: str = ""


class AppConfig(BaseModel):
    llm_provider: LLMProvider = Field(default_factory=OpenAIProvider)
    exportFormat: ExportFormat = "markdown"
    timezone: str = "UTC"
    proxy: ProxyConfig = Field(default_factory=ProxyConfig)


class CacheStats(BaseModel):
    llm_count: int = 0
    llm_memory_mb: float = 0.0
    llm_hit_rate: float = 0.0
