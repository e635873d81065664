"""LLM-backed report backend with streaming progress.

Provider dispatch is on the ``type`` tag of the configured provider. HTTP
calls use ``requests`` in a worker thread; each streamed delta is handed
back to the event loop through the progress bus.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from typing import Any, Callable, Iterable, Optional

import requests

from gitlog_backend import config
from gitlog_backend.backends.base import BackendError
from gitlog_backend.backends.progress import ProgressBus
from gitlog_backend.models import (
    AppConfig,
    ClaudeProvider,
    CommitGroup,
    GeminiProvider,
    OpenAIProvider,
    Report,
    ReportTemplate,
    ReportType,
)
from gitlog_backend.services.prompting import build_prompt_context, render_prompt

logger = logging.getLogger("gitlog.llm")

ANTHROPIC_VERSION = "2023-06-01"
PROXY_PROBE_URL = "https://www.google.com"


def _proxies(proxy_url: Optional[str]) -> Optional[dict[str, str]]:
    if not proxy_url:
        return None
    return {"http": proxy_url, "https": proxy_url}


def build_request(provider: Any, prompt: str, *, stream: bool = True, max_tokens: int = 4096) -> tuple[str, dict[str, str], dict[str, Any]]:
    """Return (url, headers, body) for one provider call."""
    base_url = provider.base_url.rstrip("/")
    headers = {"Content-Type": "application/json"}
    if isinstance(provider, OpenAIProvider):
        headers["Authorization"] = f"Bearer {provider.api_key}"
        body: dict[str, Any] = {
            "model": provider.model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": stream,
        }
        if not stream:
            body["max_tokens"] = max_tokens
        return f"{base_url}/chat/completions", headers, body
    if isinstance(provider, ClaudeProvider):
        headers["x-api-key"] = provider.api_key
        headers["anthropic-version"] = ANTHROPIC_VERSION
        body = {
            "model": provider.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
            "stream": stream,
        }
        return f"{base_url}/v1/messages", headers, body
    if isinstance(provider, GeminiProvider):
        headers["x-goog-api-key"] = provider.api_key
        body = {"contents": [{"parts": [{"text": prompt}]}]}
        if stream:
            return f"{base_url}/models/{provider.model}:streamGenerateContent?alt=sse", headers, body
        return f"{base_url}/models/{provider.model}:generateContent", headers, body
    raise BackendError(f"Unsupported LLM provider: {getattr(provider, 'type', provider)!r}")


def extract_delta(provider_type: str, event: dict[str, Any]) -> str:
    """Pull the text delta out of one decoded SSE event."""
    if provider_type == "openai":
        choices = event.get("choices") or []
        if choices:
            return (choices[0].get("delta") or {}).get("content") or ""
        return ""
    if provider_type == "claude":
        if event.get("type") == "content_block_delta":
            return (event.get("delta") or {}).get("text") or ""
        return ""
    if provider_type == "gemini":
        candidates = event.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text") or "" for part in parts)
    return ""


def iter_sse_deltas(provider_type: str, lines: Iterable[str]) -> Iterable[str]:
    for raw_line in lines:
        line = (raw_line or "").strip()
        if not line.startswith("data:"):
            continue
        payload = line[len("data:"):].strip()
        if not payload or payload == "[DONE]":
            continue
        try:
            event = json.loads(payload)
        except json.JSONDecodeError:
            logger.debug(f"Ignoring undecodable SSE payload: {payload[:80]!r}")
            continue
        if isinstance(event, dict):
            delta = extract_delta(provider_type, event)
            if delta:
                yield delta


class LLMReportBackend:
    """Report backend that streams the configured LLM provider."""

    def __init__(
        self,
        get_config: Callable[[], AppConfig],
        get_template: Callable[[str], ReportTemplate],
        bus: ProgressBus,
        channel: str | None = None,
        timeout_seconds: int | None = None,
    ):
        self._get_config = get_config
        self._get_template = get_template
        self.bus = bus
        self.channel = channel or config.PROGRESS_CHANNEL
        self.timeout_seconds = timeout_seconds or config.LLM_TIMEOUT_SECONDS

    def build_prompt(self, kind: ReportType, commit_groups: list[CommitGroup], template_id: Optional[str]) -> str:
        resolved_id = template_id or f"builtin-{kind if kind != 'custom' else 'weekly'}"
        try:
            template = self._get_template(resolved_id)
        except KeyError as e:
            raise BackendError(f"Template not found: {resolved_id}") from e
        return render_prompt(template.content, build_prompt_context(kind, commit_groups))

    async def generate_report(
        self,
        kind: ReportType,
        commit_groups: list[CommitGroup],
        template_id: Optional[str] = None,
    ) -> Report:
        commits = [c for group in commit_groups for c in group.commits]
        if not commits:
            raise BackendError("No commits provided for report generation")

        app_config = self._get_config()
        prompt = self.build_prompt(kind, commit_groups, template_id)
        proxy_url = app_config.proxy.url if app_config.proxy.enabled else None
        self.bus.bind_loop(asyncio.get_running_loop())

        content = await asyncio.to_thread(self._stream_completion, app_config.llm_provider, prompt, proxy_url)
        if not content:
            raise BackendError("No content generated from LLM")

        return Report(
            id=str(uuid.uuid4()),
            type=kind,
            content=content,
            commits=commits,
            generatedAt=time.time(),
        )

    def _stream_completion(self, provider: Any, prompt: str, proxy_url: Optional[str]) -> str:
        url, headers, body = build_request(provider, prompt, stream=True)
        try:
            response = requests.post(
                url,
                headers=headers,
                json=body,
                stream=True,
                timeout=self.timeout_seconds,
                proxies=_proxies(proxy_url),
            )
        except requests.RequestException as e:
            raise BackendError(f"Request failed: {e}") from e

        with response:
            if not response.ok:
                raise BackendError(f"API error {response.status_code}: {response.text or 'Unknown error'}")
            pieces: list[str] = []
            try:
                for delta in iter_sse_deltas(provider.type, response.iter_lines(decode_unicode=True)):
                    pieces.append(delta)
                    self.bus.publish_threadsafe(self.channel, delta)
            except requests.RequestException as e:
                raise BackendError(f"Stream error: {e}") from e
        return "".join(pieces)


def _probe_provider(provider: Any, proxy_url: Optional[str], timeout: int) -> bool:
    url, headers, body = build_request(provider, "test", stream=False, max_tokens=5)
    try:
        response = requests.post(url, headers=headers, json=body, timeout=timeout, proxies=_proxies(proxy_url))
    except requests.RequestException as e:
        raise BackendError(f"Connection test failed: {e}") from e
    return response.ok


async def check_llm_connection(provider: Any, proxy_url: Optional[str] = None, timeout: int = 30) -> bool:
    return await asyncio.to_thread(_probe_provider, provider, proxy_url, timeout)


def _probe_proxy(proxy_url: Optional[str], timeout: int) -> str:
    try:
        response = requests.get(PROXY_PROBE_URL, timeout=timeout, proxies=_proxies(proxy_url))
    except requests.RequestException as e:
        raise BackendError(f"Connection failed: {e}") from e
    if not response.ok:
        raise BackendError(f"Connection failed (status {response.status_code})")
    return f"Proxy connection succeeded (status {response.status_code})"


async def check_proxy(proxy_url: Optional[str], timeout: int = 10) -> str:
    return await asyncio.to_thread(_probe_proxy, proxy_url, timeout)
