import unittest

from gitlog_backend.backends.caching import CachingReportBackend
from gitlog_backend.backends.progress import ProgressBus
from gitlog_backend.models import AppConfig, Commit, CommitGroup, Report
from gitlog_backend.services.llm_cache import LLMResponseCache, hash_llm_request


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class LLMResponseCacheTests(unittest.TestCase):
    def test_entries_expire_after_ttl(self) -> None:
        clock = _Clock()
        cache = LLMResponseCache(ttl_seconds=60, clock=clock)
        cache.put("k", "report")

        self.assertEqual(cache.get("k"), "report")
        clock.now += 61
        self.assertIsNone(cache.get("k"))
        self.assertEqual(cache.stats().llm_count, 0)

    def test_hit_rate_is_percentage_and_clear_resets(self) -> None:
        cache = LLMResponseCache(ttl_seconds=60, clock=_Clock())
        cache.put("k", "report")
        cache.get("k")
        cache.get("missing")

        self.assertAlmostEqual(cache.stats().llm_hit_rate, 50.0)
        cache.clear()
        stats = cache.stats()
        self.assertEqual((stats.llm_count, stats.llm_hit_rate), (0, 0.0))

    def test_hash_depends_on_every_component(self) -> None:
        base = hash_llm_request("openai", "gpt-4o", 0.7, "builtin-weekly", "prompt")

        self.assertEqual(base, hash_llm_request("openai", "gpt-4o", 0.7, "builtin-weekly", "prompt"))
        self.assertNotEqual(base, hash_llm_request("claude", "gpt-4o", 0.7, "builtin-weekly", "prompt"))
        self.assertNotEqual(base, hash_llm_request("openai", "gpt-4o", 0.7, "builtin-monthly", "prompt"))


class _CountingBackend:
    def __init__(self) -> None:
        self.calls = 0
        self.templates = {"builtin-weekly": "Weekly: {commits}", "builtin-monthly": "Monthly: {commits}"}

    def build_prompt(self, kind, commit_groups, template_id=None):
        hashes = ",".join(c.hash for group in commit_groups for c in group.commits)
        return self.templates[template_id or f"builtin-{kind}"].replace("{commits}", hashes)

    async def generate_report(self, kind, commit_groups, template_id=None):
        self.calls += 1
        return Report(id="r-1", type=kind, content="# Weekly report", generatedAt=1.0)


class CachingReportBackendTests(unittest.IsolatedAsyncioTestCase):
    async def test_repeated_generation_is_served_from_cache(self) -> None:
        bus = ProgressBus()
        chunks: list[str] = []
        bus.subscribe("progress", chunks.append)
        inner = _CountingBackend()
        backend = CachingReportBackend(inner, LLMResponseCache(ttl_seconds=60), AppConfig, bus, channel="progress")
        groups = [CommitGroup(repoId="repo-a", commits=[Commit(hash="a1", timestamp=10)])]

        first = await backend.generate_report("weekly", groups)
        second = await backend.generate_report("weekly", groups)

        self.assertEqual(inner.calls, 1)
        self.assertEqual(second.content, first.content)
        self.assertNotEqual(second.id, first.id)
        self.assertEqual(chunks, ["# Weekly report"])

    async def test_different_kind_misses_cache(self) -> None:
        inner = _CountingBackend()
        backend = CachingReportBackend(inner, LLMResponseCache(ttl_seconds=60), AppConfig, ProgressBus(), channel="progress")
        groups = [CommitGroup(repoId="repo-a", commits=[Commit(hash="a1", timestamp=10)])]

        await backend.generate_report("weekly", groups)
        await backend.generate_report("monthly", groups)

        self.assertEqual(inner.calls, 2)

    async def test_edited_template_misses_cache(self) -> None:
        inner = _CountingBackend()
        inner.templates["tpl-1"] = "Team notes: {commits}"
        backend = CachingReportBackend(inner, LLMResponseCache(ttl_seconds=60), AppConfig, ProgressBus(), channel="progress")
        groups = [CommitGroup(repoId="repo-a", commits=[Commit(hash="a1", timestamp=10)])]

        await backend.generate_report("custom", groups, "tpl-1")
        inner.templates["tpl-1"] = "Release notes: {commits}"
        await backend.generate_report("custom", groups, "tpl-1")

        self.assertEqual(inner.calls, 2)

    async def test_explicit_prompt_builder_drives_the_key(self) -> None:
        inner = _CountingBackend()
        backend = CachingReportBackend(
            inner,
            LLMResponseCache(ttl_seconds=60),
            AppConfig,
            ProgressBus(),
            channel="progress",
            build_prompt=lambda kind, groups, template_id: "same prompt",
        )
        groups = [CommitGroup(repoId="repo-a", commits=[Commit(hash="a1", timestamp=10)])]
        other = [CommitGroup(repoId="repo-a", commits=[Commit(hash="b2", timestamp=20)])]

        await backend.generate_report("weekly", groups)
        await backend.generate_report("weekly", other)

        self.assertEqual(inner.calls, 1)


if __name__ == "__main__":
    unittest.main()
