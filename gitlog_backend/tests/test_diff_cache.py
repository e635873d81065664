import asyncio
import unittest

from gitlog_backend.backends.base import BackendError
from gitlog_backend.models import CommitRef
from gitlog_backend.stores.diff_cache import DiffCache


class _GatedDiffBackend:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.gate = asyncio.Event()
        self.fail_next = False

    async def get_commit_diff(self, path, commit_hash):
        self.calls.append((path, commit_hash))
        await self.gate.wait()
        if self.fail_next:
            self.fail_next = False
            raise BackendError("git show failed: bad object")
        return f"diff --git {commit_hash}"


class DiffCacheTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.backend = _GatedDiffBackend()
        paths = {"repo-a": "/repos/a"}
        self.cache = DiffCache(self.backend, paths.get, max_entries=0)
        self.ref = CommitRef(hash="abc1234", repoId="repo-a")

    async def test_concurrent_loads_share_one_fetch(self) -> None:
        tasks = [asyncio.create_task(self.cache.load(self.ref)) for _ in range(3)]
        await asyncio.sleep(0)
        self.assertTrue(self.cache.is_loading(self.ref.hash))

        self.backend.gate.set()
        results = await asyncio.gather(*tasks)

        self.assertEqual(len(self.backend.calls), 1)
        self.assertEqual(results, ["diff --git abc1234"] * 3)
        self.assertEqual(self.cache.get(self.ref), "diff --git abc1234")
        self.assertFalse(self.cache.is_loading(self.ref.hash))

    async def test_cached_entry_skips_backend(self) -> None:
        self.backend.gate.set()
        await self.cache.load(self.ref)
        await self.cache.load(self.ref)

        self.assertEqual(len(self.backend.calls), 1)

    async def test_failed_fetch_leaves_no_entry_and_can_retry(self) -> None:
        self.backend.fail_next = True
        self.backend.gate.set()

        self.assertIsNone(await self.cache.load(self.ref))
        self.assertIsNone(self.cache.get(self.ref))
        self.assertFalse(self.cache.is_loading(self.ref.hash))

        self.assertEqual(await self.cache.load(self.ref), "diff --git abc1234")
        self.assertEqual(len(self.backend.calls), 2)

    async def test_unknown_repository_returns_none_without_fetch(self) -> None:
        result = await self.cache.load(CommitRef(hash="abc1234", repoId="repo-missing"))

        self.assertIsNone(result)
        self.assertEqual(self.backend.calls, [])

    async def test_optional_cap_drops_oldest_entries(self) -> None:
        self.backend.gate.set()
        cache = DiffCache(self.backend, lambda _repo_id: "/repos/a", max_entries=2)
        for commit_hash in ("aaa", "bbb", "ccc"):
            await cache.load(CommitRef(hash=commit_hash, repoId="repo-a"))

        self.assertEqual(len(cache), 2)
        self.assertIsNone(cache.get(CommitRef(hash="aaa", repoId="repo-a")))


if __name__ == "__main__":
    unittest.main()
