import asyncio
import copy
import unittest

from gitlog_backend.backends.base import BackendError
from gitlog_backend.backends.progress import ProgressBus
from gitlog_backend.models import Commit, CommitRef, RepoInfo, Report
from gitlog_backend.services.reporting_session import GenerationInProgressError, ReportingSession

CHANNEL = "report-generation-progress"
NOW = 1_700_000_000


class _MemoryStorage:
    def __init__(self) -> None:
        self.blobs: dict[str, dict] = {}

    async def get(self, store_name):
        return copy.deepcopy(self.blobs.get(store_name))

    async def put(self, store_name, payload):
        self.blobs[store_name] = copy.deepcopy(payload)


class _FakeRepoBackend:
    def __init__(self) -> None:
        self.commit_calls: list[tuple[str, int, int]] = []
        self.fail_commits = False
        self.branch = "main"
        self.total_commits = 1
        self.commits = {
            "/repos/alpha": [Commit(hash="a1", author="ann", timestamp=NOW - 100, message="feat: one")],
            "/repos/beta": [Commit(hash="b1", author="bob", timestamp=NOW - 50, message="fix: two")],
        }

    async def open_repository(self, path):
        if path not in self.commits:
            raise BackendError(f"Failed to open Git repository: {path}")
        return RepoInfo(path=path, name=path.split("/")[-1], branch=self.branch, totalCommits=self.total_commits)

    async def get_commits(self, path, from_ts, to_ts):
        self.commit_calls.append((path, from_ts, to_ts))
        if self.fail_commits:
            raise BackendError("git log failed")
        return list(self.commits[path])

    async def get_commit_diff(self, path, commit_hash):
        return f"diff {commit_hash}"


class _FakeReportBackend:
    def __init__(self, bus: ProgressBus) -> None:
        self.bus = bus
        self.calls: list[tuple[str, list, str | None]] = []
        self.gate: asyncio.Event | None = None
        self.error: Exception | None = None

    async def generate_report(self, kind, commit_groups, template_id=None):
        self.calls.append((kind, commit_groups, template_id))
        for chunk in ("# Wee", "kly"):
            self.bus.publish(CHANNEL, chunk)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        commits = [c for group in commit_groups for c in group.commits]
        return Report(type=kind, content="# Weekly", commits=commits, generatedAt=NOW)


class ReportingSessionTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.bus = ProgressBus()
        self.storage = _MemoryStorage()
        self.repo_backend = _FakeRepoBackend()
        self.report_backend = _FakeReportBackend(self.bus)
        self.session = ReportingSession(
            self.repo_backend,
            self.report_backend,
            self.bus,
            storage=self.storage,
            clock=lambda: NOW,
        )
        self.session.stream.channel = CHANNEL

    async def asyncTearDown(self) -> None:
        await self.session.close()

    async def test_open_repository_activates_and_switches(self) -> None:
        item = await self.session.open_repository("/repos/alpha")

        self.assertEqual(self.session.repos.current_repo_id, item.id)
        self.assertEqual(self.session.repos.current_view.repoInfo.name, "alpha")
        self.assertEqual([c.hash for c in self.session.repos.current_view.commits], ["a1"])
        path, from_ts, to_ts = self.repo_backend.commit_calls[0]
        self.assertEqual(to_ts - from_ts, 30 * 24 * 60 * 60)

    async def test_open_failure_leaves_state_untouched(self) -> None:
        with self.assertRaises(BackendError):
            await self.session.open_repository("/repos/missing")

        self.assertEqual(self.session.repos.history, [])
        self.assertIsNone(self.session.repos.current_repo_id)

    async def test_commit_fetch_failure_does_not_register_repository(self) -> None:
        self.repo_backend.fail_commits = True

        with self.assertRaises(BackendError):
            await self.session.open_repository("/repos/alpha")

        self.assertEqual(self.session.repos.history, [])
        self.assertEqual(self.session.repos.active_repos, {})
        self.assertIsNone(self.session.repos.current_repo_id)
        self.assertNotIn("repo-session", self.storage.blobs)

    async def test_reopen_keeps_history_metadata_and_refreshes_active_info(self) -> None:
        first = await self.session.open_repository("/repos/alpha")
        self.repo_backend.branch = "release"
        self.repo_backend.total_commits = 7

        second = await self.session.open_repository("/repos/alpha")

        self.assertEqual(second.id, first.id)
        self.assertEqual(second.branch, "main")
        self.assertEqual(second.totalCommits, 1)
        info = self.session.repos.current_view.repoInfo
        self.assertEqual(info.branch, "release")
        self.assertEqual(info.totalCommits, 7)

    async def test_generate_report_records_current_and_clears_selection(self) -> None:
        item = await self.session.open_repository("/repos/alpha")
        self.session.selection.toggle(CommitRef(hash="a1", repoId=item.id))

        report = await self.session.generate_report("weekly")

        self.assertTrue(report.id)
        self.assertEqual(report.repoIds, [item.id])
        self.assertEqual(self.session.reports.current_report_id, report.id)
        self.assertEqual(len(self.session.selection), 0)
        self.assertFalse(self.session.reports.is_generating)
        self.assertEqual(self.session.stream.text, "# Weekly")
        self.assertFalse(self.session.stream.active)

    async def test_second_generation_is_rejected_while_running(self) -> None:
        item = await self.session.open_repository("/repos/alpha")
        self.session.selection.toggle(CommitRef(hash="a1", repoId=item.id))
        self.report_backend.gate = asyncio.Event()

        first = asyncio.create_task(self.session.generate_report("weekly"))
        await asyncio.sleep(0)
        self.assertTrue(self.session.reports.is_generating)

        with self.assertRaises(GenerationInProgressError):
            await self.session.generate_report("monthly")

        self.report_backend.gate.set()
        await first
        self.assertEqual(len(self.report_backend.calls), 1)

    async def test_backend_failure_resets_generating_and_keeps_selection(self) -> None:
        item = await self.session.open_repository("/repos/alpha")
        self.session.selection.toggle(CommitRef(hash="a1", repoId=item.id))
        self.report_backend.error = BackendError("API error 500: boom")

        with self.assertRaises(BackendError):
            await self.session.generate_report("weekly")

        self.assertFalse(self.session.reports.is_generating)
        self.assertFalse(self.session.stream.active)
        self.assertEqual(self.session.reports.history, [])
        self.assertEqual(len(self.session.selection), 1)

    async def test_selection_from_closed_repos_only_is_rejected(self) -> None:
        await self.session.open_repository("/repos/alpha")
        self.session.selection.toggle(CommitRef(hash="zz", repoId="repo-gone"))

        with self.assertRaises(ValueError):
            await self.session.generate_report("weekly")
        self.assertEqual(self.report_backend.calls, [])

    async def test_report_groups_commits_per_repository(self) -> None:
        alpha = await self.session.open_repository("/repos/alpha")
        beta = await self.session.open_repository("/repos/beta")
        self.session.selection.toggle(CommitRef(hash="a1", repoId=alpha.id))
        self.session.selection.toggle(CommitRef(hash="b1", repoId=beta.id))

        await self.session.generate_report("monthly", "builtin-monthly")

        kind, groups, template_id = self.report_backend.calls[0]
        self.assertEqual(kind, "monthly")
        self.assertEqual(template_id, "builtin-monthly")
        self.assertEqual({g.repoName: [c.hash for c in g.commits] for g in groups}, {"alpha": ["a1"], "beta": ["b1"]})

    async def test_close_repository_prunes_selection(self) -> None:
        alpha = await self.session.open_repository("/repos/alpha")
        beta = await self.session.open_repository("/repos/beta")
        self.session.selection.toggle(CommitRef(hash="a1", repoId=alpha.id))
        self.session.selection.toggle(CommitRef(hash="b1", repoId=beta.id))

        self.assertTrue(self.session.close_repository(alpha.id))

        self.assertEqual(self.session.selection.selected, [CommitRef(hash="b1", repoId=beta.id)])
        self.assertIsNotNone(self.session.repos.get_history_item(alpha.id))

    async def test_load_diff_goes_through_cache(self) -> None:
        item = await self.session.open_repository("/repos/alpha")

        diff = await self.session.load_diff(CommitRef(hash="a1", repoId=item.id))

        self.assertEqual(diff, "diff a1")
        self.assertEqual(len(self.session.diffs), 1)

    async def test_restore_rebuilds_current_repository(self) -> None:
        item = await self.session.open_repository("/repos/alpha")

        restored = ReportingSession(self.repo_backend, self.report_backend, self.bus, storage=self.storage, clock=lambda: NOW)
        await restored.restore()

        self.assertEqual(restored.repos.current_repo_id, item.id)
        self.assertEqual([c.hash for c in restored.repos.current_view.commits], ["a1"])

    async def test_restore_survives_commit_fetch_failure(self) -> None:
        item = await self.session.open_repository("/repos/alpha")
        self.repo_backend.fail_commits = True

        restored = ReportingSession(self.repo_backend, self.report_backend, self.bus, storage=self.storage, clock=lambda: NOW)
        await restored.restore()

        self.assertEqual(restored.repos.current_repo_id, item.id)
        self.assertIsNone(restored.repos.current_view)


if __name__ == "__main__":
    unittest.main()
