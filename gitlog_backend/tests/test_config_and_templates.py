import copy
import unittest

from gitlog_backend.models import AppConfig, ClaudeProvider, OpenAIProvider, ProxyConfig
from gitlog_backend.stores.config_store import ConfigStore
from gitlog_backend.stores.template_store import TemplateStore


class _MemoryStorage:
    def __init__(self) -> None:
        self.blobs: dict[str, dict] = {}

    async def get(self, store_name):
        return copy.deepcopy(self.blobs.get(store_name))

    async def put(self, store_name, payload):
        self.blobs[store_name] = copy.deepcopy(payload)


class ConfigStoreTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.storage = _MemoryStorage()
        self.store = ConfigStore(self.storage)

    async def test_save_rejects_incomplete_provider(self) -> None:
        with self.assertRaises(ValueError):
            await self.store.save_config(AppConfig(llm_provider=OpenAIProvider(api_key="  ")))
        self.assertNotIn("app-config-v2", self.storage.blobs)

    async def test_saved_provider_round_trips_through_tag(self) -> None:
        cfg = AppConfig(llm_provider=ClaudeProvider(api_key="sk-ant"), timezone="Asia/Shanghai")
        await self.store.save_config(cfg)

        reloaded = ConfigStore(self.storage)
        await reloaded.load()

        self.assertIsInstance(reloaded.config.llm_provider, ClaudeProvider)
        self.assertEqual(reloaded.config.llm_provider.api_key, "sk-ant")
        self.assertEqual(reloaded.config.timezone, "Asia/Shanghai")

    async def test_proxy_url_only_when_enabled(self) -> None:
        await self.store.update_proxy(ProxyConfig(enabled=False, url="http://127.0.0.1:7890"))
        self.assertIsNone(self.store.proxy_url)

        await self.store.update_proxy(ProxyConfig(enabled=True, url="http://127.0.0.1:7890"))
        self.assertEqual(self.store.proxy_url, "http://127.0.0.1:7890")

    async def test_partial_updates_keep_other_fields(self) -> None:
        await self.store.update_provider(ClaudeProvider(api_key="draft"))
        await self.store.update_export_format("pdf")
        await self.store.update_timezone("Europe/Berlin")

        self.assertEqual(self.store.config.exportFormat, "pdf")
        self.assertEqual(self.store.config.timezone, "Europe/Berlin")
        self.assertEqual(self.storage.blobs["app-config-v2"]["exportFormat"], "pdf")
        self.assertEqual(self.storage.blobs["app-config-v2"]["llm_provider"]["type"], "claude")


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        self.now += 1
        return self.now


class TemplateStoreTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.storage = _MemoryStorage()
        self.store = TemplateStore(self.storage, clock=_Clock())

    async def test_builtins_are_listed_and_immutable(self) -> None:
        ids = [t.id for t in self.store.list_templates()]
        self.assertIn("builtin-weekly", ids)
        self.assertIn("builtin-monthly", ids)

        with self.assertRaises(ValueError):
            await self.store.update_template("builtin-weekly", content="x")
        with self.assertRaises(ValueError):
            await self.store.delete_template("builtin-monthly")

    async def test_builtin_content_uses_prompt_placeholders(self) -> None:
        content = self.store.get_template("builtin-weekly").content

        for key in ("{date_range}", "{total_commits}", "{commits}"):
            self.assertIn(key, content)

    async def test_custom_templates_persist_newest_first(self) -> None:
        first = await self.store.create_template("Standup", "{commits}")
        second = await self.store.create_template("Retro", "{date_range}")

        reloaded = TemplateStore(self.storage)
        await reloaded.load()

        self.assertEqual([t.id for t in reloaded.list_templates()[:2]], [second.id, first.id])
        self.assertFalse(reloaded.get_template(first.id).isBuiltin)

    async def test_update_and_delete_custom_template(self) -> None:
        created = await self.store.create_template("Standup", "{commits}")

        updated = await self.store.update_template(created.id, name="Daily")
        self.assertEqual(updated.name, "Daily")
        self.assertGreater(updated.updatedAt, updated.createdAt)

        await self.store.delete_template(created.id)
        with self.assertRaises(KeyError):
            self.store.get_template(created.id)

    async def test_unknown_template_raises_key_error(self) -> None:
        with self.assertRaises(KeyError):
            self.store.get_template("nope")
        with self.assertRaises(KeyError):
            await self.store.delete_template("nope")


if __name__ == "__main__":
    unittest.main()
