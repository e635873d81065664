import unittest

from gitlog_backend.backends.progress import ProgressBus
from gitlog_backend.stores.stream import StreamAggregator

CHANNEL = "report-generation-progress"


class StreamAggregatorTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.bus = ProgressBus()
        self.stream = StreamAggregator(self.bus, CHANNEL)

    async def test_chunks_concatenate_in_arrival_order(self) -> None:
        await self.stream.begin()
        for chunk in ("A", "B", "C"):
            self.bus.publish(CHANNEL, chunk)

        self.assertEqual(self.stream.text, "ABC")

    async def test_begin_resets_buffer_and_reuses_subscription(self) -> None:
        await self.stream.begin()
        self.bus.publish(CHANNEL, "first")
        self.stream.finish()

        await self.stream.begin()
        self.assertEqual(self.stream.text, "")
        self.bus.publish(CHANNEL, "second")

        self.assertEqual(self.stream.text, "second")
        self.assertEqual(self.bus.subscriber_count(CHANNEL), 1)

    async def test_chunks_outside_generation_are_dropped(self) -> None:
        await self.stream.begin()
        self.bus.publish(CHANNEL, "done")
        self.stream.finish()
        self.bus.publish(CHANNEL, "late")

        self.assertEqual(self.stream.text, "done")
        self.assertEqual(self.stream.snapshot(), {"text": "done", "active": False, "subscribed": True})

    async def test_subscribe_is_idempotent_and_unsubscribe_releases(self) -> None:
        self.assertTrue(await self.stream.subscribe())
        self.assertFalse(await self.stream.subscribe())
        self.assertEqual(self.bus.subscriber_count(CHANNEL), 1)

        await self.stream.unsubscribe()

        self.assertFalse(self.stream.subscribed)
        self.assertEqual(self.bus.subscriber_count(CHANNEL), 0)


if __name__ == "__main__":
    unittest.main()
