import asyncio

from wa_gateway.services.event_bus import EventBus
from wa_gateway.services.events import ReconnectRequested, SessionResetRequested


class TestEventBus:
    def test_events_are_dispatched_in_publish_order(self):
        seen = []

        async def dispatch(event):
            seen.append(event)

        async def scenario():
            bus = EventBus(dispatch)
            bus.start()
            bus.publish(ReconnectRequested(source="a"))
            bus.publish(SessionResetRequested(reason="b"))
            bus.publish(ReconnectRequested(source="c"))
            await bus.stop()
            return bus

        bus = asyncio.run(scenario())

        assert [getattr(e, "source", None) or e.reason for e in seen] == ["a", "b", "c"]
        assert bus.running is False

    def test_dispatch_error_does_not_stop_loop(self):
        seen = []

        async def dispatch(event):
            if event.source == "bad":
                raise RuntimeError("handler failed")
            seen.append(event.source)

        async def scenario():
            bus = EventBus(dispatch)
            bus.start()
            bus.publish(ReconnectRequested(source="bad"))
            bus.publish(ReconnectRequested(source="good"))
            await bus.stop()

        asyncio.run(scenario())

        assert seen == ["good"]

    def test_drain_handles_events_published_during_dispatch(self):
        seen = []

        async def scenario():
            bus = None

            async def dispatch(event):
                seen.append(event.source)
                if event.source == "first":
                    bus.publish(ReconnectRequested(source="follow-up"))

            bus = EventBus(dispatch)
            bus.publish(ReconnectRequested(source="first"))
            return await bus.drain()

        handled = asyncio.run(scenario())

        assert handled == 2
        assert seen == ["first", "follow-up"]

    def test_stop_without_start_is_noop(self):
        async def dispatch(event):
            pass

        asyncio.run(EventBus(dispatch).stop())
