"""Tests for the progress channel."""

import asyncio

from hologram.schemas.photo import ScanEvent, ScanEventType, ScanPhase, ScanProgress
from hologram.workers.progress import FINISHED_SCAN_HISTORY, ProgressChannel


def _event(scan_id: str, current: int, event=ScanEventType.PROGRESS) -> ScanEvent:
    phase = ScanPhase.EXTRACTING if event == ScanEventType.PROGRESS else ScanPhase.COMPLETE
    return ScanEvent(event=event, progress=ScanProgress(scan_id=scan_id, current=current, phase=phase))


def test_stream_ends_after_terminal_event() -> None:
    async def run():
        channel = ProgressChannel()
        subscription = channel.subscribe()
        channel.publish(_event("s1", 1))
        channel.publish(_event("s1", 2))
        channel.publish(_event("s1", 2, ScanEventType.COMPLETE))
        channel.publish(_event("s1", 3))
        events = [event async for event in subscription]
        return channel, subscription, events

    channel, subscription, events = asyncio.run(run())

    assert [e.progress.current for e in events] == [1, 2, 2]
    assert events[-1].event == ScanEventType.COMPLETE
    assert subscription.closed
    assert channel.subscriber_count == 0


def test_full_queue_drops_progress_but_keeps_terminal() -> None:
    async def run():
        channel = ProgressChannel(max_queue_size=2)
        subscription = channel.subscribe()
        for i in range(1, 6):
            channel.publish(_event("s1", i))
        channel.publish(_event("s1", 5, ScanEventType.COMPLETE))
        return subscription, [event async for event in subscription]

    subscription, events = asyncio.run(run())

    assert events[-1].event == ScanEventType.COMPLETE
    assert len(events) == 2
    assert subscription.dropped == 4


def test_closing_releases_a_waiting_consumer() -> None:
    async def run():
        channel = ProgressChannel()
        subscription = channel.subscribe()

        async def consume():
            return [event async for event in subscription]

        consumer = asyncio.create_task(consume())
        await asyncio.sleep(0)
        subscription.close()
        return channel, await consumer

    channel, events = asyncio.run(run())

    assert events == []
    assert channel.subscriber_count == 0


def test_context_manager_unsubscribes() -> None:
    async def run():
        channel = ProgressChannel()
        async with channel.subscribe():
            assert channel.subscriber_count == 1
        return channel

    assert asyncio.run(run()).subscriber_count == 0


def test_finished_scan_history_is_bounded() -> None:
    async def run():
        channel = ProgressChannel()
        for n in range(FINISHED_SCAN_HISTORY * 3):
            channel.publish(_event(f"scan-{n}", 1, ScanEventType.COMPLETE))

        subscription = channel.subscribe()
        last = f"scan-{FINISHED_SCAN_HISTORY * 3 - 1}"
        channel.publish(_event(last, 2))
        channel.publish(_event("next", 1))
        subscription.close()
        return channel, [event async for event in subscription]

    channel, events = asyncio.run(run())

    assert len(channel._finished_scans) == FINISHED_SCAN_HISTORY
    assert [e.progress.scan_id for e in events] == ["next"]
