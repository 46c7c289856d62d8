import asyncio
import json

import httpx
import pytest

from clients.visit_duration_tracker import HttpDurationReporter, VisitDurationTracker


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class RecordingReporter:
    def __init__(self, fail_times=0):
        self.sent = []
        self.fail_times = fail_times

    async def __call__(self, seconds):
        if self.fail_times:
            self.fail_times -= 1
            raise httpx.ConnectError("offline")
        self.sent.append(seconds)


@pytest.fixture
def clock():
    return FakeClock()


def test_periodic_ticks_report_whole_second_deltas(clock):
    reporter = RecordingReporter()
    tracker = VisitDurationTracker(reporter, clock=clock)

    async def scenario():
        tracker.start()
        clock.advance(60.7)
        await tracker.tick()
        clock.advance(59.6)
        await tracker.tick()

    asyncio.run(scenario())
    # The fractional remainder carries into the next delta
    assert reporter.sent == [60, 60]


def test_hidden_time_is_not_counted(clock):
    reporter = RecordingReporter()
    tracker = VisitDurationTracker(reporter, clock=clock)

    async def scenario():
        tracker.start()
        clock.advance(12)
        await tracker.visibility_changed(hidden=True)
        clock.advance(300)
        await tracker.tick()
        await tracker.visibility_changed(hidden=False)
        clock.advance(8)
        await tracker.unload()

    asyncio.run(scenario())
    assert reporter.sent == [12, 8]
    assert not tracker.visible


def test_sub_second_intervals_are_not_sent(clock):
    reporter = RecordingReporter()
    tracker = VisitDurationTracker(reporter, clock=clock)

    async def scenario():
        tracker.start()
        clock.advance(0.4)
        return await tracker.unload()

    assert asyncio.run(scenario()) == 0
    assert reporter.sent == []


def test_failed_flush_is_retried_by_the_next_one(clock):
    reporter = RecordingReporter(fail_times=1)
    tracker = VisitDurationTracker(reporter, clock=clock)

    async def scenario():
        tracker.start()
        clock.advance(60)
        first = await tracker.tick()
        clock.advance(60)
        second = await tracker.tick()
        return first, second

    assert asyncio.run(scenario()) == (0, 120)
    assert reporter.sent == [120]


def test_concurrent_flushes_do_not_double_report(clock):
    sent = []

    async def slow_reporter(seconds):
        await asyncio.sleep(0)
        sent.append(seconds)

    tracker = VisitDurationTracker(slow_reporter, clock=clock)

    async def scenario():
        tracker.start()
        clock.advance(30)
        await asyncio.gather(tracker.tick(), tracker.tick())

    asyncio.run(scenario())
    assert sent == [30]


def test_timer_flushes_while_visible(clock):
    reporter = RecordingReporter()
    tracker = VisitDurationTracker(reporter, interval_seconds=0.01, clock=clock)

    async def scenario():
        tracker.start()
        clock.advance(5)
        tracker.start_timer()
        for _ in range(50):
            await asyncio.sleep(0.01)
            if reporter.sent:
                break
        tracker.stop_timer()

    asyncio.run(scenario())
    assert reporter.sent[0] == 5


def test_http_reporter_posts_duration():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"success": True, "recorded": True})

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler),
                                     base_url="https://share.example.com") as client:
            await HttpDurationReporter(client, "abc123XYZ0")(42)

    asyncio.run(scenario())
    assert requests[0].url.path == "/api/page/abc123XYZ0/visit-duration"
    assert json.loads(requests[0].content) == {"duration": 42}


def test_http_reporter_raises_on_error_status():
    transport = httpx.MockTransport(lambda request: httpx.Response(401, json={"error": "Password required"}))

    async def scenario():
        async with httpx.AsyncClient(transport=transport, base_url="https://share.example.com") as client:
            await HttpDurationReporter(client, "locked")(10)

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(scenario())
