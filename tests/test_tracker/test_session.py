"""Tests for the session lifecycle state machine."""

import asyncio

import pytest

from focus_logger.exceptions import MetadataError
from focus_logger.metadata import MetadataProvider, StaticMetadataProvider
from focus_logger.models import PageMetadata
from focus_logger.privacy import PrivacyRules
from focus_logger.tracker import InMemoryDestinationSource, SessionTracker, is_same_content, watch_content_id


class FailingProvider(MetadataProvider):
    async def fetch(self, destination):
        raise MetadataError("injection blocked")


class SlowProvider(MetadataProvider):
    async def fetch(self, destination):
        await asyncio.sleep(10)
        return PageMetadata(title="never")


class CountingProvider(MetadataProvider):
    def __init__(self, title="Scraped"):
        self.calls = 0
        self.title = title

    async def fetch(self, destination):
        self.calls += 1
        return PageMetadata(title=f"{self.title} {self.calls}", description="desc")


@pytest.fixture
def source():
    return InMemoryDestinationSource()


@pytest.fixture
def make_tracker(source, buffer, clock):
    def _make(provider=None, rules=None, **kwargs):
        return SessionTracker(
            source,
            provider or StaticMetadataProvider(),
            buffer,
            rules=rules,
            min_duration=5,
            metadata_timeout=0.05,
            clock=clock,
            **kwargs,
        )

    return _make


@pytest.mark.asyncio
async def test_short_visit_is_discarded(make_tracker, source, buffer, clock):
    tracker = make_tracker()
    source.set(1, "http://a.com", title="A")
    assert await tracker.start(1) is True
    clock.advance(3)
    assert await tracker.end() is None
    assert await buffer.list() == []
    assert tracker.session is None


@pytest.mark.asyncio
async def test_visit_at_floor_is_logged(make_tracker, source, buffer, clock):
    tracker = make_tracker()
    source.set(1, "http://a.com", title="A")
    await tracker.start(1)
    clock.advance(6)
    entry = await tracker.end()
    assert entry is not None
    assert entry.duration == 6
    assert entry.domain == "a.com"
    assert entry.title == "A"
    assert entry.end_time - entry.start_time == 6000
    assert [e.url for e in await buffer.list()] == ["http://a.com"]


@pytest.mark.asyncio
async def test_end_twice_is_idempotent(make_tracker, source, buffer, clock):
    tracker = make_tracker()
    source.set(1, "http://a.com")
    await tracker.start(1)
    clock.advance(10)
    assert await tracker.end() is not None
    assert await tracker.end() is None
    assert await tracker.end() is None
    assert len(await buffer.list()) == 1


@pytest.mark.asyncio
async def test_emitted_entry_is_redacted_and_sanitized(make_tracker, source, clock):
    provider = StaticMetadataProvider({
        "http://a.com?token=XYZ&q=hi": PageMetadata(title="<b>Hi</b>  there", description="x" * 600),
    })
    tracker = make_tracker(provider)
    source.set(1, "http://a.com?token=XYZ&q=hi")
    await tracker.start(1)
    clock.advance(10)
    entry = await tracker.end()
    assert entry.url.endswith("token=REDACTED&q=hi")
    assert entry.title == "Hi there"
    assert len(entry.description) == 503


@pytest.mark.asyncio
@pytest.mark.parametrize("url", ["chrome://settings", "file:///tmp/x.html", "ftp://a.com", ""])
async def test_disallowed_urls_stay_idle(make_tracker, source, url):
    tracker = make_tracker()
    source.set(1, url)
    assert await tracker.start(1) is False
    assert tracker.session is None


@pytest.mark.asyncio
async def test_inactive_destination_stays_idle(make_tracker, source):
    tracker = make_tracker()
    source.set(1, "http://a.com", active=False)
    assert await tracker.start(1) is False


@pytest.mark.asyncio
async def test_blacklisted_domain_stays_idle(make_tracker, source):
    tracker = make_tracker(rules=PrivacyRules(custom_blocked_domains=["bank.com"]))
    source.set(1, "https://my.bank.com/login")
    assert await tracker.start(1) is False


@pytest.mark.asyncio
async def test_unresolvable_handle_recovers_to_idle(make_tracker, source, clock):
    tracker = make_tracker()
    source.set(1, "http://a.com")
    await tracker.start(1)
    assert await tracker.start(99) is False
    assert tracker.session is None


@pytest.mark.asyncio
async def test_none_handle_clears_session(make_tracker, source):
    tracker = make_tracker()
    source.set(1, "http://a.com")
    await tracker.start(1)
    assert await tracker.start(None) is False
    assert not tracker.is_active


@pytest.mark.asyncio
async def test_metadata_failure_falls_back_to_known_title(make_tracker, source):
    tracker = make_tracker(FailingProvider())
    source.set(1, "http://a.com", title="Tab title")
    await tracker.start(1)
    assert tracker.session.metadata == PageMetadata(title="Tab title", description="")


@pytest.mark.asyncio
async def test_metadata_timeout_falls_back(make_tracker, source):
    tracker = make_tracker(SlowProvider())
    source.set(1, "http://a.com", title="Tab title")
    await tracker.start(1)
    assert tracker.session.metadata.title == "Tab title"


@pytest.mark.asyncio
async def test_change_to_other_destination_ends_and_starts(make_tracker, source, buffer, clock):
    tracker = make_tracker()
    source.set(1, "http://a.com")
    source.set(2, "http://b.com")
    await tracker.start(1)
    clock.advance(8)
    entry = await tracker.handle_change(2)
    assert entry.url == "http://a.com"
    assert tracker.session.handle == 2
    assert tracker.session.start_time == clock.now


@pytest.mark.asyncio
async def test_same_url_update_keeps_start_time(make_tracker, source, clock):
    provider = CountingProvider()
    tracker = make_tracker(provider)
    source.set(1, "http://a.com")
    await tracker.start(1)
    started = tracker.session.start_time
    clock.advance(30)

    assert await tracker.handle_change(1) is None
    assert tracker.session.start_time == started
    assert tracker.session.metadata.title == "Scraped 2"


@pytest.mark.asyncio
async def test_same_session_refresh_skipped_while_loading(make_tracker, source):
    provider = CountingProvider()
    tracker = make_tracker(provider)
    source.set(1, "http://a.com")
    await tracker.start(1)
    source.set(1, "http://a.com", status="loading")
    await tracker.handle_change(1)
    assert provider.calls == 1
    assert tracker.session.metadata.title == "Scraped 1"


@pytest.mark.asyncio
async def test_same_session_refresh_ignores_empty_title(make_tracker, source):
    tracker = make_tracker(StaticMetadataProvider({"http://a.com": PageMetadata(title="")}))
    source.set(1, "http://a.com")
    await tracker.start(1)
    tracker.session.metadata = PageMetadata(title="Keep me")
    await tracker.handle_change(1)
    assert tracker.session.metadata.title == "Keep me"


@pytest.mark.asyncio
async def test_video_resume_params_are_same_session(make_tracker, source, clock):
    tracker = make_tracker()
    source.set(1, "https://www.youtube.com/watch?v=abc")
    await tracker.start(1)
    started = tracker.session.start_time
    clock.advance(20)
    source.set(1, "https://www.youtube.com/watch?v=abc&t=120s")
    assert await tracker.handle_change(1) is None
    assert tracker.session.start_time == started


@pytest.mark.asyncio
async def test_different_video_is_new_session(make_tracker, source, clock):
    tracker = make_tracker()
    source.set(1, "https://www.youtube.com/watch?v=abc")
    await tracker.start(1)
    clock.advance(20)
    source.set(1, "https://www.youtube.com/watch?v=xyz")
    entry = await tracker.handle_change(1)
    assert entry is not None
    assert tracker.session.url.endswith("v=xyz")


@pytest.mark.asyncio
async def test_end_and_restart_chunks_long_session(make_tracker, source, buffer, clock):
    tracker = make_tracker()
    source.set(1, "http://a.com", title="A")
    await tracker.start(1)
    clock.advance(900)
    entry = await tracker.end_and_restart()
    assert entry.duration == 900
    assert tracker.session.handle == 1
    assert tracker.session.start_time == clock.now
    assert tracker.session.metadata.title == "A"

    clock.advance(100)
    await tracker.end()
    entries = await buffer.list()
    assert len(entries) == 1
    assert entries[0].duration == 1000


@pytest.mark.asyncio
async def test_end_and_restart_when_idle_stays_idle(make_tracker):
    tracker = make_tracker()
    assert await tracker.end_and_restart() is None
    assert tracker.session is None


@pytest.mark.asyncio
async def test_buffer_change_callback_receives_size(make_tracker, source, clock):
    sizes = []
    tracker = make_tracker(on_buffer_change=sizes.append)
    source.set(1, "http://a.com")
    source.set(2, "http://b.com")
    await tracker.start(1)
    clock.advance(10)
    await tracker.handle_change(2)
    clock.advance(10)
    await tracker.end()
    assert sizes == [1, 2]


@pytest.mark.asyncio
async def test_concurrent_changes_never_overlap(make_tracker, source, clock):
    tracker = make_tracker()
    for h in range(5):
        source.set(h, f"http://site{h}.com")
    await asyncio.gather(*(tracker.handle_change(h) for h in range(5)))
    # Exactly one session, on the last handle processed.
    assert tracker.session is not None
    assert tracker.session.handle in range(5)


def test_watch_content_id():
    assert watch_content_id("https://www.youtube.com/watch?v=abc&t=5") == "youtube.com:abc"
    assert watch_content_id("https://youtube.com/feed") is None
    assert watch_content_id("https://example.com/watch?v=abc") is None


def test_is_same_content():
    assert is_same_content("http://a.com", "http://a.com")
    assert is_same_content("https://youtube.com/watch?v=1", "https://m.youtube.com/watch?v=1&t=9")
    assert not is_same_content("http://a.com", "http://b.com")


@pytest.mark.asyncio
async def test_current_snapshot(make_tracker, source, clock):
    tracker = make_tracker()
    assert tracker.current() is None
    source.set(1, "http://a.com", title="A")
    await tracker.start(1)
    clock.advance(4)
    snapshot = tracker.current()
    assert snapshot["url"] == "http://a.com"
    assert snapshot["title"] == "A"
    assert snapshot["duration"] == 4
