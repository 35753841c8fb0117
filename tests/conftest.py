"""Shared fixtures and feed builders for Wavelength tests."""

from pathlib import Path

import pytest

from wavelength.alerts import Alert, AlertSurface
from wavelength.fetchers.feed import FeedFetchResult
from wavelength.models import Episode, Podcast
from wavelength.store import KVStore

ITUNES_NS = "http://www.itunes.com/dtds/podcast-1.0.dtd"


def rss_item(title: str, audio_url: str | None, description: str = "", extra: str = "") -> str:
    enclosure = f'<enclosure url="{audio_url}" type="audio/mpeg" length="1000"/>' if audio_url else ""
    return (
        f"<item><title>{title}</title>"
        f"<description>{description}</description>"
        f"<pubDate>Mon, 01 Jan 2024 10:00:00 GMT</pubDate>"
        f"{enclosure}{extra}</item>"
    )


def make_rss(title: str = "Show A", items: list[str] | None = None, channel_extra: str = "") -> str:
    body = "".join(items or [])
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<rss version="2.0" xmlns:itunes="{ITUNES_NS}"><channel>'
        f"<title>{title}</title><link>https://feeds.example/</link>"
        f"<description>A podcast used in tests</description>"
        f"{channel_extra}{body}</channel></rss>"
    )


def episode(n: int, feed: str = "a") -> Episode:
    return Episode(
        title=f"Episode {n}",
        description=f"About episode {n}",
        pub_date="Mon, 01 Jan 2024 10:00:00 GMT",
        duration="30:00",
        audio_url=f"https://cdn.example/{feed}/ep{n}.mp3",
        image="",
    )


def podcast(title: str, *eps: Episode) -> Podcast:
    return Podcast(title=title, image="", episodes=tuple(eps))


class FakeFetcher:
    """Returns canned podcasts per feed URL; None means every strategy failed."""

    def __init__(self, feeds: dict[str, Podcast | None]) -> None:
        self.feeds = feeds
        self.calls: list[str] = []

    async def fetch_feed(self, url: str) -> FeedFetchResult:
        self.calls.append(url)
        pod = self.feeds.get(url)
        if pod is None:
            return FeedFetchResult(url=url, reason="all strategies failed")
        return FeedFetchResult(url=url, podcast=pod, strategy="direct")


class RecordingSurface(AlertSurface):
    """Alert surface that keeps every alert it is asked to show."""

    name = "recording"

    def __init__(self) -> None:
        self.alerts: list[Alert] = []

    async def show(self, alert: Alert) -> None:
        self.alerts.append(alert)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "wavelength.db"


@pytest.fixture
def store(db_path: Path) -> KVStore:
    return KVStore(db_path)


@pytest.fixture
def surface() -> RecordingSurface:
    return RecordingSurface()
