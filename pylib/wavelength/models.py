'''
Podcast library records, as stored in the key-value mirror and sent to clients.

Fields inside each episode use the web app's names (audioUrl, pubDate).
Podcasts are written with an "episodes" list; the app's own "eps" is
accepted on read.
'''

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

DESCRIPTION_LIMIT = 200


@dataclass(frozen=True)
class Episode:
    '''One playable episode. Identity is audio_url.'''

    title: str
    description: str
    pub_date: str
    duration: str
    audio_url: str
    image: str = ''

    def to_dict(self) -> dict[str, str]:
        return {
            'title': self.title,
            'description': self.description,
            'pubDate': self.pub_date,
            'duration': self.duration,
            'audioUrl': self.audio_url,
            'image': self.image,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Episode:
        return cls(
            title=str(data.get('title') or ''),
            description=str(data.get('description') or ''),
            pub_date=str(data.get('pubDate') or ''),
            duration=str(data.get('duration') or ''),
            audio_url=str(data.get('audioUrl') or ''),
            image=str(data.get('image') or ''),
        )


@dataclass(frozen=True)
class Podcast:
    '''A feed's parsed state. Replaced wholesale on refresh.'''

    title: str
    image: str = ''
    episodes: tuple[Episode, ...] = field(default_factory=tuple)

    def audio_urls(self) -> set[str]:
        return {ep.audio_url for ep in self.episodes}

    def to_dict(self) -> dict[str, Any]:
        return {
            'title': self.title,
            'image': self.image,
            'episodes': [ep.to_dict() for ep in self.episodes],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Podcast:
        # The web app stores the list as "eps"
        raw_eps = data.get('episodes')
        if raw_eps is None:
            raw_eps = data.get('eps')
        if not isinstance(raw_eps, list):
            raw_eps = []
        return cls(
            title=str(data.get('title') or ''),
            image=str(data.get('image') or ''),
            episodes=tuple(Episode.from_dict(e) for e in raw_eps if isinstance(e, dict)),
        )


Subscriptions = dict[str, Podcast]
PendingEpisodes = dict[str, list[Episode]]


def dedupe_episodes(episodes: Iterable[Episode]) -> list[Episode]:
    '''Drop later episodes whose audio_url was already seen. Order is kept.'''
    seen: set[str] = set()
    result: list[Episode] = []
    for ep in episodes:
        if ep.audio_url in seen:
            continue
        seen.add(ep.audio_url)
        result.append(ep)
    return result


def subscriptions_from_record(record: Any) -> Subscriptions:
    '''Decode the "pods" record. Anything that is not a mapping reads as empty.'''
    if not isinstance(record, dict):
        return {}
    return {url: Podcast.from_dict(pod) for url, pod in record.items() if isinstance(pod, dict)}


def subscriptions_to_record(subs: Subscriptions) -> dict[str, Any]:
    return {url: pod.to_dict() for url, pod in subs.items()}


def pending_from_record(record: Any) -> PendingEpisodes:
    '''Decode the "new_eps" record.'''
    if not isinstance(record, dict):
        return {}
    return {
        url: [Episode.from_dict(e) for e in eps if isinstance(e, dict)]
        for url, eps in record.items()
        if isinstance(eps, list)
    }


def pending_to_record(pending: PendingEpisodes) -> dict[str, Any]:
    return {url: [ep.to_dict() for ep in eps] for url, eps in pending.items()}
