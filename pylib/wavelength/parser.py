'''Feed document parser (RSS 2.0 / Atom) using feedparser.'''

import io
import re

import feedparser
import structlog

from wavelength.models import DESCRIPTION_LIMIT, Episode, Podcast, dedupe_episodes

logger = structlog.get_logger()

TAG_PATTERN = re.compile(r'<[^>]*>')
ITUNES_IMAGE_PATTERN = re.compile(r'<itunes:image[^>]+href=["\']([^"\']+)["\']')


def _text(node, key: str) -> str:
    value = node.get(key)
    return value.strip() if isinstance(value, str) else ''


def _href_image(node) -> str:
    '''href of the first image-like element (itunes:image, image, ...) on node.'''
    for key, value in node.items():
        if 'image' in key and isinstance(value, dict) and value.get('href'):
            return value['href']
    return ''


def _feed_image(feed, raw: str) -> str:
    image = _href_image(feed)
    if image:
        return image
    nested = feed.get('image')
    if isinstance(nested, dict) and nested.get('url'):
        return nested['url'].strip()
    if feed.get('logo'):
        return feed['logo']
    # Lenient parsers can miss namespaced elements; fall back to the raw text
    m = ITUNES_IMAGE_PATTERN.search(raw)
    return m.group(1) if m else ''


def _entry_image(entry) -> str:
    image = _href_image(entry)
    if image:
        return image
    thumbs = entry.get('media_thumbnail') or []
    if thumbs and thumbs[0].get('url'):
        return thumbs[0]['url']
    return ''


def clean_description(text: str) -> str:
    '''Strip markup, trim, and cut to the stored description length.'''
    return TAG_PATTERN.sub('', text or '').strip()[:DESCRIPTION_LIMIT]


def _episode(entry, podcast_image: str) -> Episode | None:
    enclosures = entry.get('enclosures') or []
    audio_url = ''
    for enc in enclosures:
        audio_url = (enc.get('href') or enc.get('url') or '').strip()
        if audio_url:
            break
    if not audio_url:
        return None
    return Episode(
        title=_text(entry, 'title'),
        description=clean_description(entry.get('description') or entry.get('summary') or ''),
        pub_date=_text(entry, 'published') or _text(entry, 'updated'),
        duration=_text(entry, 'itunes_duration'),
        audio_url=audio_url,
        image=_entry_image(entry) or podcast_image,
    )


def parse_feed(raw: str) -> Podcast | None:
    '''
    Parse a raw feed document into a Podcast.

    Returns None when the document has no channel/feed root. Items without
    an audio enclosure, or that fail to parse, are skipped.
    '''
    # A file object keeps feedparser from treating the text as a URL or path
    parsed = feedparser.parse(io.BytesIO(raw.encode('utf-8')))
    if not parsed.get('version'):
        logger.debug('no feed root element', bozo=bool(parsed.get('bozo')))
        return None
    feed = parsed.get('feed', {})
    image = _feed_image(feed, raw)
    episodes: list[Episode] = []
    for entry in parsed.get('entries', []):
        try:
            ep = _episode(entry, image)
        except (AttributeError, KeyError, TypeError, IndexError) as e:
            logger.debug('skipping malformed item', error=str(e))
            continue
        if ep:
            episodes.append(ep)
    return Podcast(title=_text(feed, 'title'), image=image, episodes=tuple(dedupe_episodes(episodes)))
