"""
Podcast RSS generation for assembled programs.
"""

from datetime import datetime, timezone
from typing import Optional

from feedgen.feed import FeedGenerator

from auvio_podcast.schemas.auvio import Episode, Program

AUVIO_SITE_URL = "https://auvio.rtbf.be"
COPYRIGHT = (
    "Copyright: (C)RTBF Radio, Television Belge Francophone, "
    "plus d'infos: https://www.rtbf.be/cgu/"
)
AUTHOR = "RTBF"
OWNER_EMAIL = "podcast@rtbf.be"


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _pick_image(images: Optional[dict]) -> Optional[str]:
    if not images:
        return None
    for size in ("l", "m", "xl", "s", "xs"):
        if images.get(size):
            return images[size]
    return None


def _itunes_image_allowed(url: str) -> bool:
    # iTunes only accepts jpg and png artwork
    return url.endswith((".jpg", ".jpeg", ".png"))


def _episode_description(episode: Episode) -> str:
    return (episode.description or "").strip() or (episode.subtitle or "").strip()


def build_podcast_xml(program: Program, base_url: str) -> bytes:
    """Render a program and its resolved episodes as a podcast RSS document"""
    fg = FeedGenerator()
    fg.load_extension('podcast')

    title = (program.title or "").strip()
    description = (program.description or "").strip() or title
    fg.title(title)
    fg.link(href=f"{base_url}{program.path}", rel='alternate')
    fg.description(description)
    fg.language('fr')
    fg.copyright(COPYRIGHT)
    fg.generator('auvio-podcast')

    fg.podcast.itunes_author(AUTHOR)
    fg.podcast.itunes_owner(name=AUTHOR, email=OWNER_EMAIL)
    fg.podcast.itunes_summary(description)
    fg.podcast.itunes_explicit('no')
    fg.podcast.itunes_block(False)
    fg.podcast.itunes_type('episodic')

    image = _pick_image(program.background)
    if image:
        fg.image(url=image, title=title, link=f"{base_url}{program.path}")
        if _itunes_image_allowed(image):
            fg.podcast.itunes_image(image)

    if program.category and program.category.label:
        fg.category(term=program.category.label)

    published_dates = [_parse_date(episode.publishedFrom) for episode in program.episodes]
    published_dates = [date for date in published_dates if date]
    # newest episode rather than now, so unchanged content renders identically
    latest = max(published_dates) if published_dates else datetime.now(timezone.utc)
    fg.pubDate(latest)
    fg.lastBuildDate(latest)

    for episode in program.episodes:
        if episode.enclosure is None:
            raise ValueError(f"Episode {episode.assetId} has no resolved enclosure")

        link = f"{AUVIO_SITE_URL}{episode.path or ''}"
        episode_description = _episode_description(episode)

        # append keeps catalog order in the rendered document
        fe = fg.add_entry(order='append')
        fe.id(link)
        fe.guid(link, permalink=False)
        fe.title((episode.subtitle or episode.title or "").strip())
        fe.link(href=link)
        fe.description(episode_description or title)
        published = _parse_date(episode.publishedFrom)
        if published:
            fe.pubDate(published)
        fe.enclosure(
            episode.enclosure.url,
            str(episode.enclosure.lengthBytes),
            episode.enclosure.contentType,
        )
        fe.author(name=AUTHOR, email=OWNER_EMAIL)
        fe.podcast.itunes_summary(episode_description)
        fe.podcast.itunes_explicit('no')
        fe.podcast.itunes_episode_type('full')
        if episode.duration:
            fe.podcast.itunes_duration(int(round(episode.duration)))
        episode_image = _pick_image(episode.illustration)
        if episode_image and _itunes_image_allowed(episode_image):
            fe.podcast.itunes_image(episode_image)

    return fg.rss_str(pretty=True)
