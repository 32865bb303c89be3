import xml.etree.ElementTree as ET

import pytest

from auvio_podcast.schemas.auvio import Enclosure, Episode, Program
from auvio_podcast.utils.podcast_feed import build_podcast_xml

from conftest import EPISODES, PROGRAM_CONTENT, PROGRAM_PATH, media_url

ITUNES = "{http://www.itunes.com/dtds/podcast-1.0.dtd}"


def _program(with_enclosures=True):
    episodes = []
    for index, data in enumerate(EPISODES):
        episode = Episode.model_validate(data)
        if with_enclosures:
            episode = episode.model_copy(update={"enclosure": Enclosure(
                url=media_url(episode.assetId), contentType="audio/mpeg", lengthBytes=1000 + index,
            )})
        episodes.append(episode)
    program = Program.model_validate({**PROGRAM_CONTENT, "path": PROGRAM_PATH, "content": []})
    program.media = None
    program.episodes = episodes
    return program


def test_channel_metadata():
    channel = ET.fromstring(build_podcast_xml(_program(), "http://localhost:3000")).find("channel")

    assert channel.findtext("title") == "La semaine des 5 heures"
    assert channel.findtext("link") == f"http://localhost:3000{PROGRAM_PATH}"
    assert channel.findtext("language") == "fr"
    assert channel.findtext(f"{ITUNES}author") == "RTBF"
    assert channel.find(f"{ITUNES}image").get("href").endswith("1920x1080/bg.jpg")
    assert channel.findtext("category") == "Humour"


def test_items_keep_catalog_order_with_enclosures():
    items = ET.fromstring(build_podcast_xml(_program(), "http://localhost:3000")).findall("channel/item")

    assert [item.findtext("title") for item in items] == ["Episode du 8 mars", "Episode du 1er mars"]
    enclosure = items[0].find("enclosure")
    assert enclosure.get("url") == media_url(EPISODES[0]["assetId"])
    assert enclosure.get("length") == "1000"
    assert enclosure.get("type") == "audio/mpeg"
    assert items[0].findtext("guid") == "https://auvio.rtbf.be/media/la-semaine-des-5-heures-3150002"
    assert items[0].findtext(f"{ITUNES}duration") == "3540"
    assert items[1].findtext(f"{ITUNES}duration") == "3499"


def test_rendering_is_stable_for_unchanged_content():
    program = _program()
    xml = build_podcast_xml(program, "http://localhost:3000")
    assert build_podcast_xml(program, "http://localhost:3000") == xml

    channel = ET.fromstring(xml).find("channel")
    assert channel.findtext("lastBuildDate") == "Fri, 08 Mar 2024 08:00:00 +0000"


def test_webp_artwork_is_not_offered_to_itunes():
    items = ET.fromstring(build_podcast_xml(_program(), "http://localhost:3000")).findall("channel/item")

    assert items[0].find(f"{ITUNES}image") is not None
    assert items[1].find(f"{ITUNES}image") is None


def test_episode_without_enclosure_is_rejected():
    with pytest.raises(ValueError):
        build_podcast_xml(_program(with_enclosures=False), "http://localhost:3000")
