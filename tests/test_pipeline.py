import threading
import time

import pytest

from auvio_podcast.config.settings import Settings
from auvio_podcast.errors import DeadlineExceededError, ExtractionError, NetworkError, ValidationError
from auvio_podcast.providers.auvio import AuvioProgramPage
from auvio_podcast.providers.program import ProgramPipeline
from auvio_podcast.schemas.auvio import Episode
from auvio_podcast.utils.cache import InMemoryCache

from conftest import (
    EPISODES,
    MEDIA_LIST_URL,
    PAGE_URL,
    PROGRAM_CONTENT,
    PROGRAM_PATH,
    build_next_data,
    build_program_page,
    entitlement_url,
    media_url,
)


@pytest.fixture
def pipeline(settings, credentials_loader):
    return ProgramPipeline(InMemoryCache(), settings=settings, credentials_loader=credentials_loader)


def _count(requests_mock, url):
    return sum(1 for request in requests_mock.request_history if request.url.split("?")[0] == url)


def test_get_program(pipeline, mock_auvio):
    program = pipeline.get_program(PROGRAM_PATH, year=2024)

    assert program.title == "La semaine des 5 heures"
    assert program.path == PROGRAM_PATH
    assert program.media is None
    assert [episode.assetId for episode in program.episodes] == [e["assetId"] for e in EPISODES]
    for episode in program.episodes:
        assert episode.enclosure.url.endswith(".mp3")
        assert episode.enclosure.contentType == "audio/mpeg"
        assert episode.enclosure.lengthBytes > 0


def test_media_list_query(pipeline, mock_auvio):
    pipeline.get_program(PROGRAM_PATH, year=2023)

    request = next(r for r in mock_auvio.request_history if r.url.startswith(MEDIA_LIST_URL))
    assert request.qs["_page"] == ["1"]
    assert request.qs["_limit"] == ["20"]
    assert request.qs["context[programid]"] == ["1451"]
    assert request.qs["context[year]"] == ["2023"]
    assert request.headers["Authorization"] == "Bearer mock_access_token"


def test_entitlement_uses_session_token(pipeline, mock_auvio):
    pipeline.get_program(PROGRAM_PATH)

    request = next(r for r in mock_auvio.request_history if r.url == entitlement_url(EPISODES[0]["assetId"]))
    assert request.headers["Authorization"] == "Bearer mock_session_token"


def test_order_is_kept_when_later_episodes_resolve_first(settings, credentials_loader, mock_auvio):
    def slow_entitlement(request, context):
        time.sleep(0.2)
        return {"formats": [{"mediaLocator": media_url(EPISODES[0]["assetId"])}]}

    mock_auvio.get(entitlement_url(EPISODES[0]["assetId"]), json=slow_entitlement)
    pipeline = ProgramPipeline(InMemoryCache(), settings=settings, credentials_loader=credentials_loader)

    program = pipeline.get_program(PROGRAM_PATH)
    assert [episode.id for episode in program.episodes] == ["3150002", "3150001"]


def test_results_are_cached_between_runs(pipeline, mock_auvio):
    first = pipeline.get_program(PROGRAM_PATH)
    second = pipeline.get_program(PROGRAM_PATH)

    assert first == second
    assert _count(mock_auvio, entitlement_url(EPISODES[0]["assetId"])) == 1
    assert _count(mock_auvio, media_url(EPISODES[1]["assetId"])) == 1
    # the episode list is always fetched fresh
    assert _count(mock_auvio, MEDIA_LIST_URL) == 2
    assert pipeline.store.get(f"programData:{PROGRAM_PATH}")["title"] == "La semaine des 5 heures"


def test_invalid_path_makes_no_requests(pipeline, requests_mock):
    with pytest.raises(ValidationError):
        pipeline.get_program("/emission/no-id-here")
    assert requests_mock.request_history == []


def test_page_fetch_failure(pipeline, mock_auvio):
    mock_auvio.get(PAGE_URL, status_code=503)

    with pytest.raises(NetworkError) as exc_info:
        pipeline.get_program(PROGRAM_PATH)
    assert exc_info.value.status_code == 503


def test_one_failed_enclosure_fails_the_program(pipeline, mock_auvio):
    mock_auvio.get(entitlement_url(EPISODES[1]["assetId"]), status_code=404, json={"message": "NOT_ENTITLED"})

    with pytest.raises(NetworkError) as exc_info:
        pipeline.get_program(PROGRAM_PATH)
    assert exc_info.value.status_code == 404


def test_entitlement_without_formats(pipeline, mock_auvio):
    mock_auvio.get(entitlement_url(EPISODES[0]["assetId"]), json={"formats": []})

    with pytest.raises(NetworkError, match="no playback formats"):
        pipeline.get_program(PROGRAM_PATH)


def test_media_head_without_content_length(pipeline, mock_auvio):
    mock_auvio.head(media_url(EPISODES[0]["assetId"]), headers={"Content-Type": "audio/mpeg"})

    with pytest.raises(ExtractionError, match="content-length"):
        pipeline.get_program(PROGRAM_PATH)


def test_media_list_without_content(pipeline, mock_auvio):
    mock_auvio.get(MEDIA_LIST_URL, json={"data": {}})

    with pytest.raises(ExtractionError, match="data.content"):
        pipeline.get_program(PROGRAM_PATH)


def test_empty_media_list(pipeline, mock_auvio):
    mock_auvio.get(MEDIA_LIST_URL, json={"data": {"content": []}})

    assert pipeline.get_program(PROGRAM_PATH).episodes == []


def test_deadline_exceeded(credentials_loader, mock_auvio):
    def stalled_entitlement(request, context):
        time.sleep(1.5)
        return {"formats": [{"mediaLocator": media_url(EPISODES[0]["assetId"])}]}

    for episode in EPISODES:
        mock_auvio.get(entitlement_url(episode["assetId"]), json=stalled_entitlement)
    settings = Settings(cache_backend="memory", pipeline_deadline=0.5, enclosure_workers=2)
    pipeline = ProgramPipeline(InMemoryCache(), settings=settings, credentials_loader=credentials_loader)

    with pytest.raises(DeadlineExceededError):
        pipeline.get_program(PROGRAM_PATH)

    # workers are joined before the failure reaches the caller
    alive = [thread.name for thread in threading.enumerate() if thread.name.startswith("enclosure")]
    assert alive == []
    # the cancelled session issues no further requests
    assert _count(mock_auvio, media_url(EPISODES[0]["assetId"])) == 0


def test_cancelled_session_fails_fast(settings, credentials_loader, mock_auvio):
    with AuvioProgramPage(PROGRAM_PATH, settings=settings, credentials_loader=credentials_loader) as page:
        page.cancel()
        with pytest.raises(DeadlineExceededError):
            page.get_media_enclosure(Episode.model_validate(EPISODES[0]))


def test_incomplete_preview_does_not_fail_the_program(pipeline, mock_auvio):
    content = {**PROGRAM_CONTENT, "media": {"id": "3150002", "assetId": None}}
    mock_auvio.get(PAGE_URL, text=build_program_page(build_next_data(content=content)))

    program = pipeline.get_program(PROGRAM_PATH)
    assert program.media is None
    assert len(program.episodes) == len(EPISODES)
