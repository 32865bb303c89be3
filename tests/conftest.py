import json

import pytest

from auvio_podcast.auth.auvio_auth import EXPOSURE_BASE_URL, GIGYA_BASE_URL, OAUTH_TOKEN_URL
from auvio_podcast.config.settings import Settings

PROGRAM_PATH = "/emission/la-semaine-des-5-heures-1451"
PAGE_URL = f"https://auvio.rtbf.be{PROGRAM_PATH}"
APP_SCRIPT_PATH = "/_next/static/chunks/pages/_app-4c3b1f0a9e.js"
APP_SCRIPT_URL = f"https://auvio.rtbf.be{APP_SCRIPT_PATH}"
API_VERSION = "v2.8"
MEDIA_LIST_URL = f"https://bff-service.rtbf.be/auvio/{API_VERSION}/widgets/18800"

MOCK_CREDENTIALS = ("test@example.com", "testpassword")

APP_BUNDLE = (
    '(self.webpackChunk_N_E=self.webpackChunk_N_E||[]).push([[2888],{1234:function(e,t,n){'
    'var r=n(5893);'
    'var cfg={RTBF:{apiVersion:o.env.VERSION}};'
    'var env={RTBF:{apiVersion:"' + API_VERSION + '",clientId:"auvio-web",'
    'clientSecret:"s3cr3t",authServerUrl:"https://auth-service.rtbf.be",'
    'bffServerUrl:"https://bff-service.rtbf.be",retries:3,debug:!1,'
    'features:[\'podcast\',`live`],},'
    '/* identity */GIGYA:{apiKey:"3_auvio-gigya-key",dataCenter:"eu1",enabled:!0,extra:void 0}};'
    'e.exports=env}}]);'
)

PROGRAM_CONTENT = {
    "id": 1451,
    "title": "La semaine des 5 heures",
    "description": "Le meilleur des 5 heures de la semaine",
    "category": {"id": 13, "label": "Humour", "path": "/categorie/humour-13"},
    "background": {
        "xs": "https://ds.static.rtbf.be/program/image/370x208/bg.jpg",
        "l": "https://ds.static.rtbf.be/program/image/1920x1080/bg.jpg",
    },
    "media": {
        "id": "3150002",
        "assetId": "preview-asset",
        "title": "La semaine des 5 heures",
        "subtitle": "Preview",
    },
}

EPISODES = [
    {
        "id": "3150002",
        "assetId": "a7f3e2b1c4d5",
        "title": "La semaine des 5 heures",
        "subtitle": "Episode du 8 mars",
        "description": "Les chroniques de la semaine",
        "publishedFrom": "2024-03-08T08:00:00Z",
        "duration": 3540,
        "path": "/media/la-semaine-des-5-heures-3150002",
        "illustration": {"l": "https://ds.static.rtbf.be/media/3150002.jpg"},
    },
    {
        "id": 3150001,
        "assetId": "b8e4f3c2d5e6",
        "title": "La semaine des 5 heures",
        "subtitle": "Episode du 1er mars",
        "description": "",
        "publishedFrom": "2024-03-01T08:00:00Z",
        "duration": 3498.6,
        "path": "/media/la-semaine-des-5-heures-3150001",
        "illustration": {"l": "https://ds.static.rtbf.be/media/3150001.webp"},
    },
]


def build_next_data(program_path=PROGRAM_PATH, content=None):
    query_key = f'page("{program_path.lstrip("/")}")'
    initial_state = {
        "api": {
            "queries": {
                query_key: {
                    "status": "fulfilled",
                    "data": {"status": 200, "data": {"content": content or PROGRAM_CONTENT}},
                }
            }
        }
    }
    return json.dumps({
        "props": {"pageProps": {"initialState": json.dumps(initial_state)}},
        "page": "/emission/[slug]",
    })


def build_program_page(next_data=None):
    return (
        "<!DOCTYPE html><html><head>"
        '<script src="/_next/static/chunks/webpack-1a2b.js" defer=""></script>'
        f'<script src="{APP_SCRIPT_PATH}" defer=""></script>'
        "</head><body><div id=\"__next\"></div>"
        f'<script id="__NEXT_DATA__" type="application/json">{next_data or build_next_data()}</script>'
        "</body></html>"
    )


def media_url(asset_id):
    return f"https://rtbf-audio.akamaized.net/{asset_id}/audio.mp3"


def entitlement_url(asset_id):
    return f"{EXPOSURE_BASE_URL}/entitlement/{asset_id}/play"


@pytest.fixture
def settings():
    return Settings(cache_backend="memory", pipeline_deadline=30, enclosure_workers=2)


@pytest.fixture
def credentials_loader():
    return lambda: MOCK_CREDENTIALS


@pytest.fixture
def mock_page(requests_mock):
    """Program page and its _app bundle"""
    requests_mock.get(PAGE_URL, text=build_program_page())
    requests_mock.get(APP_SCRIPT_URL, text=APP_BUNDLE)
    return requests_mock


@pytest.fixture
def mock_authentication(requests_mock):
    """Mocks the whole Gigya / RTBF / exposure handshake"""
    requests_mock.get(
        f"{GIGYA_BASE_URL}/accounts.webSdkBootstrap",
        json={"errorCode": 0, "statusCode": 200},
        headers={"Set-Cookie": "gmid=gmid.bootstrap; Path=/; Secure"},
    )
    requests_mock.post(
        f"{GIGYA_BASE_URL}/accounts.login",
        json={"errorCode": 0, "sessionInfo": {"login_token": "mock_login_token"}},
        headers={"Set-Cookie": "glt_3_auvio-gigya-key=mock_login_token; Path=/"},
    )
    requests_mock.post(f"{GIGYA_BASE_URL}/accounts.getJWT", json={"errorCode": 0, "id_token": "mock.id.token"})
    requests_mock.post(OAUTH_TOKEN_URL, json={"access_token": "mock_access_token", "token_type": "Bearer"})
    requests_mock.post(f"{EXPOSURE_BASE_URL}/auth/gigyaLogin", json={"sessionToken": "mock_session_token"})
    return requests_mock


@pytest.fixture
def mock_media(requests_mock):
    """Media list, entitlement and media HEAD responses for EPISODES"""
    requests_mock.get(MEDIA_LIST_URL, json={"data": {"id": "18800", "content": EPISODES}})
    for index, episode in enumerate(EPISODES):
        requests_mock.get(
            entitlement_url(episode["assetId"]),
            json={"formats": [{"format": "MP3", "mediaLocator": media_url(episode["assetId"])}]},
        )
        requests_mock.head(
            media_url(episode["assetId"]),
            headers={"Content-Type": "audio/mpeg", "Content-Length": str(56000000 + index)},
        )
    return requests_mock


@pytest.fixture
def mock_auvio(mock_page, mock_authentication, mock_media):
    return mock_page
