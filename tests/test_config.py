import json

import pytest

from auvio_podcast.config.settings import Settings, load_settings
from auvio_podcast.errors import ConfigurationError
from auvio_podcast.utils.credentials import get_auvio_credentials, has_auvio_credentials
from auvio_podcast.utils.deadline import Deadline
from auvio_podcast.errors import DeadlineExceededError


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "HOST", "PORT", "BASE_URL", "DATA_PATH", "KV_STORE", "CACHE_BACKEND",
        "PROGRAM_CACHE_TTL", "ENCLOSURE_CACHE_TTL", "HTTP_TIMEOUT", "PIPELINE_DEADLINE",
        "ENCLOSURE_WORKERS", "AUVIO_EMAIL", "AUVIO_PASSWORD",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CREDENTIALS_JSON", "{}")
    return monkeypatch


def test_default_settings(clean_env):
    settings = load_settings()
    assert settings == Settings(kv_store="./data/store.db")
    assert settings.base_url == "http://127.0.0.1:3000"


def test_settings_from_env(clean_env):
    clean_env.setenv("PORT", "8080")
    clean_env.setenv("BASE_URL", "https://podcasts.example.org/")
    clean_env.setenv("DATA_PATH", "/var/lib/auvio")
    clean_env.setenv("CACHE_BACKEND", "memory")
    clean_env.setenv("PIPELINE_DEADLINE", "45.5")

    settings = load_settings()
    assert settings.port == 8080
    assert settings.base_url == "https://podcasts.example.org"
    assert settings.kv_store == "/var/lib/auvio/store.db"
    assert settings.cache_backend == "memory"
    assert settings.pipeline_deadline == 45.5


@pytest.mark.parametrize("name,value", [
    ("PORT", "http"),
    ("CACHE_BACKEND", "redis"),
    ("ENCLOSURE_WORKERS", "0"),
    ("HTTP_TIMEOUT", "soon"),
])
def test_invalid_settings(clean_env, name, value):
    clean_env.setenv(name, value)
    with pytest.raises(ConfigurationError):
        load_settings()


def test_credentials_from_env(clean_env):
    clean_env.setenv("AUVIO_EMAIL", "me@example.com")
    clean_env.setenv("AUVIO_PASSWORD", "hunter2")
    assert get_auvio_credentials() == ("me@example.com", "hunter2")


def test_credentials_from_document(clean_env):
    clean_env.setenv("CREDENTIALS_JSON", json.dumps({"auvio": {"login": "doc@example.com", "password": "pw"}}))
    assert get_auvio_credentials() == ("doc@example.com", "pw")


def test_missing_credentials(clean_env):
    assert has_auvio_credentials() is False
    with pytest.raises(ConfigurationError):
        get_auvio_credentials()


def test_deadline():
    assert Deadline().remaining() is None
    assert Deadline(10).timeout(15) <= 10

    deadline = Deadline(0)
    assert deadline.expired()
    with pytest.raises(DeadlineExceededError):
        deadline.check("Media list")

    cancelled = Deadline(60)
    cancelled.cancel()
    with pytest.raises(DeadlineExceededError, match="cancelled"):
        cancelled.check("Entitlement")
