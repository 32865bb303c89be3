"""
Base provider class with common functionality.
A provider instance is one pipeline session: it owns the HTTP client,
the deadline and the memo table of everything it computes.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from auvio_podcast.config.settings import Settings
from auvio_podcast.schemas.auvio import Enclosure, Episode, Program
from auvio_podcast.utils.deadline import Deadline
from auvio_podcast.utils.http_utils import RobustHTTPClient, DEFAULT_USER_AGENT
from auvio_podcast.utils.memo import StageMemo


class BaseProvider(ABC):
    """
    Abstract base class for program page sessions.

    Provides common functionality:
    - Session-scoped HTTP client bound to the pipeline deadline
    - Browser-like default headers
    - Stage memo table
    - Cancellation and cleanup
    """

    # Subclasses should override these
    provider_name: str = "base"
    base_url: str = ""
    accept_language: str = "fr-FR,fr;q=0.9"

    def __init__(self, settings: Optional[Settings] = None, deadline: Optional[Deadline] = None):
        self.settings = settings or Settings()
        self.deadline = deadline or Deadline(self.settings.pipeline_deadline)
        self.http = RobustHTTPClient(
            timeout=self.settings.http_timeout,
            deadline=self.deadline,
            # one connection per enclosure worker plus the catalog/auth calls
            pool_size=self.settings.enclosure_workers + 2,
        )
        self.memo = StageMemo()

    @property
    def log_prefix(self) -> str:
        return f"[{self.provider_name}]"

    def _build_headers(self, auth_token: Optional[str] = None, **extra: str) -> Dict[str, str]:
        """Build standard browser-like headers, optionally with a bearer token."""
        headers = {
            "accept": "*/*",
            "accept-language": self.accept_language,
            "cache-control": "no-cache",
            "pragma": "no-cache",
            "Referer": self.base_url + "/",
            "Referrer-Policy": "strict-origin-when-cross-origin",
            "User-Agent": DEFAULT_USER_AGENT,
        }
        if auth_token:
            headers["authorization"] = f"Bearer {auth_token}"
        headers.update(extra)
        return headers

    def cancel(self):
        """Abort the session: later calls fail fast and pooled connections are dropped"""
        self.deadline.cancel()
        self.http.close()

    def close(self):
        self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @abstractmethod
    def get_program_data(self) -> Program:
        """Get program metadata from the program page"""
        pass

    @abstractmethod
    def get_media_list(self) -> List[Episode]:
        """Get the ordered episode list of the program"""
        pass

    @abstractmethod
    def get_media_url(self, episode: Episode) -> str:
        """Resolve a playable URL for an episode"""
        pass

    @abstractmethod
    def get_media_enclosure(self, episode: Episode) -> Enclosure:
        """Resolve the playable URL and read its headers of an episode"""
        pass
