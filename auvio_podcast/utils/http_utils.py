"""
HTTP utilities for the pipeline's outbound calls.
One client per pipeline session; every call honours the session deadline
and turns failures into the pipeline error taxonomy.
"""

import json
import logging
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from auvio_podcast.errors import DeadlineExceededError, ExtractionError, NetworkError
from auvio_podcast.utils.deadline import Deadline

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"
)


class RobustHTTPClient:
    """HTTP client with deadline-aware timeouts and typed errors"""

    def __init__(self, timeout: float = 15, deadline: Optional[Deadline] = None, pool_size: int = 10):
        self.timeout = timeout
        self.deadline = deadline or Deadline()
        self.pool_size = pool_size
        self.session = self._create_session()

    def _create_session(self) -> requests.Session:
        """Create a requests session without automatic retries; callers retry whole pipelines"""
        session = requests.Session()
        adapter = HTTPAdapter(
            max_retries=Retry(total=0, read=False, raise_on_status=False),
            pool_connections=self.pool_size,
            pool_maxsize=self.pool_size,
        )
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers.update({'User-Agent': DEFAULT_USER_AGENT})
        return session

    def request(self, method: str, url: str, context: str = "", **kwargs) -> requests.Response:
        """
        Make an HTTP request and return the response if it is successful.

        Args:
            method: HTTP method (GET, POST, HEAD)
            url: Request URL
            context: Stage name used in logs and error messages
            **kwargs: Passed through to requests (params, data, json, headers...)

        Raises:
            DeadlineExceededError: deadline spent or session cancelled
            NetworkError: transport failure or non-success status
        """
        self.deadline.check(context)
        timeout = self.deadline.timeout(kwargs.pop('timeout', self.timeout))

        logger.debug(f"{context} - Making {method} request to {url}")
        try:
            response = self.session.request(method=method, url=url, timeout=timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            if self.deadline.expired():
                raise DeadlineExceededError(f"{context} - deadline exceeded", url=url) from e
            raise NetworkError(f"{context} - request timed out after {timeout:.1f}s", url=url) from e
        except requests.exceptions.RequestException as e:
            if self.deadline.cancelled:
                raise DeadlineExceededError(f"{context} - pipeline cancelled", url=url) from e
            raise NetworkError(f"{context} - request failed: {e}", url=url) from e

        logger.debug(f"{context} - Received response: {response.status_code} {response.reason}")
        if not response.ok:
            body = response.text[:200] if method.upper() != 'HEAD' else ''
            logger.warning(f"{context} - HTTP {response.status_code} for {url}: {body}")
            response.close()
            raise NetworkError(f"{context} failed", status_code=response.status_code, url=url)
        return response

    def parse_json(self, response: requests.Response, context: str = "") -> Any:
        """Decode a JSON body, reading it fully"""
        try:
            return response.json()
        except (json.JSONDecodeError, ValueError) as e:
            preview = response.text[:200]
            logger.error(f"{context} - JSON decode error: {e}; content preview: {preview}")
            raise ExtractionError(f"{context} - response is not valid JSON") from e

    def get_json(
        self,
        url: str,
        context: str = "",
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> Any:
        response = self.request("GET", url, context=context, headers=headers, params=params, **kwargs)
        return self.parse_json(response, context)

    def post_json(
        self,
        url: str,
        context: str = "",
        headers: Optional[Dict[str, str]] = None,
        data: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> Any:
        """POST form data (data) or a JSON document (json_data) and decode the JSON reply"""
        response = self.request("POST", url, context=context, headers=headers, data=data, json=json_data, **kwargs)
        return self.parse_json(response, context)

    def get_text(self, url: str, context: str = "", **kwargs) -> str:
        return self.request("GET", url, context=context, **kwargs).text

    def close(self):
        self.session.close()
