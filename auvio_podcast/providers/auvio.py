#!/usr/bin/env python3
"""
Auvio provider implementation

One AuvioProgramPage is one pipeline session for one program path:
- fetches the server-rendered program page and the scripts it references
- recovers the RTBF/GIGYA constants from the Next.js _app bundle without running it
- reads program metadata from the __NEXT_DATA__ initial state
- authenticates through AuvioAuthenticator and resolves episode enclosures
"""

import json
import re
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from pydantic import ValidationError as SchemaError

from auvio_podcast.auth.auvio_auth import AuvioAuthenticator, EXPOSURE_BASE_URL
from auvio_podcast.config.settings import Settings
from auvio_podcast.errors import ExtractionError, NetworkError, ValidationError
from auvio_podcast.providers.base_provider import BaseProvider
from auvio_podcast.schemas.auvio import AppConstants, Enclosure, Episode, Program
from auvio_podcast.utils.credentials import get_auvio_credentials
from auvio_podcast.utils.deadline import Deadline
from auvio_podcast.utils.literal_parser import LiteralSyntaxError, parse_literal_at

logger = logging.getLogger(__name__)

AUVIO_BASE_URL = "https://auvio.rtbf.be"
BFF_BASE_URL = "https://bff-service.rtbf.be/auvio"

APP_SCRIPT_SELECTOR = "script[src^='/_next/static/chunks/pages/_app-']"
NEXT_DATA_SELECTOR = "script#__NEXT_DATA__"

MEDIA_LIST_WIDGET_ID = "18800"
MEDIA_LIST_PAGE_SIZE = 20

PROGRAM_PATH_PATTERN = re.compile(r"^/[^/]+/[^/]+?-(\d+)$")


def get_program_id(program_path: str) -> str:
    """Return the numeric id at the end of a program path like /emission/name-1234"""
    match = PROGRAM_PATH_PATTERN.match(program_path or "")
    if not match:
        raise ValidationError(
            f"Invalid program path {program_path!r}, expected format: /emission/name-of-program-1234"
        )
    return match.group(1)


def extract_object_literal(source: str, identifier: str) -> Optional[Dict[str, Any]]:
    """
    Find `identifier: { ... }` in bundle source and parse the object literal.
    Occurrences whose value is not a plain literal are skipped.
    """
    pattern = re.compile(r"(?<![\w$])" + re.escape(identifier) + r"\s*:\s*(?=\{)")
    for match in pattern.finditer(source):
        try:
            value, _ = parse_literal_at(source, match.end())
        except LiteralSyntaxError as e:
            logger.debug(f"Skipping {identifier} candidate at {match.start()}: {e}")
            continue
        if isinstance(value, dict):
            return value
    return None


def extract_app_constants(source: str) -> AppConstants:
    """Recover the RTBF and GIGYA configuration objects from the _app bundle"""
    rtbf = extract_object_literal(source, "RTBF") or {}
    api_version = rtbf.get("apiVersion")
    if not isinstance(api_version, str) or not api_version.strip():
        raise ExtractionError("Could not find RTBF.apiVersion")

    gigya = extract_object_literal(source, "GIGYA") or {}
    api_key = gigya.get("apiKey")
    if not isinstance(api_key, str) or not api_key.strip():
        raise ExtractionError("Could not find GIGYA.apiKey")

    try:
        return AppConstants(platform=rtbf, identityProvider=gigya)
    except SchemaError as e:
        raise ExtractionError(f"Unexpected app constants shape: {e}") from e


def extract_program_data(next_data_text: str, program_path: str) -> Program:
    """Locate the program payload in the __NEXT_DATA__ initial state"""
    try:
        next_data = json.loads(next_data_text)
    except json.JSONDecodeError as e:
        raise ExtractionError(f"__NEXT_DATA__ is not valid JSON: {e}") from e

    initial_state = ((next_data.get("props") or {}).get("pageProps") or {}).get("initialState")
    if not initial_state:
        raise ExtractionError("No initialState found in __NEXT_DATA__")
    if isinstance(initial_state, str):
        try:
            initial_state = json.loads(initial_state)
        except json.JSONDecodeError as e:
            raise ExtractionError(f"initialState is not valid JSON: {e}") from e

    query_key = f'page("{program_path.lstrip("/")}")'
    queries = (initial_state.get("api") or {}).get("queries") or {}
    if query_key not in queries:
        raise ExtractionError(f"Query {query_key} not found in initialState")

    page_response = (queries[query_key] or {}).get("data") or {}
    content = (page_response.get("data") or {}).get("content")
    if not content:
        raise ExtractionError(f"Query {query_key} has no program content")

    program_data = dict(content)
    # the episode list comes from the catalog widget, not from the page
    program_data["content"] = []
    program_data["path"] = program_path
    try:
        return Program.model_validate(program_data)
    except SchemaError as e:
        raise ExtractionError(f"Unexpected program payload for {program_path}: {e}") from e


class AuvioProgramPage(BaseProvider):
    """Pipeline session for one Auvio program path"""

    provider_name = "auvio"
    base_url = AUVIO_BASE_URL
    accept_language = "fr-BE,fr;q=0.9"

    def __init__(
        self,
        program_path: str,
        settings: Optional[Settings] = None,
        deadline: Optional[Deadline] = None,
        credentials_loader: Callable[[], Tuple[str, str]] = get_auvio_credentials,
        year: Optional[int] = None,
    ):
        # validate before opening any connection
        self.program_id = get_program_id(program_path)
        super().__init__(settings, deadline)

        self.program_path = program_path
        self.page_url = urljoin(AUVIO_BASE_URL, program_path)
        self.year = year
        self.auth = AuvioAuthenticator(
            self.http,
            self.page_url,
            self.get_app_constants,
            memo=self.memo,
            default_headers=self._build_headers(),
            credentials_loader=credentials_loader,
        )

    # Page and scripts

    def get_html_document(self) -> BeautifulSoup:
        return self.memo.get("document", self._fetch_html_document)

    def _fetch_html_document(self) -> BeautifulSoup:
        logger.info(f"{self.log_prefix} Fetching program page {self.page_url}")
        html = self.http.get_text(self.page_url, context="Program page", headers=self._build_headers())
        return BeautifulSoup(html, "html.parser")

    def get_script_content(self, selector: str) -> str:
        """Text of the script matching a CSS selector, inline or fetched from its src"""
        return self.memo.get(f"script:{selector}", lambda: self._fetch_script_content(selector))

    def _fetch_script_content(self, selector: str) -> str:
        document = self.get_html_document()
        script = document.select_one(selector)
        if script is None:
            raise ExtractionError(f"No script found for selector: {selector}")

        src = script.get("src")
        if src:
            script_url = urljoin(AUVIO_BASE_URL, src)
            logger.info(f"{self.log_prefix} Fetching script {script_url}")
            return self.http.get_text(script_url, context="Script fetch", headers=self._build_headers())
        return script.string or script.get_text()

    def get_app_constants(self) -> AppConstants:
        return self.memo.get("app_constants", self._extract_app_constants)

    def _extract_app_constants(self) -> AppConstants:
        app_script = self.get_script_content(APP_SCRIPT_SELECTOR)
        constants = extract_app_constants(app_script)
        logger.info(
            f"{self.log_prefix} App constants: apiVersion={constants.platform.apiVersion} "
            f"dataCenter={constants.identityProvider.dataCenter}"
        )
        return constants

    # Program and episodes

    def get_program_data(self) -> Program:
        next_data_text = self.get_script_content(NEXT_DATA_SELECTOR)
        return extract_program_data(next_data_text, self.program_path)

    def get_media_list(self, year: Optional[int] = None) -> List[Episode]:
        constants = self.get_app_constants()
        access_token = self.auth.access_token()
        year = year or self.year or datetime.now().year

        media_list_json = self.http.get_json(
            f"{BFF_BASE_URL}/{constants.platform.apiVersion}/widgets/{MEDIA_LIST_WIDGET_ID}",
            context="Media list",
            headers=self._build_headers(access_token),
            params={
                "_page": "1",
                "_limit": str(MEDIA_LIST_PAGE_SIZE),
                "context[programId]": self.program_id,
                "context[year]": str(year),
            },
        )
        content = (media_list_json.get("data") or {}).get("content")
        if content is None:
            raise ExtractionError("Media list response has no data.content")
        try:
            return [Episode.model_validate(item) for item in content]
        except SchemaError as e:
            raise ExtractionError(f"Unexpected media list item: {e}") from e

    # Entitlement

    def resolve_url(self, asset_id: str) -> str:
        session_token = self.auth.session_token()
        play_json = self.http.get_json(
            f"{EXPOSURE_BASE_URL}/entitlement/{asset_id}/play",
            context=f"Entitlement {asset_id}",
            headers=self._build_headers(session_token, accept="application/json, text/plain, */*"),
        )
        formats = play_json.get("formats") or []
        if not formats:
            raise NetworkError(f"Entitlement {asset_id} returned no playback formats")
        media_locator = formats[0].get("mediaLocator")
        if not media_locator:
            raise NetworkError(f"Entitlement {asset_id} returned a format without mediaLocator")
        return media_locator

    def get_media_url(self, episode: Episode) -> str:
        return self.resolve_url(episode.assetId)

    def get_media_enclosure(self, episode: Episode) -> Enclosure:
        media_url = self.get_media_url(episode)
        response = self.http.request("HEAD", media_url, context=f"Media HEAD {episode.assetId}", allow_redirects=True)

        content_type = response.headers.get("content-type")
        content_length = response.headers.get("content-length")
        if not content_type:
            raise ExtractionError(f"Media HEAD {episode.assetId} returned no content-type")
        try:
            length = int(content_length)
        except (TypeError, ValueError):
            raise ExtractionError(f"Media HEAD {episode.assetId} returned no usable content-length: {content_length!r}")
        return Enclosure(url=media_url, contentType=content_type, lengthBytes=length)
