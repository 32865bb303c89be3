"""
Auvio authentication module

Replays the site's federated login without a browser:

1. Gigya SDK bootstrap   -> bootstrap cookies
2. Gigya accounts.login  -> login token (+ login cookies)
3. Gigya accounts.getJWT -> identity token
4. RTBF OAuth token      -> platform access token (visitor scope)

plus the Red Bee exposure login that turns the identity token into the
session token used by entitlement calls.
Every stage result lives in the session's memo table and is computed once.
"""

import uuid
import logging
from typing import Callable, Dict, Optional, Tuple

from auvio_podcast.errors import AuthError, ExtractionError
from auvio_podcast.schemas.auvio import AppConstants
from auvio_podcast.schemas.type_defs import DeviceDescriptor, IdentityCredentials, LoginResult
from auvio_podcast.utils.cookies import get_set_cookies, merge_cookies, parse_set_cookies, serialize_cookies
from auvio_podcast.utils.credentials import get_auvio_credentials
from auvio_podcast.utils.http_utils import RobustHTTPClient
from auvio_podcast.utils.memo import StageMemo

logger = logging.getLogger(__name__)

# Stable for the life of the process
DEVICE_ID = str(uuid.uuid4())

GIGYA_BASE_URL = "https://login.auvio.rtbf.be"
OAUTH_TOKEN_URL = "https://auth-service.rtbf.be/oauth/v1/token"
EXPOSURE_BASE_URL = "https://exposure.api.redbee.live/v2/customer/RTBF/businessunit/Auvio"

# gigya.build.number from https://cdns.eu1.gigya.com/js/gigya.js?apikey=<key>
SDK_BUILD = "15703"
SDK = "js_latest"


def _token_preview(token: str) -> str:
    return f"{token[:12]}..." if token else "<empty>"


def device_descriptor() -> DeviceDescriptor:
    return {"deviceId": DEVICE_ID, "name": "Browser", "type": "WEB"}


class AuvioAuthenticator:
    """Four-stage Gigya/RTBF handshake plus the exposure session login"""

    def __init__(
        self,
        http: RobustHTTPClient,
        page_url: str,
        constants_loader: Callable[[], AppConstants],
        memo: Optional[StageMemo] = None,
        default_headers: Optional[Dict[str, str]] = None,
        credentials_loader: Callable[[], Tuple[str, str]] = get_auvio_credentials,
    ):
        self.http = http
        self.page_url = page_url
        self.constants_loader = constants_loader
        self.memo = memo or StageMemo()
        self.default_headers = default_headers or {}
        self.credentials_loader = credentials_loader

    def _headers(self, **extra: str) -> Dict[str, str]:
        headers = dict(self.default_headers)
        headers.update(extra)
        return headers

    def _api_key(self) -> str:
        return self.constants_loader().identityProvider.apiKey

    # Stage 1

    def bootstrap_cookies(self) -> Dict[str, str]:
        return self.memo.get("bootstrap", self._fetch_bootstrap_cookies)

    def _fetch_bootstrap_cookies(self) -> Dict[str, str]:
        logger.info("Gigya bootstrap: requesting SDK session cookies")
        response = self.http.request(
            "GET",
            f"{GIGYA_BASE_URL}/accounts.webSdkBootstrap",
            context="Gigya bootstrap",
            headers=self._headers(),
            params={
                "apiKey": self._api_key(),
                "pageURL": self.page_url,
                "sdk": SDK,
                "sdkBuild": SDK_BUILD,
                "format": "json",
            },
        )
        # The body is irrelevant but must be read to release the connection
        self.http.parse_json(response, "Gigya bootstrap")
        cookies = parse_set_cookies(get_set_cookies(response))
        logger.info(f"Gigya bootstrap: received {len(cookies)} cookies")
        return cookies

    # Stage 2

    def login(self) -> LoginResult:
        return self.memo.get("login", self._fetch_login)

    def _fetch_login(self) -> LoginResult:
        bootstrap_cookies = self.bootstrap_cookies()
        email, password = self.credentials_loader()

        logger.info("Gigya login: submitting stored credentials")
        response = self.http.request(
            "POST",
            f"{GIGYA_BASE_URL}/accounts.login",
            context="Gigya login",
            headers=self._headers(**{
                "content-type": "application/x-www-form-urlencoded",
                "cookie": serialize_cookies(bootstrap_cookies),
            }),
            data={
                "loginID": email,
                "password": password,
                "sessionExpiration": "-2",
                "targetEnv": "jssdk",
                "include": "profile,data",
                "includeUserInfo": "true",
                "lang": "fr",
                "APIKey": self._api_key(),
                "sdk": SDK,
                "authMode": "cookie",
                "pageURL": self.page_url,
                "sdkBuild": SDK_BUILD,
                "format": "json",
            },
        )
        login_json = self.http.parse_json(response, "Gigya login")

        error_code = login_json.get("errorCode")
        if error_code != 0:
            reason = login_json.get("statusReason") or login_json.get("errorMessage") or "Unknown error"
            details = login_json.get("errorDetails")
            logger.error(f"Gigya login failed: errorCode={error_code} reason={reason} details={details}")
            raise AuthError(f"Failed to login: {reason}", error_code=error_code)

        login_token = (login_json.get("sessionInfo") or {}).get("login_token")
        if not login_token:
            raise ExtractionError("Gigya login response has no sessionInfo.login_token")

        login_cookies = merge_cookies(bootstrap_cookies, parse_set_cookies(get_set_cookies(response)))
        logger.info(f"Gigya login: success, login token {_token_preview(login_token)}")
        return {"loginToken": login_token, "loginCookies": login_cookies}

    # Stage 3

    def id_token(self) -> str:
        return self.memo.get("jwt", self._fetch_id_token)

    def _fetch_id_token(self) -> str:
        login = self.login()

        logger.info("Gigya getJWT: requesting identity token")
        jwt_json = self.http.post_json(
            f"{GIGYA_BASE_URL}/accounts.getJWT",
            context="Gigya getJWT",
            headers=self._headers(**{
                "content-type": "application/x-www-form-urlencoded",
                "cookie": serialize_cookies(login["loginCookies"]),
            }),
            data={
                "fields": "email",
                "APIKey": self._api_key(),
                "sdk": SDK,
                "login_token": login["loginToken"],
                "authMode": "cookie",
                "pageURL": self.page_url,
                "sdkBuild": SDK_BUILD,
                "format": "json",
            },
        )
        id_token = jwt_json.get("id_token")
        if not id_token:
            raise ExtractionError("Gigya getJWT response has no id_token")
        logger.info(f"Gigya getJWT: identity token {_token_preview(id_token)}")
        return id_token

    # Stage 4

    def access_token(self) -> str:
        return self.memo.get("token_exchange", self._fetch_access_token)

    def _fetch_access_token(self) -> str:
        id_token = self.id_token()
        platform = self.constants_loader().platform

        logger.info("RTBF OAuth: exchanging identity token for visitor access token")
        token_json = self.http.post_json(
            OAUTH_TOKEN_URL,
            context="RTBF OAuth token",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            data={
                "grant_type": "gigya",
                "client_id": platform.clientId,
                "client_secret": platform.clientSecret,
                "platform": "WEB",
                "device_id": DEVICE_ID,
                "token": id_token,
                "scope": "visitor",
            },
        )
        access_token = token_json.get("access_token")
        if not access_token:
            raise ExtractionError("RTBF OAuth response has no access_token")
        logger.info(f"RTBF OAuth: access token {_token_preview(access_token)}")
        return access_token

    def identity_credentials(self) -> IdentityCredentials:
        """Run (or reuse) all four stages in order and return their outputs"""
        login = self.login()
        return {
            "loginCookies": login["loginCookies"],
            "loginToken": login["loginToken"],
            "idToken": self.id_token(),
            "accessToken": self.access_token(),
        }

    # Entitlement service login

    def session_token(self) -> str:
        return self.memo.get("session_token", self._fetch_session_token)

    def _fetch_session_token(self) -> str:
        id_token = self.id_token()

        logger.info("Exposure login: requesting entitlement session token")
        session_json = self.http.post_json(
            f"{EXPOSURE_BASE_URL}/auth/gigyaLogin",
            context="Exposure gigyaLogin",
            headers=self._headers(**{
                "accept": "application/json",
                "content-type": "application/json",
            }),
            json_data={
                "jwt": id_token,
                "device": device_descriptor(),
            },
        )
        session_token = session_json.get("sessionToken")
        if not session_token:
            raise ExtractionError("Exposure gigyaLogin response has no sessionToken")
        logger.info(f"Exposure login: session token {_token_preview(session_token)}")
        return session_token
