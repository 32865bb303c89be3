"""
Cookie helpers for the identity provider calls.
The handshake carries cookies by hand between hosts, so it works on
plain name -> value maps instead of a requests cookie jar.
"""

from typing import Dict, Iterable, List

import requests


def parse_set_cookies(set_cookies: Iterable[str]) -> Dict[str, str]:
    """Turn raw Set-Cookie header values into a name -> value map (attributes dropped)"""
    cookies = {}
    for set_cookie in set_cookies:
        pair = set_cookie.split(";", 1)[0].strip()
        if "=" not in pair:
            continue
        name, value = pair.split("=", 1)
        name = name.strip()
        if name:
            cookies[name] = value.strip()
    return cookies


def get_set_cookies(response: requests.Response) -> List[str]:
    """
    Return every Set-Cookie header of a response, one string per cookie.

    requests folds repeated headers into one comma-joined value, which is
    ambiguous for cookies carrying an Expires date, so read the raw urllib3
    headers instead.
    """
    raw = getattr(response, "raw", None)
    headers = getattr(raw, "headers", None)
    if headers is not None and hasattr(headers, "getlist"):
        values = headers.getlist("Set-Cookie")
        if values:
            return list(values)
    return [cookie_header(cookie) for cookie in response.cookies]


def cookie_header(cookie) -> str:
    return f"{cookie.name}={cookie.value}"


def serialize_cookies(cookies: Dict[str, str]) -> str:
    """Serialize a cookie map into a Cookie request header value"""
    return "; ".join(f"{name}={value}" for name, value in cookies.items())


def merge_cookies(*cookie_maps: Dict[str, str]) -> Dict[str, str]:
    """Merge cookie maps left to right; later maps win on name collisions"""
    merged = {}
    for cookies in cookie_maps:
        merged.update(cookies)
    return merged
