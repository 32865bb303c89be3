"""
Type definitions for records passed between pipeline stages.
"""

from typing import TypedDict, Dict


class IdentityCredentials(TypedDict):
    """Outputs of the four identity handshake stages, one field per stage"""
    loginCookies: Dict[str, str]
    loginToken: str
    idToken: str
    accessToken: str


class LoginResult(TypedDict):
    """Output of the login stage"""
    loginToken: str
    loginCookies: Dict[str, str]


class DeviceDescriptor(TypedDict):
    deviceId: str
    name: str
    type: str
