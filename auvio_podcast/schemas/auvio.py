from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any


class PlatformConstants(BaseModel):
    """RTBF platform block of the application bundle"""
    model_config = ConfigDict(extra="allow")

    apiVersion: str
    clientId: Optional[str] = None
    clientSecret: Optional[str] = None
    authServerUrl: Optional[str] = None
    bffServerUrl: Optional[str] = None
    u2cServerUrl: Optional[str] = None
    crmServerUrl: Optional[str] = None
    awsServerUrl: Optional[str] = None
    userAgent: Optional[str] = None


class IdentityProviderConstants(BaseModel):
    """GIGYA block of the application bundle"""
    model_config = ConfigDict(extra="allow")

    apiKey: str
    dataCenter: Optional[str] = None


class AppConstants(BaseModel):
    platform: PlatformConstants
    identityProvider: IdentityProviderConstants


class Category(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: Optional[str] = None
    label: Optional[str] = None
    path: Optional[str] = None


class Enclosure(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    contentType: str
    lengthBytes: int


class Episode(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    assetId: str
    title: Optional[str] = None
    subtitle: Optional[str] = None
    description: Optional[str] = None
    publishedFrom: Optional[str] = None
    duration: Optional[float] = None  # seconds
    path: Optional[str] = None
    illustration: Optional[Dict[str, Any]] = None
    enclosure: Optional[Enclosure] = None


class Program(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    id: str
    title: str
    description: Optional[str] = None
    category: Optional[Category] = None
    path: Optional[str] = None
    background: Optional[Dict[str, Any]] = None
    # single-episode preview embedded in the page, cleared by the pipeline
    media: Optional[Dict[str, Any]] = None
    episodes: List[Episode] = Field(default_factory=list, alias="content")
