"""Parse target feed URLs into their addressable parts."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib import parse

from ..errors import FeedUrlError

REGISTRY_FEED_PATTERN = re.compile(
    r"^https://pkgs\.dev\.azure\.com/(?P<account>[A-Za-z0-9-]+)/"
    r"(?P<visibility>[A-Za-z0-9._-]+/)?_packaging/(?P<feed>[^/]+)/nuget/v3/index\.json$"
)
OBJECT_STORAGE_FEED_PATTERN = re.compile(
    r"^https://(?P<account>[a-z0-9-]+)\.blob\.core\.windows\.net/"
    r"(?P<container>[a-z0-9-]+)(?P<subpath>(?:/[^/?#]+)*)/index\.json$"
)

ASSETS_PREFIX = "assets"
FLAT_CONTAINER_PREFIX = "flatcontainer"


@dataclass(frozen=True)
class RegistryFeedLocation:
    account: str
    visibility: str
    feed: str
    url: str

    def content_url(self, package_id: str, version: str) -> str:
        return (
            f"https://pkgs.dev.azure.com/{self.account}/{self.visibility}_apis/packaging/feeds/"
            f"{self.feed}/nuget/packages/{parse.quote(package_id)}/versions/{parse.quote(version)}/content"
        )


@dataclass(frozen=True)
class ObjectStorageLocation:
    account: str
    container: str
    base_url: str

    def item_url(self, relative_path: str) -> str:
        return f"{self.base_url}/{parse.quote(relative_path.lstrip('/'))}"


def parse_registry_feed_url(url: str) -> RegistryFeedLocation:
    match = REGISTRY_FEED_PATTERN.match(url.strip())
    if not match:
        raise FeedUrlError(f"Registry feed URL 格式不符（需為 {REGISTRY_FEED_PATTERN.pattern}）：{url}")
    return RegistryFeedLocation(
        account=match.group("account"),
        visibility=match.group("visibility") or "",
        feed=match.group("feed"),
        url=url.strip(),
    )


def parse_object_storage_feed_url(url: str) -> ObjectStorageLocation:
    match = OBJECT_STORAGE_FEED_PATTERN.match(url.strip())
    if not match:
        raise FeedUrlError(f"無法解析 object storage feed URL：{url}")
    base_url = url.strip()[: -len("/index.json")]
    return ObjectStorageLocation(
        account=match.group("account"),
        container=match.group("container"),
        base_url=base_url,
    )


def blob_relative_path(blob_id: str) -> str:
    normalized = blob_id.replace("\\", "/").lstrip("/")
    return f"{ASSETS_PREFIX}/{normalized}"


def package_relative_path(package_id: str, version: str) -> str:
    lowered_id = package_id.lower()
    lowered_version = version.lower()
    return f"{FLAT_CONTAINER_PREFIX}/{lowered_id}/{lowered_version}/{lowered_id}.{lowered_version}.nupkg"
