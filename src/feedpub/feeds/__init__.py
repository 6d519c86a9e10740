"""Target feed configuration, resolution and policy."""

from .loader import FeedRegistryLoadResult, load_feed_registry, load_feed_registry_file
from .safety import SafetyPolicy, SafetyVerdict, check_feed_safety, is_stable_version
from .selection import filter_artifacts
from .types import (
    ASSET_SELECTIONS,
    FEED_KINDS,
    AssetSelection,
    FeedKind,
    FeedRegistry,
    TargetFeedConfig,
)
from .urls import (
    ObjectStorageLocation,
    RegistryFeedLocation,
    blob_relative_path,
    package_relative_path,
    parse_object_storage_feed_url,
    parse_registry_feed_url,
)

__all__ = [
    "ASSET_SELECTIONS",
    "AssetSelection",
    "FEED_KINDS",
    "FeedKind",
    "FeedRegistry",
    "FeedRegistryLoadResult",
    "ObjectStorageLocation",
    "RegistryFeedLocation",
    "SafetyPolicy",
    "SafetyVerdict",
    "TargetFeedConfig",
    "blob_relative_path",
    "check_feed_safety",
    "filter_artifacts",
    "is_stable_version",
    "load_feed_registry",
    "load_feed_registry_file",
    "package_relative_path",
    "parse_object_storage_feed_url",
    "parse_registry_feed_url",
]
