"""Build asset registry integration."""

from .client import (
    AssetRegistryError,
    AssetRegistryHTTPError,
    AssetRegistryProtocolError,
    AssetRegistryTimeoutError,
    BuildAssetRegistryClient,
)
from .recorder import LocationRecorder, LocationSink
from .types import BuildAsset, BuildAssetIndex, LocationFact, LocationKind

__all__ = [
    "AssetRegistryError",
    "AssetRegistryHTTPError",
    "AssetRegistryProtocolError",
    "AssetRegistryTimeoutError",
    "BuildAsset",
    "BuildAssetIndex",
    "BuildAssetRegistryClient",
    "LocationFact",
    "LocationKind",
    "LocationRecorder",
    "LocationSink",
]
