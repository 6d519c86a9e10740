"""Build asset records and location facts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Literal

from ..errors import AssetLookupError

LocationKind = Literal["registry_feed", "container"]

LOCATION_TYPE_NAMES: dict[str, str] = {
    "registry_feed": "nugetFeed",
    "container": "container",
}


@dataclass(frozen=True)
class BuildAsset:
    asset_id: int
    name: str
    version: str | None = None


@dataclass(frozen=True)
class LocationFact:
    asset_id: int
    location: str
    kind: LocationKind

    def to_payload(self) -> dict[str, object]:
        return {
            "assetId": self.asset_id,
            "location": self.location,
            "locationType": LOCATION_TYPE_NAMES[self.kind],
        }


class BuildAssetIndex:
    """Name-keyed view of the assets registered for one build."""

    def __init__(self, assets: Iterable[BuildAsset] = ()) -> None:
        self._by_name: dict[str, list[BuildAsset]] = {}
        for asset in assets:
            bucket = self._by_name.setdefault(asset.name, [])
            if asset not in bucket:
                bucket.append(asset)

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._by_name.values())

    def lookup(self, name: str, version: str | None = None) -> BuildAsset:
        """Find the registered asset for ``name`` (and ``version`` for packages).

        Blobs are looked up by name only, which must then be unambiguous.
        """

        candidates = self._by_name.get(name, [])
        if version:
            for asset in candidates:
                if asset.version == version:
                    return asset
            raise AssetLookupError(f"Asset {name} 版本 {version} 未登錄於此建置")
        if not candidates:
            raise AssetLookupError(f"Asset {name} 未登錄於此建置")
        if len(candidates) > 1:
            raise AssetLookupError(f"Asset {name} 在此建置中有多筆紀錄，無法判定")
        return candidates[0]
