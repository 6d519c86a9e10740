"""Target feed configuration types."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Literal, Mapping

from ..manifest.categories import ContentCategory

FeedKind = Literal["registry", "object_storage"]
AssetSelection = Literal["all", "shipping_only", "non_shipping_only"]

FEED_KINDS: frozenset[str] = frozenset({"registry", "object_storage"})
ASSET_SELECTIONS: frozenset[str] = frozenset({"all", "shipping_only", "non_shipping_only"})


@dataclass(frozen=True)
class TargetFeedConfig:
    category: ContentCategory
    kind: FeedKind
    url: str
    token: str = field(default="", repr=False)
    internal: bool = False
    isolated: bool = False
    asset_selection: AssetSelection = "all"
    allow_overwrite: bool = False

    def describe(self) -> str:
        isolation = "Isolated" if self.isolated else "Non-Isolated"
        visibility = "Internal" if self.internal else "Public"
        return f"{self.url} ({isolation}, {visibility})"


@dataclass(frozen=True)
class FeedRegistry:
    """Static category to feed-config mapping supplied by the caller."""

    feeds: Mapping[ContentCategory, tuple[TargetFeedConfig, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def resolve(self, category: ContentCategory) -> tuple[TargetFeedConfig, ...]:
        return self.feeds.get(category, ())

    def __contains__(self, category: object) -> bool:
        return category in self.feeds

    @classmethod
    def from_configs(cls, configs: list[TargetFeedConfig]) -> "FeedRegistry":
        grouped: dict[ContentCategory, list[TargetFeedConfig]] = {}
        for config in configs:
            bucket = grouped.setdefault(config.category, [])
            if config not in bucket:
                bucket.append(config)
        return cls(feeds=MappingProxyType({key: tuple(value) for key, value in grouped.items()}))
