"""Load target feed configurations from YAML."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, cast

from ..config import parse_flag, read_yaml
from ..manifest.categories import parse_category
from .types import ASSET_SELECTIONS, FEED_KINDS, AssetSelection, FeedKind, FeedRegistry, TargetFeedConfig

logger = logging.getLogger("feedpub.feeds")

_FLAG_KEYS = ("internal", "isolated", "allow_overwrite")


@dataclass(frozen=True)
class FeedRegistryLoadResult:
    registry: FeedRegistry
    errors: tuple[str, ...]


def load_feed_registry_file(path: Path) -> FeedRegistryLoadResult:
    return load_feed_registry(read_yaml(path))


def load_feed_registry(document: Mapping[str, Any]) -> FeedRegistryLoadResult:
    """Build a :class:`FeedRegistry` from a ``feeds:`` document.

    Invalid entries are skipped and reported; valid ones still load so one
    pass shows every configuration problem.
    """

    feeds = document.get("feeds") if isinstance(document, Mapping) else None
    if feeds is None:
        return FeedRegistryLoadResult(registry=FeedRegistry(), errors=())
    if not isinstance(feeds, Mapping):
        return FeedRegistryLoadResult(registry=FeedRegistry(), errors=("feeds 必須為 mapping",))

    configs: list[TargetFeedConfig] = []
    errors: list[str] = []
    for raw_category, entries in feeds.items():
        category = parse_category(str(raw_category))
        if category is None:
            errors.append(f"feed 設定中的分類無效：'{raw_category}'")
            continue
        if not isinstance(entries, list):
            errors.append(f"分類 '{category}' 的 feed 設定必須為 list")
            continue
        for index, entry in enumerate(entries):
            where = f"feeds.{category}[{index}]"
            if not isinstance(entry, Mapping):
                errors.append(f"{where} 必須為 mapping")
                continue
            kind = str(entry.get("kind") or "").strip().lower()
            if kind not in FEED_KINDS:
                errors.append(f"{where}.kind 無效：'{entry.get('kind')}'")
                continue
            selection = str(entry.get("asset_selection") or "all").strip().lower()
            if selection not in ASSET_SELECTIONS:
                errors.append(f"{where}.asset_selection 無效：'{entry.get('asset_selection')}'")
                continue
            url = str(entry.get("url") or "").strip()
            if not url:
                errors.append(f"{where}.url 不可為空")
                continue
            try:
                flags = {key: parse_flag(entry.get(key, False), f"{where}.{key}") for key in _FLAG_KEYS}
            except ValueError as exc:
                errors.append(str(exc))
                continue
            configs.append(
                TargetFeedConfig(
                    category=category,
                    kind=cast(FeedKind, kind),
                    url=url,
                    token=_resolve_token(entry),
                    internal=flags["internal"],
                    isolated=flags["isolated"],
                    asset_selection=cast(AssetSelection, selection),
                    allow_overwrite=flags["allow_overwrite"],
                )
            )

    for message in errors:
        logger.error(message)
    return FeedRegistryLoadResult(registry=FeedRegistry.from_configs(configs), errors=tuple(errors))


def _resolve_token(entry: Mapping[str, Any]) -> str:
    token_env = entry.get("token_env")
    if token_env:
        return os.environ.get(str(token_env), "")
    return str(entry.get("token") or "")
