"""Deduplicating accumulator of asset locations, flushed once per run."""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Protocol

from ..diagnostics import Diagnostics
from ..errors import AssetLookupError
from .types import BuildAssetIndex, LocationFact, LocationKind

logger = logging.getLogger("feedpub.assets")


class LocationSink(Protocol):
    def bulk_add_locations(self, facts: Iterable[LocationFact]) -> None:
        ...


class LocationRecorder:
    """Shared by every push task of a run; the only mutation is add-if-absent."""

    def __init__(self, asset_index: BuildAssetIndex, diagnostics: Diagnostics | None = None) -> None:
        self._asset_index = asset_index
        self._diagnostics = diagnostics or Diagnostics(logger=logger)
        self._facts: dict[LocationFact, None] = {}
        self._lock = threading.Lock()
        self._flushed = False

    @property
    def diagnostics(self) -> Diagnostics:
        return self._diagnostics

    def record(self, name: str, version: str | None, destination: str, kind: LocationKind) -> bool:
        try:
            asset = self._asset_index.lookup(name, version)
        except AssetLookupError as exc:
            self._diagnostics.error(f"無法記錄 {name} 的發佈位置：{exc}")
            return False

        fact = LocationFact(asset_id=asset.asset_id, location=destination, kind=kind)
        with self._lock:
            if fact in self._facts:
                return False
            self._facts[fact] = None
        logger.debug("記錄 asset %s -> %s (%s)", asset.asset_id, destination, kind)
        return True

    def facts(self) -> list[LocationFact]:
        with self._lock:
            return list(self._facts)

    def flush(self, sink: LocationSink) -> int:
        """Send every accumulated fact in one bulk call; later calls do nothing."""

        with self._lock:
            if self._flushed:
                return 0
            self._flushed = True
            facts = list(self._facts)
        if not facts:
            logger.info("沒有需要更新的 asset 位置")
            return 0
        sink.bulk_add_locations(facts)
        logger.info("已更新 %d 筆 asset 位置", len(facts))
        return len(facts)
