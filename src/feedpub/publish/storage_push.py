"""Path-keyed push to object-storage feeds."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence
from urllib import request

from ..assets.recorder import LocationRecorder
from ..assets.types import LocationKind
from ..errors import FeedRequestError, FeedUnavailableError
from ..feeds.urls import ObjectStorageLocation
from .http import send
from .outcomes import PushOutcome, PushResult
from .throttle import Throttle, run_bounded

logger = logging.getLogger("feedpub.publish.storage")

# Answers to a conditional create when the blob is already there.
ALREADY_EXISTS_STATUSES = frozenset({409, 412})


class ObjectStorage(Protocol):
    def fetch(self, relative_path: str) -> bytes | None:
        ...

    def upload(self, relative_path: str, data: bytes, *, overwrite: bool) -> bool:
        """Store ``data``. Return False when ``overwrite`` is off and the item already exists."""
        ...


class ObjectStorageClient:
    def __init__(self, location: ObjectStorageLocation, token: str, *, timeout_s: int = 180) -> None:
        self._location = location
        self._token = token.lstrip("?")
        self._timeout_s = timeout_s

    def fetch(self, relative_path: str) -> bytes | None:
        req = request.Request(self._url(relative_path), method="GET")
        return send(req, timeout_s=self._timeout_s, missing_ok=True)

    def upload(self, relative_path: str, data: bytes, *, overwrite: bool) -> bool:
        headers = {
            "x-ms-blob-type": "BlockBlob",
            "Content-Type": "application/octet-stream",
            "Content-Length": str(len(data)),
        }
        if not overwrite:
            headers["If-None-Match"] = "*"
        req = request.Request(self._url(relative_path), data=data, headers=headers, method="PUT")
        try:
            send(req, timeout_s=self._timeout_s)
        except FeedRequestError as exc:
            if not overwrite and exc.status in ALREADY_EXISTS_STATUSES:
                return False
            raise
        return True

    def _url(self, relative_path: str) -> str:
        url = self._location.item_url(relative_path)
        if self._token:
            return f"{url}?{self._token}"
        return url


@dataclass(frozen=True)
class StoragePushOptions:
    allow_overwrite: bool = False
    pass_if_identical: bool = True


@dataclass(frozen=True)
class StorageItem:
    display_name: str
    local_path: Path
    relative_path: str
    asset_name: str
    asset_version: str | None
    location_kind: LocationKind


class ObjectStoragePushEngine:
    def __init__(
        self,
        storage: ObjectStorage,
        recorder: LocationRecorder,
        *,
        feed_url: str,
        options: StoragePushOptions,
    ) -> None:
        self._storage = storage
        self._recorder = recorder
        self._feed_url = feed_url
        self._options = options

    def push_many(self, items: Sequence[StorageItem], throttle: Throttle) -> list[PushResult]:
        return run_bounded(throttle, items, self.push_item)

    def push_item(self, item: StorageItem) -> PushResult:
        overwrite = self._options.allow_overwrite
        try:
            data = item.local_path.read_bytes()
            existing = None if overwrite else self._storage.fetch(item.relative_path)
            if existing is not None:
                return self._settle_existing(item, existing, data)
            if self._storage.upload(item.relative_path, data, overwrite=overwrite):
                logger.info("已上傳 %s 到 %s", item.display_name, self._feed_url)
                return self._finish(item, "published")
            # Another writer created the item after our fetch.
            logger.info("%s 在上傳前已被建立於 %s，重新比對內容", item.display_name, self._feed_url)
            return self._settle_existing(item, self._storage.fetch(item.relative_path), data)
        except FeedUnavailableError as exc:
            return PushResult(
                artifact=item.display_name,
                feed_url=self._feed_url,
                outcome="transient_failure",
                message=f"上傳 {item.display_name} 失敗：{exc}",
                attempts=1,
            )
        except Exception as exc:  # noqa: BLE001
            logger.debug("上傳 %s 發生未預期錯誤", item.display_name, exc_info=True)
            return PushResult(
                artifact=item.display_name,
                feed_url=self._feed_url,
                outcome="fatal",
                message=f"上傳 {item.display_name} 發生未預期錯誤：{exc}",
                attempts=1,
            )

    def _finish(self, item: StorageItem, outcome: PushOutcome) -> PushResult:
        self._recorder.record(item.asset_name, item.asset_version, self._feed_url, item.location_kind)
        return PushResult(artifact=item.display_name, feed_url=self._feed_url, outcome=outcome, attempts=1)

    def _settle_existing(self, item: StorageItem, existing: bytes | None, data: bytes) -> PushResult:
        if existing is not None and self._options.pass_if_identical and existing == data:
            logger.info("%s 已存在於 %s 且內容相同，略過", item.display_name, self._feed_url)
            return self._finish(item, "skipped_identical")
        return PushResult(
            artifact=item.display_name,
            feed_url=self._feed_url,
            outcome="conflict",
            message=f"{item.relative_path} 已存在於 {self._feed_url} 且內容不同，且不允許覆寫",
            attempts=1,
        )
