"""Idempotent push of packages to append-only registry feeds."""

from __future__ import annotations

import base64
import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Literal, Protocol, Sequence
from urllib import request

from ..assets.recorder import LocationRecorder
from ..assets.types import LocationKind
from ..errors import FeedUnavailableError
from ..feeds.urls import RegistryFeedLocation
from .http import send
from .outcomes import PushOutcome, PushResult

logger = logging.getLogger("feedpub.publish.registry")

PushState = Literal["attempting", "comparing", "retrying", "published", "skipped", "conflict", "fatal"]

_TERMINAL_OUTCOMES: dict[str, PushOutcome] = {
    "published": "published",
    "skipped": "skipped_identical",
    "conflict": "conflict",
    "fatal": "fatal",
}


class RegistryFeed(Protocol):
    url: str

    def push(self, package_path: Path) -> bool:
        ...

    def fetch_content(self, package_id: str, version: str) -> bytes | None:
        ...


class RegistryFeedClient:
    """Pushes through an external NuGet-compatible tool and reads content over HTTP."""

    def __init__(
        self,
        location: RegistryFeedLocation,
        token: str,
        *,
        push_command: Sequence[str],
        timeout_s: int = 180,
    ) -> None:
        self._location = location
        self._token = token
        self._push_command = tuple(push_command)
        self._timeout_s = timeout_s

    @property
    def url(self) -> str:
        return self._location.url

    def push(self, package_path: Path) -> bool:
        command = [part.format(package=str(package_path), source=self._location.url) for part in self._push_command]
        try:
            completed = subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=self._timeout_s,
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.warning("推送 %s 逾時（%ss）", package_path, self._timeout_s)
            return False
        if completed.returncode != 0:
            logger.debug(
                "推送 %s 失敗（exit %s）：%s",
                package_path,
                completed.returncode,
                completed.stderr.decode("utf-8", errors="replace").strip()[:500],
            )
        return completed.returncode == 0

    def fetch_content(self, package_id: str, version: str) -> bytes | None:
        credentials = base64.b64encode(f":{self._token}".encode("ascii")).decode("ascii")
        req = request.Request(
            self._location.content_url(package_id, version),
            headers={"Authorization": f"Basic {credentials}"},
            method="GET",
        )
        return send(req, timeout_s=self._timeout_s, missing_ok=True)


@dataclass(frozen=True)
class RegistryPushRequest:
    display_name: str
    local_path: Path
    package_id: str
    version: str
    asset_name: str
    asset_version: str | None
    location_kind: LocationKind


class RegistryPushEngine:
    """Push one artifact at a time against an immutable feed.

    A failed push is ambiguous, so the feed's copy is fetched and compared:
    identical content counts as already published, different content is a
    conflict, and a missing entry is retried after ``retry_delay_s`` until
    ``max_attempts`` pushes were made.
    """

    def __init__(
        self,
        feed: RegistryFeed,
        recorder: LocationRecorder,
        *,
        max_attempts: int = 3,
        retry_delay_s: float = 3.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts 必須 >= 1")
        self._feed = feed
        self._recorder = recorder
        self._max_attempts = max_attempts
        self._retry_delay_s = retry_delay_s
        self._sleep = sleep

    def push(self, req: RegistryPushRequest) -> PushResult:
        state: PushState = "attempting"
        attempts = 0
        message = ""
        try:
            while state not in _TERMINAL_OUTCOMES:
                if state == "attempting":
                    attempts += 1
                    if self._feed.push(req.local_path):
                        state = "published"
                    else:
                        logger.info("推送 %s 失敗，檢查 feed 上是否已有相同內容", req.display_name)
                        state = "comparing"
                elif state == "comparing":
                    identical = self._compare(req)
                    if identical is True:
                        state = "skipped"
                    elif identical is False:
                        state = "conflict"
                        message = f"套件 {req.display_name} 已存在於 {self._feed.url} 但內容不同"
                    elif attempts < self._max_attempts:
                        state = "retrying"
                    else:
                        state = "fatal"
                        message = f"推送 {req.display_name} 到 {self._feed.url} 失敗（已嘗試 {attempts} 次）"
                elif state == "retrying":
                    self._sleep(self._retry_delay_s)
                    state = "attempting"
        except Exception as exc:  # noqa: BLE001
            logger.debug("推送 %s 發生未預期錯誤", req.display_name, exc_info=True)
            state = "fatal"
            message = f"推送 {req.display_name} 發生未預期錯誤：{exc}"

        outcome = _TERMINAL_OUTCOMES[state]
        if outcome == "published":
            logger.info("已發佈 %s 到 %s", req.display_name, self._feed.url)
        elif outcome == "skipped_identical":
            logger.info("%s 已存在於 %s 且內容相同，略過", req.display_name, self._feed.url)
        if outcome in ("published", "skipped_identical"):
            self._recorder.record(req.asset_name, req.asset_version, self._feed.url, req.location_kind)
        return PushResult(
            artifact=req.display_name,
            feed_url=self._feed.url,
            outcome=outcome,
            message=message,
            attempts=attempts,
        )

    def _compare(self, req: RegistryPushRequest) -> bool | None:
        """True when identical, False when different, None when not (yet) on the feed."""

        try:
            remote = self._feed.fetch_content(req.package_id, req.version)
        except FeedUnavailableError as exc:
            logger.warning("無法取得 %s 在 feed 上的內容：%s", req.display_name, exc)
            return None
        if remote is None:
            return None
        return remote == req.local_path.read_bytes()
