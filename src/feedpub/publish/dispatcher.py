"""Fan classified artifacts out to their target feeds."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Protocol

from ..assets.recorder import LocationRecorder
from ..config import PublishSettings
from ..diagnostics import Diagnostics
from ..errors import FeedUrlError, PackageInspectionError
from ..feeds.safety import SafetyPolicy, check_feed_safety
from ..feeds.selection import filter_artifacts
from ..feeds.types import FeedRegistry, TargetFeedConfig
from ..feeds.urls import (
    ObjectStorageLocation,
    RegistryFeedLocation,
    blob_relative_path,
    package_relative_path,
    parse_object_storage_feed_url,
    parse_registry_feed_url,
)
from ..manifest.categories import PACKAGE_SUFFIX, ContentCategory
from ..manifest.classifier import ClassificationResult
from ..manifest.models import Artifact, BlobArtifact, PackageArtifact
from ..manifest.nuspec import inspect_package
from .outcomes import PushResult
from .registry_push import RegistryFeed, RegistryFeedClient, RegistryPushEngine, RegistryPushRequest
from .storage_push import (
    ObjectStorage,
    ObjectStorageClient,
    ObjectStoragePushEngine,
    StorageItem,
    StoragePushOptions,
)
from .throttle import Throttle, run_bounded

logger = logging.getLogger("feedpub.publish")

RegistryFeedFactory = Callable[[TargetFeedConfig, RegistryFeedLocation], RegistryFeed]
ObjectStorageFactory = Callable[[TargetFeedConfig, ObjectStorageLocation], ObjectStorage]
PackageInspector = Callable[[Path], tuple[str, str]]


class AliasUpdater(Protocol):
    def update_links(self, blobs: frozenset[BlobArtifact], feed: TargetFeedConfig) -> None:
        ...


@dataclass(frozen=True)
class FeedJob:
    category: ContentCategory
    feed: TargetFeedConfig
    packages: frozenset[PackageArtifact] = field(default_factory=frozenset)
    blobs: frozenset[BlobArtifact] = field(default_factory=frozenset)


@dataclass(frozen=True)
class DispatchResult:
    success: bool
    results: tuple[PushResult, ...]
    errors: tuple[str, ...]
    warnings: tuple[str, ...]


class PublishDispatcher:
    """Cross-join category buckets with feed configs and push every pairing.

    Feed jobs run concurrently; inside a job every artifact takes one slot of
    the run-wide throttle. A failure never stops sibling artifacts or feeds,
    it is reported and the run is marked failed.
    """

    def __init__(
        self,
        settings: PublishSettings,
        feed_registry: FeedRegistry,
        recorder: LocationRecorder,
        *,
        throttle: Throttle | None = None,
        registry_feed_factory: RegistryFeedFactory | None = None,
        storage_factory: ObjectStorageFactory | None = None,
        alias_updater: AliasUpdater | None = None,
        package_inspector: PackageInspector = inspect_package,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings
        self._feed_registry = feed_registry
        self._recorder = recorder
        self._throttle = throttle or Throttle(settings.max_clients)
        self._registry_feed_factory = registry_feed_factory or self._default_registry_feed
        self._storage_factory = storage_factory or self._default_storage
        self._alias_updater = alias_updater
        self._inspect_package = package_inspector
        self._sleep = sleep
        self._handlers: dict[str, Callable[[FeedJob, Diagnostics], list[PushResult]]] = {
            "registry": self._publish_to_registry,
            "object_storage": self._publish_to_object_storage,
        }

    @property
    def throttle(self) -> Throttle:
        return self._throttle

    def dispatch(
        self,
        classification: ClassificationResult,
        diagnostics: Diagnostics | None = None,
    ) -> DispatchResult:
        diagnostics = diagnostics or Diagnostics(logger=logger)
        diagnostics.include(classification.errors)

        jobs = self.plan(classification, diagnostics)
        results: list[PushResult] = []
        if jobs:
            with ThreadPoolExecutor(max_workers=len(jobs), thread_name_prefix="feedpub-feed") as executor:
                futures = [executor.submit(self._run_job, job, diagnostics) for job in jobs]
                for future in futures:
                    results.extend(future.result())

        diagnostics.extend(self._recorder.diagnostics)
        errors, warnings = diagnostics.snapshot()
        success = not errors and all(result.succeeded for result in results)
        logger.info(
            "發佈結束：%d 筆成功、%d 筆失敗、%d 個錯誤",
            sum(1 for result in results if result.succeeded),
            sum(1 for result in results if not result.succeeded),
            len(errors),
        )
        return DispatchResult(success=success, results=tuple(results), errors=errors, warnings=warnings)

    def plan(self, classification: ClassificationResult, diagnostics: Diagnostics) -> list[FeedJob]:
        """Resolve feeds, apply filters and safety checks; no network activity."""

        policy = SafetyPolicy(
            internal_build=self._settings.internal_build,
            skip_safety_checks=self._settings.skip_safety_checks,
            check_stable_on_non_isolated=self._settings.check_stable_on_non_isolated,
        )
        selected_by_feed: dict[TargetFeedConfig, tuple[set[PackageArtifact], set[BlobArtifact]]] = {}
        claimed: set[tuple[Artifact, str, str]] = set()
        unmapped: set[str] = set()
        reported: set[str] = set()

        sections = (
            (0, classification.packages_by_category),
            (1, classification.blobs_by_category),
        )
        for slot, buckets in sections:
            for category in sorted(buckets):
                artifacts = buckets[category]
                if not artifacts:
                    continue
                feeds = self._feed_registry.resolve(category)
                if not feeds:
                    if category not in unmapped:
                        unmapped.add(category)
                        diagnostics.error(f"找不到分類 '{category}' 的 target feed 設定")
                    continue

                for feed in feeds:
                    try:
                        selected = filter_artifacts(artifacts, feed.asset_selection)
                    except NotImplementedError as exc:
                        diagnostics.error(f"略過 feed {feed.url}：{exc}")
                        continue

                    verdict = check_feed_safety(feed, selected, policy)
                    for message in verdict.warnings:
                        if message not in reported:
                            reported.add(message)
                            diagnostics.warning(message)
                    for message in verdict.errors:
                        if message not in reported:
                            reported.add(message)
                            diagnostics.error(message)
                    if not verdict.allowed:
                        continue

                    bucket = selected_by_feed.setdefault(feed, (set(), set()))
                    for artifact in sorted(selected, key=lambda item: item.display_name):
                        key = (artifact, feed.kind, feed.url)
                        if key in claimed:
                            logger.debug("%s 已排入 %s，略過重複項目", artifact.display_name, feed.url)
                            continue
                        claimed.add(key)
                        shipping = "NonShipping" if artifact.non_shipping else "Shipping"
                        logger.info("%s (%s) should go to %s", artifact.display_name, shipping, feed.describe())
                        bucket[slot].add(artifact)

        return [
            FeedJob(
                category=feed.category,
                feed=feed,
                packages=frozenset(packages),
                blobs=frozenset(blobs),
            )
            for feed, (packages, blobs) in selected_by_feed.items()
            if packages or blobs
        ]

    def _run_job(self, job: FeedJob, diagnostics: Diagnostics) -> list[PushResult]:
        handler = self._handlers.get(job.feed.kind)
        if handler is None:
            diagnostics.error(f"分類 '{job.category}' 的 target feed 類型未知：'{job.feed.kind}'")
            return []
        try:
            results = handler(job, diagnostics)
        except FeedUrlError as exc:
            diagnostics.error(str(exc))
            return []
        except Exception as exc:  # noqa: BLE001
            logger.debug("處理 feed %s 失敗", job.feed.url, exc_info=True)
            diagnostics.error(f"處理 feed {job.feed.url} 失敗：{exc}")
            return []

        for result in results:
            if not result.succeeded:
                diagnostics.error(result.message or f"發佈 {result.artifact} 到 {result.feed_url} 失敗（{result.outcome}）")
        return results

    def _publish_to_registry(self, job: FeedJob, diagnostics: Diagnostics) -> list[PushResult]:
        location = parse_registry_feed_url(job.feed.url)
        engine = RegistryPushEngine(
            self._registry_feed_factory(job.feed, location),
            self._recorder,
            max_attempts=self._settings.registry.max_push_attempts,
            retry_delay_s=self._settings.registry.retry_delay_s,
            sleep=self._sleep,
        )

        results: list[PushResult] = []
        requests: list[RegistryPushRequest] = []
        for package in sorted(job.packages, key=lambda item: item.display_name):
            path = _local_path(self._settings.package_assets_dir, package.file_name)
            if path is None or not path.is_file():
                results.append(_missing_file(package, path, job.feed))
                continue
            requests.append(
                RegistryPushRequest(
                    display_name=package.display_name,
                    local_path=path,
                    package_id=package.id,
                    version=package.version,
                    asset_name=package.id,
                    asset_version=package.version,
                    location_kind="registry_feed",
                )
            )

        for blob in sorted(job.blobs, key=lambda item: item.id):
            # Symbol packages and other .nupkg blobs are the only blobs a registry accepts.
            if not blob.id.lower().endswith(PACKAGE_SUFFIX):
                diagnostics.warning(f"Registry feed 無法發佈一般 blob，{blob.id} 未發佈")
                continue
            path = _local_path(self._settings.blob_assets_dir, blob.file_name)
            if path is None or not path.is_file():
                results.append(_missing_file(blob, path, job.feed))
                continue
            try:
                package_id, version = self._inspect_package(path)
            except PackageInspectionError as exc:
                results.append(PushResult(artifact=blob.id, feed_url=job.feed.url, outcome="fatal", message=str(exc)))
                continue
            requests.append(
                RegistryPushRequest(
                    display_name=blob.id,
                    local_path=path,
                    package_id=package_id,
                    version=version,
                    asset_name=blob.id,
                    asset_version=None,
                    location_kind="registry_feed",
                )
            )

        results.extend(run_bounded(self._throttle, requests, engine.push))
        return results

    def _publish_to_object_storage(self, job: FeedJob, diagnostics: Diagnostics) -> list[PushResult]:
        location = parse_object_storage_feed_url(job.feed.url)
        engine = ObjectStoragePushEngine(
            self._storage_factory(job.feed, location),
            self._recorder,
            feed_url=job.feed.url,
            options=StoragePushOptions(
                allow_overwrite=job.feed.allow_overwrite,
                pass_if_identical=self._settings.storage.pass_if_identical,
            ),
        )

        results: list[PushResult] = []
        items: list[StorageItem] = []
        for package in sorted(job.packages, key=lambda item: item.display_name):
            path = _local_path(self._settings.package_assets_dir, package.file_name)
            if path is None or not path.is_file():
                results.append(_missing_file(package, path, job.feed))
                continue
            items.append(
                StorageItem(
                    display_name=package.display_name,
                    local_path=path,
                    relative_path=package_relative_path(package.id, package.version),
                    asset_name=package.id,
                    asset_version=package.version,
                    location_kind="registry_feed",
                )
            )
        for blob in sorted(job.blobs, key=lambda item: item.id):
            path = _local_path(self._settings.blob_assets_dir, blob.file_name)
            if path is None or not path.is_file():
                results.append(_missing_file(blob, path, job.feed))
                continue
            items.append(
                StorageItem(
                    display_name=blob.id,
                    local_path=path,
                    relative_path=blob_relative_path(blob.id),
                    asset_name=blob.id,
                    asset_version=None,
                    location_kind="container",
                )
            )

        results.extend(engine.push_many(items, self._throttle))

        # Links may only point at content that finished uploading.
        if job.blobs and self._alias_updater is not None:
            published = {result.artifact for result in results if result.succeeded}
            blobs = frozenset(blob for blob in job.blobs if blob.id in published)
            try:
                self._alias_updater.update_links(blobs, job.feed)
            except Exception as exc:  # noqa: BLE001
                logger.debug("更新 %s 的連結失敗", job.feed.url, exc_info=True)
                diagnostics.error(f"更新 {job.feed.url} 的連結失敗：{exc}")
        return results

    def _default_registry_feed(self, feed: TargetFeedConfig, location: RegistryFeedLocation) -> RegistryFeed:
        return RegistryFeedClient(
            location,
            feed.token,
            push_command=self._settings.registry.push_command,
            timeout_s=self._settings.registry.timeout_s,
        )

    def _default_storage(self, feed: TargetFeedConfig, location: ObjectStorageLocation) -> ObjectStorage:
        return ObjectStorageClient(location, feed.token, timeout_s=self._settings.storage.timeout_s)


def _local_path(base_dir: Path | None, file_name: str) -> Path | None:
    if base_dir is None:
        return None
    return base_dir / file_name


def _missing_file(artifact: Artifact, path: Path | None, feed: TargetFeedConfig) -> PushResult:
    if path is None:
        message = f"未設定 {artifact.display_name} 的本機資料夾，無法發佈"
    else:
        message = f"找不到 {artifact.display_name} 的本機檔案：{path}"
    return PushResult(artifact=artifact.display_name, feed_url=feed.url, outcome="fatal", message=message)
