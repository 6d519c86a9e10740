"""One publish run: classify, dispatch, record locations."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Protocol

from .assets.client import AssetRegistryError, BuildAssetRegistryClient
from .assets.recorder import LocationRecorder
from .assets.types import BuildAssetIndex, LocationFact
from .config import ConfigLoader, PublishSettings, missing_required_settings, parse_publish_settings
from .diagnostics import Diagnostics
from .errors import ConfigurationError
from .feeds.types import FeedRegistry
from .fs.atomic import atomic_write_json
from .logging_utils import setup_logger
from .manifest.classifier import split_artifacts_in_categories
from .manifest.models import BuildModel
from .publish.dispatcher import AliasUpdater, ObjectStorageFactory, PublishDispatcher, RegistryFeedFactory
from .publish.outcomes import PushResult

logger = logging.getLogger("feedpub")


class AssetRegistry(Protocol):
    def get_build_assets(self, build_id: int) -> BuildAssetIndex:
        ...

    def bulk_add_locations(self, facts: Iterable[LocationFact]) -> None:
        ...


@dataclass(frozen=True)
class PublishSummary:
    success: bool
    results: tuple[PushResult, ...] = ()
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    locations_recorded: int = 0
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "results": [result.to_dict() for result in self.results],
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "locations_recorded": self.locations_recorded,
            **self.extra,
        }


def load_publish_settings(
    config_path: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    *,
    loader: ConfigLoader | None = None,
) -> PublishSettings:
    """Resolve configuration layers and validate the ``publish`` section."""

    resolution = (loader or ConfigLoader()).resolve(config_path=config_path, overrides=overrides)
    missing = missing_required_settings(resolution.effective)
    if missing:
        raise ConfigurationError(f"缺少必要設定：{', '.join(missing)}")
    try:
        return parse_publish_settings(resolution.effective)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"設定值不正確：{exc}") from exc


def publish_build(
    build_model: BuildModel,
    feed_registry: FeedRegistry,
    settings: PublishSettings,
    *,
    asset_client: AssetRegistry | None = None,
    registry_feed_factory: RegistryFeedFactory | None = None,
    storage_factory: ObjectStorageFactory | None = None,
    alias_updater: AliasUpdater | None = None,
    sleep: Callable[[float], None] = time.sleep,
    log_dir: Path | None = None,
) -> PublishSummary:
    """Publish every artifact of ``build_model`` to its configured feeds.

    Problems never raise out of here. They are accumulated and returned in the
    summary, and ``success`` is False as soon as one was reported.
    """

    if log_dir is not None:
        setup_logger("feedpub", log_dir, level=settings.log_level)
    diagnostics = Diagnostics(logger=logger)

    build_id = build_model.build_id if build_model.build_id is not None else settings.build_id
    for key in _missing_settings(settings, build_id, asset_client):
        diagnostics.error(f"缺少必要設定：{key}")
    if diagnostics.has_errors:
        return _summary(diagnostics)

    client = asset_client or BuildAssetRegistryClient(settings.asset_registry)
    try:
        asset_index = client.get_build_assets(build_id)
    except AssetRegistryError as exc:
        diagnostics.error(f"無法取得 build {build_id} 的 asset 資料：{exc}")
        return _summary(diagnostics)
    logger.info("build %s 共有 %d 個已登錄的 asset", build_id, len(asset_index))

    classification = split_artifacts_in_categories(build_model)
    recorder = LocationRecorder(asset_index, diagnostics)
    dispatcher = PublishDispatcher(
        settings,
        feed_registry,
        recorder,
        registry_feed_factory=registry_feed_factory,
        storage_factory=storage_factory,
        alias_updater=alias_updater,
        sleep=sleep,
    )
    result = dispatcher.dispatch(classification, diagnostics)

    recorded = 0
    try:
        recorded = recorder.flush(client)
    except AssetRegistryError as exc:
        diagnostics.error(f"更新 asset 位置失敗：{exc}")

    return _summary(
        diagnostics,
        results=result.results,
        dispatched_ok=result.success,
        locations_recorded=recorded,
        peak_in_flight=dispatcher.throttle.peak,
    )


def write_summary(path: Path, summary: PublishSummary) -> None:
    atomic_write_json(path, summary.to_dict())


def _missing_settings(settings: PublishSettings, build_id: int | None, asset_client: AssetRegistry | None) -> list[str]:
    missing: list[str] = []
    if build_id is None:
        missing.append("publish.build_id")
    if settings.package_assets_dir is None:
        missing.append("publish.package_assets_dir")
    if settings.blob_assets_dir is None:
        missing.append("publish.blob_assets_dir")
    if asset_client is None and not settings.asset_registry.base_url:
        missing.append("publish.asset_registry.base_url")
    return missing


def _summary(
    diagnostics: Diagnostics,
    *,
    results: tuple[PushResult, ...] = (),
    dispatched_ok: bool = False,
    locations_recorded: int = 0,
    peak_in_flight: int | None = None,
) -> PublishSummary:
    errors, warnings = diagnostics.snapshot()
    extra: dict[str, Any] = {}
    if peak_in_flight is not None:
        extra["peak_in_flight"] = peak_in_flight
    return PublishSummary(
        success=dispatched_ok and not errors,
        results=results,
        errors=errors,
        warnings=warnings,
        locations_recorded=locations_recorded,
        extra=extra,
    )
