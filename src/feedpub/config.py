"""Configuration helpers for feedpub."""

from __future__ import annotations

import logging
import os
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

DEFAULT_PUSH_COMMAND: tuple[str, ...] = (
    "dotnet",
    "nuget",
    "push",
    "{package}",
    "--source",
    "{source}",
    "--api-key",
    "AzureDevOps",
)

DEFAULT_CONFIG: dict[str, Any] = {
    "publish": {
        "build_id": None,
        "log_level": "INFO",
        "package_assets_dir": None,
        "blob_assets_dir": None,
        "max_clients": 16,
        "internal_build": False,
        "skip_safety_checks": False,
        "check_stable_on_non_isolated": False,
        "registry": {
            "max_push_attempts": 3,
            "retry_delay_s": 3,
            "timeout_s": 180,
            "push_command": list(DEFAULT_PUSH_COMMAND),
        },
        "storage": {
            "timeout_s": 180,
            "pass_if_identical": True,
        },
        "asset_registry": {
            "base_url": None,
            "api_key_env": "FEEDPUB_ASSET_REGISTRY_TOKEN",
            "timeout_s": 60,
        },
    },
}

REQUIRED_PUBLISH_KEYS = (
    "publish.build_id",
    "publish.package_assets_dir",
    "publish.blob_assets_dir",
    "publish.asset_registry.base_url",
)


def read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise RuntimeError(f"讀取設定檔失敗：{path}") from exc


def get_config_value(config: dict[str, Any], key_path: str) -> Any:
    cursor: Any = config
    for part in key_path.split("."):
        if not isinstance(cursor, dict) or part not in cursor:
            raise KeyError(f"找不到設定鍵：{key_path}")
        cursor = cursor[part]
    return cursor


def _assign_sources(value: Any, source: str) -> Any:
    if isinstance(value, dict):
        return {key: _assign_sources(val, source) for key, val in value.items()}
    return source


def _merge_with_sources(
    base: dict[str, Any],
    sources: dict[str, Any],
    updates: Mapping[str, Any],
    source: str,
) -> None:
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict) and isinstance(sources.get(key), dict):
            _merge_with_sources(base[key], sources[key], value, source)
        else:
            base[key] = value
            sources[key] = _assign_sources(value, source)


@dataclass
class ConfigResolution:
    effective: dict[str, Any]
    sources: dict[str, Any]


class ConfigLoader:
    def __init__(self, data_dir: Path | None = None) -> None:
        self.data_dir = data_dir or self._resolve_data_dir()

    def load_global(self) -> dict[str, Any]:
        return read_yaml(self._global_config_path())

    def resolve(
        self,
        config_path: Path | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> ConfigResolution:
        effective = deepcopy(DEFAULT_CONFIG)
        sources = _assign_sources(DEFAULT_CONFIG, "default")

        _merge_with_sources(effective, sources, self.load_global(), "global")

        if config_path:
            _merge_with_sources(effective, sources, read_yaml(config_path), "file")

        if overrides:
            _merge_with_sources(effective, sources, overrides, "override")

        return ConfigResolution(effective=effective, sources=sources)

    @staticmethod
    def _resolve_data_dir() -> Path:
        env_path = os.environ.get("FEEDPUB_HOME")
        if env_path:
            return Path(env_path).expanduser()
        return Path("~/.feedpub").expanduser()

    def _global_config_path(self) -> Path:
        return self.data_dir / "config.yaml"


@dataclass(frozen=True)
class RegistryPushSettings:
    max_push_attempts: int
    retry_delay_s: float
    timeout_s: int
    push_command: tuple[str, ...]


@dataclass(frozen=True)
class StoragePushSettings:
    timeout_s: int
    pass_if_identical: bool


@dataclass(frozen=True)
class AssetRegistrySettings:
    base_url: str
    api_key_env: str | None
    timeout_s: int


@dataclass(frozen=True)
class PublishSettings:
    build_id: int | None
    log_level: int
    package_assets_dir: Path | None
    blob_assets_dir: Path | None
    max_clients: int
    internal_build: bool
    skip_safety_checks: bool
    check_stable_on_non_isolated: bool
    registry: RegistryPushSettings
    storage: StoragePushSettings
    asset_registry: AssetRegistrySettings


def parse_publish_settings(config: Mapping[str, Any]) -> PublishSettings:
    publish = config.get("publish", {}) if isinstance(config, Mapping) else {}
    if not isinstance(publish, Mapping):
        publish = {}
    registry = _section(publish, "registry")
    storage = _section(publish, "storage")
    asset_registry = _section(publish, "asset_registry")

    max_attempts = int(registry.get("max_push_attempts", 3))
    if max_attempts < 1:
        raise ValueError("publish.registry.max_push_attempts 必須 >= 1")
    max_clients = int(publish.get("max_clients", 16))
    if max_clients < 1:
        raise ValueError("publish.max_clients 必須 >= 1")

    build_id = publish.get("build_id")
    return PublishSettings(
        build_id=int(build_id) if build_id not in (None, "") else None,
        log_level=parse_log_level(publish.get("log_level", "INFO")),
        package_assets_dir=_optional_path(publish.get("package_assets_dir")),
        blob_assets_dir=_optional_path(publish.get("blob_assets_dir")),
        max_clients=max_clients,
        internal_build=parse_flag(publish.get("internal_build", False), "publish.internal_build"),
        skip_safety_checks=parse_flag(publish.get("skip_safety_checks", False), "publish.skip_safety_checks"),
        check_stable_on_non_isolated=parse_flag(
            publish.get("check_stable_on_non_isolated", False), "publish.check_stable_on_non_isolated"
        ),
        registry=RegistryPushSettings(
            max_push_attempts=max_attempts,
            retry_delay_s=float(registry.get("retry_delay_s", 3)),
            timeout_s=int(registry.get("timeout_s", 180)),
            push_command=tuple(str(part) for part in registry.get("push_command") or DEFAULT_PUSH_COMMAND),
        ),
        storage=StoragePushSettings(
            timeout_s=int(storage.get("timeout_s", 180)),
            pass_if_identical=parse_flag(storage.get("pass_if_identical", True), "publish.storage.pass_if_identical"),
        ),
        asset_registry=AssetRegistrySettings(
            base_url=str(asset_registry.get("base_url") or ""),
            api_key_env=asset_registry.get("api_key_env") or None,
            timeout_s=int(asset_registry.get("timeout_s", 60)),
        ),
    )


def missing_required_settings(config: Mapping[str, Any]) -> list[str]:
    """Return the required ``publish.*`` keys that are unset or empty."""

    missing: list[str] = []
    for key_path in REQUIRED_PUBLISH_KEYS:
        try:
            value = get_config_value(dict(config), key_path)
        except KeyError:
            missing.append(key_path)
            continue
        if value is None or str(value).strip() == "":
            missing.append(key_path)
    return missing


_TRUE_WORDS = frozenset({"true", "yes", "on", "1"})
_FALSE_WORDS = frozenset({"false", "no", "off", "0"})


def parse_flag(value: Any, key: str) -> bool:
    """Read a yes/no setting.

    Hand-written YAML and command line overrides often quote these, so
    words such as ``"false"`` are accepted. Anything else is rejected
    instead of being coerced with ``bool()``.
    """

    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    raise ValueError(f"{key} 必須是 true 或 false，收到 {value!r}")


def parse_log_level(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    level = logging.getLevelName(str(value).strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"publish.log_level 不是有效的日誌等級：{value!r}")
    return level


def _section(parent: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = parent.get(key, {})
    return value if isinstance(value, Mapping) else {}


def _optional_path(value: Any) -> Path | None:
    if value in (None, ""):
        return None
    return Path(str(value)).expanduser()
