"""HTTP client for the build asset registry service."""

from __future__ import annotations

import json
import os
import socket
from typing import Any, Iterable
from urllib import error, parse, request

from ..config import AssetRegistrySettings
from ..errors import PublishError
from .types import BuildAsset, BuildAssetIndex, LocationFact

API_VERSION = "2020-02-20"


class AssetRegistryError(PublishError):
    """Base error for asset registry client failures."""


class AssetRegistryTimeoutError(AssetRegistryError):
    """Raised when the asset registry request times out."""


class AssetRegistryHTTPError(AssetRegistryError):
    """Raised when the asset registry returns non-2xx status."""


class AssetRegistryProtocolError(AssetRegistryError):
    """Raised when the asset registry response schema is invalid."""


class BuildAssetRegistryClient:
    def __init__(self, settings: AssetRegistrySettings) -> None:
        self._settings = settings

    def get_build_assets(self, build_id: int) -> BuildAssetIndex:
        parsed = self._send("GET", f"api/builds/{build_id}")
        if not isinstance(parsed, dict) or not isinstance(parsed.get("assets", []), list):
            raise AssetRegistryProtocolError("asset registry 回應格式錯誤：assets 必須為 list")

        assets: list[BuildAsset] = []
        for item in parsed.get("assets", []):
            if not isinstance(item, dict) or "id" not in item or not item.get("name"):
                raise AssetRegistryProtocolError("asset registry 回應格式錯誤：asset 缺少 id 或 name")
            try:
                asset_id = int(item["id"])
            except (TypeError, ValueError) as exc:
                raise AssetRegistryProtocolError(
                    f"asset registry 回應格式錯誤：asset id 不是整數：{item['id']!r}"
                ) from exc
            assets.append(
                BuildAsset(
                    asset_id=asset_id,
                    name=str(item["name"]),
                    version=str(item["version"]) if item.get("version") else None,
                )
            )
        return BuildAssetIndex(assets)

    def bulk_add_locations(self, facts: Iterable[LocationFact]) -> None:
        payload = [fact.to_payload() for fact in facts]
        self._send("POST", "api/assets/bulk-add-locations", payload)

    def _send(self, method: str, path: str, payload: Any = None) -> Any:
        base = self._settings.base_url.rstrip("/") + "/"
        endpoint = parse.urljoin(base, path) + f"?api-version={API_VERSION}"
        headers = {"Accept": "application/json"}
        body = None
        if payload is not None:
            body = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"

        token = _resolve_api_key(self._settings.api_key_env)
        if token:
            headers["Authorization"] = f"Bearer {token}"

        req = request.Request(endpoint, data=body, headers=headers, method=method)

        try:
            with request.urlopen(req, timeout=self._settings.timeout_s) as response:
                raw = response.read().decode("utf-8")
        except error.HTTPError as exc:
            detail = _safe_error_body(exc)
            raise AssetRegistryHTTPError(f"asset registry 回傳 HTTP {exc.code}：{detail}") from exc
        except (socket.timeout, TimeoutError) as exc:
            raise AssetRegistryTimeoutError("呼叫 asset registry 逾時") from exc
        except error.URLError as exc:
            if isinstance(exc.reason, TimeoutError):
                raise AssetRegistryTimeoutError("呼叫 asset registry 逾時") from exc
            raise AssetRegistryError(f"無法連線 asset registry：{exc.reason}") from exc

        if not raw.strip():
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise AssetRegistryProtocolError("asset registry 回傳非合法 JSON") from exc


def _resolve_api_key(api_key_env: str | None) -> str | None:
    if not api_key_env:
        return None
    return os.environ.get(api_key_env)


def _safe_error_body(exc: error.HTTPError) -> str:
    try:
        raw = exc.read().decode("utf-8")
        parsed = json.loads(raw)
        if isinstance(parsed, dict) and isinstance(parsed.get("message"), str):
            return parsed["message"]
        return raw[:200]
    except Exception:  # noqa: BLE001
        return "asset registry 回傳錯誤"
