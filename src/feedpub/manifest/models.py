"""Build manifest data model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

CATEGORY_ATTRIBUTE = "Category"
NON_SHIPPING_ATTRIBUTE = "NonShipping"


def _frozen_attributes(attributes: Mapping[str, Any] | None) -> tuple[tuple[str, str], ...]:
    return tuple(sorted((str(key), str(value)) for key, value in (attributes or {}).items()))


def _lookup_attribute(attributes: tuple[tuple[str, str], ...], name: str) -> str | None:
    wanted = name.lower()
    for key, value in attributes:
        if key.lower() == wanted:
            return value
    return None


@dataclass(frozen=True)
class PackageArtifact:
    id: str
    version: str
    non_shipping: bool = False
    attributes: tuple[tuple[str, str], ...] = field(default=(), compare=False)

    @property
    def category_attribute(self) -> str | None:
        return _lookup_attribute(self.attributes, CATEGORY_ATTRIBUTE)

    @property
    def display_name(self) -> str:
        return f"{self.id}@{self.version}"

    @property
    def file_name(self) -> str:
        return f"{self.id}.{self.version}.nupkg"


@dataclass(frozen=True)
class BlobArtifact:
    id: str
    non_shipping: bool = False
    attributes: tuple[tuple[str, str], ...] = field(default=(), compare=False)

    @property
    def category_attribute(self) -> str | None:
        return _lookup_attribute(self.attributes, CATEGORY_ATTRIBUTE)

    @property
    def display_name(self) -> str:
        return self.id

    @property
    def file_name(self) -> str:
        return self.id.replace("\\", "/").rsplit("/", 1)[-1]


Artifact = PackageArtifact | BlobArtifact


@dataclass(frozen=True)
class BuildModel:
    packages: tuple[PackageArtifact, ...] = ()
    blobs: tuple[BlobArtifact, ...] = ()
    build_id: int | None = None


def make_package(
    package_id: str,
    version: str,
    *,
    non_shipping: bool = False,
    attributes: Mapping[str, Any] | None = None,
) -> PackageArtifact:
    return PackageArtifact(
        id=package_id,
        version=version,
        non_shipping=non_shipping,
        attributes=_frozen_attributes(attributes),
    )


def make_blob(
    blob_id: str,
    *,
    non_shipping: bool = False,
    attributes: Mapping[str, Any] | None = None,
) -> BlobArtifact:
    return BlobArtifact(id=blob_id, non_shipping=non_shipping, attributes=_frozen_attributes(attributes))


def build_model_from_mapping(data: Mapping[str, Any]) -> BuildModel:
    """Convert a plain manifest document into a :class:`BuildModel`.

    Expected shape::

        build_id: 1234
        packages:
          - {id: Foo, version: 1.0.0, attributes: {NonShipping: "true"}}
        blobs:
          - {id: assets/bar.symbols.nupkg, non_shipping: false}
    """

    packages: list[PackageArtifact] = []
    for item in data.get("packages") or []:
        if not isinstance(item, Mapping):
            raise ValueError("packages 項目格式錯誤")
        package_id = str(item.get("id") or "").strip()
        version = str(item.get("version") or "").strip()
        if not package_id or not version:
            raise ValueError(f"package 缺少 id 或 version：{dict(item)}")
        attributes = _item_attributes(item)
        packages.append(
            make_package(package_id, version, non_shipping=_non_shipping(item, attributes), attributes=attributes)
        )

    blobs: list[BlobArtifact] = []
    for item in data.get("blobs") or []:
        if not isinstance(item, Mapping):
            raise ValueError("blobs 項目格式錯誤")
        blob_id = str(item.get("id") or "").strip()
        if not blob_id:
            raise ValueError(f"blob 缺少 id：{dict(item)}")
        attributes = _item_attributes(item)
        blobs.append(make_blob(blob_id, non_shipping=_non_shipping(item, attributes), attributes=attributes))

    build_id = data.get("build_id")
    return BuildModel(
        packages=tuple(packages),
        blobs=tuple(blobs),
        build_id=int(build_id) if build_id not in (None, "") else None,
    )


def _item_attributes(item: Mapping[str, Any]) -> dict[str, Any]:
    attributes = item.get("attributes") or {}
    if not isinstance(attributes, Mapping):
        raise ValueError("attributes 必須為 mapping")
    return dict(attributes)


def _non_shipping(item: Mapping[str, Any], attributes: Mapping[str, Any]) -> bool:
    if "non_shipping" in item:
        return _as_bool(item["non_shipping"])
    for key, value in attributes.items():
        if str(key).lower() == NON_SHIPPING_ATTRIBUTE.lower():
            return _as_bool(value)
    return False


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"true", "1", "yes"}
