"""Split manifest artifacts into content categories."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, TypeVar

from .categories import PACKAGE_CATEGORY, ContentCategory, infer_category, parse_category
from .models import BlobArtifact, BuildModel, PackageArtifact

logger = logging.getLogger("feedpub.manifest")

_T = TypeVar("_T", PackageArtifact, BlobArtifact)


@dataclass(frozen=True)
class ClassificationResult:
    packages_by_category: Mapping[ContentCategory, frozenset[PackageArtifact]]
    blobs_by_category: Mapping[ContentCategory, frozenset[BlobArtifact]]
    errors: tuple[str, ...] = field(default=())


def split_artifacts_in_categories(build_model: BuildModel) -> ClassificationResult:
    """Bucket packages and blobs by category.

    Categories come from the ``Category`` attribute (``;`` separated) when
    present. Otherwise packages fall under ``package`` and blobs are inferred
    from their extension. Unknown tokens are reported and dropped; the rest of
    the manifest is still classified.
    """

    errors: list[str] = []
    packages = _bucket(
        build_model.packages,
        lambda package: package.category_attribute or PACKAGE_CATEGORY,
        errors,
    )
    blobs = _bucket(
        build_model.blobs,
        lambda blob: blob.category_attribute or infer_category(blob.id),
        errors,
    )
    return ClassificationResult(
        packages_by_category=MappingProxyType(packages),
        blobs_by_category=MappingProxyType(blobs),
        errors=tuple(errors),
    )


def _bucket(artifacts: Iterable[_T], categories_of, errors: list[str]) -> dict[ContentCategory, frozenset[_T]]:
    buckets: dict[ContentCategory, set[_T]] = {}
    for artifact in artifacts:
        for token in str(categories_of(artifact)).split(";"):
            if not token.strip():
                continue
            category = parse_category(token)
            if category is None:
                message = f"無效的 target feed 分類 '{token}'（{artifact.display_name}）"
                logger.error(message)
                errors.append(message)
                continue
            buckets.setdefault(category, set()).add(artifact)
    return {category: frozenset(items) for category, items in buckets.items()}
