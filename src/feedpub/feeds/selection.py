"""Asset-selection filter applied per target feed."""

from __future__ import annotations

from typing import Iterable, TypeVar

from ..manifest.models import BlobArtifact, PackageArtifact
from .types import AssetSelection

_T = TypeVar("_T", PackageArtifact, BlobArtifact)


def filter_artifacts(artifacts: Iterable[_T], selection: AssetSelection) -> frozenset[_T]:
    if selection == "all":
        return frozenset(artifacts)
    if selection == "shipping_only":
        return frozenset(artifact for artifact in artifacts if not artifact.non_shipping)
    if selection == "non_shipping_only":
        return frozenset(artifact for artifact in artifacts if artifact.non_shipping)
    # Feed loading rejects unknown values, so reaching this is a caller bug.
    raise NotImplementedError(f"未知的 asset selection：'{selection}'")
