"""Build manifest model and classification."""

from .categories import CATEGORIES, ContentCategory, infer_category, parse_category
from .classifier import ClassificationResult, split_artifacts_in_categories
from .models import (
    Artifact,
    BlobArtifact,
    BuildModel,
    PackageArtifact,
    build_model_from_mapping,
    make_blob,
    make_package,
)
from .nuspec import inspect_package

__all__ = [
    "Artifact",
    "BlobArtifact",
    "BuildModel",
    "CATEGORIES",
    "ClassificationResult",
    "ContentCategory",
    "PackageArtifact",
    "build_model_from_mapping",
    "infer_category",
    "inspect_package",
    "make_blob",
    "make_package",
    "parse_category",
    "split_artifacts_in_categories",
]
