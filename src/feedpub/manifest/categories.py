"""Content categories and extension-based inference."""

from __future__ import annotations

import logging
from typing import Literal, cast

ContentCategory = Literal[
    "package",
    "symbols",
    "checksum",
    "osx",
    "deb",
    "rpm",
    "node",
    "binarylayout",
    "installer",
    "maven",
    "vsix",
    "badge",
    "other",
]

CATEGORIES: frozenset[str] = frozenset(
    {
        "package",
        "symbols",
        "checksum",
        "osx",
        "deb",
        "rpm",
        "node",
        "binarylayout",
        "installer",
        "maven",
        "vsix",
        "badge",
        "other",
    }
)

PACKAGE_CATEGORY: ContentCategory = "package"
DEFAULT_BLOB_CATEGORY: ContentCategory = "other"
PACKAGE_SUFFIX = ".nupkg"
SYMBOLS_PACKAGE_SUFFIX = ".symbols.nupkg"

_EXTENSION_CATEGORIES: dict[str, ContentCategory] = {
    ".nupkg": "package",
    ".pkg": "osx",
    ".deb": "deb",
    ".rpm": "rpm",
    ".npm": "node",
    ".zip": "binarylayout",
    ".msi": "installer",
    ".sha": "checksum",
    ".sha512": "checksum",
    ".pom": "maven",
    ".vsix": "vsix",
    ".cab": "binarylayout",
    ".tar": "binarylayout",
    ".gz": "binarylayout",
    ".tgz": "binarylayout",
    ".exe": "installer",
    ".svg": "badge",
    ".wixlib": "other",
    ".jar": "other",
}

logger = logging.getLogger("feedpub.manifest")


def parse_category(token: str) -> ContentCategory | None:
    normalized = token.strip().lower()
    if normalized in CATEGORIES:
        return cast(ContentCategory, normalized)
    return None


def infer_category(asset_id: str) -> ContentCategory:
    """Infer a blob's category from its name alone."""

    name = asset_id.replace("\\", "/").rsplit("/", 1)[-1].lower()
    dot = name.rfind(".")
    extension = name[dot:] if dot >= 0 else ""
    category = _EXTENSION_CATEGORIES.get(extension)
    if category is None:
        logger.debug("無法由副檔名判斷 %s 的分類，使用 %s", asset_id, DEFAULT_BLOB_CATEGORY)
        return DEFAULT_BLOB_CATEGORY
    if category == "package" and name.endswith(SYMBOLS_PACKAGE_SUFFIX):
        return "symbols"
    return category
