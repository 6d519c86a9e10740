"""Read package identity from a .nupkg archive."""

from __future__ import annotations

import zipfile
from pathlib import Path
from xml.etree import ElementTree

from ..errors import PackageInspectionError


def inspect_package(path: Path) -> tuple[str, str]:
    """Return ``(id, version)`` declared by the nuspec inside ``path``."""

    try:
        with zipfile.ZipFile(path) as archive:
            nuspec_names = [
                name for name in archive.namelist() if "/" not in name and name.lower().endswith(".nuspec")
            ]
            if not nuspec_names:
                raise PackageInspectionError(f"套件中找不到 nuspec：{path}")
            raw = archive.read(nuspec_names[0])
    except (OSError, zipfile.BadZipFile) as exc:
        raise PackageInspectionError(f"無法讀取套件：{path}") from exc

    try:
        root = ElementTree.fromstring(raw)
    except ElementTree.ParseError as exc:
        raise PackageInspectionError(f"nuspec 格式錯誤：{path}") from exc

    package_id = _metadata_text(root, "id")
    version = _metadata_text(root, "version")
    if not package_id or not version:
        raise PackageInspectionError(f"nuspec 缺少 id 或 version：{path}")
    return package_id, version


def _metadata_text(root: ElementTree.Element, tag: str) -> str:
    # nuspec namespaces vary by schema version, so match on local names.
    for element in root.iter():
        if element.tag.rsplit("}", 1)[-1] != "metadata":
            continue
        for child in element:
            if child.tag.rsplit("}", 1)[-1] == tag:
                return (child.text or "").strip()
    return ""
