"""Policy checks run before anything is sent to a feed."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from ..manifest.models import Artifact, PackageArtifact
from .types import TargetFeedConfig


@dataclass(frozen=True)
class SafetyPolicy:
    internal_build: bool = False
    skip_safety_checks: bool = False
    check_stable_on_non_isolated: bool = False


@dataclass(frozen=True)
class SafetyVerdict:
    allowed: bool
    errors: tuple[str, ...] = field(default=())
    warnings: tuple[str, ...] = field(default=())


def check_feed_safety(
    feed: TargetFeedConfig,
    artifacts: Iterable[Artifact],
    policy: SafetyPolicy,
) -> SafetyVerdict:
    """Reject pairings that could leak internal or stable content.

    With ``skip_safety_checks`` every violation is downgraded to a warning
    and the pairing is allowed.
    """

    violations: list[str] = []
    if policy.internal_build and not feed.internal:
        violations.append(
            f"內部建置不可使用非內部 feed '{feed.url}'（可用 skip_safety_checks=true 略過此檢查）"
        )
    if policy.check_stable_on_non_isolated and not feed.isolated:
        stable = sorted(
            artifact.display_name
            for artifact in artifacts
            if isinstance(artifact, PackageArtifact) and is_stable_version(artifact.version)
        )
        if stable:
            violations.append(
                f"穩定版套件不可發佈到非隔離 feed '{feed.url}'：{', '.join(stable)}"
            )

    if not violations:
        return SafetyVerdict(allowed=True)
    if policy.skip_safety_checks:
        return SafetyVerdict(allowed=True, warnings=tuple(violations))
    return SafetyVerdict(allowed=False, errors=tuple(violations))


def is_stable_version(version: str) -> bool:
    core = version.split("+", 1)[0]
    return "-" not in core
