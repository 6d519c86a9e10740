"""Per-artifact push results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

PushOutcome = Literal["published", "skipped_identical", "conflict", "transient_failure", "fatal"]

RECORDED_OUTCOMES: frozenset[str] = frozenset({"published", "skipped_identical"})


@dataclass(frozen=True)
class PushResult:
    artifact: str
    feed_url: str
    outcome: PushOutcome
    message: str = ""
    attempts: int = 0

    @property
    def succeeded(self) -> bool:
        return self.outcome in RECORDED_OUTCOMES

    def to_dict(self) -> dict[str, object]:
        return {
            "artifact": self.artifact,
            "feed_url": self.feed_url,
            "outcome": self.outcome,
            "message": self.message,
            "attempts": self.attempts,
        }
