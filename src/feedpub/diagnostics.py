"""Thread-safe error and warning accumulator for a publish run."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Iterable


@dataclass
class Diagnostics:
    """Collects every reported problem so a run surfaces all of them at once.

    Each message is logged on ``logger`` as it is reported and kept in order
    of arrival. Components return their own ``Diagnostics`` and the caller
    merges them with :meth:`extend`.
    """

    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("feedpub"))
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def error(self, message: str) -> None:
        self.logger.error(message)
        with self._lock:
            self.errors.append(message)

    def warning(self, message: str) -> None:
        self.logger.warning(message)
        with self._lock:
            self.warnings.append(message)

    def extend(self, other: "Diagnostics") -> None:
        if other is self:
            return
        with other._lock:
            errors = list(other.errors)
            warnings = list(other.warnings)
        self.include(errors, warnings)

    def include(self, errors: Iterable[str], warnings: Iterable[str] = ()) -> None:
        """Adopt messages that were already logged where they were produced."""

        with self._lock:
            self.errors.extend(errors)
            self.warnings.extend(warnings)

    def snapshot(self) -> tuple[tuple[str, ...], tuple[str, ...]]:
        with self._lock:
            return tuple(self.errors), tuple(self.warnings)

    @property
    def has_errors(self) -> bool:
        with self._lock:
            return bool(self.errors)
