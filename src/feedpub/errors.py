"""Publishing error definitions."""

from __future__ import annotations


class PublishError(RuntimeError):
    """Base class for publishing errors."""


class ConfigurationError(PublishError):
    """Raised when settings or feed configuration are invalid."""


class FeedUrlError(ConfigurationError):
    """Raised when a target feed URL does not match any known feed layout."""


class FeedRequestError(PublishError):
    """Raised when a feed returns an unexpected response."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class FeedUnavailableError(FeedRequestError):
    """Raised when a feed cannot be reached or answers with a server error."""


class AssetLookupError(PublishError):
    """Raised when an artifact cannot be matched to a registered build asset."""


class PackageInspectionError(PublishError):
    """Raised when a package archive has no readable nuspec."""
