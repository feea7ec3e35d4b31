"""Exceptions raised while assembling image usage records."""

from __future__ import annotations


class ImageUsageError(Exception):
    """Base class for errors raised by an image usage pass."""


class MalformedUrlError(ImageUsageError, ValueError):
    """A URL could not be resolved against its base document URL."""

    def __init__(self, url: str, reason: str = "") -> None:
        self.url = url
        self.reason = reason
        message = f"Malformed URL {url!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ImageLoadError(ImageUsageError):
    """An image could not be re-decoded inside the page."""

    def __init__(self, url: str, reason: str = "") -> None:
        self.url = url
        self.reason = reason
        message = f"Failed to load image {url}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class RemoteEvaluationError(ImageUsageError):
    """A script evaluated inside the page threw or rejected."""


class SnapshotUnavailableError(ImageUsageError):
    """The element snapshot could not be read or did not conform."""


class HostDisconnectedError(ImageUsageError):
    """The page or browser went away while a pass was running."""
