"""Centralized exception definitions for mcpy."""

from typing import Optional


class McError(Exception):
    """Base exception for all mcpy errors."""


# Configuration Exceptions


class ConfigError(McError):
    """Base exception for configuration errors."""


class ValidationError(ConfigError):
    """Exception raised when configuration validation fails."""


# Client Exceptions


class ClientError(McError):
    """Base exception for client operation errors."""

    def __init__(self, message: str = "", url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class NotFoundError(ClientError):
    """Remote object, bucket or path not found."""


class PermissionDeniedError(ClientError):
    """Permission denied on a backend operation."""


class NotDirectoryError(ClientError):
    """A directory-only operation was attempted on a file."""


class IsDirectoryError(ClientError):
    """An object operation was attempted on a directory."""


class InvalidRangeError(ClientError):
    """Partial read outside the bounds of the object."""

    def __init__(self, offset: int, length: int, url: Optional[str] = None) -> None:
        super().__init__(f"invalid range offset={offset} length={length}", url)
        self.offset = offset
        self.length = length


class BrokenSymlinkError(ClientError):
    """Symlink whose target does not exist."""


class SymlinkCycleError(ClientError):
    """Too many levels of symbolic links."""


class ListingError(ClientError):
    """Directory or bucket enumeration failed."""


class TransferFailedError(ClientError):
    """Copying a single object failed."""


class ContainerCreateFailedError(ClientError):
    """Bucket or directory creation failed."""


class ShareError(ClientError):
    """Share link could not be generated."""


# Copy Exceptions


class InvalidCopyCombinationError(McError):
    """Source and target URLs do not form a valid copy."""


# Storage Exceptions


class UnsupportedProtocolError(McError):
    """Raised when an unsupported URL scheme is specified."""


def is_recoverable_listing_error(error: ClientError, filesystem: bool) -> bool:
    """Whether an enumeration error is skipped instead of ending the listing.

    Paths that vanish or cannot be read are only skipped during a filesystem
    walk; on an object store they end the listing.
    """
    if isinstance(error, (BrokenSymlinkError, SymlinkCycleError)):
        return True
    return filesystem and isinstance(error, (NotFoundError, PermissionDeniedError))
