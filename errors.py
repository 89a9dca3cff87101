"""Exception types raised by the asset tasks."""


class AssetError(Exception):
    """Base class for errors raised while building assets."""


class ConfigurationError(AssetError):
    """Raised when a bundle definition or required setting is missing or invalid."""


class MissingAssetReferenceError(AssetError):
    """Raised when a stylesheet ``url()`` points at a file that does not exist."""

    def __init__(self, reference, path):
        super().__init__(f"Asset {reference!r} not found at {path}")
        self.reference = reference
        self.path = path


class AssetEncodingError(AssetError):
    """Raised when a source file is not valid UTF-8."""


class MinificationError(AssetError):
    """Raised when a minifier engine fails on a source file."""


class PageFetchError(AssetError):
    """Raised when a rendered page cannot be fetched from the application."""


__all__ = [
    "AssetError",
    "ConfigurationError",
    "MissingAssetReferenceError",
    "AssetEncodingError",
    "MinificationError",
    "PageFetchError",
]
