"""Error taxonomy for dataset fetching and normalization."""

from __future__ import annotations


class RefugeeMapError(Exception):
    """Base class for all library errors."""


class FetchError(RefugeeMapError):
    """A dataset channel could not be loaded. Never fatal to the session."""


class NetworkError(FetchError):
    """Transport failure or non-success HTTP status."""


class FetchTimeoutError(FetchError, TimeoutError):
    """Request deadline exceeded."""


class SchemaError(FetchError, ValueError):
    """Response payload does not have the expected shape."""


class EmptyResultError(FetchError):
    """Well-formed response with no usable records after normalization."""
