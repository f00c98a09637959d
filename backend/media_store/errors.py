"""
Media Host Errors

Every failure a request can hit is one of these types. Each carries the
HTTP status the boundary layer answers with, so routers just raise and a
single exception handler renders the response.

Taxonomy:
- ValidationError (400): wrong media type, bad asset name, bad proxy URL
- UpstreamError (400): remote fetch failed or returned a failure status
- NotFoundError (404): unknown asset name
- PayloadTooLargeError (409): request body over the configured limit
- StorageError (500): local read/write failure, message kept generic
- ConfigError: startup only, never mapped to a response
"""

from typing import Optional


class MediaHostError(Exception):
    """Base class for errors that map to an HTTP response."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MediaHostError):
    status_code = 400


class UpstreamError(MediaHostError):
    status_code = 400


class NotFoundError(MediaHostError):
    status_code = 404


class PayloadTooLargeError(MediaHostError):
    status_code = 409


class StorageError(MediaHostError):
    status_code = 500

    def __init__(self, message: str = "Server failed to store or read the file."):
        super().__init__(message)


class ConfigError(Exception):
    """Fatal startup error: missing/invalid config or uncreatable storage."""


# ============================================
# Validation
# ============================================

class InvalidContentError(ValidationError):
    pass


class InvalidAssetNameError(ValidationError):
    def __init__(self, name: str):
        super().__init__("Invalid file name.")
        self.name = name


# ============================================
# Proxy
# ============================================

class ProxyError(MediaHostError):
    """Common base of every proxy-fetch failure."""


class InvalidProxyUrlError(ProxyError, ValidationError):
    pass


class SelfReferenceError(ProxyError, ValidationError):
    def __init__(self, message: str = "Can't try to use local files as external."):
        super().__init__(message)


class NotMediaError(ProxyError, ValidationError):
    pass


class UnreachableError(ProxyError, UpstreamError):
    def __init__(self, message: str = "The specified website failed to respond."):
        super().__init__(message)


class UpstreamStatusError(ProxyError, UpstreamError):
    def __init__(self, upstream_status: int, message: Optional[str] = None):
        super().__init__(message or f"Target website returned status code {upstream_status}.")
        self.upstream_status = upstream_status


class UpstreamTooLargeError(ProxyError, UpstreamError):
    def __init__(self, limit: int):
        super().__init__(f"Target website returned more than {limit} bytes.")
        self.limit = limit
