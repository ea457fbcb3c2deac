"""
Centralized exception hierarchy for domain-specific errors.

This module provides custom exception classes that represent specific
error conditions in the track and POI pipeline, enabling consistent
HTTP mapping in the API layer and soft-failure handling in services.
"""


class TracklyError(Exception):
    """Base exception for all application-specific errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(TracklyError):
    """Exception raised when data validation fails."""


class InvalidPoiError(ValidationError):
    """Exception raised when a POI candidate cannot be stored."""


class InvalidGeometryError(ValidationError):
    """Exception raised when track geometry has no usable segment."""


class NormalizationError(TracklyError):
    """Exception raised when track geometry cannot be reduced to a line."""


class NoLinearGeometryError(NormalizationError):
    """Exception raised when no linear component survives normalization."""


class AuthorizationError(TracklyError):
    """Exception raised when the caller does not own the resource."""


class ResourceNotFoundError(TracklyError):
    """Exception raised when a requested resource is not found."""


class DuplicateResourceError(TracklyError):
    """Exception raised when attempting to create a duplicate resource."""


class ConflictError(TracklyError):
    """Exception raised when a resource is still referenced elsewhere."""


TracklyException = TracklyError
ValidationException = ValidationError
InvalidPoiException = InvalidPoiError
InvalidGeometryException = InvalidGeometryError
NormalizationException = NormalizationError
AuthorizationException = AuthorizationError
ResourceNotFoundException = ResourceNotFoundError
DuplicateResourceException = DuplicateResourceError
ConflictException = ConflictError
