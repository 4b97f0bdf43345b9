# Overview: Domain error taxonomy shared by services and routes.

from __future__ import annotations


class StorefrontError(Exception):
    """
    Base class for expected, client-facing failures.

    Carries a message, a details dict for the response body and the
    HTTP status the route layer should answer with.
    """
    http_status = 400

    def __init__(self, message: str, details: dict | None = None, http_status: int | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if http_status is not None:
            self.http_status = http_status


class ValidationError(StorefrontError):
    """400-level input problem."""


class NotFoundError(StorefrontError):
    http_status = 404


class ConflictError(StorefrontError):
    """409-level business rule conflict."""
    http_status = 409


class PermissionDenied(StorefrontError):
    http_status = 403


class UserNotFound(NotFoundError):
    pass


class EmptyCart(StorefrontError):
    pass


class NoAddressAvailable(StorefrontError):
    pass


class AddressNotFound(NotFoundError):
    pass


class ProductUnavailable(ConflictError):
    """A line item's product no longer exists or is inactive."""


class InsufficientStock(ConflictError):
    """Requested quantity exceeds available stock for a line."""


class CouponError(StorefrontError):
    """Coupon rejected (inactive, expired, below minimum, limit reached, not applicable)."""


class RewardError(StorefrontError):
    pass


class InsufficientBalance(RewardError):
    pass


class BelowMinimumRedemption(RewardError):
    pass


class RewardsInactive(RewardError):
    pass


class InvalidStatusTransition(ConflictError):
    pass
