"""
Domain exceptions for the fleet maintenance core.

Every error carries a machine-readable code, the HTTP status the API layer
should answer with, and a context dict for structured logging/responses.
"""

from typing import Any, Dict, Optional


class FleetCoreError(Exception):
    """
    Base fleet core error.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for API responses
        status_code: HTTP status code for this error type
        context: Additional context data about the error
    """

    default_code = "FLEET_ERROR"
    default_status = 400

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_code
        self.status_code = status_code or self.default_status
        self.context = context or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "status_code": self.status_code,
            "context": self.context,
        }


class ValidationError(FleetCoreError):
    """Invalid input: bad enum value, bad reference, inconsistent fields."""

    default_code = "VALIDATION_ERROR"
    default_status = 400


class InvalidAssetReference(ValidationError):
    """Work order points at an asset that does not exist for its asset type."""

    default_code = "INVALID_ASSET_REFERENCE"

    def __init__(self, asset_type: Optional[str], asset_id: Any):
        super().__init__(
            f"Invalid {asset_type or 'asset'} ID",
            context={"asset_type": asset_type, "asset_id": str(asset_id) if asset_id else None},
        )


class PermissionDenied(FleetCoreError):
    """RBAC check failed or a protected field was changed by the wrong actor."""

    default_code = "PERMISSION_DENIED"
    default_status = 403


class ConflictError(FleetCoreError):
    """The mutation conflicts with current state."""

    default_code = "CONFLICT"
    default_status = 409


class InsufficientInventory(ConflictError):
    """Not enough stock to cover a work order part line."""

    default_code = "INSUFFICIENT_INVENTORY"

    def __init__(self, part_id: Any, requested: int):
        super().__init__(
            f"Insufficient inventory for part {part_id}",
            context={"part_id": str(part_id), "requested": requested},
        )


class CompanyAlreadyHasAdmin(ConflictError):
    """A company may only be bootstrapped with a single admin."""

    default_code = "COMPANY_HAS_ADMIN"


class DuplicateMembership(ConflictError):
    """A (user, company) membership already exists."""

    default_code = "DUPLICATE_MEMBERSHIP"


class NotFound(FleetCoreError):
    """Referenced company/user/work order/part does not exist."""

    default_code = "NOT_FOUND"
    default_status = 404


class NoMatchingCompany(NotFound):
    """No company is registered with the caller's contact email."""

    default_code = "NO_MATCHING_COMPANY"


class TransientError(FleetCoreError):
    """Retryable race (unique-constraint collision, lock timeout)."""

    default_code = "TRANSIENT_ERROR"
    default_status = 503
