"""Error taxonomy for the marketplace.

Every error carries the HTTP status code the API answers with; ``main`` maps
them to JSON responses in one exception handler.
"""


class MarketplaceError(Exception):
    """Base class for all domain errors."""

    status_code: int = 400

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class InvalidRatingError(MarketplaceError, ValueError):
    """A review rating outside the integer range 1..5."""

    status_code = 422


class InvalidScoreError(MarketplaceError, ValueError):
    """A trust score or review count outside its domain."""

    status_code = 422


class InvalidAdjustmentError(MarketplaceError, ValueError):
    """An admin trust adjustment other than a single step."""

    status_code = 422


class UnknownAccountError(MarketplaceError):
    status_code = 404

    def __init__(self, account_id: str) -> None:
        super().__init__(f"Account not found: {account_id}")
        self.account_id = account_id


class PersistenceConflictError(MarketplaceError):
    """A concurrent write kept winning the optimistic-concurrency race."""

    status_code = 409

    def __init__(self, account_id: str, attempts: int) -> None:
        super().__init__(f"Trust score for {account_id} changed concurrently; gave up after {attempts} attempts")
        self.account_id = account_id
        self.attempts = attempts


class AuthenticationRequiredError(MarketplaceError):
    status_code = 401


class AccountInactiveError(MarketplaceError):
    status_code = 403


class PermissionDeniedError(MarketplaceError):
    status_code = 403


class DuplicateAccountError(MarketplaceError):
    status_code = 409


class OrderNotFoundError(MarketplaceError):
    status_code = 404


class ProductNotFoundError(MarketplaceError):
    status_code = 404


class ProductUnavailableError(MarketplaceError):
    status_code = 409


class ReviewNotAllowedError(MarketplaceError):
    status_code = 409


class InvalidStatusTransitionError(MarketplaceError):
    status_code = 409
