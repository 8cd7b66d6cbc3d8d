"""
Typed Exception Hierarchy for the ShopTrack Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The presentation layer renders a user-facing message for every failure of a
sale or an inventory edit.  Parsing message strings to find out *which*
product ran out of stock is fragile, so every error here:

  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (the offending entity, the available quantity)

Example:
    try:
        coordinator.record_sale(tenant_id, request)
    except InsufficientStockError as e:
        show_error(f"Only {e.available} of {e.product_name} left")

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ShopTrackError (base)
    |
    +-- NotFoundError
    |   +-- ProductNotFoundError
    |   +-- TenantNotFoundError
    |
    +-- InsufficientStockError
    |
    +-- ValidationError
    |
    +-- ConcurrencyError
    |   +-- TransactionConflictError
    |
    +-- StorageUnavailableError
    |
    +-- TransactionPhaseError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                         | When Raised
-----------------------------|-----------------------------------------------
PRODUCT_NOT_FOUND            | Product id does not exist for the tenant
TENANT_NOT_FOUND             | Tenant has no analytics summary (never signed up)
INSUFFICIENT_STOCK           | Sale would drive an item's stock below zero
VALIDATION_ERROR             | Malformed input, rejected before any transaction
TRANSACTION_CONFLICT         | Commit lost a race with a concurrent writer
STORAGE_UNAVAILABLE          | Storage backend could not be reached
TRANSACTION_PHASE_VIOLATION  | Read after write, or blind write, in one scope

===============================================================================
HANDLING PATTERNS
===============================================================================

1. ConcurrencyError and StorageUnavailableError are the only retryable
   families.  The coordinator never retries; callers wrap calls in
   ``RetryPolicy`` when they want to.

2. TransactionPhaseError is a programming error in a transaction body, never
   a user error.  It is surfaced like any other failure and nothing is
   committed.
"""


class ShopTrackError(Exception):
    """
    Base exception for all kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SHOPTRACK_ERROR"


# Not-found exceptions


class NotFoundError(ShopTrackError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class ProductNotFoundError(NotFoundError):
    """Product with given ID was not found for the tenant."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str, product_name: str | None = None):
        self.product_id = product_id
        self.product_name = product_name
        label = f"{product_name} ({product_id})" if product_name else product_id
        super().__init__(f"Product not found: {label}")


class TenantNotFoundError(NotFoundError):
    """Tenant has no analytics summary document."""

    code: str = "TENANT_NOT_FOUND"

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"Tenant not initialized: {tenant_id}")


# Stock exceptions


class InsufficientStockError(ShopTrackError):
    """A sale would drive an item's stock below zero."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_id: str,
        product_name: str,
        requested: int,
        available: int,
    ):
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available
        super().__init__(
            f"Not enough stock for {product_name}: "
            f"requested {requested}, available {available}"
        )


# Validation exceptions


class ValidationError(ShopTrackError):
    """
    Input rejected before any transaction was opened.

    field_errors is a list of {"field": ..., "message": ...} dicts.
    """

    code: str = "VALIDATION_ERROR"

    def __init__(self, subject: str, field_errors: list[dict]):
        self.subject = subject
        self.field_errors = field_errors
        details = "; ".join(f"{e['field']}: {e['message']}" for e in field_errors)
        super().__init__(f"Invalid {subject}: {details}")


# Concurrency exceptions


class ConcurrencyError(ShopTrackError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class TransactionConflictError(ConcurrencyError):
    """Commit failed because another transaction modified the same records."""

    code: str = "TRANSACTION_CONFLICT"

    def __init__(self, tenant_id: str, operation: str, reason: str):
        self.tenant_id = tenant_id
        self.operation = operation
        self.reason = reason
        super().__init__(
            f"Transaction conflict in {operation} for tenant {tenant_id}: {reason}"
        )


# Storage exceptions


class StorageUnavailableError(ShopTrackError):
    """The storage backend could not be reached; nothing was committed."""

    code: str = "STORAGE_UNAVAILABLE"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Storage unavailable during {operation}: {reason}")


class TransactionPhaseError(ShopTrackError):
    """A transaction body broke read-phase-then-write-phase ordering."""

    code: str = "TRANSACTION_PHASE_VIOLATION"

    def __init__(self, action: str, reason: str):
        self.action = action
        self.reason = reason
        super().__init__(f"Transaction phase violation on {action}: {reason}")
