"""
Typed Exception Hierarchy for the Exchange Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ExchangeKernelError:

    ExchangeKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |   +-- InvalidTransactionTypeError
    |   +-- InvalidFieldError
    |   +-- ImmutableFieldError
    |
    +-- CurrencyError
    |   +-- InvalidCurrencyError
    |
    +-- AccountError
    |   +-- AccountNotFoundError
    |   +-- InsufficientBalanceError
    |
    +-- ReferenceGenerationExhaustedError
    |
    +-- AuthorizationError
    |   +-- NotAuthorizedError
    |
    +-- RecordNotFoundError
    |
    +-- ConcurrencyError
    |   +-- ConcurrencyConflictError
    |
    +-- UnitOfWorkError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                            | When Raised
----------------|---------------------------------|-------------------------------------
Validation      | INVALID_AMOUNT                  | Amount non-numeric or <= 0
                | INVALID_TRANSACTION_TYPE        | Type not Cash In/Cash Out/Buy/Sell
                | INVALID_FIELD                   | Missing/malformed request field
                | IMMUTABLE_FIELD                 | Update touches a financial field
----------------|---------------------------------|-------------------------------------
Currency        | INVALID_CURRENCY                | Not a valid ISO 4217 code
----------------|---------------------------------|-------------------------------------
Account         | ACCOUNT_NOT_FOUND               | No account row for currency
                | INSUFFICIENT_BALANCE            | Debit larger than balance
----------------|---------------------------------|-------------------------------------
Reference       | REFERENCE_GENERATION_EXHAUSTED  | Every attempted reference collided
----------------|---------------------------------|-------------------------------------
Authorization   | NOT_AUTHORIZED                  | Caller neither admin nor creator
----------------|---------------------------------|-------------------------------------
Record          | RECORD_NOT_FOUND                | Transaction id doesn't exist
----------------|---------------------------------|-------------------------------------
Concurrency     | CONCURRENCY_CONFLICT            | Lock timeout / serialization failure
----------------|---------------------------------|-------------------------------------
Unit of work    | UNIT_OF_WORK_ERROR              | Commit/abort on a finished unit

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        result = controller.create(request, identity)
    except InsufficientBalanceError as e:
        return {"error": e.code, "currency": e.currency, "available": e.available}
    except ExchangeKernelError as e:
        if e.retryable:
            ...  # resubmit the whole operation
        return {"error": e.code, "message": str(e)}

Both the advisory pre-check and the authoritative check at apply time raise
InsufficientBalanceError.  ``stage`` tells them apart for messages only;
control flow must treat them the same.
"""

from decimal import Decimal


class ExchangeKernelError(Exception):
    """
    Base exception for all exchange kernel errors.

    All subclasses carry a `code` class attribute for machine-readable
    identification and a `retryable` flag telling callers whether
    resubmitting the whole operation can succeed.
    """

    code: str = "EXCHANGE_KERNEL_ERROR"
    retryable: bool = False


# Validation exceptions


class ValidationError(ExchangeKernelError):
    """Base exception for request validation errors."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    """Amount is non-numeric, non-finite, not strictly positive, or sub-cent."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, value: object, reason: str = "must be a positive number"):
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field}: {reason} (got {value!r})")


class InvalidTransactionTypeError(ValidationError):
    """Transaction type is not one of the supported types."""

    code: str = "INVALID_TRANSACTION_TYPE"

    def __init__(self, transaction_type: object):
        self.transaction_type = transaction_type
        super().__init__(f"Invalid transaction type: {transaction_type!r}")


class InvalidFieldError(ValidationError):
    """A request field is missing or malformed."""

    code: str = "INVALID_FIELD"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class ImmutableFieldError(ValidationError):
    """Attempted to change a field that is frozen after creation."""

    code: str = "IMMUTABLE_FIELD"

    def __init__(self, fields: list[str]):
        self.fields = sorted(fields)
        super().__init__(
            "Only notes, customer_signature and customer_email can be updated; "
            f"rejected: {', '.join(self.fields)}"
        )


# Currency exceptions


class CurrencyError(ExchangeKernelError):
    """Base exception for currency-related errors."""

    code: str = "CURRENCY_ERROR"


class InvalidCurrencyError(CurrencyError):
    """Invalid ISO 4217 currency code provided."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: '{currency}'")


# Account exceptions


class AccountError(ExchangeKernelError):
    """Base exception for account-related errors."""

    code: str = "ACCOUNT_ERROR"


class AccountNotFoundError(AccountError):
    """No account exists for the currency."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Account for {currency} not found")


class InsufficientBalanceError(AccountError):
    """A debit would take the account balance below zero."""

    code: str = "INSUFFICIENT_BALANCE"

    def __init__(
        self,
        currency: str,
        available: Decimal,
        requested: Decimal,
        stage: str = "apply",
    ):
        self.currency = currency
        self.available = available
        self.requested = requested
        self.stage = stage
        super().__init__(
            f"Insufficient balance in {currency} account. "
            f"Available: {available:.2f}, Requested: {requested:.2f}"
        )


# Reference exceptions


class ReferenceGenerationExhaustedError(ExchangeKernelError):
    """Every attempted transaction reference collided with an existing one."""

    code: str = "REFERENCE_GENERATION_EXHAUSTED"
    retryable: bool = True

    def __init__(self, attempts: int, prefix: str):
        self.attempts = attempts
        self.prefix = prefix
        super().__init__(
            f"Failed to generate unique transaction reference with prefix "
            f"{prefix} after {attempts} attempts"
        )


# Authorization exceptions


class AuthorizationError(ExchangeKernelError):
    """Base exception for authorization failures."""

    code: str = "AUTHORIZATION_ERROR"


class NotAuthorizedError(AuthorizationError):
    """Identity may not perform the operation on this transaction."""

    code: str = "NOT_AUTHORIZED"

    def __init__(self, actor_id: str, transaction_id: str, operation: str):
        self.actor_id = actor_id
        self.transaction_id = transaction_id
        self.operation = operation
        super().__init__(
            f"Not authorized to {operation} transaction {transaction_id}"
        )


# Record exceptions


class RecordNotFoundError(ExchangeKernelError):
    """Transaction record was not found."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


# Concurrency exceptions


class ConcurrencyError(ExchangeKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrencyConflictError(ConcurrencyError):
    """
    The database reported a lock or serialization conflict.

    Nothing from the failed unit of work was persisted, so the whole
    lifecycle operation can be retried from scratch.
    """

    code: str = "CONCURRENCY_CONFLICT"
    retryable: bool = True

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Concurrent modification conflict: {detail}")


# Unit of work exceptions


class UnitOfWorkError(ExchangeKernelError):
    """Unit of work used after it was committed or aborted."""

    code: str = "UNIT_OF_WORK_ERROR"

    def __init__(self, state: str, operation: str):
        self.state = state
        self.operation = operation
        super().__init__(f"Cannot {operation} a unit of work that is {state}")
