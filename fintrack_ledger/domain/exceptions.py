"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer; carries a machine-checkable kind"""

    kind = "DOMAIN_ERROR"
    default_message = "Ledger operation failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# Not found (also used for entities owned by another user)


class NotFoundError(DomainException):
    kind = "NOT_FOUND"
    default_message = "Resource not found"


class CardNotFoundError(NotFoundError):
    kind = "CARD_NOT_FOUND"
    default_message = "Card not found or inactive"


class AccountNotFoundError(NotFoundError):
    kind = "ACCOUNT_NOT_FOUND"
    default_message = "Account not found"


class ScheduledTransactionNotFoundError(NotFoundError):
    kind = "SCHEDULED_TRANSACTION_NOT_FOUND"
    default_message = "Scheduled transaction not found"


# Policy violations: expected, user-facing rejections


class PolicyViolationError(DomainException):
    kind = "POLICY_VIOLATION"
    default_message = "Operation rejected by card policy"


class CreditLimitExceededError(PolicyViolationError):
    kind = "CREDIT_LIMIT_EXCEEDED"
    default_message = "Credit limit exceeded"


class MonthlyLimitExceededError(PolicyViolationError):
    kind = "MONTHLY_LIMIT_EXCEEDED"
    default_message = "Monthly limit exceeded"


class InsufficientBalanceError(PolicyViolationError):
    kind = "INSUFFICIENT_BALANCE"
    default_message = "Insufficient balance"


class InsufficientPrepaidBalanceError(PolicyViolationError):
    kind = "INSUFFICIENT_PREPAID_BALANCE"
    default_message = "Insufficient prepaid balance"


class InsufficientLinkedBalanceError(PolicyViolationError):
    kind = "INSUFFICIENT_LINKED_BALANCE"
    default_message = "Insufficient balance in linked account"


class InvalidAmountError(PolicyViolationError):
    kind = "INVALID_AMOUNT"
    default_message = "Amount must be positive"


class InvalidCardConfigurationError(PolicyViolationError):
    kind = "INVALID_CARD_CONFIGURATION"
    default_message = "Card configuration is invalid"


class ValidationFailedError(PolicyViolationError):
    kind = "VALIDATION_FAILED"
    default_message = "Request data is invalid"


# Invalid state: the entity cannot take this transition


class InvalidStateError(DomainException):
    kind = "INVALID_STATE"
    default_message = "Operation not allowed in current state"


class AlreadyExecutedError(InvalidStateError):
    kind = "ALREADY_EXECUTED"
    default_message = "Scheduled transaction is already completed"


class AutoTransferNotEnabledError(InvalidStateError):
    kind = "AUTO_TRANSFER_NOT_ENABLED"
    default_message = "Auto transfer not enabled"


class RecurringRequiresFrequencyError(InvalidStateError):
    kind = "RECURRING_REQUIRES_FREQUENCY"
    default_message = "Recurring scheduled transactions require a frequency"


class InvalidStatusTransitionError(InvalidStateError):
    kind = "INVALID_STATUS_TRANSITION"
    default_message = "Status transition not allowed"


# Infrastructure


class LedgerUnavailableError(DomainException):
    """Underlying atomic commit failed or timed out; never retried by the core"""

    kind = "LEDGER_UNAVAILABLE"
    default_message = "Ledger storage unavailable"
