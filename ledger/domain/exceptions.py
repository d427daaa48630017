class LedgerError(Exception):
    """Base class for every error the ledger engines raise on purpose."""

    code = "LEDGER_ERROR"


class ValidationError(LedgerError):
    """Raised when a request is missing a field or carries a malformed value."""

    code = "VALIDATION_ERROR"

    def __init__(self, field, reason):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class AuthorizationError(LedgerError):
    """Raised when a caller lacks the code or privilege an operation requires."""

    code = "AUTHORIZATION_ERROR"

    def __init__(self, reason, *, elevated=False):
        # elevated=True means a privilege claim was missing rather than a secret being wrong.
        self.reason = reason
        self.elevated = elevated
        super().__init__(reason)


class NotFoundError(LedgerError):
    """Raised when an account or activity does not exist."""

    code = "NOT_FOUND"

    def __init__(self, kind, identifier):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} {identifier} not found")


class InvalidStateError(LedgerError):
    """Raised when an activity is not in the type or status an operation requires."""

    code = "INVALID_STATE"

    def __init__(self, activity_id, reason):
        self.activity_id = activity_id
        self.reason = reason
        super().__init__(f"Activity {activity_id}: {reason}")


class InsufficientFundsError(LedgerError):
    """Raised when a withdrawal asks for more than the available balance."""

    code = "INSUFFICIENT_FUNDS"

    def __init__(self, account_id, requested, available):
        self.account_id = account_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Account {account_id}: requested {requested}, available {available}"
        )


class StoreConflictError(LedgerError):
    """Raised when an atomic unit kept conflicting after every retry. Safe to retry later."""

    code = "STORE_CONFLICT"

    def __init__(self, attempts, cause):
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"Atomic unit failed after {attempts} attempts: {cause}")


class PartialBatchFailure(LedgerError):
    """Raised by the bulk reset when some chunks committed and others did not."""

    code = "PARTIAL_BATCH_FAILURE"

    def __init__(self, report):
        self.report = report
        failed = ", ".join(str(chunk.index) for chunk in report.failed_chunks)
        super().__init__(
            f"{len(report.failed_chunks)} of {report.chunks_attempted} chunks failed "
            f"(chunks {failed}); reset {report.accounts_reset} accounts and "
            f"{report.devices_reset} devices"
        )
