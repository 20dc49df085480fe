"""Domain exceptions raised by services and translated to HTTP in app.main."""


class IApproveError(Exception):
    """Base exception for the approval service."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict:
        return {"detail": self.message}


class UnauthorizedError(IApproveError):
    """Actor lacks the role required for the invoice's current status.

    Not retried; surfaced to the user as a permission message.
    """

    status_code = 403

    def __init__(self, message: str, required_role: str | None = None):
        super().__init__(message)
        self.required_role = required_role

    def to_detail(self) -> dict:
        return {"detail": self.message, "required_role": self.required_role}


class StaleStateError(IApproveError):
    """A concurrent decision already moved the invoice past the status read.

    The caller should re-present the decision point using current_status.
    """

    status_code = 409

    def __init__(
        self,
        message: str,
        invoice_id=None,
        expected_status: str | None = None,
        current_status: str | None = None,
        actionable: bool = False,
    ):
        super().__init__(message)
        self.invoice_id = invoice_id
        self.expected_status = expected_status
        self.current_status = current_status
        self.actionable = actionable

    def to_detail(self) -> dict:
        return {
            "detail": self.message,
            "invoice_id": str(self.invoice_id) if self.invoice_id else None,
            "expected_status": self.expected_status,
            "current_status": self.current_status,
            "actionable": self.actionable,
        }


ConflictError = StaleStateError


class InvoiceValidationError(IApproveError):
    """Malformed invoice input, rejected before reaching the workflow."""

    status_code = 422

    def __init__(self, message: str, errors: list | None = None):
        super().__init__(message)
        self.errors = errors or []

    def to_detail(self) -> dict:
        return {"detail": self.message, "errors": self.errors}


class StoreUnavailableError(IApproveError):
    """Database or object store failure. Transient; the user may retry."""

    status_code = 503


class NotFoundError(IApproveError):
    status_code = 404


class DuplicateError(IApproveError):
    status_code = 409
