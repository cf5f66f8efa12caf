"""
Typed Exception Hierarchy for the Hotel Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from HotelKernelError:

    HotelKernelError (base)
    |
    +-- NotFoundError
    |   +-- BookingNotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- AccessRequestNotFoundError
    |   +-- AttachmentNotFoundError
    |
    +-- ConflictError
    |   +-- DuplicateAccessRequestError
    |   +-- InvoiceAlreadySettledError
    |   +-- InvalidStatusTransitionError
    |
    +-- ValidationError
    |   +-- InvalidPaymentAmountError
    |   +-- MissingFieldError
    |   +-- InvalidChargeError
    |
    +-- NotificationFailure
    |
    +-- PersistenceError
    |   +-- SnapshotError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | BOOKING_NOT_FOUND           | Booking ID doesn't resolve
                | INVOICE_NOT_FOUND           | No invoice for booking / invoice ID
                | PAYMENT_NOT_FOUND           | Payment ID doesn't resolve
                | ACCESS_REQUEST_NOT_FOUND    | Request removed or never existed
                | ATTACHMENT_NOT_FOUND        | Reply, index or stored content missing
----------------|-----------------------------|-----------------------------------------
Conflict        | DUPLICATE_ACCESS_REQUEST    | Email already has a User or active request
                | INVOICE_ALREADY_SETTLED     | Rebilling a PAID invoice
                | INVALID_STATUS_TRANSITION   | Edge missing from a transition table
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_PAYMENT_AMOUNT      | amount <= 0 or not a decimal
                | MISSING_FIELD               | Required input absent or blank
                | INVALID_CHARGE              | Bad quantity / amount / description
----------------|-----------------------------|-----------------------------------------
Notification    | NOTIFICATION_FAILURE        | Send failed (logged, never raised to callers)
----------------|-----------------------------|-----------------------------------------
Persistence     | SNAPSHOT_ERROR              | Snapshot save/load failed
----------------|-----------------------------|-----------------------------------------
Configuration   | CONFIGURATION_ERROR         | Invalid config value

===============================================================================
HANDLING PATTERNS
===============================================================================

1. NotFound / Conflict / Validation are raised BEFORE any write. A caller
   that catches one of them can assume the stores are unchanged.

2. NotificationFailure is constructed only inside the notification gateway,
   where it is logged with exc_info and dropped:

    try:
        sender.send_email(...)
    except Exception as exc:
        failure = NotificationFailure(template, recipient, reference, exc)
        logger.error("notification_failed", exc_info=failure)

3. SnapshotError is raised AFTER the in-memory mutation has been applied.
   The next successful save re-persists the full state.
"""


class HotelKernelError(Exception):
    """
    Base exception for all hotel kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "HOTEL_KERNEL_ERROR"


# Not found


class NotFoundError(HotelKernelError):
    """Base exception for unresolvable identifiers."""

    code: str = "NOT_FOUND"


class BookingNotFoundError(NotFoundError):
    """Booking with given ID was not found."""

    code: str = "BOOKING_NOT_FOUND"

    def __init__(self, booking_id: str):
        self.booking_id = booking_id
        super().__init__(f"Booking not found: {booking_id}")


class InvoiceNotFoundError(NotFoundError):
    """No invoice exists for the given booking (or invoice ID)."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, booking_id: str | None = None, invoice_id: str | None = None):
        self.booking_id = booking_id
        self.invoice_id = invoice_id
        if invoice_id is not None:
            super().__init__(f"Invoice not found: {invoice_id}")
        else:
            super().__init__(f"Invoice not found for booking: {booking_id}")


class PaymentNotFoundError(NotFoundError):
    """Payment with given ID was not found."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment not found: {payment_id}")


class AccessRequestNotFoundError(NotFoundError):
    """Access request is not in the active set."""

    code: str = "ACCESS_REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Access request not found: {request_id}")


class AttachmentNotFoundError(NotFoundError):
    """Reply attachment is unknown or its content was not kept."""

    code: str = "ATTACHMENT_NOT_FOUND"

    def __init__(self, reply_id: str, index: int, reason: str = "not_found"):
        self.reply_id = reply_id
        self.index = index
        self.reason = reason
        super().__init__(f"Attachment {index} of reply {reply_id}: {reason}")


# Conflict


class ConflictError(HotelKernelError):
    """Base exception for uniqueness and state conflicts."""

    code: str = "CONFLICT"


class DuplicateAccessRequestError(ConflictError):
    """Email already belongs to a User or an active access request."""

    code: str = "DUPLICATE_ACCESS_REQUEST"

    def __init__(self, email: str, reason: str):
        self.email = email
        self.reason = reason
        super().__init__(f"Access request conflict for {email}: {reason}")


class InvoiceAlreadySettledError(ConflictError):
    """Invoice is PAID and cannot be re-opened for new lines."""

    code: str = "INVOICE_ALREADY_SETTLED"

    def __init__(self, invoice_id: str, booking_id: str):
        self.invoice_id = invoice_id
        self.booking_id = booking_id
        super().__init__(
            f"Invoice {invoice_id} for booking {booking_id} is already paid"
        )


class InvalidStatusTransitionError(ConflictError):
    """Requested status change is not an edge of the transition table."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, entity_type: str, entity_id: str, from_status: str, to_status: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid {entity_type} transition for {entity_id}: "
            f"{from_status} -> {to_status}"
        )


# Validation


class ValidationError(HotelKernelError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"


class InvalidPaymentAmountError(ValidationError):
    """Payment amount must be a positive decimal."""

    code: str = "INVALID_PAYMENT_AMOUNT"

    def __init__(self, amount: object):
        self.amount = str(amount)
        super().__init__(f"Payment amount must be positive: {amount}")


class MissingFieldError(ValidationError):
    """A required input field is absent or blank."""

    code: str = "MISSING_FIELD"

    def __init__(self, field_name: str, message: str | None = None):
        self.field_name = field_name
        super().__init__(message or f"Missing required field: {field_name}")


class InvalidChargeError(ValidationError):
    """Ad hoc charge failed validation."""

    code: str = "INVALID_CHARGE"

    def __init__(self, booking_id: str, reason: str):
        self.booking_id = booking_id
        self.reason = reason
        super().__init__(f"Invalid charge for booking {booking_id}: {reason}")


# Notification


class NotificationFailure(HotelKernelError):
    """
    A notification could not be delivered.

    Only ever logged by the notification gateway. Carries what an operator
    needs to resend by hand.
    """

    code: str = "NOTIFICATION_FAILURE"

    def __init__(
        self,
        template: str,
        recipient: str,
        reference: str | None,
        cause: BaseException,
    ):
        self.template = template
        self.recipient = recipient
        self.reference = reference
        self.cause = f"{type(cause).__name__}: {cause}"
        super().__init__(
            f"Notification {template} to {recipient} failed: {self.cause}"
        )


# Persistence


class PersistenceError(HotelKernelError):
    """Base exception for durability failures."""

    code: str = "PERSISTENCE_ERROR"


class SnapshotError(PersistenceError):
    """Snapshot save or load failed."""

    code: str = "SNAPSHOT_ERROR"

    def __init__(self, key: str, operation: str, cause: BaseException):
        self.key = key
        self.operation = operation
        self.cause = f"{type(cause).__name__}: {cause}"
        super().__init__(f"Snapshot {operation} failed for '{key}': {self.cause}")


# Configuration


class ConfigurationError(HotelKernelError):
    """Configuration value is missing or invalid."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, field_name: str, reason: str):
        self.field_name = field_name
        self.reason = reason
        super().__init__(f"Invalid configuration '{field_name}': {reason}")
