"""
Typed errors raised by the registration and payment core.
The HTTP layer maps them to status codes in main.py.
"""
import uuid


class RylsError(Exception):
    """Base error. `kind` is the discriminant the HTTP layer switches on."""

    kind = "INTERNAL"
    status_code = 500
    public = False  # whether the message may be shown to the client

    def __init__(self, message: str = "", **context):
        super().__init__(message)
        self.message = message
        self.context = context
        self.error_id = uuid.uuid4().hex[:12]


class ValidationError(RylsError):
    kind = "VALIDATION"
    status_code = 400
    public = True


class NotFoundError(RylsError):
    kind = "NOT_FOUND"
    status_code = 404
    public = True


class GatewayError(RylsError):
    """Network, HTTP or format failure talking to the payment gateway."""

    kind = "GATEWAY"
    status_code = 502


class SignatureError(RylsError):
    kind = "SIGNATURE"
    status_code = 400


class ConsistencyError(RylsError):
    """Valid signature but the payload disagrees with stored state."""

    kind = "CONSISTENCY"
    status_code = 400


class GatewayReconciliationError(RylsError):
    """The gateway accepted a transaction that could not be persisted locally."""

    kind = "GATEWAY_RECONCILIATION"
    status_code = 500


class ConfigurationError(RylsError):
    kind = "CONFIGURATION"
