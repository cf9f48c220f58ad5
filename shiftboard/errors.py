class ShiftboardError(Exception):
    """Base class for every error the service reports to a caller."""

    status_code = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationFailed(ShiftboardError):
    status_code = 422


class EmployeeNotFound(ShiftboardError):
    status_code = 404


class ShiftNotFound(ShiftboardError):
    status_code = 404


class ConfirmationRequired(ShiftboardError):
    status_code = 409


class StoreError(ShiftboardError):
    """The backing store rejected or failed a read/write."""

    status_code = 502


class GatewayError(ShiftboardError):
    """The LLM / transcription gateway failed or returned nothing usable."""

    status_code = 502


class GatewayRateLimited(GatewayError):
    status_code = 429


class GatewayPaymentRequired(GatewayError):
    status_code = 402


class VoiceParseError(GatewayError):
    pass


class AuthError(ShiftboardError):
    status_code = 401
