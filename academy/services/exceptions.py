class ServiceError(Exception):
    """Base class for business errors that map onto an HTTP status."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ServiceError):
    status_code = 404


class BusinessRuleError(ServiceError):
    status_code = 400


class InvalidTransitionError(BusinessRuleError):
    def __init__(self, entity: str, current, target):
        self.current = current
        self.target = target
        super().__init__(
            f"{entity} cannot move from {_value(current)} to {_value(target)}"
        )


class UnmappedStatusError(BusinessRuleError):
    def __init__(self, gateway_status: str):
        self.gateway_status = gateway_status
        super().__init__(f"Unmapped payment status: {gateway_status}")


class ConflictError(ServiceError):
    status_code = 409


class AuthenticationError(ServiceError):
    status_code = 401


class PaymentGatewayError(ServiceError):
    status_code = 502


def _value(status):
    return getattr(status, "value", status)
