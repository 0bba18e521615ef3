class CheckoutError(Exception):
    """Checkout failure carrying the error code reported to the client."""

    def __init__(self, message, code="CHECKOUT_ERROR"):
        super().__init__(message)
        self.message = message
        self.code = code


class GatewayError(Exception):
    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}


class ReturnRequestError(Exception):
    pass


class UnsupportedCourierError(Exception):
    pass
