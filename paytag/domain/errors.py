class PaytagError(Exception):
    """Base class for errors raised inside the relay client and server."""
    pass


class AuthenticationError(PaytagError):
    """Raised when a bearer token cannot be acquired."""
    pass


class RelayUnavailableError(PaytagError):
    """Raised when the relay never reports healthy."""
    pass


class ProxyRequestError(PaytagError):
    """Raised when the relay server cannot complete an upstream request."""
    pass
