class HKPError(Exception):
    """Base class for every error raised by this package.

    ``status`` is the HTTP status the server answers with when the error
    escapes a lookuper or adder.
    """

    status = 500


class NotFoundError(HKPError):
    status = 404

    def __init__(self, message="hkp: not found"):
        super().__init__(message)


class ForbiddenError(HKPError):
    status = 403

    def __init__(self, message="hkp: forbidden"):
        super().__init__(message)


class IndexParseError(HKPError, ValueError):
    """Malformed machine-readable index.

    ``keys`` holds the records decoded before the failure.
    """

    def __init__(self, message, keys=None):
        super().__init__(message)
        self.keys = list(keys or [])


class KeyringError(HKPError):
    pass


class TransportError(HKPError):
    pass


class StatusError(TransportError):
    def __init__(self, what, status_code, reason=""):
        super().__init__(f"hkp: failed to {what}: {status_code} {reason}".rstrip())
        self.status_code = status_code
        self.reason = reason


class InsecureHostError(TransportError):
    pass


class ResolutionError(TransportError):
    retryable = False


class TransientResolutionError(ResolutionError):
    retryable = True
