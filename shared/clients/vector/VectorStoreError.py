from shared.clients.ClientRequestError import ClientRequestError

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class VectorStoreError(ClientRequestError):
    """Raised by vector clients for any failed backend operation.

    Attributes:
        status_code: HTTP status of the failed response, None for transport failures.
        transient:   True when retrying may succeed (network failure, rate limit, 5xx).
    """

    def __init__(self, message: str, status_code: int | None = None, transient: bool = False, url: str | None = None):
        super().__init__(message, status_code=status_code, url=url)
        self.transient = transient

    @classmethod
    def from_status(cls, message: str, status_code: int, url: str | None = None) -> "VectorStoreError":
        return cls(message, status_code=status_code, transient=status_code in TRANSIENT_STATUS_CODES, url=url)
