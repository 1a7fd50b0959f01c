class ClientRequestError(Exception):
    """Raised when a backend answers with a non-2xx status.

    The status code is kept as structured data so callers can classify
    the failure without parsing the message.
    """

    def __init__(self, message: str, status_code: int | None = None, url: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url
