class SyncError(Exception):
    """Raised when a sync operation cannot run or fails after the vector client gave up.

    Attributes:
        operation: Short name of the failed operation (e.g. "reindex").
    """

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message)
        self.operation = operation
