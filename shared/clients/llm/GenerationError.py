class GenerationError(Exception):
    """Raised when a generation call fails or its output does not match the requested schema."""

    def __init__(self, message: str, raw_output: str | None = None):
        super().__init__(message)
        self.raw_output = raw_output
