from pydantic import BaseModel


class SyncOutcome(BaseModel):
    """Result of one incremental sync call, as handed to hooks and the sync endpoint.

    Either success is True and vectors_upserted holds the count written (0 for a
    purge), or success is False and error carries the failure message.
    """

    success: bool
    vectors_upserted: int = 0
    error: str | None = None

    @classmethod
    def ok(cls, vectors_upserted: int) -> "SyncOutcome":
        return cls(success=True, vectors_upserted=vectors_upserted)

    @classmethod
    def failed(cls, error: BaseException) -> "SyncOutcome":
        return cls(success=False, error=str(error) or error.__class__.__name__)
