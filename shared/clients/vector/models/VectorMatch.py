from pydantic import BaseModel

from shared.clients.vector.models.VectorRecord import VectorMetadata


class VectorMatch(BaseModel):
    """A single ranked hit returned by a vector query.

    Attributes:
        id:       Record id.
        score:    Fused relevance score.
        data:     The stored text blob, if requested.
        metadata: The stored metadata, None if missing or not requested.
    """

    id: str
    score: float = 0.0
    data: str | None = None
    metadata: VectorMetadata | None = None
