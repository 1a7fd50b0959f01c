from shared.clients.ClientManager import ClientManager
from shared.clients.vector.VectorClientInterface import VectorClientInterface


class VectorClientManager(ClientManager[VectorClientInterface]):
    """Selects the vector store client from VECTOR_ENGINE (default "upstash")."""

    client_type = "vector"
    class_prefix = "VectorClient"
    default_engine = "upstash"
