from shared.clients.ClientManager import ClientManager
from shared.clients.llm.LLMClientInterface import LLMClientInterface


class LLMClientManager(ClientManager[LLMClientInterface]):
    """Selects the generation provider client from LLM_ENGINE (default "ollama")."""

    client_type = "llm"
    class_prefix = "LLMClient"
    default_engine = "ollama"
