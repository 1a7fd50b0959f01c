from importlib import import_module
from typing import Generic, TypeVar

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig

ClientT = TypeVar("ClientT", bound=ClientInterface)


class ClientManager(Generic[ClientT]):
    """Instantiates the client selected by the <TYPE>_ENGINE environment variable.

    A client for engine "upstash" of type "vector" lives in
    shared.clients.vector.upstash.VectorClientUpstash; subclasses only name the
    type, the class prefix and the default engine.
    """

    client_type: str = ""
    class_prefix: str = ""
    default_engine: str = ""

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client: ClientT = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """Read the engine name, e.g. VECTOR_ENGINE.

        Returns:
            str: Capitalised engine name (e.g. "Upstash").
        """
        engine = self.helper_config.get_string_val(f"{self.client_type.upper()}_ENGINE", default=self.default_engine)
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> ClientT:
        """Import and instantiate the client class of the configured engine.

        Raises:
            ValueError: If the engine is unsupported or cannot be imported.
        """
        engine = self._get_engine_from_env()
        class_name = f"{self.class_prefix}{engine}"
        try:
            module = import_module(f"shared.clients.{self.client_type}.{engine.lower()}.{class_name}")
            client = getattr(module, class_name)(helper_config=self.helper_config)
        except (ImportError, AttributeError) as e:
            raise ValueError("Unsupported %s engine '%s'. Error: %s" % (self.client_type, engine, e))
        self.logging.debug("Instantiated %s client for engine: %s", self.client_type, engine)
        return client

    def get_client(self) -> ClientT:
        """Return the instantiated client."""
        return self.client
