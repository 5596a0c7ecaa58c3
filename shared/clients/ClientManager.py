from typing import Generic, TypeVar

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig

ClientT = TypeVar("ClientT", bound=ClientInterface)


class ClientManager(Generic[ClientT]):
    """Instantiates the client of one family for the engine named in the env.

    The engine is read from {CLIENT_TYPE}_ENGINE and resolved to the class
    {ClassPrefix}{Engine} in shared.clients.{client_type}.{engine}, e.g.
    RAG_ENGINE=qdrant -> shared.clients.rag.qdrant.RAGClientQdrant.

    Subclasses set client_type, class_prefix and default_engine.
    """

    client_type: str = ""
    class_prefix: str = ""
    default_engine: str = ""

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client: ClientT = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """Read the engine name, capitalised (e.g. "Qdrant").

        Raises:
            ValueError: If {CLIENT_TYPE}_ENGINE is set to a blank value.
        """
        env_key = f"{self.client_type.upper()}_ENGINE"
        engine = self.helper_config.get_string_val(env_key, default=self.default_engine)
        if not engine.strip():
            raise ValueError(f"No engine specified in configuration ({env_key}).")
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> ClientT:
        """Import and construct the client class of the configured engine.

        Raises:
            ValueError: If the engine is unsupported or its configuration is incomplete.
        """
        engine = self._get_engine_from_env()
        class_name = f"{self.class_prefix}{engine}"
        try:
            module = __import__(
                f"shared.clients.{self.client_type}.{engine.lower()}.{class_name}",
                fromlist=[class_name],
            )
            client_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported {self.client_type} engine specified: '{engine}'. Error: {e}")

        client = client_class(helper_config=self.helper_config)
        self.logging.debug("Instantiated %s client for engine: %s", self.client_type, engine)
        return client

    def get_client(self) -> ClientT:
        return self.client
