from shared.clients.ClientManager import ClientManager
from shared.clients.llm.LLMClientInterface import LLMClientInterface


class LLMClientManager(ClientManager[LLMClientInterface]):
    """Chat completion client from LLM_ENGINE (default: OpenAI-compatible)."""

    client_type = "llm"
    class_prefix = "LLMClient"
    default_engine = "openai"
