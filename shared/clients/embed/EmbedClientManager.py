from shared.clients.ClientManager import ClientManager
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface


class EmbedClientManager(ClientManager[EmbedClientInterface]):
    """Embedding client from EMBED_ENGINE (default: Jina)."""

    client_type = "embed"
    class_prefix = "EmbedClient"
    default_engine = "jina"
