from shared.clients.ClientManager import ClientManager
from shared.clients.rag.RAGClientInterface import RAGClientInterface


class RAGClientManager(ClientManager[RAGClientInterface]):
    """Vector store client from RAG_ENGINE (default: Qdrant)."""

    client_type = "rag"
    class_prefix = "RAGClient"
    default_engine = "qdrant"
