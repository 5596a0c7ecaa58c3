from shared.clients.ClientManager import ClientManager
from shared.clients.reader.ReaderClientInterface import ReaderClientInterface


class ReaderClientManager(ClientManager[ReaderClientInterface]):
    """Web page reader client from READER_ENGINE (default: Jina Reader)."""

    client_type = "reader"
    class_prefix = "ReaderClient"
    default_engine = "jina"
