from abc import abstractmethod
from urllib.parse import urlparse

from shared.clients.ClientErrors import ReaderError
from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig


def is_valid_url(url: str) -> bool:
    """Return True for absolute http(s) URLs with a host."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class ReaderClientInterface(ClientInterface):
    """Client for services that turn a web page into plain text / markdown."""

    error_class = ReaderError

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "reader"

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_read(self, url: str) -> str:
        """Returns the endpoint path that reads the given page (e.g. "/https://example.com")."""
        pass

    @abstractmethod
    def _get_read_headers(self) -> dict:
        """Returns extra headers selecting the output format of the reader."""
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_fetch_content(self, url: str) -> str:
        """Fetch the readable content of a web page.

        Args:
            url (str): Absolute http(s) URL of the page.

        Returns:
            str: The page content as returned by the reader.

        Raises:
            ValueError: If the URL is not a valid http(s) URL.
            ReaderError: On timeout, 403, 404, any other failure, or an empty body.
        """
        if not is_valid_url(url):
            raise ValueError(f"Invalid URL: '{url}'")

        self.logging.info("Fetching web content from %s", url)
        try:
            response = await self.do_request(method="GET", endpoint=self.get_endpoint_read(url), additional_headers=self._get_read_headers())
        except ReaderError as exc:
            if "timed out" in str(exc):
                raise ReaderError("Fetching the web page timed out, please try again.") from exc
            raise

        if response.status_code == 404:
            raise ReaderError("The web page does not exist.", status_code=404)
        if response.status_code == 403:
            raise ReaderError("Access to the web page is forbidden.", status_code=403)
        if not response.is_success:
            raise ReaderError(f"Fetching web content failed with status {response.status_code}.", status_code=response.status_code)

        content = response.text
        if not content or not content.strip():
            raise ReaderError("The fetched web content is empty.")
        self.logging.info("Fetched %d characters from %s", len(content), url)
        return content
