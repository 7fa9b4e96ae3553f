import requests

from moderation_engine.core.exceptions import NetworkFailureException
from moderation_engine.core.logger import logger

DEFAULT_TIMEOUT = 10  # seconds
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; ModerationEngine/1.0)"


class PageClient:
    """Fetches page bodies for URL content analysis."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        session: requests.Session = None,
    ):
        self.timeout = timeout
        self.user_agent = user_agent
        self.session = session or requests.Session()

    def fetch(self, url: str) -> str:
        """
        GET a page and return its decoded body.

        Raises:
            NetworkFailureException: On timeout, connection error or a
                non-2xx response
        """
        headers = {"User-Agent": self.user_agent}
        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise NetworkFailureException(
                f"Fetching {url} timed out after {self.timeout}s",
                url=url,
                details={"error": str(e)}
            )
        except requests.exceptions.RequestException as e:
            raise NetworkFailureException(
                f"Fetching {url} failed: {str(e)}",
                url=url,
                details={"error": str(e)}
            )

        if not 200 <= response.status_code < 300:
            raise NetworkFailureException(
                f"Fetching {url} returned status {response.status_code}",
                url=url,
                details={"status_code": response.status_code}
            )

        logger.debug(
            f"Fetched page content",
            extra={"url": url, "content_length": len(response.content)}
        )
        return response.text or ""

    def close(self) -> None:
        self.session.close()
