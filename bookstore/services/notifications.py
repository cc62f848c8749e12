import httpx
import structlog

from bookstore.errors import NotificationFailed

logger = structlog.get_logger(__name__)

NTFY_PREFIX = "https://ntfy.sh/"


class Ntfy:
    """Publishes plain-text messages to an ntfy.sh topic."""

    def __init__(self, base_url: str, enabled: bool = True, timeout: float = 5.0,
                 client: httpx.Client | None = None):
        if not base_url.startswith(NTFY_PREFIX):
            raise ValueError(f"notifications base url must be: {NTFY_PREFIX} + some topic")
        self.url = base_url.rstrip("/")
        self.enabled = enabled
        self.timeout = timeout
        self._client = client

    def _post(self, topic: str, message: str) -> httpx.Response:
        url = f"{self.url}/{topic}"
        if self._client is not None:
            return self._client.post(url, content=message.encode("utf-8"), timeout=self.timeout)
        with httpx.Client(timeout=self.timeout) as client:
            return client.post(url, content=message.encode("utf-8"))

    def book_created(self, title: str, inventory: int) -> bool:
        """Returns False when notifications are disabled. Raises NotificationFailed on a non-200 reply."""
        if not self.enabled:
            return False
        resp = self._post("New_book_created", f"New book created:\nTitle: {title}\nInventory: {inventory}")
        if resp.status_code != 200:
            raise NotificationFailed(resp.status_code)
        logger.debug("Notification delivered", topic="New_book_created", title=title)
        return True
