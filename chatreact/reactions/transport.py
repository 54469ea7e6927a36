"""WhatsApp Cloud API reaction transport."""

import logging
from typing import Any, Dict, Optional

import httpx
from chatreact.core.config import Settings
from chatreact.core.exceptions import TransportFailure

logger = logging.getLogger(__name__)


class WhatsAppReactionTransport:
    """Sends reactions through the WhatsApp Cloud (Graph) API.

    An empty emoji removes a previously sent reaction. Timeouts, transport
    errors and non-2xx responses are all reported as ``False``.
    """

    def __init__(
        self,
        token: str,
        phone_number_id: str,
        api_version: str = "v18.0",
        base_url: str = "https://graph.facebook.com",
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the transport.

        Args:
            token: Graph API bearer token
            phone_number_id: Sender phone number ID
            api_version: Graph API version segment
            base_url: Graph API base URL
            timeout: Request timeout in seconds
            client: Optional pre-built client (tests inject a mock transport)
        """
        self.token = token
        self.phone_number_id = phone_number_id
        self.api_version = api_version
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "WhatsAppReactionTransport":
        return cls(
            token=settings.WHATSAPP_TOKEN,
            phone_number_id=settings.PHONE_NUMBER_ID,
            api_version=settings.WHATSAPP_API_VERSION,
            base_url=settings.WHATSAPP_API_URL,
            timeout=settings.WHATSAPP_REQUEST_TIMEOUT,
        )

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/{self.api_version}/{self.phone_number_id}/messages"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create shared HTTP client for connection pooling."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """Close the shared HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def build_payload(recipient: str, message_id: str, emoji: str) -> Dict[str, Any]:
        return {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": recipient,
            "type": "reaction",
            "reaction": {"message_id": message_id, "emoji": emoji or ""},
        }

    async def send(self, recipient: str, message_id: str, emoji: str) -> bool:
        """Send a reaction. Returns True if the API accepted it."""
        if not message_id:
            logger.warning("Cannot send reaction: message_id not provided")
            return False

        payload = self.build_payload(recipient, message_id, emoji)
        try:
            await self._post(message_id, payload)
        except TransportFailure as e:
            logger.warning(str(e))
            return False

        action = f"sent: {emoji}" if emoji else "removed"
        logger.info(f"Reaction {action} on message {message_id}")
        return True

    async def _post(self, message_id: str, payload: Dict[str, Any]) -> None:
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }
        try:
            client = await self._get_client()
            response = await client.post(
                self.messages_url, json=payload, headers=headers, timeout=self.timeout
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise TransportFailure(message_id, "request timed out") from e
        except httpx.HTTPStatusError as e:
            raise TransportFailure(
                message_id,
                f"HTTP {e.response.status_code}: {e.response.text[:200]}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise TransportFailure(message_id, f"{type(e).__name__}: {e}") from e


class DryRunReactionTransport:
    """Transport that only logs; used when the API is not configured."""

    async def send(self, recipient: str, message_id: str, emoji: str) -> bool:
        if not message_id:
            return False
        action = f"would send {emoji}" if emoji else "would remove reaction"
        logger.info(f"[dry-run] {action} on message {message_id} for {recipient}")
        return True
