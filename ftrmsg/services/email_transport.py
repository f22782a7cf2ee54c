import httpx
from dataclasses import dataclass
from typing import Optional

from ftrmsg.core.config import settings
from ftrmsg.core.errors import TransportError
from ftrmsg.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SendResult:
    provider_message_id: Optional[str]


class ResendTransport:
    """Sends one email per call through the Resend REST API."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: int = 15,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the email transport.

        Args:
            api_key: Resend API key
            base_url: Resend API base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.transport = transport

    async def send(self, recipient: str, subject: str, html: str, from_address: str) -> SendResult:
        """
        Send a single email. No retries; the batch rate limit owns pacing.

        Raises:
            TransportError: on any provider or network failure
        """
        url = f"{self.base_url}/emails"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "User-Agent": f"{settings.APP_NAME}/{settings.VERSION}"
        }
        payload = {
            "from": from_address,
            "to": [recipient],
            "subject": subject,
            "html": html,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning("Email send timed out", timeout=self.timeout)
            raise TransportError(f"Email provider timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.warning("Email send HTTP error", error=str(e))
            raise TransportError(f"Email provider unreachable: {e}") from e

        if response.status_code >= 400:
            detail = self._error_detail(response)
            logger.warning(
                "Email provider rejected send",
                status_code=response.status_code,
                detail=detail[:500]
            )
            raise TransportError(detail)

        try:
            data = response.json()
        except ValueError:
            data = {}

        provider_id = data.get("id") if isinstance(data, dict) else None
        logger.info("Email accepted by provider", provider_message_id=provider_id)
        return SendResult(provider_message_id=provider_id)

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"Email provider returned {response.status_code}: {response.text[:200]}"
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return f"Email provider returned {response.status_code}"


def get_email_transport() -> ResendTransport:
    return ResendTransport(
        api_key=settings.RESEND_API_KEY,
        base_url=settings.RESEND_API_URL,
        timeout=settings.EMAIL_TIMEOUT_SECONDS,
    )
