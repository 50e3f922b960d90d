from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class WebhookResponse:
    """Status and decoded body returned by the referral webhook.

    Attributes:
        status_code: HTTP status returned by the webhook.
        payload: Decoded JSON body, or an empty dict when the body is not JSON.
        ok: Whether the status is in the 2xx range.
    """

    status_code: int
    payload: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class AbstractWebhookClient(ABC):
    """Interface for clients that look up referral codes upstream."""

    @abstractmethod
    async def lookup(self, code: str) -> WebhookResponse:
        """Submit a referral code to the webhook exactly once.

        Args:
            code: Validated, trimmed referral code.

        Returns:
            WebhookResponse: Upstream status and decoded payload, whatever the status.

        Raises:
            UpstreamTimeoutAppError: If the call does not complete in time.
            UpstreamNetworkAppError: If the call fails at the transport level.
        """
        ...
