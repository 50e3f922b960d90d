"""Factory for creating the referral webhook client."""

from app.adapters.webhook.base import AbstractWebhookClient
from app.adapters.webhook.httpx_client import HttpxWebhookClient
from app.core.config import settings


def create_webhook_client() -> AbstractWebhookClient:
    """Instantiate the webhook client from app.core.config.settings.

    Returns:
        AbstractWebhookClient: Configured client instance.
    """
    return HttpxWebhookClient(
        url=settings.webhook.webhook_url,
        headers={settings.webhook.auth_header_name: settings.webhook.auth_header_value},
        timeout_seconds=settings.validator.timeout_ms / 1000,
    )
