"""EmailProvider protocol - services depend on this, not the concrete implementation."""

from typing import Any, Mapping, Protocol


class EmailDeliveryError(Exception):
    """Raised by callers when a provider reports that a message was not sent."""


class EmailProvider(Protocol):
    async def send_email(
        self,
        to_email: str,
        subject: str,
        template_name: str,
        variables: Mapping[str, Any],
    ) -> bool: ...
